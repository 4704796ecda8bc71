import concurrent.futures
import io

import pytest
from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from rich.console import Console

from benchvm.config import BenchConfig
from benchvm.exceptions import (
    MissingRequiredConfig,
    NotFound,
    ProviderError,
    RemoteExecError,
)
from benchvm.manager import InstanceManager
from benchvm.startup import STARTUP_SCRIPT


class FakeInstancesClient:
    """In-memory stand-in for compute_v1.InstancesClient."""

    def __init__(self, mocker):
        self._mocker = mocker
        self.instances: dict[str, object] = {}

    def _operation(self):
        op = self._mocker.MagicMock()
        op.warnings = []
        return op

    def list(self, request):
        return [_named(self._mocker, n) for n in self.instances]

    def insert(self, project, zone, instance_resource):
        if instance_resource.name in self.instances:
            raise api_exceptions.Conflict(
                f"The resource '{instance_resource.name}' already exists"
            )
        self.instances[instance_resource.name] = instance_resource
        return self._operation()

    def delete(self, project, zone, instance):
        if instance not in self.instances:
            raise api_exceptions.NotFound(f"The resource '{instance}' was not found")
        del self.instances[instance]
        return self._operation()


def _named(mocker, name):
    # Mock(name=...) names the mock itself, so set the attribute afterwards
    m = mocker.Mock()
    m.name = name
    return m


@pytest.fixture
def config():
    return BenchConfig(project_id="test-project", zone="us-west1-b", poll_interval=0)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def mock_client(mocker):
    mock_get = mocker.patch("benchvm.manager.get_compute_instances_client")
    return mock_get.return_value


def test_missing_project_fails_before_any_client(mocker, console):
    mock_get = mocker.patch("benchvm.manager.get_compute_instances_client")

    with pytest.raises(MissingRequiredConfig):
        InstanceManager(BenchConfig(), console=console)

    mock_get.assert_not_called()


def test_list_instances_empty(mock_client, config, console):
    mock_client.list.return_value = []

    names = InstanceManager(config, console=console).list_instances()

    assert names == []
    assert "No instances found." in console.file.getvalue()


def test_list_instances_preserves_order(mocker, mock_client, config, console):
    provider_order = ["zeta", "alpha", "bench-1", "alpha"]
    mock_client.list.return_value = [_named(mocker, n) for n in provider_order]

    names = InstanceManager(config, console=console).list_instances()

    assert names == provider_order
    output = console.file.getvalue()
    assert " - Instance Name: zeta" in output
    assert " - Instance Name: bench-1" in output

    request = mock_client.list.call_args.kwargs["request"]
    assert request.project == "test-project"
    assert request.zone == "us-west1-b"


def test_list_instances_provider_failure(mock_client, config, console):
    mock_client.list.side_effect = api_exceptions.PermissionDenied("denied")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).list_instances()

    assert "denied" in str(exc.value)
    assert isinstance(exc.value.cause, api_exceptions.PermissionDenied)


def test_create_instance_waits_on_operation(mock_client, config, console):
    operation = mock_client.insert.return_value
    operation.warnings = []

    InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    mock_client.insert.assert_called_once()
    kwargs = mock_client.insert.call_args.kwargs
    assert kwargs["project"] == "test-project"
    assert kwargs["zone"] == "us-west1-b"
    resource = kwargs["instance_resource"]
    assert resource.name == "bench-1"
    assert resource.machine_type == "zones/us-west1-b/machineTypes/e2-micro"
    assert resource.metadata.items[0].value == STARTUP_SCRIPT

    operation.result.assert_called_once_with(timeout=None)
    assert "Instance 'bench-1' created successfully." in console.file.getvalue()


def test_create_instance_passes_operation_timeout(mock_client, console):
    config = BenchConfig(project_id="p1", operation_timeout=300)
    operation = mock_client.insert.return_value
    operation.warnings = []

    InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    operation.result.assert_called_once_with(timeout=300)


def test_create_duplicate_name_is_not_retried(mock_client, config, console):
    mock_client.insert.side_effect = api_exceptions.Conflict("already exists")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert not isinstance(exc.value, NotFound)
    assert mock_client.insert.call_count == 1
    assert mock_client.insert.call_args.kwargs["instance_resource"].name == "bench-1"


def test_create_operation_failure(mock_client, config, console):
    mock_client.insert.return_value.result.side_effect = api_exceptions.Forbidden(
        "Quota 'CPUS' exceeded"
    )

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert "Quota" in str(exc.value)


def test_create_operation_timeout(mock_client, config, console):
    mock_client.insert.return_value.result.side_effect = (
        concurrent.futures.TimeoutError()
    )

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert "did not finish" in str(exc.value)


def test_create_logs_operation_warnings(mocker, mock_client, config, console, caplog):
    warning = mocker.Mock(code="DISK_SIZE_LARGER_THAN_IMAGE_SIZE", message="resize")
    mock_client.insert.return_value.warnings = [warning]

    InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert "DISK_SIZE_LARGER_THAN_IMAGE_SIZE" in caplog.text


def test_delete_instance(mock_client, config, console):
    operation = mock_client.delete.return_value
    operation.warnings = []

    InstanceManager(config, console=console).delete_instance("bench-1")

    mock_client.delete.assert_called_once_with(
        project="test-project", zone="us-west1-b", instance="bench-1"
    )
    operation.result.assert_called_once()
    assert "Instance 'bench-1' deleted successfully." in console.file.getvalue()


def test_delete_missing_instance_raises_not_found(mock_client, config, console):
    mock_client.delete.side_effect = api_exceptions.NotFound("no such instance")

    with pytest.raises(NotFound) as exc:
        InstanceManager(config, console=console).delete_instance("ghost")

    assert exc.value.instance == "ghost"
    assert exc.value.zone == "us-west1-b"
    assert isinstance(exc.value, ProviderError)


def test_delete_not_found_from_operation(mock_client, config, console):
    mock_client.delete.return_value.result.side_effect = api_exceptions.NotFound(
        "gone"
    )

    with pytest.raises(NotFound):
        InstanceManager(config, console=console).delete_instance("ghost")


def test_delete_other_failure_is_provider_error(mock_client, config, console):
    mock_client.delete.side_effect = api_exceptions.BadRequest("bad zone")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).delete_instance("bench-1")

    assert not isinstance(exc.value, NotFound)


def test_create_list_delete_round_trip(mocker, config, console):
    client = FakeInstancesClient(mocker)
    manager = InstanceManager(config, console=console, client=client)

    manager.create_instance("bench-1", "e2-micro")
    assert "bench-1" in manager.list_instances()

    manager.delete_instance("bench-1")
    assert "bench-1" not in manager.list_instances()


def test_round_trip_duplicate_and_missing(mocker, config, console):
    client = FakeInstancesClient(mocker)
    manager = InstanceManager(config, console=console, client=client)

    manager.create_instance("bench-1", "e2-micro")
    with pytest.raises(ProviderError):
        manager.create_instance("bench-1", "n2-standard-2")
    assert manager.list_instances() == ["bench-1"]

    with pytest.raises(NotFound):
        manager.delete_instance("bench-2")


def test_fetch_benchmark_results(mocker, config, console):
    mock_run = mocker.patch(
        "benchvm.manager.run_remote_command", return_value="sysbench output\n"
    )

    results = InstanceManager(config, console=console).fetch_benchmark_results(
        "bench-1"
    )

    assert results == "sysbench output\n"
    mock_run.assert_called_once_with(
        "test-project", "us-west1-b", "bench-1", "cat /var/log/startupscript.log"
    )


def test_fetch_failure_leaves_instance_alone(mocker, mock_client, config, console):
    mocker.patch(
        "benchvm.manager.run_remote_command",
        side_effect=RemoteExecError("bench-1", "connection refused", returncode=255),
    )

    with pytest.raises(RemoteExecError):
        InstanceManager(config, console=console).fetch_benchmark_results("bench-1")

    mock_client.delete.assert_not_called()
    mock_client.insert.assert_not_called()


def test_wait_for_benchmarks_polls_until_marker(mocker, config, console):
    mock_run = mocker.patch(
        "benchvm.manager.run_remote_command",
        side_effect=[
            RemoteExecError("bench-1", "ssh: connect to host refused"),
            "Running Sysbench CPU test...\n",
            "Running Fio disk test...\nFio disk test completed!\n",
        ],
    )

    results = InstanceManager(config, console=console).wait_for_benchmarks(
        "bench-1", timeout=60
    )

    assert results.endswith("Fio disk test completed!\n")
    assert mock_run.call_count == 3


def test_wait_for_benchmarks_gives_up(mocker, config, console):
    mocker.patch(
        "benchvm.manager.run_remote_command",
        return_value="Running Sysbench CPU test...\n",
    )

    with pytest.raises(RemoteExecError) as exc:
        InstanceManager(config, console=console).wait_for_benchmarks(
            "bench-1", timeout=0
        )

    assert "did not finish" in str(exc.value)
    assert exc.value.output == "Running Sysbench CPU test...\n"


def test_wait_for_benchmarks_reraises_last_channel_error(mocker, config, console):
    mocker.patch(
        "benchvm.manager.run_remote_command",
        side_effect=RemoteExecError("bench-1", "no route", returncode=255),
    )

    with pytest.raises(RemoteExecError) as exc:
        InstanceManager(config, console=console).wait_for_benchmarks(
            "bench-1", timeout=0
        )

    assert exc.value.returncode == 255


def test_list_instances_expired_credentials(mock_client, config, console):
    mock_client.list.side_effect = auth_exceptions.RefreshError("token expired")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).list_instances()

    assert "token expired" in str(exc.value)
    assert isinstance(exc.value.cause, auth_exceptions.RefreshError)


def test_create_expired_credentials_on_submit(mock_client, config, console):
    mock_client.insert.side_effect = auth_exceptions.RefreshError("token expired")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert isinstance(exc.value.cause, auth_exceptions.RefreshError)


def test_create_expired_credentials_while_waiting(mock_client, config, console):
    mock_client.insert.return_value.result.side_effect = auth_exceptions.RefreshError(
        "token expired"
    )

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).create_instance("bench-1", "e2-micro")

    assert isinstance(exc.value.cause, auth_exceptions.RefreshError)


def test_delete_expired_credentials(mock_client, config, console):
    mock_client.delete.side_effect = auth_exceptions.RefreshError("token expired")

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).delete_instance("bench-1")

    assert not isinstance(exc.value, NotFound)
    assert isinstance(exc.value.cause, auth_exceptions.RefreshError)


def test_delete_expired_credentials_while_waiting(mock_client, config, console):
    mock_client.delete.return_value.result.side_effect = auth_exceptions.RefreshError(
        "token expired"
    )

    with pytest.raises(ProviderError) as exc:
        InstanceManager(config, console=console).delete_instance("bench-1")

    assert not isinstance(exc.value, NotFound)
