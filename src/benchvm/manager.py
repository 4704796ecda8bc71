from __future__ import annotations

import concurrent.futures
from typing import Any

from google.api_core import exceptions as api_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import compute_v1
from rich.console import Console
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from .clients import get_compute_instances_client
from .config import BenchConfig
from .exceptions import NotFound, ProviderError, RemoteExecError
from .logger import logger
from .provisioning import build_instance_resource, build_instance_spec
from .remote import run_remote_command
from .startup import BENCHMARK_LOG_PATH, COMPLETION_MARKER

# SDK call failures plus credential refresh failures from the transport
_PROVIDER_ERRORS = (
    api_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
)


class InstanceManager:
    """
    Lists, creates and deletes benchmark VMs in one project and zone, and
    reads back the benchmark log from a created VM.

    The configuration is validated up front, so an instance of this class
    never talks to Compute Engine without a project ID.
    """

    def __init__(
        self,
        config: BenchConfig,
        console: Console | None = None,
        client: Any = None,
    ) -> None:
        config.ensure_valid()
        self.config = config
        self.console = console or Console()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = get_compute_instances_client()
            except auth_exceptions.DefaultCredentialsError as e:
                raise ProviderError(
                    "create Compute Engine client",
                    "no application default credentials "
                    "(run 'gcloud auth application-default login')",
                    e,
                ) from e
        return self._client

    def _wait(self, operation: Any, action: str) -> None:
        """Blocks until the extended operation is done, or the timeout hits."""
        timeout = self.config.operation_timeout
        try:
            operation.result(timeout=timeout)
        except concurrent.futures.TimeoutError as e:
            raise ProviderError(
                action, f"operation did not finish within {timeout}s", e
            ) from e
        except _PROVIDER_ERRORS as e:
            raise ProviderError(action, str(e), e) from e

        for warning in operation.warnings:
            logger.warning(f"{action}: {warning.code}: {warning.message}")

    def list_instances(self) -> list[str]:
        """
        Returns instance names in the order Compute Engine reports them.
        """
        project_id, zone = self.config.project_id, self.config.zone
        request = compute_v1.ListInstancesRequest(project=project_id, zone=zone)

        self.console.print("Listing existing instances...")
        names: list[str] = []

        # The client library handles pagination when iterating
        try:
            for instance in self.client.list(request=request):
                self.console.print(f" - Instance Name: {instance.name}")
                names.append(instance.name)
        except _PROVIDER_ERRORS as e:
            raise ProviderError(
                f"list instances in {project_id}/{zone}", str(e), e
            ) from e

        if not names:
            self.console.print("No instances found.")

        return names

    def create_instance(self, name: str, machine_type: str) -> None:
        """
        Creates a benchmark VM and waits for the insert operation.

        A duplicate name surfaces as ProviderError; the name is never
        altered and the request is never retried.
        """
        spec = build_instance_spec(self.config, name, machine_type)
        action = f"create instance '{spec.name}'"

        self.console.print("Starting instance creation...")
        self.console.print(
            f"Creating instance with name: {spec.name} in zone: {self.config.zone}"
        )
        logger.debug(
            f"Insert {spec.name}: machine_type={spec.machine_type} "
            f"image={spec.source_image} network={spec.network}"
        )

        try:
            operation = self.client.insert(
                project=self.config.project_id,
                zone=self.config.zone,
                instance_resource=build_instance_resource(spec),
            )
        except _PROVIDER_ERRORS as e:
            raise ProviderError(action, str(e), e) from e

        self._wait(operation, action)
        self.console.print(f"Instance '{spec.name}' created successfully.")

    def delete_instance(self, name: str) -> None:
        """Deletes the named VM and waits for the delete operation."""
        project_id, zone = self.config.project_id, self.config.zone
        action = f"delete instance '{name}'"

        try:
            operation = self.client.delete(
                project=project_id, zone=zone, instance=name
            )
            self._wait(operation, action)
        except api_exceptions.NotFound as e:
            raise NotFound(name, zone, project_id, e) from e
        except ProviderError as e:
            if isinstance(e.cause, api_exceptions.NotFound):
                raise NotFound(name, zone, project_id, e.cause) from e
            raise
        except _PROVIDER_ERRORS as e:
            raise ProviderError(action, str(e), e) from e

        self.console.print(f"Instance '{name}' deleted successfully.")

    def fetch_benchmark_results(self, name: str) -> str:
        """
        Reads the startup script log over an IAP-tunnelled SSH session.
        No retries here, and the instance is left as it is on failure.
        """
        self.console.print("Retrieving Benchmark results...")
        return run_remote_command(
            self.config.project_id,
            self.config.zone,
            name,
            f"cat {BENCHMARK_LOG_PATH}",
        )

    def wait_for_benchmarks(self, name: str, timeout: int | None = None) -> str:
        """
        Polls the benchmark log until the startup script reports completion.

        Connection failures count as "not ready yet" while time remains.
        Returns the full log; raises RemoteExecError if the deadline passes.
        """
        timeout = self.config.wait_time if timeout is None else timeout

        def _log_attempt(retry_state: Any) -> None:
            logger.debug(
                f"Benchmarks on {name} not finished "
                f"(attempt {retry_state.attempt_number}), polling again"
            )

        retryer = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.config.poll_interval),
            retry=(
                retry_if_exception_type(RemoteExecError)
                | retry_if_result(lambda output: COMPLETION_MARKER not in output)
            ),
            before_sleep=_log_attempt,
            reraise=True,
        )

        try:
            output: str = retryer(self.fetch_benchmark_results, name)
            return output
        except RetryError as e:
            raise RemoteExecError(
                name,
                f"benchmarks did not finish within {timeout}s",
                output=e.last_attempt.result(),
            ) from e
