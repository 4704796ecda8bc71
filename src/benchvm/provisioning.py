from google.cloud import compute_v1

from .config import BenchConfig
from .schemas.compute import InstanceSpec
from .startup import STARTUP_SCRIPT, STARTUP_SCRIPT_KEY


def machine_type_path(zone: str, machine_type: str) -> str:
    return f"zones/{zone}/machineTypes/{machine_type}"


def network_path(project_id: str, network_name: str) -> str:
    return f"projects/{project_id}/global/networks/{network_name}"


def build_instance_spec(
    config: BenchConfig, name: str, machine_type: str
) -> InstanceSpec:
    """
    Describes a benchmark VM: 10 GB boot disk from the configured image,
    one NIC on the configured network, and the shared startup script.
    """
    if not name.strip():
        raise ValueError("Instance name must not be empty")
    if not machine_type.strip():
        raise ValueError("Machine type must not be empty")

    return InstanceSpec(
        name=name.strip(),
        machine_type=machine_type_path(config.zone, machine_type.strip()),
        source_image=config.source_image,
        network=network_path(config.project_id, config.network_name),
        startup_script=STARTUP_SCRIPT,
    )


def build_instance_resource(spec: InstanceSpec) -> compute_v1.Instance:
    """Converts an InstanceSpec into the Compute Engine insert payload."""
    init_params = compute_v1.AttachedDiskInitializeParams(
        disk_size_gb=spec.disk_size_gb,
        source_image=spec.source_image,
    )
    boot_disk = compute_v1.AttachedDisk(
        auto_delete=True,
        boot=True,
        type_=compute_v1.AttachedDisk.Type.PERSISTENT.name,
        initialize_params=init_params,
    )

    # External IP via one-to-one NAT so apt-get can reach the mirrors
    access_config = compute_v1.AccessConfig(
        name="External NAT",
        type_=compute_v1.AccessConfig.Type.ONE_TO_ONE_NAT.name,
    )
    nic = compute_v1.NetworkInterface(
        network=spec.network,
        access_configs=[access_config],
    )

    metadata = compute_v1.Metadata(
        items=[compute_v1.Items(key=STARTUP_SCRIPT_KEY, value=spec.startup_script)]
    )

    return compute_v1.Instance(
        name=spec.name,
        machine_type=spec.machine_type,
        disks=[boot_disk],
        network_interfaces=[nic],
        metadata=metadata,
    )
