from pydantic import BaseModel, Field

from ..core import BOOT_DISK_SIZE_GB


class InstanceSpec(BaseModel):
    name: str
    machine_type: str = Field(
        description="Zonal path, e.g. zones/us-central1-a/machineTypes/e2-micro"
    )
    disk_size_gb: int = BOOT_DISK_SIZE_GB
    source_image: str
    network: str = Field(
        description="e.g., projects/my-project/global/networks/default"
    )
    startup_script: str
