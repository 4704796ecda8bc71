# Defaults applied when the matching GCP_* variable is unset or empty
DEFAULT_ZONE = "us-central1-a"
DEFAULT_SOURCE_IMAGE = "projects/debian-cloud/global/images/family/debian-11"
DEFAULT_NETWORK_NAME = "default"
DEFAULT_WAIT_TIME = 120
DEFAULT_POLL_INTERVAL = 15

# Suggested at the machine type prompt
DEFAULT_MACHINE_TYPE = "e2-micro"

# Every benchmark VM gets the same boot disk
BOOT_DISK_SIZE_GB = 10

# Actions understood by the interactive driver
ACTIONS = ["create", "delete", "list"]
