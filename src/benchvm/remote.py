import subprocess

from .exceptions import RemoteExecError
from .logger import logger


def build_ssh_command(
    project_id: str, zone: str, instance_name: str, command: str
) -> list[str]:
    """gcloud ssh invocation tunnelled through IAP (no public SSH ingress needed)."""
    return [
        "gcloud",
        "compute",
        "ssh",
        instance_name,
        "--zone",
        zone,
        "--project",
        project_id,
        "--command",
        command,
        "--quiet",
        "--tunnel-through-iap",
    ]


def run_remote_command(
    project_id: str, zone: str, instance_name: str, command: str
) -> str:
    """
    Runs a single command on the instance and returns stdout and stderr
    combined, verbatim.
    """
    ssh_cmd = build_ssh_command(project_id, zone, instance_name, command)
    logger.debug(f"Running: {' '.join(ssh_cmd)}")

    try:
        res = subprocess.run(
            ssh_cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        # Typically gcloud missing from PATH
        raise RemoteExecError(instance_name, f"could not start gcloud: {e}") from e

    output = res.stdout or ""
    if res.returncode != 0:
        raise RemoteExecError(
            instance_name,
            f"command exited with status {res.returncode}",
            output=output,
            returncode=res.returncode,
        )
    return output
