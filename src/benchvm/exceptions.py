"""
benchvm - Exception Classes

Every error raised by the lifecycle manager or the remote channel derives
from BenchVMError, so the driver can report any of them with one except
clause and still tell the kinds apart when it picks an exit code.
"""

from __future__ import annotations


class BenchVMError(Exception):
    """Base exception for all benchmark VM errors."""


class MissingRequiredConfig(BenchVMError):
    """
    Raised when a required setting cannot be resolved.

    Only the project ID has no default, so this is what surfaces when
    GCP_PROJECT_ID is unset and no --project-id was given.
    """

    def __init__(self, setting: str, env_var: str | None = None):
        self.setting = setting
        self.env_var = env_var

        message = f"{setting} is required"
        if env_var:
            message += f" (set {env_var} in the environment or in .env)"
        super().__init__(message)


class ProviderError(BenchVMError):
    """
    Raised when a Compute Engine call or its operation fails.

    Covers rejected requests (duplicate names, bad machine types, quota),
    operations that finish with an error, and waits that exceed the
    configured operation timeout.
    """

    def __init__(self, operation: str, reason: str, cause: Exception | None = None):
        """
        Args:
            operation: What was attempted (e.g., "create instance 'bench-1'")
            reason: Why it failed
            cause: The underlying SDK exception, if any
        """
        self.operation = operation
        self.reason = reason
        self.cause = cause

        super().__init__(f"Failed to {operation}: {reason}")


class NotFound(ProviderError):
    """
    Raised when the target instance does not exist.
    """

    def __init__(
        self,
        instance: str,
        zone: str,
        project: str,
        cause: Exception | None = None,
    ):
        self.instance = instance
        self.zone = zone
        self.project = project

        reason = (
            f"instance '{instance}' not found in zone '{zone}' (project: {project})"
        )
        super().__init__(f"delete instance '{instance}'", reason, cause)


class RemoteExecError(BenchVMError):
    """
    Raised when the remote command channel fails.

    Common causes:
    - Instance still booting or the startup script has not run yet
    - IAP tunnel not permitted by firewall rules
    - gcloud not installed or not authenticated
    """

    def __init__(
        self,
        instance: str,
        reason: str,
        output: str = "",
        returncode: int | None = None,
    ):
        self.instance = instance
        self.reason = reason
        self.output = output
        self.returncode = returncode

        message = f"Remote command on '{instance}' failed: {reason}"
        if output.strip():
            message += f"\n\n{output.strip()}"
        super().__init__(message)
