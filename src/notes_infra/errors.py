"""
Error taxonomy for notes infrastructure deployments
"""
from typing import Optional


class NotesInfraError(Exception):
    """Base class for all deployment errors."""


class ConfigurationError(NotesInfraError):
    """Required input missing or environment name unrecognized. Always fatal."""


class PermissionDeploymentError(NotesInfraError):
    """IAM rejected (or would reject) the deployment role's policies."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class PolicyLimitError(PermissionDeploymentError):
    """An assembled policy set exceeds an IAM quota."""


class ResourceProvisioningError(NotesInfraError):
    """The toolchain failed to create or update network, database or storage resources."""

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


def classify_toolchain_failure(output: str, config, returncode: int) -> NotesInfraError:
    """
    Map a failed cdk invocation to the matching error class

    Args:
        output: Combined stdout/stderr of the cdk process
        config: EnvironmentConfig the invocation targeted
        returncode: Exit code of the cdk process

    Returns:
        PermissionDeploymentError when the permissions stack is reported as
        failed, ResourceProvisioningError otherwise
    """
    # Imported here to keep errors importable from naming/config without a cycle
    from .naming import ResourceKind, name_for

    permissions_stack = name_for(config, ResourceKind.STACK, "Permissions")
    failed_lines = [
        line for line in output.splitlines()
        if "failed" in line.lower() or "error" in line.lower()
    ]

    if any(permissions_stack in line for line in failed_lines):
        return PermissionDeploymentError(
            f"Deployment of {permissions_stack} failed (exit code {returncode})",
            returncode=returncode,
            output=output,
        )

    return ResourceProvisioningError(
        f"cdk exited with code {returncode} for environment {config.name.value}",
        returncode=returncode,
        output=output,
    )
