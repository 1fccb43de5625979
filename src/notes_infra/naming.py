"""
Resource naming for notes infrastructure
Every resource name, export name and ARN pattern is derived here from the environment config
"""
from enum import Enum
from typing import Optional

from .config import EnvironmentConfig

PROJECT_NAME = "EverythingAtHand"
STACK_PREFIX = "Notes"


class ResourceKind(Enum):
    DEPLOYMENT_ROLE = "deployment-role"
    STACK = "stack"
    VPC = "vpc"
    SECURITY_GROUP = "sg"
    DB_INSTANCE = "db"
    DB_SUBNET_GROUP = "db-subnets"
    DB_PARAMETER_GROUP = "db-params"
    DB_CREDENTIALS = "db-credentials"
    DATABASE_NAME = "database"
    IMAGES_BUCKET = "images"
    MANAGED_POLICY = "deploy"
    EXPORT = "export"


# Kinds whose names are built as "<resource_prefix>-<suffix>"
_PREFIXED_KINDS = {
    ResourceKind.VPC,
    ResourceKind.DB_INSTANCE,
    ResourceKind.DB_SUBNET_GROUP,
    ResourceKind.DB_PARAMETER_GROUP,
    ResourceKind.DB_CREDENTIALS,
}

# Kinds that need a qualifier to be unique
_QUALIFIED_KINDS = {
    ResourceKind.STACK,
    ResourceKind.SECURITY_GROUP,
    ResourceKind.MANAGED_POLICY,
    ResourceKind.EXPORT,
}


def name_for(config: EnvironmentConfig, kind: ResourceKind, qualifier: Optional[str] = None) -> str:
    """
    Derive the physical name of a resource

    Args:
        config: Environment configuration
        kind: Kind of resource being named
        qualifier: Distinguishes resources of the same kind (stack role, SG tier, policy domain, export key)

    Returns:
        Name embedding the environment name
    """
    if kind in _QUALIFIED_KINDS and not qualifier:
        raise ValueError(f"{kind.name} names require a qualifier")

    env = config.name.value

    if kind is ResourceKind.DEPLOYMENT_ROLE:
        return f"Eah{env.capitalize()}Role"
    if kind is ResourceKind.STACK:
        return f"{STACK_PREFIX}-{env}-{qualifier}"
    if kind is ResourceKind.DATABASE_NAME:
        return config.resource_prefix.replace("-", "_")
    if kind is ResourceKind.IMAGES_BUCKET:
        return f"{config.resource_prefix}-images-{config.account_id}"
    if kind is ResourceKind.EXPORT:
        return f"{config.resource_prefix}-{qualifier}"
    if kind in (ResourceKind.SECURITY_GROUP, ResourceKind.MANAGED_POLICY):
        return f"{config.resource_prefix}-{kind.value}-{qualifier}"
    if kind in _PREFIXED_KINDS:
        return f"{config.resource_prefix}-{kind.value}"

    raise ValueError(f"Unsupported resource kind: {kind}")


def name_pattern(config: EnvironmentConfig, kind: Optional[ResourceKind] = None) -> str:
    """Wildcard pattern matching every name created under the environment prefix."""
    if kind is ResourceKind.STACK:
        return f"{STACK_PREFIX}-{config.name.value}-*"
    return f"{config.resource_prefix}-*"


def arn_for(
    config: EnvironmentConfig,
    service: str,
    resource: str,
    region: bool = True,
    account: bool = True,
) -> str:
    """Build an ARN in the config's region and account."""
    region_part = config.region if region else ""
    account_part = config.account_id if account else ""
    return f"arn:aws:{service}:{region_part}:{account_part}:{resource}"


def bucket_arn(config: EnvironmentConfig, bucket_name: str) -> str:
    return arn_for(config, "s3", bucket_name, region=False, account=False)
