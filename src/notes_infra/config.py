"""
Environment configuration for notes infrastructure
Resolves an environment name into an immutable EnvironmentConfig from injected inputs
"""
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Optional[str]]

DEFAULT_REGION = "sa-east-1"
RESOURCE_PREFIX_ROOT = "eah"

_ACCOUNT_ID_PATTERN = re.compile(r"[0-9]{12}")


class EnvironmentName(str, Enum):
    PREPROD = "preprod"
    PROD = "prod"


class DbSizing(str, Enum):
    """RDS burstable instance sizes (db.t3.*)."""
    MICRO = "micro"
    SMALL = "small"
    MEDIUM = "medium"


@dataclass(frozen=True)
class EnvironmentConfig:
    """Per-invocation environment settings. Never persisted."""
    name: EnvironmentName
    account_id: str
    region: str
    resource_prefix: str
    db_sizing: DbSizing
    multi_az: bool
    deletion_protection: bool
    allocated_storage_gb: int
    backup_retention_days: int
    cors_allowed_origins: Tuple[str, ...] = ("*",)

    @property
    def is_production(self) -> bool:
        return self.name is EnvironmentName.PROD

    def cdk_environment(self):
        # CDK loads the jsii runtime on import; keep it out of the pure config path
        import aws_cdk as cdk

        return cdk.Environment(account=self.account_id, region=self.region)


# Sizing and durability per environment. Account ids are never defaulted.
PROFILES: Dict[EnvironmentName, Dict[str, object]] = {
    EnvironmentName.PREPROD: {
        "db_sizing": DbSizing.MICRO,
        "multi_az": False,
        "deletion_protection": False,
        "allocated_storage_gb": 20,
        "backup_retention_days": 3,
    },
    EnvironmentName.PROD: {
        "db_sizing": DbSizing.SMALL,
        "multi_az": True,
        "deletion_protection": True,
        "allocated_storage_gb": 100,
        "backup_retention_days": 7,
    },
}


def account_id_variable(name: EnvironmentName) -> str:
    return f"{name.value.upper()}_AWS_ACCOUNT_ID"


def parse_environment_name(name: Optional[str]) -> EnvironmentName:
    """Validate an environment selector and return its enum value."""
    available = ", ".join(env.value for env in EnvironmentName)
    if not name:
        raise ConfigurationError(
            f"Environment is required. Available environments: {available}"
        )
    try:
        return EnvironmentName(name)
    except ValueError:
        raise ConfigurationError(
            f"Environment '{name}' not found. Available environments: {available}"
        ) from None


def get_required_value(lookup: Lookup, key: str, environment: EnvironmentName) -> str:
    """Read a required input, failing with a message naming the variable and environment."""
    value = lookup(key)
    if value is None or not value.strip():
        raise ConfigurationError(
            f"Missing required environment variable: {key}\n"
            f"This is required for {environment.value} environment deployment.\n"
            f"Please set {key} in your environment or CI secrets."
        )
    return value.strip()


def _parse_origins(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ("*",)
    origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    return origins or ("*",)


def resolve(name: Optional[str], lookup: Lookup = os.environ.get) -> EnvironmentConfig:
    """
    Resolve an environment name into its configuration

    Args:
        name: Environment selector, 'preprod' or 'prod'
        lookup: Key/value function used for external inputs (defaults to os.environ.get)

    Returns:
        Immutable EnvironmentConfig for the environment

    Raises:
        ConfigurationError: If the name is unknown or a required input is missing
    """
    environment = parse_environment_name(name)
    prefix = environment.value.upper()

    account_id = get_required_value(lookup, account_id_variable(environment), environment)
    if not _ACCOUNT_ID_PATTERN.fullmatch(account_id):
        raise ConfigurationError(
            f"{account_id_variable(environment)} must be a 12-digit AWS account id, got '{account_id}'"
        )

    region = (lookup(f"{prefix}_AWS_REGION") or "").strip() or DEFAULT_REGION
    origins = _parse_origins(lookup(f"{prefix}_CORS_ALLOWED_ORIGINS"))

    config = EnvironmentConfig(
        name=environment,
        account_id=account_id,
        region=region,
        resource_prefix=f"{RESOURCE_PREFIX_ROOT}-{environment.value}",
        cors_allowed_origins=origins,
        **PROFILES[environment],
    )

    logger.info(
        f"Resolved environment {config.name.value}: account={config.account_id} region={config.region}"
    )
    return config
