"""
Stateful resources for notes infrastructure
Database and image store settings derived from the environment config and network topology
"""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from .config import EnvironmentConfig
from .naming import ResourceKind, name_for
from .network import DATABASE_PORT, NetworkTopology, SecurityGroupRole

POSTGRES_MAJOR_VERSION = "15"
MASTER_USERNAME = "postgres"
INCOMPLETE_UPLOAD_RETENTION_DAYS = 1


class RemovalBehavior(str, Enum):
    DESTROY = "destroy"
    RETAIN = "retain"
    SNAPSHOT = "snapshot"


@dataclass(frozen=True)
class DatabaseSpec:
    engine: str
    engine_version: str
    instance_class: str
    instance_size: str
    instance_identifier: str
    subnet_group_name: str
    subnet_tier: str
    security_group: SecurityGroupRole
    port: int
    database_name: str
    master_username: str
    # Name of the generated Secrets Manager secret; never a password
    credentials_secret_name: str
    multi_az: bool
    allocated_storage_gb: int
    max_allocated_storage_gb: int
    storage_encrypted: bool
    publicly_accessible: bool
    deletion_protection: bool
    backup_retention_days: int
    delete_automated_backups: bool
    allow_major_version_upgrade: bool
    auto_minor_version_upgrade: bool
    removal_behavior: RemovalBehavior

    @property
    def instance_type(self) -> str:
        return f"db.{self.instance_class}.{self.instance_size}"


@dataclass(frozen=True)
class CorsRule:
    allowed_methods: Tuple[str, ...]
    allowed_origins: Tuple[str, ...]
    allowed_headers: Tuple[str, ...]
    max_age: int


@dataclass(frozen=True)
class LifecycleRule:
    rule_id: str
    abort_incomplete_multipart_upload_days: int


@dataclass(frozen=True)
class ImageStoreSpec:
    bucket_name: str
    cors_rules: Tuple[CorsRule, ...]
    lifecycle_rules: Tuple[LifecycleRule, ...]
    encryption: str
    block_public_access: bool
    enforce_ssl: bool
    versioned: bool
    removal_behavior: RemovalBehavior


@dataclass(frozen=True)
class StatefulResources:
    database: DatabaseSpec
    image_store: ImageStoreSpec


def build_database(topology: NetworkTopology, config: EnvironmentConfig) -> DatabaseSpec:
    # Validates that the topology carries the tier and group the database is placed in
    isolated = topology.tier("isolated")
    topology.security_group(SecurityGroupRole.DATABASE)

    protected = config.deletion_protection
    return DatabaseSpec(
        engine="postgres",
        engine_version=POSTGRES_MAJOR_VERSION,
        instance_class="t3",
        instance_size=config.db_sizing.value,
        instance_identifier=name_for(config, ResourceKind.DB_INSTANCE),
        subnet_group_name=name_for(config, ResourceKind.DB_SUBNET_GROUP),
        subnet_tier=isolated.key,
        security_group=SecurityGroupRole.DATABASE,
        port=DATABASE_PORT,
        database_name=name_for(config, ResourceKind.DATABASE_NAME),
        master_username=MASTER_USERNAME,
        credentials_secret_name=name_for(config, ResourceKind.DB_CREDENTIALS),
        multi_az=config.multi_az,
        allocated_storage_gb=config.allocated_storage_gb,
        max_allocated_storage_gb=config.allocated_storage_gb * (2 if config.is_production else 1),
        storage_encrypted=True,
        publicly_accessible=False,
        deletion_protection=protected,
        backup_retention_days=config.backup_retention_days,
        delete_automated_backups=not protected,
        allow_major_version_upgrade=False,
        auto_minor_version_upgrade=True,
        removal_behavior=RemovalBehavior.SNAPSHOT if protected else RemovalBehavior.DESTROY,
    )


def build_image_store(config: EnvironmentConfig) -> ImageStoreSpec:
    return ImageStoreSpec(
        bucket_name=name_for(config, ResourceKind.IMAGES_BUCKET),
        cors_rules=(
            CorsRule(
                allowed_methods=("GET", "POST", "PUT", "DELETE"),
                allowed_origins=config.cors_allowed_origins,
                allowed_headers=("*",),
                max_age=3000,
            ),
        ),
        lifecycle_rules=(
            LifecycleRule(
                rule_id="DeleteIncompleteMultipartUploads",
                abort_incomplete_multipart_upload_days=INCOMPLETE_UPLOAD_RETENTION_DAYS,
            ),
        ),
        encryption="s3-managed",
        block_public_access=True,
        enforce_ssl=True,
        versioned=config.is_production,
        removal_behavior=RemovalBehavior.RETAIN if config.deletion_protection else RemovalBehavior.DESTROY,
    )


def build_stateful(topology: NetworkTopology, config: EnvironmentConfig) -> StatefulResources:
    """Derive database and image store settings for the environment."""
    return StatefulResources(
        database=build_database(topology, config),
        image_store=build_image_store(config),
    )
