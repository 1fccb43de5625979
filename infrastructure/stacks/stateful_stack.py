"""
Stateful Stack for notes infrastructure
Contains the RDS PostgreSQL instance, its generated credentials and the S3 images bucket
"""
from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_s3 as s3,
    Duration,
    RemovalPolicy,
    CfnOutput
)
from constructs import Construct

from notes_infra.config import EnvironmentConfig
from notes_infra.naming import ResourceKind, name_for
from notes_infra.stateful import (
    DatabaseSpec,
    ImageStoreSpec,
    RemovalBehavior,
    build_stateful,
)

REMOVAL_POLICIES = {
    RemovalBehavior.DESTROY: RemovalPolicy.DESTROY,
    RemovalBehavior.RETAIN: RemovalPolicy.RETAIN,
    RemovalBehavior.SNAPSHOT: RemovalPolicy.SNAPSHOT,
}

INSTANCE_SIZES = {
    "micro": ec2.InstanceSize.MICRO,
    "small": ec2.InstanceSize.SMALL,
    "medium": ec2.InstanceSize.MEDIUM,
}

POSTGRES_VERSIONS = {
    "15": rds.PostgresEngineVersion.VER_15,
}

BUCKET_ENCRYPTIONS = {
    "s3-managed": s3.BucketEncryption.S3_MANAGED,
}


class StatefulStack(Stack):
    """
    Stateful resources for the notes application.
    Created on first deploy, updated in place afterwards.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        network_stack,  # Dependency on Network Stack
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.resources = build_stateful(network_stack.topology, config)

        # Use VPC directly from Network Stack (same deployment)
        self.vpc = network_stack.vpc

        self.database = self._create_database(
            self.resources.database,
            network_stack.subnet_selections[self.resources.database.subnet_tier],
            network_stack.security_groups[self.resources.database.security_group],
        )
        self.images_bucket = self._create_images_bucket(self.resources.image_store)

        self._add_outputs()

    def _create_database(
        self,
        spec: DatabaseSpec,
        subnets: ec2.SubnetSelection,
        security_group: ec2.ISecurityGroup,
    ) -> rds.DatabaseInstance:
        removal_policy = REMOVAL_POLICIES[spec.removal_behavior]

        self.subnet_group = rds.SubnetGroup(
            self,
            "DatabaseSubnetGroup",
            vpc=self.vpc,
            description=f"Isolated subnets for {spec.instance_identifier}",
            subnet_group_name=spec.subnet_group_name,
            vpc_subnets=subnets,
            removal_policy=RemovalPolicy.RETAIN if spec.deletion_protection else RemovalPolicy.DESTROY,
        )

        return rds.DatabaseInstance(
            self,
            "Database",
            engine=rds.DatabaseInstanceEngine.postgres(
                version=POSTGRES_VERSIONS[spec.engine_version]
            ),
            instance_type=ec2.InstanceType.of(
                ec2.InstanceClass.T3,
                INSTANCE_SIZES[spec.instance_size]
            ),
            instance_identifier=spec.instance_identifier,
            vpc=self.vpc,
            subnet_group=self.subnet_group,
            security_groups=[security_group],
            port=spec.port,
            database_name=spec.database_name,
            # Generated secret; the template only ever references it
            credentials=rds.Credentials.from_generated_secret(
                spec.master_username,
                secret_name=spec.credentials_secret_name
            ),
            multi_az=spec.multi_az,
            allocated_storage=spec.allocated_storage_gb,
            max_allocated_storage=spec.max_allocated_storage_gb,
            storage_encrypted=spec.storage_encrypted,
            publicly_accessible=spec.publicly_accessible,
            deletion_protection=spec.deletion_protection,
            backup_retention=Duration.days(spec.backup_retention_days),
            delete_automated_backups=spec.delete_automated_backups,
            allow_major_version_upgrade=spec.allow_major_version_upgrade,
            auto_minor_version_upgrade=spec.auto_minor_version_upgrade,
            removal_policy=removal_policy,
        )

    def _create_images_bucket(self, spec: ImageStoreSpec) -> s3.Bucket:
        return s3.Bucket(
            self,
            "ImagesBucket",
            bucket_name=spec.bucket_name,
            cors=[
                s3.CorsRule(
                    allowed_methods=[getattr(s3.HttpMethods, method) for method in rule.allowed_methods],
                    allowed_origins=list(rule.allowed_origins),
                    allowed_headers=list(rule.allowed_headers),
                    max_age=rule.max_age
                )
                for rule in spec.cors_rules
            ],
            lifecycle_rules=[
                s3.LifecycleRule(
                    id=rule.rule_id,
                    abort_incomplete_multipart_upload_after=Duration.days(
                        rule.abort_incomplete_multipart_upload_days
                    )
                )
                for rule in spec.lifecycle_rules
            ],
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL if spec.block_public_access else None,
            encryption=BUCKET_ENCRYPTIONS[spec.encryption],
            enforce_ssl=spec.enforce_ssl,
            versioned=spec.versioned,
            removal_policy=REMOVAL_POLICIES[spec.removal_behavior],
        )

    def _add_outputs(self) -> None:
        outputs = {
            "DatabaseEndpoint": (self.database.db_instance_endpoint_address, "RDS Database endpoint"),
            "DatabasePort": (self.database.db_instance_endpoint_port, "RDS Database port"),
            "DatabaseSecretArn": (self.database.secret.secret_arn, "ARN of database credentials secret"),
            "S3BucketName": (self.images_bucket.bucket_name, "S3 bucket for images"),
            "S3BucketArn": (self.images_bucket.bucket_arn, "S3 bucket ARN"),
        }

        for key, (value, description) in outputs.items():
            CfnOutput(
                self,
                key,
                value=value,
                description=description,
                export_name=name_for(self.config, ResourceKind.EXPORT, key)
            )
