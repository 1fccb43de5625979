"""
IAM Policy Assembler for notes infrastructure
Builds the least privilege managed policies the deployment role needs per environment
"""
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import EnvironmentConfig
from .errors import PolicyLimitError
from .naming import ResourceKind, arn_for, bucket_arn, name_for, name_pattern

logger = logging.getLogger(__name__)

POLICY_VERSION = "2012-10-17"

# IAM quotas: managed policy document size (whitespace excluded) and
# default managed policies attached per role
MAX_POLICY_SIZE = 6144
MAX_POLICIES_PER_ROLE = 10

WILDCARD = "*"

CDK_BOOTSTRAP_ROLES = [
    "cfn-exec-role",
    "deploy-role",
    "file-publishing-role",
    "image-publishing-role",
    "lookup-role",
]


class Effect(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


@dataclass(frozen=True)
class PolicyStatement:
    sid: str
    actions: Tuple[str, ...]
    resources: Tuple[str, ...]
    effect: Effect = Effect.ALLOW
    conditions: Optional[Dict[str, Dict[str, Any]]] = field(default=None, hash=False)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.resources

    def to_json(self) -> Dict[str, Any]:
        statement = {
            "Sid": self.sid,
            "Effect": self.effect.value,
            "Action": list(self.actions),
            "Resource": list(self.resources),
        }
        if self.conditions:
            statement["Condition"] = self.conditions
        return statement


@dataclass(frozen=True)
class PolicyDocument:
    name: str
    domain: str
    description: str
    statements: Tuple[PolicyStatement, ...]

    def to_json(self) -> Dict[str, Any]:
        return {
            "Version": POLICY_VERSION,
            "Statement": [statement.to_json() for statement in self.statements],
        }

    def size(self) -> int:
        """Document length as IAM counts it: characters excluding whitespace."""
        compact = json.dumps(self.to_json(), separators=(",", ":"))
        return sum(1 for char in compact if not char.isspace())


class DeploymentPolicyAssembler:
    """Generates least privilege deployment policies for one environment."""

    # Order matters: documents are attached and exported in this order
    DOMAINS = [
        "bootstrap",
        "cloudformation",
        "assets",
        "parameter-store",
        "container-registry",
        "network",
        "database",
        "object-storage",
        "secret-store",
    ]

    def __init__(self, config: EnvironmentConfig, role_name: Optional[str] = None):
        self.config = config
        self.environment = config.name.value
        self.account_id = config.account_id
        self.region = config.region
        self.role_name = role_name or name_for(config, ResourceKind.DEPLOYMENT_ROLE)

    def _region_condition(self) -> Dict[str, Dict[str, Any]]:
        return {"StringEquals": {"aws:RequestedRegion": [self.region]}}

    def _wildcard_statement(self, sid: str, actions: List[str]) -> PolicyStatement:
        """Statement for calls that do not support resource-level permissions."""
        return PolicyStatement(
            sid=sid,
            actions=tuple(actions),
            resources=(WILDCARD,),
            conditions=self._region_condition(),
        )

    def _document(self, domain: str, description: str, statements: List[PolicyStatement]) -> PolicyDocument:
        return PolicyDocument(
            name=name_for(self.config, ResourceKind.MANAGED_POLICY, domain),
            domain=domain,
            description=f"{description} for {self.environment} ({self.role_name})",
            statements=tuple(statements),
        )

    def generate_bootstrap_policy(self) -> PolicyDocument:
        """Allow assuming the CDK bootstrap roles."""
        return self._document("bootstrap", "CDK bootstrap permissions", [
            PolicyStatement(
                sid="AssumeBootstrapRoles",
                actions=("sts:AssumeRole",),
                resources=tuple(
                    f"arn:aws:iam::{self.account_id}:role/cdk-*-{role}-*"
                    for role in CDK_BOOTSTRAP_ROLES
                ),
                conditions=self._region_condition(),
            ),
        ])

    def generate_cloudformation_policy(self) -> PolicyDocument:
        return self._document("cloudformation", "CloudFormation permissions", [
            PolicyStatement(
                sid="CloudFormationAccess",
                actions=(
                    "cloudformation:DescribeStacks",
                    "cloudformation:DescribeStackEvents",
                    "cloudformation:DescribeStackResources",
                    "cloudformation:DescribeStackResource",
                    "cloudformation:GetTemplate",
                    "cloudformation:ListStackResources",
                    "cloudformation:CreateChangeSet",
                    "cloudformation:DescribeChangeSet",
                    "cloudformation:ExecuteChangeSet",
                    "cloudformation:DeleteChangeSet",
                    "cloudformation:CreateStack",
                    "cloudformation:UpdateStack",
                    "cloudformation:DeleteStack",
                    "cloudformation:TagResource",
                    "cloudformation:UntagResource",
                    "cloudformation:ListTagsForResource",
                ),
                resources=(
                    arn_for(self.config, "cloudformation",
                            f"stack/{name_pattern(self.config, ResourceKind.STACK)}/*"),
                    arn_for(self.config, "cloudformation", "stack/CDKToolkit/*"),
                ),
            ),
            self._wildcard_statement("CloudFormationList", ["cloudformation:ListStacks"]),
        ])

    def generate_assets_policy(self) -> PolicyDocument:
        asset_bucket = f"cdk-*-assets-{self.account_id}-{self.region}"
        return self._document("assets", "CDK asset bucket permissions", [
            PolicyStatement(
                sid="S3AssetsAccess",
                actions=(
                    "s3:GetObject",
                    "s3:GetObjectVersion",
                    "s3:PutObject",
                    "s3:PutObjectAcl",
                    "s3:DeleteObject",
                    "s3:ListBucket",
                    "s3:GetBucketLocation",
                ),
                resources=(
                    bucket_arn(self.config, asset_bucket),
                    bucket_arn(self.config, f"{asset_bucket}/*"),
                ),
            ),
        ])

    def generate_parameter_store_policy(self) -> PolicyDocument:
        """SSM access for the bootstrap version parameter read by the CDK toolkit."""
        return self._document("parameter-store", "SSM parameter permissions", [
            PolicyStatement(
                sid="SSMParameterAccess",
                actions=(
                    "ssm:GetParameter",
                    "ssm:GetParameters",
                    "ssm:GetParametersByPath",
                ),
                resources=(arn_for(self.config, "ssm", "parameter/cdk-bootstrap/*"),),
            ),
        ])

    def generate_container_registry_policy(self) -> PolicyDocument:
        return self._document("container-registry", "ECR permissions", [
            PolicyStatement(
                sid="ECRAccess",
                actions=(
                    "ecr:BatchCheckLayerAvailability",
                    "ecr:GetDownloadUrlForLayer",
                    "ecr:BatchGetImage",
                    "ecr:DescribeRepositories",
                    "ecr:ListImages",
                    "ecr:DescribeImages",
                    "ecr:BatchDeleteImage",
                    "ecr:InitiateLayerUpload",
                    "ecr:UploadLayerPart",
                    "ecr:CompleteLayerUpload",
                    "ecr:PutImage",
                ),
                resources=(arn_for(self.config, "ecr", "repository/cdk-*"),),
            ),
            self._wildcard_statement("ECRTokenAccess", ["ecr:GetAuthorizationToken"]),
        ])

    def generate_network_policy(self) -> PolicyDocument:
        # EC2 create calls cannot be scoped by name, so the whole domain is region-conditioned
        return self._document("network", "VPC and security group permissions", [
            self._wildcard_statement("VPCManagement", [
                "ec2:CreateVpc",
                "ec2:DeleteVpc",
                "ec2:ModifyVpcAttribute",
                "ec2:DescribeVpcs",
                "ec2:DescribeVpcAttribute",
                "ec2:CreateSubnet",
                "ec2:DeleteSubnet",
                "ec2:ModifySubnetAttribute",
                "ec2:DescribeSubnets",
                "ec2:CreateInternetGateway",
                "ec2:DeleteInternetGateway",
                "ec2:AttachInternetGateway",
                "ec2:DetachInternetGateway",
                "ec2:DescribeInternetGateways",
                "ec2:CreateRouteTable",
                "ec2:DeleteRouteTable",
                "ec2:CreateRoute",
                "ec2:DeleteRoute",
                "ec2:AssociateRouteTable",
                "ec2:DisassociateRouteTable",
                "ec2:DescribeRouteTables",
                "ec2:CreateNatGateway",
                "ec2:DeleteNatGateway",
                "ec2:DescribeNatGateways",
                "ec2:AllocateAddress",
                "ec2:ReleaseAddress",
                "ec2:DescribeAddresses",
                "ec2:CreateVpcEndpoint",
                "ec2:DeleteVpcEndpoints",
                "ec2:ModifyVpcEndpoint",
                "ec2:DescribeVpcEndpoints",
                "ec2:DescribePrefixLists",
                "ec2:CreateSecurityGroup",
                "ec2:DeleteSecurityGroup",
                "ec2:AuthorizeSecurityGroupIngress",
                "ec2:AuthorizeSecurityGroupEgress",
                "ec2:RevokeSecurityGroupIngress",
                "ec2:RevokeSecurityGroupEgress",
                "ec2:DescribeSecurityGroups",
                "ec2:CreateTags",
                "ec2:DeleteTags",
                "ec2:DescribeTags",
                "ec2:DescribeAvailabilityZones",
                "ec2:DescribeAccountAttributes",
            ]),
        ])

    def generate_database_policy(self) -> PolicyDocument:
        pattern = name_pattern(self.config)
        return self._document("database", "RDS permissions", [
            PolicyStatement(
                sid="RDSManagement",
                actions=(
                    "rds:CreateDBInstance",
                    "rds:DeleteDBInstance",
                    "rds:ModifyDBInstance",
                    "rds:RebootDBInstance",
                    "rds:DescribeDBInstances",
                    "rds:CreateDBSubnetGroup",
                    "rds:DeleteDBSubnetGroup",
                    "rds:ModifyDBSubnetGroup",
                    "rds:DescribeDBSubnetGroups",
                    "rds:CreateDBParameterGroup",
                    "rds:DeleteDBParameterGroup",
                    "rds:ModifyDBParameterGroup",
                    "rds:DescribeDBParameterGroups",
                    "rds:AddTagsToResource",
                    "rds:RemoveTagsFromResource",
                    "rds:ListTagsForResource",
                ),
                resources=(
                    arn_for(self.config, "rds", f"db:{pattern}"),
                    arn_for(self.config, "rds", f"subgrp:{pattern}"),
                    arn_for(self.config, "rds", f"pg:{pattern}"),
                ),
            ),
            self._wildcard_statement("RDSDescribeEngine", [
                "rds:DescribeDBEngineVersions",
                "rds:DescribeOrderableDBInstanceOptions",
            ]),
        ])

    def generate_object_storage_policy(self) -> PolicyDocument:
        bucket = name_for(self.config, ResourceKind.IMAGES_BUCKET)
        return self._document("object-storage", "S3 images bucket permissions", [
            PolicyStatement(
                sid="S3BucketManagement",
                actions=(
                    "s3:CreateBucket",
                    "s3:DeleteBucket",
                    "s3:GetBucketLocation",
                    "s3:GetBucketPolicy",
                    "s3:PutBucketPolicy",
                    "s3:DeleteBucketPolicy",
                    "s3:GetBucketCors",
                    "s3:PutBucketCors",
                    "s3:GetBucketVersioning",
                    "s3:PutBucketVersioning",
                    "s3:GetEncryptionConfiguration",
                    "s3:PutEncryptionConfiguration",
                    "s3:GetBucketPublicAccessBlock",
                    "s3:PutBucketPublicAccessBlock",
                    "s3:GetLifecycleConfiguration",
                    "s3:PutLifecycleConfiguration",
                    "s3:ListBucket",
                    "s3:GetBucketTagging",
                    "s3:PutBucketTagging",
                ),
                resources=(bucket_arn(self.config, bucket),),
            ),
        ])

    def generate_secret_store_policy(self) -> PolicyDocument:
        return self._document("secret-store", "Secrets Manager permissions", [
            PolicyStatement(
                sid="SecretsManagerAccess",
                actions=(
                    "secretsmanager:CreateSecret",
                    "secretsmanager:DeleteSecret",
                    "secretsmanager:UpdateSecret",
                    "secretsmanager:DescribeSecret",
                    "secretsmanager:GetSecretValue",
                    "secretsmanager:PutSecretValue",
                    "secretsmanager:TagResource",
                    "secretsmanager:UntagResource",
                    "secretsmanager:GetResourcePolicy",
                    "secretsmanager:PutResourcePolicy",
                ),
                resources=(
                    arn_for(self.config, "secretsmanager", f"secret:{name_pattern(self.config)}"),
                ),
            ),
            self._wildcard_statement("SecretsManagerRandomPassword", [
                "secretsmanager:GetRandomPassword",
            ]),
        ])

    def generate_all(self) -> List[PolicyDocument]:
        documents = []
        for domain in self.DOMAINS:
            method = getattr(self, f"generate_{domain.replace('-', '_')}_policy")
            documents.append(method())
        return documents


def validate(documents: List[PolicyDocument]) -> None:
    """
    Check assembled documents against IAM quotas

    Raises:
        PolicyLimitError: If a document is too large or the role would exceed its attachment quota
    """
    if len(documents) > MAX_POLICIES_PER_ROLE:
        raise PolicyLimitError(
            f"{len(documents)} managed policies exceed the per-role quota of {MAX_POLICIES_PER_ROLE}"
        )

    for document in documents:
        size = document.size()
        if size > MAX_POLICY_SIZE:
            raise PolicyLimitError(
                f"Policy {document.name} is {size} characters, above the {MAX_POLICY_SIZE} character limit"
            )


def assemble(config: EnvironmentConfig, role_name: Optional[str] = None) -> List[PolicyDocument]:
    """Generate and validate every deployment policy for the environment."""
    documents = DeploymentPolicyAssembler(config, role_name).generate_all()
    validate(documents)
    logger.info(f"Assembled {len(documents)} deployment policies for {config.name.value}")
    return documents


def write_policies(documents: List[PolicyDocument], directory: str) -> List[Path]:
    """Export policies as JSON files named after each policy."""
    output_dir = Path(directory)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for document in documents:
        path = output_dir / f"{document.name}.json"
        with open(path, "w") as f:
            json.dump(document.to_json(), f, indent=2)
        paths.append(path)
    return paths
