"""
Permissions Stack for notes infrastructure
Grants the shared deployment role what every other stack needs to deploy
"""
from aws_cdk import (
    Stack,
    aws_iam as iam,
    CfnOutput
)
from constructs import Construct

from notes_infra.config import EnvironmentConfig
from notes_infra.naming import ResourceKind, name_for
from notes_infra.policies import assemble
from security.deployment_permissions import DeploymentPermissions


class PermissionsStack(Stack):
    """
    Least privilege policies for the deployment role.
    Must be deployed before any resource stack.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        role_name = name_for(config, ResourceKind.DEPLOYMENT_ROLE)
        self.documents = assemble(config, role_name)

        # Long-lived role managed outside this app
        self.deployment_role = iam.Role.from_role_name(self, "SharedDeploymentRole", role_name)

        self.permissions = DeploymentPermissions(
            self,
            "DeploymentPermissions",
            deployment_role=self.deployment_role,
            documents=self.documents,
        )

        CfnOutput(
            self,
            "AttachedPolicies",
            value=",".join(self.permissions.policy_names),
            description="Names of managed policies attached to the deployment role"
        )
