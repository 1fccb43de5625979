"""
Deployment permissions for notes infrastructure
Attaches assembled policy documents to the shared deployment role as managed policies
"""
from typing import Dict, List

from aws_cdk import aws_iam as iam
from constructs import Construct

from notes_infra.policies import PolicyDocument


class DeploymentPermissions(Construct):
    """Creates one managed policy per assembled document and binds it to the role."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        deployment_role: iam.IRole,
        documents: List[PolicyDocument],
    ) -> None:
        super().__init__(scope, construct_id)

        self.deployment_role = deployment_role
        self.managed_policies: Dict[str, iam.ManagedPolicy] = {}

        for document in documents:
            construct_name = "".join(part.capitalize() for part in document.domain.split("-"))
            # Imported roles ignore add_managed_policy, so bind through the policy's Roles list
            self.managed_policies[document.domain] = iam.ManagedPolicy(
                self,
                f"{construct_name}Policy",
                managed_policy_name=document.name,
                description=document.description,
                document=iam.PolicyDocument.from_json(document.to_json()),
                roles=[deployment_role],
            )

    @property
    def policy_names(self) -> List[str]:
        return [policy.managed_policy_name for policy in self.managed_policies.values()]
