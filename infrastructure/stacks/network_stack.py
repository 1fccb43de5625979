"""
Network Stack for notes infrastructure
Contains the three-tier VPC, gateway endpoints and security groups
"""
from typing import Dict

from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    CfnOutput
)
from constructs import Construct

from notes_infra.config import EnvironmentConfig
from notes_infra.naming import ResourceKind, name_for
from notes_infra.network import (
    Direction,
    NetworkTopology,
    SecurityGroupRole,
    TierType,
    build_network,
)

SUBNET_TYPES = {
    TierType.PUBLIC: ec2.SubnetType.PUBLIC,
    TierType.PRIVATE_WITH_EGRESS: ec2.SubnetType.PRIVATE_WITH_EGRESS,
    TierType.PRIVATE_ISOLATED: ec2.SubnetType.PRIVATE_ISOLATED,
}

GATEWAY_ENDPOINTS = {
    "s3": ("S3Endpoint", ec2.GatewayVpcEndpointAwsService.S3),
    "dynamodb": ("DynamoDbEndpoint", ec2.GatewayVpcEndpointAwsService.DYNAMODB),
}

SECURITY_GROUP_IDS = {
    SecurityGroupRole.DATABASE: "DatabaseSecurityGroup",
    SecurityGroupRole.APPLICATION: "ApplicationSecurityGroup",
    SecurityGroupRole.LOAD_BALANCER: "LoadBalancerSecurityGroup",
}


class NetworkStack(Stack):
    """
    Network infrastructure stack containing the VPC and security groups.
    This stack rarely changes and provides the foundation for the stateful stack.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.config = config
        self.topology: NetworkTopology = build_network(config)

        self.vpc = ec2.Vpc(
            self,
            "Vpc",
            vpc_name=self.topology.vpc_name,
            ip_addresses=ec2.IpAddresses.cidr(self.topology.vpc_cidr),
            max_azs=self.topology.max_azs,
            nat_gateways=self.topology.nat_gateways,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=tier.name,
                    subnet_type=SUBNET_TYPES[tier.tier_type],
                    cidr_mask=tier.cidr_mask
                )
                for tier in self.topology.tiers
            ],
            enable_dns_hostnames=True,
            enable_dns_support=True,
        )

        self.subnet_selections: Dict[str, ec2.SubnetSelection] = {
            tier.key: ec2.SubnetSelection(subnet_type=SUBNET_TYPES[tier.tier_type])
            for tier in self.topology.tiers
        }
        self.public_subnets = self.subnet_selections["public"]
        self.application_subnets = self.subnet_selections["application"]
        self.database_subnets = self.subnet_selections["isolated"]

        # Gateway endpoints are free and keep S3/DynamoDB traffic off the NAT gateways
        for service in self.topology.gateway_endpoints:
            endpoint_id, endpoint_service = GATEWAY_ENDPOINTS[service]
            self.vpc.add_gateway_endpoint(
                endpoint_id,
                service=endpoint_service,
                subnets=[self.subnet_selections[self.topology.endpoint_tier]],
            )

        self.security_groups = self._create_security_groups()
        self.database_security_group = self.security_groups[SecurityGroupRole.DATABASE]
        self.application_security_group = self.security_groups[SecurityGroupRole.APPLICATION]
        self.load_balancer_security_group = self.security_groups[SecurityGroupRole.LOAD_BALANCER]

        self._configure_security_group_rules()
        self._add_outputs()

    def _create_security_groups(self) -> Dict[SecurityGroupRole, ec2.SecurityGroup]:
        groups = {}
        for spec in self.topology.security_groups:
            groups[spec.role] = ec2.SecurityGroup(
                self,
                SECURITY_GROUP_IDS[spec.role],
                vpc=self.vpc,
                description=spec.description,
                security_group_name=spec.name,
                allow_all_outbound=False
            )
        return groups

    def _peer(self, peer) -> ec2.IPeer:
        if isinstance(peer, SecurityGroupRole):
            return self.security_groups[peer]
        return ec2.Peer.ipv4(peer)

    def _configure_security_group_rules(self) -> None:
        for rule in self.topology.rules:
            group = self.security_groups[rule.group]
            if rule.direction is Direction.INGRESS:
                group.add_ingress_rule(
                    peer=self._peer(rule.peer),
                    connection=ec2.Port.tcp(rule.port),
                    description=rule.description
                )
            else:
                group.add_egress_rule(
                    peer=self._peer(rule.peer),
                    connection=ec2.Port.tcp(rule.port),
                    description=rule.description
                )

    def _add_outputs(self) -> None:
        outputs = {
            "VpcId": (self.vpc.vpc_id, "VPC ID"),
            "VpcCidr": (self.vpc.vpc_cidr_block, "VPC CIDR Block"),
            "PublicSubnets": (
                ",".join(subnet.subnet_id for subnet in self.vpc.public_subnets),
                "Public subnet IDs for load balancers"
            ),
            "ApplicationSubnets": (
                ",".join(subnet.subnet_id for subnet in self.vpc.private_subnets),
                "Private subnet IDs for applications"
            ),
            "DatabaseSubnets": (
                ",".join(subnet.subnet_id for subnet in self.vpc.isolated_subnets),
                "Isolated subnet IDs for databases"
            ),
            "DatabaseSecurityGroupId": (
                self.database_security_group.security_group_id,
                "Security group ID for the database"
            ),
            "ApplicationSecurityGroupId": (
                self.application_security_group.security_group_id,
                "Security group ID for applications"
            ),
            "LoadBalancerSecurityGroupId": (
                self.load_balancer_security_group.security_group_id,
                "Security group ID for load balancers"
            ),
        }

        for key, (value, description) in outputs.items():
            CfnOutput(
                self,
                key,
                value=value,
                description=description,
                export_name=name_for(self.config, ResourceKind.EXPORT, key)
            )
