"""
Network topology for notes infrastructure
Describes the three-tier VPC and its security group rules independently of CDK
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from .config import EnvironmentConfig
from .naming import ResourceKind, name_for

VPC_CIDR = "10.0.0.0/16"
ANY_IPV4 = "0.0.0.0/0"

HTTP_PORT = 80
HTTPS_PORT = 443
APPLICATION_PORT = 3000
DATABASE_PORT = 5432


class TierType(str, Enum):
    PUBLIC = "public"
    PRIVATE_WITH_EGRESS = "private-with-egress"
    PRIVATE_ISOLATED = "private-isolated"


class SecurityGroupRole(str, Enum):
    LOAD_BALANCER = "alb"
    APPLICATION = "app"
    DATABASE = "db"


class Direction(str, Enum):
    INGRESS = "ingress"
    EGRESS = "egress"


@dataclass(frozen=True)
class SubnetTier:
    key: str
    name: str
    tier_type: TierType
    cidr_mask: int


@dataclass(frozen=True)
class SecurityGroupSpec:
    role: SecurityGroupRole
    name: str
    description: str


@dataclass(frozen=True)
class SecurityRule:
    """
    One security group rule. The peer is either another group's role
    or a CIDR block.
    """
    group: SecurityGroupRole
    direction: Direction
    peer: object
    port: int
    description: str

    @property
    def peer_is_group(self) -> bool:
        return isinstance(self.peer, SecurityGroupRole)


@dataclass(frozen=True)
class NetworkTopology:
    vpc_name: str
    vpc_cidr: str
    max_azs: int
    nat_gateways: int
    tiers: Tuple[SubnetTier, ...]
    gateway_endpoints: Tuple[str, ...]
    endpoint_tier: str
    security_groups: Tuple[SecurityGroupSpec, ...]
    rules: Tuple[SecurityRule, ...]

    def tier(self, key: str) -> SubnetTier:
        for tier in self.tiers:
            if tier.key == key:
                return tier
        raise KeyError(key)

    def security_group(self, role: SecurityGroupRole) -> SecurityGroupSpec:
        for group in self.security_groups:
            if group.role is role:
                return group
        raise KeyError(role)

    def rules_for(self, role: SecurityGroupRole, direction: Direction) -> List[SecurityRule]:
        return [
            rule for rule in self.rules
            if rule.group is role and rule.direction is direction
        ]

    def ingress_sources(self, role: SecurityGroupRole) -> List[object]:
        return [rule.peer for rule in self.rules_for(role, Direction.INGRESS)]

    def reachable_from(self, role: SecurityGroupRole) -> Dict[object, List[int]]:
        """Map each peer allowed into the group to the ports it may use."""
        reachable: Dict[object, List[int]] = {}
        for rule in self.rules_for(role, Direction.INGRESS):
            reachable.setdefault(rule.peer, []).append(rule.port)
        return reachable


def _security_rules() -> Tuple[SecurityRule, ...]:
    alb = SecurityGroupRole.LOAD_BALANCER
    app = SecurityGroupRole.APPLICATION
    db = SecurityGroupRole.DATABASE

    return (
        SecurityRule(alb, Direction.INGRESS, ANY_IPV4, HTTPS_PORT, "HTTPS from internet"),
        SecurityRule(alb, Direction.INGRESS, ANY_IPV4, HTTP_PORT, "HTTP from internet (redirect to HTTPS)"),
        SecurityRule(alb, Direction.EGRESS, app, APPLICATION_PORT, "Forward to application"),
        SecurityRule(app, Direction.INGRESS, alb, APPLICATION_PORT, "HTTP from Load Balancer"),
        SecurityRule(app, Direction.EGRESS, ANY_IPV4, HTTPS_PORT, "HTTPS outbound"),
        SecurityRule(app, Direction.EGRESS, ANY_IPV4, HTTP_PORT, "HTTP outbound"),
        SecurityRule(app, Direction.EGRESS, db, DATABASE_PORT, "PostgreSQL to database"),
        SecurityRule(db, Direction.INGRESS, app, DATABASE_PORT, "PostgreSQL from application"),
    )


def build_network(config: EnvironmentConfig) -> NetworkTopology:
    """
    Build the network topology for an environment

    Production gets three AZs and two NAT gateways; other environments
    get two AZs and one NAT gateway.
    """
    production = config.is_production

    return NetworkTopology(
        vpc_name=name_for(config, ResourceKind.VPC),
        vpc_cidr=VPC_CIDR,
        max_azs=3 if production else 2,
        nat_gateways=2 if production else 1,
        tiers=(
            SubnetTier("public", "Public", TierType.PUBLIC, 24),
            SubnetTier("application", "Private", TierType.PRIVATE_WITH_EGRESS, 24),
            SubnetTier("isolated", "Database", TierType.PRIVATE_ISOLATED, 28),
        ),
        gateway_endpoints=("s3", "dynamodb"),
        endpoint_tier="application",
        security_groups=(
            SecurityGroupSpec(
                SecurityGroupRole.DATABASE,
                name_for(config, ResourceKind.SECURITY_GROUP, SecurityGroupRole.DATABASE.value),
                "Security group for RDS database",
            ),
            SecurityGroupSpec(
                SecurityGroupRole.APPLICATION,
                name_for(config, ResourceKind.SECURITY_GROUP, SecurityGroupRole.APPLICATION.value),
                "Security group for application servers",
            ),
            SecurityGroupSpec(
                SecurityGroupRole.LOAD_BALANCER,
                name_for(config, ResourceKind.SECURITY_GROUP, SecurityGroupRole.LOAD_BALANCER.value),
                "Security group for Application Load Balancer",
            ),
        ),
        rules=_security_rules(),
    )
