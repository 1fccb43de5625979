"""
Stack composition for notes infrastructure
Wires the permissions, network and stateful stacks for one environment
"""
from dataclasses import dataclass

import aws_cdk as cdk

from notes_infra.config import EnvironmentConfig
from notes_infra.naming import PROJECT_NAME, ResourceKind, name_for
from stacks.network_stack import NetworkStack
from stacks.permissions_stack import PermissionsStack
from stacks.stateful_stack import StatefulStack


@dataclass
class NotesStacks:
    permissions: PermissionsStack
    network: NetworkStack
    stateful: StatefulStack


def _tag(stack: cdk.Stack, config: EnvironmentConfig, role: str) -> None:
    cdk.Tags.of(stack).add("Environment", config.name.value)
    cdk.Tags.of(stack).add("Project", PROJECT_NAME)
    cdk.Tags.of(stack).add("Stack", role)


def compose(app: cdk.App, config: EnvironmentConfig) -> NotesStacks:
    """Create every stack for the environment with its dependency edges."""
    env = config.cdk_environment()
    environment = config.name.value

    # 1. Permissions Stack (must finish before anything is created)
    permissions_stack = PermissionsStack(
        app,
        name_for(config, ResourceKind.STACK, "Permissions"),
        config=config,
        env=env,
        description=f"Deployment role permissions for notes infrastructure - {environment}"
    )

    # 2. Network Stack (depends on Permissions)
    network_stack = NetworkStack(
        app,
        name_for(config, ResourceKind.STACK, "Network"),
        config=config,
        env=env,
        description=f"Network infrastructure for notes application - {environment}"
    )
    network_stack.add_dependency(permissions_stack)

    # 3. Stateful Stack (depends on Permissions, Network)
    stateful_stack = StatefulStack(
        app,
        name_for(config, ResourceKind.STACK, "Stateful"),
        config=config,
        network_stack=network_stack,
        env=env,
        description=f"Database and image storage for notes application - {environment}"
    )
    stateful_stack.add_dependency(permissions_stack)
    stateful_stack.add_dependency(network_stack)

    _tag(permissions_stack, config, "Permissions")
    _tag(network_stack, config, "Network")
    _tag(stateful_stack, config, "Stateful")

    return NotesStacks(
        permissions=permissions_stack,
        network=network_stack,
        stateful=stateful_stack,
    )
