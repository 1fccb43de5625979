"""
Deployment CLI for notes infrastructure
Validates the environment before handing synth/diff/deploy/destroy to the CDK toolkit
"""
import argparse
import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import EnvironmentConfig, resolve
from .errors import (
    ConfigurationError,
    NotesInfraError,
    PermissionDeploymentError,
    PolicyLimitError,
    ResourceProvisioningError,
    classify_toolchain_failure,
)
from .policies import assemble, write_policies

logger = logging.getLogger(__name__)

ACTIONS = ["synth", "diff", "deploy", "destroy", "policies"]

# src/notes_infra/deploy.py -> repository root
DEFAULT_APP_DIR = Path(__file__).resolve().parents[2] / "infrastructure"

# RDS creation alone can take longer than 15 minutes
COMMAND_TIMEOUT = 3600

EXIT_CONFIGURATION_ERROR = 2
EXIT_POLICY_LIMIT = 3


def run_command(command: List[str], cwd: str = None, env: Dict[str, str] = None) -> Tuple[int, str, str]:
    """Run a command and return exit code, stdout, stderr"""
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return 1, "", f"Command timed out after {COMMAND_TIMEOUT} seconds"
    except FileNotFoundError:
        return 127, "", f"Command not found: {command[0]}"


def build_cdk_command(action: str, config: EnvironmentConfig, outputs_file: str = None) -> List[str]:
    """Build the cdk invocation for an action."""
    command = ["cdk", action]

    if action in ("deploy", "destroy"):
        command.append("--all")

    command.extend(["--context", f"environment={config.name.value}"])

    if action == "synth":
        command.append("--quiet")
    elif action == "deploy":
        command.extend(["--require-approval", "never"])
        if outputs_file:
            command.extend(["--outputs-file", outputs_file])
    elif action == "destroy":
        # Skips cdk's interactive prompt; guarded by check_destroy_allowed
        command.append("--force")

    return command


def toolchain_environment(config: EnvironmentConfig) -> Dict[str, str]:
    env = dict(os.environ)
    env.update({
        "CDK_DEFAULT_ACCOUNT": config.account_id,
        "CDK_DEFAULT_REGION": config.region,
    })
    return env


def verify_account(config: EnvironmentConfig, sts_client=None) -> str:
    """
    Confirm the active AWS credentials belong to the configured account

    Args:
        config: Target environment configuration
        sts_client: Optional boto3 STS client (created from the config region otherwise)

    Returns:
        The caller's account id

    Raises:
        ConfigurationError: If credentials are unusable or point at another account
    """
    client = sts_client or boto3.client("sts", region_name=config.region)

    try:
        identity = client.get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        raise ConfigurationError(f"Unable to verify AWS credentials: {e}") from e

    account = identity["Account"]
    if account != config.account_id:
        raise ConfigurationError(
            f"Active credentials belong to account {account}, but {config.name.value} "
            f"deploys to {config.account_id}. Refusing to continue."
        )

    logger.info(f"Verified credentials for account {account} ({identity.get('Arn', 'unknown')})")
    return account


def check_destroy_allowed(config: EnvironmentConfig, force: bool) -> None:
    if config.deletion_protection and not force:
        raise ConfigurationError(
            f"{config.name.value} is deletion protected. Re-run with --force to destroy it."
        )


def read_outputs(outputs_file: Path) -> Dict[str, Dict[str, str]]:
    try:
        with open(outputs_file, "r") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning(f"Outputs file {outputs_file} was not written")
        return {}


def print_outputs(outputs: Dict[str, Dict[str, str]]) -> None:
    if not outputs:
        return

    print()
    print("📋 Deployment Outputs:")
    for stack_name, stack_outputs in outputs.items():
        print(f"   {stack_name}")
        for key, value in stack_outputs.items():
            print(f"      {key}: {value}")


def run_toolchain(
    action: str,
    config: EnvironmentConfig,
    app_dir: Path,
    outputs_file: Optional[Path] = None,
) -> str:
    """
    Run one cdk action against the app

    Returns:
        The toolchain output (cdk writes diff reports to stderr)

    Raises:
        PermissionDeploymentError: If the permissions stack failed
        ResourceProvisioningError: For any other toolchain failure
    """
    command = build_cdk_command(action, config, str(outputs_file) if outputs_file else None)
    logger.info(f"Running: {' '.join(command)} (cwd={app_dir})")

    exit_code, stdout, stderr = run_command(
        command,
        cwd=str(app_dir),
        env=toolchain_environment(config)
    )

    if exit_code != 0:
        raise classify_toolchain_failure(f"{stdout}\n{stderr}", config, exit_code)

    return f"{stdout}{stderr}"


def export_policies(config: EnvironmentConfig, output_dir: str) -> List[Path]:
    documents = assemble(config)
    paths = write_policies(documents, output_dir)

    print(f"📝 Wrote {len(paths)} policies for {config.name.value} to {output_dir}")
    for document, path in zip(documents, paths):
        print(f"   {document.domain}: {path.name} ({document.size()} characters)")
    return paths


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="notes-deploy",
        description="Deploy notes infrastructure for one environment"
    )
    parser.add_argument(
        "action",
        choices=ACTIONS,
        help="Toolchain action, or 'policies' to export the deployment policies as JSON"
    )
    parser.add_argument(
        "environment",
        help="Target environment: 'preprod' or 'prod'"
    )
    parser.add_argument(
        "--app-dir",
        type=Path,
        default=DEFAULT_APP_DIR,
        help="Directory containing cdk.json (default: %(default)s)"
    )
    parser.add_argument(
        "--outputs-file",
        type=Path,
        default=None,
        help="Where deploy writes stack outputs (default: cdk-outputs-<environment>.json)"
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for exported policies (default: policies/<environment>)"
    )
    parser.add_argument(
        "--skip-account-check",
        action="store_true",
        help="Do not compare the active credentials with the configured account id"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Allow destroying a deletion protected environment"
    )
    return parser.parse_args(argv)


def main(argv: List[str] = None) -> int:
    args = parse_args(argv)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = resolve(args.environment)

        if args.action == "policies":
            export_policies(config, args.output_dir or f"policies/{config.name.value}")
            return 0

        if args.action == "destroy":
            check_destroy_allowed(config, args.force)

        # Policies are validated locally before the toolchain sees them
        assemble(config)

        if not args.skip_account_check:
            verify_account(config)

        outputs_file = None
        if args.action == "deploy":
            outputs_file = (args.outputs_file or Path(f"cdk-outputs-{config.name.value}.json")).resolve()

        print(f"🚀 Running cdk {args.action} for {config.name.value} "
              f"(account {config.account_id}, region {config.region})...")
        output = run_toolchain(args.action, config, args.app_dir, outputs_file)

        if args.action == "diff" and output.strip():
            print(output)
        if outputs_file:
            print_outputs(read_outputs(outputs_file))

        print(f"✅ cdk {args.action} completed for {config.name.value}")
        return 0

    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except PolicyLimitError as e:
        print(f"❌ Policy limit exceeded: {e}", file=sys.stderr)
        return EXIT_POLICY_LIMIT
    except (PermissionDeploymentError, ResourceProvisioningError) as e:
        print(f"❌ {e}", file=sys.stderr)
        if e.output.strip():
            print(e.output, file=sys.stderr)
        return e.returncode or 1
    except NotesInfraError as e:
        print(f"❌ Deployment failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
