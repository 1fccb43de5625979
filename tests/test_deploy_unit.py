"""
Unit tests for deploy CLI
Tests command building, account verification and exit codes
"""
import json
from unittest.mock import MagicMock, patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from notes_infra import deploy
from notes_infra.config import resolve
from notes_infra.errors import ConfigurationError, PermissionDeploymentError

TEST_ACCOUNT_ID = '123456789012'
OTHER_ACCOUNT_ID = '210987654321'


@pytest.fixture
def deploy_env(monkeypatch):
    """Process environment for CLI invocations"""
    monkeypatch.setenv('PREPROD_AWS_ACCOUNT_ID', TEST_ACCOUNT_ID)
    monkeypatch.setenv('PROD_AWS_ACCOUNT_ID', TEST_ACCOUNT_ID)
    for key in ('PREPROD_AWS_REGION', 'PROD_AWS_REGION',
                'PREPROD_CORS_ALLOWED_ORIGINS', 'PROD_CORS_ALLOWED_ORIGINS'):
        monkeypatch.delenv(key, raising=False)


@pytest.mark.unit
class TestBuildCdkCommand:
    """Test cdk argument construction"""

    def test_synth(self, preprod_config):
        """Test synth is quiet and context scoped"""
        assert deploy.build_cdk_command('synth', preprod_config) == [
            'cdk', 'synth', '--context', 'environment=preprod', '--quiet'
        ]

    def test_deploy(self, prod_config):
        """Test deploy covers all stacks without prompting"""
        command = deploy.build_cdk_command('deploy', prod_config, 'out.json')

        assert command == [
            'cdk', 'deploy', '--all', '--context', 'environment=prod',
            '--require-approval', 'never', '--outputs-file', 'out.json',
        ]

    def test_deploy_without_outputs_file(self, preprod_config):
        """Test outputs file is optional"""
        assert '--outputs-file' not in deploy.build_cdk_command('deploy', preprod_config)

    def test_destroy(self, preprod_config):
        """Test destroy skips the interactive prompt"""
        command = deploy.build_cdk_command('destroy', preprod_config)

        assert command[:3] == ['cdk', 'destroy', '--all']
        assert command[-1] == '--force'

    def test_toolchain_environment(self, prod_config):
        """Test CDK default account and region come from the config"""
        env = deploy.toolchain_environment(prod_config)

        assert env['CDK_DEFAULT_ACCOUNT'] == TEST_ACCOUNT_ID
        assert env['CDK_DEFAULT_REGION'] == 'sa-east-1'


@pytest.mark.unit
class TestVerifyAccount:
    """Test STS account verification"""

    @mock_aws
    def test_matching_account(self, preprod_config):
        """Test credentials for the configured account pass"""
        assert deploy.verify_account(preprod_config) == TEST_ACCOUNT_ID

    @mock_aws
    def test_mismatched_account(self):
        """Test credentials for another account are refused"""
        config = resolve('prod', {'PROD_AWS_ACCOUNT_ID': OTHER_ACCOUNT_ID}.get)

        with pytest.raises(ConfigurationError, match=OTHER_ACCOUNT_ID):
            deploy.verify_account(config, boto3.client('sts', region_name='sa-east-1'))

    def test_unusable_credentials(self, preprod_config):
        """Test STS errors surface as configuration errors"""
        client = MagicMock()
        client.get_caller_identity.side_effect = ClientError(
            {'Error': {'Code': 'InvalidClientTokenId', 'Message': 'bad token'}},
            'GetCallerIdentity',
        )

        with pytest.raises(ConfigurationError, match='Unable to verify'):
            deploy.verify_account(preprod_config, client)


@pytest.mark.unit
class TestRunToolchain:
    """Test toolchain invocation"""

    def test_success_returns_output(self, preprod_config, tmp_path):
        """Test stdout and stderr are both returned"""
        with patch('notes_infra.deploy.run_command', return_value=(0, 'out', 'diff')) as run:
            output = deploy.run_toolchain('diff', preprod_config, tmp_path)

        assert output == 'outdiff'
        assert run.call_args.kwargs['cwd'] == str(tmp_path)
        assert run.call_args.kwargs['env']['CDK_DEFAULT_ACCOUNT'] == TEST_ACCOUNT_ID

    def test_failure_is_classified(self, preprod_config, tmp_path):
        """Test a failing permissions stack raises a permission error"""
        failure = (1, '', 'Notes-preprod-Permissions failed: AccessDenied')

        with patch('notes_infra.deploy.run_command', return_value=failure):
            with pytest.raises(PermissionDeploymentError):
                deploy.run_toolchain('deploy', preprod_config, tmp_path)


@pytest.mark.unit
class TestMain:
    """Test CLI exit codes"""

    def test_missing_account_is_configuration_error(self, monkeypatch, deploy_env):
        """Test missing input exits before the toolchain runs"""
        monkeypatch.delenv('PROD_AWS_ACCOUNT_ID')

        with patch('notes_infra.deploy.run_command') as run:
            code = deploy.main(['deploy', 'prod', '--skip-account-check'])

        assert code == deploy.EXIT_CONFIGURATION_ERROR
        run.assert_not_called()

    def test_unknown_environment(self, deploy_env, capsys):
        """Test unknown environments list the available ones"""
        code = deploy.main(['synth', 'staging', '--skip-account-check'])

        assert code == deploy.EXIT_CONFIGURATION_ERROR
        assert 'Available environments: preprod, prod' in capsys.readouterr().err

    def test_destroy_protected_environment_requires_force(self, deploy_env):
        """Test prod cannot be destroyed without --force"""
        with patch('notes_infra.deploy.run_command') as run:
            code = deploy.main(['destroy', 'prod', '--skip-account-check'])

        assert code == deploy.EXIT_CONFIGURATION_ERROR
        run.assert_not_called()

    def test_destroy_preprod(self, deploy_env, tmp_path):
        """Test unprotected environments can be destroyed"""
        with patch('notes_infra.deploy.run_command', return_value=(0, '', '')) as run:
            code = deploy.main(['destroy', 'preprod', '--skip-account-check', '--app-dir', str(tmp_path)])

        assert code == 0
        assert run.call_args.args[0][:2] == ['cdk', 'destroy']

    def test_deploy_prints_outputs(self, deploy_env, tmp_path, capsys):
        """Test successful deploy reports stack outputs"""
        outputs_file = tmp_path / 'outputs.json'
        outputs_file.write_text(json.dumps({'Notes-preprod-Stateful': {'DatabasePort': '5432'}}))

        with patch('notes_infra.deploy.run_command', return_value=(0, '', '')):
            code = deploy.main([
                'deploy', 'preprod', '--skip-account-check',
                '--app-dir', str(tmp_path), '--outputs-file', str(outputs_file),
            ])

        assert code == 0
        assert 'DatabasePort: 5432' in capsys.readouterr().out

    def test_failed_deploy_returns_toolchain_code(self, deploy_env, tmp_path):
        """Test toolchain failures propagate the exit code"""
        failure = (4, '', 'Notes-preprod-Network failed: Error')

        with patch('notes_infra.deploy.run_command', return_value=failure):
            code = deploy.main(['deploy', 'preprod', '--skip-account-check', '--app-dir', str(tmp_path)])

        assert code == 4

    def test_account_mismatch_stops_deploy(self, deploy_env, tmp_path):
        """Test account verification runs before the toolchain"""
        with patch('notes_infra.deploy.verify_account', side_effect=ConfigurationError('wrong account')):
            with patch('notes_infra.deploy.run_command') as run:
                code = deploy.main(['deploy', 'preprod', '--app-dir', str(tmp_path)])

        assert code == deploy.EXIT_CONFIGURATION_ERROR
        run.assert_not_called()

    def test_policies_action(self, deploy_env, tmp_path):
        """Test policies are exported without touching AWS or cdk"""
        output_dir = tmp_path / 'policies'

        with patch('notes_infra.deploy.run_command') as run:
            code = deploy.main(['policies', 'prod', '--output-dir', str(output_dir)])

        assert code == 0
        run.assert_not_called()
        assert len(list(output_dir.glob('*.json'))) == 9
        assert (output_dir / 'eah-prod-deploy-network.json').exists()
