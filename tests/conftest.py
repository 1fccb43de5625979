"""
Pytest configuration and fixtures for notes infrastructure tests
Provides environment lookups, resolved configs and CDK synth helpers
"""
import os
import shutil
import sys
from pathlib import Path

import pytest

# Fake credentials so boto3/moto never reach a real account
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_SECURITY_TOKEN', 'testing')
os.environ.setdefault('AWS_SESSION_TOKEN', 'testing')
os.environ.setdefault('AWS_DEFAULT_REGION', 'sa-east-1')

# Add src and the CDK app directory to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(project_root / "infrastructure"))

# moto's default account, so STS checks line up with the test configs
TEST_ACCOUNT_ID = "123456789012"
OTHER_ACCOUNT_ID = "210987654321"


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks fast tests with no AWS or Node.js dependency"
    )
    config.addinivalue_line(
        "markers", "synth: marks tests that synthesize CDK stacks (need Node.js)"
    )


def pytest_collection_modifyitems(config, items):
    if shutil.which("node"):
        return
    skip_synth = pytest.mark.skip(reason="Node.js is required to synthesize CDK stacks")
    for item in items:
        if "synth" in item.keywords:
            item.add_marker(skip_synth)


@pytest.fixture
def env_vars():
    """Inputs for both environments, as a CI job would export them"""
    return {
        'PREPROD_AWS_ACCOUNT_ID': TEST_ACCOUNT_ID,
        'PROD_AWS_ACCOUNT_ID': TEST_ACCOUNT_ID,
    }


@pytest.fixture
def lookup(env_vars):
    return env_vars.get


@pytest.fixture
def preprod_config(lookup):
    from notes_infra.config import resolve
    return resolve('preprod', lookup)


@pytest.fixture
def prod_config(lookup):
    from notes_infra.config import resolve
    return resolve('prod', lookup)


@pytest.fixture(params=['preprod', 'prod'])
def any_config(request, lookup):
    from notes_infra.config import resolve
    return resolve(request.param, lookup)
