"""
Unit tests for naming module
Tests resource names and ARN derivation
"""
import pytest

from notes_infra.naming import (
    ResourceKind,
    arn_for,
    bucket_arn,
    name_for,
    name_pattern,
)


@pytest.mark.unit
class TestNameFor:
    """Test physical resource names"""

    def test_deployment_role(self, preprod_config, prod_config):
        """Test deployment role names"""
        assert name_for(preprod_config, ResourceKind.DEPLOYMENT_ROLE) == 'EahPreprodRole'
        assert name_for(prod_config, ResourceKind.DEPLOYMENT_ROLE) == 'EahProdRole'

    def test_stack_names(self, preprod_config):
        """Test stack names carry the environment"""
        assert name_for(preprod_config, ResourceKind.STACK, 'Network') == 'Notes-preprod-Network'

    def test_database_resources(self, prod_config):
        """Test database related names"""
        assert name_for(prod_config, ResourceKind.DB_INSTANCE) == 'eah-prod-db'
        assert name_for(prod_config, ResourceKind.DB_SUBNET_GROUP) == 'eah-prod-db-subnets'
        assert name_for(prod_config, ResourceKind.DB_CREDENTIALS) == 'eah-prod-db-credentials'

    def test_database_name_uses_underscores(self, preprod_config):
        """Test Postgres database name is a valid identifier"""
        assert name_for(preprod_config, ResourceKind.DATABASE_NAME) == 'eah_preprod'

    def test_images_bucket_includes_account(self, preprod_config):
        """Test bucket names are globally unique per account"""
        assert name_for(preprod_config, ResourceKind.IMAGES_BUCKET) == 'eah-preprod-images-123456789012'

    def test_security_groups(self, prod_config):
        """Test security group names per tier"""
        assert name_for(prod_config, ResourceKind.SECURITY_GROUP, 'db') == 'eah-prod-sg-db'

    def test_managed_policy(self, prod_config):
        """Test managed policy names per domain"""
        assert name_for(prod_config, ResourceKind.MANAGED_POLICY, 'database') == 'eah-prod-deploy-database'

    def test_export_names(self, preprod_config):
        """Test export names"""
        assert name_for(preprod_config, ResourceKind.EXPORT, 'VpcId') == 'eah-preprod-VpcId'

    @pytest.mark.parametrize('kind', [
        ResourceKind.STACK,
        ResourceKind.SECURITY_GROUP,
        ResourceKind.MANAGED_POLICY,
        ResourceKind.EXPORT,
    ])
    def test_qualifier_required(self, preprod_config, kind):
        """Test kinds that need a qualifier reject a bare call"""
        with pytest.raises(ValueError, match='qualifier'):
            name_for(preprod_config, kind)

    def test_every_name_embeds_environment(self, any_config):
        """Test no derived name omits the environment"""
        env = any_config.name.value
        for kind in ResourceKind:
            name = name_for(any_config, kind, 'Qualifier')
            assert env in name.lower(), f"{kind.name} name {name} does not embed {env}"


@pytest.mark.unit
class TestArns:
    """Test ARN derivation"""

    def test_regional_arn(self, preprod_config):
        """Test ARNs use config region and account"""
        arn = arn_for(preprod_config, 'rds', 'db:eah-preprod-*')

        assert arn == 'arn:aws:rds:sa-east-1:123456789012:db:eah-preprod-*'

    def test_global_arn(self, preprod_config):
        """Test ARNs for global services"""
        assert arn_for(preprod_config, 'iam', 'role/x', region=False) == 'arn:aws:iam::123456789012:role/x'

    def test_bucket_arn(self, preprod_config):
        """Test S3 ARNs omit region and account"""
        assert bucket_arn(preprod_config, 'my-bucket') == 'arn:aws:s3:::my-bucket'

    def test_name_pattern(self, prod_config):
        """Test wildcard patterns match created names"""
        assert name_pattern(prod_config) == 'eah-prod-*'
        assert name_pattern(prod_config, ResourceKind.STACK) == 'Notes-prod-*'

    def test_pattern_matches_resource_names(self, any_config):
        """Test names created under the prefix match the policy pattern"""
        prefix = name_pattern(any_config)[:-1]
        for kind in (ResourceKind.DB_INSTANCE, ResourceKind.DB_SUBNET_GROUP, ResourceKind.DB_CREDENTIALS):
            assert name_for(any_config, kind).startswith(prefix)
