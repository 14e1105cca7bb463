"""
Shared pytest fixtures for terramap tests.

Fixtures include settings that never touch the environment, a fresh mapping
context, the default mapper registry, and discovered resources shaped the
way the discovery pass reports them.

Usage:
    def test_something(context, sample_instance):
        # Fixtures are injected automatically by pytest
        assert sample_instance.resource_type == "AWS::EC2::Instance"
"""

from collections.abc import Callable
from typing import Any

import pytest

from terramap.config import Settings, get_settings
from terramap.context import MappingContext
from terramap.generator import TerraformGenerator
from terramap.mappers import MapperRegistry, create_mapper_registry
from terramap.models import DiscoveredResource

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"

ResourceFactory = Callable[..., DiscoveredResource]


def ec2_arn(path: str) -> str:
    """Build an EC2 ARN in the test account and region."""
    return f"arn:aws:ec2:{REGION}:{ACCOUNT_ID}:{path}"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Make every test start from a fresh get_settings cache."""
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """
    Provide Settings with a fixed account id.

    Values are passed explicitly so the result does not depend on the
    environment the tests run in.

    Returns:
        Settings instance for tests
    """
    return Settings(
        default_region=REGION,
        account_id=ACCOUNT_ID,
        generate_import_blocks=True,
        sensitive_var_prefix="sensitive_",
        managed_tag_prefixes=["aws:"],
    )


@pytest.fixture
def context(settings: Settings) -> MappingContext:
    """Provide an empty mapping context."""
    return MappingContext(settings)


@pytest.fixture
def registry() -> MapperRegistry:
    """Provide a registry holding every built-in mapper."""
    return create_mapper_registry()


@pytest.fixture
def generator(settings: Settings, registry: MapperRegistry) -> TerraformGenerator:
    """Provide a generator using the test settings and default registry."""
    return TerraformGenerator(settings=settings, registry=registry)


# =============================================================================
# Sample Resource Fixtures
# =============================================================================


@pytest.fixture
def make_resource() -> ResourceFactory:
    """
    Provide a factory for discovered resources.

    Returns:
        Callable taking the resource kind and id plus optional properties,
        tags, name, arn and region
    """

    def _make(
        resource_type: str,
        resource_id: str,
        properties: dict[str, Any] | None = None,
        tags: dict[str, str] | None = None,
        name: str | None = None,
        arn: str | None = None,
        region: str = REGION,
    ) -> DiscoveredResource:
        return DiscoveredResource(
            id=resource_id,
            type=resource_type,
            region=region,
            name=name,
            arn=arn,
            properties=properties or {},
            tags=tags or {},
        )

    return _make


@pytest.fixture
def sample_vpc(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide a VPC named main."""
    return make_resource(
        "AWS::EC2::VPC",
        "vpc-0abc1234",
        properties={"cidrBlock": "10.0.0.0/16", "instanceTenancy": "default"},
        tags={"Name": "main", "aws:cloudformation:stack-name": "network"},
        name="main",
        arn=ec2_arn("vpc/vpc-0abc1234"),
    )


@pytest.fixture
def sample_subnet(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide a private subnet inside the sample VPC."""
    return make_resource(
        "AWS::EC2::Subnet",
        "subnet-0def5678",
        properties={
            "vpcId": "vpc-0abc1234",
            "cidrBlock": "10.0.1.0/24",
            "availabilityZone": "us-east-1a",
        },
        tags={"Name": "private-a"},
        name="private-a",
        arn=ec2_arn("subnet/subnet-0def5678"),
    )


@pytest.fixture
def sample_instance(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide an instance in the sample subnet."""
    return make_resource(
        "AWS::EC2::Instance",
        "i-0123456789abcdef0",
        properties={
            "imageId": "ami-0abcdef1234567890",
            "instanceType": "t3.micro",
            "subnetId": "subnet-0def5678",
            "securityGroups": [{"groupId": "sg-0aaa", "groupName": "web"}],
            "monitoring": "enabled",
            "metadataOptions": {"httpTokens": "required"},
        },
        tags={"Name": "web-server", "Team": "platform"},
        name="web-server",
        arn=ec2_arn("instance/i-0123456789abcdef0"),
    )


@pytest.fixture
def sample_bucket(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide a bucket with versioning and encryption configured."""
    return make_resource(
        "AWS::S3::Bucket",
        "app-assets",
        properties={
            "versioning": {"status": "Enabled"},
            "encryption": {"algorithm": "aws:kms", "kmsKeyId": "alias/s3"},
        },
        tags={"Environment": "prod"},
        name="app-assets",
        arn="arn:aws:s3:::app-assets",
    )


@pytest.fixture
def sample_db_instance(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide a Postgres instance whose discovery captured a password."""
    return make_resource(
        "AWS::RDS::DBInstance",
        "orders-db",
        properties={
            "dbInstanceIdentifier": "orders-db",
            "dbInstanceClass": "db.t3.medium",
            "engine": "postgres",
            "engineVersion": "15.4",
            "allocatedStorage": 100,
            "masterUsername": "orders_admin",
            "masterUserPassword": "hunter2-not-for-terraform",
            "multiAZ": True,
            "storageEncrypted": True,
        },
        name="orders-db",
        arn=f"arn:aws:rds:{REGION}:{ACCOUNT_ID}:db:orders-db",
    )


@pytest.fixture
def sample_lambda(make_resource: ResourceFactory) -> DiscoveredResource:
    """Provide a function with one secret and one plain environment value."""
    return make_resource(
        "AWS::Lambda::Function",
        "process-orders",
        properties={
            "functionName": "process-orders",
            "runtime": "python3.12",
            "handler": "app.handler",
            "role": f"arn:aws:iam::{ACCOUNT_ID}:role/orders-lambda",
            "memorySize": 256,
            "timeout": 30,
            "environment": {
                "variables": {
                    "TABLE_NAME": "orders",
                    "API_TOKEN": "tok-live-abc123",
                }
            },
        },
        name="process-orders",
        arn=f"arn:aws:lambda:{REGION}:{ACCOUNT_ID}:function:process-orders",
    )
