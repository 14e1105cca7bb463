"""
Unit tests for the generation pass.

Tests cover dispatch to mappers, failure isolation, cross references in
input order, companion resources, duplicate names, import blocks, and the
guarantee that captured secrets never reach resource attributes.
"""

import json
import logging

import pytest

from terramap.config import Settings
from terramap.context import MappingContext
from terramap.generator import TerraformGenerator
from terramap.mappers import MapperRegistry, create_mapper_registry
from terramap.mappers.vpc import VPCMapper
from terramap.models import (
    DiscoveredResource,
    GeneratedResource,
    GeneratedVariable,
    GenerationResult,
)
from terramap.values import Literal, Reference, to_native

from tests.conftest import ACCOUNT_ID, REGION, ResourceFactory, ec2_arn


class _ExplodingMapper:
    aws_type = "AWS::EC2::Volume"
    terraform_type = "aws_ebs_volume"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        raise RuntimeError("volume API shape changed")

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class _DecliningMapper(_ExplodingMapper):
    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        return None


class _HalfwayMapper(_ExplodingMapper):
    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        _ = context.mark_sensitive(f"{resource.id}_db_password", "hunter2")
        raise ValueError("environment is not a list")


class _RegisterThenDeclineMapper(_ExplodingMapper):
    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        _ = context.add_variable(GeneratedVariable(name=f"{resource.id}_size"))
        return None


def _snapshot(result: GenerationResult) -> dict[str, object]:
    return {
        "resources": [
            (
                r.address,
                {key: to_native(value) for key, value in r.attributes.items()},
                r.depends_on,
            )
            for r in result.resources
        ],
        "variables": [(v.name, v.sensitive) for v in result.variables],
        "outputs": [(o.name, o.value) for o in result.outputs],
        "imports": [(i.to, i.id) for i in result.imports],
        "unmapped": [u.id for u in result.unmapped],
        "warnings": result.warnings,
    }


class TestDispatch:
    """Tests for mapper dispatch and the unmapped list."""

    def test_maps_known_resources(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
    ) -> None:
        """Test that each known resource yields one generated resource."""
        result = generator.generate([sample_vpc, sample_subnet])

        assert [r.address for r in result.resources] == ["aws_vpc.main", "aws_subnet.private_a"]
        assert result.unmapped == []
        assert result.warnings == []

    def test_unknown_kind_is_unmapped_with_warning(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that a kind without a mapper is reported, not dropped."""
        queue = make_resource("AWS::SQS::Queue", "orders-queue")

        result = generator.generate([queue])

        assert result.resources == []
        assert result.unmapped == [queue]
        assert len(result.warnings) == 1
        assert "AWS::SQS::Queue" in result.warnings[0]

    def test_counts_always_add_up(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
        sample_vpc: DiscoveredResource,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test mapped plus unmapped equals the number of input records."""
        resources = [
            sample_vpc,
            make_resource("AWS::SQS::Queue", "q1"),
            sample_bucket,
            make_resource("AWS::SNS::Topic", "t1"),
        ]

        result = generator.generate(resources)
        summary = result.summary

        assert summary.total_resources == 4
        assert summary.mapped_resources == 2
        assert summary.unmapped_resources == 2
        assert summary.mapped_resources + summary.unmapped_resources == summary.total_resources
        assert summary.generated_resources == len(result.resources)

    def test_empty_input(self, generator: TerraformGenerator) -> None:
        """Test that an empty batch yields an empty result."""
        result = generator.generate([])

        assert result.resources == []
        assert result.summary.total_resources == 0
        assert result.warnings == []

    def test_accepts_raw_dicts(self, generator: TerraformGenerator) -> None:
        """Test that records in the discovery dict shape are accepted."""
        result = generator.generate(
            [
                {
                    "id": "vpc-0fff",
                    "type": "AWS::EC2::VPC",
                    "region": REGION,
                    "properties": {"cidrBlock": "172.16.0.0/16"},
                    "tags": {"Name": "shared"},
                }
            ]
        )

        assert [r.address for r in result.resources] == ["aws_vpc.shared"]

    def test_invalid_record_is_rejected(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
    ) -> None:
        """Test that a record without a kind is rejected and the batch continues."""
        record = {"id": "vpc-0fff", "region": REGION}

        result = generator.generate([record, sample_vpc])

        assert [r.address for r in result.resources] == ["aws_vpc.main"]
        assert [(r.index, r.record) for r in result.rejected] == [(0, record)]
        assert result.warnings == ["Record 0 is not a valid discovered resource"]
        assert result.summary.rejected_records == 1
        assert result.summary.total_resources == 1
        assert result.summary.mapped_resources == 1

    def test_bad_tag_value_is_rejected(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
    ) -> None:
        """Test that a record failing validation is counted apart from the invariant."""
        record = {
            "id": "vpc-0bad",
            "type": "AWS::EC2::VPC",
            "region": REGION,
            "tags": {"CostCenter": 1234},
        }

        result = generator.generate([sample_vpc, record])
        summary = result.summary

        assert [r.index for r in result.rejected] == [1]
        assert result.rejected[0].reason
        assert summary.mapped_resources + summary.unmapped_resources == summary.total_resources
        assert summary.total_resources == 1

    def test_non_mapping_record_is_rejected(self, generator: TerraformGenerator) -> None:
        """Test that a record that is not a mapping is rejected with its type."""
        result = generator.generate([42])  # type: ignore[list-item]

        assert result.resources == []
        assert result.unmapped == []
        assert [r.reason for r in result.rejected] == ["wrong type"]
        assert result.warnings == ["Record 0 is not a mapping: int"]


class TestFailureIsolation:
    """Tests that one bad mapper never aborts the batch."""

    def test_raising_mapper_is_isolated(
        self,
        settings: Settings,
        make_resource: ResourceFactory,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that an exception becomes a warning and an unmapped entry."""
        registry = create_mapper_registry()
        registry.register(_ExplodingMapper())
        generator = TerraformGenerator(settings=settings, registry=registry)
        volume = make_resource("AWS::EC2::Volume", "vol-0abc")

        with caplog.at_level(logging.ERROR):
            result = generator.generate([sample_vpc, volume, sample_subnet])

        assert [r.address for r in result.resources] == ["aws_vpc.main", "aws_subnet.private_a"]
        assert result.unmapped == [volume]
        assert any("Failed to map AWS::EC2::Volume vol-0abc" in w for w in result.warnings)
        assert "volume API shape changed" in caplog.text

    def test_declining_mapper_is_unmapped(
        self,
        settings: Settings,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that a mapper returning None sends the resource to unmapped."""
        generator = TerraformGenerator(
            settings=settings,
            registry=MapperRegistry([_DecliningMapper()]),
        )
        volume = make_resource("AWS::EC2::Volume", "vol-0abc")

        result = generator.generate([volume])

        assert result.resources == []
        assert result.unmapped == [volume]
        assert result.summary.mapped_resources == 0
        assert len(result.warnings) == 1

    def test_failed_mapper_leaves_no_variables(
        self,
        settings: Settings,
        make_resource: ResourceFactory,
        sample_db_instance: DiscoveredResource,
    ) -> None:
        """Test that secrets captured before an exception are rolled back."""
        registry = create_mapper_registry()
        registry.register(_HalfwayMapper())
        generator = TerraformGenerator(settings=settings, registry=registry)
        volume = make_resource("AWS::EC2::Volume", "vol-0abc")

        result = generator.generate([sample_db_instance, volume])

        assert result.unmapped == [volume]
        assert [v.name for v in result.variables] == [
            "db_orders_db_username",
            "sensitive_db_orders_db_password",
        ]
        assert "hunter2" not in result.sensitive_values.values()
        assert "sensitive_vol_0abc_db_password" not in result.sensitive_values

    def test_declining_mapper_leaves_no_variables(
        self,
        settings: Settings,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that variables registered before declining are rolled back."""
        generator = TerraformGenerator(
            settings=settings,
            registry=MapperRegistry([_RegisterThenDeclineMapper()]),
        )

        result = generator.generate([make_resource("AWS::EC2::Volume", "vol-0abc")])

        assert result.variables == []
        assert result.summary.variables_generated == 0

    def test_counts_taken_independently(
        self,
        settings: Settings,
        make_resource: ResourceFactory,
        sample_vpc: DiscoveredResource,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test mapped and unmapped counts for a mix of outcomes."""
        registry = create_mapper_registry()
        registry.register(_ExplodingMapper())
        generator = TerraformGenerator(settings=settings, registry=registry)
        resources = [
            sample_vpc,
            make_resource("AWS::EC2::Volume", "vol-0abc"),
            sample_bucket,
            make_resource("AWS::SQS::Queue", "q1"),
        ]

        result = generator.generate(resources)

        assert result.summary.mapped_resources == 2
        assert result.summary.unmapped_resources == 2
        assert {r.source.id for r in result.resources if r.source is not None} == {
            sample_vpc.id,
            sample_bucket.id,
        }


class TestCrossReferences:
    """Tests for references between resources of one batch."""

    def test_reference_when_target_mapped_first(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
        sample_instance: DiscoveredResource,
    ) -> None:
        """Test that earlier targets are referenced by address."""
        result = generator.generate([sample_vpc, sample_subnet, sample_instance])

        subnet = result.get_resource("aws_subnet.private_a")
        instance = result.get_resource("aws_instance.web_server")
        assert subnet is not None and instance is not None
        assert subnet.attributes["vpc_id"] == Reference("aws_vpc.main.id")
        assert instance.attributes["subnet_id"] == Reference("aws_subnet.private_a.id")

    def test_literal_when_target_mapped_later(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
    ) -> None:
        """Test that forward references stay literal ids."""
        result = generator.generate([sample_subnet, sample_vpc])

        subnet = result.get_resource("aws_subnet.private_a")
        assert subnet is not None
        assert subnet.attributes["vpc_id"] == Literal("vpc-0abc1234")

    def test_lambda_role_references_mapped_role(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
        sample_lambda: DiscoveredResource,
    ) -> None:
        """Test that the function role points at the role's arn attribute."""
        role = make_resource(
            "AWS::IAM::Role",
            "orders-lambda",
            properties={"roleName": "orders-lambda"},
            name="orders-lambda",
            arn=f"arn:aws:iam::{ACCOUNT_ID}:role/orders-lambda",
        )

        result = generator.generate([role, sample_lambda])

        function = result.get_resource("aws_lambda_function.process_orders")
        assert function is not None
        assert function.attributes["role"] == Reference("aws_iam_role.orders_lambda.arn")


class TestCompanions:
    """Tests for resources that expand into several definitions."""

    def test_bucket_expands_to_sub_configurations(
        self,
        generator: TerraformGenerator,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test that versioning and encryption become separate resources."""
        result = generator.generate([sample_bucket])

        assert [r.address for r in result.resources] == [
            "aws_s3_bucket.app_assets",
            "aws_s3_bucket_versioning.app_assets",
            "aws_s3_bucket_server_side_encryption_configuration.app_assets",
        ]
        for companion in result.resources[1:]:
            assert companion.depends_on == ["aws_s3_bucket.app_assets"]
            assert companion.attributes["bucket"] == Reference("aws_s3_bucket.app_assets.id")

        assert result.summary.mapped_resources == 1
        assert result.summary.generated_resources == 3
        assert result.summary.resources_by_service == {"s3": 3}

    def test_companions_get_import_blocks(
        self,
        generator: TerraformGenerator,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test that every generated bucket resource is importable."""
        result = generator.generate([sample_bucket])

        assert [(i.to, i.id) for i in result.imports] == [
            ("aws_s3_bucket.app_assets", "app-assets"),
            ("aws_s3_bucket_versioning.app_assets", "app-assets"),
            ("aws_s3_bucket_server_side_encryption_configuration.app_assets", "app-assets"),
        ]

    def test_renamed_bucket_keeps_companions_together(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test that companions follow the bucket when its name is taken."""
        other = make_resource(
            "AWS::S3::Bucket",
            "app.assets",
            properties={"versioning": {"status": "Suspended"}},
            arn="arn:aws:s3:::app.assets",
        )

        result = generator.generate([sample_bucket, other])

        versioning = result.get_resource("aws_s3_bucket_versioning.app_assets_2")
        assert versioning is not None
        assert versioning.depends_on == ["aws_s3_bucket.app_assets_2"]
        assert versioning.attributes["bucket"] == Reference("aws_s3_bucket.app_assets_2.id")


class TestDuplicateNames:
    """Tests for address disambiguation."""

    def test_duplicate_address_is_renamed(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
        sample_vpc: DiscoveredResource,
    ) -> None:
        """Test that a second resource with the same name gets a suffix."""
        twin = make_resource(
            "AWS::EC2::VPC",
            "vpc-0beef",
            properties={"cidrBlock": "10.1.0.0/16"},
            name="main",
            arn=ec2_arn("vpc/vpc-0beef"),
        )

        result = generator.generate([sample_vpc, twin])

        assert [r.address for r in result.resources] == ["aws_vpc.main", "aws_vpc.main_2"]
        assert any("aws_vpc.main_2" in w for w in result.warnings)

    def test_outputs_follow_renamed_resource(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
        sample_vpc: DiscoveredResource,
    ) -> None:
        """Test that suggested outputs point at the renamed address."""
        twin = make_resource("AWS::EC2::VPC", "vpc-0beef", name="main")

        result = generator.generate([sample_vpc, twin])

        outputs = result.outputs_by_resource["aws_vpc.main_2"]
        assert [(o.name, o.value) for o in outputs] == [
            ("main_2_id", "aws_vpc.main_2.id"),
            ("main_2_cidr_block", "aws_vpc.main_2.cidr_block"),
        ]
        names = [o.name for o in result.outputs]
        assert len(names) == len(set(names))

    def test_addresses_unique_across_batch(
        self,
        generator: TerraformGenerator,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that addresses stay unique for many colliding names."""
        resources = [
            make_resource("AWS::EC2::Subnet", f"subnet-{i}", name="app") for i in range(4)
        ]

        result = generator.generate(resources)

        addresses = [r.address for r in result.resources]
        assert addresses == [
            "aws_subnet.app",
            "aws_subnet.app_2",
            "aws_subnet.app_3",
            "aws_subnet.app_4",
        ]


class TestImportBlocks:
    """Tests for import block generation."""

    def test_import_blocks_enabled(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_db_instance: DiscoveredResource,
    ) -> None:
        """Test that import ids come from each mapper."""
        result = generator.generate([sample_vpc, sample_db_instance])

        assert [(i.to, i.id) for i in result.imports] == [
            ("aws_vpc.main", "vpc-0abc1234"),
            ("aws_db_instance.orders_db", "orders-db"),
        ]
        assert result.summary.imports_generated == 2

    def test_import_blocks_disabled(
        self,
        sample_vpc: DiscoveredResource,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test that no import blocks are produced when turned off."""
        settings = Settings(account_id=ACCOUNT_ID, generate_import_blocks=False)
        generator = TerraformGenerator(settings=settings, registry=create_mapper_registry())

        result = generator.generate([sample_vpc, sample_bucket])

        assert result.imports == []
        assert len(result.resources) == 4


class TestSensitiveValues:
    """Tests that captured secrets stay out of the generated configuration."""

    def test_secrets_never_in_attributes(
        self,
        generator: TerraformGenerator,
        sample_db_instance: DiscoveredResource,
        sample_lambda: DiscoveredResource,
    ) -> None:
        """Test that passwords and tokens only appear in sensitive_values."""
        result = generator.generate([sample_db_instance, sample_lambda])

        dumped = json.dumps(_snapshot(result))
        assert "hunter2-not-for-terraform" not in dumped
        assert "tok-live-abc123" not in dumped
        assert all(v.default is None for v in result.variables if v.sensitive)

        assert result.sensitive_values == {
            "sensitive_db_orders_db_password": "hunter2-not-for-terraform",
            "sensitive_process_orders_api_token": "tok-live-abc123",
        }

    def test_secret_becomes_variable_reference(
        self,
        generator: TerraformGenerator,
        sample_db_instance: DiscoveredResource,
    ) -> None:
        """Test that the password attribute references the sensitive variable."""
        result = generator.generate([sample_db_instance])

        db = result.get_resource("aws_db_instance.orders_db")
        assert db is not None
        assert db.attributes["password"] == Reference("var.sensitive_db_orders_db_password")
        assert db.attributes["username"] == Reference("var.db_orders_db_username")
        assert result.summary.variables_generated == 2


class TestRunIsolation:
    """Tests that runs share no state."""

    def test_same_input_same_output(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
        sample_bucket: DiscoveredResource,
        sample_db_instance: DiscoveredResource,
        sample_lambda: DiscoveredResource,
    ) -> None:
        """Test that generating twice yields equal results."""
        resources = [sample_vpc, sample_subnet, sample_bucket, sample_db_instance, sample_lambda]

        first = generator.generate(resources)
        second = generator.generate(resources)

        assert _snapshot(first) == _snapshot(second)
        assert first.sensitive_values == second.sensitive_values

    def test_variables_do_not_leak_between_runs(
        self,
        generator: TerraformGenerator,
        sample_lambda: DiscoveredResource,
    ) -> None:
        """Test that a second run does not see the first run's variables."""
        _ = generator.generate([sample_lambda])
        result = generator.generate([sample_lambda])

        assert [v.name for v in result.variables] == [
            "lambda_process_orders_filename",
            "sensitive_process_orders_api_token",
        ]

    def test_custom_registry_only_uses_its_mappers(
        self,
        settings: Settings,
        sample_vpc: DiscoveredResource,
        sample_subnet: DiscoveredResource,
    ) -> None:
        """Test that a generator dispatches through the registry it was given."""
        generator = TerraformGenerator(settings=settings, registry=MapperRegistry([VPCMapper()]))

        result = generator.generate([sample_vpc, sample_subnet])

        assert [r.address for r in result.resources] == ["aws_vpc.main"]
        assert result.unmapped == [sample_subnet]


class TestRunSettings:
    """Tests for settings that shape the whole result."""

    def test_provider_configuration(self, sample_vpc: DiscoveredResource) -> None:
        """Test the terraform and provider blocks built from the settings."""
        settings = Settings(
            default_region="eu-west-1",
            terraform_version="1.7.0",
            aws_provider_version="~> 5.40",
        )
        generator = TerraformGenerator(settings=settings, registry=create_mapper_registry())

        result = generator.generate([sample_vpc])

        assert result.provider is not None
        assert to_native(result.provider.terraform) == {
            "required_version": ">= 1.7.0",
            "required_providers": {"aws": {"source": "hashicorp/aws", "version": "~> 5.40"}},
        }
        assert result.provider.provider["region"] == Reference("var.aws_region")
        assert result.provider.region_variable.name == "aws_region"
        assert result.provider.region_variable.default == Literal("eu-west-1")
        assert "aws_region" not in [v.name for v in result.variables]

    def test_resources_grouped_by_service(
        self,
        generator: TerraformGenerator,
        sample_vpc: DiscoveredResource,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test grouping by logical service in mapping order."""
        result = generator.generate([sample_vpc, sample_bucket])

        grouped = {
            service: [r.address for r in resources]
            for service, resources in result.resources_by_service.items()
        }
        assert grouped == {
            "vpc": ["aws_vpc.main"],
            "s3": [
                "aws_s3_bucket.app_assets",
                "aws_s3_bucket_versioning.app_assets",
                "aws_s3_bucket_server_side_encryption_configuration.app_assets",
            ],
        }

    def test_grouping_disabled(self, sample_vpc: DiscoveredResource) -> None:
        """Test that no grouping is produced when turned off."""
        settings = Settings(account_id=ACCOUNT_ID, organize_by_service=False)
        generator = TerraformGenerator(settings=settings, registry=create_mapper_registry())

        result = generator.generate([sample_vpc])

        assert result.resources_by_service == {}
        assert [r.address for r in result.resources] == ["aws_vpc.main"]

    def test_log_level_applied_to_package_loggers(self) -> None:
        """Test that the configured level is set on the terramap logger."""
        package_logger = logging.getLogger("terramap")
        previous = package_logger.level
        try:
            _ = TerraformGenerator(
                settings=Settings(log_level="debug"),
                registry=MapperRegistry([VPCMapper()]),
            )
            assert package_logger.level == logging.DEBUG
        finally:
            package_logger.setLevel(previous)
