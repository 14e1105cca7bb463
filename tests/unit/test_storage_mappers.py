"""
Unit tests for the S3, RDS and DynamoDB mappers.

Tests cover bucket sub-configuration companions, credential
externalization for databases, and DynamoDB key schema flattening.
"""

import json

from terramap.context import MappingContext
from terramap.mappers.dynamodb import DynamoDBGlobalTableMapper, DynamoDBTableMapper
from terramap.mappers.rds import RDSClusterMapper, RDSInstanceMapper, RDSParameterGroupMapper
from terramap.mappers.s3 import (
    S3BucketLifecycleMapper,
    S3BucketLoggingMapper,
    S3BucketMapper,
    S3BucketPolicyMapper,
    S3BucketPublicAccessBlockMapper,
)
from terramap.models import DiscoveredResource
from terramap.values import Literal, Reference, to_native

from tests.conftest import ResourceFactory

POLICY = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": "*",
            "Action": "s3:GetObject",
            "Resource": "arn:aws:s3:::app-assets/*",
        }
    ],
}


class TestS3BucketMapper:
    """Tests for the bucket mapper and its companions."""

    def test_bucket_attributes(
        self,
        context: MappingContext,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test the bucket resource itself."""
        generated = S3BucketMapper().map(sample_bucket, context)

        assert generated is not None
        assert generated.address == "aws_s3_bucket.app_assets"
        assert generated.attributes["bucket"] == Literal("app-assets")
        assert to_native(generated.attributes["tags"]) == {"Environment": "prod"}

    def test_absent_sub_configurations_yield_nothing(
        self,
        context: MappingContext,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test that companions decline when their settings are absent."""
        for companion in (
            S3BucketPublicAccessBlockMapper(),
            S3BucketLifecycleMapper(),
            S3BucketLoggingMapper(),
            S3BucketPolicyMapper(),
        ):
            assert companion.map(sample_bucket, context) is None

    def test_lifecycle_rules(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test lifecycle rules with SDK-shaped nested settings."""
        bucket = make_resource(
            "AWS::S3::Bucket",
            "logs-bucket",
            properties={
                "lifecycleRules": [
                    {
                        "id": "archive",
                        "status": "Enabled",
                        "filter": {"Prefix": "logs/"},
                        "transitions": [{"Days": 30, "StorageClass": "GLACIER"}],
                        "noncurrentVersionExpiration": {"NoncurrentDays": 90},
                    }
                ]
            },
        )

        generated = S3BucketLifecycleMapper().map(bucket, context)

        assert generated is not None
        assert generated.address == "aws_s3_bucket_lifecycle_configuration.logs_bucket"
        assert to_native(generated.attributes["rule"]) == [
            {
                "id": "archive",
                "status": "Enabled",
                "filter": {"prefix": "logs/"},
                "transition": [{"days": 30, "storage_class": "GLACIER"}],
                "noncurrent_version_expiration": {"noncurrent_days": 90},
            }
        ]
        assert generated.depends_on == ["aws_s3_bucket.logs_bucket"]

    def test_public_access_block_defaults_to_false(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that unset public access flags become false."""
        bucket = make_resource(
            "AWS::S3::Bucket",
            "site",
            properties={"publicAccessBlock": {"blockPublicAcls": True}},
        )

        generated = S3BucketPublicAccessBlockMapper().map(bucket, context)

        assert generated is not None
        assert generated.attributes["block_public_acls"] == Literal(True)
        assert generated.attributes["restrict_public_buckets"] == Literal(False)

    def test_logging_target(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test access logging to another bucket."""
        bucket = make_resource(
            "AWS::S3::Bucket",
            "site",
            properties={"logging": {"targetBucket": "log-archive", "targetPrefix": "site/"}},
        )

        generated = S3BucketLoggingMapper().map(bucket, context)

        assert generated is not None
        assert generated.attributes["target_bucket"] == Literal("log-archive")
        assert generated.attributes["target_prefix"] == Literal("site/")

    def test_standalone_policy_references_mapped_bucket(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
        sample_bucket: DiscoveredResource,
    ) -> None:
        """Test a standalone policy record pointing at a mapped bucket."""
        bucket = S3BucketMapper().map(sample_bucket, context)
        assert bucket is not None
        context.register_resource(bucket)
        policy = make_resource(
            "AWS::S3::BucketPolicy",
            "app-assets-policy",
            properties={"bucket": "app-assets", "policy": POLICY},
        )

        generated = S3BucketPolicyMapper().map(policy, context)

        assert generated is not None
        assert generated.address == "aws_s3_bucket_policy.app_assets_policy"
        assert generated.attributes["bucket"] == Reference("aws_s3_bucket.app_assets.id")
        assert generated.depends_on == []
        policy_text = generated.attributes["policy"]
        assert isinstance(policy_text, Literal)
        assert isinstance(policy_text.value, str)
        assert json.loads(policy_text.value) == POLICY
        assert S3BucketPolicyMapper().get_import_id(policy) == "app-assets"

    def test_standalone_policy_without_bucket_is_literal(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that an unmapped bucket is referenced by name."""
        policy = make_resource(
            "AWS::S3::BucketPolicy",
            "p",
            properties={"bucket": "other-bucket", "policy": json.dumps(POLICY)},
        )

        generated = S3BucketPolicyMapper().map(policy, context)

        assert generated is not None
        assert generated.attributes["bucket"] == Literal("other-bucket")


class TestRDSMappers:
    """Tests for the RDS mappers."""

    def test_instance_attributes(
        self,
        context: MappingContext,
        sample_db_instance: DiscoveredResource,
    ) -> None:
        """Test the direct attribute mapping, including irregular aliases."""
        generated = RDSInstanceMapper().map(sample_db_instance, context)

        assert generated is not None
        assert generated.attributes["identifier"] == Literal("orders-db")
        assert generated.attributes["instance_class"] == Literal("db.t3.medium")
        assert generated.attributes["multi_az"] == Literal(True)
        assert generated.attributes["storage_encrypted"] == Literal(True)
        assert generated.attributes["skip_final_snapshot"] == Literal(True)
        assert generated.lifecycle is not None
        assert generated.lifecycle.ignore_changes == ["password"]

    def test_captured_password_is_externalized(
        self,
        context: MappingContext,
        sample_db_instance: DiscoveredResource,
    ) -> None:
        """Test that a discovered password becomes a sensitive variable."""
        generated = RDSInstanceMapper().map(sample_db_instance, context)

        assert generated is not None
        assert generated.attributes["password"] == Reference(
            "var.sensitive_db_orders_db_password"
        )
        assert generated.attributes["username"] == Reference("var.db_orders_db_username")
        assert context.sensitive_values == {
            "sensitive_db_orders_db_password": "hunter2-not-for-terraform"
        }

    def test_missing_password_becomes_plain_sensitive_variable(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that a password variable is declared even when none was captured."""
        db = make_resource(
            "AWS::RDS::DBInstance",
            "reports-db",
            properties={"dbInstanceIdentifier": "reports-db", "engine": "mysql"},
        )

        generated = RDSInstanceMapper().map(db, context)

        assert generated is not None
        assert generated.attributes["password"] == Reference("var.db_reports_db_password")
        assert "username" not in generated.attributes
        assert [(v.name, v.sensitive) for v in context.variables] == [
            ("db_reports_db_password", True)
        ]
        assert context.sensitive_values == {}

    def test_cluster_credentials(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test master credentials on an Aurora cluster."""
        cluster = make_resource(
            "AWS::RDS::DBCluster",
            "analytics",
            properties={
                "dbClusterIdentifier": "analytics",
                "engine": "aurora-postgresql",
                "masterUsername": "admin",
            },
        )

        generated = RDSClusterMapper().map(cluster, context)

        assert generated is not None
        assert generated.attributes["master_username"] == Reference(
            "var.cluster_analytics_username"
        )
        assert generated.attributes["master_password"] == Reference(
            "var.cluster_analytics_password"
        )
        assert RDSClusterMapper().get_import_id(cluster) == "analytics"

    def test_parameter_group(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that parameters without a value are skipped."""
        group = make_resource(
            "AWS::RDS::DBParameterGroup",
            "pg15",
            properties={
                "dbParameterGroupName": "pg15",
                "dbParameterGroupFamily": "postgres15",
                "parameters": [
                    {"parameterName": "log_statement", "parameterValue": "ddl"},
                    {"parameterName": "work_mem"},
                ],
            },
        )

        generated = RDSParameterGroupMapper().map(group, context)

        assert generated is not None
        assert to_native(generated.attributes["parameter"]) == [
            {"name": "log_statement", "value": "ddl"}
        ]


class TestDynamoDBMappers:
    """Tests for the DynamoDB mappers."""

    def test_table_keys_and_indexes(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test key schema flattening and secondary indexes."""
        table = make_resource(
            "AWS::DynamoDB::Table",
            "orders",
            properties={
                "tableName": "orders",
                "billingModeSummary": {"billingMode": "PAY_PER_REQUEST"},
                "keySchema": [
                    {"attributeName": "pk", "keyType": "HASH"},
                    {"attributeName": "sk", "keyType": "RANGE"},
                ],
                "attributeDefinitions": [
                    {"attributeName": "pk", "attributeType": "S"},
                    {"attributeName": "sk", "attributeType": "S"},
                    {"attributeName": "status", "attributeType": "S"},
                ],
                "globalSecondaryIndexes": [
                    {
                        "indexName": "by-status",
                        "keySchema": [{"attributeName": "status", "keyType": "HASH"}],
                        "projection": {"projectionType": "KEYS_ONLY"},
                    }
                ],
                "localSecondaryIndexes": [
                    {
                        "indexName": "by-sk",
                        "keySchema": [
                            {"attributeName": "pk", "keyType": "HASH"},
                            {"attributeName": "sk", "keyType": "RANGE"},
                        ],
                        "projection": {},
                    }
                ],
            },
        )

        generated = DynamoDBTableMapper().map(table, context)

        assert generated is not None
        assert generated.attributes["hash_key"] == Literal("pk")
        assert generated.attributes["range_key"] == Literal("sk")
        assert generated.attributes["billing_mode"] == Literal("PAY_PER_REQUEST")
        assert to_native(generated.attributes["global_secondary_index"]) == [
            {"name": "by-status", "hash_key": "status", "projection_type": "KEYS_ONLY"}
        ]
        assert to_native(generated.attributes["local_secondary_index"]) == [
            {"name": "by-sk", "range_key": "sk", "projection_type": "ALL"}
        ]

    def test_optional_features_only_when_enabled(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test TTL, encryption and recovery are emitted only when enabled."""
        table = make_resource(
            "AWS::DynamoDB::Table",
            "sessions",
            properties={
                "tableName": "sessions",
                "timeToLiveDescription": {
                    "timeToLiveStatus": "ENABLED",
                    "attributeName": "expires_at",
                },
                "sseDescription": {"status": "DISABLED"},
                "pointInTimeRecoveryDescription": {"pointInTimeRecoveryStatus": "ENABLED"},
                "streamSpecification": {"streamEnabled": True, "streamViewType": "NEW_IMAGE"},
            },
        )

        generated = DynamoDBTableMapper().map(table, context)

        assert generated is not None
        assert to_native(generated.attributes["ttl"]) == {
            "enabled": True,
            "attribute_name": "expires_at",
        }
        assert "server_side_encryption" not in generated.attributes
        assert to_native(generated.attributes["point_in_time_recovery"]) == {"enabled": True}
        assert generated.attributes["stream_view_type"] == Literal("NEW_IMAGE")

    def test_global_table_replicas(
        self,
        context: MappingContext,
        make_resource: ResourceFactory,
    ) -> None:
        """Test that global tables become on-demand tables with replicas."""
        table = make_resource(
            "AWS::DynamoDB::GlobalTable",
            "carts",
            properties={
                "globalTableName": "carts",
                "replicationGroup": [{"regionName": "us-east-1"}, {"regionName": "eu-west-1"}],
            },
        )

        generated = DynamoDBGlobalTableMapper().map(table, context)

        assert generated is not None
        assert generated.address == "aws_dynamodb_table.carts"
        assert generated.attributes["billing_mode"] == Literal("PAY_PER_REQUEST")
        assert to_native(generated.attributes["replica"]) == [
            {"region_name": "us-east-1"},
            {"region_name": "eu-west-1"},
        ]
        assert DynamoDBGlobalTableMapper().get_import_id(table) == "carts"
