"""
Key-value storage mappers for DynamoDB tables and global tables.

Discovery returns the ``DescribeTable`` shape, so most settings arrive as
``*Description``/``*Summary`` objects and are flattened into the provider's
arguments here.
"""

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import apply_tags, generate_resource_name, output, set_attribute
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource
from terramap.values import Value, block, list_value

ENABLED = "ENABLED"
DEFAULT_PROJECTION = "ALL"


class KeySchemaElement(PropertyView):
    attribute_name: str | None = None
    key_type: str | None = None


class AttributeDefinition(PropertyView):
    attribute_name: str | None = None
    attribute_type: str | None = None


class Projection(PropertyView):
    projection_type: str | None = None
    non_key_attributes: list[str] | None = None


class ProvisionedThroughput(PropertyView):
    read_capacity_units: int | None = None
    write_capacity_units: int | None = None


class SecondaryIndex(PropertyView):
    index_name: str | None = None
    key_schema: list[KeySchemaElement] | None = None
    projection: Projection | None = None
    provisioned_throughput: ProvisionedThroughput | None = None


class BillingModeSummary(PropertyView):
    billing_mode: str | None = None


class TimeToLiveDescription(PropertyView):
    time_to_live_status: str | None = None
    attribute_name: str | None = None


class StreamSpecification(PropertyView):
    stream_enabled: bool | None = None
    stream_view_type: str | None = None


class SseDescription(PropertyView):
    status: str | None = None
    sse_type: str | None = None
    kms_master_key_arn: str | None = None


class PointInTimeRecoveryDescription(PropertyView):
    point_in_time_recovery_status: str | None = None


class Replica(PropertyView):
    region_name: str | None = None
    kms_key_arn: str | None = None


class TableProperties(PropertyView):
    table_name: str | None = None
    billing_mode_summary: BillingModeSummary | None = None
    provisioned_throughput: ProvisionedThroughput | None = None
    key_schema: list[KeySchemaElement] | None = None
    attribute_definitions: list[AttributeDefinition] | None = None
    global_secondary_indexes: list[SecondaryIndex] | None = None
    local_secondary_indexes: list[SecondaryIndex] | None = None
    time_to_live_description: TimeToLiveDescription | None = None
    stream_specification: StreamSpecification | None = None
    sse_description: SseDescription | None = None
    point_in_time_recovery_description: PointInTimeRecoveryDescription | None = None
    replicas: list[Replica] | None = None
    table_class: str | None = None
    deletion_protection_enabled: bool | None = None


def _key_attributes(
    key_schema: list[KeySchemaElement] | None,
    include_hash: bool = True,
) -> dict[str, str]:
    keys: dict[str, str] = {}
    for element in key_schema or []:
        if not element.attribute_name:
            continue
        if element.key_type == "HASH" and include_hash:
            keys["hash_key"] = element.attribute_name
        elif element.key_type == "RANGE":
            keys["range_key"] = element.attribute_name
    return keys


def _index_block(index: SecondaryIndex, local: bool) -> Value | None:
    attrs: dict[str, object] = {"name": index.index_name}
    # local indexes share the table's hash key
    attrs.update(_key_attributes(index.key_schema, include_hash=not local))
    if index.projection is not None:
        attrs["projection_type"] = index.projection.projection_type or DEFAULT_PROJECTION
        attrs["non_key_attributes"] = index.projection.non_key_attributes
    if not local and index.provisioned_throughput is not None:
        attrs["read_capacity"] = index.provisioned_throughput.read_capacity_units
        attrs["write_capacity"] = index.provisioned_throughput.write_capacity_units

    index_block = block(attrs)
    return index_block if index_block.attributes else None


def _replica_blocks(replicas: list[Replica] | None) -> list[Value]:
    blocks = [
        block({"region_name": r.region_name, "kms_key_arn": r.kms_key_arn})
        for r in replicas or []
    ]
    return [b for b in blocks if b.attributes]


class DynamoDBTableMapper:
    """Maps DynamoDB tables to ``aws_dynamodb_table``."""

    aws_type = "AWS::DynamoDB::Table"
    terraform_type = "aws_dynamodb_table"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, TableProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.table_name)
        if props.billing_mode_summary is not None:
            set_attribute(attributes, "billing_mode", props.billing_mode_summary.billing_mode)
        if props.provisioned_throughput is not None:
            set_attribute(
                attributes, "read_capacity", props.provisioned_throughput.read_capacity_units
            )
            set_attribute(
                attributes, "write_capacity", props.provisioned_throughput.write_capacity_units
            )

        for key, attribute_name in _key_attributes(props.key_schema).items():
            set_attribute(attributes, key, attribute_name)

        definitions = [
            block({"name": d.attribute_name, "type": d.attribute_type})
            for d in props.attribute_definitions or []
            if d.attribute_name and d.attribute_type
        ]
        if definitions:
            attributes["attribute"] = list_value(definitions)

        for attribute, indexes, local in (
            ("global_secondary_index", props.global_secondary_indexes, False),
            ("local_secondary_index", props.local_secondary_indexes, True),
        ):
            blocks = [b for b in (_index_block(i, local) for i in indexes or []) if b is not None]
            if blocks:
                attributes[attribute] = list_value(blocks)

        ttl = props.time_to_live_description
        if ttl is not None and ttl.time_to_live_status == ENABLED and ttl.attribute_name:
            attributes["ttl"] = block({"enabled": True, "attribute_name": ttl.attribute_name})

        stream = props.stream_specification
        if stream is not None and stream.stream_enabled:
            set_attribute(attributes, "stream_enabled", True)
            set_attribute(attributes, "stream_view_type", stream.stream_view_type)

        sse = props.sse_description
        if sse is not None and sse.status == ENABLED:
            attributes["server_side_encryption"] = block(
                {"enabled": True, "kms_key_arn": sse.kms_master_key_arn}
            )

        pitr = props.point_in_time_recovery_description
        if pitr is not None and pitr.point_in_time_recovery_status == ENABLED:
            attributes["point_in_time_recovery"] = block({"enabled": True})

        replicas = _replica_blocks(props.replicas)
        if replicas:
            attributes["replica"] = list_value(replicas)

        set_attribute(attributes, "table_class", props.table_class)
        set_attribute(attributes, "deletion_protection_enabled", props.deletion_protection_enabled)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, TableProperties).table_name or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, TableProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.table_name or resource.id
        return [
            output(name, address, "arn", f"ARN of DynamoDB table {label}"),
            output(name, address, "stream_arn", f"Stream ARN of DynamoDB table {label}"),
        ]


class GlobalTableProperties(PropertyView):
    global_table_name: str | None = None
    table_name: str | None = None
    replication_group: list[Replica] | None = None


class DynamoDBGlobalTableMapper:
    """
    Maps legacy global tables onto ``aws_dynamodb_table``.

    Only the name and replica regions are known from the global table
    description. Replicated tables require on-demand billing.
    """

    aws_type = "AWS::DynamoDB::GlobalTable"
    terraform_type = "aws_dynamodb_table"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, GlobalTableProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.global_table_name or props.table_name)
        set_attribute(attributes, "billing_mode", "PAY_PER_REQUEST")

        replicas = _replica_blocks(props.replication_group)
        if replicas:
            attributes["replica"] = list_value(replicas)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, GlobalTableProperties)
        return props.global_table_name or props.table_name or resource.id


def get_dynamodb_mappers() -> list[ResourceMapper]:
    """Return one instance of every DynamoDB mapper."""
    return [DynamoDBTableMapper(), DynamoDBGlobalTableMapper()]
