"""
Compute mappers: instances, volumes, security groups, launch templates and
key pairs.
"""

import re

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    output,
    related_ref,
    set_attribute,
)
from terramap.models import (
    DiscoveredResource,
    GeneratedOutput,
    GeneratedResource,
    GeneratedVariable,
    Lifecycle,
)
from terramap.values import Value, block, list_value, reference

_INSTANCE_PROFILE_NAME = re.compile(r"instance-profile/(.+)$")


class GroupIdentifier(PropertyView):
    group_id: str | None = None


class InstanceProfileRef(PropertyView):
    arn: str | None = None


class MetadataOptions(PropertyView):
    http_endpoint: str | None = None
    http_tokens: str | None = None
    http_put_response_hop_limit: int | None = None


class InstanceProperties(PropertyView):
    image_id: str | None = None
    instance_type: str | None = None
    key_name: str | None = None
    subnet_id: str | None = None
    security_groups: list[GroupIdentifier] | None = None
    iam_instance_profile: InstanceProfileRef | None = None
    ebs_optimized: bool | None = None
    monitoring: str | None = None
    metadata_options: MetadataOptions | None = None


class EC2InstanceMapper:
    """Maps EC2 instances to ``aws_instance``."""

    aws_type = "AWS::EC2::Instance"
    terraform_type = "aws_instance"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, InstanceProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "ami", props.image_id)
        set_attribute(attributes, "instance_type", props.instance_type)
        set_attribute(attributes, "key_name", props.key_name)

        if props.subnet_id:
            attributes["subnet_id"] = related_ref(context, resource, "ec2", "subnet", props.subnet_id)

        group_ids = _group_ids(props.security_groups)
        if group_ids:
            attributes["vpc_security_group_ids"] = list_value(group_ids)

        if props.iam_instance_profile and props.iam_instance_profile.arn:
            match = _INSTANCE_PROFILE_NAME.search(props.iam_instance_profile.arn)
            if match:
                set_attribute(attributes, "iam_instance_profile", match.group(1))

        set_attribute(attributes, "ebs_optimized", props.ebs_optimized)
        if props.monitoring == "enabled":
            set_attribute(attributes, "monitoring", True)

        if props.metadata_options is not None:
            meta = props.metadata_options
            attributes["metadata_options"] = block(
                {
                    "http_endpoint": meta.http_endpoint or "enabled",
                    "http_tokens": meta.http_tokens or "optional",
                    "http_put_response_hop_limit": meta.http_put_response_hop_limit or 1,
                }
            )

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["ami", "user_data"]),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        return [
            output(name, address, "id", f"ID of EC2 instance {resource.name or resource.id}"),
            output(
                name,
                address,
                "private_ip",
                f"Private IP of EC2 instance {resource.name or resource.id}",
            ),
        ]


class VolumeProperties(PropertyView):
    availability_zone: str | None = None
    size: int | None = None
    volume_type: str | None = None
    iops: int | None = None
    throughput: int | None = None
    encrypted: bool | None = None
    kms_key_id: str | None = None
    snapshot_id: str | None = None
    multi_attach_enabled: bool | None = None


class EBSVolumeMapper:
    """Maps EBS volumes to ``aws_ebs_volume``."""

    aws_type = "AWS::EC2::Volume"
    terraform_type = "aws_ebs_volume"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, VolumeProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "availability_zone", props.availability_zone)
        set_attribute(attributes, "size", props.size)
        set_attribute(attributes, "type", props.volume_type)
        # iops and throughput only apply to provisioned types
        set_attribute(attributes, "iops", props.iops or None)
        set_attribute(attributes, "throughput", props.throughput or None)
        if props.encrypted:
            set_attribute(attributes, "encrypted", True)
        set_attribute(attributes, "kms_key_id", props.kms_key_id)
        set_attribute(attributes, "snapshot_id", props.snapshot_id or None)
        if props.multi_attach_enabled:
            set_attribute(attributes, "multi_attach_enabled", True)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class IpRange(PropertyView):
    cidr_ip: str | None = None
    description: str | None = None


class Ipv6Range(PropertyView):
    cidr_ipv6: str | None = None


class SecurityGroupRule(PropertyView):
    from_port: int | None = None
    to_port: int | None = None
    ip_protocol: str | None = None
    ip_ranges: list[IpRange] | None = None
    ipv6_ranges: list[Ipv6Range] | None = None
    security_groups: list[GroupIdentifier] | None = None


class SecurityGroupProperties(PropertyView):
    group_name: str | None = None
    description: str | None = None
    vpc_id: str | None = None
    ingress_rules: list[SecurityGroupRule] | None = None
    egress_rules: list[SecurityGroupRule] | None = None


class SecurityGroupMapper:
    """Maps security groups to ``aws_security_group`` with inline rules."""

    aws_type = "AWS::EC2::SecurityGroup"
    terraform_type = "aws_security_group"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, SecurityGroupProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.group_name)
        set_attribute(attributes, "description", props.description)
        if props.vpc_id:
            attributes["vpc_id"] = related_ref(context, resource, "ec2", "vpc", props.vpc_id)

        ingress = [_rule_block(rule, ingress=True) for rule in props.ingress_rules or []]
        if ingress:
            attributes["ingress"] = list_value(ingress)

        egress = [_rule_block(rule, ingress=False) for rule in props.egress_rules or []]
        if egress:
            attributes["egress"] = list_value(egress)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            lifecycle=Lifecycle(create_before_destroy=True),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        name = generate_resource_name(resource)
        return [
            output(
                name,
                f"{self.terraform_type}.{name}",
                "id",
                f"ID of security group {resource.name or resource.id}",
            )
        ]


def _rule_block(rule: SecurityGroupRule, ingress: bool) -> Value:
    attrs: dict[str, object] = {
        "from_port": rule.from_port or 0,
        "to_port": rule.to_port or 0,
        "protocol": rule.ip_protocol or "-1",
    }

    ranges = rule.ip_ranges or []
    cidrs = [r.cidr_ip for r in ranges if r.cidr_ip]
    if cidrs:
        attrs["cidr_blocks"] = cidrs

    ipv6_cidrs = [r.cidr_ipv6 for r in rule.ipv6_ranges or [] if r.cidr_ipv6]
    if ipv6_cidrs:
        attrs["ipv6_cidr_blocks"] = ipv6_cidrs

    if ingress:
        group_ids = _group_ids(rule.security_groups)
        if group_ids:
            attrs["security_groups"] = group_ids
        description = next((r.description for r in ranges if r.description), None)
        if description:
            attrs["description"] = description

    return block(attrs)


def _group_ids(groups: list[GroupIdentifier] | None) -> list[str]:
    return [group.group_id for group in groups or [] if group.group_id]


class LaunchTemplateProperties(PropertyView):
    launch_template_name: str | None = None
    default_version_number: int | None = None


class LaunchTemplateMapper:
    """Maps launch templates to ``aws_launch_template``."""

    aws_type = "AWS::EC2::LaunchTemplate"
    terraform_type = "aws_launch_template"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, LaunchTemplateProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.launch_template_name)
        set_attribute(attributes, "default_version", props.default_version_number)
        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class KeyPairProperties(PropertyView):
    key_name: str | None = None
    key_pair_id: str | None = None


class KeyPairMapper:
    """
    Maps key pairs to ``aws_key_pair``.

    The public key cannot be read back from the provider, so it becomes an
    input variable.
    """

    aws_type = "AWS::EC2::KeyPair"
    terraform_type = "aws_key_pair"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, KeyPairProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "key_name", props.key_name)

        var_name = context.add_variable(
            GeneratedVariable(
                name=f"key_pair_{name}_public_key",
                type="string",
                description=f"Public key for key pair {props.key_name or name}",
                sensitive=False,
            )
        )
        attributes["public_key"] = reference(f"var.{var_name}")

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, KeyPairProperties)
        return props.key_name or resource.id


def get_ec2_mappers() -> list[ResourceMapper]:
    """Return one instance of every compute mapper."""
    return [
        EC2InstanceMapper(),
        EBSVolumeMapper(),
        SecurityGroupMapper(),
        LaunchTemplateMapper(),
        KeyPairMapper(),
    ]
