"""
Networking mappers.

Subnets, route tables, internet gateways, network ACLs and endpoints point
back at their VPC; NAT gateways point at their subnet. Each of these is a
Reference when the target was mapped earlier in the same pass, otherwise
the literal id.
"""

from pydantic import Field

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.ec2 import GroupIdentifier
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    output,
    related_ref,
    set_attribute,
)
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource
from terramap.values import Value, block, list_value


def _vpc_ref(context: MappingContext, resource: DiscoveredResource, vpc_id: str) -> Value:
    return related_ref(context, resource, "ec2", "vpc", vpc_id)


class VPCProperties(PropertyView):
    cidr_block: str | None = None
    instance_tenancy: str | None = None
    enable_dns_support: bool | None = None
    enable_dns_hostnames: bool | None = None


class VPCMapper:
    """Maps VPCs to ``aws_vpc``."""

    aws_type = "AWS::EC2::VPC"
    terraform_type = "aws_vpc"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, VPCProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "cidr_block", props.cidr_block)
        if props.instance_tenancy and props.instance_tenancy != "default":
            set_attribute(attributes, "instance_tenancy", props.instance_tenancy)

        # DescribeVpcs does not return the DNS flags; assume the usual settings
        set_attribute(attributes, "enable_dns_support", _default_true(props.enable_dns_support))
        set_attribute(attributes, "enable_dns_hostnames", _default_true(props.enable_dns_hostnames))

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = resource.name or resource.id
        return [
            output(name, address, "id", f"ID of VPC {label}"),
            output(name, address, "cidr_block", f"CIDR block of VPC {label}"),
        ]


def _default_true(value: bool | None) -> bool:
    return True if value is None else value


class SubnetProperties(PropertyView):
    vpc_id: str | None = None
    cidr_block: str | None = None
    availability_zone: str | None = None
    map_public_ip_on_launch: bool | None = None
    assign_ipv6_address_on_creation: bool | None = None


class SubnetMapper:
    """Maps subnets to ``aws_subnet``."""

    aws_type = "AWS::EC2::Subnet"
    terraform_type = "aws_subnet"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, SubnetProperties)
        attributes: dict[str, Value] = {}

        if props.vpc_id:
            attributes["vpc_id"] = _vpc_ref(context, resource, props.vpc_id)
        set_attribute(attributes, "cidr_block", props.cidr_block)
        set_attribute(attributes, "availability_zone", props.availability_zone)
        set_attribute(attributes, "map_public_ip_on_launch", props.map_public_ip_on_launch)
        set_attribute(
            attributes,
            "assign_ipv6_address_on_creation",
            props.assign_ipv6_address_on_creation,
        )

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
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
                f"ID of subnet {resource.name or resource.id}",
            )
        ]


class Route(PropertyView):
    destination_cidr_block: str | None = None
    destination_ipv6_cidr_block: str | None = None
    gateway_id: str | None = None
    nat_gateway_id: str | None = None
    transit_gateway_id: str | None = None
    vpc_peering_connection_id: str | None = None
    network_interface_id: str | None = None


class RouteTableProperties(PropertyView):
    vpc_id: str | None = None
    routes: list[Route] | None = None


_ROUTE_FIELDS = (
    ("cidr_block", "destination_cidr_block"),
    ("ipv6_cidr_block", "destination_ipv6_cidr_block"),
    ("gateway_id", "gateway_id"),
    ("nat_gateway_id", "nat_gateway_id"),
    ("transit_gateway_id", "transit_gateway_id"),
    ("vpc_peering_connection_id", "vpc_peering_connection_id"),
    ("network_interface_id", "network_interface_id"),
)


class RouteTableMapper:
    """
    Maps route tables to ``aws_route_table`` with inline routes.

    The implicit ``local`` route is managed by the provider and skipped, as
    are routes that lack either a destination or a target.
    """

    aws_type = "AWS::EC2::RouteTable"
    terraform_type = "aws_route_table"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, RouteTableProperties)
        attributes: dict[str, Value] = {}

        if props.vpc_id:
            attributes["vpc_id"] = _vpc_ref(context, resource, props.vpc_id)

        routes: list[Value] = []
        for route in props.routes or []:
            if route.gateway_id == "local":
                continue
            route_attrs = {
                target: getattr(route, source)
                for target, source in _ROUTE_FIELDS
                if getattr(route, source)
            }
            # needs a destination and a target
            if len(route_attrs) > 1:
                routes.append(block(route_attrs))
        if routes:
            attributes["route"] = list_value(routes)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class VpcAttachment(PropertyView):
    vpc_id: str | None = None


class InternetGatewayProperties(PropertyView):
    attachments: list[VpcAttachment] | None = None


class InternetGatewayMapper:
    """Maps internet gateways to ``aws_internet_gateway``."""

    aws_type = "AWS::EC2::InternetGateway"
    terraform_type = "aws_internet_gateway"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, InternetGatewayProperties)
        attributes: dict[str, Value] = {}

        attachments = props.attachments or []
        if attachments and attachments[0].vpc_id:
            attributes["vpc_id"] = _vpc_ref(context, resource, attachments[0].vpc_id)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class NatGatewayAddress(PropertyView):
    allocation_id: str | None = None


class NatGatewayProperties(PropertyView):
    subnet_id: str | None = None
    connectivity_type: str | None = None
    nat_gateway_addresses: list[NatGatewayAddress] | None = None


class NatGatewayMapper:
    """Maps NAT gateways to ``aws_nat_gateway``."""

    aws_type = "AWS::EC2::NatGateway"
    terraform_type = "aws_nat_gateway"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, NatGatewayProperties)
        attributes: dict[str, Value] = {}

        if props.subnet_id:
            attributes["subnet_id"] = related_ref(context, resource, "ec2", "subnet", props.subnet_id)
        set_attribute(attributes, "connectivity_type", props.connectivity_type)

        addresses = props.nat_gateway_addresses or []
        if addresses and addresses[0].allocation_id:
            set_attribute(attributes, "allocation_id", addresses[0].allocation_id)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class VPCEndpointProperties(PropertyView):
    vpc_id: str | None = None
    service_name: str | None = None
    vpc_endpoint_type: str | None = None
    route_table_ids: list[str] | None = None
    subnet_ids: list[str] | None = None
    groups: list[GroupIdentifier] | None = Field(default=None, alias="securityGroups")
    private_dns_enabled: bool | None = None
    policy_document: str | None = None


class VPCEndpointMapper:
    """Maps VPC endpoints to ``aws_vpc_endpoint``."""

    aws_type = "AWS::EC2::VPCEndpoint"
    terraform_type = "aws_vpc_endpoint"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, VPCEndpointProperties)
        attributes: dict[str, Value] = {}

        if props.vpc_id:
            attributes["vpc_id"] = _vpc_ref(context, resource, props.vpc_id)
        set_attribute(attributes, "service_name", props.service_name)
        set_attribute(attributes, "vpc_endpoint_type", props.vpc_endpoint_type)
        set_attribute(attributes, "route_table_ids", props.route_table_ids)
        set_attribute(attributes, "subnet_ids", props.subnet_ids)

        group_ids = [group.group_id for group in props.groups or [] if group.group_id]
        if group_ids:
            set_attribute(attributes, "security_group_ids", group_ids)

        set_attribute(attributes, "private_dns_enabled", props.private_dns_enabled)
        set_attribute(attributes, "policy", props.policy_document)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class SubnetAssociation(PropertyView):
    subnet_id: str | None = None


class PortRange(PropertyView):
    from_port: int | None = Field(default=None, alias="From")
    to_port: int | None = Field(default=None, alias="To")


class NetworkAclEntry(PropertyView):
    rule_number: int | None = None
    protocol: str | None = None
    rule_action: str | None = None
    egress: bool | None = None
    cidr_block: str | None = None
    ipv6_cidr_block: str | None = None
    port_range: PortRange | None = None


class NetworkAclProperties(PropertyView):
    vpc_id: str | None = None
    associations: list[SubnetAssociation] | None = None
    entries: list[NetworkAclEntry] | None = None


class NetworkAclMapper:
    """Maps network ACLs to ``aws_network_acl`` with inline rules."""

    aws_type = "AWS::EC2::NetworkAcl"
    terraform_type = "aws_network_acl"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, NetworkAclProperties)
        attributes: dict[str, Value] = {}

        if props.vpc_id:
            attributes["vpc_id"] = _vpc_ref(context, resource, props.vpc_id)

        subnet_ids = [a.subnet_id for a in props.associations or [] if a.subnet_id]
        if subnet_ids:
            set_attribute(attributes, "subnet_ids", subnet_ids)

        ingress: list[Value] = []
        egress: list[Value] = []
        for entry in props.entries or []:
            rule: dict[str, object] = {
                "rule_no": entry.rule_number,
                "protocol": entry.protocol,
                "action": entry.rule_action,
                "cidr_block": entry.cidr_block,
                "ipv6_cidr_block": entry.ipv6_cidr_block,
            }
            if entry.port_range is not None:
                rule["from_port"] = entry.port_range.from_port or 0
                rule["to_port"] = entry.port_range.to_port or 0
            (egress if entry.egress else ingress).append(block(rule))

        if ingress:
            attributes["ingress"] = list_value(ingress)
        if egress:
            attributes["egress"] = list_value(egress)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


def get_vpc_mappers() -> list[ResourceMapper]:
    """Return one instance of every networking mapper."""
    return [
        VPCMapper(),
        SubnetMapper(),
        RouteTableMapper(),
        InternetGatewayMapper(),
        NatGatewayMapper(),
        VPCEndpointMapper(),
        NetworkAclMapper(),
    ]
