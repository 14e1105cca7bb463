"""
Relational database mappers.

Master credentials are never read back from the provider. The username
becomes a plain input variable and the password a sensitive one; when the
discovery record does carry a password it is externalized through the
context instead of being written into the resource.
"""

from pydantic import Field

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    output,
    set_attribute,
)
from terramap.models import (
    DiscoveredResource,
    GeneratedOutput,
    GeneratedResource,
    GeneratedVariable,
    Lifecycle,
)
from terramap.values import Reference, Value, block, list_value, reference


def _credential_refs(
    context: MappingContext,
    prefix: str,
    label: str,
    master_username: str | None,
    master_password: str | None,
) -> tuple[Reference | None, Reference]:
    username_ref = None
    if master_username:
        username_var = context.add_variable(
            GeneratedVariable(
                name=f"{prefix}_username",
                type="string",
                description=f"Master username for {label}",
                sensitive=False,
            )
        )
        username_ref = reference(f"var.{username_var}")

    if master_password:
        return username_ref, context.mark_sensitive(
            f"{prefix}_password",
            master_password,
            f"Master password for {label}",
        )

    password_var = context.add_variable(
        GeneratedVariable(
            name=f"{prefix}_password",
            type="string",
            description=f"Master password for {label}",
            sensitive=True,
        )
    )
    return username_ref, reference(f"var.{password_var}")


class VpcSecurityGroupMembership(PropertyView):
    vpc_security_group_id: str | None = None


class DBInstanceProperties(PropertyView):
    db_instance_identifier: str | None = None
    db_instance_class: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    allocated_storage: int | None = None
    storage_type: str | None = None
    iops: int | None = None
    storage_encrypted: bool | None = None
    kms_key_id: str | None = None
    db_subnet_group_name: str | None = None
    vpc_security_groups: list[VpcSecurityGroupMembership] | None = None
    publicly_accessible: bool | None = None
    port: int | None = None
    db_name: str | None = None
    master_username: str | None = None
    master_user_password: str | None = None
    db_parameter_group_name: str | None = None
    option_group_name: str | None = None
    backup_retention_period: int | None = None
    preferred_backup_window: str | None = None
    preferred_maintenance_window: str | None = None
    multi_az: bool | None = Field(default=None, alias="multiAZ")
    auto_minor_version_upgrade: bool | None = None
    performance_insights_enabled: bool | None = None
    performance_insights_kms_key_id: str | None = Field(
        default=None,
        alias="performanceInsightsKMSKeyId",
    )
    performance_insights_retention_period: int | None = None
    monitoring_interval: int | None = None
    monitoring_role_arn: str | None = None
    deletion_protection: bool | None = None


class RDSInstanceMapper:
    """Maps RDS instances to ``aws_db_instance``."""

    aws_type = "AWS::RDS::DBInstance"
    terraform_type = "aws_db_instance"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, DBInstanceProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "identifier", props.db_instance_identifier)
        set_attribute(attributes, "instance_class", props.db_instance_class)
        set_attribute(attributes, "engine", props.engine)
        set_attribute(attributes, "engine_version", props.engine_version)
        set_attribute(attributes, "allocated_storage", props.allocated_storage or None)
        set_attribute(attributes, "storage_type", props.storage_type)
        set_attribute(attributes, "iops", props.iops or None)
        if props.storage_encrypted:
            set_attribute(attributes, "storage_encrypted", True)
        set_attribute(attributes, "kms_key_id", props.kms_key_id)
        set_attribute(attributes, "db_subnet_group_name", props.db_subnet_group_name)

        group_ids = [
            group.vpc_security_group_id
            for group in props.vpc_security_groups or []
            if group.vpc_security_group_id
        ]
        if group_ids:
            attributes["vpc_security_group_ids"] = list_value(group_ids)

        set_attribute(attributes, "publicly_accessible", props.publicly_accessible)
        set_attribute(attributes, "port", props.port or None)
        set_attribute(attributes, "db_name", props.db_name)

        username, password = _credential_refs(
            context,
            f"db_{name}",
            f"RDS instance {name}",
            props.master_username,
            props.master_user_password,
        )
        if username is not None:
            attributes["username"] = username
        attributes["password"] = password

        set_attribute(attributes, "parameter_group_name", props.db_parameter_group_name)
        set_attribute(attributes, "option_group_name", props.option_group_name)
        set_attribute(attributes, "backup_retention_period", props.backup_retention_period)
        set_attribute(attributes, "backup_window", props.preferred_backup_window)
        set_attribute(attributes, "maintenance_window", props.preferred_maintenance_window)
        set_attribute(attributes, "multi_az", props.multi_az)
        set_attribute(attributes, "auto_minor_version_upgrade", props.auto_minor_version_upgrade)
        if props.performance_insights_enabled:
            set_attribute(attributes, "performance_insights_enabled", True)
        set_attribute(
            attributes,
            "performance_insights_kms_key_id",
            props.performance_insights_kms_key_id,
        )
        set_attribute(
            attributes,
            "performance_insights_retention_period",
            props.performance_insights_retention_period or None,
        )
        set_attribute(attributes, "monitoring_interval", props.monitoring_interval or None)
        set_attribute(attributes, "monitoring_role_arn", props.monitoring_role_arn)
        set_attribute(attributes, "deletion_protection", props.deletion_protection)
        set_attribute(attributes, "skip_final_snapshot", True)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["password"]),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, DBInstanceProperties)
        return props.db_instance_identifier or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, DBInstanceProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.db_instance_identifier or resource.id
        return [
            output(name, address, "endpoint", f"Endpoint of RDS instance {label}"),
            output(name, address, "arn", f"ARN of RDS instance {label}"),
        ]


class DBClusterProperties(PropertyView):
    db_cluster_identifier: str | None = None
    engine: str | None = None
    engine_version: str | None = None
    engine_mode: str | None = None
    database_name: str | None = None
    master_username: str | None = None
    master_user_password: str | None = None
    db_subnet_group_name: str | None = None
    vpc_security_group_ids: list[str] | None = None
    port: int | None = None
    db_cluster_parameter_group_name: str | None = None
    storage_encrypted: bool | None = None
    kms_key_id: str | None = None
    backup_retention_period: int | None = None
    preferred_backup_window: str | None = None
    preferred_maintenance_window: str | None = None
    deletion_protection: bool | None = None
    iam_database_authentication_enabled: bool | None = None


class RDSClusterMapper:
    """Maps Aurora clusters to ``aws_rds_cluster``."""

    aws_type = "AWS::RDS::DBCluster"
    terraform_type = "aws_rds_cluster"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, DBClusterProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "cluster_identifier", props.db_cluster_identifier)
        set_attribute(attributes, "engine", props.engine)
        set_attribute(attributes, "engine_version", props.engine_version)
        set_attribute(attributes, "engine_mode", props.engine_mode)
        set_attribute(attributes, "database_name", props.database_name)

        username, password = _credential_refs(
            context,
            f"cluster_{name}",
            f"Aurora cluster {name}",
            props.master_username,
            props.master_user_password,
        )
        if username is not None:
            attributes["master_username"] = username
        attributes["master_password"] = password

        set_attribute(attributes, "db_subnet_group_name", props.db_subnet_group_name)
        set_attribute(attributes, "vpc_security_group_ids", props.vpc_security_group_ids)
        set_attribute(attributes, "port", props.port or None)
        set_attribute(
            attributes,
            "db_cluster_parameter_group_name",
            props.db_cluster_parameter_group_name,
        )
        if props.storage_encrypted:
            set_attribute(attributes, "storage_encrypted", True)
        set_attribute(attributes, "kms_key_id", props.kms_key_id)
        set_attribute(attributes, "backup_retention_period", props.backup_retention_period)
        set_attribute(attributes, "preferred_backup_window", props.preferred_backup_window)
        set_attribute(
            attributes,
            "preferred_maintenance_window",
            props.preferred_maintenance_window,
        )
        set_attribute(attributes, "deletion_protection", props.deletion_protection)
        set_attribute(
            attributes,
            "iam_database_authentication_enabled",
            props.iam_database_authentication_enabled,
        )
        set_attribute(attributes, "skip_final_snapshot", True)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["master_password"]),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, DBClusterProperties)
        return props.db_cluster_identifier or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, DBClusterProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.db_cluster_identifier or resource.id
        return [
            output(name, address, "endpoint", f"Writer endpoint of Aurora cluster {label}"),
            output(
                name,
                address,
                "reader_endpoint",
                f"Reader endpoint of Aurora cluster {label}",
            ),
        ]


class SubnetRef(PropertyView):
    subnet_identifier: str | None = None


class DBSubnetGroupProperties(PropertyView):
    db_subnet_group_name: str | None = None
    db_subnet_group_description: str | None = None
    subnets: list[SubnetRef] | None = None


class RDSSubnetGroupMapper:
    """Maps DB subnet groups to ``aws_db_subnet_group``."""

    aws_type = "AWS::RDS::DBSubnetGroup"
    terraform_type = "aws_db_subnet_group"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, DBSubnetGroupProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.db_subnet_group_name)
        set_attribute(attributes, "description", props.db_subnet_group_description)

        subnet_ids = [s.subnet_identifier for s in props.subnets or [] if s.subnet_identifier]
        if subnet_ids:
            set_attribute(attributes, "subnet_ids", subnet_ids)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, DBSubnetGroupProperties)
        return props.db_subnet_group_name or resource.id


class DBParameter(PropertyView):
    parameter_name: str | None = None
    parameter_value: str | None = None
    apply_method: str | None = None


class DBParameterGroupProperties(PropertyView):
    db_parameter_group_name: str | None = None
    db_parameter_group_family: str | None = None
    description: str | None = None
    parameters: list[DBParameter] | None = None


class RDSParameterGroupMapper:
    """Maps DB parameter groups to ``aws_db_parameter_group``."""

    aws_type = "AWS::RDS::DBParameterGroup"
    terraform_type = "aws_db_parameter_group"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, DBParameterGroupProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.db_parameter_group_name)
        set_attribute(attributes, "family", props.db_parameter_group_family)
        set_attribute(attributes, "description", props.description)

        parameters: list[Value] = [
            block(
                {
                    "name": param.parameter_name,
                    "value": param.parameter_value,
                    "apply_method": param.apply_method or None,
                }
            )
            for param in props.parameters or []
            if param.parameter_name and param.parameter_value is not None
        ]
        if parameters:
            attributes["parameter"] = list_value(parameters)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, DBParameterGroupProperties)
        return props.db_parameter_group_name or resource.id


def get_rds_mappers() -> list[ResourceMapper]:
    """Return one instance of every relational database mapper."""
    return [
        RDSInstanceMapper(),
        RDSClusterMapper(),
        RDSSubnetGroupMapper(),
        RDSParameterGroupMapper(),
    ]
