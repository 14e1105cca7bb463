"""
Container orchestration mappers for ECS and EKS.

ECS container definitions are emitted as JSON. When a container carries an
environment entry whose name looks secret, the value is externalized and the
definitions are wrapped in ``jsonencode(...)`` so the variable interpolation
is evaluated by Terraform instead of being written as text.
"""

import copy
import json
from typing import Any

from terramap.context import MappingContext
from terramap.logging_config import get_logger, log_with_context
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    is_sensitive_field,
    output,
    related_ref,
    resource_ref_or_literal,
    role_ref,
    set_attribute,
)
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource, Lifecycle
from terramap.values import Value, block, expression, list_value, literal

logger = get_logger(__name__)


# =============================================================================
# ECS
# =============================================================================


class ClusterSetting(PropertyView):
    name: str | None = None
    value: str | None = None


class ExecLogConfiguration(PropertyView):
    cloud_watch_log_group_name: str | None = None
    s3_bucket_name: str | None = None
    s3_key_prefix: str | None = None


class ExecuteCommandConfiguration(PropertyView):
    kms_key_id: str | None = None
    logging: str | None = None
    log_configuration: ExecLogConfiguration | None = None


class ClusterConfiguration(PropertyView):
    execute_command_configuration: ExecuteCommandConfiguration | None = None


class ECSClusterProperties(PropertyView):
    cluster_name: str | None = None
    settings: list[ClusterSetting] | None = None
    configuration: ClusterConfiguration | None = None


class ECSClusterMapper:
    """Maps ECS clusters to ``aws_ecs_cluster``."""

    aws_type = "AWS::ECS::Cluster"
    terraform_type = "aws_ecs_cluster"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, ECSClusterProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.cluster_name)

        insights = next(
            (s for s in props.settings or [] if s.name == "containerInsights"),
            None,
        )
        if insights is not None and insights.value:
            attributes["setting"] = block({"name": "containerInsights", "value": insights.value})

        exec_config = (
            props.configuration.execute_command_configuration if props.configuration else None
        )
        if exec_config is not None:
            exec_attrs: dict[str, object] = {
                "kms_key_id": exec_config.kms_key_id,
                "logging": exec_config.logging,
            }
            log_config = exec_config.log_configuration
            if log_config is not None:
                log_block = block(
                    {
                        "cloud_watch_log_group_name": log_config.cloud_watch_log_group_name,
                        "s3_bucket_name": log_config.s3_bucket_name,
                        "s3_key_prefix": log_config.s3_key_prefix,
                    }
                )
                if log_block.attributes:
                    exec_attrs["log_configuration"] = log_block
            exec_block = block(exec_attrs)
            if exec_block.attributes:
                attributes["configuration"] = block({"execute_command_configuration": exec_block})

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, ECSClusterProperties).cluster_name or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, ECSClusterProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.cluster_name or resource.id
        return [
            output(name, address, "arn", f"ARN of ECS cluster {label}"),
            output(name, address, "id", f"ID of ECS cluster {label}"),
        ]


class AwsVpcConfiguration(PropertyView):
    subnets: list[str] | None = None
    security_groups: list[str] | None = None
    assign_public_ip: str | None = None


class NetworkConfiguration(PropertyView):
    awsvpc_configuration: AwsVpcConfiguration | None = None


class LoadBalancerView(PropertyView):
    target_group_arn: str | None = None
    container_name: str | None = None
    container_port: int | None = None


class ServiceRegistryView(PropertyView):
    registry_arn: str | None = None
    port: int | None = None
    container_name: str | None = None
    container_port: int | None = None


class DeploymentConfiguration(PropertyView):
    maximum_percent: int | None = None
    minimum_healthy_percent: int | None = None


class ECSServiceProperties(PropertyView):
    service_name: str | None = None
    cluster_arn: str | None = None
    task_definition: str | None = None
    desired_count: int | None = None
    launch_type: str | None = None
    platform_version: str | None = None
    scheduling_strategy: str | None = None
    network_configuration: NetworkConfiguration | None = None
    load_balancers: list[LoadBalancerView] | None = None
    service_registries: list[ServiceRegistryView] | None = None
    deployment_configuration: DeploymentConfiguration | None = None
    enable_execute_command: bool | None = None
    health_check_grace_period_seconds: int | None = None


def _non_empty_blocks(items: list[dict[str, object]]) -> list[Value]:
    blocks = [block(item) for item in items]
    return [b for b in blocks if b.attributes]


class ECSServiceMapper:
    """
    Maps ECS services to ``aws_ecs_service``.

    The task definition revision is usually rolled by a deployment pipeline,
    so the lifecycle ignores it.
    """

    aws_type = "AWS::ECS::Service"
    terraform_type = "aws_ecs_service"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, ECSServiceProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.service_name)
        if props.cluster_arn:
            attributes["cluster"] = resource_ref_or_literal(
                context, props.cluster_arn, props.cluster_arn, attribute="id"
            )
        set_attribute(attributes, "task_definition", props.task_definition)
        set_attribute(attributes, "desired_count", props.desired_count)
        set_attribute(attributes, "launch_type", props.launch_type)
        set_attribute(attributes, "platform_version", props.platform_version)
        set_attribute(attributes, "scheduling_strategy", props.scheduling_strategy)

        awsvpc = (
            props.network_configuration.awsvpc_configuration
            if props.network_configuration
            else None
        )
        if awsvpc is not None:
            assign_public_ip = (
                awsvpc.assign_public_ip == "ENABLED" if awsvpc.assign_public_ip else None
            )
            attributes["network_configuration"] = block(
                {
                    "subnets": awsvpc.subnets,
                    "security_groups": awsvpc.security_groups,
                    "assign_public_ip": assign_public_ip,
                }
            )

        load_balancers = _non_empty_blocks(
            [
                {
                    "target_group_arn": lb.target_group_arn,
                    "container_name": lb.container_name,
                    "container_port": lb.container_port,
                }
                for lb in props.load_balancers or []
            ]
        )
        if load_balancers:
            attributes["load_balancer"] = list_value(load_balancers)

        registries = _non_empty_blocks(
            [
                {
                    "registry_arn": reg.registry_arn,
                    "port": reg.port,
                    "container_name": reg.container_name,
                    "container_port": reg.container_port,
                }
                for reg in props.service_registries or []
            ]
        )
        if registries:
            attributes["service_registries"] = list_value(registries)

        deploy = props.deployment_configuration
        if deploy is not None:
            deploy_block = block(
                {
                    "maximum_percent": deploy.maximum_percent,
                    "minimum_healthy_percent": deploy.minimum_healthy_percent,
                }
            )
            if deploy_block.attributes:
                attributes["deployment_configuration"] = deploy_block

        set_attribute(attributes, "enable_execute_command", props.enable_execute_command)
        set_attribute(
            attributes,
            "health_check_grace_period_seconds",
            props.health_check_grace_period_seconds,
        )

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["task_definition"]),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, ECSServiceProperties)
        cluster_name = (props.cluster_arn or "").rsplit("/", 1)[-1] or "default"
        return f"{cluster_name}/{props.service_name or resource.id}"


class HostVolume(PropertyView):
    source_path: str | None = None


class EfsVolumeConfiguration(PropertyView):
    file_system_id: str | None = None
    root_directory: str | None = None
    transit_encryption: str | None = None


class TaskVolume(PropertyView):
    name: str | None = None
    host: HostVolume | None = None
    efs_volume_configuration: EfsVolumeConfiguration | None = None


class RuntimePlatform(PropertyView):
    cpu_architecture: str | None = None
    operating_system_family: str | None = None


class TaskDefinitionProperties(PropertyView):
    family: str | None = None
    task_role_arn: str | None = None
    execution_role_arn: str | None = None
    network_mode: str | None = None
    requires_compatibilities: list[str] | None = None
    cpu: str | None = None
    memory: str | None = None
    container_definitions: list[dict[str, Any]] | None = None
    volumes: list[TaskVolume] | None = None
    runtime_platform: RuntimePlatform | None = None


class ECSTaskDefinitionMapper:
    """Maps task definition revisions to ``aws_ecs_task_definition``."""

    aws_type = "AWS::ECS::TaskDefinition"
    terraform_type = "aws_ecs_task_definition"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, TaskDefinitionProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "family", props.family)
        if props.task_role_arn:
            attributes["task_role_arn"] = role_ref(context, props.task_role_arn)
        if props.execution_role_arn:
            attributes["execution_role_arn"] = role_ref(context, props.execution_role_arn)
        set_attribute(attributes, "network_mode", props.network_mode)
        set_attribute(attributes, "requires_compatibilities", props.requires_compatibilities)
        set_attribute(attributes, "cpu", props.cpu)
        set_attribute(attributes, "memory", props.memory)

        if props.container_definitions is not None:
            attributes["container_definitions"] = self._container_definitions(
                name, props.container_definitions, context
            )

        volumes = []
        for vol in props.volumes or []:
            efs = vol.efs_volume_configuration
            volumes.append(
                {
                    "name": vol.name,
                    "host_path": vol.host.source_path if vol.host else None,
                    "efs_volume_configuration": block(
                        {
                            "file_system_id": efs.file_system_id,
                            "root_directory": efs.root_directory,
                            "transit_encryption": efs.transit_encryption,
                        }
                    )
                    if efs is not None
                    else None,
                }
            )
        volume_blocks = _non_empty_blocks(volumes)
        if volume_blocks:
            attributes["volume"] = list_value(volume_blocks)

        runtime = props.runtime_platform
        if runtime is not None:
            runtime_block = block(
                {
                    "cpu_architecture": runtime.cpu_architecture,
                    "operating_system_family": runtime.operating_system_family,
                }
            )
            if runtime_block.attributes:
                attributes["runtime_platform"] = runtime_block

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            source=resource,
        )

    def _container_definitions(
        self,
        name: str,
        definitions: list[dict[str, Any]],
        context: MappingContext,
    ) -> Value:
        """
        Encode container definitions, externalizing secret environment values.

        Returns:
            A JSON string literal, or a ``jsonencode(...)`` expression when at
            least one value was replaced by a variable interpolation
        """
        encoded = copy.deepcopy(definitions)
        externalized = 0

        for container in encoded:
            if not isinstance(container, dict):
                continue
            container_name = str(container.get("name") or "container")
            environment = container.get("environment")
            if not isinstance(environment, list):
                continue
            for entry in environment:
                if not isinstance(entry, dict):
                    continue
                env_name = entry.get("name")
                if not isinstance(env_name, str) or not is_sensitive_field(env_name):
                    continue
                ref = context.mark_sensitive(
                    f"{name}_{container_name}_{env_name}",
                    entry.get("value"),
                    f"Environment variable {env_name} of container {container_name}",
                )
                entry["value"] = f"${{{ref.address}}}"
                externalized += 1

        if externalized:
            log_with_context(
                logger,
                "debug",
                "Externalized container environment values",
                resource_name=name,
                count=externalized,
            )
            return expression(f"jsonencode({json.dumps(encoded, indent=2)})")

        return literal(json.dumps(encoded, indent=2))

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.arn or resource.id


# =============================================================================
# EKS
# =============================================================================


class ResourcesVpcConfig(PropertyView):
    subnet_ids: list[str] | None = None
    security_group_ids: list[str] | None = None
    endpoint_public_access: bool | None = None
    endpoint_private_access: bool | None = None
    public_access_cidrs: list[str] | None = None


class EncryptionProvider(PropertyView):
    key_arn: str | None = None


class EncryptionConfig(PropertyView):
    provider: EncryptionProvider | None = None
    resources: list[str] | None = None


class KubernetesNetworkConfig(PropertyView):
    service_ipv4_cidr: str | None = None
    ip_family: str | None = None


class ClusterLoggingEntry(PropertyView):
    types: list[str] | None = None
    enabled: bool | None = None


class ClusterLogging(PropertyView):
    cluster_logging: list[ClusterLoggingEntry] | None = None


class EKSClusterProperties(PropertyView):
    name: str | None = None
    role_arn: str | None = None
    version: str | None = None
    resources_vpc_config: ResourcesVpcConfig | None = None
    encryption_config: list[EncryptionConfig] | None = None
    kubernetes_network_config: KubernetesNetworkConfig | None = None
    logging: ClusterLogging | None = None


class EKSClusterMapper:
    """Maps EKS control planes to ``aws_eks_cluster``."""

    aws_type = "AWS::EKS::Cluster"
    terraform_type = "aws_eks_cluster"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, EKSClusterProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.name)
        if props.role_arn:
            attributes["role_arn"] = role_ref(context, props.role_arn)
        set_attribute(attributes, "version", props.version)

        vpc = props.resources_vpc_config
        if vpc is not None:
            attributes["vpc_config"] = block(
                {
                    "subnet_ids": vpc.subnet_ids,
                    "security_group_ids": vpc.security_group_ids,
                    "endpoint_public_access": vpc.endpoint_public_access,
                    "endpoint_private_access": vpc.endpoint_private_access,
                    "public_access_cidrs": vpc.public_access_cidrs,
                }
            )

        # only the first encryption config is supported by the provider
        if props.encryption_config:
            enc = props.encryption_config[0]
            key_arn = enc.provider.key_arn if enc.provider else None
            enc_block = block(
                {
                    "provider": block({"key_arn": key_arn}) if key_arn else None,
                    "resources": enc.resources,
                }
            )
            if enc_block.attributes:
                attributes["encryption_config"] = enc_block

        k8s_net = props.kubernetes_network_config
        if k8s_net is not None:
            net_block = block(
                {
                    "service_ipv4_cidr": k8s_net.service_ipv4_cidr,
                    "ip_family": k8s_net.ip_family,
                }
            )
            if net_block.attributes:
                attributes["kubernetes_network_config"] = net_block

        if props.logging is not None:
            enabled_types = [
                log_type
                for entry in props.logging.cluster_logging or []
                if entry.enabled
                for log_type in entry.types or []
            ]
            set_attribute(attributes, "enabled_cluster_log_types", enabled_types or None)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, EKSClusterProperties).name or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, EKSClusterProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.name or resource.id
        return [
            output(name, address, "endpoint", f"Endpoint of EKS cluster {label}"),
            output(name, address, "arn", f"ARN of EKS cluster {label}"),
            GeneratedOutput(
                name=f"{name}_certificate_authority",
                value=f"{address}.certificate_authority[0].data",
                description=f"Certificate authority data of EKS cluster {label}",
            ),
        ]


class ScalingConfig(PropertyView):
    min_size: int | None = None
    max_size: int | None = None
    desired_size: int | None = None


class Taint(PropertyView):
    key: str | None = None
    value: str | None = None
    effect: str | None = None


class RemoteAccess(PropertyView):
    ec2_ssh_key: str | None = None
    source_security_groups: list[str] | None = None


class NodegroupProperties(PropertyView):
    cluster_name: str | None = None
    nodegroup_name: str | None = None
    node_role: str | None = None
    subnets: list[str] | None = None
    scaling_config: ScalingConfig | None = None
    instance_types: list[str] | None = None
    ami_type: str | None = None
    capacity_type: str | None = None
    disk_size: int | None = None
    labels: dict[str, str] | None = None
    taints: list[Taint] | None = None
    remote_access: RemoteAccess | None = None


class EKSNodeGroupMapper:
    """Maps managed node groups to ``aws_eks_node_group``."""

    aws_type = "AWS::EKS::Nodegroup"
    terraform_type = "aws_eks_node_group"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, NodegroupProperties)
        attributes: dict[str, Value] = {}

        if props.cluster_name:
            attributes["cluster_name"] = related_ref(
                context, resource, "eks", "cluster", props.cluster_name, attribute="name"
            )
        set_attribute(attributes, "node_group_name", props.nodegroup_name)
        if props.node_role:
            attributes["node_role_arn"] = role_ref(context, props.node_role)
        set_attribute(attributes, "subnet_ids", props.subnets)

        if props.scaling_config is not None:
            scaling = props.scaling_config
            attributes["scaling_config"] = block(
                {
                    "min_size": scaling.min_size,
                    "max_size": scaling.max_size,
                    "desired_size": scaling.desired_size,
                }
            )

        set_attribute(attributes, "instance_types", props.instance_types)
        set_attribute(attributes, "ami_type", props.ami_type)
        set_attribute(attributes, "capacity_type", props.capacity_type)
        set_attribute(attributes, "disk_size", props.disk_size or None)
        set_attribute(attributes, "labels", props.labels)

        taints = _non_empty_blocks(
            [{"key": t.key, "value": t.value, "effect": t.effect} for t in props.taints or []]
        )
        if taints:
            attributes["taint"] = list_value(taints)

        remote = props.remote_access
        if remote is not None:
            remote_block = block(
                {
                    "ec2_ssh_key": remote.ec2_ssh_key,
                    "source_security_group_ids": remote.source_security_groups,
                }
            )
            if remote_block.attributes:
                attributes["remote_access"] = remote_block

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, NodegroupProperties)
        if props.cluster_name and props.nodegroup_name:
            return f"{props.cluster_name}:{props.nodegroup_name}"
        return resource.id


def get_container_mappers() -> list[ResourceMapper]:
    """Return one instance of every ECS and EKS mapper."""
    return [
        ECSClusterMapper(),
        ECSServiceMapper(),
        ECSTaskDefinitionMapper(),
        EKSClusterMapper(),
        EKSNodeGroupMapper(),
    ]
