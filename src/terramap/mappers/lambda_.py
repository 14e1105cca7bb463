"""
Serverless mappers: functions, layers, event source mappings and
permissions.

Deployment packages cannot be downloaded as part of discovery, so the code
location becomes an input variable and the lifecycle ignores it. Function
environment values whose keys look secret are externalized through the
mapping context.
"""

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    is_sensitive_field,
    output,
    role_ref,
    set_attribute,
)
from terramap.models import (
    DiscoveredResource,
    GeneratedOutput,
    GeneratedResource,
    GeneratedVariable,
    Lifecycle,
)
from terramap.values import Value, block, literal, list_value, mapping, reference


class EnvironmentView(PropertyView):
    variables: dict[str, str] | None = None


class VpcConfigView(PropertyView):
    subnet_ids: list[str] | None = None
    security_group_ids: list[str] | None = None


class DeadLetterConfigView(PropertyView):
    target_arn: str | None = None


class TracingConfigView(PropertyView):
    mode: str | None = None


class EphemeralStorageView(PropertyView):
    size: int | None = None


class FunctionProperties(PropertyView):
    function_name: str | None = None
    runtime: str | None = None
    handler: str | None = None
    role: str | None = None
    memory_size: int | None = None
    timeout: int | None = None
    description: str | None = None
    package_type: str | None = None
    architectures: list[str] | None = None
    environment: EnvironmentView | None = None
    vpc_config: VpcConfigView | None = None
    dead_letter_config: DeadLetterConfigView | None = None
    tracing_config: TracingConfigView | None = None
    layers: list[str] | None = None
    reserved_concurrent_executions: int | None = None
    ephemeral_storage: EphemeralStorageView | None = None


class LambdaFunctionMapper:
    """Maps Lambda functions to ``aws_lambda_function``."""

    aws_type = "AWS::Lambda::Function"
    terraform_type = "aws_lambda_function"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, FunctionProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "function_name", props.function_name)
        set_attribute(attributes, "runtime", props.runtime)
        set_attribute(attributes, "handler", props.handler)
        if props.role:
            attributes["role"] = role_ref(context, props.role)
        set_attribute(attributes, "memory_size", props.memory_size or None)
        set_attribute(attributes, "timeout", props.timeout or None)
        set_attribute(attributes, "description", props.description or None)

        code_var = context.add_variable(
            GeneratedVariable(
                name=f"lambda_{name}_filename",
                type="string",
                description=f"Path to deployment package for Lambda function {name}",
                default=literal("placeholder.zip"),
            )
        )
        attributes["filename"] = reference(f"var.{code_var}")

        set_attribute(attributes, "package_type", props.package_type)
        set_attribute(attributes, "architectures", props.architectures)

        env_vars = props.environment.variables if props.environment else None
        if env_vars:
            attributes["environment"] = block(
                {"variables": self._environment_variables(name, env_vars, context)}
            )

        vpc = props.vpc_config
        if vpc is not None and (vpc.subnet_ids or vpc.security_group_ids):
            attributes["vpc_config"] = block(
                {
                    "subnet_ids": vpc.subnet_ids,
                    "security_group_ids": vpc.security_group_ids,
                }
            )

        if props.dead_letter_config and props.dead_letter_config.target_arn:
            attributes["dead_letter_config"] = block(
                {"target_arn": props.dead_letter_config.target_arn}
            )

        if props.tracing_config and props.tracing_config.mode:
            attributes["tracing_config"] = block({"mode": props.tracing_config.mode})

        set_attribute(attributes, "layers", props.layers)
        set_attribute(
            attributes,
            "reserved_concurrent_executions",
            props.reserved_concurrent_executions,
        )

        if props.ephemeral_storage and props.ephemeral_storage.size:
            attributes["ephemeral_storage"] = block({"size": props.ephemeral_storage.size})

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["filename", "source_code_hash"]),
            source=resource,
        )

    def _environment_variables(
        self,
        name: str,
        variables: dict[str, str],
        context: MappingContext,
    ) -> Value:
        values: dict[str, object] = {}
        for key, value in variables.items():
            if is_sensitive_field(key):
                values[key] = context.mark_sensitive(
                    f"{name}_{key}",
                    value,
                    f"Environment variable {key} of Lambda function {name}",
                )
            else:
                values[key] = value
        return mapping(values)

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, FunctionProperties)
        return props.function_name or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, FunctionProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.function_name or resource.id
        return [
            output(name, address, "arn", f"ARN of Lambda function {label}"),
            output(name, address, "invoke_arn", f"Invoke ARN of Lambda function {label}"),
        ]


class LayerVersionProperties(PropertyView):
    layer_name: str | None = None
    description: str | None = None
    compatible_runtimes: list[str] | None = None
    compatible_architectures: list[str] | None = None
    license_info: str | None = None


class LambdaLayerMapper:
    """Maps layer versions to ``aws_lambda_layer_version``."""

    aws_type = "AWS::Lambda::LayerVersion"
    terraform_type = "aws_lambda_layer_version"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, LayerVersionProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "layer_name", props.layer_name)
        set_attribute(attributes, "description", props.description or None)
        set_attribute(attributes, "compatible_runtimes", props.compatible_runtimes)
        set_attribute(attributes, "compatible_architectures", props.compatible_architectures)
        set_attribute(attributes, "license_info", props.license_info)

        code_var = context.add_variable(
            GeneratedVariable(
                name=f"layer_{name}_filename",
                type="string",
                description=f"Path to deployment package for Lambda layer {name}",
                default=literal("layer_placeholder.zip"),
            )
        )
        attributes["filename"] = reference(f"var.{code_var}")

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            lifecycle=Lifecycle(ignore_changes=["filename", "source_code_hash"]),
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.arn or resource.id


class OnFailureView(PropertyView):
    destination: str | None = None


class DestinationConfigView(PropertyView):
    on_failure: OnFailureView | None = None


class FilterView(PropertyView):
    pattern: str | None = None


class FilterCriteriaView(PropertyView):
    filters: list[FilterView] | None = None


class EventSourceMappingProperties(PropertyView):
    event_source_arn: str | None = None
    function_arn: str | None = None
    state: str | None = None
    batch_size: int | None = None
    maximum_batching_window_in_seconds: int | None = None
    starting_position: str | None = None
    parallelization_factor: int | None = None
    maximum_record_age_in_seconds: int | None = None
    maximum_retry_attempts: int | None = None
    bisect_batch_on_function_error: bool | None = None
    destination_config: DestinationConfigView | None = None
    filter_criteria: FilterCriteriaView | None = None


class LambdaEventSourceMappingMapper:
    """Maps event source mappings to ``aws_lambda_event_source_mapping``."""

    aws_type = "AWS::Lambda::EventSourceMapping"
    terraform_type = "aws_lambda_event_source_mapping"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, EventSourceMappingProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "event_source_arn", props.event_source_arn)
        if props.function_arn:
            attributes["function_name"] = _function_ref(context, props.function_arn)
        if props.state:
            set_attribute(attributes, "enabled", props.state == "Enabled")
        set_attribute(attributes, "batch_size", props.batch_size or None)
        set_attribute(
            attributes,
            "maximum_batching_window_in_seconds",
            props.maximum_batching_window_in_seconds or None,
        )
        set_attribute(attributes, "starting_position", props.starting_position)
        set_attribute(attributes, "parallelization_factor", props.parallelization_factor or None)
        set_attribute(
            attributes,
            "maximum_record_age_in_seconds",
            props.maximum_record_age_in_seconds or None,
        )
        set_attribute(attributes, "maximum_retry_attempts", props.maximum_retry_attempts)
        set_attribute(
            attributes,
            "bisect_batch_on_function_error",
            props.bisect_batch_on_function_error,
        )

        destination = props.destination_config
        if destination and destination.on_failure and destination.on_failure.destination:
            attributes["destination_config"] = block(
                {"on_failure": block({"destination_arn": destination.on_failure.destination})}
            )

        filters = [
            block({"pattern": f.pattern})
            for f in (props.filter_criteria.filters if props.filter_criteria else None) or []
            if f.pattern
        ]
        if filters:
            attributes["filter_criteria"] = block({"filter": list_value(filters)})

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


def _function_ref(context: MappingContext, function_arn: str) -> Value:
    ref = context.get_resource_reference(function_arn, "arn")
    return ref if ref is not None else literal(function_arn)


class PermissionProperties(PropertyView):
    statement_id: str | None = None
    action: str | None = None
    function_name: str | None = None
    principal: str | None = None
    source_arn: str | None = None
    source_account: str | None = None
    qualifier: str | None = None


class LambdaPermissionMapper:
    """Maps resource policy statements to ``aws_lambda_permission``."""

    aws_type = "AWS::Lambda::Permission"
    terraform_type = "aws_lambda_permission"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, PermissionProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "statement_id", props.statement_id)
        set_attribute(attributes, "action", props.action)
        set_attribute(attributes, "function_name", props.function_name)
        set_attribute(attributes, "principal", props.principal)
        set_attribute(attributes, "source_arn", props.source_arn)
        set_attribute(attributes, "source_account", props.source_account)
        set_attribute(attributes, "qualifier", props.qualifier)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, PermissionProperties)
        if props.function_name and props.statement_id:
            return f"{props.function_name}/{props.statement_id}"
        return resource.id


def get_lambda_mappers() -> list[ResourceMapper]:
    """Return one instance of every serverless mapper."""
    return [
        LambdaFunctionMapper(),
        LambdaLayerMapper(),
        LambdaEventSourceMappingMapper(),
        LambdaPermissionMapper(),
    ]
