"""
Generation pass: discovered resources in, Terraform definitions out.

``TerraformGenerator`` walks a batch of discovered resources in order and
dispatches each one to its registered mapper. A resource without a mapper,
a mapper that declines, and a mapper that raises all end up in
``GenerationResult.unmapped`` with a warning; the rest of the batch is
unaffected. A record that is not a valid discovered resource is listed in
``GenerationResult.rejected`` instead. Every run gets its own
``MappingContext`` and run identifier.

Usage:
    generator = TerraformGenerator()
    result = generator.generate(resources)
    for warning in result.warnings:
        print(warning)
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from terramap.config import Settings, get_settings
from terramap.context import MappingContext
from terramap.errors import InvalidResourceError, MapperError
from terramap.logging_config import (
    GenerationRunContext,
    get_logger,
    log_with_context,
    set_package_log_level,
)
from terramap.mappers import MapperRegistry, create_mapper_registry
from terramap.mappers.base import ResourceMapper, companions_of, suggested_outputs_for
from terramap.models import (
    DiscoveredResource,
    GeneratedOutput,
    GeneratedResource,
    GeneratedVariable,
    GenerationResult,
    GenerationSummary,
    ImportBlock,
    ProviderConfiguration,
    RejectedRecord,
)
from terramap.resource_mappings import get_service_for_terraform_type
from terramap.values import block, literal, mapping, reference

logger = get_logger(__name__)

ResourceInput = DiscoveredResource | Mapping[str, Any]

AWS_PROVIDER_SOURCE = "hashicorp/aws"
REGION_VARIABLE = "aws_region"


@dataclass
class _Mapped:
    """A mapper's complete answer for one resource, before it is recorded."""

    resource: GeneratedResource
    outputs: list[GeneratedOutput] = field(default_factory=list)
    import_id: str | None = None


class TerraformGenerator:
    """
    Turns discovered resources into Terraform resources, variables, outputs
    and import blocks.

    Attributes:
        settings: Settings every run uses
        registry: Mapper lookup
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: MapperRegistry | None = None,
    ) -> None:
        """
        Initialize generator.

        Args:
            settings: Settings to use (loaded from the environment if None)
            registry: Mapper registry (every built-in mapper if None)
        """
        self.settings: Settings = settings or get_settings()
        self.registry: MapperRegistry = (
            registry if registry is not None else create_mapper_registry()
        )
        set_package_log_level(self.settings.log_level)

    def generate(self, resources: Iterable[ResourceInput]) -> GenerationResult:
        """
        Map a batch of discovered resources.

        Records that cannot be read as discovered resources are listed in
        ``rejected`` with a warning and take no further part in the run.

        Args:
            resources: Discovered resources, or raw dicts in the same shape

        Returns:
            GenerationResult for the batch
        """
        with GenerationRunContext() as run_id:
            result = GenerationResult()
            discovered = self._read_records(resources, result)

            log_with_context(
                logger,
                "info",
                "Starting generation run",
                run_id=run_id,
                resource_count=len(discovered),
                rejected_count=len(result.rejected),
            )

            context = MappingContext(self.settings)
            run = _RunState()

            for resource in discovered:
                self._map_resource(resource, context, result, run)

            result.variables = context.variables
            result.sensitive_values = context.sensitive_values
            result.provider = build_provider_configuration(self.settings)
            if self.settings.organize_by_service:
                result.resources_by_service = group_by_service(result.resources)
            result.summary = _summarize(len(discovered), run.mapped, result)

            log_with_context(
                logger,
                "info",
                "Generation run finished",
                run_id=run_id,
                total_resources=result.summary.total_resources,
                mapped_resources=result.summary.mapped_resources,
                unmapped_resources=result.summary.unmapped_resources,
                rejected_records=result.summary.rejected_records,
                generated_resources=result.summary.generated_resources,
                warning_count=len(result.warnings),
            )

            return result

    def _read_records(
        self,
        resources: Iterable[ResourceInput],
        result: GenerationResult,
    ) -> list[DiscoveredResource]:
        discovered: list[DiscoveredResource] = []
        for index, item in enumerate(resources):
            try:
                discovered.append(_to_discovered(item, index))
            except InvalidResourceError as e:
                result.rejected.append(
                    RejectedRecord(index=index, record=item, reason=e.reason or e.message)
                )
                result.warnings.append(e.message)
                log_with_context(logger, "warning", e.message, record_index=index, **e.context)
        return discovered

    def _map_resource(
        self,
        resource: DiscoveredResource,
        context: MappingContext,
        result: GenerationResult,
        run: "_RunState",
    ) -> None:
        mapper = self.registry.get(resource.resource_type)
        if mapper is None:
            _record_unmapped(
                result,
                resource,
                f"No mapper registered for {resource.resource_type} ({resource.id})",
            )
            return

        mapped = self._invoke(mapper, resource, context, result, with_outputs=True)
        if mapped is None:
            result.unmapped.append(resource)
            return

        generated = mapped.resource
        original_name = generated.name
        original_address = generated.address

        run.claim_address(generated, result)
        outputs = mapped.outputs
        if generated.name != original_name:
            outputs = [
                _rename_output(o, original_name, original_address, generated) for o in outputs
            ]
        outputs = [run.claim_output(o) for o in outputs]

        run.mapped += 1
        context.register_resource(generated)
        self._record(generated, mapped.import_id, result)
        result.outputs.extend(outputs)
        if outputs:
            result.outputs_by_resource[generated.address] = outputs

        log_with_context(
            logger,
            "debug",
            "Mapped resource",
            aws_type=resource.resource_type,
            resource_id=resource.id,
            address=generated.address,
        )

        for companion in companions_of(mapper):
            extra = self._invoke(companion, resource, context, result, with_outputs=False)
            if extra is None:
                continue

            companion_resource = extra.resource
            if companion_resource.name == original_name:
                companion_resource.name = generated.name
            companion_resource.depends_on = [
                generated.address if dep == original_address else dep
                for dep in companion_resource.depends_on
            ]
            run.claim_address(companion_resource, result)
            self._record(companion_resource, extra.import_id, result)

            log_with_context(
                logger,
                "debug",
                "Mapped companion resource",
                aws_type=resource.resource_type,
                resource_id=resource.id,
                address=companion_resource.address,
            )

    def _invoke(
        self,
        mapper: ResourceMapper,
        resource: DiscoveredResource,
        context: MappingContext,
        result: GenerationResult,
        with_outputs: bool,
    ) -> _Mapped | None:
        """
        Run one mapper and collect everything it produces for ``resource``.

        Exceptions raised by the mapper are logged and turned into a warning.
        Variables and secrets the mapper registered before raising or
        declining are rolled back.

        Returns:
            The mapper's answer, or None when it declined or raised
        """
        checkpoint = context.checkpoint()
        try:
            generated = mapper.map(resource, context)
            if generated is None:
                context.rollback(checkpoint)
                if with_outputs:
                    _warn(
                        result,
                        f"Mapper for {resource.resource_type} produced no resource "
                        f"for {resource.id}",
                        resource,
                    )
                return None

            outputs = suggested_outputs_for(mapper, resource) if with_outputs else []
            import_id = (
                mapper.get_import_id(resource) if self.settings.generate_import_blocks else None
            )
        except Exception as e:
            context.rollback(checkpoint)
            error = MapperError(
                f"Failed to map {resource.resource_type} {resource.id}: {e}",
                aws_type=resource.resource_type,
                resource_id=resource.id,
                cause=e,
            )
            log_with_context(
                logger,
                "error",
                error.message,
                mapper=type(mapper).__name__,
                error_type=type(e).__name__,
                exc_info=True,
                **error.context,
            )
            result.warnings.append(error.message)
            return None

        return _Mapped(resource=generated, outputs=outputs, import_id=import_id)

    def _record(
        self,
        generated: GeneratedResource,
        import_id: str | None,
        result: GenerationResult,
    ) -> None:
        result.resources.append(generated)
        if import_id is not None:
            result.imports.append(ImportBlock(to=generated.address, id=import_id))


class _RunState:
    """Names claimed and inputs mapped in the current run."""

    def __init__(self) -> None:
        self.addresses: set[str] = set()
        self.output_names: set[str] = set()
        self.mapped: int = 0

    def claim_address(self, generated: GeneratedResource, result: GenerationResult) -> None:
        """
        Reserve ``generated.address``, renaming the resource with a ``_2``,
        ``_3``, ... suffix when the address is taken.
        """
        if generated.address not in self.addresses:
            self.addresses.add(generated.address)
            return

        original_address = generated.address
        base_name = generated.name
        counter = 2
        while f"{generated.terraform_type}.{base_name}_{counter}" in self.addresses:
            counter += 1
        generated.name = f"{base_name}_{counter}"
        self.addresses.add(generated.address)

        message = f"Renamed duplicate resource address {original_address} to {generated.address}"
        result.warnings.append(message)
        log_with_context(
            logger,
            "warning",
            message,
            original_address=original_address,
            address=generated.address,
        )

    def claim_output(self, suggested: GeneratedOutput) -> GeneratedOutput:
        """Reserve an output name, suffixing it when another resource took it."""
        output_name = suggested.name
        counter = 2
        while output_name in self.output_names:
            output_name = f"{suggested.name}_{counter}"
            counter += 1
        self.output_names.add(output_name)

        if output_name == suggested.name:
            return suggested
        log_with_context(
            logger,
            "debug",
            "Renamed duplicate output",
            original_output=suggested.name,
            output_name=output_name,
        )
        return GeneratedOutput(
            name=output_name,
            value=suggested.value,
            description=suggested.description,
            sensitive=suggested.sensitive,
        )


def _to_discovered(item: ResourceInput, index: int) -> DiscoveredResource:
    if isinstance(item, DiscoveredResource):
        return item
    if not isinstance(item, Mapping):
        raise InvalidResourceError(
            f"Record {index} is not a mapping: {type(item).__name__}",
            reason="wrong type",
        )

    try:
        return DiscoveredResource.model_validate(item)
    except ValidationError as e:
        raw_id = item.get("id")
        resource_id = raw_id if isinstance(raw_id, str) else None
        raise InvalidResourceError(
            f"Record {index} is not a valid discovered resource",
            resource_id=resource_id,
            reason=str(e),
        ) from e


def _rename_output(
    suggested: GeneratedOutput,
    original_name: str,
    original_address: str,
    generated: GeneratedResource,
) -> GeneratedOutput:
    output_name = suggested.name
    if output_name.startswith(f"{original_name}_"):
        output_name = f"{generated.name}_{output_name[len(original_name) + 1 :]}"

    value = suggested.value
    if value.startswith(f"{original_address}."):
        value = f"{generated.address}.{value[len(original_address) + 1 :]}"

    return GeneratedOutput(
        name=output_name,
        value=value,
        description=suggested.description,
        sensitive=suggested.sensitive,
    )


def _warn(result: GenerationResult, message: str, resource: DiscoveredResource) -> None:
    result.warnings.append(message)
    log_with_context(
        logger,
        "warning",
        message,
        aws_type=resource.resource_type,
        resource_id=resource.id,
    )


def _record_unmapped(result: GenerationResult, resource: DiscoveredResource, message: str) -> None:
    result.unmapped.append(resource)
    _warn(result, message, resource)


def build_provider_configuration(settings: Settings) -> ProviderConfiguration:
    """
    Build the terraform and provider blocks for the configured versions.

    The provider reads its region from an ``aws_region`` variable whose
    default is ``settings.default_region``.
    """
    return ProviderConfiguration(
        terraform=block(
            {
                "required_version": f">= {settings.terraform_version}",
                "required_providers": block(
                    {
                        "aws": mapping(
                            {
                                "source": AWS_PROVIDER_SOURCE,
                                "version": settings.aws_provider_version,
                            }
                        )
                    }
                ),
            }
        ),
        provider=block({"region": reference(f"var.{REGION_VARIABLE}")}),
        region_variable=GeneratedVariable(
            name=REGION_VARIABLE,
            type="string",
            description="AWS region for resources",
            default=literal(settings.default_region),
        ),
    )


def group_by_service(resources: list[GeneratedResource]) -> dict[str, list[GeneratedResource]]:
    """Group generated resources by logical service, preserving order."""
    grouped: dict[str, list[GeneratedResource]] = {}
    for resource in resources:
        service = get_service_for_terraform_type(resource.terraform_type)
        grouped.setdefault(service, []).append(resource)
    return grouped


def _summarize(total: int, mapped: int, result: GenerationResult) -> GenerationSummary:
    by_service: dict[str, int] = {}
    for generated in result.resources:
        service = get_service_for_terraform_type(generated.terraform_type)
        by_service[service] = by_service.get(service, 0) + 1

    return GenerationSummary(
        total_resources=total,
        mapped_resources=mapped,
        unmapped_resources=len(result.unmapped),
        rejected_records=len(result.rejected),
        generated_resources=len(result.resources),
        resources_by_service=by_service,
        variables_generated=len(result.variables),
        outputs_generated=len(result.outputs),
        imports_generated=len(result.imports),
    )
