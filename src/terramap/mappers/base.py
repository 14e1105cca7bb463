"""
Mapper capability and typed property views.

Every resource kind is handled by one class that satisfies the
``ResourceMapper`` protocol. Mappers never read the raw property bag
directly; they parse it once into a ``PropertyView`` subclass whose fields
are all optional and camelCase-aliased. Views are tolerant: a field that
fails validation becomes None while the rest of the view still parses, so a
single malformed property never aborts a mapping.

Usage:
    class VolumeProperties(PropertyView):
        availability_zone: str | None = None
        size: int | None = None

    props = parse_properties(resource, VolumeProperties)
    if props.size is not None:
        ...
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Protocol, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic.alias_generators import to_camel, to_pascal

from terramap.context import MappingContext
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource

ViewT = TypeVar("ViewT", bound="PropertyView")


class PropertyView(BaseModel):
    """
    Tolerant typed view over a provider property bag.

    Subclasses declare snake_case fields; the camelCase key is derived
    automatically. Irregular keys (``multiAZ``, ``minTTL``) need an explicit
    ``Field(alias=...)``. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_invalid_values(
        cls,
        value: Any,
        handler: ValidatorFunctionWrapHandler,
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


def parse_view(view_cls: type[ViewT], data: object) -> ViewT:
    """
    Parse ``data`` into ``view_cls``.

    Anything that is not a dict yields an empty view.
    """
    if not isinstance(data, dict):
        return view_cls()
    return view_cls.model_validate(data)


def parse_properties(resource: DiscoveredResource, view_cls: type[ViewT]) -> ViewT:
    """Parse a discovered resource's property bag into ``view_cls``."""
    return parse_view(view_cls, resource.properties)


class ResourceMapper(Protocol):
    """
    Transformation unit for one discovered resource kind.

    Optional members, read by the generator with ``getattr``:
        get_suggested_outputs(resource) -> list[GeneratedOutput]
        companions: tuple of mappers run on the same input after this one
    """

    aws_type: ClassVar[str]
    terraform_type: ClassVar[str]

    def map(
        self,
        resource: DiscoveredResource,
        context: MappingContext,
    ) -> GeneratedResource | None:
        """
        Map a discovered resource.

        Returns:
            Generated resource, or None when the resource has no meaningful
            representation
        """
        ...

    def get_import_id(self, resource: DiscoveredResource) -> str:
        """Return the provider import identifier for ``resource``."""
        ...


def suggested_outputs_for(
    mapper: ResourceMapper,
    resource: DiscoveredResource,
) -> list[GeneratedOutput]:
    """Return the mapper's suggested outputs, or none if it has no opinion."""
    getter = getattr(mapper, "get_suggested_outputs", None)
    if getter is None:
        return []
    return list(getter(resource))


def companions_of(mapper: ResourceMapper) -> Sequence[ResourceMapper]:
    """Return the companion mappers declared by ``mapper``."""
    return tuple(getattr(mapper, "companions", ()))


class SdkShapeView(PropertyView):
    """
    Property view for nested objects kept in the provider SDK's PascalCase
    shape (``{"NoncurrentDays": 30}``).
    """

    model_config = ConfigDict(alias_generator=to_pascal)
