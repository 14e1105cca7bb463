"""
Data model for resource generation.

``DiscoveredResource`` is the input record produced by the discovery pass
and is never mutated here. Everything else in this module is created and
consumed within a single generation run.

Usage:
    from terramap.models import DiscoveredResource

    resource = DiscoveredResource.model_validate(
        {
            "id": "i-0abc",
            "type": "AWS::EC2::Instance",
            "region": "us-east-1",
            "properties": {"instanceType": "t3.micro"},
            "tags": {"Name": "web"},
        }
    )
"""

from dataclasses import dataclass, field
from typing import Any, override

from pydantic import BaseModel, ConfigDict, Field

from terramap.values import Block, Value


class DiscoveredResource(BaseModel):
    """
    A live cloud resource yielded by the discovery pass.

    Attributes:
        id: Opaque discovery identifier
        arn: Resource ARN, when the provider has one
        name: Display name, when the provider has one
        resource_type: Kind discriminant (AWS::EC2::Instance, etc.)
        region: Region the resource lives in
        properties: Provider fields keyed by their camelCase API names
        tags: Resource tags
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Discovery identifier")
    arn: str | None = Field(default=None, description="Resource ARN")
    name: str | None = Field(default=None, description="Display name")
    resource_type: str = Field(..., alias="type", min_length=1, description="Resource kind")
    region: str = Field(..., description="Region")
    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider property bag",
    )
    tags: dict[str, str] = Field(default_factory=dict, description="Resource tags")

    @override
    def __str__(self) -> str:
        return f"DiscoveredResource({self.resource_type}, {self.id})"


@dataclass
class Lifecycle:
    """
    Lifecycle hints for a generated resource.

    Attributes:
        create_before_destroy: Replace by creating the new object first
        prevent_destroy: Refuse plans that destroy the resource
        ignore_changes: Attribute names to ignore on diff ("all" for every one)
        replace_triggered_by: Addresses whose change forces replacement
    """

    create_before_destroy: bool | None = None
    prevent_destroy: bool | None = None
    ignore_changes: list[str] | str = field(default_factory=list)
    replace_triggered_by: list[str] = field(default_factory=list)


@dataclass
class GeneratedResource:
    """
    One Terraform resource produced by a mapper.

    Attributes:
        terraform_type: Target resource type (aws_instance, etc.)
        name: Generated identifier
        attributes: Attribute tree
        depends_on: Addresses this resource explicitly depends on
        lifecycle: Optional lifecycle hints
        source: Discovered resource this was generated from
    """

    terraform_type: str
    name: str
    attributes: dict[str, Value] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    lifecycle: Lifecycle | None = None
    source: DiscoveredResource | None = field(default=None, repr=False, compare=False)

    @property
    def address(self) -> str:
        """Resource address, ``type.name``."""
        return f"{self.terraform_type}.{self.name}"


@dataclass
class GeneratedVariable:
    """
    An input variable the generated configuration needs.

    Attributes:
        name: Variable name, unique within a run
        type: Declared Terraform type
        description: Human-readable description
        default: Default value, if any
        sensitive: Whether the value must be redacted
        nullable: Whether null is accepted
    """

    name: str
    type: str = "string"
    description: str | None = None
    default: Value | None = None
    sensitive: bool = False
    nullable: bool | None = None


@dataclass
class GeneratedOutput:
    """
    A suggested output for a generated resource.

    Attributes:
        name: Output name
        value: Expression text (for example ``aws_vpc.main.id``)
        description: Human-readable description
        sensitive: Whether the output must be redacted
    """

    name: str
    value: str
    description: str | None = None
    sensitive: bool = False


@dataclass
class ImportBlock:
    """
    Import instruction for an existing resource.

    Attributes:
        to: Resource address to import into
        id: Provider import identifier
    """

    to: str
    id: str


@dataclass
class ProviderConfiguration:
    """
    Settings blocks the generated configuration needs besides its resources.

    Attributes:
        terraform: ``terraform`` block with required_version and required_providers
        provider: ``provider "aws"`` block, reading the region from a variable
        region_variable: The ``aws_region`` variable, defaulting to the
            configured region
    """

    terraform: Block
    provider: Block
    region_variable: GeneratedVariable


@dataclass
class RejectedRecord:
    """
    An input record that could not be read as a discovered resource.

    Attributes:
        index: Position of the record in the input batch
        record: The record as given
        reason: Why validation failed
    """

    index: int
    record: object = field(repr=False)
    reason: str


@dataclass
class GenerationSummary:
    """Counts describing one generation run."""

    total_resources: int = 0
    mapped_resources: int = 0
    unmapped_resources: int = 0
    rejected_records: int = 0
    generated_resources: int = 0
    resources_by_service: dict[str, int] = field(default_factory=dict)
    variables_generated: int = 0
    outputs_generated: int = 0
    imports_generated: int = 0


@dataclass
class GenerationResult:
    """
    Everything produced from one batch of discovered resources.

    ``mapped_resources + unmapped_resources`` in the summary always equals
    the number of discovered resources in the batch. Records that failed
    validation are listed in ``rejected`` and counted separately.
    ``sensitive_values`` holds the captured secrets keyed by variable name,
    for writing a separate tfvars file; none of them appear in any resource
    attribute.

    Attributes:
        resources: Generated resources in mapping order
        resources_by_service: Generated resources grouped by logical
            service, when grouping is enabled
        variables: Variables the configuration needs
        outputs: Suggested outputs, in mapping order
        outputs_by_resource: Suggested outputs keyed by resource address
        imports: Import blocks, when enabled
        provider: Terraform and provider settings blocks
        warnings: Human-readable generation warnings
        unmapped: Input records with no target representation
        rejected: Input records that failed validation
        summary: Counts for the run
        sensitive_values: Captured secret values keyed by variable name
    """

    resources: list[GeneratedResource] = field(default_factory=list)
    resources_by_service: dict[str, list[GeneratedResource]] = field(default_factory=dict)
    variables: list[GeneratedVariable] = field(default_factory=list)
    outputs: list[GeneratedOutput] = field(default_factory=list)
    outputs_by_resource: dict[str, list[GeneratedOutput]] = field(default_factory=dict)
    imports: list[ImportBlock] = field(default_factory=list)
    provider: ProviderConfiguration | None = None
    warnings: list[str] = field(default_factory=list)
    unmapped: list[DiscoveredResource] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)
    summary: GenerationSummary = field(default_factory=GenerationSummary)
    sensitive_values: dict[str, str] = field(default_factory=dict, repr=False)

    def get_resource(self, address: str) -> GeneratedResource | None:
        """Return the generated resource at ``address``, if any."""
        for resource in self.resources:
            if resource.address == address:
                return resource
        return None
