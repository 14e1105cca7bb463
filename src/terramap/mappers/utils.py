"""
Helpers shared by the concrete mappers.

Covers the pieces every mapper needs: stable identifier derivation, tag
filtering, sensitive-field detection, candidate ARN construction for
cross references, and policy document encoding.
"""

import json
import re
from collections.abc import Mapping

from terramap.config import Settings
from terramap.context import MappingContext
from terramap.models import DiscoveredResource, GeneratedOutput
from terramap.values import Literal, Reference, Value, mapping, to_value

SENSITIVE_FIELD_PATTERNS: tuple[str, ...] = (
    "password",
    "secret",
    "key",
    "token",
    "credential",
    "api_key",
    "private",
    "auth",
)

FALLBACK_RESOURCE_NAME = "resource"

_NON_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")
_UNDERSCORE_RUN = re.compile(r"_+")
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def is_sensitive_field(field_name: str) -> bool:
    """
    Check whether a field name looks like it holds a secret.

    Case-insensitive substring match against ``SENSITIVE_FIELD_PATTERNS``.

    Example:
        >>> is_sensitive_field("DB_PASSWORD")
        True
        >>> is_sensitive_field("region")
        False
    """
    lowered = field_name.lower()
    return any(pattern in lowered for pattern in SENSITIVE_FIELD_PATTERNS)


def to_terraform_identifier(value: str) -> str:
    """
    Convert arbitrary text into a Terraform identifier.

    Non-identifier characters become ``_``, a leading digit gets a ``_``
    prefix, runs of ``_`` collapse, trailing ``_`` are removed and the
    result is lowercased. May return an empty string.

    Example:
        >>> to_terraform_identifier("My-Bucket.2024")
        "my_bucket_2024"
    """
    result = _NON_IDENTIFIER_CHARS.sub("_", value)
    if result[:1].isdigit():
        result = "_" + result
    result = _UNDERSCORE_RUN.sub("_", result)
    result = result.rstrip("_")
    return result.lower()


def generate_resource_name(resource: DiscoveredResource) -> str:
    """
    Derive a stable Terraform name for a discovered resource.

    Tries the display name, then the ``Name`` tag, then the discovery id,
    and finally ``resource``. Always matches ``^[a-z_][a-z0-9_]*$``.
    """
    for candidate in (resource.name, resource.tags.get("Name"), resource.id):
        if not candidate:
            continue
        identifier = to_terraform_identifier(candidate)
        if identifier:
            return identifier
    return FALLBACK_RESOURCE_NAME


def snake_case(value: str) -> str:
    """Convert camelCase to snake_case."""
    result = _CAMEL_BOUNDARY.sub(r"_\1", value).lower()
    return _UNDERSCORE_RUN.sub("_", result).lstrip("_")


def map_tags(tags: Mapping[str, str], settings: Settings) -> dict[str, str]:
    """
    Drop tags owned by the cloud provider.

    Keys starting with any of ``settings.managed_tag_prefixes`` are removed;
    every other pair is kept verbatim.
    """
    prefixes = tuple(settings.managed_tag_prefixes)
    return {
        key: value
        for key, value in tags.items()
        if not (prefixes and key.startswith(prefixes))
    }


def apply_tags(
    attributes: dict[str, Value],
    resource: DiscoveredResource,
    context: MappingContext,
    attribute: str = "tags",
) -> None:
    """Set the filtered tags on ``attributes``; no attribute when none remain."""
    tags = map_tags(resource.tags, context.settings)
    if tags:
        attributes[attribute] = mapping(tags)


def set_attribute(attributes: dict[str, Value], key: str, value: object) -> None:
    """Set ``attributes[key]`` unless ``value`` is None."""
    if value is not None:
        attributes[key] = to_value(value)


def account_for(resource: DiscoveredResource, settings: Settings) -> str:
    """
    Resolve the account id used in candidate ARNs.

    Prefers the account in the resource's own ARN, then the configured
    account id, then an empty string.
    """
    if resource.arn:
        parts = resource.arn.split(":")
        if len(parts) > 4 and parts[4]:
            return parts[4]
    return settings.account_id or ""


def build_arn(
    service: str,
    resource: DiscoveredResource,
    path: str,
    settings: Settings,
    region: str | None = None,
) -> str:
    """
    Build the candidate ARN of a resource related to ``resource``.

    Example:
        >>> build_arn("ec2", instance, "subnet/subnet-0abc", settings)
        "arn:aws:ec2:us-east-1:123456789012:subnet/subnet-0abc"

    The region is ``region`` when given (``""`` for global services), else
    the resource's own region, else the configured default region.
    """
    target_region = region if region is not None else resource.region or settings.default_region
    return f"arn:aws:{service}:{target_region}:{account_for(resource, settings)}:{path}"


def resource_ref_or_literal(
    context: MappingContext,
    arn: str,
    fallback: str,
    attribute: str = "id",
) -> Reference | Literal:
    """Reference the resource registered for ``arn``, else the literal fallback."""
    ref = context.get_resource_reference(arn, attribute)
    if ref is not None:
        return ref
    return Literal(fallback)


def related_ref(
    context: MappingContext,
    resource: DiscoveredResource,
    service: str,
    path_prefix: str,
    identifier: str,
    attribute: str = "id",
) -> Reference | Literal:
    """Resolve ``identifier`` of a same-account, same-region related resource."""
    arn = build_arn(service, resource, f"{path_prefix}/{identifier}", context.settings)
    return resource_ref_or_literal(context, arn, identifier, attribute)


def role_ref(context: MappingContext, role_arn: str) -> Reference | Literal:
    """Reference an IAM role's ``arn`` attribute when mapped, else the literal ARN."""
    return resource_ref_or_literal(context, role_arn, role_arn, attribute="arn")


def policy_document_to_string(document: object) -> str | None:
    """
    Encode a policy document as JSON text.

    Strings pass through unchanged; dicts and lists are encoded with an
    indent of 2. Anything else yields None.
    """
    if isinstance(document, str):
        return document
    if isinstance(document, (dict, list)):
        return json.dumps(document, indent=2)
    return None


def output(
    name: str,
    address: str,
    attribute: str,
    description: str,
    sensitive: bool = False,
) -> GeneratedOutput:
    """Build a suggested output pointing at ``address.attribute``."""
    return GeneratedOutput(
        name=f"{name}_{attribute}",
        value=f"{address}.{attribute}",
        description=description,
        sensitive=sensitive,
    )
