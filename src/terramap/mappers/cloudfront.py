"""
Content delivery mappers for CloudFront distributions and origin access
identities/controls.

The CloudFront API wraps most collections as ``{"quantity": n, "items": [...]}``;
the views below only read ``items``.
"""

from pydantic import Field

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    is_sensitive_field,
    output,
    set_attribute,
)
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource
from terramap.values import Value, block, list_value


class StringItems(PropertyView):
    items: list[str] | None = None


class S3OriginConfig(PropertyView):
    origin_access_identity: str | None = None


class CustomOriginConfig(PropertyView):
    http_port: int | None = None
    https_port: int | None = None
    origin_protocol_policy: str | None = None
    origin_ssl_protocols: StringItems | None = None
    origin_keepalive_timeout: int | None = None
    origin_read_timeout: int | None = None


class OriginShield(PropertyView):
    enabled: bool | None = None
    origin_shield_region: str | None = None


class CustomHeader(PropertyView):
    header_name: str | None = None
    header_value: str | None = None


class CustomHeaders(PropertyView):
    items: list[CustomHeader] | None = None


class Origin(PropertyView):
    id: str | None = None
    domain_name: str | None = None
    origin_path: str | None = None
    origin_access_control_id: str | None = None
    connection_attempts: int | None = None
    connection_timeout: int | None = None
    s3_origin_config: S3OriginConfig | None = None
    custom_origin_config: CustomOriginConfig | None = None
    origin_shield: OriginShield | None = None
    custom_headers: CustomHeaders | None = None


class Origins(PropertyView):
    items: list[Origin] | None = None


class Cookies(PropertyView):
    forward: str | None = None
    whitelisted_names: StringItems | None = None


class ForwardedValues(PropertyView):
    query_string: bool | None = None
    cookies: Cookies | None = None
    headers: StringItems | None = None
    query_string_cache_keys: StringItems | None = None


class LambdaAssociation(PropertyView):
    event_type: str | None = None
    lambda_function_arn: str | None = None
    include_body: bool | None = None


class LambdaAssociations(PropertyView):
    items: list[LambdaAssociation] | None = None


class FunctionAssociation(PropertyView):
    event_type: str | None = None
    function_arn: str | None = None


class FunctionAssociations(PropertyView):
    items: list[FunctionAssociation] | None = None


class CacheBehavior(PropertyView):
    target_origin_id: str | None = None
    viewer_protocol_policy: str | None = None
    path_pattern: str | None = None
    allowed_methods: StringItems | None = None
    cached_methods: StringItems | None = None
    min_ttl: int | None = Field(default=None, alias="minTTL")
    max_ttl: int | None = Field(default=None, alias="maxTTL")
    default_ttl: int | None = Field(default=None, alias="defaultTTL")
    compress: bool | None = None
    smooth_streaming: bool | None = None
    cache_policy_id: str | None = None
    origin_request_policy_id: str | None = None
    response_headers_policy_id: str | None = None
    forwarded_values: ForwardedValues | None = None
    lambda_function_associations: LambdaAssociations | None = None
    function_associations: FunctionAssociations | None = None


class CacheBehaviors(PropertyView):
    items: list[CacheBehavior] | None = None


class ViewerCertificate(PropertyView):
    cloud_front_default_certificate: bool | None = None
    acm_certificate_arn: str | None = None
    iam_certificate_id: str | None = None
    ssl_support_method: str | None = None
    minimum_protocol_version: str | None = None


class GeoRestriction(PropertyView):
    restriction_type: str | None = None
    locations: list[str] | None = None


class Restrictions(PropertyView):
    geo_restriction: GeoRestriction | None = None


class CustomErrorResponse(PropertyView):
    error_code: int | None = None
    response_page_path: str | None = None
    response_code: int | None = None
    error_caching_min_ttl: int | None = Field(default=None, alias="errorCachingMinTTL")


class CustomErrorResponses(PropertyView):
    items: list[CustomErrorResponse] | None = None


class LoggingConfig(PropertyView):
    bucket: str | None = None
    include_cookies: bool | None = None
    prefix: str | None = None


class DistributionProperties(PropertyView):
    enabled: bool | None = None
    is_ipv6_enabled: bool | None = Field(default=None, alias="isIPV6Enabled")
    comment: str | None = None
    default_root_object: str | None = None
    price_class: str | None = None
    web_acl_id: str | None = None
    http_version: str | None = None
    aliases: StringItems | None = None
    origins: Origins | None = None
    default_cache_behavior: CacheBehavior | None = None
    cache_behaviors: CacheBehaviors | None = None
    viewer_certificate: ViewerCertificate | None = None
    restrictions: Restrictions | None = None
    custom_error_responses: CustomErrorResponses | None = None
    logging: LoggingConfig | None = None


def _items(wrapper: StringItems | None) -> list[str] | None:
    return wrapper.items if wrapper is not None else None


def _map_cache_behavior(behavior: CacheBehavior) -> Value:
    """Build a default or ordered cache behavior block."""
    attrs: dict[str, object] = {
        "target_origin_id": behavior.target_origin_id,
        "viewer_protocol_policy": behavior.viewer_protocol_policy,
        "path_pattern": behavior.path_pattern,
        "allowed_methods": _items(behavior.allowed_methods),
        "cached_methods": _items(behavior.cached_methods),
        "min_ttl": behavior.min_ttl,
        "max_ttl": behavior.max_ttl,
        "default_ttl": behavior.default_ttl,
        "compress": behavior.compress,
        "smooth_streaming": behavior.smooth_streaming,
        "cache_policy_id": behavior.cache_policy_id,
        "origin_request_policy_id": behavior.origin_request_policy_id,
        "response_headers_policy_id": behavior.response_headers_policy_id,
    }

    forwarded = behavior.forwarded_values
    if forwarded is not None:
        cookies = forwarded.cookies
        forwarded_block = block(
            {
                "query_string": forwarded.query_string,
                "cookies": block(
                    {
                        "forward": cookies.forward or "none",
                        "whitelisted_names": _items(cookies.whitelisted_names),
                    }
                )
                if cookies is not None
                else None,
                "headers": _items(forwarded.headers),
                "query_string_cache_keys": _items(forwarded.query_string_cache_keys),
            }
        )
        if forwarded_block.attributes:
            attrs["forwarded_values"] = forwarded_block

    lambdas = [
        block(
            {
                "event_type": assoc.event_type,
                "lambda_arn": assoc.lambda_function_arn,
                "include_body": assoc.include_body,
            }
        )
        for assoc in (
            behavior.lambda_function_associations.items
            if behavior.lambda_function_associations
            else None
        )
        or []
    ]
    lambdas = [b for b in lambdas if b.attributes]
    if lambdas:
        attrs["lambda_function_association"] = list_value(lambdas)

    functions = [
        block({"event_type": assoc.event_type, "function_arn": assoc.function_arn})
        for assoc in (
            behavior.function_associations.items if behavior.function_associations else None
        )
        or []
    ]
    functions = [b for b in functions if b.attributes]
    if functions:
        attrs["function_association"] = list_value(functions)

    return block(attrs)


class CloudFrontDistributionMapper:
    """
    Maps web distributions to ``aws_cloudfront_distribution``.

    The provider requires a ``restrictions`` block, so a distribution without
    one gets a geo restriction of type ``none``. Custom origin headers are
    commonly used as shared secrets between CloudFront and the origin; those
    with secret-looking names are externalized.
    """

    aws_type = "AWS::CloudFront::Distribution"
    terraform_type = "aws_cloudfront_distribution"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, DistributionProperties)
        name = generate_resource_name(resource)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "enabled", props.enabled)
        set_attribute(attributes, "is_ipv6_enabled", props.is_ipv6_enabled)
        set_attribute(attributes, "comment", props.comment or None)
        set_attribute(attributes, "default_root_object", props.default_root_object or None)
        set_attribute(attributes, "price_class", props.price_class)
        set_attribute(attributes, "web_acl_id", props.web_acl_id or None)
        set_attribute(attributes, "http_version", props.http_version)
        set_attribute(attributes, "aliases", _items(props.aliases) or None)

        origins = [
            self._origin_block(name, origin, context)
            for origin in (props.origins.items if props.origins else None) or []
        ]
        origins = [b for b in origins if b.attributes]
        if origins:
            attributes["origin"] = list_value(origins)

        if props.default_cache_behavior is not None:
            attributes["default_cache_behavior"] = _map_cache_behavior(
                props.default_cache_behavior
            )

        ordered = [
            _map_cache_behavior(b)
            for b in (props.cache_behaviors.items if props.cache_behaviors else None) or []
        ]
        if ordered:
            attributes["ordered_cache_behavior"] = list_value(ordered)

        cert = props.viewer_certificate
        if cert is not None:
            attributes["viewer_certificate"] = block(
                {
                    "cloudfront_default_certificate": True
                    if cert.cloud_front_default_certificate
                    else None,
                    "acm_certificate_arn": cert.acm_certificate_arn,
                    "iam_certificate_id": cert.iam_certificate_id,
                    "ssl_support_method": cert.ssl_support_method,
                    "minimum_protocol_version": cert.minimum_protocol_version,
                }
            )

        geo = props.restrictions.geo_restriction if props.restrictions else None
        if geo is not None:
            attributes["restrictions"] = block(
                {
                    "geo_restriction": block(
                        {"restriction_type": geo.restriction_type, "locations": geo.locations}
                    )
                }
            )
        else:
            attributes["restrictions"] = block(
                {"geo_restriction": block({"restriction_type": "none"})}
            )

        errors = [
            block(
                {
                    "error_code": err.error_code or None,
                    "response_page_path": err.response_page_path or None,
                    "response_code": err.response_code or None,
                    "error_caching_min_ttl": err.error_caching_min_ttl,
                }
            )
            for err in (
                props.custom_error_responses.items if props.custom_error_responses else None
            )
            or []
        ]
        errors = [b for b in errors if b.attributes]
        if errors:
            attributes["custom_error_response"] = list_value(errors)

        log = props.logging
        if log is not None and log.bucket:
            attributes["logging_config"] = block(
                {
                    "bucket": log.bucket,
                    "include_cookies": log.include_cookies,
                    "prefix": log.prefix or None,
                }
            )

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=name,
            attributes=attributes,
            source=resource,
        )

    def _origin_block(self, name: str, origin: Origin, context: MappingContext) -> Value:
        attrs: dict[str, object] = {
            "origin_id": origin.id,
            "domain_name": origin.domain_name,
            "origin_path": origin.origin_path or None,
            "origin_access_control_id": origin.origin_access_control_id or None,
            "connection_attempts": origin.connection_attempts or None,
            "connection_timeout": origin.connection_timeout or None,
        }

        s3_config = origin.s3_origin_config
        if s3_config is not None and s3_config.origin_access_identity:
            attrs["s3_origin_config"] = block(
                {"origin_access_identity": s3_config.origin_access_identity}
            )

        custom = origin.custom_origin_config
        if custom is not None:
            custom_block = block(
                {
                    "http_port": custom.http_port or None,
                    "https_port": custom.https_port or None,
                    "origin_protocol_policy": custom.origin_protocol_policy,
                    "origin_ssl_protocols": _items(custom.origin_ssl_protocols),
                    "origin_keepalive_timeout": custom.origin_keepalive_timeout or None,
                    "origin_read_timeout": custom.origin_read_timeout or None,
                }
            )
            if custom_block.attributes:
                attrs["custom_origin_config"] = custom_block

        if origin.origin_shield is not None:
            attrs["origin_shield"] = block(
                {
                    "enabled": bool(origin.origin_shield.enabled),
                    "origin_shield_region": origin.origin_shield.origin_shield_region,
                }
            )

        headers: list[Value] = []
        for header in (origin.custom_headers.items if origin.custom_headers else None) or []:
            if not header.header_name or not header.header_value:
                continue
            value: object = header.header_value
            if is_sensitive_field(header.header_name):
                value = context.mark_sensitive(
                    f"{name}_{origin.id or 'origin'}_{header.header_name}",
                    header.header_value,
                    f"Custom header {header.header_name} sent to origin {origin.id}",
                )
            headers.append(block({"name": header.header_name, "value": value}))
        if headers:
            attrs["custom_header"] = list_value(headers)

        return block(attrs)

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        return [
            output(name, address, "id", f"ID of CloudFront distribution {resource.id}"),
            output(
                name,
                address,
                "domain_name",
                f"Domain name of CloudFront distribution {resource.id}",
            ),
            output(name, address, "arn", f"ARN of CloudFront distribution {resource.id}"),
        ]


class OriginAccessIdentityProperties(PropertyView):
    comment: str | None = None


class CloudFrontOriginAccessIdentityMapper:
    aws_type = "AWS::CloudFront::CloudFrontOriginAccessIdentity"
    terraform_type = "aws_cloudfront_origin_access_identity"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, OriginAccessIdentityProperties)
        attributes: dict[str, Value] = {}
        set_attribute(attributes, "comment", props.comment or None)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


class OriginAccessControlProperties(PropertyView):
    name: str | None = None
    description: str | None = None
    origin_access_control_origin_type: str | None = None
    signing_behavior: str | None = None
    signing_protocol: str | None = None


class CloudFrontOriginAccessControlMapper:
    aws_type = "AWS::CloudFront::OriginAccessControl"
    terraform_type = "aws_cloudfront_origin_access_control"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, OriginAccessControlProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.name)
        set_attribute(attributes, "description", props.description or None)
        set_attribute(
            attributes,
            "origin_access_control_origin_type",
            props.origin_access_control_origin_type,
        )
        set_attribute(attributes, "signing_behavior", props.signing_behavior)
        set_attribute(attributes, "signing_protocol", props.signing_protocol)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.id


def get_cloudfront_mappers() -> list[ResourceMapper]:
    """Return one instance of every CloudFront mapper."""
    return [
        CloudFrontDistributionMapper(),
        CloudFrontOriginAccessIdentityMapper(),
        CloudFrontOriginAccessControlMapper(),
    ]
