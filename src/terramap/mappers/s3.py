"""
Object storage mappers.

Since AWS provider v4 a bucket's sub-configurations are separate resources.
``S3BucketMapper`` emits the bucket itself and declares one companion mapper
per sub-configuration; the generator runs the companions on the same
discovered bucket. A companion returns None when its sub-configuration is
absent, so a bucket with versioning and encryption produces exactly three
resources.

Every companion result shares the bucket's generated name, depends on the
bucket, and points ``bucket`` at the bucket's id when the bucket has been
mapped.
"""

from typing import Any

from pydantic import Field

from terramap.context import MappingContext
from terramap.mappers.base import (
    PropertyView,
    ResourceMapper,
    SdkShapeView,
    parse_properties,
    parse_view,
)
from terramap.mappers.utils import (
    apply_tags,
    generate_resource_name,
    output,
    policy_document_to_string,
    resource_ref_or_literal,
    set_attribute,
)
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource
from terramap.values import Value, block, list_value, mapping, to_value

BUCKET_KIND = "AWS::S3::Bucket"
BUCKET_TERRAFORM_TYPE = "aws_s3_bucket"


class VersioningView(PropertyView):
    status: str | None = None
    mfa_delete: str | None = None


class EncryptionView(PropertyView):
    algorithm: str | None = None
    kms_key_id: str | None = None
    bucket_key_enabled: bool | None = None


class PublicAccessBlockView(PropertyView):
    block_public_acls: bool | None = None
    ignore_public_acls: bool | None = None
    block_public_policy: bool | None = None
    restrict_public_buckets: bool | None = None


class LoggingView(PropertyView):
    target_bucket: str | None = None
    target_prefix: str | None = None


class LifecycleTag(SdkShapeView):
    key: str | None = None
    value: str | None = None


class LifecycleAnd(SdkShapeView):
    prefix: str | None = None
    tags: list[LifecycleTag] | None = None


class LifecycleFilter(SdkShapeView):
    prefix: str | None = None
    tag: LifecycleTag | None = None
    and_: LifecycleAnd | None = Field(default=None, alias="And")


class Transition(SdkShapeView):
    days: int | None = None
    date: str | None = None
    storage_class: str | None = None


class Expiration(SdkShapeView):
    days: int | None = None
    date: str | None = None
    expired_object_delete_marker: bool | None = None


class NoncurrentTransition(SdkShapeView):
    noncurrent_days: int | None = None
    storage_class: str | None = None


class NoncurrentExpiration(SdkShapeView):
    noncurrent_days: int | None = None


class AbortIncompleteUpload(SdkShapeView):
    days_after_initiation: int | None = None


class LifecycleRuleView(PropertyView):
    id: str | None = None
    status: str | None = None
    prefix: str | None = None
    filter: LifecycleFilter | None = None
    transitions: list[Transition] | None = None
    expiration: Expiration | None = None
    noncurrent_version_transitions: list[NoncurrentTransition] | None = None
    noncurrent_version_expiration: NoncurrentExpiration | None = None
    abort_incomplete_multipart_upload: AbortIncompleteUpload | None = None


class BucketProperties(PropertyView):
    bucket_name: str | None = None
    bucket: str | None = None
    versioning: dict[str, Any] | None = None
    encryption: dict[str, Any] | None = None
    public_access_block: dict[str, Any] | None = None
    lifecycle_rules: list[dict[str, Any]] | None = None
    logging: dict[str, Any] | None = None
    policy: dict[str, Any] | list[Any] | str | None = None
    policy_document: dict[str, Any] | str | None = None


def bucket_name_for(resource: DiscoveredResource, props: BucketProperties) -> str:
    """Bucket name: the ``bucket``/``bucketName`` property, else name, else id."""
    return props.bucket or props.bucket_name or resource.name or resource.id


def _bucket_value(context: MappingContext, bucket_name: str) -> Value:
    return resource_ref_or_literal(context, f"arn:aws:s3:::{bucket_name}", bucket_name)


def _sub_configuration(
    terraform_type: str,
    resource: DiscoveredResource,
    context: MappingContext,
    props: BucketProperties,
    attributes: dict[str, Value],
) -> GeneratedResource:
    name = generate_resource_name(resource)
    bucket_name = bucket_name_for(resource, props)

    depends_on: list[str] = []
    if resource.resource_type == BUCKET_KIND:
        bucket_arn = resource.arn or f"arn:aws:s3:::{bucket_name}"
        bucket: Value = resource_ref_or_literal(context, bucket_arn, bucket_name)
        depends_on.append(f"{BUCKET_TERRAFORM_TYPE}.{name}")
    else:
        bucket = _bucket_value(context, bucket_name)

    return GeneratedResource(
        terraform_type=terraform_type,
        name=name,
        attributes={"bucket": bucket, **attributes},
        depends_on=depends_on,
        source=resource,
    )


class _BucketSubConfigurationMapper:
    aws_type = BUCKET_KIND
    terraform_type = ""

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return bucket_name_for(resource, parse_properties(resource, BucketProperties))


class S3BucketVersioningMapper(_BucketSubConfigurationMapper):
    """Emits ``aws_s3_bucket_versioning`` when versioning status is known."""

    terraform_type = "aws_s3_bucket_versioning"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        versioning = parse_view(VersioningView, props.versioning)
        if not versioning.status:
            return None

        configuration = block(
            {
                "status": versioning.status,
                "mfa_delete": versioning.mfa_delete,
            }
        )
        return _sub_configuration(
            self.terraform_type,
            resource,
            context,
            props,
            {"versioning_configuration": configuration},
        )


class S3BucketEncryptionMapper(_BucketSubConfigurationMapper):
    """Emits the default server-side encryption configuration."""

    terraform_type = "aws_s3_bucket_server_side_encryption_configuration"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        encryption = parse_view(EncryptionView, props.encryption)
        if not encryption.algorithm:
            return None

        default = block(
            {
                "sse_algorithm": encryption.algorithm,
                "kms_master_key_id": encryption.kms_key_id or None,
            }
        )
        rule = block(
            {
                "apply_server_side_encryption_by_default": default,
                "bucket_key_enabled": encryption.bucket_key_enabled,
            }
        )
        return _sub_configuration(self.terraform_type, resource, context, props, {"rule": rule})


class S3BucketPublicAccessBlockMapper(_BucketSubConfigurationMapper):
    """Emits ``aws_s3_bucket_public_access_block``."""

    terraform_type = "aws_s3_bucket_public_access_block"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        if props.public_access_block is None:
            return None

        access = parse_view(PublicAccessBlockView, props.public_access_block)
        return _sub_configuration(
            self.terraform_type,
            resource,
            context,
            props,
            {
                "block_public_acls": to_value(bool(access.block_public_acls)),
                "block_public_policy": to_value(bool(access.block_public_policy)),
                "ignore_public_acls": to_value(bool(access.ignore_public_acls)),
                "restrict_public_buckets": to_value(bool(access.restrict_public_buckets)),
            },
        )


class S3BucketLifecycleMapper(_BucketSubConfigurationMapper):
    """Emits ``aws_s3_bucket_lifecycle_configuration`` from lifecycle rules."""

    terraform_type = "aws_s3_bucket_lifecycle_configuration"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        rules = [
            _lifecycle_rule(parse_view(LifecycleRuleView, raw))
            for raw in props.lifecycle_rules or []
        ]
        if not rules:
            return None

        return _sub_configuration(
            self.terraform_type,
            resource,
            context,
            props,
            {"rule": list_value(rules)},
        )


def _lifecycle_rule(rule: LifecycleRuleView) -> Value:
    attrs: dict[str, object] = {
        "id": rule.id,
        "status": rule.status or "Enabled",
    }

    rule_filter = rule.filter
    if rule_filter is not None:
        filter_attrs: dict[str, object] = {"prefix": rule_filter.prefix}
        if rule_filter.tag is not None and rule_filter.tag.key:
            filter_attrs["tag"] = block({"key": rule_filter.tag.key, "value": rule_filter.tag.value or ""})
        if rule_filter.and_ is not None:
            tags = {t.key: t.value or "" for t in rule_filter.and_.tags or [] if t.key}
            filter_attrs["and"] = block(
                {
                    "prefix": rule_filter.and_.prefix,
                    "tags": mapping(tags) if tags else None,
                }
            )
        attrs["filter"] = block(filter_attrs)
    elif rule.prefix is not None:
        attrs["filter"] = block({"prefix": rule.prefix})

    transitions = [
        block({"days": t.days, "date": t.date, "storage_class": t.storage_class})
        for t in rule.transitions or []
    ]
    if transitions:
        attrs["transition"] = list_value(transitions)

    if rule.expiration is not None:
        attrs["expiration"] = block(
            {
                "days": rule.expiration.days,
                "date": rule.expiration.date,
                "expired_object_delete_marker": rule.expiration.expired_object_delete_marker,
            }
        )

    noncurrent = [
        block({"noncurrent_days": t.noncurrent_days, "storage_class": t.storage_class})
        for t in rule.noncurrent_version_transitions or []
    ]
    if noncurrent:
        attrs["noncurrent_version_transition"] = list_value(noncurrent)

    if rule.noncurrent_version_expiration is not None:
        attrs["noncurrent_version_expiration"] = block(
            {"noncurrent_days": rule.noncurrent_version_expiration.noncurrent_days}
        )

    abort = rule.abort_incomplete_multipart_upload
    if abort is not None and abort.days_after_initiation is not None:
        attrs["abort_incomplete_multipart_upload"] = block(
            {"days_after_initiation": abort.days_after_initiation}
        )

    return block(attrs)


class S3BucketLoggingMapper(_BucketSubConfigurationMapper):
    """Emits ``aws_s3_bucket_logging`` when access logging is enabled."""

    terraform_type = "aws_s3_bucket_logging"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        logging_view = parse_view(LoggingView, props.logging)
        if not logging_view.target_bucket:
            return None

        return _sub_configuration(
            self.terraform_type,
            resource,
            context,
            props,
            {
                "target_bucket": _bucket_value(context, logging_view.target_bucket),
                "target_prefix": to_value(logging_view.target_prefix or ""),
            },
        )


class S3BucketPolicyMapper(_BucketSubConfigurationMapper):
    """
    Emits ``aws_s3_bucket_policy``.

    Runs as a bucket companion and is also registered on its own for
    standalone ``AWS::S3::BucketPolicy`` records, which carry the bucket
    name in ``bucket``.
    """

    aws_type = "AWS::S3::BucketPolicy"
    terraform_type = "aws_s3_bucket_policy"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        document = props.policy if props.policy is not None else props.policy_document
        policy = policy_document_to_string(document)
        if not policy:
            return None

        attributes: dict[str, Value] = {}
        set_attribute(attributes, "policy", policy)
        return _sub_configuration(self.terraform_type, resource, context, props, attributes)


class S3BucketMapper:
    """
    Maps buckets to ``aws_s3_bucket`` plus sub-configuration companions.
    """

    aws_type = BUCKET_KIND
    terraform_type = BUCKET_TERRAFORM_TYPE

    def __init__(self) -> None:
        self.companions: tuple[ResourceMapper, ...] = (
            S3BucketVersioningMapper(),
            S3BucketEncryptionMapper(),
            S3BucketPublicAccessBlockMapper(),
            S3BucketLifecycleMapper(),
            S3BucketLoggingMapper(),
            S3BucketPolicyMapper(),
        )

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, BucketProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "bucket", bucket_name_for(resource, props))
        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return bucket_name_for(resource, parse_properties(resource, BucketProperties))

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = resource.name or resource.id
        return [
            output(name, address, "id", f"Name of S3 bucket {label}"),
            output(name, address, "arn", f"ARN of S3 bucket {label}"),
        ]


def get_s3_mappers() -> list[ResourceMapper]:
    """Return the bucket mapper and the standalone bucket policy mapper."""
    return [
        S3BucketMapper(),
        S3BucketPolicyMapper(),
    ]
