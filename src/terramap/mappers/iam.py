"""
Identity mappers: roles, managed policies, users, groups, instance profiles
and policy attachments.

Policy documents arrive either as JSON text or already decoded; decoded
documents are re-encoded with an indent of 2 so the generated configuration
stays readable.
"""

from typing import Any

from terramap.context import MappingContext
from terramap.mappers.base import PropertyView, ResourceMapper, parse_properties
from terramap.mappers.utils import (
    apply_tags,
    build_arn,
    generate_resource_name,
    output,
    policy_document_to_string,
    resource_ref_or_literal,
    set_attribute,
)
from terramap.models import DiscoveredResource, GeneratedOutput, GeneratedResource
from terramap.values import Value, block, list_value

PolicyDocument = dict[str, Any] | str


def _path(path: str | None) -> str | None:
    # "/" is the provider default
    return path if path and path != "/" else None


def _iam_ref(
    context: MappingContext,
    resource: DiscoveredResource,
    kind: str,
    entity_name: str,
) -> Value:
    arn = build_arn("iam", resource, f"{kind}/{entity_name}", context.settings, region="")
    return resource_ref_or_literal(context, arn, entity_name, attribute="name")


def _policy_arn_ref(context: MappingContext, policy_arn: str) -> Value:
    # AWS managed policies are never mapped, so those stay literal
    return resource_ref_or_literal(context, policy_arn, policy_arn, attribute="arn")


class AttachedPolicy(PropertyView):
    policy_arn: str | None = None


class InlinePolicy(PropertyView):
    policy_name: str | None = None
    policy_document: PolicyDocument | None = None


class RoleProperties(PropertyView):
    role_name: str | None = None
    path: str | None = None
    description: str | None = None
    assume_role_policy_document: PolicyDocument | None = None
    max_session_duration: int | None = None
    permissions_boundary: str | None = None
    attached_managed_policies: list[AttachedPolicy] | None = None
    inline_policies: list[InlinePolicy] | None = None


class IAMRoleMapper:
    """Maps IAM roles to ``aws_iam_role``."""

    aws_type = "AWS::IAM::Role"
    terraform_type = "aws_iam_role"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, RoleProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.role_name)
        set_attribute(attributes, "path", _path(props.path))
        set_attribute(attributes, "description", props.description or None)
        set_attribute(
            attributes,
            "assume_role_policy",
            policy_document_to_string(props.assume_role_policy_document) or None,
        )
        set_attribute(attributes, "max_session_duration", props.max_session_duration or None)
        set_attribute(attributes, "permissions_boundary", props.permissions_boundary)

        policy_arns = [
            _policy_arn_ref(context, p.policy_arn)
            for p in props.attached_managed_policies or []
            if p.policy_arn
        ]
        if policy_arns:
            attributes["managed_policy_arns"] = list_value(policy_arns)

        inline: list[Value] = []
        for policy in props.inline_policies or []:
            document = policy_document_to_string(policy.policy_document)
            if policy.policy_name and document:
                inline.append(block({"name": policy.policy_name, "policy": document}))
        if inline:
            attributes["inline_policy"] = list_value(inline)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, RoleProperties).role_name or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, RoleProperties)
        name = generate_resource_name(resource)
        address = f"{self.terraform_type}.{name}"
        label = props.role_name or resource.id
        return [
            output(name, address, "arn", f"ARN of IAM role {label}"),
            output(name, address, "name", f"Name of IAM role {label}"),
        ]


class ManagedPolicyProperties(PropertyView):
    policy_name: str | None = None
    path: str | None = None
    description: str | None = None
    policy_document: PolicyDocument | None = None


class IAMPolicyMapper:
    """Maps customer managed policies to ``aws_iam_policy``."""

    aws_type = "AWS::IAM::ManagedPolicy"
    terraform_type = "aws_iam_policy"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, ManagedPolicyProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.policy_name)
        set_attribute(attributes, "path", _path(props.path))
        set_attribute(attributes, "description", props.description or None)
        set_attribute(attributes, "policy", policy_document_to_string(props.policy_document) or None)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return resource.arn or resource.id

    def get_suggested_outputs(self, resource: DiscoveredResource) -> list[GeneratedOutput]:
        props = parse_properties(resource, ManagedPolicyProperties)
        name = generate_resource_name(resource)
        return [
            output(
                name,
                f"{self.terraform_type}.{name}",
                "arn",
                f"ARN of IAM policy {props.policy_name or resource.id}",
            )
        ]


class UserProperties(PropertyView):
    user_name: str | None = None
    path: str | None = None
    permissions_boundary: str | None = None


class IAMUserMapper:
    """Maps IAM users to ``aws_iam_user``."""

    aws_type = "AWS::IAM::User"
    terraform_type = "aws_iam_user"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, UserProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.user_name)
        set_attribute(attributes, "path", _path(props.path))
        set_attribute(attributes, "permissions_boundary", props.permissions_boundary)
        set_attribute(attributes, "force_destroy", False)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, UserProperties).user_name or resource.id


class GroupProperties(PropertyView):
    group_name: str | None = None
    path: str | None = None


class IAMGroupMapper:
    """Maps IAM groups to ``aws_iam_group``. Groups carry no tags."""

    aws_type = "AWS::IAM::Group"
    terraform_type = "aws_iam_group"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, GroupProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.group_name)
        set_attribute(attributes, "path", _path(props.path))

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        return parse_properties(resource, GroupProperties).group_name or resource.id


class ProfileRole(PropertyView):
    role_name: str | None = None
    arn: str | None = None


class InstanceProfileProperties(PropertyView):
    instance_profile_name: str | None = None
    path: str | None = None
    roles: list[ProfileRole] | None = None


class IAMInstanceProfileMapper:
    """Maps instance profiles to ``aws_iam_instance_profile``."""

    aws_type = "AWS::IAM::InstanceProfile"
    terraform_type = "aws_iam_instance_profile"

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, InstanceProfileProperties)
        attributes: dict[str, Value] = {}

        set_attribute(attributes, "name", props.instance_profile_name)
        set_attribute(attributes, "path", _path(props.path))

        # an instance profile holds at most one role
        roles = props.roles or []
        if roles and roles[0].role_name:
            role = roles[0]
            if role.arn:
                attributes["role"] = resource_ref_or_literal(
                    context, role.arn, role.role_name, attribute="name"
                )
            else:
                attributes["role"] = _iam_ref(context, resource, "role", role.role_name)

        apply_tags(attributes, resource, context)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, InstanceProfileProperties)
        return props.instance_profile_name or resource.id


class PolicyAttachmentProperties(PropertyView):
    role_name: str | None = None
    user_name: str | None = None
    group_name: str | None = None
    policy_arn: str | None = None


class _PolicyAttachmentMapper:
    """
    Shared behaviour of the role, user and group policy attachments.

    Subclasses name the principal attribute and the property it comes from.
    Import ids are ``<principal>/<policy arn>``.
    """

    aws_type = ""
    terraform_type = ""
    principal_attribute = ""
    principal_kind = ""

    def _principal(self, props: PolicyAttachmentProperties) -> str | None:
        raise NotImplementedError

    def map(self, resource: DiscoveredResource, context: MappingContext) -> GeneratedResource | None:
        props = parse_properties(resource, PolicyAttachmentProperties)
        attributes: dict[str, Value] = {}

        principal = self._principal(props)
        if principal:
            attributes[self.principal_attribute] = _iam_ref(
                context, resource, self.principal_kind, principal
            )
        if props.policy_arn:
            attributes["policy_arn"] = _policy_arn_ref(context, props.policy_arn)

        return GeneratedResource(
            terraform_type=self.terraform_type,
            name=generate_resource_name(resource),
            attributes=attributes,
            source=resource,
        )

    def get_import_id(self, resource: DiscoveredResource) -> str:
        props = parse_properties(resource, PolicyAttachmentProperties)
        principal = self._principal(props)
        if principal and props.policy_arn:
            return f"{principal}/{props.policy_arn}"
        return resource.id


class IAMRolePolicyAttachmentMapper(_PolicyAttachmentMapper):
    aws_type = "AWS::IAM::RolePolicyAttachment"
    terraform_type = "aws_iam_role_policy_attachment"
    principal_attribute = "role"
    principal_kind = "role"

    def _principal(self, props: PolicyAttachmentProperties) -> str | None:
        return props.role_name


class IAMUserPolicyAttachmentMapper(_PolicyAttachmentMapper):
    aws_type = "AWS::IAM::UserPolicyAttachment"
    terraform_type = "aws_iam_user_policy_attachment"
    principal_attribute = "user"
    principal_kind = "user"

    def _principal(self, props: PolicyAttachmentProperties) -> str | None:
        return props.user_name


class IAMGroupPolicyAttachmentMapper(_PolicyAttachmentMapper):
    aws_type = "AWS::IAM::GroupPolicyAttachment"
    terraform_type = "aws_iam_group_policy_attachment"
    principal_attribute = "group"
    principal_kind = "group"

    def _principal(self, props: PolicyAttachmentProperties) -> str | None:
        return props.group_name


def get_iam_mappers() -> list[ResourceMapper]:
    """Return one instance of every identity mapper."""
    return [
        IAMRoleMapper(),
        IAMPolicyMapper(),
        IAMUserMapper(),
        IAMGroupMapper(),
        IAMInstanceProfileMapper(),
        IAMRolePolicyAttachmentMapper(),
        IAMUserPolicyAttachmentMapper(),
        IAMGroupPolicyAttachmentMapper(),
    ]
