"""
AWS resource kind to Terraform resource type lookup tables.

Two static tables are exposed for tooling built on top of the generator:

    AWS_TO_TERRAFORM_TYPE_MAP    provider kind -> target type, used for
                                 compatibility reporting
    TERRAFORM_TYPE_TO_SERVICE    target type -> logical service group, used
                                 to organize generated output into files

Examples of kinds whose target type is not a string transform:
    - AWS::IAM::ManagedPolicy -> aws_iam_policy
    - AWS::RDS::DBCluster -> aws_rds_cluster
    - AWS::DynamoDB::GlobalTable -> aws_dynamodb_table

Usage:
    from terramap.resource_mappings import aws_to_terraform_type

    tf_type = aws_to_terraform_type("AWS::EC2::Instance")
    # Returns: "aws_instance"
"""

from terramap.logging_config import get_logger, log_with_context

logger = get_logger(__name__)


AWS_TO_TERRAFORM_TYPE_MAP: dict[str, str] = {
    # ==========================================================================
    # Compute
    # ==========================================================================
    "AWS::EC2::Instance": "aws_instance",
    "AWS::EC2::Volume": "aws_ebs_volume",
    "AWS::EC2::SecurityGroup": "aws_security_group",
    "AWS::EC2::LaunchTemplate": "aws_launch_template",
    "AWS::EC2::KeyPair": "aws_key_pair",
    # ==========================================================================
    # Networking
    # ==========================================================================
    "AWS::EC2::VPC": "aws_vpc",
    "AWS::EC2::Subnet": "aws_subnet",
    "AWS::EC2::RouteTable": "aws_route_table",
    "AWS::EC2::InternetGateway": "aws_internet_gateway",
    "AWS::EC2::NatGateway": "aws_nat_gateway",
    "AWS::EC2::VPCEndpoint": "aws_vpc_endpoint",
    "AWS::EC2::NetworkAcl": "aws_network_acl",
    # ==========================================================================
    # Object Storage
    # ==========================================================================
    "AWS::S3::Bucket": "aws_s3_bucket",
    "AWS::S3::BucketPolicy": "aws_s3_bucket_policy",
    # ==========================================================================
    # Relational Storage
    # ==========================================================================
    "AWS::RDS::DBInstance": "aws_db_instance",
    "AWS::RDS::DBCluster": "aws_rds_cluster",
    "AWS::RDS::DBSubnetGroup": "aws_db_subnet_group",
    "AWS::RDS::DBParameterGroup": "aws_db_parameter_group",
    # ==========================================================================
    # Serverless
    # ==========================================================================
    "AWS::Lambda::Function": "aws_lambda_function",
    "AWS::Lambda::LayerVersion": "aws_lambda_layer_version",
    "AWS::Lambda::EventSourceMapping": "aws_lambda_event_source_mapping",
    "AWS::Lambda::Permission": "aws_lambda_permission",
    # ==========================================================================
    # Identity
    # ==========================================================================
    "AWS::IAM::Role": "aws_iam_role",
    "AWS::IAM::ManagedPolicy": "aws_iam_policy",
    "AWS::IAM::User": "aws_iam_user",
    "AWS::IAM::Group": "aws_iam_group",
    "AWS::IAM::InstanceProfile": "aws_iam_instance_profile",
    "AWS::IAM::RolePolicyAttachment": "aws_iam_role_policy_attachment",
    "AWS::IAM::UserPolicyAttachment": "aws_iam_user_policy_attachment",
    "AWS::IAM::GroupPolicyAttachment": "aws_iam_group_policy_attachment",
    # ==========================================================================
    # Container Orchestration
    # ==========================================================================
    "AWS::ECS::Cluster": "aws_ecs_cluster",
    "AWS::ECS::Service": "aws_ecs_service",
    "AWS::ECS::TaskDefinition": "aws_ecs_task_definition",
    "AWS::EKS::Cluster": "aws_eks_cluster",
    "AWS::EKS::Nodegroup": "aws_eks_node_group",
    # ==========================================================================
    # Key-Value Storage
    # ==========================================================================
    "AWS::DynamoDB::Table": "aws_dynamodb_table",
    "AWS::DynamoDB::GlobalTable": "aws_dynamodb_table",
    # ==========================================================================
    # Content Delivery
    # ==========================================================================
    "AWS::CloudFront::Distribution": "aws_cloudfront_distribution",
    "AWS::CloudFront::CloudFrontOriginAccessIdentity": "aws_cloudfront_origin_access_identity",
    "AWS::CloudFront::OriginAccessControl": "aws_cloudfront_origin_access_control",
}


TERRAFORM_TYPE_TO_SERVICE: dict[str, str] = {
    # EC2
    "aws_instance": "ec2",
    "aws_ebs_volume": "ec2",
    "aws_security_group": "ec2",
    "aws_launch_template": "ec2",
    "aws_key_pair": "ec2",
    # VPC
    "aws_vpc": "vpc",
    "aws_subnet": "vpc",
    "aws_route_table": "vpc",
    "aws_internet_gateway": "vpc",
    "aws_nat_gateway": "vpc",
    "aws_vpc_endpoint": "vpc",
    "aws_network_acl": "vpc",
    # S3 (bucket plus its sub-configuration resources)
    "aws_s3_bucket": "s3",
    "aws_s3_bucket_versioning": "s3",
    "aws_s3_bucket_server_side_encryption_configuration": "s3",
    "aws_s3_bucket_public_access_block": "s3",
    "aws_s3_bucket_lifecycle_configuration": "s3",
    "aws_s3_bucket_logging": "s3",
    "aws_s3_bucket_policy": "s3",
    # RDS
    "aws_db_instance": "rds",
    "aws_rds_cluster": "rds",
    "aws_db_subnet_group": "rds",
    "aws_db_parameter_group": "rds",
    # Lambda
    "aws_lambda_function": "lambda",
    "aws_lambda_layer_version": "lambda",
    "aws_lambda_event_source_mapping": "lambda",
    "aws_lambda_permission": "lambda",
    # IAM
    "aws_iam_role": "iam",
    "aws_iam_policy": "iam",
    "aws_iam_user": "iam",
    "aws_iam_group": "iam",
    "aws_iam_instance_profile": "iam",
    "aws_iam_role_policy_attachment": "iam",
    "aws_iam_user_policy_attachment": "iam",
    "aws_iam_group_policy_attachment": "iam",
    # ECS / EKS
    "aws_ecs_cluster": "ecs",
    "aws_ecs_service": "ecs",
    "aws_ecs_task_definition": "ecs",
    "aws_eks_cluster": "eks",
    "aws_eks_node_group": "eks",
    # DynamoDB
    "aws_dynamodb_table": "dynamodb",
    # CloudFront
    "aws_cloudfront_distribution": "cloudfront",
    "aws_cloudfront_origin_access_identity": "cloudfront",
    "aws_cloudfront_origin_access_control": "cloudfront",
}

DEFAULT_SERVICE = "misc"


def aws_to_terraform_type(aws_type: str) -> str | None:
    """
    Convert an AWS resource kind to its Terraform resource type.

    Returns None for unknown kinds rather than guessing.

    Args:
        aws_type: AWS resource kind (e.g., "AWS::S3::Bucket")

    Returns:
        Terraform resource type (e.g., "aws_s3_bucket") or None if unknown

    Examples:
        >>> aws_to_terraform_type("AWS::EKS::Nodegroup")
        "aws_eks_node_group"
        >>> aws_to_terraform_type("AWS::Unknown::Type")
        None
    """
    result = AWS_TO_TERRAFORM_TYPE_MAP.get(aws_type)

    if result is None:
        log_with_context(
            logger,
            "debug",
            "Unknown AWS resource type",
            aws_type=aws_type,
        )

    return result


def get_service_for_terraform_type(terraform_type: str) -> str:
    """
    Get the logical service group for a Terraform resource type.

    Args:
        terraform_type: Terraform resource type

    Returns:
        Service group name, or "misc" for types outside the table
    """
    return TERRAFORM_TYPE_TO_SERVICE.get(terraform_type, DEFAULT_SERVICE)


def get_all_terraform_types_for_service(service: str) -> list[str]:
    """
    Get all Terraform resource types in a service group.

    Example:
        >>> get_all_terraform_types_for_service("rds")
        ["aws_db_instance", "aws_rds_cluster", ...]
    """
    return [
        tf_type
        for tf_type, group in TERRAFORM_TYPE_TO_SERVICE.items()
        if group == service
    ]


def get_supported_aws_types() -> list[str]:
    """
    Get list of all supported AWS resource kinds.

    Returns:
        Sorted list of AWS resource kinds with a known Terraform type
    """
    return sorted(AWS_TO_TERRAFORM_TYPE_MAP.keys())


def is_supported_type(aws_type: str) -> bool:
    """
    Check if an AWS resource kind has a known Terraform type.

    Args:
        aws_type: AWS resource kind

    Returns:
        True if the kind is in the mapping table
    """
    return aws_type in AWS_TO_TERRAFORM_TYPE_MAP
