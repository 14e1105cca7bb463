"""
Configuration management for terramap.

Settings are loaded from environment variables (prefix ``TERRAMAP_``) or an
optional ``.env`` file and validated with pydantic. Every setting has a
default, so ``Settings()`` works without any environment.

Environment Variables:
    TERRAMAP_DEFAULT_REGION: Region for records without one and the provider block (default: us-east-1)
    TERRAMAP_ACCOUNT_ID: Account used to build candidate ARNs (optional)
    TERRAMAP_GENERATE_IMPORT_BLOCKS: Emit import blocks (default: true)
    TERRAMAP_ORGANIZE_BY_SERVICE: Group generated resources by service (default: true)
    TERRAMAP_TERRAFORM_VERSION: Terraform version constraint (default: 1.5.0)
    TERRAMAP_AWS_PROVIDER_VERSION: AWS provider constraint (default: ~> 5.0)
    TERRAMAP_SENSITIVE_VAR_PREFIX: Prefix for externalized secrets (default: sensitive_)
    TERRAMAP_MANAGED_TAG_PREFIXES: JSON list or comma list of tag prefixes to drop (default: aws:)
    TERRAMAP_LOG_LEVEL: Logging level (default: INFO)

Usage:
    from terramap.config import get_settings

    settings = get_settings()
    print(settings.default_region)
"""

import json
import re
from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from terramap.errors import ConfigurationError

_REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d+$")
_ACCOUNT_PATTERN = re.compile(r"^\d{12}$")
_IDENTIFIER_PREFIX_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


class Settings(BaseSettings):
    """
    terramap configuration settings.

    Attributes:
        default_region: Region assumed for records without one, and the
            default of the provider region variable
        account_id: AWS account id used for candidate ARNs
        generate_import_blocks: Whether to produce import blocks
        organize_by_service: Whether results are grouped by service
        terraform_version: Minimum Terraform version for generated config
        aws_provider_version: AWS provider version constraint
        sensitive_var_prefix: Name prefix for externalized secret variables
        managed_tag_prefixes: Tag key prefixes owned by the cloud provider
        log_level: Level of the terramap loggers (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    model_config = SettingsConfigDict(
        env_prefix="TERRAMAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    default_region: str = Field(
        default="us-east-1",
        description="Default AWS region",
    )
    account_id: str | None = Field(
        default=None,
        description="AWS account id used to build candidate ARNs",
    )

    # Generation toggles
    generate_import_blocks: bool = Field(
        default=True,
        description="Generate import blocks for mapped resources",
    )
    organize_by_service: bool = Field(
        default=True,
        description="Group generated resources by service",
    )
    terraform_version: str = Field(
        default="1.5.0",
        description="Terraform version constraint",
    )
    aws_provider_version: str = Field(
        default="~> 5.0",
        description="AWS provider version constraint",
    )

    # Mapping behaviour
    sensitive_var_prefix: str = Field(
        default="sensitive_",
        description="Prefix for variables that hold externalized secrets",
    )
    managed_tag_prefixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["aws:"],
        description="Tag key prefixes managed by the cloud provider",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("default_region")
    @classmethod
    def validate_default_region(cls, v: str) -> str:
        """
        Validate AWS region format.

        Raises:
            ConfigurationError: If region is empty or malformed
        """
        value = v.strip()
        if not _REGION_PATTERN.match(value):
            raise ConfigurationError(
                f"TERRAMAP_DEFAULT_REGION '{v}' does not appear to be a valid AWS region",
                config_key="TERRAMAP_DEFAULT_REGION",
                reason="Region format is invalid (expected format: us-west-2)",
            )
        return value

    @field_validator("account_id")
    @classmethod
    def validate_account_id(cls, v: str | None) -> str | None:
        """
        Validate account id is twelve digits when set.

        Raises:
            ConfigurationError: If account id is malformed
        """
        if v is None or not v.strip():
            return None
        value = v.strip()
        if not _ACCOUNT_PATTERN.match(value):
            raise ConfigurationError(
                f"TERRAMAP_ACCOUNT_ID '{v}' is not a 12-digit AWS account id",
                config_key="TERRAMAP_ACCOUNT_ID",
                reason="Account id must be exactly 12 digits",
            )
        return value

    @field_validator("sensitive_var_prefix")
    @classmethod
    def validate_sensitive_var_prefix(cls, v: str) -> str:
        """
        Validate the prefix can start a Terraform identifier.

        Raises:
            ConfigurationError: If prefix contains invalid characters
        """
        if not _IDENTIFIER_PREFIX_PATTERN.match(v):
            raise ConfigurationError(
                f"TERRAMAP_SENSITIVE_VAR_PREFIX '{v}' is not a valid identifier prefix",
                config_key="TERRAMAP_SENSITIVE_VAR_PREFIX",
                reason="Prefix must match ^[a-z_][a-z0-9_]*$",
            )
        return v

    @field_validator("managed_tag_prefixes", mode="before")
    @classmethod
    def parse_managed_tag_prefixes(cls, v: Any) -> list[str]:
        """
        Parse managed tag prefixes from a JSON list, comma list, or list.

        Raises:
            ConfigurationError: If the value cannot be read as a list of strings
        """
        if isinstance(v, list):
            return [str(item) for item in v if str(item)]
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return []
            if text.startswith("["):
                try:
                    parsed = json.loads(text)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(
                        f"TERRAMAP_MANAGED_TAG_PREFIXES is not valid JSON: {e}",
                        config_key="TERRAMAP_MANAGED_TAG_PREFIXES",
                        reason=str(e),
                    ) from e
                if not isinstance(parsed, list):
                    raise ConfigurationError(
                        "TERRAMAP_MANAGED_TAG_PREFIXES must be a JSON list",
                        config_key="TERRAMAP_MANAGED_TAG_PREFIXES",
                        reason="Parsed JSON is not a list",
                    )
                return [str(item) for item in parsed if str(item)]
            return [part.strip() for part in text.split(",") if part.strip()]
        raise ConfigurationError(
            "TERRAMAP_MANAGED_TAG_PREFIXES must be a list of strings",
            config_key="TERRAMAP_MANAGED_TAG_PREFIXES",
            reason=f"Unsupported value type: {type(v).__name__}",
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is recognized.

        Raises:
            ConfigurationError: If log level is invalid
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ConfigurationError(
                f"TERRAMAP_LOG_LEVEL '{v}' is not valid. Must be one of: {', '.join(sorted(valid_levels))}",
                config_key="TERRAMAP_LOG_LEVEL",
                reason=f"Invalid log level: {v}",
            )
        return v_upper


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load configuration: {e}",
            reason=str(e),
        ) from e
