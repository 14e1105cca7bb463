"""
Custom exception classes for terramap.

This module defines the exceptions raised while turning discovered cloud
resources into Terraform definitions. Only configuration and input validation
errors ever reach the caller of ``TerraformGenerator.generate``; failures
inside a single mapper are wrapped in ``MapperError``, logged, and turned
into a warning so that the rest of the batch still maps.

Exception Hierarchy:
    TerramapError (base)
    ├── ConfigurationError (invalid settings, raised at startup)
    ├── InvalidResourceError (input record is not a DiscoveredResource)
    ├── RegistryError (invalid mapper registration)
    └── MapperError (exception raised inside a mapper, never propagated)
"""


class TerramapError(Exception):
    """
    Base exception for all terramap errors.

    Attributes:
        message: Human-readable error description
        context: Additional context dictionary for structured logging
    """

    def __init__(
        self,
        message: str,
        context: dict[str, object] | None = None,
    ) -> None:
        """
        Initialize terramap error.

        Args:
            message: Human-readable error description
            context: Additional context for structured logging
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return string representation of error."""
        return self.message


class ConfigurationError(TerramapError):
    """
    Error in terramap configuration.

    Raised when settings loaded from the environment are invalid. These
    require user intervention.

    Attributes:
        config_key: Configuration key that is invalid
        reason: Specific validation failure reason
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Initialize configuration error.

        Args:
            message: Human-readable error description
            config_key: Configuration key that failed validation
            reason: Why the configuration is invalid
        """
        context = {
            "config_key": config_key,
            "reason": reason,
        }
        super().__init__(message, context=context)
        self.config_key = config_key
        self.reason = reason


class InvalidResourceError(TerramapError):
    """
    Input record could not be read as a discovered resource.

    Built when a raw record is missing required fields (id, type, region)
    or has the wrong shape. The generator logs it and lists the record as
    rejected; it never escapes a generation run.

    Attributes:
        resource_id: Identifier of the record, when one could be read
        reason: Validation failure details
    """

    def __init__(
        self,
        message: str,
        resource_id: str | None = None,
        reason: str | None = None,
    ) -> None:
        context = {
            "resource_id": resource_id,
            "reason": reason,
        }
        super().__init__(message, context=context)
        self.resource_id = resource_id
        self.reason = reason


class RegistryError(TerramapError):
    """
    Invalid mapper registration.

    Attributes:
        aws_type: Resource kind the mapper declared
    """

    def __init__(self, message: str, aws_type: str | None = None) -> None:
        super().__init__(message, context={"aws_type": aws_type})
        self.aws_type = aws_type


class MapperError(TerramapError):
    """
    Exception raised inside a resource mapper.

    The generator builds one of these when ``map`` raises, logs it with the
    resource details, and records its message as a generation warning. The
    resource is then reported as unmapped.

    Attributes:
        aws_type: Resource kind being mapped
        resource_id: Discovery identifier of the resource
        cause: Original exception
    """

    def __init__(
        self,
        message: str,
        aws_type: str | None = None,
        resource_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """
        Initialize mapper error.

        Args:
            message: Human-readable error description
            aws_type: Resource kind being mapped
            resource_id: Discovery identifier of the resource
            cause: Original exception raised by the mapper
        """
        context = {
            "aws_type": aws_type,
            "resource_id": resource_id,
            "cause": repr(cause) if cause is not None else None,
        }
        super().__init__(message, context=context)
        self.aws_type = aws_type
        self.resource_id = resource_id
        self.cause = cause
