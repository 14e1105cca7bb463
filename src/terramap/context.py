"""
Run-scoped mapping context.

A ``MappingContext`` is created for each generation pass and handed to every
mapper. It owns the state that mappers share:

    - the ARN -> generated resource table used for cross references
    - the variable registry, with collision-free naming
    - captured sensitive values, kept out of every resource attribute

Mutation is serialized by a re-entrant lock so that name disambiguation and
the ARN table stay consistent if mappers are ever run from several threads.

Usage:
    context = MappingContext(settings)
    ref = context.get_resource_reference(subnet_arn)
    password = context.mark_sensitive("db_password", "hunter2")
"""

import re
import threading
from dataclasses import dataclass

from terramap.config import Settings
from terramap.logging_config import get_logger, log_with_context
from terramap.models import GeneratedResource, GeneratedVariable
from terramap.values import Reference

logger = get_logger(__name__)

_INVALID_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUN = re.compile(r"_+")


@dataclass(frozen=True)
class ContextCheckpoint:
    """Registry contents at one point of a run."""

    variables: dict[str, GeneratedVariable]
    sensitive_values: dict[str, str]


class MappingContext:
    """
    Shared state for one generation pass.

    Attributes:
        settings: Settings the pass runs with
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize an empty context.

        Args:
            settings: Settings the pass runs with
        """
        self.settings: Settings = settings
        self._lock: threading.RLock = threading.RLock()
        self._arn_to_resource: dict[str, GeneratedResource] = {}
        self._variables: dict[str, GeneratedVariable] = {}
        self._sensitive_values: dict[str, str] = {}

    @property
    def variables(self) -> list[GeneratedVariable]:
        """Variables in registration order."""
        with self._lock:
            return list(self._variables.values())

    @property
    def sensitive_values(self) -> dict[str, str]:
        """Captured secret values keyed by variable name."""
        with self._lock:
            return dict(self._sensitive_values)

    def checkpoint(self) -> ContextCheckpoint:
        """Capture the variable and secret registries before a mapper runs."""
        with self._lock:
            return ContextCheckpoint(
                variables=dict(self._variables),
                sensitive_values=dict(self._sensitive_values),
            )

    def rollback(self, checkpoint: ContextCheckpoint) -> None:
        """
        Drop every variable and secret registered since ``checkpoint``.

        Used when a mapper fails partway, so a resource that ends up unmapped
        leaves nothing behind in the run.
        """
        with self._lock:
            dropped = len(self._variables) - len(checkpoint.variables)
            self._variables = dict(checkpoint.variables)
            self._sensitive_values = dict(checkpoint.sensitive_values)

        if dropped:
            log_with_context(
                logger,
                "debug",
                "Rolled back variables of a failed mapping",
                dropped_variables=dropped,
            )

    def add_variable(self, variable: GeneratedVariable) -> str:
        """
        Register a variable under a name unique within the run.

        When the requested name is taken, ``_1``, ``_2``, ... is appended
        until a free name is found. Existing variables are never replaced.

        Args:
            variable: Variable to register; its ``name`` is the requested name

        Returns:
            Name the variable was registered under
        """
        with self._lock:
            var_name = variable.name
            counter = 1
            while var_name in self._variables:
                var_name = f"{variable.name}_{counter}"
                counter += 1

            variable.name = var_name
            self._variables[var_name] = variable
            return var_name

    def mark_sensitive(
        self,
        key: str,
        value: object,
        description: str | None = None,
    ) -> Reference:
        """
        Externalize a secret value into a sensitive variable.

        The raw value is kept in ``sensitive_values`` for a separate tfvars
        writer and never becomes the variable's default.

        Args:
            key: Name the variable is derived from
            value: Secret value captured from discovery
            description: Variable description

        Returns:
            Reference to ``var.<name>``
        """
        var_name = self.add_variable(
            GeneratedVariable(
                name=f"{self.settings.sensitive_var_prefix}{_sanitize_key(key)}",
                type="string",
                description=description or f"Sensitive value for {key}",
                sensitive=True,
            )
        )
        with self._lock:
            self._sensitive_values[var_name] = "" if value is None else str(value)
        return Reference(f"var.{var_name}")

    def get_resource_reference(self, arn: str, attribute: str = "id") -> Reference | None:
        """
        Look up a resource mapped earlier in this pass by its ARN.

        Args:
            arn: ARN of the referenced resource
            attribute: Attribute of the referenced resource to point at

        Returns:
            Reference such as ``aws_subnet.app.id``, or None when no resource
            with that ARN has been registered yet
        """
        with self._lock:
            resource = self._arn_to_resource.get(arn)
        if resource is None:
            return None
        return Reference(f"{resource.address}.{attribute}")

    def register_resource(self, resource: GeneratedResource) -> None:
        """
        Make a generated resource available for cross references.

        Resources without a source ARN cannot be referenced and are skipped.
        Registering a second resource for the same ARN replaces the first.
        """
        source = resource.source
        if source is None or not source.arn:
            return

        with self._lock:
            previous = self._arn_to_resource.get(source.arn)
            self._arn_to_resource[source.arn] = resource

        if previous is not None and previous is not resource:
            log_with_context(
                logger,
                "debug",
                "ARN registered twice, keeping latest resource",
                arn=source.arn,
                previous_address=previous.address,
                address=resource.address,
            )


def _sanitize_key(key: str) -> str:
    sanitized = _INVALID_IDENTIFIER_CHARS.sub("_", key.lower())
    sanitized = _UNDERSCORE_RUN.sub("_", sanitized).strip("_")
    return sanitized or "value"
