"""
Resource mappers and the registry that dispatches to them.

The registry is a plain object owned by whoever runs a generation pass;
there is no module-level instance. ``create_mapper_registry`` builds one
holding every mapper shipped with terramap.

Usage:
    registry = create_mapper_registry()
    mapper = registry.get("AWS::EC2::Instance")
"""

from collections.abc import Iterable

from terramap.errors import RegistryError
from terramap.logging_config import get_logger, log_with_context
from terramap.mappers.base import ResourceMapper
from terramap.mappers.cloudfront import get_cloudfront_mappers
from terramap.mappers.containers import get_container_mappers
from terramap.mappers.dynamodb import get_dynamodb_mappers
from terramap.mappers.ec2 import get_ec2_mappers
from terramap.mappers.iam import get_iam_mappers
from terramap.mappers.lambda_ import get_lambda_mappers
from terramap.mappers.rds import get_rds_mappers
from terramap.mappers.s3 import get_s3_mappers
from terramap.mappers.vpc import get_vpc_mappers

logger = get_logger(__name__)

__all__ = [
    "MapperRegistry",
    "ResourceMapper",
    "create_mapper_registry",
    "get_all_mappers",
]


class MapperRegistry:
    """
    Lookup from discovered resource kind to mapper.

    Registering a second mapper for a kind replaces the first one.
    """

    def __init__(self, mappers: Iterable[ResourceMapper] = ()) -> None:
        self._mappers: dict[str, ResourceMapper] = {}
        for mapper in mappers:
            self.register(mapper)

    def register(self, mapper: ResourceMapper) -> None:
        """
        Register ``mapper`` under its ``aws_type``.

        Raises:
            RegistryError: If the mapper declares no resource kind
        """
        aws_type = getattr(mapper, "aws_type", None)
        if not isinstance(aws_type, str) or not aws_type:
            raise RegistryError(
                f"Mapper {type(mapper).__name__} declares no aws_type",
                aws_type=aws_type if isinstance(aws_type, str) else None,
            )

        previous = self._mappers.get(aws_type)
        if previous is not None and previous is not mapper:
            log_with_context(
                logger,
                "warning",
                "Replacing registered mapper",
                aws_type=aws_type,
                previous_mapper=type(previous).__name__,
                mapper=type(mapper).__name__,
            )
        self._mappers[aws_type] = mapper

    def get(self, aws_type: str) -> ResourceMapper | None:
        """Return the mapper for ``aws_type``, or None if none is registered."""
        return self._mappers.get(aws_type)

    def __contains__(self, aws_type: object) -> bool:
        return aws_type in self._mappers

    def __len__(self) -> int:
        return len(self._mappers)

    def kinds(self) -> list[str]:
        """Registered resource kinds, sorted."""
        return sorted(self._mappers)

    def mappers(self) -> list[ResourceMapper]:
        """Registered mappers in registration order."""
        return list(self._mappers.values())


def get_all_mappers() -> list[ResourceMapper]:
    """Return one instance of every mapper shipped with terramap."""
    return [
        *get_ec2_mappers(),
        *get_vpc_mappers(),
        *get_s3_mappers(),
        *get_rds_mappers(),
        *get_lambda_mappers(),
        *get_iam_mappers(),
        *get_container_mappers(),
        *get_dynamodb_mappers(),
        *get_cloudfront_mappers(),
    ]


def create_mapper_registry() -> MapperRegistry:
    """Build a registry holding every mapper shipped with terramap."""
    registry = MapperRegistry(get_all_mappers())
    log_with_context(
        logger,
        "debug",
        "Mapper registry created",
        mapper_count=len(registry),
    )
    return registry
