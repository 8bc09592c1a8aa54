"""Factory registry and entry point discovery."""

import re
from collections.abc import Iterable, Iterator
from importlib.metadata import entry_points

import structlog

from configsource.errors import (
    DuplicateFactoryTypeError,
    InvalidFactoryTypeError,
    UnknownSourceTypeError,
)
from configsource.sources.base import Factory
from configsource.sources.constants import DEFAULT_ENTRY_POINT_GROUP, TYPE_NAME_PATTERN


logger = structlog.get_logger()

_TYPE_NAME_RE = re.compile(TYPE_NAME_PATTERN)


class FactoryRegistry:
    """Validated index of factories by type name.

    Built once from an ordered sequence of factories. Validation happens
    entirely at construction: a malformed or duplicated type name fails
    the construction and no registry is produced.
    """

    def __init__(self, factories: Iterable[Factory]) -> None:
        """Initialize the registry.

        Args:
            factories: Factories in registration order.

        Raises:
            InvalidFactoryTypeError: If a type name is empty or malformed.
            DuplicateFactoryTypeError: If two factories share a type name.
        """
        self._factories: dict[str, Factory] = {}
        for factory in factories:
            type_name = factory.type_name
            if not isinstance(type_name, str) or not _TYPE_NAME_RE.fullmatch(
                type_name
            ):
                raise InvalidFactoryTypeError(str(type_name))
            if type_name in self._factories:
                raise DuplicateFactoryTypeError(type_name)
            self._factories[type_name] = factory

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[Factory]:
        return iter(self._factories.values())

    def lookup(self, type_name: str) -> Factory:
        """Get the factory registered for a type name.

        Args:
            type_name: The source type name.

        Returns:
            The registered factory.

        Raises:
            UnknownSourceTypeError: If no factory has that type name.
        """
        try:
            return self._factories[type_name]
        except KeyError:
            raise UnknownSourceTypeError(type_name) from None

    def types(self) -> list[str]:
        """Get registered type names in registration order."""
        return list(self._factories)


def discover_factories(group: str = DEFAULT_ENTRY_POINT_GROUP) -> list[Factory]:
    """Load factories published through package entry points.

    An entry point may reference a factory class, which is instantiated
    without arguments, or a ready-made factory instance. Discovery does
    not validate type names; pass the result to FactoryRegistry for that.

    Args:
        group: Entry point group to scan.

    Returns:
        Discovered factories sorted by entry point name.
    """
    log = logger.bind(component="registry", entry_point_group=group)

    factories: list[Factory] = []
    for entry_point in sorted(entry_points(group=group), key=lambda ep: ep.name):
        loaded = entry_point.load()
        factory = loaded() if isinstance(loaded, type) else loaded
        factories.append(factory)
        log.debug(
            "factory_discovered",
            entry_point=entry_point.name,
            type_name=factory.type_name,
        )

    log.info("factories_discovered", factory_count=len(factories))
    return factories
