"""Config source contracts, factory registry and instance management."""

from configsource.sources.base import BaseFactory, ConfigSource, Factory
from configsource.sources.manager import SourceManager
from configsource.sources.registry import FactoryRegistry, discover_factories
from configsource.sources.schemas import ConfigSourcesSection, merge_creation_params


__all__ = [
    "BaseFactory",
    "ConfigSource",
    "ConfigSourcesSection",
    "Factory",
    "FactoryRegistry",
    "SourceManager",
    "discover_factories",
    "merge_creation_params",
]
