"""Config source resolution for configuration documents.

Resolves ``${type:selector[:params]}`` references in a configuration
document by dispatching each one to a pluggable config source, and
returns the fully literal configuration.

Usage:
    from configsource import FileProvider, ResolvingProvider

    with ResolvingProvider(FileProvider(), factories=[VaultFactory()]) as provider:
        config = provider.retrieve("file:config.yaml").as_map()
"""

from configsource.errors import (
    ConfigSourceError,
    DocumentFetchError,
    DocumentFormatError,
    DuplicateFactoryTypeError,
    ExpressionSyntaxError,
    InvalidFactoryTypeError,
    ProviderShutdownError,
    ReferenceValueError,
    ResolutionCancelledError,
    SourceCreationError,
    SourceRetrievalError,
    SourceShutdownError,
    UnknownSourceTypeError,
)
from configsource.hooks import BaseHook, Hook, HookRegistry
from configsource.provider import (
    ChangeEvent,
    FileProvider,
    HttpProvider,
    Provider,
    ResolvingProvider,
    Retrieved,
    SchemeRouter,
)
from configsource.resolver import Reference, ReferenceResolver, ResolverMetrics
from configsource.sources import (
    BaseFactory,
    ConfigSource,
    Factory,
    FactoryRegistry,
    SourceManager,
    discover_factories,
)


__all__ = [
    "BaseFactory",
    "BaseHook",
    "ChangeEvent",
    "ConfigSource",
    "ConfigSourceError",
    "DocumentFetchError",
    "DocumentFormatError",
    "DuplicateFactoryTypeError",
    "ExpressionSyntaxError",
    "Factory",
    "FactoryRegistry",
    "FileProvider",
    "Hook",
    "HookRegistry",
    "HttpProvider",
    "InvalidFactoryTypeError",
    "Provider",
    "ProviderShutdownError",
    "Reference",
    "ReferenceResolver",
    "ReferenceValueError",
    "ResolutionCancelledError",
    "ResolverMetrics",
    "ResolvingProvider",
    "Retrieved",
    "SchemeRouter",
    "SourceCreationError",
    "SourceManager",
    "SourceRetrievalError",
    "SourceShutdownError",
    "UnknownSourceTypeError",
    "discover_factories",
]
