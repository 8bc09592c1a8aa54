"""Document providers, including the reference-resolving provider."""

from configsource.provider.base import ChangeEvent, Provider, Retrieved, WatcherFunc
from configsource.provider.file import FileProvider
from configsource.provider.http import HttpProvider
from configsource.provider.resolving import ResolvingProvider
from configsource.provider.router import SchemeRouter
from configsource.provider.state_machine import (
    ProviderState,
    ProviderStateError,
    ProviderStateMachine,
)


__all__ = [
    "ChangeEvent",
    "FileProvider",
    "HttpProvider",
    "Provider",
    "ProviderState",
    "ProviderStateError",
    "ProviderStateMachine",
    "ResolvingProvider",
    "Retrieved",
    "SchemeRouter",
    "WatcherFunc",
]
