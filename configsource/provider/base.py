"""Document provider interface and retrieval results."""

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ChangeEvent:
    """Notification that a watched document changed or failed.

    Attributes:
        error: Set when watching failed, None for a plain change.
    """

    error: Exception | None = None


WatcherFunc = Callable[[ChangeEvent], None]


class Retrieved:
    """A retrieved configuration mapping with a release handle.

    ``close`` runs the closer at most once; a result without a closer
    closes as a no-op and never fails.
    """

    def __init__(
        self,
        raw: Mapping[str, Any] | None,
        closer: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the result.

        Args:
            raw: The configuration mapping. None is treated as empty.
            closer: Optional callable releasing resources tied to it.
        """
        self._raw: dict[str, Any] = dict(raw or {})
        self._closer = closer
        self._closed = False
        self._lock = Lock()

    def as_map(self) -> dict[str, Any]:
        """Get an independent copy of the configuration mapping."""
        return copy.deepcopy(self._raw)

    @property
    def closed(self) -> bool:
        """Check whether close has been called."""
        return self._closed

    def close(self) -> None:
        """Release the result."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            closer = self._closer
        if closer is not None:
            closer()


@runtime_checkable
class Provider(Protocol):
    """Protocol for document providers.

    A provider turns a location string into a configuration mapping. The
    location's format is the provider's own business; callers pass it
    through untouched.
    """

    def retrieve(self, location: str, watcher: WatcherFunc | None = None) -> Retrieved:
        """Retrieve the document at a location.

        Args:
            location: Provider-specific address of the document.
            watcher: Optional callback for change notifications.

        Returns:
            The retrieved document.
        """
        ...

    def shutdown(self) -> None:
        """Release provider resources."""
        ...

    def scheme(self) -> str:
        """Get the location scheme handled by the provider."""
        ...
