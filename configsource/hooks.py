"""Lifecycle hooks for the resolving provider."""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import structlog


logger = structlog.get_logger()


@runtime_checkable
class Hook(Protocol):
    """Protocol for passive lifecycle observers.

    Hooks are notified synchronously at well-defined points:
    1. Once when a resolving provider is constructed
    2. Once per reference resolved by a successful resolution cycle
    3. Once per shutdown call

    Hooks observe successes only and have no influence over control flow.
    """

    def on_new(self) -> None:
        """Called once when the provider has been constructed."""
        ...

    def on_retrieve(self, source_type: str) -> None:
        """Called for each reference resolved in a successful cycle.

        Args:
            source_type: Type name of the source that produced the value.
        """
        ...

    def on_shutdown(self) -> None:
        """Called each time the provider is shut down."""
        ...


class BaseHook:
    """Hook with no-op notifications, for overriding selectively."""

    def on_new(self) -> None:
        """Ignore construction."""

    def on_retrieve(self, source_type: str) -> None:
        """Ignore retrievals."""

    def on_shutdown(self) -> None:
        """Ignore shutdown."""


class HookRegistry:
    """Ordered, immutable set of hooks.

    A hook that raises is logged and skipped so that observers can never
    inject failures into resolution.
    """

    def __init__(self, hooks: Iterable[Hook] = ()) -> None:
        """Initialize the registry.

        Args:
            hooks: Hooks in notification order.
        """
        self._hooks: tuple[Hook, ...] = tuple(hooks)
        self._log = logger.bind(component="hooks")

    def __len__(self) -> int:
        return len(self._hooks)

    @property
    def hooks(self) -> tuple[Hook, ...]:
        """Get the registered hooks in notification order."""
        return self._hooks

    def notify_new(self) -> None:
        """Notify every hook of provider construction."""
        for hook in self._hooks:
            try:
                hook.on_new()
            except Exception as e:  # noqa: BLE001
                self._warn(hook, "on_new", e)

    def notify_retrieve(self, source_type: str) -> None:
        """Notify every hook of a resolved reference.

        Args:
            source_type: Type name of the source that produced the value.
        """
        for hook in self._hooks:
            try:
                hook.on_retrieve(source_type)
            except Exception as e:  # noqa: BLE001
                self._warn(hook, "on_retrieve", e)

    def notify_shutdown(self) -> None:
        """Notify every hook of provider shutdown."""
        for hook in self._hooks:
            try:
                hook.on_shutdown()
            except Exception as e:  # noqa: BLE001
                self._warn(hook, "on_shutdown", e)

    def _warn(self, hook: Hook, event: str, error: Exception) -> None:
        self._log.warning(
            "hook_failed",
            hook=type(hook).__name__,
            hook_event=event,
            error=str(error),
        )
