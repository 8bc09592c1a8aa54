"""Document provider that resolves config source references."""

import time
from collections.abc import Iterable, Mapping
from threading import Condition, Lock
from typing import Any

import structlog
from pydantic import ValidationError

from configsource.errors import (
    DocumentFormatError,
    ProviderShutdownError,
    SourceShutdownError,
)
from configsource.hooks import Hook, HookRegistry
from configsource.provider.base import Provider, Retrieved, WatcherFunc
from configsource.provider.state_machine import ProviderState, ProviderStateMachine
from configsource.resolver.resolver import ReferenceResolver
from configsource.sources.base import Factory
from configsource.sources.constants import CONFIG_SOURCES_KEY
from configsource.sources.manager import SourceManager
from configsource.sources.registry import FactoryRegistry
from configsource.sources.schemas import ConfigSourcesSection, merge_creation_params


logger = structlog.get_logger()


class ResolvingProvider:
    """Wraps a document provider and resolves references in what it returns.

    Behaves as a drop-in Provider. Each retrieve call is one independent
    resolution cycle; config source instances are shared across cycles
    and released once, on shutdown.

    Implements a state machine for the provider lifecycle:
    READY -> SHUTTING_DOWN -> SHUT_DOWN

    A shut down provider rejects retrievals and cannot be reinitialized.
    """

    def __init__(  # noqa: PLR0913
        self,
        provider: Provider,
        hooks: Iterable[Hook] = (),
        factories: Iterable[Factory] = (),
        *,
        source_settings: Mapping[str, Mapping[str, Any]] | None = None,
        max_workers: int = 1,
    ) -> None:
        """Initialize the provider.

        The factory registry is validated before anything else, so a bad
        factory set fails construction before any hook hears about it.

        Args:
            provider: Underlying document provider.
            hooks: Lifecycle hooks in notification order.
            factories: Config source factories.
            source_settings: Default creation parameters keyed by type name.
                A document's ``config_sources`` section overrides them.
            max_workers: Maximum parallel retrievals per cycle.

        Raises:
            DuplicateFactoryTypeError: If two factories share a type name.
            InvalidFactoryTypeError: If a factory type name is malformed.
        """
        registry = FactoryRegistry(factories)

        self._wrapped = provider
        self._registry = registry
        self._manager = SourceManager(registry)
        self._hooks = HookRegistry(hooks)
        self._resolver = ReferenceResolver(self._manager, self._hooks, max_workers)
        self._source_settings: dict[str, dict[str, Any]] = {
            type_name: dict(params)
            for type_name, params in (source_settings or {}).items()
        }
        self._state_machine = ProviderStateMachine()
        self._cond = Condition()
        self._in_flight = 0
        self._shutdown_lock = Lock()
        self._wrapped_shut_down = False
        self._log = logger.bind(component="resolving_provider")

        self._log.info(
            "resolving_provider_created",
            source_types=registry.types(),
            hook_count=len(self._hooks),
            max_workers=max_workers,
        )
        self._hooks.notify_new()

    @property
    def state(self) -> ProviderState:
        """Get the current lifecycle state."""
        with self._cond:
            return self._state_machine.state

    @property
    def wrapped_provider(self) -> Provider:
        """Get the underlying document provider."""
        return self._wrapped

    @property
    def source_types(self) -> list[str]:
        """Get registered source type names in registration order."""
        return self._registry.types()

    def scheme(self) -> str:
        """Get the underlying provider's scheme."""
        return self._wrapped.scheme()

    def retrieve(
        self,
        location: str,
        watcher: WatcherFunc | None = None,
        *,
        timeout: float | None = None,
    ) -> Retrieved:
        """Retrieve a document and resolve its references.

        Errors from the underlying provider propagate unchanged.

        Args:
            location: Location passed through to the underlying provider.
            watcher: Change callback passed through to the provider.
            timeout: Optional time budget in seconds for resolution.

        Returns:
            The literal document. Closing it is a no-op.

        Raises:
            ProviderShutdownError: If the provider has been shut down.
            DocumentFormatError: If the config_sources section is invalid.
            ConfigSourceError: If any reference fails to resolve.
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            if not self._state_machine.is_ready():
                raise ProviderShutdownError
            self._in_flight += 1

        try:
            return self._retrieve(location, watcher, deadline)
        finally:
            with self._cond:
                self._in_flight -= 1
                self._cond.notify_all()

    def _retrieve(
        self,
        location: str,
        watcher: WatcherFunc | None,
        deadline: float | None,
    ) -> Retrieved:
        log = self._log.bind(location=location)

        fetched = self._wrapped.retrieve(location, watcher)
        try:
            document = fetched.as_map()
            section = self._parse_section(
                location, document.pop(CONFIG_SOURCES_KEY, None)
            )
            creation_params = merge_creation_params(self._source_settings, section)
            resolved = self._resolver.resolve(document, creation_params, deadline)
        except BaseException:
            self._close_after_failure(fetched, log)
            raise

        fetched.close()
        log.info("config_retrieved", top_level_keys=len(resolved))
        return Retrieved(resolved)

    @staticmethod
    def _parse_section(location: str, raw: Any) -> ConfigSourcesSection:
        try:
            return ConfigSourcesSection.model_validate(raw)
        except ValidationError as e:
            msg = f"invalid {CONFIG_SOURCES_KEY} section: {e.error_count()} error(s)"
            raise DocumentFormatError(location, msg) from e

    def _close_after_failure(
        self,
        fetched: Retrieved,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Close a fetched document without masking the original error."""
        try:
            fetched.close()
        except Exception as e:  # noqa: BLE001
            log.warning("document_close_failed", error=str(e))

    def shutdown(self) -> None:
        """Release all config sources and notify hooks.

        Waits for in-flight retrievals, including pool retrievals left
        running by a failed or cancelled cycle, to finish first. Hooks are
        notified whether or not releasing succeeded. Calling shutdown again
        only re-notifies hooks.

        Raises:
            SourceShutdownError: If one or more sources failed to close. A
                failure shutting down the wrapped provider is attached as a
                note.
            Exception: Whatever the wrapped provider's shutdown raised, when
                every source closed cleanly.
        """
        with self._shutdown_lock:
            with self._cond:
                self._state_machine.transition(ProviderState.SHUTTING_DOWN)
                self._cond.wait_for(lambda: self._in_flight == 0)

            sources_error: SourceShutdownError | None = None
            wrapped_error: Exception | None = None
            try:
                self._resolver.wait_for_abandoned()
                try:
                    self._manager.shutdown_all()
                except SourceShutdownError as e:
                    sources_error = e
                try:
                    self._shutdown_wrapped()
                except Exception as e:  # noqa: BLE001
                    wrapped_error = e
                    self._log.warning(
                        "wrapped_provider_shutdown_failed",
                        error_type=type(e).__name__,
                        error=str(e),
                    )
            finally:
                with self._cond:
                    self._state_machine.transition(ProviderState.SHUT_DOWN)
                self._hooks.notify_shutdown()
                self._log.info("resolving_provider_shutdown")

        if sources_error is not None:
            if wrapped_error is not None:
                sources_error.add_note(
                    "wrapped provider shutdown also failed: "
                    f"{type(wrapped_error).__name__}: {wrapped_error}"
                )
            raise sources_error
        if wrapped_error is not None:
            raise wrapped_error

    def _shutdown_wrapped(self) -> None:
        if self._wrapped_shut_down:
            return
        self._wrapped_shut_down = True
        self._wrapped.shutdown()

    def __enter__(self) -> "ResolvingProvider":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.shutdown()
