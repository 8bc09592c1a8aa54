"""Lifecycle management for config source instances."""

import time
from collections.abc import Mapping
from threading import Lock
from typing import Any

import structlog

from configsource.errors import (
    ProviderShutdownError,
    SourceCreationError,
    SourceShutdownError,
)
from configsource.sources.base import ConfigSource
from configsource.sources.registry import FactoryRegistry


logger = structlog.get_logger()


class SourceManager:
    """Creates, caches and closes config source instances.

    Provides:
    - Lazy creation on first use of a type name
    - At most one instance per type name for the manager's lifetime
    - A per-type lock so concurrent first use creates exactly once
    - Aggregated, idempotent shutdown

    The instance cache is the only mutable shared state; all access to it
    goes through ``_lock``.
    """

    def __init__(self, registry: FactoryRegistry) -> None:
        """Initialize the manager.

        Args:
            registry: Validated factory registry.
        """
        self._registry = registry
        self._lock = Lock()
        self._type_locks: dict[str, Lock] = {}
        self._sources: dict[str, ConfigSource] = {}
        self._closed = False
        self._log = logger.bind(component="source_manager")

    @property
    def closed(self) -> bool:
        """Check whether shutdown_all has been called."""
        with self._lock:
            return self._closed

    def created_types(self) -> list[str]:
        """Get type names of live instances in creation order."""
        with self._lock:
            return list(self._sources)

    def get_or_create(
        self,
        type_name: str,
        creation_params: Mapping[str, Any] | None = None,
    ) -> ConfigSource:
        """Get the instance for a type, creating it on first use.

        Creation failures are not cached: the error is reported to the
        caller immediately and nothing is retried on its behalf.

        Args:
            type_name: Source type name.
            creation_params: Parameters passed to the factory on creation.
                Ignored when an instance already exists.

        Returns:
            The shared ConfigSource for the type.

        Raises:
            SourceCreationError: If the type is unknown, the factory fails,
                or the manager has been shut down.
        """
        with self._lock:
            self._ensure_open(type_name)
            source = self._sources.get(type_name)
            if source is not None:
                return source
            type_lock = self._type_locks.setdefault(type_name, Lock())

        with type_lock:
            # Another thread may have finished creating while we waited
            with self._lock:
                self._ensure_open(type_name)
                source = self._sources.get(type_name)
                if source is not None:
                    return source

            source = self._create(type_name, creation_params or {})

            with self._lock:
                if not self._closed:
                    self._sources[type_name] = source
                    return source

            # Shutdown started while the factory was running
            source.close()
            raise SourceCreationError(type_name, ProviderShutdownError())

    def _ensure_open(self, type_name: str) -> None:
        if self._closed:
            raise SourceCreationError(type_name, ProviderShutdownError())

    def _create(self, type_name: str, params: Mapping[str, Any]) -> ConfigSource:
        log = self._log.bind(type_name=type_name)
        start_time_ns = time.perf_counter_ns()

        try:
            factory = self._registry.lookup(type_name)
            source = factory.create_source(params)
        except Exception as e:
            log.error("config_source_create_failed", error=str(e))
            raise SourceCreationError(type_name, e) from e

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        log.info(
            "config_source_created",
            param_keys=sorted(params),
            duration_ms=round(duration_ms, 2),
        )
        return source

    def shutdown_all(self) -> None:
        """Close every created instance.

        All closes are attempted even when some fail. Calling this again
        after the instances are released is a no-op.

        Raises:
            SourceShutdownError: If one or more closes failed.
        """
        with self._lock:
            self._closed = True
            sources = list(self._sources.items())
            self._sources.clear()

        errors: dict[str, BaseException] = {}
        for type_name, source in sources:
            try:
                source.close()
            except Exception as e:  # noqa: BLE001
                errors[type_name] = e
                self._log.error(
                    "config_source_close_failed",
                    type_name=type_name,
                    error=str(e),
                )

        if sources:
            self._log.info(
                "config_sources_shutdown",
                closed_count=len(sources) - len(errors),
                failed_count=len(errors),
            )

        if errors:
            raise SourceShutdownError(errors)
