"""Reference resolution over parsed configuration documents."""

import time
from collections.abc import Iterator, Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Lock
from typing import Any

import structlog

from configsource.errors import (
    ConfigSourceError,
    ResolutionCancelledError,
    SourceCreationError,
    SourceRetrievalError,
)
from configsource.hooks import HookRegistry
from configsource.resolver.expression import (
    Reference,
    Segment,
    interpolate,
    parse_string,
)
from configsource.resolver.metrics import FailureKind, ResolverMetrics
from configsource.sources.manager import SourceManager


logger = structlog.get_logger()


@dataclass(frozen=True)
class _Interpolation:
    """Placeholder for a string value that contains references."""

    segments: tuple[Segment, ...]

    @property
    def reference_count(self) -> int:
        return sum(1 for s in self.segments if isinstance(s, Reference))

    @property
    def is_whole_reference(self) -> bool:
        return len(self.segments) == 1 and isinstance(self.segments[0], Reference)


class ReferenceResolver:
    """Resolves reference expressions in a document into literal values.

    A cycle runs in three passes over the document:
    1. Compile: walk depth-first in natural order, parse every string and
       collect references
    2. Retrieve: fetch each reference's value from its config source,
       sequentially or on a thread pool
    3. Render: build a new literal tree from the compiled one

    The input document is never mutated. Any failure aborts the whole
    cycle; hooks are notified only once every reference has resolved.
    """

    def __init__(
        self,
        manager: SourceManager,
        hooks: HookRegistry | None = None,
        max_workers: int = 1,
    ) -> None:
        """Initialize the resolver.

        Args:
            manager: Manager owning the config source instances.
            hooks: Hooks notified of resolved references.
            max_workers: Maximum parallel retrievals; 1 resolves sequentially.
        """
        self._manager = manager
        self._hooks = hooks if hooks is not None else HookRegistry()
        self._max_workers = max(1, max_workers)
        self._metrics = ResolverMetrics.get_instance()
        self._log = logger.bind(component="resolver")

        # Pool retrievals still running after their cycle was abandoned
        self._abandoned: set[Future[Any]] = set()
        self._abandoned_lock = Lock()

    def resolve(
        self,
        document: Mapping[str, Any],
        creation_params: Mapping[str, Mapping[str, Any]] | None = None,
        deadline: float | None = None,
    ) -> dict[str, Any]:
        """Resolve every reference in a document.

        Args:
            document: Parsed configuration mapping.
            creation_params: Factory parameters keyed by source type, used
                when a source is created during this cycle.
            deadline: Optional ``time.monotonic()`` value after which the
                cycle is cancelled.

        Returns:
            A new, fully literal configuration mapping.

        Raises:
            ExpressionSyntaxError: If a reference is malformed.
            SourceCreationError: If a referenced source cannot be created.
            SourceRetrievalError: If a source fails to retrieve a value.
            ReferenceValueError: If a non-scalar is embedded in a string.
            ResolutionCancelledError: If the deadline passes.
        """
        start_time_ns = time.perf_counter_ns()
        params = creation_params or {}

        try:
            references: list[Reference] = []
            compiled = self._compile(document, references)
            values = self._retrieve_all(references, params, deadline)
            resolved = self._render(compiled, iter(values))
        except ConfigSourceError as e:
            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_cycle(success=False, duration_ms=duration_ms)
            self._log.warning(
                "resolution_failed",
                error_type=type(e).__name__,
                error=str(e),
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_cycle(success=True, duration_ms=duration_ms)

        for reference in references:
            self._hooks.notify_retrieve(reference.type_name)

        self._log.info(
            "resolution_complete",
            reference_count=len(references),
            duration_ms=round(duration_ms, 2),
        )
        return resolved

    def _compile(self, node: Any, references: list[Reference]) -> Any:
        """Copy a node, replacing strings with references by placeholders."""
        if isinstance(node, Mapping):
            return {key: self._compile(value, references) for key, value in node.items()}
        if isinstance(node, list):
            return [self._compile(item, references) for item in node]
        if isinstance(node, tuple):
            return tuple(self._compile(item, references) for item in node)
        if isinstance(node, str):
            segments = parse_string(node)
            found = [s for s in segments if isinstance(s, Reference)]
            if not found:
                return "".join(str(s) for s in segments)
            references.extend(found)
            return _Interpolation(tuple(segments))
        return node

    def _render(self, node: Any, values: Iterator[Any]) -> Any:
        """Build the literal tree, consuming values in document order."""
        if isinstance(node, _Interpolation):
            taken = [next(values) for _ in range(node.reference_count)]
            if node.is_whole_reference:
                return taken[0]
            return interpolate(node.segments, taken)
        if isinstance(node, dict):
            return {key: self._render(value, values) for key, value in node.items()}
        if isinstance(node, list):
            return [self._render(item, values) for item in node]
        if isinstance(node, tuple):
            return tuple(self._render(item, values) for item in node)
        return node

    def _retrieve_all(
        self,
        references: list[Reference],
        params: Mapping[str, Mapping[str, Any]],
        deadline: float | None,
    ) -> list[Any]:
        if self._max_workers <= 1 or len(references) <= 1:
            # Sequential execution
            return [self._retrieve_one(ref, params, deadline) for ref in references]

        # Parallel execution; results and the reported error follow
        # document order regardless of completion order
        workers = min(self._max_workers, len(references))
        executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="configsource"
        )
        futures: list[Future[Any]] = []
        try:
            futures = [
                executor.submit(self._retrieve_one, ref, params, deadline)
                for ref in references
            ]
            return [future.result(timeout=_remaining(deadline)) for future in futures]
        except TimeoutError:
            raise ResolutionCancelledError(
                "deadline exceeded while waiting for config sources"
            ) from None
        finally:
            # Do not block on retrievals still running after a failure
            executor.shutdown(wait=False, cancel_futures=True)
            self._track_abandoned(futures)

    def _track_abandoned(self, futures: list[Future[Any]]) -> None:
        running = [future for future in futures if not future.done()]
        if not running:
            return
        with self._abandoned_lock:
            self._abandoned.update(running)
        for future in running:
            future.add_done_callback(self._discard_abandoned)
        self._log.debug("retrievals_abandoned", count=len(running))

    def _discard_abandoned(self, future: Future[Any]) -> None:
        with self._abandoned_lock:
            self._abandoned.discard(future)

    def wait_for_abandoned(self, timeout: float | None = None) -> bool:
        """Block until retrievals left running by failed cycles finish.

        A cycle that fails or passes its deadline returns without waiting
        for pool threads already inside a source. Call this before closing
        the sources those threads may still be using.

        Args:
            timeout: Maximum seconds to wait, or None to wait indefinitely.

        Returns:
            True if no abandoned retrieval is still running.
        """
        with self._abandoned_lock:
            pending = set(self._abandoned)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def _retrieve_one(
        self,
        reference: Reference,
        params: Mapping[str, Mapping[str, Any]],
        deadline: float | None,
    ) -> Any:
        type_name = reference.type_name

        if deadline is not None and time.monotonic() >= deadline:
            self._metrics.record_failure(type_name, FailureKind.CANCELLED)
            msg = f"deadline exceeded before resolving {reference.expression}"
            raise ResolutionCancelledError(msg)

        try:
            source = self._manager.get_or_create(type_name, params.get(type_name))
        except SourceCreationError:
            self._metrics.record_failure(type_name, FailureKind.CREATION)
            raise

        start_time_ns = time.perf_counter_ns()
        try:
            value = source.retrieve(reference.selector, reference.params)
        except Exception as e:
            self._metrics.record_failure(type_name, FailureKind.RETRIEVAL)
            raise SourceRetrievalError(type_name, reference.selector, e) from e

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_retrieval(type_name, duration_ms)
        self._log.debug(
            "reference_resolved",
            type_name=type_name,
            selector=reference.selector,
            duration_ms=round(duration_ms, 2),
        )
        return value


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())
