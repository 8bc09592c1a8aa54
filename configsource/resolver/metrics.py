"""Metrics collection for reference resolution."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock


class FailureKind(str, Enum):
    """Classification of resolution failures.

    - CREATION: The config source could not be created
    - RETRIEVAL: The config source failed to retrieve a value
    - CANCELLED: The cycle ran past its deadline
    """

    CREATION = "CREATION"
    RETRIEVAL = "RETRIEVAL"
    CANCELLED = "CANCELLED"


# Module-level singleton state (proper pattern for thread-safe singleton)
_metrics_instance: "ResolverMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class ResolverMetrics:
    """Thread-safe metrics for resolution cycles.

    Tracks retrievals, failures and timing per source type.
    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    # Successful retrievals per source type
    retrievals_by_type: Counter[str] = field(default_factory=Counter)

    # Failures per (source type, failure kind)
    failures_by_type_kind: Counter[tuple[str, str]] = field(default_factory=Counter)

    # Cumulative retrieval duration per source type in milliseconds
    retrieval_ms_by_type: dict[str, float] = field(default_factory=dict)

    cycles_succeeded: int = 0
    cycles_failed: int = 0

    # Duration of the most recent cycle in milliseconds
    last_cycle_ms: float = 0.0

    @classmethod
    def get_instance(cls) -> "ResolverMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared ResolverMetrics instance.
        """
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                # Double-checked locking
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_retrieval(self, type_name: str, duration_ms: float) -> None:
        """Record a successful retrieval.

        Args:
            type_name: Source type name.
            duration_ms: Retrieval duration in milliseconds.
        """
        with self._lock:
            self.retrievals_by_type[type_name] += 1
            self.retrieval_ms_by_type[type_name] = (
                self.retrieval_ms_by_type.get(type_name, 0.0) + duration_ms
            )

    def record_failure(self, type_name: str, kind: FailureKind) -> None:
        """Record a failed reference.

        Args:
            type_name: Source type name.
            kind: Classification of the failure.
        """
        with self._lock:
            self.failures_by_type_kind[(type_name, kind.value)] += 1

    def record_cycle(self, *, success: bool, duration_ms: float) -> None:
        """Record the outcome of a resolution cycle.

        Args:
            success: Whether the cycle produced a literal document.
            duration_ms: Cycle duration in milliseconds.
        """
        with self._lock:
            if success:
                self.cycles_succeeded += 1
            else:
                self.cycles_failed += 1
            self.last_cycle_ms = duration_ms

    def get_retrievals_total(self, type_name: str | None = None) -> int:
        """Get total successful retrievals.

        Args:
            type_name: Optional source type to filter by.

        Returns:
            Retrieval count.
        """
        with self._lock:
            if type_name is None:
                return sum(self.retrievals_by_type.values())
            return self.retrievals_by_type[type_name]

    def get_failures_total(self, type_name: str | None = None) -> int:
        """Get total failures.

        Args:
            type_name: Optional source type to filter by.

        Returns:
            Failure count.
        """
        with self._lock:
            return sum(
                count
                for (tname, _), count in self.failures_by_type_kind.items()
                if type_name is None or tname == type_name
            )

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string.
        """
        lines: list[str] = []

        with self._lock:
            lines.append(
                "# HELP configsource_retrievals_total Values retrieved by source type"
            )
            lines.append("# TYPE configsource_retrievals_total counter")
            for type_name, count in sorted(self.retrievals_by_type.items()):
                lines.append(
                    f'configsource_retrievals_total{{type="{type_name}"}} {count}'
                )

            lines.append(
                "# HELP configsource_failures_total Failures by source type and kind"
            )
            lines.append("# TYPE configsource_failures_total counter")
            for (type_name, kind), count in sorted(self.failures_by_type_kind.items()):
                lines.append(
                    f'configsource_failures_total{{type="{type_name}",kind="{kind}"}} {count}'
                )

            lines.append("# HELP configsource_cycles_total Resolution cycles by outcome")
            lines.append("# TYPE configsource_cycles_total counter")
            lines.append(
                f'configsource_cycles_total{{outcome="success"}} {self.cycles_succeeded}'
            )
            lines.append(
                f'configsource_cycles_total{{outcome="failure"}} {self.cycles_failed}'
            )

        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        """Export metrics as dictionary.

        Returns:
            Dictionary representation of all metrics.
        """
        with self._lock:
            return {
                "retrievals_by_type": dict(self.retrievals_by_type),
                "failures_by_type_kind": dict(self.failures_by_type_kind),
                "retrieval_ms_by_type": dict(self.retrieval_ms_by_type),
                "cycles_succeeded": self.cycles_succeeded,
                "cycles_failed": self.cycles_failed,
                "last_cycle_ms": self.last_cycle_ms,
            }
