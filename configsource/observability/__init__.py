"""Observability helpers: structured logging setup."""

from configsource.observability.logging import (
    bind_run_context,
    clear_run_context,
    configure_logging,
    get_logger,
    parse_log_level,
)


__all__ = [
    "bind_run_context",
    "clear_run_context",
    "configure_logging",
    "get_logger",
    "parse_log_level",
]
