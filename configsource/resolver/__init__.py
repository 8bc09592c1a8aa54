"""Reference expression parsing and document resolution."""

from configsource.resolver.expression import Reference, contains_reference, parse_string
from configsource.resolver.metrics import FailureKind, ResolverMetrics
from configsource.resolver.resolver import ReferenceResolver


__all__ = [
    "FailureKind",
    "Reference",
    "ReferenceResolver",
    "ResolverMetrics",
    "contains_reference",
    "parse_string",
]
