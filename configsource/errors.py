"""Domain exceptions for config source resolution.

This module defines a hierarchy of exceptions for the resolution engine,
separating construction errors (factory registration) from per-cycle
errors (source creation and value retrieval) and lifecycle errors
(shutdown, cancellation).
"""

from collections.abc import Mapping
from typing import Any


class ConfigSourceError(Exception):
    """Base exception for all config source errors.

    Errors raised by the underlying document provider are never wrapped
    in this hierarchy; they reach the caller unchanged.
    """


class DuplicateFactoryTypeError(ConfigSourceError):
    """Raised when two factories are registered under the same type name."""

    def __init__(self, type_name: str) -> None:
        """Initialize the error.

        Args:
            type_name: The type name registered more than once.
        """
        self.type_name = type_name
        super().__init__(f'duplicate config source factory "{type_name}"')


class InvalidFactoryTypeError(ConfigSourceError):
    """Raised when a factory declares an empty or malformed type name."""

    def __init__(self, type_name: str) -> None:
        """Initialize the error.

        Args:
            type_name: The rejected type name.
        """
        self.type_name = type_name
        super().__init__(f'invalid config source factory type "{type_name}"')


class UnknownSourceTypeError(ConfigSourceError, LookupError):
    """Raised when no factory is registered for a referenced type."""

    def __init__(self, type_name: str) -> None:
        """Initialize the error.

        Args:
            type_name: The type name that was looked up.
        """
        self.type_name = type_name
        super().__init__(
            f'no config source factory registered for type "{type_name}"'
        )


class SourceCreationError(ConfigSourceError):
    """Raised when a config source instance cannot be created.

    Aborts the current resolution cycle only.
    """

    def __init__(self, type_name: str, cause: BaseException) -> None:
        """Initialize the error.

        Args:
            type_name: Type of the source that failed to be created.
            cause: The underlying failure.
        """
        self.type_name = type_name
        self.cause = cause
        super().__init__(f"failed to create config source {type_name}: {cause}")


class SourceRetrievalError(ConfigSourceError):
    """Raised when a config source fails to retrieve a selector's value.

    Aborts the current resolution cycle only.
    """

    def __init__(self, type_name: str, selector: str, cause: BaseException) -> None:
        """Initialize the error.

        Args:
            type_name: Type of the source that failed.
            selector: The selector that was requested.
            cause: The underlying failure.
        """
        self.type_name = type_name
        self.selector = selector
        self.cause = cause
        super().__init__(
            f'config source "{type_name}" failed to retrieve value: {cause} '
            f'(selector "{selector}")'
        )


class SourceShutdownError(ConfigSourceError):
    """Raised after closing all sources when one or more closes failed."""

    def __init__(self, errors: Mapping[str, BaseException]) -> None:
        """Initialize the error.

        Args:
            errors: Close failures keyed by source type name.
        """
        self.errors = dict(errors)
        details = "; ".join(f"{name}: {err}" for name, err in self.errors.items())
        super().__init__(
            f"failed to close {len(self.errors)} config source(s): {details}"
        )


class ExpressionSyntaxError(ConfigSourceError):
    """Raised when a reference expression cannot be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        """Initialize the error.

        Args:
            expression: The offending expression text.
            reason: Why the expression was rejected.
        """
        self.expression = expression
        self.reason = reason
        super().__init__(f'invalid config source reference "{expression}": {reason}')


class ReferenceValueError(ConfigSourceError):
    """Raised when a non-scalar value is embedded inside a longer string."""

    def __init__(self, expression: str, value: Any) -> None:
        """Initialize the error.

        Args:
            expression: The reference expression that was substituted.
            value: The retrieved value.
        """
        self.expression = expression
        self.value_type = type(value).__name__
        super().__init__(
            f'config source reference "{expression}" resolved to a '
            f"{self.value_type}, which cannot be embedded in a string"
        )


class ResolutionCancelledError(ConfigSourceError):
    """Raised when a resolution cycle exceeds its deadline."""

    def __init__(self, reason: str) -> None:
        """Initialize the error.

        Args:
            reason: Description of the cancellation.
        """
        self.reason = reason
        super().__init__(f"config resolution cancelled: {reason}")


class ProviderShutdownError(ConfigSourceError):
    """Raised when a provider or manager is used after shutdown."""

    def __init__(self, message: str = "resolving provider has been shut down") -> None:
        super().__init__(message)


class DocumentFormatError(ConfigSourceError):
    """Raised when a fetched document is not a configuration mapping."""

    def __init__(self, location: str, reason: str) -> None:
        """Initialize the error.

        Args:
            location: Location the document was fetched from.
            reason: Why the document was rejected.
        """
        self.location = location
        self.reason = reason
        super().__init__(f"invalid config document {location}: {reason}")


class DocumentFetchError(ConfigSourceError):
    """Raised when a remote config document cannot be fetched."""

    def __init__(self, location: str, reason: str, status_code: int = 0) -> None:
        """Initialize the error.

        Args:
            location: Location that was requested.
            reason: Human-readable failure description.
            status_code: HTTP status code, 0 for transport failures.
        """
        self.location = location
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"failed to fetch config document {location}: {reason}")
