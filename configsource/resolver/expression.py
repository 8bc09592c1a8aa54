"""Parsing and substitution of config source reference expressions.

A reference names a config source type and a selector, with optional
query-string parameters::

    password: ${vault:secret/data/db:field=password&version=2}
    url: "https://${env:API_HOST}/v1"

``$${`` escapes a literal ``${``. ``${name}`` without a colon is not a
reference and is left as written.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qsl

from configsource.errors import ExpressionSyntaxError, ReferenceValueError
from configsource.sources.constants import TYPE_NAME_PATTERN


_TYPE_NAME_RE = re.compile(TYPE_NAME_PATTERN)

REFERENCE_OPEN = "${"
REFERENCE_CLOSE = "}"
ESCAPED_OPEN = "$${"


@dataclass(frozen=True)
class Reference:
    """A parsed reference expression."""

    type_name: str
    selector: str
    params: Mapping[str, str] = field(default_factory=dict, hash=False)
    expression: str = ""


Segment = str | Reference


def parse_string(text: str) -> list[Segment]:
    """Split a string into literal text and references.

    Args:
        text: The string value from the document.

    Returns:
        Segments in order. Adjacent literal text is merged into one
        segment; a string with no references yields at most one segment.

    Raises:
        ExpressionSyntaxError: If a reference is malformed or unterminated.
    """
    segments: list[Segment] = []
    literal: list[str] = []
    pos = 0

    while True:
        start = text.find("$", pos)
        if start == -1:
            literal.append(text[pos:])
            break

        literal.append(text[pos:start])

        if text.startswith(ESCAPED_OPEN, start):
            literal.append(REFERENCE_OPEN)
            pos = start + len(ESCAPED_OPEN)
            continue

        if not text.startswith(REFERENCE_OPEN, start):
            literal.append("$")
            pos = start + 1
            continue

        end = text.find(REFERENCE_CLOSE, start + len(REFERENCE_OPEN))
        if end == -1:
            raise ExpressionSyntaxError(text[start:], "missing closing '}'")

        expression = text[start : end + 1]
        reference = _parse_expression(expression)
        if reference is None:
            literal.append(expression)
        else:
            _flush(literal, segments)
            segments.append(reference)
        pos = end + 1

    _flush(literal, segments)
    return segments


def contains_reference(text: str) -> bool:
    """Check whether a string holds at least one reference.

    Raises:
        ExpressionSyntaxError: If a reference is malformed.
    """
    return any(isinstance(segment, Reference) for segment in parse_string(text))


def _flush(literal: list[str], segments: list[Segment]) -> None:
    text = "".join(literal)
    literal.clear()
    if not text:
        return
    if segments and isinstance(segments[-1], str):
        segments[-1] += text
    else:
        segments.append(text)


def _parse_expression(expression: str) -> Reference | None:
    body = expression[len(REFERENCE_OPEN) : -len(REFERENCE_CLOSE)]
    if ":" not in body:
        return None

    type_name, _, rest = body.partition(":")
    if not _TYPE_NAME_RE.fullmatch(type_name):
        raise ExpressionSyntaxError(expression, f"invalid source type '{type_name}'")

    selector, has_params, raw_params = rest.partition(":")
    selector = selector.strip()
    if not selector:
        raise ExpressionSyntaxError(expression, "empty selector")

    params: dict[str, str] = {}
    if has_params and raw_params:
        try:
            params = dict(
                parse_qsl(raw_params, keep_blank_values=True, strict_parsing=True)
            )
        except ValueError as e:
            raise ExpressionSyntaxError(expression, f"bad parameters: {e}") from e

    return Reference(
        type_name=type_name,
        selector=selector,
        params=params,
        expression=expression,
    )


def render_scalar(reference: Reference, value: Any) -> str:
    """Convert a retrieved value to its embedded string form.

    Raises:
        ReferenceValueError: If the value is a mapping or a sequence.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str | int | float):
        return str(value)
    raise ReferenceValueError(reference.expression, value)


def interpolate(segments: Iterable[Segment], values: Iterable[Any]) -> str:
    """Join segments, substituting each reference with its value.

    Args:
        segments: Parsed segments of one string.
        values: Retrieved values, one per reference, in order.

    Returns:
        The substituted string.
    """
    value_iter = iter(values)
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, Reference):
            parts.append(render_scalar(segment, next(value_iter)))
        else:
            parts.append(segment)
    return "".join(parts)
