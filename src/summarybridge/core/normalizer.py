"""Normalization of untrusted response payloads.

The remote service answers with whatever shape it happens to produce: plain
text, markdown, JSON objects, or JSON that was encoded into a string one or
more times. This module reduces any of those to either a display string or a
numeric job identifier.

Both reductions are expressed as ordered tuples of small strategy functions.
Each strategy either returns a value or the ``_MISSING`` sentinel, and the
first hit wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Mapping

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_UNWRAP_DEPTH = 4
ANSWER_FIELDS: tuple[str, ...] = ("summary", "output")
ID_FIELDS: tuple[str, ...] = ("id", "ID", "Id")

_MISSING: Any = object()
_DIGIT_RUN = re.compile(r"\d+")
_NUMERIC_TEXT = re.compile(r"\s*(\d+)\s*")
_ESCAPED_LINE_BREAKS: tuple[tuple[str, str], ...] = (
    ("\\r\\n", "\r\n"),
    ("\\n", "\n"),
    ("\\r", "\r"),
)


# ---------------------------------------------------------------------------
# Unwrapping
# ---------------------------------------------------------------------------
def unwrap_json(value: Any, max_depth: int = DEFAULT_UNWRAP_DEPTH) -> Any:
    """Peel JSON-encoded strings off ``value`` up to ``max_depth`` times.

    Stops as soon as the current value is not a string, the string does not
    parse, or the parse yields a number (the string form is kept).
    """

    current = value
    for _ in range(max(0, max_depth)):
        if not isinstance(current, str):
            return current
        parsed = _parse_embedded_json(current)
        if parsed is _MISSING:
            return current
        if _is_number(parsed):
            return current
        current = parsed
    return current


def _parse_embedded_json(text: str) -> Any:
    trimmed = text.strip()
    if len(trimmed) < 2:
        return _MISSING
    first, last = trimmed[0], trimmed[-1]
    if (first, last) in (("{", "}"), ("[", "]"), ('"', '"')):
        candidate = trimmed
    elif (first, last) == ("'", "'"):
        inner = trimmed[1:-1].replace("\\", "\\\\").replace('"', '\\"')
        candidate = f'"{inner}"'
    else:
        return _MISSING
    try:
        return json.loads(candidate)
    except ValueError:
        return _MISSING


def unescape_line_breaks(text: str) -> str:
    """Turn literal ``\\r\\n``, ``\\n`` and ``\\r`` sequences into control characters."""

    for escaped, literal in _ESCAPED_LINE_BREAKS:
        text = text.replace(escaped, literal)
    return text


def to_text(value: Any) -> str:
    """Stringify ``value``; structured data is dumped with two-space indentation."""

    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False)
    return str(value)


# ---------------------------------------------------------------------------
# Answer extraction
# ---------------------------------------------------------------------------
AnswerStrategy = Callable[[Any, int], Any]


def _answer_field(name: str) -> AnswerStrategy:
    def strategy(value: Any, depth: int) -> Any:
        if not isinstance(value, Mapping):
            return _MISSING
        candidate = value.get(name)
        if candidate is None:
            return _MISSING
        if isinstance(candidate, str):
            return unwrap_json(candidate, depth)
        return candidate

    strategy.__name__ = f"answer_from_{name}"
    return strategy


def _answer_whole(value: Any, depth: int) -> Any:
    return value


ANSWER_STRATEGIES: tuple[AnswerStrategy, ...] = (
    *(_answer_field(name) for name in ANSWER_FIELDS),
    _answer_whole,
)


def normalize(raw: Any, *, max_depth: int = DEFAULT_UNWRAP_DEPTH) -> str:
    """Reduce ``raw`` to the human-readable result string."""

    value = unwrap_json(raw, max_depth)
    candidate: Any = _MISSING
    for strategy in ANSWER_STRATEGIES:
        candidate = strategy(value, max_depth)
        if candidate is not _MISSING:
            break
    return unescape_line_breaks(to_text(candidate))


# ---------------------------------------------------------------------------
# Identifier extraction
# ---------------------------------------------------------------------------
IdStrategy = Callable[[Any], "int | None"]


def _id_from_number(value: Any) -> int | None:
    # Identifiers are digit runs; a negative number is read like its text form.
    if not _is_number(value) or value < 0:
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    return int(value)


def _id_from_numeric_string(value: Any) -> int | None:
    if not isinstance(value, str):
        return None
    match = _NUMERIC_TEXT.fullmatch(value)
    return int(match.group(1)) if match else None


def _id_from_id_field(value: Any) -> int | None:
    if not isinstance(value, Mapping):
        return None
    for name in ID_FIELDS:
        candidate = value.get(name)
        if not candidate:
            continue
        coerced = _coerce_int(candidate)
        if coerced is not None:
            return coerced
    return None


def _id_from_output_field(value: Any) -> int | None:
    if not isinstance(value, Mapping):
        return None
    return _coerce_int(value.get("output"))


def _id_from_digit_run(value: Any) -> int | None:
    serialized = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    match = _DIGIT_RUN.search(serialized)
    return int(match.group(0)) if match else None


ID_STRATEGIES: tuple[IdStrategy, ...] = (
    _id_from_number,
    _id_from_numeric_string,
    _id_from_id_field,
    _id_from_output_field,
    _id_from_digit_run,
)


def extract_id(raw: Any, *, max_depth: int = DEFAULT_UNWRAP_DEPTH) -> int | None:
    """Return the numeric job identifier in ``raw``, or ``None`` when there is none.

    ``None`` is a distinct outcome; it is never folded into ``0``.
    """

    value = unwrap_json(raw, max_depth)
    for strategy in ID_STRATEGIES:
        found = strategy(value)
        if found is not None:
            LOGGER.debug("Identifier %s extracted via %s", found, strategy.__name__)
            return found
    return None


def _coerce_int(value: Any) -> int | None:
    found = _id_from_number(value)
    if found is not None:
        return found
    return _id_from_numeric_string(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------
def is_json_response(response: httpx.Response) -> bool:
    return "application/json" in response.headers.get("content-type", "").lower()


def read_payload(response: httpx.Response) -> Any:
    """Decode ``response`` by content type.

    Raises:
        ValueError: The response claims to be JSON but does not parse.
    """

    if is_json_response(response):
        return response.json()
    return response.text


def select_answer_field(payload: Any) -> Any:
    """Return the first present answer field of a JSON object, else the payload itself."""

    if isinstance(payload, Mapping):
        for name in ANSWER_FIELDS:
            if payload.get(name) is not None:
                return payload[name]
    return payload


def is_blank_payload(payload: Any) -> bool:
    """``True`` for the empty, ``null`` or whitespace-only bodies that mean "not ready"."""

    if payload is None:
        return True
    if isinstance(payload, str):
        stripped = payload.strip()
        return not stripped or stripped == "null"
    return False


__all__ = [
    "ANSWER_STRATEGIES",
    "DEFAULT_UNWRAP_DEPTH",
    "ID_STRATEGIES",
    "extract_id",
    "is_blank_payload",
    "is_json_response",
    "normalize",
    "read_payload",
    "select_answer_field",
    "to_text",
    "unescape_line_breaks",
    "unwrap_json",
]
