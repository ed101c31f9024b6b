"""
Typed parsing of semi-structured JSON returned by language models.

Every parser returns a ``ParseResult``: either ``ok`` with a value, or a
rejection carrying a ``ParseError`` reason so callers (and tests) can tell
why a reply was discarded.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class ParseError(str, Enum):
    EMPTY = "empty"
    NOT_JSON = "not_json"
    NOT_ARRAY = "not_array"
    LENGTH_MISMATCH = "length_mismatch"
    NAME_MISMATCH = "name_mismatch"
    INVALID_TIME = "invalid_time"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    value: T | None = None
    error: ParseError | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ParseError, detail: str = "") -> "ParseResult[T]":
        return cls(error=error, detail=detail)


@dataclass(frozen=True)
class ScheduledItem:
    name: str
    start_time: str
    end_time: str


def strip_code_fences(text: str) -> str:
    """Strip markdown code fences from LLM output."""
    s = text.strip()
    if s.startswith("```"):
        body = s.lstrip("`")
        if body.lower().startswith("json"):
            body = body[4:]
        body = body.lstrip("\n ")
        if body.endswith("```"):
            body = body[:-3]
        return body.strip()
    return s


def load_json(raw: str | None) -> ParseResult[Any]:
    """Parse JSON, tolerating code fences and prose around the payload."""
    if raw is None or not raw.strip():
        return ParseResult.failure(ParseError.EMPTY)

    text = strip_code_fences(raw)
    try:
        return ParseResult.success(json.loads(text))
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost array or object in the text
    for open_ch, close_ch in (("[", "]"), ("{", "}")):
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return ParseResult.success(json.loads(text[start : end + 1]))
            except json.JSONDecodeError:
                continue

    return ParseResult.failure(ParseError.NOT_JSON, detail=text[:200])


def unwrap_array(data: Any) -> ParseResult[list[Any]]:
    """Accept a bare array, or an object with exactly one key holding an array."""
    if isinstance(data, list):
        return ParseResult.success(data)
    if isinstance(data, dict) and len(data) == 1:
        (inner,) = data.values()
        if isinstance(inner, list):
            return ParseResult.success(inner)
    return ParseResult.failure(ParseError.NOT_ARRAY, detail=type(data).__name__)


def parse_string_list(raw: str | None) -> ParseResult[list[str]]:
    loaded = load_json(raw)
    if not loaded.ok:
        return ParseResult.failure(loaded.error, loaded.detail)
    array = unwrap_array(loaded.value)
    if not array.ok:
        return ParseResult.failure(array.error, array.detail)
    if not all(isinstance(item, str) for item in array.value):
        return ParseResult.failure(ParseError.NOT_ARRAY, detail="non-string item")
    return ParseResult.success([item.strip() for item in array.value if item.strip()])


def parse_schedule(raw: str | None, expected_names: list[str]) -> ParseResult[list[ScheduledItem]]:
    """
    Parse a rescheduling reply for one day.

    The reply must be a JSON array (optionally wrapped in a single-key object)
    with exactly one entry per expected activity, each naming an original
    activity exactly and carrying HH:MM ``startTime``/``endTime`` values.
    """
    loaded = load_json(raw)
    if not loaded.ok:
        return ParseResult.failure(loaded.error, loaded.detail)
    array = unwrap_array(loaded.value)
    if not array.ok:
        return ParseResult.failure(array.error, array.detail)

    items = array.value
    if len(items) != len(expected_names):
        return ParseResult.failure(
            ParseError.LENGTH_MISMATCH,
            detail=f"expected {len(expected_names)}, got {len(items)}",
        )

    scheduled: list[ScheduledItem] = []
    for item in items:
        if not isinstance(item, dict):
            return ParseResult.failure(ParseError.NOT_ARRAY, detail="non-object item")
        name = item.get("name")
        start = str(item.get("startTime") or item.get("start_time") or "").strip()
        end = str(item.get("endTime") or item.get("end_time") or "").strip()
        if not isinstance(name, str):
            return ParseResult.failure(ParseError.NAME_MISMATCH, detail=repr(name))
        if not _HHMM.match(start) or not _HHMM.match(end):
            return ParseResult.failure(ParseError.INVALID_TIME, detail=f"{name}: {start}-{end}")
        scheduled.append(ScheduledItem(name=name, start_time=_pad(start), end_time=_pad(end)))

    if sorted(s.name for s in scheduled) != sorted(expected_names):
        return ParseResult.failure(ParseError.NAME_MISMATCH)

    return ParseResult.success(scheduled)


def _pad(hhmm: str) -> str:
    hours, minutes = hhmm.split(":")
    return f"{int(hours):02d}:{minutes}"
