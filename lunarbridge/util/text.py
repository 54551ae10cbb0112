"""
String helpers shared by Discord and in-game command handling.

- autocorrect(): fuzzy lookup of command names and IGNs (SequenceMatcher ratio)
- parse_duration() / format_duration(): "1h30m" <-> seconds, "2 minutes"
- split_message(): chunk long content at natural break points
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Generic, TypeVar

T = TypeVar("T")

_DURATION_TOKEN = re.compile(
    r"(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>milliseconds?|msecs?|ms|seconds?|secs?|s|minutes?|mins?|m|"
    r"hours?|hrs?|h|days?|d|weeks?|w|years?|yrs?|y)?",
    re.IGNORECASE,
)

_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 604800.0,
    "y": 31557600.0,
}

_LONG_UNITS = (
    ("day", 86400.0),
    ("hour", 3600.0),
    ("minute", 60.0),
    ("second", 1.0),
)


@dataclass(frozen=True)
class AutocorrectResult(Generic[T]):
    value: T
    similarity: float


def similarity(a: str, b: str) -> float:
    """Case-insensitive similarity ratio between 0.0 and 1.0."""
    return SequenceMatcher(None, a.lower(), b.lower()).ratio()


def autocorrect(
    query: str,
    candidates: Iterable[T],
    key: Callable[[T], str] | None = None,
) -> AutocorrectResult[T] | None:
    """
    Return the candidate most similar to ``query``.

    An exact (case-insensitive) match short-circuits the search. Returns
    None if there are no candidates at all.
    """
    best: AutocorrectResult[T] | None = None

    for candidate in candidates:
        text = key(candidate) if key else candidate
        score = similarity(query, text)  # type: ignore[arg-type]

        if score == 1.0:
            return AutocorrectResult(candidate, 1.0)

        if best is None or score > best.similarity:
            best = AutocorrectResult(candidate, score)

    return best


def sort_by_similarity(
    query: str,
    candidates: Iterable[T],
    key: Callable[[T], str],
    limit: int = 25,
) -> list[T]:
    """Candidates ordered by similarity to ``query``, best first."""
    scored = sorted(candidates, key=lambda candidate: similarity(query, key(candidate)), reverse=True)
    return scored[:limit]


def parse_duration(text: str | None) -> float | None:
    """
    Parse a human duration like ``30s``, ``10m`` or ``1h30m`` into seconds.

    A bare number is read as milliseconds. Returns None if the input
    contains anything that isn't a duration.
    """
    if not text:
        return None

    text = text.strip()
    total = 0.0
    position = 0

    for match in _DURATION_TOKEN.finditer(text):
        if match.start() != position and text[position:match.start()].strip():
            return None
        unit = (match.group("unit") or "ms").lower()
        if unit.startswith("ms") or unit.startswith("milli"):
            factor = _UNIT_SECONDS["ms"]
        else:
            factor = _UNIT_SECONDS[unit[0]]

        total += float(match.group("value")) * factor
        position = match.end()

    if position == 0 or text[position:].strip():
        return None
    return total


def format_duration(seconds: float) -> str:
    """Format a duration the long way round: ``"2 minutes"``, ``"1 day"``."""
    absolute = abs(seconds)

    for name, unit in _LONG_UNITS:
        if absolute >= unit:
            amount = round(seconds / unit)
            plural = "s" if absolute >= unit * 1.5 else ""
            return f"{amount} {name}{plural}"

    return f"{round(seconds * 1000)} ms"


def upper_case_first_char(text: str) -> str:
    return text[:1].upper() + text[1:]


def comma_list_or(items: Iterable[str]) -> str:
    """``a, b or c``"""
    items = list(items)
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])} or {items[-1]}"


def split_message(
    text: str,
    max_length: int = 2000,
    separators: tuple[str, ...] = ("\n", " ", ""),
) -> list[str]:
    """
    Split text into chunks no longer than ``max_length``.

    Each separator is tried in order; the empty separator splits hard at
    ``max_length``.
    """
    parts: list[str] = []
    remaining = text

    while len(remaining) > max_length:
        cut, separator = max_length, ""
        for candidate in separators:
            if not candidate:
                break
            index = remaining.rfind(candidate, 0, max_length + 1)
            if index > 0:
                cut, separator = index, candidate
                break

        parts.append(remaining[:cut])
        remaining = remaining[cut + len(separator):]

    if remaining or not parts:
        parts.append(remaining)
    return parts


def code_block(text: str, language: str = "") -> str:
    return f"```{language}\n{text}\n```"


def make_content(
    text: str,
    *,
    split: bool = False,
    code: str | bool = False,
    max_length: int = 2000,
) -> list[str]:
    """Optionally split and wrap content into code blocks."""
    language = code if isinstance(code, str) else ""
    overhead = len(code_block("", language)) if code else 0

    chunks = split_message(text, max_length - overhead) if split else [text]
    if code:
        return [code_block(chunk, language) for chunk in chunks]
    return chunks
