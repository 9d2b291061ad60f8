"""
Chore Ledger — Recurrence Pattern Grammar.

Parses the compact descriptor persisted with every job and assignment:

    FREQ=<DAILY|WEEKLY>[;INTERVAL=<positive int>][;BYDAY=<MO,TU,...>]

Examples: "FREQ=DAILY;INTERVAL=3", "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH,SU".

Unknown keys are ignored; known keys with bad values are rejected. An empty
descriptor means the item does not repeat and yields the NOT_RECURRING marker
instead of an error.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache

logger = logging.getLogger(__name__)

_INTERVAL_RE = re.compile(r"[0-9]+")


class MalformedPattern(ValueError):
    """Raised when a recurrence descriptor violates the grammar."""

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Invalid recurrence {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class Frequency(Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class Weekday(Enum):
    """Two-letter weekday codes, valued like date.weekday() (Monday == 0)."""

    MO = 0
    TU = 1
    WE = 2
    TH = 3
    FR = 4
    SA = 5
    SU = 6


class NotRecurring(Enum):
    """Marker for a job or assignment without a recurrence descriptor."""

    MARKER = "not-recurring"

    def __repr__(self) -> str:
        return "NOT_RECURRING"


NOT_RECURRING = NotRecurring.MARKER


@dataclass(frozen=True)
class RecurrencePattern:
    """A parsed, validated recurrence pattern.

    weekdays is only meaningful for WEEKLY patterns; an empty set means every
    day of a qualifying week.
    """

    frequency: Frequency
    interval: int = 1
    weekdays: frozenset[Weekday] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not isinstance(self.frequency, Frequency):
            raise ValueError(f"Unknown frequency: {self.frequency!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise ValueError(f"Interval must be an integer, got {self.interval!r}")
        if self.interval <= 0:
            raise ValueError(f"Interval must be positive, got {self.interval}")
        # Accept any iterable of weekdays but store a frozenset
        object.__setattr__(self, "weekdays", frozenset(self.weekdays))
        if self.frequency is Frequency.DAILY and self.weekdays:
            raise ValueError("Weekdays are only allowed on WEEKLY patterns")

    @classmethod
    def daily(cls, interval: int = 1) -> RecurrencePattern:
        return cls(Frequency.DAILY, interval)

    @classmethod
    def weekly(cls, interval: int = 1, weekdays=()) -> RecurrencePattern:
        return cls(Frequency.WEEKLY, interval, frozenset(weekdays))


def _split_parts(raw: str) -> dict[str, str]:
    """Split "K=V;K=V" into an upper-cased key dict (last occurrence wins)."""
    parts: dict[str, str] = {}
    for chunk in raw.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        key, sep, value = chunk.partition("=")
        if not sep:
            raise MalformedPattern(raw, f"expected KEY=VALUE, got {chunk!r}")
        key = key.strip().upper()
        if not key:
            raise MalformedPattern(raw, f"missing key in {chunk!r}")
        parts[key] = value.strip()
    return parts


def _parse_interval(raw: str, value: str) -> int:
    if not _INTERVAL_RE.fullmatch(value):
        raise MalformedPattern(raw, f"INTERVAL must be a positive integer, got {value!r}")
    try:
        interval = int(value)
    except ValueError:
        # int() refuses digit strings past sys.get_int_max_str_digits()
        raise MalformedPattern(raw, f"INTERVAL is too large ({len(value)} digits)") from None
    if interval <= 0:
        raise MalformedPattern(raw, f"INTERVAL must be a positive integer, got {value!r}")
    return interval


def _parse_byday(raw: str, value: str) -> frozenset[Weekday]:
    days: set[Weekday] = set()
    for token in value.split(","):
        code = token.strip().upper()
        if not code:
            raise MalformedPattern(raw, "BYDAY contains an empty weekday code")
        try:
            days.add(Weekday[code])
        except KeyError:
            raise MalformedPattern(raw, f"unknown weekday code {token.strip()!r}") from None
    return frozenset(days)


@lru_cache(maxsize=256)
def _parse_cached(raw: str) -> RecurrencePattern:
    parts = _split_parts(raw)

    if "FREQ" not in parts:
        raise MalformedPattern(raw, "FREQ is required")
    try:
        frequency = Frequency(parts["FREQ"].upper())
    except ValueError:
        raise MalformedPattern(raw, f"unsupported FREQ {parts['FREQ']!r}") from None

    interval = 1
    if "INTERVAL" in parts:
        interval = _parse_interval(raw, parts["INTERVAL"])

    weekdays: frozenset[Weekday] = frozenset()
    if "BYDAY" in parts:
        weekdays = _parse_byday(raw, parts["BYDAY"])
        if frequency is Frequency.DAILY:
            logger.debug("Ignoring BYDAY on daily pattern %r", raw)
            weekdays = frozenset()

    return RecurrencePattern(frequency, interval, weekdays)


def parse_pattern(raw: str | None) -> RecurrencePattern | NotRecurring:
    """Parse a recurrence descriptor.

    Args:
        raw: A descriptor such as "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH", or None.

    Returns:
        The parsed RecurrencePattern, or NOT_RECURRING for a None/blank
        descriptor.

    Raises:
        MalformedPattern: the descriptor violates the grammar.
    """
    if raw is None or not raw.strip():
        return NOT_RECURRING
    return _parse_cached(raw.strip())


def stringify_pattern(pattern: RecurrencePattern) -> str:
    """Render the canonical descriptor for a pattern."""
    parts = [f"FREQ={pattern.frequency.value}", f"INTERVAL={pattern.interval}"]
    if pattern.weekdays:
        codes = sorted(pattern.weekdays, key=lambda d: d.value)
        parts.append("BYDAY=" + ",".join(d.name for d in codes))
    return ";".join(parts)


def validate_descriptor(raw: str | None) -> str | None:
    """Return a validation message for an invalid descriptor, or None if valid."""
    try:
        parse_pattern(raw)
    except MalformedPattern as exc:
        return str(exc)
    return None
