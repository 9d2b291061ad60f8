"""Occurrence matcher — pure due-date logic.

Decides whether a calendar date is an occurrence of a recurrence pattern
inside its window. Every function here is total for well-typed input and
never touches the clock: the date under evaluation is always a parameter.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator

from choreledger.core.pattern import Frequency, RecurrencePattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecurrenceWindow:
    """The span in which a pattern may produce occurrences.

    When indefinite is True the end date is ignored. When it is False and
    there is no end date the window is empty: nothing is ever due.
    """

    start_date: date
    end_date: date | None = None
    indefinite: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", _as_date(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", _as_date(self.end_date))

    @property
    def is_empty(self) -> bool:
        return not self.indefinite and self.end_date is None

    @property
    def last_date(self) -> date | None:
        """Last date the window covers, or None when it never ends."""
        if self.indefinite:
            return None
        return self.end_date

    def contains(self, on: date) -> bool:
        on = _as_date(on)
        if on < self.start_date:
            return False
        if not self.indefinite:
            if self.end_date is None or on > self.end_date:
                return False
        return True


def _as_date(value: date) -> date:
    """Drop the time component of a datetime; occurrences are date-granular."""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_due(pattern: RecurrencePattern, window: RecurrenceWindow, on: date) -> bool:
    """Return True if `on` is an occurrence of `pattern` within `window`."""
    on = _as_date(on)
    if not window.contains(on):
        return False

    days = (on - window.start_date).days
    if pattern.frequency is Frequency.DAILY:
        return days % pattern.interval == 0

    # Weeks are 7-day blocks counted from the window start, not calendar weeks
    week_index = days // 7
    if week_index % pattern.interval != 0:
        return False
    if not pattern.weekdays:
        return True
    return on.weekday() in {d.value for d in pattern.weekdays}


def _weekly_ordinals(
    pattern: RecurrencePattern,
    window: RecurrenceWindow,
    first: int,
    last: int,
) -> Iterator[int]:
    """Ordinals of due days in [first, last], visiting qualifying weeks only."""
    base = window.start_date.toordinal()
    week = (first - base) // 7
    if week % pattern.interval:
        week += pattern.interval - week % pattern.interval
    weekdays = {d.value for d in pattern.weekdays}
    while base + week * 7 <= last:
        block = base + week * 7
        for ordinal in range(max(block, first), min(block + 6, last) + 1):
            if not weekdays or date.fromordinal(ordinal).weekday() in weekdays:
                yield ordinal
        week += pattern.interval


def iter_occurrences(
    pattern: RecurrencePattern,
    window: RecurrenceWindow,
    start: date,
    end: date,
) -> Iterator[date]:
    """Yield every due date in [start, end], in order.

    Args:
        pattern: The recurrence to expand.
        window: Bounds the occurrences; an empty window yields nothing.
        start: First date to consider (clipped to the window start).
        end: Last date to consider (clipped to the window end).

    Yields:
        Due dates in ascending order. Works on day ordinals, so neither a
        huge interval nor a range reaching date.max overflows.
    """
    start = max(_as_date(start), window.start_date)
    end = _as_date(end)
    if window.last_date is not None:
        end = min(end, window.last_date)
    if window.is_empty or start > end:
        return

    first, last = start.toordinal(), end.toordinal()
    if pattern.frequency is Frequency.DAILY:
        # Jump to the first aligned day instead of testing every date
        ordinal = first + (-(first - window.start_date.toordinal())) % pattern.interval
        while ordinal <= last:
            yield date.fromordinal(ordinal)
            ordinal += pattern.interval
        return

    for ordinal in _weekly_ordinals(pattern, window, first, last):
        yield date.fromordinal(ordinal)


def next_occurrence(
    pattern: RecurrencePattern,
    window: RecurrenceWindow,
    after: date,
) -> date | None:
    """Return the first due date strictly after `after`.

    Args:
        pattern: The recurrence to search.
        window: Bounds the search.
        after: Exclusive lower bound; may be date.max.

    Returns:
        The next due date, or None when the window is empty, exhausted, or
        the next occurrence would fall after date.max.
    """
    after = _as_date(after)
    if after >= date.max:
        return None
    first = max(after + timedelta(days=1), window.start_date)
    # Any pattern repeats within one full cycle of interval weeks
    horizon = min(first.toordinal() + 7 * pattern.interval + 7, date.max.toordinal())
    return next(iter_occurrences(pattern, window, first, date.fromordinal(horizon)), None)
