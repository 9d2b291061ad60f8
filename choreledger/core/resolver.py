"""Recurrence resolver — picks the schedule that applies to an assignment.

A job either shares one schedule across all its assignments or lets each
assignment carry its own. Switching the flag never rewrites the other side's
fields; they are simply not read until the flag flips back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from choreledger.core.matcher import RecurrenceWindow, is_due
from choreledger.core.pattern import (
    NOT_RECURRING,
    MalformedPattern,
    RecurrencePattern,
    parse_pattern,
)
from choreledger.data.models import Assignment, Job

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Schedule:
    """An effective pattern together with its window."""

    pattern: RecurrencePattern
    window: RecurrenceWindow

    def is_due(self, on: date) -> bool:
        return is_due(self.pattern, self.window, on)


def build_schedule(
    recurrence: str | None,
    start_date: date | None,
    end_date: date | None,
    indefinite: bool,
    owner: str = "",
) -> Schedule | None:
    """Build a schedule from stored recurrence fields, or None if there is none.

    Stored data is assumed to be validated at edit time; anything that no
    longer parses is logged and treated as having no schedule.
    """
    try:
        pattern = parse_pattern(recurrence)
    except MalformedPattern as exc:
        logger.warning("Ignoring unparseable recurrence on %s: %s", owner or "record", exc)
        return None
    if pattern is NOT_RECURRING:
        return None
    if start_date is None:
        logger.warning("Recurrence on %s has no start date; treating as unscheduled", owner or "record")
        return None
    window = RecurrenceWindow(
        start_date=start_date,
        end_date=end_date,
        indefinite=indefinite,
    )
    return Schedule(pattern=pattern, window=window)


def job_schedule(job: Job) -> Schedule | None:
    """The job-level schedule, regardless of use_shared_recurrence."""
    return build_schedule(
        job.recurrence,
        job.recurrence_start_date,
        job.recurrence_end_date,
        job.recurrence_indefinite,
        owner=f"job #{job.id}",
    )


def assignment_schedule(assignment: Assignment) -> Schedule | None:
    """The assignment's own schedule, regardless of the job's flag."""
    return build_schedule(
        assignment.recurrence,
        assignment.recurrence_start_date,
        assignment.recurrence_end_date,
        assignment.recurrence_indefinite,
        owner=f"assignment #{assignment.id}",
    )


def effective_schedule_for(job: Job, assignment: Assignment | None) -> Schedule | None:
    """Return the schedule that decides due-ness for this assignment.

    With shared recurrence the job's schedule applies to every assignment;
    otherwise the assignment's own schedule does. None means non-recurring.
    A job-level lookup (assignment None) only makes sense for shared jobs.

    Args:
        job: The job, whose use_shared_recurrence flag picks the source.
        assignment: One of its assignments, or None for the job itself.

    Returns:
        The effective Schedule, or None when non-recurring or unusable.
    """
    if job.use_shared_recurrence:
        return job_schedule(job)
    if assignment is None:
        return None
    return assignment_schedule(assignment)
