"""Due assignments projector — the per-date view of jobs.

For a target date, walks every job and assignment, resolves the effective
schedule, keeps what is due and attaches the ledger status of each
occurrence. Items without any schedule are not dropped: they are returned
with the NOT_RECURRING marker and the caller decides whether they are due.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Iterable

from choreledger.core.ledger import (
    SHARED,
    AssignmentScope,
    LedgerStatus,
    scope_for,
    status_from,
)
from choreledger.core.pattern import NOT_RECURRING, NotRecurring
from choreledger.core.resolver import Schedule, effective_schedule_for
from choreledger.data.models import Assignment, CompletionMode, Job

if TYPE_CHECKING:
    from choreledger.core.ledger import CompletionLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DueItem:
    """One row of the per-date view.

    assignment is None for a job-level occurrence of a job with no assignees.
    """

    job: Job
    assignment: Assignment | None
    schedule: Schedule | NotRecurring
    scope: AssignmentScope
    status: LedgerStatus

    @property
    def is_recurring(self) -> bool:
        return self.schedule is not NOT_RECURRING

    @property
    def is_completed(self) -> bool:
        return self.status.is_completed

    @property
    def completed_at(self) -> datetime | None:
        if self.status.is_completed:
            return self.status.record.completed_at
        return None


@dataclass(frozen=True)
class BoardRow:
    """The flat tuple the HTTP layer renders as "today's jobs per person"."""

    job_id: int
    assignment_id: int | None
    is_completed: bool
    completed_at: datetime | None


def completion_scope(job: Job, assignment: Assignment | None) -> AssignmentScope:
    """Scope under which completions of this job/assignment are recorded."""
    if assignment is None or job.completion_mode is CompletionMode.SHARED:
        return SHARED
    return scope_for(assignment.id)


def _sorted_jobs(jobs: Iterable[Job]) -> list[Job]:
    return sorted(jobs, key=lambda j: (j.display_order, j.id))


def _sorted_assignments(job: Job) -> list[Assignment]:
    return sorted(job.assignments, key=lambda a: (a.display_order, a.id))


def _candidates(job: Job, on: date) -> list[tuple[Assignment | None, Schedule | NotRecurring]]:
    """Assignments of a job that are due on `on`, or carry no schedule."""
    found: list[tuple[Assignment | None, Schedule | NotRecurring]] = []

    if job.use_shared_recurrence and not job.assignments:
        schedule = effective_schedule_for(job, None)
        if schedule is None:
            found.append((None, NOT_RECURRING))
        elif schedule.is_due(on):
            found.append((None, schedule))
        return found

    for assignment in _sorted_assignments(job):
        schedule = effective_schedule_for(job, assignment)
        if schedule is None:
            found.append((assignment, NOT_RECURRING))
        elif schedule.is_due(on):
            found.append((assignment, schedule))
    return found


def due_on(on: date, jobs: Iterable[Job], ledger: CompletionLedger) -> list[DueItem]:
    """Return the due items for `on` with their completion status.

    Args:
        on: The calendar date to project (a datetime is truncated).
        jobs: Jobs with their assignments loaded.
        ledger: Source of completion state; queried once for all jobs.

    Returns:
        DueItems ordered by job (display_order, id), then assignment
        (display_order, id). Items without a schedule carry NOT_RECURRING.
        A bad stored descriptor never raises; that item is unscheduled.
    """
    if isinstance(on, datetime):
        on = on.date()

    selected: list[tuple[Job, Assignment | None, Schedule | NotRecurring]] = []
    for job in _sorted_jobs(jobs):
        for assignment, schedule in _candidates(job, on):
            selected.append((job, assignment, schedule))

    records = ledger.statuses_for_date({job.id for job, _, _ in selected}, on)

    items: list[DueItem] = []
    for job, assignment, schedule in selected:
        scope = completion_scope(job, assignment)
        items.append(DueItem(
            job=job,
            assignment=assignment,
            schedule=schedule,
            scope=scope,
            status=status_from(records, job.id, scope),
        ))

    logger.debug("%d item(s) on %s", len(items), on)
    return items


def to_board_rows(items: Iterable[DueItem]) -> list[BoardRow]:
    return [
        BoardRow(
            job_id=item.job.id,
            assignment_id=item.assignment.id if item.assignment else None,
            is_completed=item.is_completed,
            completed_at=item.completed_at,
        )
        for item in items
    ]
