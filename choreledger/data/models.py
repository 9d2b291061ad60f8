"""
Chore Ledger — Data Models.

Jobs own their assignments; completion records are keyed by occurrence
(job, date, assignment) and outlive the assignment they point to.
Recurrence descriptors are kept verbatim and re-parsed on every evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class CompletionMode(Enum):
    """How a job records completions."""

    PER_ASSIGNMENT = "per_assignment"   # one record per assignee per date
    SHARED = "shared"                   # one record for the whole job per date


@dataclass
class Assignment:
    """A user's assignment to a job.

    The recurrence fields are only read when the parent job does not use
    shared recurrence.
    """

    id: int
    job_id: int
    user_id: int
    recurrence: str | None = None         # e.g. "FREQ=WEEKLY;BYDAY=MO,TH"
    recurrence_start_date: date | None = None
    recurrence_end_date: date | None = None
    recurrence_indefinite: bool = False
    display_order: int = 0


@dataclass
class Job:
    """A household job, optionally recurring, with its assignments."""

    id: int
    title: str
    description: str | None = None
    image_url: str | None = None
    created_at: str = ""
    recurrence: str | None = None
    recurrence_start_date: date | None = None
    recurrence_end_date: date | None = None
    recurrence_indefinite: bool = False
    use_shared_recurrence: bool = True
    completion_mode: CompletionMode = CompletionMode.PER_ASSIGNMENT
    display_order: int = 0
    assignments: list[Assignment] = field(default_factory=list)


@dataclass(frozen=True)
class CompletionRecord:
    """A completed occurrence. Never updated in place."""

    id: int
    job_id: int
    occurrence_date: date
    completed_at: datetime
    completed_by_user_id: int | None = None
    assignment_id: int | None = None    # None = shared/legacy completion
