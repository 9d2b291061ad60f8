"""
Chore Ledger — Occurrence Completion Ledger.

Records which occurrences are done. Each occurrence identity
(job, date, scope) is either Open or Completed, and both transitions are
idempotent: completing a completed occurrence returns the existing record,
reopening an open one does nothing. Races are settled by the store's
conditional writes, so no locks are taken here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Union

from choreledger.data.models import CompletionRecord

if TYPE_CHECKING:
    from choreledger.ports.completion_store import CompletionStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Assignment scope: which completion an occurrence refers to
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerAssignment:
    """Completion tracked for one assignee."""

    assignment_id: int


@dataclass(frozen=True)
class Shared:
    """Completion tracked for the whole job (legacy/shared record)."""


SHARED = Shared()

AssignmentScope = Union[PerAssignment, Shared]


def scope_for(assignment_id: int | None) -> AssignmentScope:
    """Map a nullable assignment id to its scope."""
    if assignment_id is None:
        return SHARED
    return PerAssignment(assignment_id)


def _assignment_key(scope: AssignmentScope) -> int | None:
    if isinstance(scope, PerAssignment):
        return scope.assignment_id
    return None


# ---------------------------------------------------------------------------
# Occurrence status
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Open:
    is_completed = False


@dataclass(frozen=True)
class Completed:
    record: CompletionRecord
    is_completed = True


OPEN = Open()

LedgerStatus = Union[Open, Completed]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletionLedger:
    """Completion state per occurrence identity, backed by a CompletionStore."""

    def __init__(
        self,
        store: CompletionStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or _utcnow

    def complete(
        self,
        job_id: int,
        occurrence_date: date,
        scope: AssignmentScope = SHARED,
        completed_by: int | None = None,
    ) -> CompletionRecord:
        """Mark an occurrence completed. Returns the new or existing record."""
        record, _ = self.record_completion(job_id, occurrence_date, scope, completed_by)
        return record

    def record_completion(
        self,
        job_id: int,
        occurrence_date: date,
        scope: AssignmentScope = SHARED,
        completed_by: int | None = None,
    ) -> tuple[CompletionRecord, bool]:
        """Like complete(), also telling whether this call created the record."""
        record, created = self._store.insert_if_absent(
            job_id,
            occurrence_date,
            _assignment_key(scope),
            self._clock(),
            completed_by,
        )
        if created:
            logger.info(
                "Job #%d completed for %s (%s)", job_id, occurrence_date, _describe(scope),
            )
        else:
            logger.debug(
                "Job #%d already completed for %s (%s)", job_id, occurrence_date, _describe(scope),
            )
        return record, created

    def uncomplete(
        self,
        job_id: int,
        occurrence_date: date,
        scope: AssignmentScope = SHARED,
    ) -> bool:
        """Reopen an occurrence. Returns True if a record was removed."""
        removed = self._store.delete_if_present(
            job_id, occurrence_date, _assignment_key(scope),
        )
        if removed:
            logger.info(
                "Job #%d reopened for %s (%s)", job_id, occurrence_date, _describe(scope),
            )
        else:
            logger.debug(
                "Job #%d already open for %s (%s)", job_id, occurrence_date, _describe(scope),
            )
        return removed

    def status_of(
        self,
        job_id: int,
        occurrence_date: date,
        scope: AssignmentScope = SHARED,
    ) -> LedgerStatus:
        record = self._store.find(job_id, occurrence_date, _assignment_key(scope))
        if record is None:
            return OPEN
        return Completed(record)

    def statuses_for_date(
        self, job_ids: Iterable[int], occurrence_date: date,
    ) -> dict[tuple[int, int | None], CompletionRecord]:
        """Load every completion of a date for the given jobs in one store call.

        Keys are (job_id, assignment_id); shared records use None.
        """
        job_ids = list(job_ids)
        if not job_ids:
            return {}
        records = self._store.list_for_date(job_ids, occurrence_date)
        return {(r.job_id, r.assignment_id): r for r in records}


def status_from(
    records: dict[tuple[int, int | None], CompletionRecord],
    job_id: int,
    scope: AssignmentScope,
) -> LedgerStatus:
    """Look up a status in the mapping returned by statuses_for_date."""
    record = records.get((job_id, _assignment_key(scope)))
    if record is None:
        return OPEN
    return Completed(record)


def _describe(scope: AssignmentScope) -> str:
    if isinstance(scope, PerAssignment):
        return f"assignment #{scope.assignment_id}"
    return "shared"
