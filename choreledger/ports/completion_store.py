"""Completion store port — abstract interface for the ledger's backing store.

The ledger depends on this protocol, never on a specific database. Both
mutating calls must be conditional writes backed by a unique key on
(job_id, occurrence_date, assignment_id), where a null assignment_id takes
part in uniqueness.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Protocol

from choreledger.data.models import CompletionRecord


class CompletionStore(Protocol):
    """Storage primitives the completion ledger relies on."""

    def insert_if_absent(
        self,
        job_id: int,
        occurrence_date: date,
        assignment_id: int | None,
        completed_at: datetime,
        completed_by_user_id: int | None,
    ) -> tuple[CompletionRecord, bool]:
        """Insert a record unless one exists; return (record, created).

        With an assignment_id, the insert is conditional on that assignment
        still belonging to the job, and a ValueError is raised otherwise.
        """
        ...

    def delete_if_present(
        self, job_id: int, occurrence_date: date, assignment_id: int | None,
    ) -> bool:
        """Delete the matching record; return True if one was removed."""
        ...

    def find(
        self, job_id: int, occurrence_date: date, assignment_id: int | None,
    ) -> CompletionRecord | None: ...

    def list_for_date(
        self, job_ids: Iterable[int], occurrence_date: date,
    ) -> list[CompletionRecord]: ...
