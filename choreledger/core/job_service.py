"""
Chore Ledger — UI-Agnostic Job Service.

Stateless service layer the HTTP/kiosk layer calls into:
validate edits -> persist jobs and assignments -> project the per-date board
-> toggle completions. Returns structured response objects for writes so
every transport can render them its own way.

Completion toggles are idempotent and take no locks, so they can be exposed
directly as POST/DELETE handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from choreledger.core.projector import (
    BoardRow,
    DueItem,
    completion_scope,
    due_on,
    to_board_rows,
)
from choreledger.core.schemas import AssignmentInput, JobInput, format_validation_error
from choreledger.data.db import (
    AssignmentNotFoundError,
    DuplicateAssignmentError,
    JobNotFoundError,
)

if TYPE_CHECKING:
    from choreledger.core.ledger import CompletionLedger
    from choreledger.data.db import JobDB
    from choreledger.data.models import Assignment, CompletionRecord, Job

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"


@dataclass
class ServiceResponse:
    kind: ResponseKind
    message: str

    @property
    def ok(self) -> bool:
        return self.kind is ResponseKind.SUCCESS


@dataclass
class SuccessResponse(ServiceResponse):
    job: Job | None = None
    assignment: Assignment | None = None


@dataclass
class CompletionResponse(ServiceResponse):
    record: CompletionRecord | None = None    # None after an uncomplete
    changed: bool = False                     # False for an idempotent no-op


@dataclass
class ErrorResponse(ServiceResponse):
    pass


def _not_found(message: str) -> ErrorResponse:
    return ErrorResponse(kind=ResponseKind.NOT_FOUND, message=message)


def _error(message: str) -> ErrorResponse:
    return ErrorResponse(kind=ResponseKind.ERROR, message=message)


class InvalidDateError(ValueError):
    """Raised when an occurrence date is not a YYYY-MM-DD calendar date."""


def parse_occurrence_date(value: date | str) -> date:
    """Accept a date or a strict YYYY-MM-DD string; time parts are dropped."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d")
    except (AttributeError, ValueError):
        raise InvalidDateError(
            f"Invalid date {value!r}. Expected YYYY-MM-DD format."
        ) from None
    return parsed.date()


# ---------------------------------------------------------------------------
# JobService
# ---------------------------------------------------------------------------


class JobService:
    """Stateless facade over the job store, the projector and the ledger."""

    def __init__(self, job_db: JobDB, ledger: CompletionLedger) -> None:
        self._jobs = job_db
        self._ledger = ledger

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(self, data: JobInput | dict[str, Any]) -> ServiceResponse:
        """Validate and persist a new job."""
        try:
            job_input = data if isinstance(data, JobInput) else JobInput.model_validate(data)
        except ValidationError as exc:
            logger.info("Rejected job: %s", format_validation_error(exc))
            return _error(format_validation_error(exc))

        job = self._jobs.add_job(**job_input.model_dump())
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Job '{job.title}' created.",
            job=job,
        )

    def update_job(self, job_id: int, data: JobInput | dict[str, Any]) -> ServiceResponse:
        """Validate and replace a job's fields.

        Assignment-level recurrence is left as is, even when
        use_shared_recurrence flips.
        """
        try:
            job_input = data if isinstance(data, JobInput) else JobInput.model_validate(data)
        except ValidationError as exc:
            logger.info("Rejected update of job #%d: %s", job_id, format_validation_error(exc))
            return _error(format_validation_error(exc))

        job = self._jobs.update_job(job_id, **job_input.model_dump())
        if job is None:
            return _not_found(f"Job {job_id} not found.")
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Job '{job.title}' updated.",
            job=job,
        )

    def delete_job(self, job_id: int) -> ServiceResponse:
        if not self._jobs.delete_job(job_id):
            return _not_found(f"Job {job_id} not found.")
        return SuccessResponse(kind=ResponseKind.SUCCESS, message=f"Job {job_id} deleted.")

    def get_job(self, job_id: int) -> Job | None:
        return self._jobs.get_job(job_id)

    def list_jobs(self) -> list[Job]:
        return self._jobs.list_jobs()

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def add_assignment(
        self, job_id: int, data: AssignmentInput | dict[str, Any],
    ) -> ServiceResponse:
        try:
            assignment_input = (
                data if isinstance(data, AssignmentInput)
                else AssignmentInput.model_validate(data)
            )
        except ValidationError as exc:
            return _error(format_validation_error(exc))

        fields = assignment_input.model_dump(exclude={"display_order"})
        try:
            assignment = self._jobs.add_assignment(job_id, **fields)
        except JobNotFoundError:
            return _not_found(f"Job {job_id} not found.")
        except DuplicateAssignmentError:
            logger.warning("User %d already assigned to job #%d", assignment_input.user_id, job_id)
            return _error("User is already assigned to this job.")

        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"User {assignment.user_id} assigned.",
            assignment=assignment,
        )

    def update_assignment(
        self, job_id: int, assignment_id: int, data: AssignmentInput | dict[str, Any],
    ) -> ServiceResponse:
        if self._find_assignment(job_id, assignment_id) is None:
            return _not_found(f"Assignment {assignment_id} not found for job {job_id}.")
        try:
            assignment_input = (
                data if isinstance(data, AssignmentInput)
                else AssignmentInput.model_validate(data)
            )
        except ValidationError as exc:
            return _error(format_validation_error(exc))

        try:
            assignment = self._jobs.update_assignment(assignment_id, **assignment_input.model_dump())
        except DuplicateAssignmentError:
            return _error("User is already assigned to this job.")
        if assignment is None:
            return _not_found(f"Assignment {assignment_id} not found for job {job_id}.")
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=f"Assignment {assignment_id} updated.",
            assignment=assignment,
        )

    def delete_assignment(self, job_id: int, assignment_id: int) -> ServiceResponse:
        """Remove an assignment; its past completions stay as shared records."""
        if self._find_assignment(job_id, assignment_id) is None:
            return _not_found(f"Assignment {assignment_id} not found for job {job_id}.")
        self._jobs.delete_assignment(assignment_id)
        return SuccessResponse(
            kind=ResponseKind.SUCCESS, message=f"Assignment {assignment_id} deleted.",
        )

    def reorder_assignments(self, job_id: int, assignment_ids: list[int]) -> ServiceResponse:
        if self._jobs.get_job(job_id) is None:
            return _not_found(f"Job {job_id} not found.")
        self._jobs.reorder_assignments(job_id, assignment_ids)
        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message="Assignment order updated.",
            job=self._jobs.get_job(job_id),
        )

    def _find_assignment(self, job_id: int, assignment_id: int) -> Assignment | None:
        assignment = self._jobs.get_assignment(assignment_id)
        if assignment is None or assignment.job_id != job_id:
            return None
        return assignment

    # ------------------------------------------------------------------
    # Per-date board
    # ------------------------------------------------------------------

    def jobs_for_date(self, on: date | str) -> list[DueItem]:
        """Due items for a date, including NOT_RECURRING ones for the caller to place.

        Raises InvalidDateError for a malformed date string.
        """
        on = parse_occurrence_date(on)
        items = due_on(on, self._jobs.list_jobs(), self._ledger)
        logger.info("Retrieved %d item(s) for %s", len(items), on)
        return items

    def board_rows(self, on: date | str) -> list[BoardRow]:
        """(job_id, assignment_id, is_completed, completed_at) rows for a date."""
        return to_board_rows(self.jobs_for_date(on))

    # ------------------------------------------------------------------
    # Completion toggles
    # ------------------------------------------------------------------

    def complete(
        self,
        job_id: int,
        assignment_id: int | None,
        on: date | str,
        completed_by: int | None = None,
    ) -> ServiceResponse:
        """Mark an occurrence done. Completing twice is not an error.

        Args:
            job_id: The job to complete.
            assignment_id: The assignee, or None for a job-level completion.
                Ignored for storage when the job uses shared completion.
            on: Occurrence date, as a date or a YYYY-MM-DD string.
            completed_by: User to attribute; defaults to the assignee.

        Returns:
            CompletionResponse with the record and changed=False for a no-op,
            or ErrorResponse for a bad date or an unknown job/assignment.
        """
        target = self._resolve_target(job_id, assignment_id, on)
        if isinstance(target, ErrorResponse):
            return target
        job, assignment, occurrence_date = target

        if completed_by is None and assignment is not None:
            completed_by = assignment.user_id

        try:
            record, created = self._ledger.record_completion(
                job.id, occurrence_date, completion_scope(job, assignment), completed_by,
            )
        except AssignmentNotFoundError:
            # Removed after _resolve_target looked it up
            logger.warning("Assignment #%d vanished before completing job #%d", assignment_id, job_id)
            return _not_found(f"Assignment {assignment_id} not found for job {job_id}.")
        return CompletionResponse(
            kind=ResponseKind.SUCCESS,
            message=f"'{job.title}' completed for {occurrence_date.isoformat()}.",
            record=record,
            changed=created,
        )

    def uncomplete(
        self, job_id: int, assignment_id: int | None, on: date | str,
    ) -> ServiceResponse:
        """Reopen an occurrence. Reopening an open occurrence is not an error.

        Args:
            job_id: The job to reopen.
            assignment_id: The assignee, or None for a job-level completion.
            on: Occurrence date, as a date or a YYYY-MM-DD string.

        Returns:
            CompletionResponse with changed=True if a record was removed,
            or ErrorResponse for a bad date or an unknown job/assignment.
        """
        target = self._resolve_target(job_id, assignment_id, on)
        if isinstance(target, ErrorResponse):
            return target
        job, assignment, occurrence_date = target

        removed = self._ledger.uncomplete(
            job.id, occurrence_date, completion_scope(job, assignment),
        )
        return CompletionResponse(
            kind=ResponseKind.SUCCESS,
            message=f"'{job.title}' reopened for {occurrence_date.isoformat()}.",
            changed=removed,
        )

    def _resolve_target(
        self, job_id: int, assignment_id: int | None, on: date | str,
    ) -> tuple[Job, Assignment | None, date] | ErrorResponse:
        try:
            occurrence_date = parse_occurrence_date(on)
        except InvalidDateError as exc:
            logger.warning("%s", exc)
            return _error(str(exc))

        job = self._jobs.get_job(job_id)
        if job is None:
            return _not_found(f"Job {job_id} not found.")

        assignment = None
        if assignment_id is not None:
            assignment = next((a for a in job.assignments if a.id == assignment_id), None)
            if assignment is None:
                return _not_found(f"Assignment {assignment_id} not found for job {job_id}.")
        return job, assignment, occurrence_date
