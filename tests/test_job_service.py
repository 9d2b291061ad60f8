"""Tests for choreledger.core.job_service — the UI-agnostic job service."""

from datetime import date, datetime

import pytest

from choreledger.core.job_service import (
    CompletionResponse,
    ErrorResponse,
    InvalidDateError,
    ResponseKind,
    SuccessResponse,
    parse_occurrence_date,
)
from choreledger.core.schemas import JobInput

DAY = date(2024, 1, 5)

DAILY_JOB = {
    "title": "Feed the cat",
    "recurrence": "FREQ=DAILY;INTERVAL=1",
    "recurrence_start_date": "2024-01-01",
    "recurrence_indefinite": True,
}


@pytest.fixture
def daily_job(service):
    job = service.create_job(DAILY_JOB).job
    a = service.add_assignment(job.id, {"user_id": 1}).assignment
    b = service.add_assignment(job.id, {"user_id": 2}).assignment
    return job, a, b


class TestParseOccurrenceDate:
    def test_iso_string(self):
        assert parse_occurrence_date("2024-01-05") == DAY

    def test_date_passthrough(self):
        assert parse_occurrence_date(DAY) == DAY

    def test_datetime_is_truncated(self):
        assert parse_occurrence_date(datetime(2024, 1, 5, 23, 59)) == DAY

    @pytest.mark.parametrize("raw", ["05/01/2024", "2024-13-01", "tomorrow", "", None])
    def test_invalid(self, raw):
        with pytest.raises(InvalidDateError):
            parse_occurrence_date(raw)


class TestJobs:
    def test_create_job(self, service):
        resp = service.create_job(DAILY_JOB)
        assert isinstance(resp, SuccessResponse)
        assert resp.ok
        assert resp.job.title == "Feed the cat"
        assert resp.job.recurrence_start_date == date(2024, 1, 1)

    def test_create_job_from_model(self, service):
        resp = service.create_job(JobInput(title="Dust"))
        assert resp.ok
        assert resp.job.recurrence is None

    def test_malformed_recurrence_rejected(self, service):
        resp = service.create_job({**DAILY_JOB, "recurrence": "FREQ=MONTHLY"})
        assert isinstance(resp, ErrorResponse)
        assert resp.kind is ResponseKind.ERROR
        assert "recurrence" in resp.message
        assert service.list_jobs() == []

    def test_recurring_job_without_start_rejected(self, service):
        resp = service.create_job({"title": "Mop", "recurrence": "FREQ=DAILY"})
        assert not resp.ok
        assert "start date" in resp.message

    def test_update_job(self, service, daily_job):
        job, _, _ = daily_job
        resp = service.update_job(job.id, {**DAILY_JOB, "title": "Feed both cats"})
        assert resp.ok
        assert service.get_job(job.id).title == "Feed both cats"

    def test_update_missing_job(self, service):
        resp = service.update_job(999, DAILY_JOB)
        assert resp.kind is ResponseKind.NOT_FOUND

    def test_update_rejects_invalid_input(self, service, daily_job):
        job, _, _ = daily_job
        resp = service.update_job(job.id, {**DAILY_JOB, "title": "   "})
        assert resp.kind is ResponseKind.ERROR
        assert service.get_job(job.id).title == "Feed the cat"

    def test_delete_job(self, service, daily_job):
        job, _, _ = daily_job
        assert service.delete_job(job.id).ok
        assert service.get_job(job.id) is None
        assert service.delete_job(job.id).kind is ResponseKind.NOT_FOUND


class TestAssignments:
    def test_add_assignment(self, service, daily_job):
        job, a, b = daily_job
        assert (a.user_id, a.display_order) == (1, 0)
        assert (b.user_id, b.display_order) == (2, 1)

    def test_duplicate_user_rejected(self, service, daily_job):
        job, _, _ = daily_job
        resp = service.add_assignment(job.id, {"user_id": 1})
        assert resp.kind is ResponseKind.ERROR
        assert "already assigned" in resp.message

    def test_add_to_missing_job(self, service):
        assert service.add_assignment(999, {"user_id": 1}).kind is ResponseKind.NOT_FOUND

    def test_update_assignment_recurrence(self, service, daily_job):
        job, a, _ = daily_job
        resp = service.update_assignment(job.id, a.id, {
            "user_id": 1,
            "recurrence": "FREQ=WEEKLY;BYDAY=SA",
            "recurrence_start_date": "2024-01-01",
            "recurrence_indefinite": True,
        })
        assert resp.ok
        assert resp.assignment.recurrence == "FREQ=WEEKLY;BYDAY=SA"

    def test_assignment_of_other_job_is_not_found(self, service, daily_job):
        _, a, _ = daily_job
        other = service.create_job({"title": "Other"}).job
        assert service.update_assignment(other.id, a.id, {"user_id": 1}).kind is ResponseKind.NOT_FOUND
        assert service.delete_assignment(other.id, a.id).kind is ResponseKind.NOT_FOUND

    def test_delete_assignment(self, service, daily_job):
        job, a, b = daily_job
        assert service.delete_assignment(job.id, a.id).ok
        assert [x.id for x in service.get_job(job.id).assignments] == [b.id]

    def test_reorder(self, service, daily_job):
        job, a, b = daily_job
        resp = service.reorder_assignments(job.id, [b.id, a.id])
        assert [x.id for x in resp.job.assignments] == [b.id, a.id]

    def test_reorder_missing_job(self, service):
        assert service.reorder_assignments(999, []).kind is ResponseKind.NOT_FOUND


class TestBoard:
    def test_jobs_for_date_string(self, service, daily_job):
        job, a, b = daily_job
        items = service.jobs_for_date("2024-01-05")
        assert [i.assignment.id for i in items] == [a.id, b.id]

    def test_jobs_for_bad_date_raises(self, service):
        with pytest.raises(InvalidDateError):
            service.jobs_for_date("5 Jan")

    def test_board_rows_after_complete(self, service, daily_job):
        job, a, b = daily_job
        service.complete(job.id, a.id, "2024-01-05")
        rows = service.board_rows(DAY)
        assert [(r.assignment_id, r.is_completed) for r in rows] == [(a.id, True), (b.id, False)]


class TestCompletion:
    def test_complete_attributes_assignee(self, service, daily_job):
        job, a, _ = daily_job
        resp = service.complete(job.id, a.id, DAY)
        assert isinstance(resp, CompletionResponse)
        assert resp.changed is True
        assert resp.record.completed_by_user_id == a.user_id
        assert resp.record.assignment_id == a.id

    def test_explicit_completed_by(self, service, daily_job):
        job, a, _ = daily_job
        resp = service.complete(job.id, a.id, DAY, completed_by=42)
        assert resp.record.completed_by_user_id == 42

    def test_complete_twice_is_not_an_error(self, service, daily_job):
        job, a, _ = daily_job
        first = service.complete(job.id, a.id, DAY)
        second = service.complete(job.id, a.id, DAY)
        assert second.ok
        assert second.changed is False
        assert second.record == first.record

    def test_uncomplete(self, service, daily_job):
        job, a, _ = daily_job
        service.complete(job.id, a.id, DAY)
        resp = service.uncomplete(job.id, a.id, DAY)
        assert resp.ok and resp.changed is True
        again = service.uncomplete(job.id, a.id, DAY)
        assert again.ok and again.changed is False

    def test_shared_mode_completes_for_everyone(self, service):
        job = service.create_job({**DAILY_JOB, "completion_mode": "shared"}).job
        a = service.add_assignment(job.id, {"user_id": 1}).assignment
        service.add_assignment(job.id, {"user_id": 2})
        resp = service.complete(job.id, a.id, DAY)
        assert resp.record.assignment_id is None
        assert all(i.is_completed for i in service.jobs_for_date(DAY))

    def test_job_level_completion(self, service):
        job = service.create_job(DAILY_JOB).job
        resp = service.complete(job.id, None, DAY)
        assert resp.ok
        assert resp.record.assignment_id is None
        assert resp.record.completed_by_user_id is None

    def test_unknown_job(self, service):
        assert service.complete(999, None, DAY).kind is ResponseKind.NOT_FOUND

    def test_unknown_assignment(self, service, daily_job):
        job, _, _ = daily_job
        assert service.complete(job.id, 999, DAY).kind is ResponseKind.NOT_FOUND
        assert service.uncomplete(job.id, 999, DAY).kind is ResponseKind.NOT_FOUND

    def test_bad_date(self, service, daily_job):
        job, a, _ = daily_job
        resp = service.complete(job.id, a.id, "2024/01/05")
        assert resp.kind is ResponseKind.ERROR
        assert "YYYY-MM-DD" in resp.message

    def test_past_completion_survives_assignment_delete(self, service, daily_job, completion_db):
        job, a, _ = daily_job
        service.complete(job.id, a.id, DAY)
        service.delete_assignment(job.id, a.id)
        records = completion_db.list_for_job(job.id)
        assert [(r.occurrence_date, r.assignment_id) for r in records] == [(DAY, None)]

    def test_assignment_removed_between_lookup_and_insert(self, service, job_db, completion_db,
                                                          daily_job, monkeypatch):
        job, a, _ = daily_job
        stale = job_db.get_job(job.id)
        job_db.delete_assignment(a.id)
        monkeypatch.setattr(job_db, "get_job", lambda job_id: stale)

        resp = service.complete(job.id, a.id, DAY)
        assert resp.kind is ResponseKind.NOT_FOUND
        assert completion_db.list_for_job(job.id) == []
