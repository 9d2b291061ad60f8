"""
Chore Ledger — SQLite storage.

Jobs, their assignments and the completion ledger live in one SQLite file.
The completions table carries the unique occurrence key
(job_id, occurrence_date, assignment_id); a NULL assignment_id (shared/legacy
completion) takes part in uniqueness through an expression index.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Iterable

from choreledger.data.models import Assignment, CompletionMode, CompletionRecord, Job

logger = logging.getLogger(__name__)

# Stands in for NULL in the unique index; real ids start at 1
_SHARED_KEY = -1


class JobNotFoundError(ValueError):
    """Raised when an operation targets a job that does not exist."""


class DuplicateAssignmentError(ValueError):
    """Raised when a user is assigned to the same job twice."""


class AssignmentNotFoundError(ValueError):
    """Raised when a completion targets an assignment that no longer exists."""


def _resolve_db_path(db_path: str | None) -> str:
    if db_path is None:
        from choreledger.config import settings
        db_path = settings.DATABASE_PATH
    if db_path == ":memory:":
        # Each _connect() would open a separate, empty database
        raise ValueError("An in-memory database is not supported; use a file path")
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return db_path


def _db_timeout() -> float:
    from choreledger.config import settings
    return settings.DB_TIMEOUT_SECONDS


def _date_or_none(raw: str | None) -> date | None:
    if raw is None:
        return None
    return date.fromisoformat(raw)


def _iso_or_none(value: date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def _create_completions_table(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS job_completions (
            id                   INTEGER PRIMARY KEY AUTOINCREMENT,
            job_id               INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
            occurrence_date      TEXT    NOT NULL,
            completed_at         TEXT    NOT NULL,
            completed_by_user_id INTEGER,
            assignment_id        INTEGER
        )
    """)
    conn.execute(f"""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_job_completions_occurrence
        ON job_completions (job_id, occurrence_date, IFNULL(assignment_id, {_SHARED_KEY}))
    """)


class JobDB:
    """SQLite-backed storage for jobs and their assignments."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = _resolve_db_path(db_path)
        self._timeout = _db_timeout()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        """Create the job tables if they don't exist, and migrate schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                    title                 TEXT    NOT NULL,
                    description           TEXT,
                    image_url             TEXT,
                    created_at            TEXT    NOT NULL,
                    recurrence            TEXT,
                    recurrence_start_date TEXT,
                    recurrence_end_date   TEXT,
                    recurrence_indefinite INTEGER NOT NULL DEFAULT 0,
                    use_shared_recurrence INTEGER NOT NULL DEFAULT 1,
                    completion_mode       TEXT    NOT NULL DEFAULT 'per_assignment',
                    display_order         INTEGER NOT NULL DEFAULT 0
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(jobs)").fetchall()
            }
            if "completion_mode" not in existing_cols:
                conn.execute(
                    "ALTER TABLE jobs ADD COLUMN completion_mode TEXT NOT NULL DEFAULT 'per_assignment'"
                )
            if "display_order" not in existing_cols:
                conn.execute(
                    "ALTER TABLE jobs ADD COLUMN display_order INTEGER NOT NULL DEFAULT 0"
                )

            conn.execute("""
                CREATE TABLE IF NOT EXISTS job_assignments (
                    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id                INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
                    user_id               INTEGER NOT NULL,
                    recurrence            TEXT,
                    recurrence_start_date TEXT,
                    recurrence_end_date   TEXT,
                    recurrence_indefinite INTEGER NOT NULL DEFAULT 0,
                    display_order         INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (job_id, user_id)
                )
            """)
            _create_completions_table(conn)
        logger.debug("Job tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_assignment(row: sqlite3.Row) -> Assignment:
        return Assignment(
            id=row["id"],
            job_id=row["job_id"],
            user_id=row["user_id"],
            recurrence=row["recurrence"],
            recurrence_start_date=_date_or_none(row["recurrence_start_date"]),
            recurrence_end_date=_date_or_none(row["recurrence_end_date"]),
            recurrence_indefinite=bool(row["recurrence_indefinite"]),
            display_order=row["display_order"],
        )

    @staticmethod
    def _row_to_job(row: sqlite3.Row, assignments: list[Assignment]) -> Job:
        return Job(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            image_url=row["image_url"],
            created_at=row["created_at"],
            recurrence=row["recurrence"],
            recurrence_start_date=_date_or_none(row["recurrence_start_date"]),
            recurrence_end_date=_date_or_none(row["recurrence_end_date"]),
            recurrence_indefinite=bool(row["recurrence_indefinite"]),
            use_shared_recurrence=bool(row["use_shared_recurrence"]),
            completion_mode=CompletionMode(row["completion_mode"]),
            display_order=row["display_order"],
            assignments=assignments,
        )

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def add_job(
        self,
        title: str,
        description: str | None = None,
        image_url: str | None = None,
        recurrence: str | None = None,
        recurrence_start_date: date | None = None,
        recurrence_end_date: date | None = None,
        recurrence_indefinite: bool = False,
        use_shared_recurrence: bool = True,
        completion_mode: CompletionMode = CompletionMode.PER_ASSIGNMENT,
        display_order: int | None = None,
    ) -> Job:
        """Insert a new job. display_order defaults to the end of the list."""
        if recurrence_indefinite:
            recurrence_end_date = None
        now = datetime.now().isoformat()

        with self._connect() as conn:
            if display_order is None:
                display_order = conn.execute(
                    "SELECT COALESCE(MAX(display_order), -1) + 1 FROM jobs"
                ).fetchone()[0]
            cursor = conn.execute(
                """
                INSERT INTO jobs
                    (title, description, image_url, created_at, recurrence,
                     recurrence_start_date, recurrence_end_date, recurrence_indefinite,
                     use_shared_recurrence, completion_mode, display_order)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title, description, image_url, now, recurrence,
                    _iso_or_none(recurrence_start_date), _iso_or_none(recurrence_end_date),
                    int(recurrence_indefinite), int(use_shared_recurrence),
                    completion_mode.value, display_order,
                ),
            )
            job_id = cursor.lastrowid

        logger.info("Job added: #%d '%s' (%s)", job_id, title, recurrence or "one-time")
        return self.get_job(job_id)

    def get_job(self, job_id: int) -> Job | None:
        """Fetch a single job with its assignments."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
            if row is None:
                return None
            assignment_rows = conn.execute(
                "SELECT * FROM job_assignments WHERE job_id = ? ORDER BY display_order, id",
                (job_id,),
            ).fetchall()
        return self._row_to_job(row, [self._row_to_assignment(r) for r in assignment_rows])

    def list_jobs(self) -> list[Job]:
        """List all jobs with their assignments, in display order."""
        with self._connect() as conn:
            job_rows = conn.execute(
                "SELECT * FROM jobs ORDER BY display_order, id"
            ).fetchall()
            assignment_rows = conn.execute(
                "SELECT * FROM job_assignments ORDER BY display_order, id"
            ).fetchall()

        by_job: dict[int, list[Assignment]] = {}
        for r in assignment_rows:
            by_job.setdefault(r["job_id"], []).append(self._row_to_assignment(r))
        return [self._row_to_job(r, by_job.get(r["id"], [])) for r in job_rows]

    def update_job(
        self,
        job_id: int,
        title: str,
        description: str | None = None,
        image_url: str | None = None,
        recurrence: str | None = None,
        recurrence_start_date: date | None = None,
        recurrence_end_date: date | None = None,
        recurrence_indefinite: bool = False,
        use_shared_recurrence: bool = True,
        completion_mode: CompletionMode = CompletionMode.PER_ASSIGNMENT,
        display_order: int | None = None,
    ) -> Job | None:
        """Replace a job's fields. Assignment recurrence fields are left untouched."""
        if recurrence_indefinite:
            recurrence_end_date = None

        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs SET
                    title = ?, description = ?, image_url = ?, recurrence = ?,
                    recurrence_start_date = ?, recurrence_end_date = ?,
                    recurrence_indefinite = ?, use_shared_recurrence = ?,
                    completion_mode = ?, display_order = COALESCE(?, display_order)
                WHERE id = ?
                """,
                (
                    title, description, image_url, recurrence,
                    _iso_or_none(recurrence_start_date), _iso_or_none(recurrence_end_date),
                    int(recurrence_indefinite), int(use_shared_recurrence),
                    completion_mode.value, display_order, job_id,
                ),
            )
        if cursor.rowcount == 0:
            return None
        logger.info("Job #%d updated", job_id)
        return self.get_job(job_id)

    def delete_job(self, job_id: int) -> bool:
        """Delete a job together with its assignments and completions."""
        with self._connect() as conn:
            conn.execute("DELETE FROM job_completions WHERE job_id = ?", (job_id,))
            conn.execute("DELETE FROM job_assignments WHERE job_id = ?", (job_id,))
            cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Job #%d deleted", job_id)
        return deleted

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def add_assignment(
        self,
        job_id: int,
        user_id: int,
        recurrence: str | None = None,
        recurrence_start_date: date | None = None,
        recurrence_end_date: date | None = None,
        recurrence_indefinite: bool = False,
    ) -> Assignment:
        """Assign a user to a job, appended after the existing assignments."""
        if recurrence_indefinite:
            recurrence_end_date = None

        with self._connect() as conn:
            if conn.execute("SELECT 1 FROM jobs WHERE id = ?", (job_id,)).fetchone() is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            display_order = conn.execute(
                "SELECT COALESCE(MAX(display_order), -1) + 1 FROM job_assignments WHERE job_id = ?",
                (job_id,),
            ).fetchone()[0]
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO job_assignments
                        (job_id, user_id, recurrence, recurrence_start_date,
                         recurrence_end_date, recurrence_indefinite, display_order)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job_id, user_id, recurrence,
                        _iso_or_none(recurrence_start_date), _iso_or_none(recurrence_end_date),
                        int(recurrence_indefinite), display_order,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAssignmentError(
                    f"User {user_id} is already assigned to job {job_id}"
                ) from exc
            assignment_id = cursor.lastrowid

        assignment = Assignment(
            id=assignment_id,
            job_id=job_id,
            user_id=user_id,
            recurrence=recurrence,
            recurrence_start_date=_date_or_none(_iso_or_none(recurrence_start_date)),
            recurrence_end_date=_date_or_none(_iso_or_none(recurrence_end_date)),
            recurrence_indefinite=recurrence_indefinite,
            display_order=display_order,
        )
        logger.info("Assignment #%d added: user %d on job #%d", assignment_id, user_id, job_id)
        return assignment

    def get_assignment(self, assignment_id: int) -> Assignment | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM job_assignments WHERE id = ?", (assignment_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_assignment(row)

    def update_assignment(
        self,
        assignment_id: int,
        user_id: int,
        recurrence: str | None = None,
        recurrence_start_date: date | None = None,
        recurrence_end_date: date | None = None,
        recurrence_indefinite: bool = False,
        display_order: int | None = None,
    ) -> Assignment | None:
        """Replace an assignment's user and recurrence fields."""
        if recurrence_indefinite:
            recurrence_end_date = None

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE job_assignments SET
                        user_id = ?, recurrence = ?, recurrence_start_date = ?,
                        recurrence_end_date = ?, recurrence_indefinite = ?,
                        display_order = COALESCE(?, display_order)
                    WHERE id = ?
                    """,
                    (
                        user_id, recurrence,
                        _iso_or_none(recurrence_start_date), _iso_or_none(recurrence_end_date),
                        int(recurrence_indefinite), display_order, assignment_id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateAssignmentError(
                    f"User {user_id} is already assigned to this job"
                ) from exc
        if cursor.rowcount == 0:
            return None
        logger.info("Assignment #%d updated", assignment_id)
        return self.get_assignment(assignment_id)

    def delete_assignment(self, assignment_id: int) -> bool:
        """Delete an assignment, keeping its completions as shared records.

        A completion that would collide with an existing shared record for
        the same job and date is dropped; the shared record already covers it.
        """
        with self._connect() as conn:
            conn.execute(
                "UPDATE OR IGNORE job_completions SET assignment_id = NULL WHERE assignment_id = ?",
                (assignment_id,),
            )
            dropped = conn.execute(
                "DELETE FROM job_completions WHERE assignment_id = ?", (assignment_id,),
            ).rowcount
            cursor = conn.execute(
                "DELETE FROM job_assignments WHERE id = ?", (assignment_id,),
            )
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(
                "Assignment #%d deleted (%d colliding completion(s) dropped)",
                assignment_id, dropped,
            )
        return deleted

    def reorder_assignments(self, job_id: int, assignment_ids: list[int]) -> None:
        """Set display_order 0..n-1 following the given ids; unknown ids are ignored."""
        with self._connect() as conn:
            for position, assignment_id in enumerate(assignment_ids):
                conn.execute(
                    "UPDATE job_assignments SET display_order = ? WHERE id = ? AND job_id = ?",
                    (position, assignment_id, job_id),
                )
        logger.info("Assignment order updated for job #%d", job_id)


class CompletionDB:
    """SQLite-backed completion store for the ledger.

    Implements the CompletionStore port with conditional writes only:
    INSERT OR IGNORE against the unique occurrence index (guarded by the
    assignment still existing), and a DELETE that reports whether a row
    existed. Per-assignment inserts need the job_assignments table that
    JobDB creates in the same file.
    """

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = _resolve_db_path(db_path)
        self._timeout = _db_timeout()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            _create_completions_table(conn)
        logger.debug("Completions table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CompletionRecord:
        return CompletionRecord(
            id=row["id"],
            job_id=row["job_id"],
            occurrence_date=date.fromisoformat(row["occurrence_date"]),
            completed_at=datetime.fromisoformat(row["completed_at"]),
            completed_by_user_id=row["completed_by_user_id"],
            assignment_id=row["assignment_id"],
        )

    @staticmethod
    def _select_one(
        conn: sqlite3.Connection, job_id: int, occurrence_date: str, assignment_id: int | None,
    ) -> sqlite3.Row | None:
        return conn.execute(
            """
            SELECT * FROM job_completions
            WHERE job_id = ? AND occurrence_date = ? AND assignment_id IS ?
            """,
            (job_id, occurrence_date, assignment_id),
        ).fetchone()

    def insert_if_absent(
        self,
        job_id: int,
        occurrence_date: date,
        assignment_id: int | None,
        completed_at: datetime,
        completed_by_user_id: int | None,
    ) -> tuple[CompletionRecord, bool]:
        """Insert a completion unless one exists; return (record, created).

        A per-assignment insert only happens while the assignment still
        belongs to the job, checked in the same statement.

        Raises:
            AssignmentNotFoundError: assignment_id names no assignment of the job.
        """
        day = _iso_or_none(occurrence_date)
        values = (job_id, day, completed_at.isoformat(), completed_by_user_id, assignment_id)
        with self._connect() as conn:
            if assignment_id is None:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO job_completions
                        (job_id, occurrence_date, completed_at, completed_by_user_id, assignment_id)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    values,
                )
            else:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO job_completions
                        (job_id, occurrence_date, completed_at, completed_by_user_id, assignment_id)
                    SELECT ?, ?, ?, ?, ?
                    WHERE EXISTS (
                        SELECT 1 FROM job_assignments WHERE id = ? AND job_id = ?
                    )
                    """,
                    (*values, assignment_id, job_id),
                )
            created = cursor.rowcount == 1
            # Same transaction as the insert, so the row cannot vanish in between
            row = self._select_one(conn, job_id, day, assignment_id)
        if row is None:
            raise AssignmentNotFoundError(
                f"Assignment {assignment_id} not found for job {job_id}"
            )
        return self._row_to_record(row), created

    def delete_if_present(
        self, job_id: int, occurrence_date: date, assignment_id: int | None,
    ) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                DELETE FROM job_completions
                WHERE job_id = ? AND occurrence_date = ? AND assignment_id IS ?
                """,
                (job_id, _iso_or_none(occurrence_date), assignment_id),
            )
        return cursor.rowcount > 0

    def find(
        self, job_id: int, occurrence_date: date, assignment_id: int | None,
    ) -> CompletionRecord | None:
        with self._connect() as conn:
            row = self._select_one(conn, job_id, _iso_or_none(occurrence_date), assignment_id)
        if row is None:
            return None
        return self._row_to_record(row)

    def list_for_date(
        self, job_ids: Iterable[int], occurrence_date: date,
    ) -> list[CompletionRecord]:
        ids = list(job_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM job_completions
                WHERE occurrence_date = ? AND job_id IN ({placeholders})
                ORDER BY job_id, id
                """,
                [_iso_or_none(occurrence_date), *ids],
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def list_for_job(self, job_id: int) -> list[CompletionRecord]:
        """All completions of a job, oldest occurrence first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM job_completions WHERE job_id = ? ORDER BY occurrence_date, id",
                (job_id,),
            ).fetchall()
        return [self._row_to_record(r) for r in rows]


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    jobs = JobDB(db_path="data/test_chores.db")
    job = jobs.add_job(
        "Take out trash",
        recurrence="FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,TH",
        recurrence_start_date=date.today(),
        recurrence_indefinite=True,
    )
    print(f"Added: {job}")

    assignment = jobs.add_assignment(job.id, user_id=1)
    print(f"Assigned: {assignment}")

    completions = CompletionDB(db_path="data/test_chores.db")
    record, created = completions.insert_if_absent(
        job.id, date.today(), assignment.id, datetime.now(), 1,
    )
    print(f"\nCompleted: {record} (created={created})")
    print(f"Completions today: {completions.list_for_date([job.id], date.today())}")

    jobs.delete_job(job.id)
    print(f"After delete: {jobs.list_jobs()}")
