"""
Chore Ledger — Edit-time input schemas.

Shared contract for the admin layer: a job or assignment write is validated
here before anything is persisted, so due-date evaluation only ever sees
descriptors that parse.

JSON example (job):
{
    "title": "Take out trash",
    "recurrence": "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,TH,SU",
    "recurrence_start_date": "2024-01-01",
    "recurrence_indefinite": true,
    "use_shared_recurrence": true
}
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from choreledger.core.pattern import NOT_RECURRING, MalformedPattern, parse_pattern
from choreledger.data.models import CompletionMode


class RecurrenceInput(BaseModel):
    """Recurrence fields shared by jobs and assignments."""

    recurrence: str | None = None
    recurrence_start_date: date | None = None
    recurrence_end_date: date | None = None
    recurrence_indefinite: bool = False

    @field_validator("recurrence")
    @classmethod
    def normalize_recurrence(cls, v: str | None) -> str | None:
        """Reject malformed descriptors. Valid ones are stored verbatim."""
        try:
            pattern = parse_pattern(v)
        except MalformedPattern as exc:
            raise ValueError(exc.reason) from exc
        if pattern is NOT_RECURRING:
            return None
        return v.strip()

    @model_validator(mode="after")
    def check_window(self):
        if self.recurrence_indefinite:
            self.recurrence_end_date = None
        if self.recurrence is None:
            return self
        if self.recurrence_start_date is None:
            raise ValueError("a recurring item needs a start date")
        if (
            self.recurrence_end_date is not None
            and self.recurrence_end_date < self.recurrence_start_date
        ):
            raise ValueError("end date is before start date")
        return self


class JobInput(RecurrenceInput):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    image_url: str | None = None
    use_shared_recurrence: bool = True
    completion_mode: CompletionMode = CompletionMode.PER_ASSIGNMENT
    display_order: int | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class AssignmentInput(RecurrenceInput):
    user_id: int
    display_order: int | None = None


def format_validation_error(exc: ValidationError) -> str:
    """Render a pydantic ValidationError as a short message for the admin UI."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        msg = err.get("msg", "invalid value")
        msg = msg.removeprefix("Value error, ")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(messages)
