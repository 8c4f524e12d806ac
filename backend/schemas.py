import datetime as dt

from pydantic import BaseModel, field_validator
from sqlmodel import SQLModel

from config import settings
from duration import is_valid_effort
from grouping import local_day


class SignInRequest(BaseModel):
    username: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Username must be at least 2 characters long")
        if len(v) > 50:
            raise ValueError("Username must be less than 50 characters")
        return v


class UserResponse(SQLModel):
    id: int
    username: str
    created_at: dt.datetime
    updated_at: dt.datetime


class WorkStatusForm(BaseModel):
    date: dt.date  # Calendar day, or an ISO-8601 instant converted to the local day
    ticket_number: str
    title: str
    status: str
    effort_today: str = ""
    total_effort: str = ""
    estimated_effort: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        if v is None or v == "":
            raise ValueError("Date is required")
        if isinstance(v, (str, dt.datetime)):
            try:
                return local_day(v)
            except ValueError as e:
                raise ValueError("Date must be an ISO-8601 date or timestamp") from e
        return v

    @field_validator("ticket_number")
    @classmethod
    def validate_ticket_number(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Ticket number is required")
        prefix = settings.ticket_prefix
        if not v.startswith(prefix) or v == prefix:
            raise ValueError("Please complete the ticket number.")
        return v

    @field_validator("title", "status")
    @classmethod
    def validate_required_text(cls, v, info):
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return v

    @field_validator("effort_today", "total_effort", "estimated_effort", mode="before")
    @classmethod
    def validate_effort(cls, v, info):
        if v is None:
            return ""
        if not isinstance(v, str) or not is_valid_effort(v):
            label = info.field_name.replace("_", " ").capitalize()
            raise ValueError(f"{label} must be in format like '1d 2h 30m'")
        return v.strip()


class WorkStatusResponse(SQLModel):
    id: int
    user_id: int
    date: dt.date
    ticket_number: str
    title: str
    status: str
    origin_id: int | None = None
    effort_today_days: int | None = None
    effort_today_hours: int | None = None
    effort_today_minutes: int | None = None
    total_effort_days: int | None = None
    total_effort_hours: int | None = None
    total_effort_minutes: int | None = None
    estimated_effort_days: int | None = None
    estimated_effort_hours: int | None = None
    estimated_effort_minutes: int | None = None
    effort_today_formatted: str = ""
    total_effort_formatted: str = ""
    estimated_effort_formatted: str = ""
    created_at: dt.datetime
    updated_at: dt.datetime


class DuplicateCheckResponse(BaseModel):
    exists: bool


class DayBucketResponse(BaseModel):
    date: dt.date
    label: str
    total_effort_today: str
    item_count: int = 0
    done_count: int = 0
    in_progress_count: int = 0
    entries: list[WorkStatusResponse]


class SectionsResponse(BaseModel):
    today: list[WorkStatusResponse]
    yesterday: list[WorkStatusResponse]
    this_week: list[WorkStatusResponse]


class StatusReportResponse(BaseModel):
    date: dt.date
    text: str


class BulkMoveRequest(BaseModel):
    ids: list[int]


class BulkMoveResponse(BaseModel):
    ok: bool
    moved: int
    failed: int
    skipped: int
    message: str
    entries: list[WorkStatusResponse]
