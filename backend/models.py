import datetime as dt
from datetime import UTC

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel

from duration import Effort

EFFORT_FIELDS = ("effort_today", "total_effort", "estimated_effort")


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=50)  # Trimmed
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class WorkStatus(SQLModel, table=True):
    __tablename__ = "work_status"
    # Only rows made by create are unique per ticket; moved rows share it with their origin
    __table_args__ = (
        Index(
            "uniq_work_status_user_ticket_origin",
            "user_id",
            "ticket_number",
            unique=True,
            sqlite_where=text("origin_id IS NULL"),
            postgresql_where=text("origin_id IS NULL"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    ticket_number: str = Field(index=True)
    title: str
    status: str = Field(index=True)
    date: dt.date = Field(index=True)  # Local calendar day the entry is for
    origin_id: int | None = Field(default=None, index=True)  # First row of a move-to-today chain

    # NULL = unset, 0 = explicitly zero
    effort_today_days: int | None = None
    effort_today_hours: int | None = None
    effort_today_minutes: int | None = None
    total_effort_days: int | None = None
    total_effort_hours: int | None = None
    total_effort_minutes: int | None = None
    estimated_effort_days: int | None = None
    estimated_effort_hours: int | None = None
    estimated_effort_minutes: int | None = None

    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @property
    def lineage_id(self) -> int | None:
        return self.origin_id if self.origin_id is not None else self.id

    def get_effort(self, name: str) -> Effort:
        return Effort(
            days=getattr(self, f"{name}_days"),
            hours=getattr(self, f"{name}_hours"),
            minutes=getattr(self, f"{name}_minutes"),
        )

    def set_effort(self, name: str, effort: Effort) -> None:
        setattr(self, f"{name}_days", effort.days)
        setattr(self, f"{name}_hours", effort.hours)
        setattr(self, f"{name}_minutes", effort.minutes)
