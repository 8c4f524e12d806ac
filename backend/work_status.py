"""Work status records, always scoped to the acting user.

Every operation returns a plain dict instead of raising:

    {"success": True, "data": ...}
    {"success": False, "error": "...", "kind": "...", "fields": {...}}

``kind`` is one of validation, not_found, duplicate or unexpected. Missing rows
and rows owned by someone else give the same not_found answer.

Ticket numbers are unique per user, except that "move to today" copies a row
into a new one with the same ticket number. The copies form a lineage keyed by
``origin_id`` (the id of the row that was first created), and the duplicate
rule only compares different lineages.
"""
import datetime as dt
import logging
from collections.abc import Iterable, Mapping

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from config import settings
from duration import format_effort, format_minutes, parse_effort
from grouping import bucket_by_day, bucket_sections, day_label, local_today
from models import EFFORT_FIELDS, WorkStatus, utcnow
from schemas import (
    DayBucketResponse,
    SectionsResponse,
    WorkStatusForm,
    WorkStatusResponse,
)
from users import UserContext

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "User not authenticated"
NOT_FOUND = "Work status not found"
NOT_FOUND_OR_DENIED = "Work status not found or access denied"
DUPLICATE_TICKET = "Another work status with this ticket number already exists"


def _success(data=None) -> dict:
    return {"success": True, "data": data}


def _failure(kind: str, error: str, fields: dict | None = None) -> dict:
    result = {"success": False, "error": error, "kind": kind}
    if fields:
        result["fields"] = fields
    return result


def _duplicate() -> dict:
    return _failure("duplicate", DUPLICATE_TICKET, {"ticket_number": DUPLICATE_TICKET})


def to_response(record: WorkStatus) -> WorkStatusResponse:
    """Attach the formatted effort strings the screens display."""
    formatted = {
        f"{name}_formatted": format_effort(record.get_effort(name)) for name in EFFORT_FIELDS
    }
    return WorkStatusResponse(**record.model_dump(), **formatted)


def _validate_form(form: WorkStatusForm | Mapping) -> tuple[WorkStatusForm | None, dict | None]:
    try:
        return WorkStatusForm.model_validate(form), None
    except ValidationError as e:
        fields = {}
        for err in e.errors():
            name = str(err["loc"][0]) if err["loc"] else "form"
            fields.setdefault(name, err["msg"].removeprefix("Value error, "))
        return None, _failure("validation", next(iter(fields.values())), fields)


def _form_values(form: WorkStatusForm) -> dict:
    values = {
        "date": form.date,
        "ticket_number": form.ticket_number,
        "title": form.title,
        "status": form.status,
    }
    for name in EFFORT_FIELDS:
        effort = parse_effort(getattr(form, name))
        values[f"{name}_days"] = effort.days
        values[f"{name}_hours"] = effort.hours
        values[f"{name}_minutes"] = effort.minutes
    return values


def _owned(session: Session, user: UserContext, record_id: int) -> WorkStatus | None:
    return session.exec(
        select(WorkStatus)
        .where(WorkStatus.id == record_id)
        .where(WorkStatus.user_id == user.id)
    ).first()


def _conflicting(
    session: Session, user_id: int, ticket_number: str, lineage_id: int | None = None
) -> WorkStatus | None:
    """First row of ``user_id`` with ``ticket_number`` outside the given lineage."""
    stmt = (
        select(WorkStatus)
        .where(WorkStatus.user_id == user_id)
        .where(WorkStatus.ticket_number == ticket_number)
    )
    if lineage_id is not None:
        stmt = stmt.where(func.coalesce(WorkStatus.origin_id, WorkStatus.id) != lineage_id)
    return session.exec(stmt).first()


def create_work_status(session: Session, user: UserContext | None, form: WorkStatusForm | Mapping) -> dict:
    if user is None:
        return _failure("validation", NOT_AUTHENTICATED)
    data, failure = _validate_form(form)
    if failure:
        return failure

    try:
        # Check and insert share one transaction; the partial unique index catches races
        if _conflicting(session, user.id, data.ticket_number):
            return _duplicate()

        record = WorkStatus(user_id=user.id, **_form_values(data))
        session.add(record)
        session.commit()
        session.refresh(record)

        logger.info(f"Created work status {record.id} ({record.ticket_number}) for user {user.id}")
        return _success(to_response(record))
    except IntegrityError:
        session.rollback()
        logger.info(f"Duplicate ticket {data.ticket_number} rejected on insert for user {user.id}")
        return _duplicate()
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating work status: {str(e)}")
        return _failure("unexpected", "Failed to create work status")


def update_work_status(
    session: Session, user: UserContext, record_id: int, form: WorkStatusForm | Mapping
) -> dict:
    data, failure = _validate_form(form)
    if failure:
        return failure

    try:
        record = _owned(session, user, record_id)
        if not record:
            return _failure("not_found", NOT_FOUND_OR_DENIED)

        if _conflicting(session, user.id, data.ticket_number, record.lineage_id):
            return _duplicate()

        for key, value in _form_values(data).items():
            setattr(record, key, value)
        record.updated_at = utcnow()
        session.add(record)
        session.commit()
        session.refresh(record)

        logger.info(f"Updated work status {record.id} for user {user.id}")
        return _success(to_response(record))
    except IntegrityError:
        session.rollback()
        return _duplicate()
    except Exception as e:
        session.rollback()
        logger.error(f"Error updating work status {record_id}: {str(e)}")
        return _failure("unexpected", "Failed to update work status")


def delete_work_status(session: Session, user: UserContext, record_id: int) -> dict:
    try:
        record = _owned(session, user, record_id)
        if not record:
            return _failure("not_found", NOT_FOUND_OR_DENIED)

        session.delete(record)
        session.commit()

        logger.info(f"Deleted work status {record_id} for user {user.id}")
        return _success()
    except Exception as e:
        session.rollback()
        logger.error(f"Error deleting work status {record_id}: {str(e)}")
        return _failure("unexpected", "Failed to delete work status")


def duplicate_work_status_for_today(
    session: Session, user: UserContext, record_id: int, today: dt.date | None = None
) -> dict:
    """Carry a ticket forward: same ticket and totals, fresh status and no effort today."""
    try:
        source = _owned(session, user, record_id)
        if not source:
            return _failure("not_found", NOT_FOUND_OR_DENIED)

        record = WorkStatus(
            user_id=source.user_id,
            ticket_number=source.ticket_number,
            title=source.title,
            status=settings.default_status,
            date=today or local_today(),
            origin_id=source.lineage_id,
        )
        record.set_effort("total_effort", source.get_effort("total_effort"))
        record.set_effort("estimated_effort", source.get_effort("estimated_effort"))
        session.add(record)
        session.commit()
        session.refresh(record)

        logger.info(f"Moved work status {record_id} ({record.ticket_number}) to {record.date} as {record.id}")
        return _success(to_response(record))
    except Exception as e:
        session.rollback()
        logger.error(f"Error duplicating work status {record_id} for today: {str(e)}")
        return _failure("unexpected", "Failed to duplicate work status")


def move_work_statuses_to_today(
    session: Session, user: UserContext, record_ids: Iterable[int], today: dt.date | None = None
) -> dict:
    """Move several entries to today one by one.

    Entries already dated today are skipped. A failure does not stop the rest
    and earlier moves are kept.
    """
    today = today or local_today()
    moved, failed, skipped = 0, 0, 0
    entries = []

    for record_id in record_ids:
        found = get_work_status_by_id(session, user, record_id)
        if not found["success"]:
            failed += 1
            continue
        if found["data"].date == today:
            skipped += 1
            continue

        result = duplicate_work_status_for_today(session, user, record_id, today=today)
        if result["success"]:
            moved += 1
            entries.append(result["data"])
        else:
            failed += 1

    if failed:
        message = f"Moved {moved} items to today, {failed} failed"
    else:
        message = f"Successfully moved {moved} items to today"
    logger.info(f"Bulk move for user {user.id}: {message} ({skipped} already today)")

    return _success(
        {
            "ok": failed == 0,
            "moved": moved,
            "failed": failed,
            "skipped": skipped,
            "message": message,
            "entries": entries,
        }
    )


def _query_records(
    session: Session, user: UserContext, date_from: dt.date | None = None, date_to: dt.date | None = None
) -> list[WorkStatus]:
    stmt = select(WorkStatus).where(WorkStatus.user_id == user.id)
    if date_from:
        stmt = stmt.where(WorkStatus.date >= date_from)
    if date_to:
        stmt = stmt.where(WorkStatus.date <= date_to)
    stmt = stmt.order_by(WorkStatus.date.desc(), WorkStatus.created_at.desc())
    return list(session.exec(stmt).all())


def list_work_statuses(
    session: Session,
    user: UserContext | None,
    date_from: dt.date | None = None,
    date_to: dt.date | None = None,
) -> dict:
    """All of the user's entries, newest day first, with formatted efforts."""
    if user is None:
        return _failure("validation", NOT_AUTHENTICATED)
    try:
        records = _query_records(session, user, date_from, date_to)
        return _success([to_response(record) for record in records])
    except Exception as e:
        logger.error(f"Error fetching work statuses: {str(e)}")
        return _failure("unexpected", "Failed to fetch work statuses")


def list_recent_days(session: Session, user: UserContext, days: int = 7, today: dt.date | None = None) -> dict:
    """One bucket per calendar day for the last ``days`` days, empty days included.

    Each bucket carries its summed effort and its item, Done and In Progress counts.
    """
    today = today or local_today()
    try:
        records = _query_records(session, user, today - dt.timedelta(days=days - 1), today)
        buckets = []
        for day, items in bucket_by_day(records, today, days).items():
            total = sum(r.get_effort("effort_today").to_minutes(settings.hours_per_day) for r in items)
            buckets.append(
                DayBucketResponse(
                    date=day,
                    label=day_label(day, today),
                    total_effort_today=format_minutes(total, settings.hours_per_day),
                    item_count=len(items),
                    done_count=sum(1 for r in items if r.status == "Done"),
                    in_progress_count=sum(1 for r in items if r.status == "In Progress"),
                    entries=[to_response(r) for r in items],
                )
            )
        return _success(buckets)
    except Exception as e:
        logger.error(f"Error fetching recent work statuses: {str(e)}")
        return _failure("unexpected", "Failed to fetch work status data")


def list_sections(session: Session, user: UserContext, today: dt.date | None = None) -> dict:
    today = today or local_today()
    try:
        records = _query_records(session, user, today - dt.timedelta(days=7), today)
        sections = bucket_sections(records, today)
        return _success(
            SectionsResponse(**{name: [to_response(r) for r in items] for name, items in sections.items()})
        )
    except Exception as e:
        logger.error(f"Error fetching work status sections: {str(e)}")
        return _failure("unexpected", "Failed to fetch work status data")


def get_work_status_by_id(session: Session, user: UserContext, record_id: int) -> dict:
    try:
        record = _owned(session, user, record_id)
        if not record:
            return _failure("not_found", NOT_FOUND)
        return _success(to_response(record))
    except Exception as e:
        logger.error(f"Error fetching work status {record_id}: {str(e)}")
        return _failure("unexpected", "Failed to fetch work status")


def get_work_status_by_ticket_number(session: Session, user: UserContext, ticket_number: str) -> dict:
    """Latest entry for a ticket; a moved ticket has one per day it was carried to."""
    try:
        record = session.exec(
            select(WorkStatus)
            .where(WorkStatus.user_id == user.id)
            .where(WorkStatus.ticket_number == ticket_number.strip())
            .order_by(WorkStatus.date.desc(), WorkStatus.created_at.desc())
        ).first()
        if not record:
            return _failure("not_found", NOT_FOUND)
        return _success(to_response(record))
    except Exception as e:
        logger.error(f"Error fetching work status {ticket_number}: {str(e)}")
        return _failure("unexpected", "Failed to fetch work status")


def check_duplicate_ticket_number(
    session: Session, user: UserContext, ticket_number: str, exclude_id: int | None = None
) -> dict:
    """Whether the ticket number is taken; ``exclude_id`` names the entry being edited."""
    try:
        lineage_id = None
        if exclude_id is not None:
            own = _owned(session, user, exclude_id)
            lineage_id = own.lineage_id if own else None

        if lineage_id is not None:
            existing = _conflicting(session, user.id, ticket_number.strip(), lineage_id)
        else:
            stmt = (
                select(WorkStatus)
                .where(WorkStatus.user_id == user.id)
                .where(WorkStatus.ticket_number == ticket_number.strip())
            )
            if exclude_id is not None:
                stmt = stmt.where(WorkStatus.id != exclude_id)
            existing = session.exec(stmt).first()

        return _success(existing is not None)
    except Exception as e:
        logger.error(f"Error checking duplicate ticket: {str(e)}")
        return _failure("unexpected", "Failed to check duplicate ticket")
