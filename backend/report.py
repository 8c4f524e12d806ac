"""Copy-ready daily work status report."""
import datetime as dt
import logging
from collections.abc import Iterable

from sqlmodel import Session

from grouping import local_today, sort_for_summary
from schemas import StatusReportResponse
from users import UserContext
from work_status import list_work_statuses

logger = logging.getLogger(__name__)


def format_report_date(day: dt.date) -> str:
    """Short British date used in the report header, e.g. 07/11/25."""
    return day.strftime("%d/%m/%y")


def render_status_report(entries: Iterable, day: dt.date) -> str:
    """
    Render a day's entries as plain text ready to paste into chat.

    Entries appear in the order they were created. Each entry must carry the
    formatted effort strings (see work_status.to_response).
    """
    ordered = sort_for_summary(entries)
    if not ordered:
        return ""

    blocks = [f"{format_report_date(day)} – Work status"]
    for entry in ordered:
        blocks.append(
            "\n".join(
                [
                    f"#{entry.ticket_number} - {entry.title}",
                    f"Status: {entry.status}",
                    f"Effort Today: {entry.effort_today_formatted}",
                    f"Total Effort: {entry.total_effort_formatted}",
                    f"Estimated Effort: {entry.estimated_effort_formatted}",
                ]
            )
        )
    return "\n\n".join(blocks)


def build_status_report(session: Session, user: UserContext, day: dt.date | None = None) -> dict:
    """
    Build the report for one of the user's days (today by default).

    Returns the same success/error dict as the work status operations.
    """
    day = day or local_today()
    result = list_work_statuses(session, user, date_from=day, date_to=day)
    if not result["success"]:
        return result

    text = render_status_report(result["data"], day)
    logger.info(f"Built status report for user {user.id} on {day} ({len(result['data'])} entries)")
    return {"success": True, "data": StatusReportResponse(date=day, text=text)}
