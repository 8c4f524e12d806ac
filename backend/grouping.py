"""Calendar-day helpers: local days, day buckets and the two display orderings."""
import datetime as dt
from collections.abc import Iterable
from zoneinfo import ZoneInfo

from config import settings


def local_tz() -> dt.tzinfo | None:
    """Configured zone, or None for the server's own local time."""
    return ZoneInfo(settings.timezone) if settings.timezone else None


def local_day(value: dt.date | dt.datetime | str) -> dt.date:
    """Calendar day of a date, an instant or an ISO-8601 string, in local time.

    Naive datetimes are taken to already be local.
    """
    if isinstance(value, str):
        value = dt.datetime.fromisoformat(value.strip())
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(local_tz())
        return value.date()
    return value


def local_today() -> dt.date:
    return dt.datetime.now(local_tz()).date()


def _created_key(record) -> dt.datetime:
    # SQLite hands timestamps back naive; compare everything naive
    created = record.created_at
    return created.replace(tzinfo=None) if created.tzinfo else created


def sort_for_display(records: Iterable) -> list:
    """Newest first, as listed on screen."""
    return sorted(records, key=lambda r: (r.date, _created_key(r)), reverse=True)


def sort_for_summary(records: Iterable) -> list:
    """Oldest first, as written into a copied status report."""
    return sorted(records, key=_created_key)


def window(today: dt.date, days: int = 7) -> list[dt.date]:
    return [today - dt.timedelta(days=offset) for offset in range(days)]


def bucket_by_day(records: Iterable, today: dt.date, days: int = 7) -> dict[dt.date, list]:
    """Group records into the last ``days`` calendar days, today first.

    Every day in the window gets a key, empty or not; older records are dropped.
    """
    buckets: dict[dt.date, list] = {day: [] for day in window(today, days)}
    for record in records:
        if record.date in buckets:
            buckets[record.date].append(record)
    return {day: sort_for_display(items) for day, items in buckets.items()}


def bucket_sections(records: Iterable, today: dt.date) -> dict[str, list]:
    """Today / yesterday / the rest of the past week (from today-7 up to yesterday)."""
    yesterday = today - dt.timedelta(days=1)
    week_floor = today - dt.timedelta(days=7)

    sections: dict[str, list] = {"today": [], "yesterday": [], "this_week": []}
    for record in records:
        if record.date == today:
            sections["today"].append(record)
        elif record.date == yesterday:
            sections["yesterday"].append(record)
        elif week_floor <= record.date < yesterday:
            sections["this_week"].append(record)
    return {name: sort_for_display(items) for name, items in sections.items()}


def day_label(day: dt.date, today: dt.date) -> str:
    if day == today:
        return "Today"
    if day == today - dt.timedelta(days=1):
        return "Yesterday"
    return f"{day:%A, %B} {day.day}, {day.year}"
