import datetime as dt

import pytest

import work_status
from grouping import local_today
from models import WorkStatus
from schemas import WorkStatusForm
from work_status import (
    DUPLICATE_TICKET,
    NOT_FOUND,
    NOT_FOUND_OR_DENIED,
    check_duplicate_ticket_number,
    create_work_status,
    delete_work_status,
    duplicate_work_status_for_today,
    get_work_status_by_id,
    get_work_status_by_ticket_number,
    list_recent_days,
    list_sections,
    list_work_statuses,
    move_work_statuses_to_today,
    update_work_status,
)

TODAY = dt.date(2024, 1, 17)


def form(**overrides):
    data = {
        "date": "2024-01-17",
        "ticket_number": "DCV2-100",
        "title": "Fix login redirect",
        "status": "In Progress",
        "effort_today": "2h",
        "total_effort": "1d 2h",
        "estimated_effort": "3d",
    }
    data.update(overrides)
    return data


def create(session, user, **overrides):
    result = create_work_status(session, user, form(**overrides))
    assert result["success"], result
    return result["data"]


def test_create_returns_formatted_record(test_session, alice):
    """Test that create stores the effort triples and formats them."""
    result = create_work_status(test_session, alice, form())

    assert result["success"] is True
    record = result["data"]
    assert record.id is not None
    assert record.user_id == alice.id
    assert record.date == TODAY
    assert (record.total_effort_days, record.total_effort_hours, record.total_effort_minutes) == (1, 2, None)
    assert record.effort_today_formatted == "2h"
    assert record.total_effort_formatted == "1d 2h"
    assert record.estimated_effort_formatted == "3d"


def test_create_accepts_validated_form(test_session, alice):
    result = create_work_status(test_session, alice, WorkStatusForm(**form(effort_today="")))

    assert result["success"] is True
    assert result["data"].effort_today_formatted == ""
    assert result["data"].effort_today_hours is None


def test_create_requires_user(test_session):
    result = create_work_status(test_session, None, form())
    assert result["success"] is False
    assert result["error"] == "User not authenticated"


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": "  "}, "title"),
        ({"status": ""}, "status"),
        ({"ticket_number": "DCV2-"}, "ticket_number"),
        ({"ticket_number": "ABC-12"}, "ticket_number"),
        ({"effort_today": "2 hours"}, "effort_today"),
        ({"date": ""}, "date"),
    ],
)
def test_create_validation_errors_name_the_field(test_session, alice, overrides, field):
    """Test that invalid input is reported per field instead of raising."""
    result = create_work_status(test_session, alice, form(**overrides))

    assert result["success"] is False
    assert result["kind"] == "validation"
    assert field in result["fields"]


def test_create_missing_field(test_session, alice):
    data = form()
    del data["title"]

    result = create_work_status(test_session, alice, data)

    assert result["kind"] == "validation"
    assert "title" in result["fields"]


def test_create_rejects_duplicate_ticket(test_session, alice):
    """Test duplicate ticket number for the same user is rejected."""
    create(test_session, alice)

    result = create_work_status(test_session, alice, form(title="Another"))

    assert result["success"] is False
    assert result["kind"] == "duplicate"
    assert result["error"] == DUPLICATE_TICKET
    assert result["fields"]["ticket_number"] == DUPLICATE_TICKET


def test_same_ticket_for_different_users(test_session, alice, bob):
    """Test that ticket numbers only conflict within one user."""
    create(test_session, alice)
    result = create_work_status(test_session, bob, form())
    assert result["success"] is True


def test_unique_index_backs_the_check(test_session, alice, monkeypatch):
    """Test that a racing insert past the check still reports a duplicate."""
    create(test_session, alice)
    monkeypatch.setattr(work_status, "_conflicting", lambda *args, **kwargs: None)

    result = create_work_status(test_session, alice, form())

    assert result["kind"] == "duplicate"
    assert len(list_work_statuses(test_session, alice)["data"]) == 1


def test_update_applies_all_fields(test_session, alice):
    record = create(test_session, alice)

    result = update_work_status(
        test_session,
        alice,
        record.id,
        form(ticket_number="DCV2-200", title="Renamed", status="Done", effort_today="0h", date="2024-01-16"),
    )

    assert result["success"] is True
    updated = result["data"]
    assert updated.ticket_number == "DCV2-200"
    assert updated.title == "Renamed"
    assert updated.status == "Done"
    assert updated.date == dt.date(2024, 1, 16)
    assert updated.effort_today_formatted == "0h"


def test_update_keeps_own_ticket_number(test_session, alice):
    record = create(test_session, alice)
    result = update_work_status(test_session, alice, record.id, form(title="Same ticket"))
    assert result["success"] is True


def test_update_rejects_other_entry_ticket(test_session, alice):
    create(test_session, alice, ticket_number="DCV2-1")
    second = create(test_session, alice, ticket_number="DCV2-2")

    result = update_work_status(test_session, alice, second.id, form(ticket_number="DCV2-1"))

    assert result["kind"] == "duplicate"


def test_ownership_isolation(test_session, alice, bob):
    """Test that another user's entry looks exactly like a missing one."""
    record = create(test_session, alice)

    assert get_work_status_by_id(test_session, bob, record.id) == {
        "success": False,
        "error": NOT_FOUND,
        "kind": "not_found",
    }
    assert get_work_status_by_ticket_number(test_session, bob, record.ticket_number)["kind"] == "not_found"

    update = update_work_status(test_session, bob, record.id, form(title="Hijacked"))
    assert update["error"] == NOT_FOUND_OR_DENIED
    delete = delete_work_status(test_session, bob, record.id)
    assert delete["error"] == NOT_FOUND_OR_DENIED
    moved = duplicate_work_status_for_today(test_session, bob, record.id)
    assert moved["error"] == NOT_FOUND_OR_DENIED

    missing = delete_work_status(test_session, alice, 99999)
    assert missing == delete

    still_there = get_work_status_by_id(test_session, alice, record.id)
    assert still_there["data"].title == "Fix login redirect"


def test_delete_removes_row(test_session, alice):
    record = create(test_session, alice)

    assert delete_work_status(test_session, alice, record.id) == {"success": True, "data": None}
    assert test_session.get(WorkStatus, record.id) is None
    assert get_work_status_by_id(test_session, alice, record.id)["kind"] == "not_found"


def test_duplicate_for_today(test_session, alice):
    """Test move to today carries totals and resets daily progress."""
    three_days_ago = TODAY - dt.timedelta(days=3)
    source = create(
        test_session,
        alice,
        date=three_days_ago.isoformat(),
        status="Done",
        effort_today="4h",
        total_effort="1d",
        estimated_effort="2d 4h",
    )

    result = duplicate_work_status_for_today(test_session, alice, source.id, today=TODAY)

    assert result["success"] is True
    moved = result["data"]
    assert moved.id != source.id
    assert moved.date == TODAY
    assert moved.status == "To Do"
    assert moved.effort_today_formatted == ""
    assert (moved.effort_today_days, moved.effort_today_hours, moved.effort_today_minutes) == (None, None, None)
    assert (moved.total_effort_days, moved.total_effort_hours, moved.total_effort_minutes) == (1, None, None)
    assert moved.estimated_effort_formatted == "2d 4h"
    assert moved.ticket_number == source.ticket_number
    assert moved.title == source.title
    assert moved.origin_id == source.id

    # The source entry is left as it was
    unchanged = get_work_status_by_id(test_session, alice, source.id)["data"]
    assert unchanged.status == "Done"
    assert unchanged.date == three_days_ago


def test_duplicate_defaults_to_local_today(test_session, alice):
    source = create(test_session, alice, date="2024-01-10")
    moved = duplicate_work_status_for_today(test_session, alice, source.id)["data"]
    assert moved.date == local_today()


def test_moved_entries_share_a_lineage(test_session, alice):
    """Test that a carried-forward chain can be edited without tripping the duplicate rule."""
    source = create(test_session, alice, date="2024-01-15")
    first = duplicate_work_status_for_today(test_session, alice, source.id, today=dt.date(2024, 1, 16))["data"]
    second = duplicate_work_status_for_today(test_session, alice, first.id, today=TODAY)["data"]

    assert second.origin_id == source.id

    result = update_work_status(test_session, alice, second.id, form(status="Code Review"))
    assert result["success"] is True

    # A fresh entry for the same ticket is still a duplicate
    assert create_work_status(test_session, alice, form())["kind"] == "duplicate"


def test_check_duplicate_ticket_number(test_session, alice, bob):
    record = create(test_session, alice)

    assert check_duplicate_ticket_number(test_session, alice, "DCV2-100") == {"success": True, "data": True}
    assert check_duplicate_ticket_number(test_session, alice, "DCV2-999")["data"] is False
    assert check_duplicate_ticket_number(test_session, bob, "DCV2-100")["data"] is False
    assert check_duplicate_ticket_number(test_session, alice, "DCV2-100", exclude_id=record.id)["data"] is False


def test_check_duplicate_excludes_lineage_of_edited_entry(test_session, alice):
    source = create(test_session, alice, date="2024-01-15")
    moved = duplicate_work_status_for_today(test_session, alice, source.id, today=TODAY)["data"]

    assert check_duplicate_ticket_number(test_session, alice, "DCV2-100", exclude_id=moved.id)["data"] is False

    other = create(test_session, alice, ticket_number="DCV2-300")
    assert check_duplicate_ticket_number(test_session, alice, "DCV2-100", exclude_id=other.id)["data"] is True


def test_get_by_ticket_number_returns_latest(test_session, alice):
    source = create(test_session, alice, date="2024-01-15")
    moved = duplicate_work_status_for_today(test_session, alice, source.id, today=TODAY)["data"]

    result = get_work_status_by_ticket_number(test_session, alice, "DCV2-100")

    assert result["success"] is True
    assert result["data"].id == moved.id


def test_list_is_scoped_and_newest_first(test_session, alice, bob):
    create(test_session, alice, ticket_number="DCV2-1", date="2024-01-15")
    create(test_session, alice, ticket_number="DCV2-2", date="2024-01-17")
    create(test_session, alice, ticket_number="DCV2-3", date="2024-01-16")
    create(test_session, bob, ticket_number="DCV2-9", date="2024-01-17")

    result = list_work_statuses(test_session, alice)

    assert [r.ticket_number for r in result["data"]] == ["DCV2-2", "DCV2-3", "DCV2-1"]
    assert all(r.total_effort_formatted == "1d 2h" for r in result["data"])


def test_list_date_range(test_session, alice):
    create(test_session, alice, ticket_number="DCV2-1", date="2024-01-15")
    create(test_session, alice, ticket_number="DCV2-2", date="2024-01-17")

    result = list_work_statuses(test_session, alice, date_from=dt.date(2024, 1, 16), date_to=dt.date(2024, 1, 17))

    assert [r.ticket_number for r in result["data"]] == ["DCV2-2"]


def test_list_recent_days(test_session, alice):
    """Test the 7-day view with per-day totals."""
    create(test_session, alice, ticket_number="DCV2-1", date="2024-01-17", effort_today="6h")
    create(test_session, alice, ticket_number="DCV2-2", date="2024-01-17", effort_today="3h 30m")
    create(test_session, alice, ticket_number="DCV2-3", date="2024-01-16", effort_today="")
    create(test_session, alice, ticket_number="DCV2-4", date="2024-01-07")

    result = list_recent_days(test_session, alice, today=TODAY)

    buckets = result["data"]
    assert len(buckets) == 7
    assert [b.label for b in buckets[:2]] == ["Today", "Yesterday"]
    assert [e.ticket_number for e in buckets[0].entries] == ["DCV2-2", "DCV2-1"]
    assert buckets[0].total_effort_today == "1d 1h 30m"
    assert buckets[1].total_effort_today == "0h"
    assert all(b.entries == [] for b in buckets[2:])


def test_list_sections(test_session, alice):
    create(test_session, alice, ticket_number="DCV2-1", date="2024-01-17")
    create(test_session, alice, ticket_number="DCV2-2", date="2024-01-16")
    create(test_session, alice, ticket_number="DCV2-3", date="2024-01-12")
    create(test_session, alice, ticket_number="DCV2-4", date="2024-01-01")

    sections = list_sections(test_session, alice, today=TODAY)["data"]

    assert [e.ticket_number for e in sections.today] == ["DCV2-1"]
    assert [e.ticket_number for e in sections.yesterday] == ["DCV2-2"]
    assert [e.ticket_number for e in sections.this_week] == ["DCV2-3"]


def test_bulk_move_continues_past_failures(test_session, alice, monkeypatch):
    """Test that every entry is attempted and the counts add up."""
    entries = [
        create(test_session, alice, ticket_number=f"DCV2-{n}", date="2024-01-15") for n in (1, 2, 3)
    ]
    failing_id = entries[1].id
    attempted = []
    original = work_status.duplicate_work_status_for_today

    def flaky(session, user, record_id, today=None):
        attempted.append(record_id)
        if record_id == failing_id:
            return {"success": False, "error": "Failed to duplicate work status", "kind": "unexpected"}
        return original(session, user, record_id, today=today)

    monkeypatch.setattr(work_status, "duplicate_work_status_for_today", flaky)

    result = move_work_statuses_to_today(test_session, alice, [e.id for e in entries], today=TODAY)

    summary = result["data"]
    assert attempted == [e.id for e in entries]
    assert summary["moved"] == 2
    assert summary["failed"] == 1
    assert summary["ok"] is False
    assert summary["message"] == "Moved 2 items to today, 1 failed"
    assert {e.ticket_number for e in summary["entries"]} == {"DCV2-1", "DCV2-3"}


def test_bulk_move_skips_today_and_counts_missing(test_session, alice, bob):
    old = create(test_session, alice, ticket_number="DCV2-1", date="2024-01-15")
    current = create(test_session, alice, ticket_number="DCV2-2", date="2024-01-17")
    foreign = create(test_session, bob, ticket_number="DCV2-3", date="2024-01-15")

    summary = move_work_statuses_to_today(test_session, alice, [old.id, current.id, foreign.id], today=TODAY)["data"]

    assert (summary["moved"], summary["failed"], summary["skipped"]) == (1, 1, 1)
    assert len(list_work_statuses(test_session, bob)["data"]) == 1


def test_bulk_move_all_succeed_message(test_session, alice):
    old = create(test_session, alice, date="2024-01-15")

    summary = move_work_statuses_to_today(test_session, alice, [old.id], today=TODAY)["data"]

    assert summary["ok"] is True
    assert summary["message"] == "Successfully moved 1 items to today"


def test_unexpected_errors_are_reported_not_raised(test_session, alice, monkeypatch):
    """Test that backend failures come back as a generic error."""

    def broken(*args, **kwargs):
        raise RuntimeError("database is gone")

    monkeypatch.setattr(work_status, "_query_records", broken)

    result = list_work_statuses(test_session, alice)

    assert result == {"success": False, "error": "Failed to fetch work statuses", "kind": "unexpected"}


def test_effort_too_large_to_store_is_a_field_error(test_session, alice):
    """Test that an oversized effort is rejected on its field, not as a backend failure."""
    result = create_work_status(test_session, alice, form(effort_today="99999999999999999999m"))

    assert result["success"] is False
    assert result["kind"] == "validation"
    assert "effort_today" in result["fields"]
    assert list_work_statuses(test_session, alice)["data"] == []


def test_lookup_by_ticket_number_ignores_surrounding_spaces(test_session, alice):
    record = create(test_session, alice, ticket_number="DCV2-1")

    assert check_duplicate_ticket_number(test_session, alice, " DCV2-1 ")["data"] is True
    result = get_work_status_by_ticket_number(test_session, alice, " DCV2-1 ")
    assert result["success"] is True
    assert result["data"].id == record.id


def test_recent_days_counts(test_session, alice):
    """Test the per-day item, Done and In Progress counts."""
    create(test_session, alice, ticket_number="DCV2-1", date="2024-01-17", status="In Progress")
    create(test_session, alice, ticket_number="DCV2-2", date="2024-01-17", status="Done")
    create(test_session, alice, ticket_number="DCV2-3", date="2024-01-16", status="Done")
    create(test_session, alice, ticket_number="DCV2-4", date="2024-01-16", status="In Progress")

    buckets = list_recent_days(test_session, alice, today=TODAY)["data"]

    today, yesterday = buckets[0], buckets[1]
    assert (today.item_count, today.done_count, today.in_progress_count) == (2, 1, 1)
    assert (yesterday.item_count, yesterday.done_count, yesterday.in_progress_count) == (2, 1, 1)
    assert sum(b.item_count for b in buckets) == 4
    assert sum(b.done_count for b in buckets) == 2
    assert all(b.item_count == 0 for b in buckets[2:])
