import datetime as dt

from sqlmodel import Session, select

from db import engine
from grouping import local_today
from models import WorkStatus
from users import UserContext, sign_in
from work_status import create_work_status, duplicate_work_status_for_today


def seed_database(today: dt.date | None = None) -> int:
    """Seed the database with a demo user and a few days of work statuses.

    Returns the number of entries written (0 when data already exists).
    """
    today = today or local_today()
    with Session(engine) as session:
        # Check if data already exists
        existing = session.exec(select(WorkStatus)).first()
        if existing:
            print("Database already has data, skipping seed.")
            return 0

        user = UserContext(**sign_in(session, "demo.user")["data"].model_dump(include={"id", "username"}))

        # Sample data
        sample_entries = [
            {
                "date": today - dt.timedelta(days=2),
                "ticket_number": "DCV2-101",
                "title": "Fix login redirect loop",
                "status": "Code Review",
                "effort_today": "3h",
                "total_effort": "1d 4h",
                "estimated_effort": "2d",
            },
            {
                "date": today - dt.timedelta(days=1),
                "ticket_number": "DCV2-114",
                "title": "Export timesheet as CSV",
                "status": "In Progress",
                "effort_today": "5h 30m",
                "total_effort": "5h 30m",
                "estimated_effort": "1d",
            },
            {
                "date": today,
                "ticket_number": "DCV2-120",
                "title": "Investigate slow dashboard query",
                "status": "Blocked",
                "effort_today": "45m",
                "total_effort": "45m",
                "estimated_effort": "",
            },
        ]

        count = 0
        created = []
        for entry in sample_entries:
            result = create_work_status(session, user, entry)
            if result["success"]:
                created.append(result["data"])
                count += 1

        # Carry yesterday's unfinished ticket forward
        carried = [e for e in created if e.date == today - dt.timedelta(days=1)]
        for entry in carried:
            if duplicate_work_status_for_today(session, user, entry.id, today=today)["success"]:
                count += 1

        print(f"Seeded database with {count} sample entries.")
        return count


if __name__ == "__main__":
    from db import create_db_and_tables

    create_db_and_tables()
    seed_database()
