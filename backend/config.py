import os

from pydantic import BaseModel


class Settings(BaseModel):
    app_name: str = "Work Status Tracker API"
    env: str = os.getenv("ENV", os.getenv("RENDER", "").lower() or "dev")
    database_url: str | None = os.getenv("DATABASE_URL")
    database_path: str = os.getenv("DATABASE_PATH", "./workstatus.db")
    # Every ticket number has to start with this and carry something after it
    ticket_prefix: str = os.getenv("TICKET_PREFIX", "DCV2-")
    # IANA name; unset means the server's local time zone
    timezone: str | None = os.getenv("TRACKER_TIMEZONE") or None
    hours_per_day: int = int(os.getenv("HOURS_PER_DAY", "8"))
    default_status: str = "To Do"


settings = Settings()

SUGGESTED_STATUSES = ("To Do", "In Progress", "Code Review", "DQA", "Done", "Blocked")
