import datetime as dt
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from config import SUGGESTED_STATUSES, settings
from db import create_db_and_tables, get_session
from report import build_status_report
from schemas import (
    BulkMoveRequest,
    BulkMoveResponse,
    DayBucketResponse,
    DuplicateCheckResponse,
    SectionsResponse,
    SignInRequest,
    StatusReportResponse,
    UserResponse,
    WorkStatusForm,
    WorkStatusResponse,
)
from users import UserContext, load_context, sign_in
from work_status import (
    NOT_AUTHENTICATED,
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

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STATUS_CODES = {
    "validation": 422,
    "not_found": 404,
    "duplicate": 409,
    "unexpected": 500,
}


def unwrap(result: dict):
    """Return the data of a successful operation or raise the matching HTTP error."""
    if result["success"]:
        return result["data"]
    status_code = STATUS_CODES.get(result.get("kind"), 500)
    detail = {"message": result["error"], "fields": result.get("fields", {})}
    raise HTTPException(status_code=status_code, detail=detail)


def get_current_user(
    x_user_id: int | None = Header(None, description="Id returned by /users/sign-in"),
    session: Session = Depends(get_session),
) -> UserContext:
    """Resolve the client-supplied user id; it is trusted as-is."""
    user = load_context(session, x_user_id) if x_user_id is not None else None
    if user is None:
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED)
    return user


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    create_db_and_tables()
    logger.info("Database initialized")
    yield


# Create FastAPI app
app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins in development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/users/sign-in", response_model=UserResponse)
def sign_in_user(request: SignInRequest, session: Session = Depends(get_session)):
    """Log in as a username, creating it on first use."""
    logger.info(f"Sign-in request for: {request.username}")
    return unwrap(sign_in(session, request.username))


@app.post("/work-statuses", response_model=WorkStatusResponse, status_code=201)
def create_entry(
    form: WorkStatusForm,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    logger.info(f"Create work status request for user {user.id}: {form.ticket_number}")
    return unwrap(create_work_status(session, user, form))


@app.get("/work-statuses", response_model=list[WorkStatusResponse])
def get_entries(
    date_from: dt.date = Query(None, description="Start date filter (YYYY-MM-DD)"),
    date_to: dt.date = Query(None, description="End date filter (YYYY-MM-DD)"),
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Get the user's entries, newest day first, with optional date filtering."""
    logger.info(f"Entries request for user {user.id} - from: {date_from}, to: {date_to}")
    return unwrap(list_work_statuses(session, user, date_from=date_from, date_to=date_to))


@app.get("/work-statuses/recent", response_model=list[DayBucketResponse])
def get_recent_days(
    days: int = Query(7, ge=1, le=31, description="Number of calendar days, today included"),
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Entries grouped per calendar day, with each day's summed effort and counts."""
    return unwrap(list_recent_days(session, user, days=days))


@app.get("/work-statuses/sections", response_model=SectionsResponse)
def get_sections(
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(list_sections(session, user))


@app.get("/work-statuses/report", response_model=StatusReportResponse)
def get_status_report(
    day: dt.date = Query(None, description="Day to report on (YYYY-MM-DD), defaults to today"),
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Copy-ready text for one day's entries."""
    return unwrap(build_status_report(session, user, day))


@app.get("/work-statuses/check", response_model=DuplicateCheckResponse)
def check_ticket_number(
    ticket_number: str = Query(..., description="Ticket number to check"),
    exclude_id: int = Query(None, description="Entry being edited"),
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Live duplicate check while the ticket number is typed."""
    return DuplicateCheckResponse(
        exists=unwrap(check_duplicate_ticket_number(session, user, ticket_number, exclude_id))
    )


@app.post("/work-statuses/move-to-today", response_model=BulkMoveResponse)
def bulk_move_to_today(
    request: BulkMoveRequest,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Move several entries to today; partial success is reported, not rolled back."""
    logger.info(f"Bulk move request for user {user.id}: {len(request.ids)} entries")
    return unwrap(move_work_statuses_to_today(session, user, request.ids))


@app.get("/work-statuses/by-ticket/{ticket_number}", response_model=WorkStatusResponse)
def get_entry_by_ticket(
    ticket_number: str,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(get_work_status_by_ticket_number(session, user, ticket_number))


@app.get("/work-statuses/{entry_id}", response_model=WorkStatusResponse)
def get_entry(
    entry_id: int,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return unwrap(get_work_status_by_id(session, user, entry_id))


@app.put("/work-statuses/{entry_id}", response_model=WorkStatusResponse)
def update_entry(
    entry_id: int,
    form: WorkStatusForm,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    logger.info(f"Update request for work status {entry_id} by user {user.id}")
    return unwrap(update_work_status(session, user, entry_id, form))


@app.delete("/work-statuses/{entry_id}")
def delete_entry(
    entry_id: int,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Delete one of the user's entries permanently."""
    logger.info(f"Delete request for work status {entry_id} by user {user.id}")
    unwrap(delete_work_status(session, user, entry_id))
    return {"ok": True, "message": "Work status deleted successfully"}


@app.post("/work-statuses/{entry_id}/move-to-today", response_model=WorkStatusResponse, status_code=201)
def move_entry_to_today(
    entry_id: int,
    user: UserContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Copy an entry to today with status reset and no effort logged today."""
    logger.info(f"Move to today request for work status {entry_id} by user {user.id}")
    return unwrap(duplicate_work_status_for_today(session, user, entry_id))


@app.get("/statuses")
def get_statuses():
    """Suggested status values; any other string is accepted too."""
    return {"statuses": list(SUGGESTED_STATUSES), "default": settings.default_status}


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": settings.app_name, "docs": "/docs"}
