"""Sign-in and the per-request user context."""
import logging
from dataclasses import dataclass

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from models import User
from schemas import SignInRequest, UserResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserContext:
    """Who is acting. Built once at sign-in and passed to every record operation."""

    id: int
    username: str

    @classmethod
    def from_user(cls, user: User) -> "UserContext":
        return cls(id=user.id, username=user.username)


def sign_in(session: Session, username: str) -> dict:
    """Log in as ``username``, creating the user the first time it is seen."""
    try:
        request = SignInRequest(username=username or "")
    except ValidationError as e:
        message = e.errors()[0]["msg"].removeprefix("Value error, ")
        return {"success": False, "error": message, "kind": "validation", "fields": {"username": message}}

    try:
        user = session.exec(select(User).where(User.username == request.username)).first()
        if not user:
            user = User(username=request.username)
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                # Someone else registered the same name in between
                session.rollback()
                user = session.exec(select(User).where(User.username == request.username)).one()
            else:
                session.refresh(user)
                logger.info(f"Created user {user.id} ({user.username})")

        return {"success": True, "data": UserResponse.model_validate(user, from_attributes=True)}
    except Exception as e:
        session.rollback()
        logger.error(f"Error signing in user {request.username}: {str(e)}")
        return {"success": False, "error": "Failed to create user. Please try again.", "kind": "unexpected"}


def load_context(session: Session, user_id: int) -> UserContext | None:
    user = session.get(User, user_id)
    return UserContext.from_user(user) if user else None
