"""Reusable FastAPI dependencies for session auth and database access."""
import logging
from typing import Optional

from fastapi import Depends, Security
from fastapi.security import APIKeyCookie
from sqlalchemy.orm import Session

from .auth import decode_token
from .config import get_settings
from .database import get_db
from .errors import AuthenticationRequired, ForbiddenError
from .models import User

logger = logging.getLogger(__name__)

settings = get_settings()
session_cookie = APIKeyCookie(name=settings.session_cookie_name, auto_error=False)


def get_optional_user(token: Optional[str] = Security(session_cookie), db: Session = Depends(get_db)) -> Optional[User]:
    """Restore the session user from the cookie; anonymous when absent or invalid."""
    if not token:
        return None
    payload = decode_token(token)
    if payload is None:
        logger.info("Ignoring invalid or expired session token")
        return None
    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        return None
    return db.get(User, int(subject))


def require_auth(current_user: Optional[User] = Depends(get_optional_user)) -> User:
    if current_user is None:
        raise AuthenticationRequired()
    return current_user


def ensure_owner(owner_id: int, current_user: User) -> None:
    if owner_id != current_user.id:
        raise ForbiddenError()
