"""Password hashing, JWT session cookies, and helper utilities."""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import get_settings
from .models import User

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload, or ``None`` when it is malformed or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def authenticate_user(db: Session, credential: str, password: str) -> Optional[User]:
    user: Optional[User] = (
        db.query(User).filter((User.username == credential) | (User.email == credential)).first()
    )
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def set_session_cookie(response: Response, user: User) -> str:
    token = create_access_token({"sub": str(user.id), "username": user.username, "email": user.email})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
    )
    return token


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name)


def session_user_id(request: Request) -> Optional[int]:
    """User id carried by the request's session cookie, if it is valid."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
