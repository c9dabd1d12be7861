import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from staybook import auth
from staybook.config import get_settings
from staybook.database import Base, engine, get_db
from staybook.dependencies import get_optional_user
from staybook.errors import AlreadyExistsError, InvalidCredentials, register_error_handlers
from staybook.logging_middleware import add_audit_middleware
from staybook.models import User
from staybook.rate_limit import apply_rate_limiter, limiter
from staybook.schemas import LoginRequest, MessageRead, SessionRead, SignupRequest

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Users Service", version="0.2.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "users")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "users"}


@app.get("/session", response_model=SessionRead)
@limiter.limit("60/minute")
def restore_session(request: Request, current_user: Optional[User] = Depends(get_optional_user)) -> dict:
    return {"user": current_user}


@app.post("/session", response_model=SessionRead)
@limiter.limit("10/minute")
def login(request: Request, response: Response, credentials: LoginRequest, db: Session = Depends(get_db)) -> dict:
    user = auth.authenticate_user(db, credentials.credential, credentials.password)
    if not user:
        logger.info("Failed login for %s", credentials.credential)
        raise InvalidCredentials(errors={"credential": "The provided credentials were invalid."})

    auth.set_session_cookie(response, user)
    return {"user": user}


@app.delete("/session", response_model=MessageRead)
def logout(response: Response) -> MessageRead:
    auth.clear_session_cookie(response)
    return MessageRead(message="success")


@app.post("/users", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def signup(request: Request, response: Response, user_in: SignupRequest, db: Session = Depends(get_db)) -> dict:
    errors: dict[str, str] = {}
    if db.query(User).filter(User.email == user_in.email).first():
        errors["email"] = "User with that email already exists"
    if db.query(User).filter(User.username == user_in.username).first():
        errors["username"] = "User with that username already exists"
    if errors:
        raise AlreadyExistsError(errors=errors)

    user = User(
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        email=user_in.email,
        username=user_in.username,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # A concurrent signup claimed the email or username after the checks above.
        db.rollback()
        logger.info("Signup for %s lost a uniqueness race", user_in.username)
        raise AlreadyExistsError(errors={"email": "User with that email or username already exists"}) from exc
    db.refresh(user)

    auth.set_session_cookie(response, user)
    return {"user": user}
