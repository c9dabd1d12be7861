"""API error hierarchy and the FastAPI handlers that render it."""
from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Error surfaced to the client as ``{"message", "statusCode", "errors"}``."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Bad Request"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None) -> None:
        self.message = message or self.message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict = {"message": self.message, "statusCode": self.status_code}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad Request"


class AlreadyExistsError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "User already exists"


class AuthenticationRequired(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Authentication required"


class InvalidCredentials(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials"


class ForbiddenError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class BookingConflictError(ForbiddenError):
    message = "Sorry, this spot is already booked for the specified dates"

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(errors={field: detail})
        self.field = field


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not Found"


def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = loc[-1] if loc else "body"
        errors.setdefault(field, error.get("msg", "Invalid value"))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=ValidationFailed(errors=errors).to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Render ApiError subclasses and request validation failures uniformly."""

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
