"""Per-service audit log.

Each request is written as one line to ``<log_dir>/<service>.log`` with the
signed-in user (from the session cookie) or ``anonymous``.
"""
from __future__ import annotations

import logging
from pathlib import Path
from time import time
from typing import Optional

from fastapi import FastAPI, Request

from .auth import session_user_id
from .config import get_settings

AUDIT_LOGGER_PREFIX = "staybook.audit"


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"{AUDIT_LOGGER_PREFIX}.{service_name}")
    if logger.handlers:
        return logger

    log_dir = Path(get_settings().log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(log_dir / f"{service_name}.log")
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(handler)
    return logger


def describe_actor(request: Request) -> str:
    user_id = session_user_id(request)
    return f"user:{user_id}" if user_id is not None else "anonymous"


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    logger = _build_logger(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        start = time()
        response = await call_next(request)
        duration_ms = (time() - start) * 1000
        client_ip: Optional[str] = request.client.host if request.client else None
        # Denied writes are the interesting ones for a booking audit trail.
        level = logging.WARNING if response.status_code in (401, 403) else logging.INFO
        logger.log(
            level,
            "%s %s | status=%s | actor=%s | client=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            describe_actor(request),
            client_ip or "unknown",
            duration_ms,
        )
        return response
