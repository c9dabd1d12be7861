"""Unit tests for the shared rate limiter."""
import os

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.requests import Request as StarletteRequest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from staybook.auth import create_access_token
from staybook.config import get_settings
from staybook.rate_limit import rate_limit_handler, session_or_address_key

settings = get_settings()


def make_request(cookie: str = None, host: str = "10.0.0.7") -> StarletteRequest:
    headers = []
    if cookie is not None:
        headers.append((b"cookie", f"{settings.session_cookie_name}={cookie}".encode()))
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "client": (host, 5000),
    }
    return StarletteRequest(scope)


class TestSessionOrAddressKey:
    """Test how requests are bucketed."""

    def test_signed_in_user_is_keyed_by_account(self):
        token = create_access_token({"sub": "42"})

        assert session_or_address_key(make_request(cookie=token)) == "user:42"

    def test_same_user_shares_bucket_across_addresses(self):
        token = create_access_token({"sub": "42"})

        first = session_or_address_key(make_request(cookie=token, host="10.0.0.1"))
        second = session_or_address_key(make_request(cookie=token, host="10.0.0.2"))

        assert first == second

    def test_anonymous_request_is_keyed_by_address(self):
        assert session_or_address_key(make_request()) == "ip:10.0.0.7"

    def test_forged_cookie_falls_back_to_address(self):
        assert session_or_address_key(make_request(cookie="garbage")) == "ip:10.0.0.7"


class TestRateLimitHandler:
    """Test the 429 response body."""

    def test_exceeding_limit_returns_error_shape(self):
        app = FastAPI()
        test_limiter = Limiter(key_func=session_or_address_key, enabled=True)
        app.state.limiter = test_limiter
        app.add_middleware(SlowAPIMiddleware)
        app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

        @app.get("/ping")
        @test_limiter.limit("1/minute")
        def ping(request: Request):
            return {"ok": True}

        with TestClient(app) as client:
            assert client.get("/ping").status_code == 200
            response = client.get("/ping")

        assert response.status_code == 429
        body = response.json()
        assert body["statusCode"] == 429
        assert body["message"].startswith("Too many requests")
