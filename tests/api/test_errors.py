"""Tests for api/errors.py - exception to HTTP status mapping."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.errors import register_error_handlers, status_for
from auth.exceptions import (
    AccountInactiveError,
    AccountLockedError,
    AlreadyVerifiedError,
    ConflictError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    RateLimitedError,
    SessionRevokedError,
    TokenExpiredError,
    ValidationError,
    VerificationRateLimitedError,
    VerificationTokenExpiredError,
    VerificationTokenNotFoundError,
)


class TestStatusFor:
    """Status code per failure kind."""

    @pytest.mark.parametrize("exc, status", [
        (ValidationError("email", "bad"), 422),
        (ConflictError("email", "taken"), 409),
        (NotFoundError("missing"), 404),
        (VerificationTokenNotFoundError("missing"), 404),
        (InvalidCredentialsError(), 401),
        (InvalidTokenError("bad"), 401),
        (TokenExpiredError("old"), 401),
        (SessionRevokedError("gone"), 401),
        (AccountLockedError(remaining_minutes=5), 423),
        (AccountInactiveError("inactive"), 403),
        (AlreadyVerifiedError(), 400),
        (VerificationTokenExpiredError(), 400),
        (RateLimitedError(retry_after_seconds=10), 429),
        (VerificationRateLimitedError(max_per_hour=3, retry_after_seconds=10), 429),
        (InternalAuthError("boom"), 500),
    ])
    def test_status(self, exc, status):
        assert status_for(exc)[0] == status

    def test_expired_token_has_its_own_code(self):
        assert status_for(TokenExpiredError("old"))[1] == "TOKEN_EXPIRED"
        assert status_for(InvalidTokenError("bad"))[1] == "INVALID_TOKEN"


@pytest.fixture
def client():
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/locked")
    async def locked():
        raise AccountLockedError(remaining_minutes=12)

    @app.get("/limited")
    async def limited():
        raise VerificationRateLimitedError(max_per_hour=3, retry_after_seconds=120)

    @app.get("/internal")
    async def internal():
        raise InternalAuthError("signing key unreadable")

    @app.get("/invalid")
    async def invalid():
        raise ValidationError("phone_number", "Invalid phone number format")

    return TestClient(app)


class TestHandlers:
    """Envelope produced by the registered handlers."""

    def test_locked_message(self, client):
        response = client.get("/locked")

        assert response.status_code == 423
        body = response.json()
        assert body["success"] is False
        assert "12 minutes" in body["error"]["message"]

    def test_retry_after_header(self, client):
        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert "Maximum 3" in response.json()["error"]["message"]
        assert response.json()["error"]["retry_after_seconds"] == 120

    def test_internal_details_hidden(self, client):
        response = client.get("/internal")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "An internal error occurred"

    def test_validation_field_exposed(self, client):
        response = client.get("/invalid")

        assert response.status_code == 422
        assert response.json()["error"]["field"] == "phone_number"
