"""Response envelope shared by every account service endpoint.

Success and failure carry the same shape so clients branch on `success` and
read `error.code`, never on the HTTP status alone.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from api.middleware import get_current_request_id
from utils.timezone import now_utc


class APIError(BaseModel):
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(None, description="Input field the error refers to")
    retry_after_seconds: int | None = Field(
        None, description="Seconds until a rate-limited call may be retried"
    )


class APIMeta(BaseModel):
    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Matches the X-Request-ID response header")


class APIResponse(BaseModel):
    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def _meta() -> APIMeta:
    # Outside a request (scripts, tests) there is no request id to echo
    return APIMeta(
        timestamp=now_utc(),
        request_id=get_current_request_id() or str(uuid4()),
    )


def success_response(data: Any) -> APIResponse:
    return APIResponse(success=True, data=data, meta=_meta())


def error_response(
    code: str,
    message: str,
    field: str | None = None,
    retry_after_seconds: int | None = None,
) -> APIResponse:
    """Build a failure envelope. Only pass messages that are safe to show clients."""
    return APIResponse(
        success=False,
        error=APIError(
            code=code,
            message=message,
            field=field,
            retry_after_seconds=retry_after_seconds,
        ),
        meta=_meta(),
    )


class ErrorCodes:
    """Values of error.code returned by the account service."""

    # Credentials and sessions
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    SESSION_REVOKED = "SESSION_REVOKED"

    # Account state
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    RATE_LIMITED = "RATE_LIMITED"

    # Email verification
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    VERIFICATION_TOKEN_EXPIRED = "VERIFICATION_TOKEN_EXPIRED"

    # Input and lookups
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
