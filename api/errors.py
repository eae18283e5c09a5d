"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AccountInactiveError,
    AccountLockedError,
    AlreadyVerifiedError,
    AuthError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    RateLimitedError,
    SessionRevokedError,
    TokenExpiredError,
    ValidationError,
    VerificationTokenExpiredError,
)

logger = logging.getLogger(__name__)

# Most specific first: TokenExpiredError before InvalidTokenError
ERROR_STATUS: list[tuple[type[AuthError], int, str]] = [
    (ValidationError, 422, ErrorCodes.VALIDATION_ERROR),
    (ConflictError, 409, ErrorCodes.ALREADY_EXISTS),
    (NotFoundError, 404, ErrorCodes.NOT_FOUND),
    (InvalidCredentialsError, 401, ErrorCodes.INVALID_CREDENTIALS),
    (TokenExpiredError, 401, ErrorCodes.TOKEN_EXPIRED),
    (InvalidTokenError, 401, ErrorCodes.INVALID_TOKEN),
    (SessionRevokedError, 401, ErrorCodes.SESSION_REVOKED),
    (AccountLockedError, 423, ErrorCodes.ACCOUNT_LOCKED),
    (AccountInactiveError, 403, ErrorCodes.ACCOUNT_INACTIVE),
    (AlreadyVerifiedError, 400, ErrorCodes.ALREADY_VERIFIED),
    (VerificationTokenExpiredError, 400, ErrorCodes.VERIFICATION_TOKEN_EXPIRED),
    (RateLimitedError, 429, ErrorCodes.RATE_LIMITED),
]


def status_for(exc: AuthError) -> tuple[int, str]:
    """HTTP status and error code for an auth exception."""
    for exc_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return 500, ErrorCodes.INTERNAL_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        status_code, code = status_for(exc)

        if status_code == 500:
            # InternalAuthError messages are for logs only
            logger.error("Internal auth failure on %s: %s", request.url.path, exc)
            message = "An internal error occurred"
        else:
            message = str(exc)

        headers = None
        retry_after = None
        if isinstance(exc, RateLimitedError):
            retry_after = exc.retry_after_seconds
            headers = {"Retry-After": str(retry_after)}

        return JSONResponse(
            status_code=status_code,
            headers=headers,
            content=error_response(
                code,
                message,
                field=getattr(exc, "field", None),
                retry_after_seconds=retry_after,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                first.get("msg", "Invalid request"),
                field=".".join(loc) or None,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
            ).model_dump(mode="json"),
        )
