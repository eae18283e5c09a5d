"""Security middleware for FastAPI - access token validation and user context."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import AuthError
from auth.service import AccountService
from api.base import error_response, ErrorCodes
from api.errors import status_for
from utils.user_context import reset_current_user_id, set_current_user_id

logger = logging.getLogger(__name__)


def _unauthorized(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
        content=error_response(code, message).model_dump(mode="json"),
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates bearer access tokens and sets user context.

    For protected routes:
    1. Extracts the access token from the 'Authorization: Bearer' header
    2. Validates it via AccountService.authenticate
    3. Sets user_id and session_id in request.state and user context
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/register",
        "/auth/verify",
        "/auth/resend-verification",
        "/auth/login",
        "/auth/refresh",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, account_service: AccountService):
        super().__init__(app)
        self._account_service = account_service

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    @staticmethod
    def _bearer_token(request: Request) -> str | None:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        # Skip auth for public paths
        if self._is_public_path(path):
            return await call_next(request)

        access_token = self._bearer_token(request)
        if not access_token:
            return _unauthorized(ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            claims = await self._account_service.authenticate(access_token)
        except AuthError as e:
            status_code, code = status_for(e)
            if status_code != 401:
                logger.error("Access token check failed on %s: %s", path, e)
                return JSONResponse(
                    status_code=status_code,
                    content=error_response(
                        code, "An internal error occurred"
                    ).model_dump(mode="json"),
                )
            return _unauthorized(code, str(e))

        context_token = set_current_user_id(claims.user_id)
        request.state.user_id = claims.user_id
        request.state.session_id = claims.sid

        try:
            return await call_next(request)
        finally:
            reset_current_user_id(context_token)
