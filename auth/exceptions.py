"""Typed exceptions for auth and account lifecycle failures.

Business-rule failures are expected outcomes and each has its own type so the
transport layer can map them without string matching. Anything unexpected
(storage down, signing key unusable) is InternalAuthError.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class ValidationError(AuthError):
    """Input failed a business rule. Carries the offending field."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class ConflictError(AuthError):
    """A unique field (email, username, phone) is already taken."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class NotFoundError(AuthError):
    """Entity absent."""


class VerificationTokenNotFoundError(NotFoundError):
    """Verification token does not resolve to any account."""


class InvalidCredentialsError(AuthError):
    """
    Email/password pair rejected.

    Raised both for unknown emails and wrong passwords so responses
    never reveal whether an account exists.
    """

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InvalidTokenError(AuthError):
    """Token is malformed, signed with the wrong key, or otherwise invalid."""


class TokenExpiredError(InvalidTokenError):
    """Token signature is valid but it has expired."""


class SessionRevokedError(AuthError):
    """Session was explicitly revoked (logout, rotation) or has expired."""


class AccountLockedError(AuthError):
    """Account temporarily locked after too many failed logins."""

    def __init__(self, remaining_minutes: int):
        self.remaining_minutes = remaining_minutes
        super().__init__(
            "Account is temporarily locked due to too many failed login attempts. "
            f"Please try again in {remaining_minutes} minutes."
        )


class AccountInactiveError(AuthError):
    """Account is not active. Login not permitted."""


class AlreadyVerifiedError(AuthError):
    """Email is already verified."""

    def __init__(self, message: str = "Email is already verified"):
        super().__init__(message)


class VerificationTokenExpiredError(AuthError):
    """Verification token exists but is past its expiry."""

    def __init__(self, message: str = "Verification token has expired"):
        super().__init__(message)


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class VerificationRateLimitedError(RateLimitedError):
    """Verification email resend cap reached for the current hour."""

    def __init__(self, max_per_hour: int, retry_after_seconds: int):
        self.max_per_hour = max_per_hour
        self.retry_after_seconds = retry_after_seconds
        AuthError.__init__(
            self,
            f"Maximum {max_per_hour} verification email resends per hour exceeded",
        )


class InternalAuthError(AuthError):
    """
    Unexpected failure in hashing, signing, or storage.

    The message is safe to log; callers must never show it to end users.
    """
