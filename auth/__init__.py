"""Authentication and account lifecycle modules."""

from auth.exceptions import (
    AuthError,
    ValidationError,
    ConflictError,
    NotFoundError,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenExpiredError,
    SessionRevokedError,
    AccountLockedError,
    AccountInactiveError,
    AlreadyVerifiedError,
    VerificationTokenExpiredError,
    RateLimitedError,
    VerificationRateLimitedError,
    InternalAuthError,
)
from auth.types import (
    AccountStatus,
    Role,
    UserAccount,
    UserProfile,
    Session,
    TokenClaims,
    TokenPair,
)
from auth.config import AuthConfig, SigningKeys
