"""Authentication configuration."""

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication and account lifecycle configuration.

    Built once at startup and passed into the services. Durations are in
    their natural units (seconds for tokens and caches, minutes for lockout,
    hours for sessions and verification links).
    """

    # Tokens
    token_algorithm: str = Field(
        default="RS256",
        description="JWT signing algorithm (RS256 with key pairs, or HS256 with secrets)",
    )
    access_token_ttl_seconds: int = Field(
        default=900,  # 15 minutes
        description="Access token lifetime",
        ge=60,
        le=86400,
    )
    refresh_token_ttl_seconds: int = Field(
        default=604800,  # 7 days
        description="Refresh token lifetime",
        ge=3600,
        le=7776000,
    )

    # Sessions
    session_expiry_hours: int = Field(
        default=168,  # 7 days
        description="Refresh session lifetime in the session store",
        ge=1,
        le=2160,
    )
    verify_session_on_request: bool = Field(
        default=False,
        description="Require a live session record when authenticating access tokens",
    )

    # Profile cache
    profile_cache_ttl_seconds: int = Field(
        default=88640,
        description="How long cached profile projections live",
        ge=60,
    )

    # Lockout
    max_failed_login_attempts: int = Field(
        default=5,
        description="Failed logins within the window before the account locks",
        ge=1,
        le=20,
    )
    lockout_window_minutes: int = Field(
        default=15,
        description="Failed attempts older than this no longer count",
        ge=1,
        le=1440,
    )
    lockout_duration_minutes: int = Field(
        default=30,
        description="How long a locked account stays locked",
        ge=1,
        le=1440,
    )
    require_active_for_login: bool = Field(
        default=False,
        description="Reject logins for accounts that are not ACTIVE",
    )

    # Registration and verification
    verification_token_expiry_hours: int = Field(
        default=24,
        description="How long email verification tokens remain valid",
        ge=1,
        le=168,
    )
    max_verification_resends_per_hour: int = Field(
        default=3,
        description="Verification email resends allowed per rolling hour",
        ge=1,
        le=20,
    )
    minimum_age_years: int = Field(
        default=13,
        description="Minimum age at registration when a date of birth is given",
        ge=0,
    )

    # Password hashing (Argon2id)
    argon2_time_cost: int = Field(default=2, ge=1)
    argon2_memory_cost_kib: int = Field(default=19456, ge=8)
    argon2_parallelism: int = Field(default=1, ge=1)

    # CPU-bound work
    worker_pool_size: int = Field(
        default=4,
        description="Threads dedicated to hashing and signing",
        ge=1,
        le=64,
    )
    crypto_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single hash, verify or signing call",
        gt=0,
    )

    # Events
    event_publish_timeout_seconds: float = Field(
        default=5.0,
        description="Send timeout after which an event publish is abandoned",
        gt=0,
        le=30,
    )
    user_registered_topic: str = "user.registered"
    user_logged_in_topic: str = "user.logged_in"
    verification_resent_topic: str = "user.verification_resent"


class SigningKeys(BaseModel):
    """
    Key material for access and refresh tokens.

    For RS256 the signing keys are PEM private keys and the verification keys
    the matching PEM public keys. For HS256 signing and verification key are
    the same secret. Access and refresh material must differ.
    """

    access_signing_key: str
    access_verification_key: str
    refresh_signing_key: str
    refresh_verification_key: str

    model_config = {"frozen": True}

    @classmethod
    def symmetric(cls, access_secret: str, refresh_secret: str) -> "SigningKeys":
        """Build HS256 key material from two shared secrets."""
        return cls(
            access_signing_key=access_secret,
            access_verification_key=access_secret,
            refresh_signing_key=refresh_secret,
            refresh_verification_key=refresh_secret,
        )
