"""Pydantic models for the account domain."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class AccountStatus(str, Enum):
    """Account lifecycle status."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Role(str, Enum):
    """Authorization tier, orthogonal to status."""

    CUSTOMER = "customer"
    ADMIN = "admin"


class UserAccount(BaseModel):
    """Full account record as stored by the user repository."""

    id: int = 0
    email: str
    username: str
    first_name: str
    last_name: str = ""
    phone_number: str | None = None
    birth_of_date: date | None = None
    avatar: str | None = None
    password_hash: str | None = None
    status: AccountStatus = AccountStatus.PENDING
    role: Role = Role.CUSTOMER

    failed_login_attempts: int = Field(default=0, ge=0)
    last_failed_login_at: datetime | None = None
    account_locked_until: datetime | None = None
    last_login_at: datetime | None = None

    verification_token: str | None = None
    verification_token_expiry: datetime | None = None
    email_verified_at: datetime | None = None
    verification_resend_count: int = Field(default=0, ge=0)
    last_verification_resend_at: datetime | None = None

    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None


class DeviceInfo(BaseModel):
    """Client details attached to a login."""

    user_agent: str | None = None
    ip_address: str | None = None


class UserInfo(BaseModel):
    """Minimal account projection returned with tokens."""

    id: str
    email: str
    full_name: str
    role: Role


class TokenClaims(BaseModel):
    """Claims signed into both access and refresh tokens."""

    iat: int
    exp: int
    user_id: int
    sid: str


class TokenPair(BaseModel):
    """Result of a successful login or refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    session_id: str
    user: UserInfo


class Session(BaseModel):
    """A refresh session held in the session store."""

    session_id: str
    user_id: int
    created_at: datetime
    expires_at: datetime


class RegistrationResult(BaseModel):
    """Confirmation returned after registration."""

    user_id: str
    email: str
    message: str = "Please check your email to verify account"


class VerificationResendResult(BaseModel):
    """New verification token issued by a resend."""

    user_id: str
    email: str
    verification_token: str
    expires_at: datetime


class UserProfile(BaseModel):
    """Cacheable profile projection of an account."""

    id: int
    email: str
    username: str
    first_name: str
    last_name: str
    phone_number: str | None = None
    birth_of_date: date | None = None
    avatar: str | None = None
    status: AccountStatus
    role: Role
    email_verified_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_account(cls, account: UserAccount) -> "UserProfile":
        return cls.model_validate(account)


# Request payloads


class RegisterRequest(BaseModel):
    """Registration payload."""

    email: str
    password: str
    full_name: str
    phone_number: str | None = None
    date_of_birth: date | None = None


class LoginRequest(BaseModel):
    """Email/password login payload."""

    email: str
    password: str
    device_info: DeviceInfo | None = None


class RefreshRequest(BaseModel):
    """Refresh token exchange payload."""

    refresh_token: str


class ResendVerificationRequest(BaseModel):
    """Verification email resend payload."""

    email: str


class ProfileUpdate(BaseModel):
    """Profile fields that can be changed. All fields optional."""

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = None
    phone_number: str | None = None
    birth_of_date: date | None = None
    avatar: str | None = Field(None, max_length=500)
