"""
Account lifecycle events.

Immutable event objects describing what happened to an account. Other
services consume them from the broker (welcome/verification emails, login
notifications), so the payload shapes are a wire contract:

- UserRegistered: {user_id, email, display_name, verification_token, created_at}
- UserLoggedIn: {user_id, email, session_id, device_info, occurred_at}
- VerificationResent: {user_id, email, display_name, verification_token, occurred_at}

Every payload also carries event_id so consumers can drop duplicates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from auth.types import DeviceInfo, UserAccount
from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class AccountEvent:
    """Base class for all account lifecycle events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)
    user_id: int
    email: str

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    @property
    def partition_key(self) -> str:
        """Events for one account land on one partition, in order."""
        return str(self.user_id)

    def to_payload(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True, kw_only=True)
class UserRegistered(AccountEvent):
    """A new account was created in PENDING status."""
    display_name: str
    verification_token: str
    created_at: datetime

    @classmethod
    def create(cls, account: UserAccount) -> "UserRegistered":
        return cls(
            user_id=account.id,
            email=account.email,
            display_name=account.display_name,
            verification_token=account.verification_token or "",
            created_at=account.created_at,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "verification_token": self.verification_token,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, kw_only=True)
class UserLoggedIn(AccountEvent):
    """An account completed a password login and got a new session."""
    session_id: str
    device_info: DeviceInfo | None = None

    @classmethod
    def create(
        cls, account: UserAccount, session_id: str, device_info: DeviceInfo | None = None
    ) -> "UserLoggedIn":
        return cls(
            user_id=account.id,
            email=account.email,
            session_id=session_id,
            device_info=device_info,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "email": self.email,
            "session_id": self.session_id,
            "device_info": self.device_info.model_dump() if self.device_info else None,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True, kw_only=True)
class VerificationResent(AccountEvent):
    """A fresh verification token was issued for a pending account."""
    display_name: str
    verification_token: str

    @classmethod
    def create(cls, account: UserAccount) -> "VerificationResent":
        return cls(
            user_id=account.id,
            email=account.email,
            display_name=account.display_name,
            verification_token=account.verification_token or "",
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "verification_token": self.verification_token,
            "occurred_at": self.occurred_at.isoformat(),
        }
