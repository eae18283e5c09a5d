"""Brute-force protection for password logins.

Pure decision logic over an account's failed-attempt counters. Nothing here
touches storage; the caller persists whatever the policy decides.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from auth.config import AuthConfig
from auth.exceptions import AccountLockedError
from utils.timezone import minutes_until


@dataclass(frozen=True)
class LockDecision:
    """Outcome of evaluating the lock policy."""

    locked: bool
    locked_until: datetime | None
    effective_attempts: int


@dataclass(frozen=True)
class FailedLoginUpdate:
    """New counter values to persist after a failed login."""

    failed_login_attempts: int
    last_failed_login_at: datetime
    account_locked_until: datetime | None

    @property
    def locked(self) -> bool:
        return self.account_locked_until is not None


class AccountLockPolicy:
    """Decides when repeated failed logins lock an account.

    Attempts accumulate inside a sliding lockout window measured from the
    last failure. Once the window has elapsed the counter is treated as zero.
    """

    def __init__(
        self,
        max_attempts: int,
        lockout_window_minutes: int,
        lockout_duration_minutes: int,
    ):
        self.max_attempts = max_attempts
        self.lockout_window = timedelta(minutes=lockout_window_minutes)
        self.lockout_duration = timedelta(minutes=lockout_duration_minutes)

    @classmethod
    def from_config(cls, config: AuthConfig) -> "AccountLockPolicy":
        return cls(
            max_attempts=config.max_failed_login_attempts,
            lockout_window_minutes=config.lockout_window_minutes,
            lockout_duration_minutes=config.lockout_duration_minutes,
        )

    def effective_attempts(
        self,
        failed_attempts: int,
        last_failed_login_at: datetime | None,
        now: datetime,
    ) -> int:
        """Counter value that still counts toward the threshold at `now`."""
        if last_failed_login_at is not None and now - last_failed_login_at >= self.lockout_window:
            return 0
        return failed_attempts

    def evaluate(
        self,
        failed_attempts: int,
        last_failed_login_at: datetime | None,
        now: datetime,
    ) -> LockDecision:
        """Lock if the effective counter has reached the threshold."""
        attempts = self.effective_attempts(failed_attempts, last_failed_login_at, now)
        if attempts >= self.max_attempts:
            return LockDecision(True, now + self.lockout_duration, attempts)
        return LockDecision(False, None, attempts)

    def register_failure(
        self,
        failed_attempts: int,
        last_failed_login_at: datetime | None,
        now: datetime,
    ) -> FailedLoginUpdate:
        """Count one more failure at `now` and decide whether it locks."""
        attempts = self.effective_attempts(failed_attempts, last_failed_login_at, now) + 1
        decision = self.evaluate(attempts, now, now)
        return FailedLoginUpdate(
            failed_login_attempts=attempts,
            last_failed_login_at=now,
            account_locked_until=decision.locked_until,
        )


def account_must_not_be_locked(locked_until: datetime | None, now: datetime) -> None:
    """Raise AccountLockedError while `now` is before `locked_until`.

    A lock expiry in the past is the same as no lock.
    """
    if locked_until is None or now >= locked_until:
        return
    raise AccountLockedError(remaining_minutes=max(minutes_until(locked_until, now), 1))
