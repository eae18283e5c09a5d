"""Rate limiting for verification email resends.

The counter lives on the account record itself (resend count plus the time of
the last resend), so this module only decides; the account service persists.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from auth.config import AuthConfig
from auth.exceptions import VerificationRateLimitedError

RESEND_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class ResendUpdate:
    """Counter values to persist after an allowed resend."""

    verification_resend_count: int
    last_verification_resend_at: datetime


class VerificationResendLimiter:
    """Caps verification resends per rolling hour."""

    def __init__(self, max_per_hour: int):
        self.max_per_hour = max_per_hour

    @classmethod
    def from_config(cls, config: AuthConfig) -> "VerificationResendLimiter":
        return cls(config.max_verification_resends_per_hour)

    def effective_count(
        self, resend_count: int, last_resend_at: datetime | None, now: datetime
    ) -> int:
        """Resends that still count; resets once the last one is an hour old."""
        if last_resend_at is not None and last_resend_at <= now - RESEND_WINDOW:
            return 0
        return resend_count

    def check_and_increment(
        self, resend_count: int, last_resend_at: datetime | None, now: datetime
    ) -> ResendUpdate:
        """Check the cap and return the incremented counter.

        Raises:
            VerificationRateLimitedError: If the cap is reached within the hour.
        """
        count = self.effective_count(resend_count, last_resend_at, now)

        if last_resend_at is not None and count >= self.max_per_hour:
            retry_after = (last_resend_at + RESEND_WINDOW) - now
            raise VerificationRateLimitedError(
                max_per_hour=self.max_per_hour,
                retry_after_seconds=max(int(retry_after.total_seconds()), 1),
            )

        return ResendUpdate(
            verification_resend_count=count + 1,
            last_verification_resend_at=now,
        )

    def get_remaining(
        self, resend_count: int, last_resend_at: datetime | None, now: datetime
    ) -> int:
        """Resends still allowed in the current hour."""
        count = self.effective_count(resend_count, last_resend_at, now)
        return max(self.max_per_hour - count, 0)
