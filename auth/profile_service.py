"""Profile reads and self-service account changes."""

import logging

from auth import rules
from auth.config import AuthConfig
from auth.exceptions import NotFoundError
from auth.profile_cache import ProfileCache
from auth.protocols import UserRepository
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.types import ProfileUpdate, UserProfile
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ProfileService:
    """Cache-aside profile reads plus profile updates and account deletion.

    Every write evicts the cached profile after the repository commit, so the
    next read repopulates from the system of record.
    """

    def __init__(
        self,
        config: AuthConfig,
        repository: UserRepository,
        profile_cache: ProfileCache,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._repo = repository
        self._cache = profile_cache
        self._security_logger = security_logger

    async def get_profile(self, user_id: int) -> UserProfile:
        """
        Profile for user_id, served from cache when possible.

        Raises:
            NotFoundError: No such account (or it was deleted).
        """
        cached = await self._cache.get(user_id)
        if cached is not None:
            return cached

        async with self._repo.transaction() as tx:
            account = await self._repo.find_by_id(tx, user_id)
        if account is None:
            raise NotFoundError(f"User not found by id {user_id}")

        profile = UserProfile.from_account(account)
        await self._cache.put(profile)
        return profile

    async def update_profile(self, user_id: int, changes: ProfileUpdate) -> UserProfile:
        """
        Apply the fields set in changes. Unset and null fields are left alone.

        Raises:
            NotFoundError: No such account.
            ValidationError: A new value broke a rule.
            ConflictError: New email or phone belongs to another account.
        """
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        now = now_utc()

        async with self._repo.transaction() as tx:
            account = await self._repo.find_by_id(tx, user_id)
            if account is None:
                raise NotFoundError(f"User not found by id {user_id}")

            if "first_name" in data:
                rules.name_part_must_not_be_empty("first_name", data["first_name"])
                account.first_name = data["first_name"].strip()
            if "last_name" in data:
                rules.name_part_must_not_be_empty("last_name", data["last_name"])
                account.last_name = data["last_name"].strip()
            if "email" in data:
                email = data["email"].lower().strip()
                rules.email_must_be_valid(email)
                if email != account.email.lower():
                    rules.email_must_be_unique(await self._repo.email_exists(tx, email))
                account.email = email
            if "phone_number" in data:
                phone = data["phone_number"]
                rules.phone_must_be_valid(phone)
                if phone != account.phone_number:
                    rules.phone_must_be_unique(await self._repo.phone_exists(tx, phone))
                account.phone_number = phone
            if "birth_of_date" in data:
                rules.user_must_be_at_least_age(
                    data["birth_of_date"], self._config.minimum_age_years, now.date()
                )
                account.birth_of_date = data["birth_of_date"]
            if "avatar" in data:
                account.avatar = data["avatar"]

            account.updated_at = now
            account = await self._repo.update(tx, account)

        await self._cache.evict(user_id, account.updated_at)
        logger.info("Profile updated for user_id=%s fields=%s", user_id, sorted(data))
        return UserProfile.from_account(account)

    async def delete_account(self, user_id: int) -> None:
        """
        Soft-delete the account. Existing tokens stay valid until they expire.

        Raises:
            NotFoundError: No such account.
        """
        async with self._repo.transaction() as tx:
            deleted = await self._repo.soft_delete(tx, user_id)
        if not deleted:
            raise NotFoundError(f"User not found by id {user_id}")

        await self._cache.evict(user_id, now_utc())
        await self._security_logger.log(SecurityEvent.ACCOUNT_DELETED, user_id=user_id)
        logger.info("Account soft-deleted user_id=%s", user_id)
