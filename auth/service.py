"""Account service - registration, verification, login and sessions."""

import logging
from datetime import date, datetime

from auth import rules
from auth.config import AuthConfig
from auth.exceptions import (
    AccountLockedError,
    AlreadyVerifiedError,
    InternalAuthError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    SessionRevokedError,
    VerificationRateLimitedError,
)
from auth.lockout import AccountLockPolicy, FailedLoginUpdate, account_must_not_be_locked
from auth.passwords import PasswordHasher
from auth.profile_cache import ProfileCache
from auth.protocols import Transaction, UserRepository
from auth.rate_limiter import VerificationResendLimiter
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from auth.tokens import TokenIssuer
from auth.types import (
    AccountStatus,
    DeviceInfo,
    RegistrationResult,
    Role,
    Session,
    TokenClaims,
    TokenPair,
    UserAccount,
    UserInfo,
    UserProfile,
    VerificationResendResult,
)
from auth.verification import ConsumedTokenStore, generate_verification_token
from core.event_bus import EventDispatcher
from core.events import UserLoggedIn, UserRegistered, VerificationResent
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

MAX_USERNAME_SUFFIX = 1000


def _normalize_email(email: str) -> str:
    return email.lower().strip()


class AccountService:
    """Orchestrates the account lifecycle.

    Handles:
    - Registration (PENDING account plus verification token)
    - Email verification and verification resends
    - Password login with brute-force lockout
    - Refresh token rotation, logout and access token authentication

    Account reads and writes for one operation share a single repository
    transaction. Audit rows, cache evictions and event publishing happen
    outside it.
    """

    def __init__(
        self,
        config: AuthConfig,
        repository: UserRepository,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        session_manager: SessionManager,
        profile_cache: ProfileCache,
        consumed_tokens: ConsumedTokenStore,
        dispatcher: EventDispatcher,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._repo = repository
        self._hasher = hasher
        self._tokens = token_issuer
        self._sessions = session_manager
        self._profile_cache = profile_cache
        self._consumed_tokens = consumed_tokens
        self._dispatcher = dispatcher
        self._security_logger = security_logger
        self._lock_policy = AccountLockPolicy.from_config(config)
        self._resend_limiter = VerificationResendLimiter.from_config(config)

    # Registration and verification

    async def _unique_username(self, tx: Transaction, candidate: str) -> str:
        """candidate, or candidate1, candidate2... whichever is free first."""
        if not await self._repo.username_exists(tx, candidate):
            return candidate
        for suffix in range(1, MAX_USERNAME_SUFFIX):
            username = f"{candidate}{suffix}"
            if not await self._repo.username_exists(tx, username):
                return username
        raise InternalAuthError(f"No free username derived from {candidate!r}")

    async def register(
        self,
        email: str,
        password: str,
        full_name: str,
        phone_number: str | None = None,
        date_of_birth: date | None = None,
    ) -> RegistrationResult:
        """Create a PENDING account and announce it.

        Rules run in order and the first broken one is raised: email format,
        email uniqueness, password strength, full name, phone format and
        uniqueness, minimum age.

        Raises:
            ValidationError: A field broke a rule.
            ConflictError: Email or phone already registered.
        """
        email = _normalize_email(email)
        now = now_utc()

        rules.email_must_be_valid(email)
        async with self._repo.transaction() as tx:
            rules.email_must_be_unique(await self._repo.email_exists(tx, email))
            rules.password_must_meet_requirements(password)
            rules.full_name_must_be_valid(full_name)
            if phone_number is not None:
                rules.phone_must_be_valid(phone_number)
                rules.phone_must_be_unique(await self._repo.phone_exists(tx, phone_number))
            rules.user_must_be_at_least_age(
                date_of_birth, self._config.minimum_age_years, now.date()
            )

            first_name, last_name = rules.split_full_name(full_name)
            username = await self._unique_username(tx, rules.username_from_email(email))
            password_hash = await self._hasher.hash(password)
            token, token_expiry = generate_verification_token(
                now, self._config.verification_token_expiry_hours
            )

            account = await self._repo.insert(
                tx,
                UserAccount(
                    email=email,
                    username=username,
                    first_name=first_name,
                    last_name=last_name,
                    phone_number=phone_number,
                    birth_of_date=date_of_birth,
                    password_hash=password_hash,
                    status=AccountStatus.PENDING,
                    role=Role.CUSTOMER,
                    verification_token=token,
                    verification_token_expiry=token_expiry,
                    created_at=now,
                    updated_at=now,
                ),
            )

        logger.info("Registered user_id=%s", account.id)
        await self._security_logger.log(
            SecurityEvent.USER_REGISTERED, email=account.email, user_id=account.id
        )
        await self._dispatcher.dispatch(UserRegistered.create(account))

        return RegistrationResult(user_id=str(account.id), email=account.email)

    async def verify_email(self, token: str) -> UserProfile:
        """Consume a verification token and activate the account.

        Raises:
            VerificationTokenNotFoundError: Token matches no account.
            AlreadyVerifiedError: Account (or this token) already verified.
            VerificationTokenExpiredError: Token is past its expiry.
        """
        now = now_utc()

        async with self._repo.transaction() as tx:
            account = await self._repo.find_by_verification_token(tx, token)
            if account is None and await self._consumed_tokens.was_consumed(token):
                raise AlreadyVerifiedError()
            account = rules.verification_token_must_exist(account)
            rules.user_must_not_be_already_verified(account.email_verified_at)
            rules.verification_token_must_not_be_expired(account.verification_token_expiry, now)

            account.email_verified_at = now
            account.status = AccountStatus.ACTIVE
            account.verification_token = None
            account.verification_token_expiry = None
            account.updated_at = now
            account = await self._repo.update(tx, account)

        await self._consumed_tokens.mark(token, account.id)
        await self._profile_cache.evict(account.id, account.updated_at)
        await self._security_logger.log(
            SecurityEvent.EMAIL_VERIFIED, email=account.email, user_id=account.id
        )
        logger.info("Email verified for user_id=%s", account.id)

        return UserProfile.from_account(account)

    async def resend_verification(self, email: str) -> VerificationResendResult:
        """Issue a fresh verification token, at most N times per rolling hour.

        Raises:
            NotFoundError: No account with this email.
            AlreadyVerifiedError: Nothing left to verify.
            VerificationRateLimitedError: Resend cap reached.
        """
        email = _normalize_email(email)
        now = now_utc()

        account = None
        try:
            async with self._repo.transaction() as tx:
                account = await self._repo.find_by_email(tx, email)
                if account is None:
                    raise NotFoundError("User not found")
                rules.user_must_not_be_already_verified(account.email_verified_at)

                update = self._resend_limiter.check_and_increment(
                    account.verification_resend_count,
                    account.last_verification_resend_at,
                    now,
                )

                token, token_expiry = generate_verification_token(
                    now, self._config.verification_token_expiry_hours
                )
                account.verification_token = token
                account.verification_token_expiry = token_expiry
                account.verification_resend_count = update.verification_resend_count
                account.last_verification_resend_at = update.last_verification_resend_at
                account.updated_at = now
                account = await self._repo.update(tx, account)
        except VerificationRateLimitedError:
            await self._security_logger.log(
                SecurityEvent.VERIFICATION_RATE_LIMITED,
                email=account.email,
                user_id=account.id,
            )
            raise

        await self._security_logger.log(
            SecurityEvent.VERIFICATION_RESENT,
            email=account.email,
            user_id=account.id,
            details={"resend_count": account.verification_resend_count},
        )
        await self._dispatcher.dispatch(VerificationResent.create(account))

        return VerificationResendResult(
            user_id=str(account.id),
            email=account.email,
            verification_token=token,
            expires_at=token_expiry,
        )

    # Login and sessions

    async def _record_failed_login(
        self, tx: Transaction, account: UserAccount, now: datetime
    ) -> FailedLoginUpdate:
        """Persist the failure counter now; the login itself still fails."""
        update = self._lock_policy.register_failure(
            account.failed_login_attempts, account.last_failed_login_at, now
        )
        account.failed_login_attempts = update.failed_login_attempts
        account.last_failed_login_at = update.last_failed_login_at
        if update.locked:
            account.account_locked_until = update.account_locked_until
        account.updated_at = now
        await self._repo.update(tx, account)
        await tx.commit()
        return update

    async def _log_failed_login(
        self,
        email: str,
        account: UserAccount | None,
        update: FailedLoginUpdate | None,
        device: DeviceInfo,
    ) -> None:
        if account is None or update is None:
            await self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
                details={"reason": "unknown_email"},
            )
            return

        await self._security_logger.log(
            SecurityEvent.LOGIN_FAILED,
            email=account.email,
            user_id=account.id,
            ip_address=device.ip_address,
            user_agent=device.user_agent,
            details={"failed_attempts": update.failed_login_attempts},
        )
        if update.locked:
            logger.warning(
                "Account user_id=%s locked until %s", account.id, update.account_locked_until
            )
            await self._security_logger.log(
                SecurityEvent.ACCOUNT_LOCKED,
                email=account.email,
                user_id=account.id,
                ip_address=device.ip_address,
                details={"locked_until": update.account_locked_until.isoformat()},
            )

    async def _start_session(self, user_id: int) -> tuple[Session, str, str]:
        """Create a session and sign its token pair.

        The session is removed again if signing fails.
        """
        try:
            session = await self._sessions.create_session(user_id)
        except Exception as e:
            logger.error("Session store write failed for user_id=%s: %s", user_id, e)
            raise InternalAuthError("Session store unavailable") from e

        try:
            access_token, refresh_token = await self._tokens.issue_pair(
                user_id, session.session_id
            )
        except Exception:
            await self._sessions.revoke_session(session.session_id)
            raise

        return session, access_token, refresh_token

    def _token_pair(
        self, account: UserAccount, session: Session, access_token: str, refresh_token: str
    ) -> TokenPair:
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._tokens.access_ttl_seconds,
            session_id=session.session_id,
            user=UserInfo(
                id=str(account.id),
                email=account.email,
                full_name=account.display_name,
                role=account.role,
            ),
        )

    async def login(
        self, email: str, password: str, device_info: DeviceInfo | None = None
    ) -> TokenPair:
        """Password login.

        Flow:
        1. Look up the account; unknown emails fail like wrong passwords
        2. Refuse while a lock is in force
        3. Verify the password; on mismatch persist the failure counter
           (possibly locking the account) and fail
        4. Reset counters, stamp last login, persist
        5. Create a session and sign the token pair
        6. Publish UserLoggedIn

        Audit rows take their own connection, so they are written once the
        account transaction has closed.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            AccountLockedError: Lock in force.
            AccountInactiveError: Account not ACTIVE and activity is required.
        """
        email = _normalize_email(email)
        device = device_info or DeviceInfo()
        now = now_utc()
        account = None
        failure = None

        try:
            async with self._repo.transaction() as tx:
                account = await self._repo.find_by_email(tx, email)
                if account is None:
                    # Same Argon2 cost as a wrong password
                    await self._hasher.verify_dummy(password)
                    raise InvalidCredentialsError()

                account_must_not_be_locked(account.account_locked_until, now)

                if not await self._hasher.verify(password, account.password_hash):
                    failure = await self._record_failed_login(tx, account, now)
                    raise InvalidCredentialsError()

                if self._config.require_active_for_login:
                    rules.account_must_be_active(account.status)

                account.failed_login_attempts = 0
                account.last_failed_login_at = None
                account.account_locked_until = None
                account.last_login_at = now
                account.updated_at = now
                if self._hasher.needs_rehash(account.password_hash):
                    account.password_hash = await self._hasher.hash(password)
                account = await self._repo.update(tx, account)

                session, access_token, refresh_token = await self._start_session(account.id)
        except InvalidCredentialsError:
            await self._log_failed_login(email, account, failure, device)
            raise
        except AccountLockedError:
            await self._security_logger.log(
                SecurityEvent.LOGIN_BLOCKED_LOCKED,
                email=account.email,
                user_id=account.id,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
            )
            raise

        logger.info("Login succeeded for user_id=%s session_id=%s", account.id, session.session_id)
        await self._security_logger.log(
            SecurityEvent.LOGIN_SUCCEEDED,
            email=account.email,
            user_id=account.id,
            ip_address=device.ip_address,
            user_agent=device.user_agent,
            details={"session_id": session.session_id},
        )
        await self._dispatcher.dispatch(
            UserLoggedIn.create(account, session.session_id, device_info)
        )

        return self._token_pair(account, session, access_token, refresh_token)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair on a new session.

        The old session is revoked, so each refresh token works once.

        Raises:
            TokenExpiredError: Refresh token expired.
            InvalidTokenError: Refresh token malformed or not for this session.
            SessionRevokedError: Session logged out, rotated or expired.
        """
        claims = await self._tokens.verify_refresh(refresh_token)
        session = await self._sessions.get_session(claims.sid)
        if session.user_id != claims.user_id:
            raise InvalidTokenError("Token does not belong to this session")

        async with self._repo.transaction() as tx:
            account = await self._repo.find_by_id(tx, claims.user_id)

        # Only one concurrent refresh of the same token wins the delete
        if not await self._sessions.revoke_session(claims.sid):
            raise SessionRevokedError("Session already rotated")
        if account is None:
            raise SessionRevokedError("Account no longer exists")

        new_session, access_token, new_refresh_token = await self._start_session(account.id)

        await self._security_logger.log(
            SecurityEvent.SESSION_REFRESHED,
            email=account.email,
            user_id=account.id,
            details={"old_session_id": claims.sid, "session_id": new_session.session_id},
        )
        return self._token_pair(account, new_session, access_token, new_refresh_token)

    async def logout(self, session_id: str, user_id: int) -> None:
        """Revoke a session and drop the cached profile. Idempotent.

        Raises:
            InternalAuthError: Session store unreachable, session still live.
        """
        try:
            existed = await self._sessions.revoke_session(session_id)
        except Exception as e:
            logger.error("Session revoke failed for session_id=%s: %s", session_id, e)
            raise InternalAuthError("Session store unavailable") from e

        await self._profile_cache.evict(user_id)
        if existed:
            await self._security_logger.log(
                SecurityEvent.SESSION_REVOKED,
                user_id=user_id,
                details={"session_id": session_id},
            )

    async def authenticate(self, access_token: str) -> TokenClaims:
        """Validate an access token, and its session when configured to.

        Raises:
            TokenExpiredError: Token expired.
            InvalidTokenError: Token invalid.
            SessionRevokedError: Session gone (only with verify_session_on_request).
        """
        claims = await self._tokens.verify_access(access_token)
        if self._config.verify_session_on_request:
            session = await self._sessions.get_session(claims.sid)
            if session.user_id != claims.user_id:
                raise InvalidTokenError("Token does not belong to this session")
        return claims
