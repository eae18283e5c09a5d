"""Business rules for account registration and verification.

Each rule is a plain function that raises a typed AuthError when broken and
returns None otherwise. Callers run them in a fixed order so the first broken
rule is the one reported.
"""

import re
from datetime import date, datetime

from auth.exceptions import (
    AccountInactiveError,
    AlreadyVerifiedError,
    ConflictError,
    ValidationError,
    VerificationTokenExpiredError,
    VerificationTokenNotFoundError,
)
from auth.types import AccountStatus, UserAccount
from utils.timezone import years_since

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")

MIN_PASSWORD_LENGTH = 8
MAX_FULL_NAME_LENGTH = 100


def email_must_be_valid(email: str) -> None:
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email", "Invalid email format")


def email_must_be_unique(email_taken: bool) -> None:
    if email_taken:
        raise ConflictError("email", "Email already exists in the system")


def password_must_meet_requirements(password: str) -> None:
    """Length >= 8 and at least one uppercase, lowercase, digit and symbol."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if not any(c.isupper() for c in password):
        raise ValidationError(
            "password", "Password must contain at least one uppercase letter"
        )
    if not any(c.islower() for c in password):
        raise ValidationError(
            "password", "Password must contain at least one lowercase letter"
        )
    if not any(c.isdigit() for c in password):
        raise ValidationError("password", "Password must contain at least one number")
    if all(c.isalnum() for c in password):
        raise ValidationError(
            "password", "Password must contain at least one special character"
        )


def full_name_must_be_valid(full_name: str) -> None:
    if not full_name.strip():
        raise ValidationError("full_name", "Full name is required")
    if len(full_name) > MAX_FULL_NAME_LENGTH:
        raise ValidationError(
            "full_name",
            f"Full name must not exceed {MAX_FULL_NAME_LENGTH} characters",
        )


def phone_must_be_valid(phone: str) -> None:
    if not PHONE_PATTERN.match(phone):
        raise ValidationError("phone_number", "Invalid phone number format")


def phone_must_be_unique(phone_taken: bool) -> None:
    if phone_taken:
        raise ConflictError("phone_number", "Phone number already exists in the system")


def user_must_be_at_least_age(
    date_of_birth: date | None, minimum_age: int, today: date
) -> None:
    if date_of_birth is None:
        return
    if date_of_birth > today:
        raise ValidationError("date_of_birth", "Invalid date of birth")
    if years_since(date_of_birth, today) < minimum_age:
        raise ValidationError(
            "date_of_birth", f"User must be at least {minimum_age} years old"
        )


def name_part_must_not_be_empty(field: str, value: str) -> None:
    if not value.strip():
        label = field.replace("_", " ").capitalize()
        raise ValidationError(field, f"{label} cannot be empty")


def verification_token_must_exist(account: UserAccount | None) -> UserAccount:
    if account is None:
        raise VerificationTokenNotFoundError("Invalid verification token")
    return account


def user_must_not_be_already_verified(email_verified_at: datetime | None) -> None:
    if email_verified_at is not None:
        raise AlreadyVerifiedError()


def verification_token_must_not_be_expired(
    token_expiry: datetime | None, now: datetime
) -> None:
    if token_expiry is None:
        raise VerificationTokenExpiredError("Verification token expiry not found")
    if now > token_expiry:
        raise VerificationTokenExpiredError()


def account_must_be_active(status: AccountStatus) -> None:
    if status != AccountStatus.ACTIVE:
        raise AccountInactiveError(
            "Account is not active. Please verify your email or contact support."
        )


def split_full_name(full_name: str) -> tuple[str, str]:
    """First whitespace-separated token and the rest joined by single spaces."""
    parts = full_name.split()
    if not parts:
        raise ValidationError("full_name", "Full name cannot be empty")
    return parts[0], " ".join(parts[1:])


def username_from_email(email: str) -> str:
    """Candidate username: the local part of the email address."""
    return email.split("@", 1)[0]
