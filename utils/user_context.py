"""The authenticated account id for the current request, held in a contextvar.

AuthMiddleware sets it once the bearer token checks out; route handlers for
/users/me read it instead of trusting any id supplied by the client.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token

_current_user_id: ContextVar[int | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> int:
    """
    Account id of the caller.

    Raises RuntimeError when called outside an authenticated request, which
    means a protected handler was reached without going through AuthMiddleware.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. Account-scoped code must run inside an "
            "authenticated request or a user_context() block."
        )
    return user_id


def set_current_user_id(user_id: int) -> Token:
    """Bind user_id to the current context. Pass the token to reset_current_user_id()."""
    return _current_user_id.set(user_id)


def reset_current_user_id(token: Token) -> None:
    _current_user_id.reset(token)


def clear_current_user_id() -> None:
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: int):
    """
    Act as user_id for the duration of the block, then restore the caller.

    Example:
        with user_context(42):
            profile = await profile_service.get_profile(get_current_user_id())
    """
    token = set_current_user_id(user_id)
    try:
        yield
    finally:
        reset_current_user_id(token)
