"""Time and request-context helpers shared by the account service packages."""

from utils.timezone import minutes_until, now_utc, parse_iso, to_utc, years_since
from utils.user_context import (
    clear_current_user_id,
    get_current_user_id,
    reset_current_user_id,
    set_current_user_id,
    user_context,
)
