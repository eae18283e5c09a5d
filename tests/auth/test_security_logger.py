"""Tests for SecurityLogger - audit rows never fail the caller."""

from unittest.mock import MagicMock

import pytest
from psycopg2.extras import Json

from auth.security_logger import SecurityEvent, SecurityLogger


class TestSecurityLogger:
    """Append-only audit writes."""

    @pytest.mark.asyncio
    async def test_writes_row(self):
        postgres = MagicMock()

        await SecurityLogger(postgres).log(
            SecurityEvent.LOGIN_FAILED,
            email="jane@example.com",
            user_id=4,
            ip_address="192.0.2.10",
            details={"attempts": 2},
        )

        query, params = postgres.execute.call_args.args
        assert "INSERT INTO security_events" in query
        assert params[:5] == ("login_failed", "jane@example.com", 4, "192.0.2.10", None)
        assert isinstance(params[5], Json)

    @pytest.mark.asyncio
    async def test_empty_details_stored_as_null(self):
        postgres = MagicMock()

        await SecurityLogger(postgres).log(SecurityEvent.USER_REGISTERED, user_id=1)

        assert postgres.execute.call_args.args[1][5] is None

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self, caplog):
        postgres = MagicMock()
        postgres.execute.side_effect = RuntimeError("db down")

        await SecurityLogger(postgres).log(SecurityEvent.ACCOUNT_LOCKED, user_id=9)

        assert "account_locked" in caplog.text

    @pytest.mark.asyncio
    async def test_write_waits_for_a_pool_slot(self):
        postgres = MagicMock()
        order = []
        postgres.slot.return_value.__aenter__.side_effect = lambda: order.append("slot")
        postgres.execute.side_effect = lambda *args: order.append("insert")

        await SecurityLogger(postgres).log(SecurityEvent.LOGIN_SUCCEEDED, user_id=3)

        assert order == ["slot", "insert"]
