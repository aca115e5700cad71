"""Unit tests for OneTimePasscodeStore with a mocked asyncpg connection."""

import asyncio
import re
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from uuid import uuid4

import pytest

from authcore.errors import ErrorCode, AuthError
from authcore.services.otp_service import (
    EXPIRED_CODE_REASON,
    INVALID_CODE_REASON,
    OneTimePasscodeStore,
)


@pytest.fixture
def otp_store():
    return OneTimePasscodeStore(default_ttl_minutes=5)


def _make_otp_row(user_id, code="123456", expires_in=timedelta(minutes=5), is_used=False):
    """Create a dict that mimics an asyncpg Record for an otps row."""
    now = datetime.now(timezone.utc)
    return {
        "id": uuid4(),
        "user_id": user_id,
        "code": code,
        "expires_at": now + expires_in,
        "is_used": is_used,
        "created_at": now - timedelta(seconds=10),
    }


# ---------------------------------------------------------------------------
# generate_code
# ---------------------------------------------------------------------------

class TestGenerateCode:
    """Tests for code generation."""

    def test_six_ascii_digits(self):
        for _ in range(200):
            assert re.fullmatch(r"\d{6}", OneTimePasscodeStore.generate_code())

    def test_zero_padded(self):
        with patch("authcore.services.otp_service.secrets.randbelow", return_value=1):
            assert OneTimePasscodeStore.generate_code() == "000001"

    def test_upper_bound(self):
        with patch("authcore.services.otp_service.secrets.randbelow", return_value=999999):
            assert OneTimePasscodeStore.generate_code() == "999999"


# ---------------------------------------------------------------------------
# issue
# ---------------------------------------------------------------------------

class TestIssue:
    """Tests for issue: supersede then insert, in one transaction."""

    async def test_returns_six_digit_code(self, otp_store, db):
        code = await otp_store.issue(uuid4(), 5)
        assert re.fullmatch(r"\d{6}", code)

    async def test_runs_in_single_committed_transaction(self, otp_store, db):
        await otp_store.issue(uuid4())

        assert len(db.transactions) == 1
        assert db.transactions[0].committed is True

    async def test_locks_user_then_supersedes_then_inserts(self, otp_store, db):
        user_id = uuid4()
        db.execute.side_effect = ["SELECT 1", "UPDATE 1", "INSERT 0 1"]

        code = await otp_store.issue(user_id)

        assert db.execute.await_count == 3
        lock_sql, supersede_sql, insert_sql = (c[0][0] for c in db.execute.call_args_list)

        assert "FOR UPDATE" in lock_sql
        assert "UPDATE otps" in supersede_sql
        assert "SET is_used = TRUE" in supersede_sql
        assert "is_used = FALSE" in supersede_sql
        assert "expires_at > $2" in supersede_sql
        assert "INSERT INTO otps" in insert_sql

        supersede_args = db.execute.call_args_list[1][0]
        assert supersede_args[1] == user_id

        insert_args = db.execute.call_args_list[2][0]
        assert insert_args[2] == user_id
        assert insert_args[3] == code

    async def test_expiry_uses_ttl(self, otp_store, db):
        before = datetime.now(timezone.utc)
        await otp_store.issue(uuid4(), ttl_minutes=10)

        insert_args = db.execute.call_args_list[2][0]
        expires_at = insert_args[4]
        created_at = insert_args[5]
        assert expires_at - created_at == timedelta(minutes=10)
        assert created_at >= before

    async def test_defaults_ttl_from_store(self, db):
        store = OneTimePasscodeStore(default_ttl_minutes=3)
        await store.issue(uuid4())

        insert_args = db.execute.call_args_list[2][0]
        assert insert_args[4] - insert_args[5] == timedelta(minutes=3)

    async def test_storage_failure_is_translated(self, otp_store, db):
        db.execute.side_effect = OSError("connection reset")

        with pytest.raises(AuthError) as exc_info:
            await otp_store.issue(uuid4())

        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert db.transactions[0].rolled_back is True


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

class TestValidate:
    """Tests for validate (pure read)."""

    async def test_valid_code(self, otp_store, db):
        user_id = uuid4()
        row = _make_otp_row(user_id)
        db.fetchrow.return_value = row

        result = await otp_store.validate(user_id, "123456")

        assert result.valid is True
        assert result.otp_id == row["id"]
        assert result.reason is None
        db.execute.assert_not_awaited()

    async def test_query_selects_latest_unused_exact_code(self, otp_store, db):
        user_id = uuid4()
        await otp_store.validate(user_id, "000001")

        sql, arg_user, arg_code = db.fetchrow.call_args[0]
        assert "is_used = FALSE" in sql
        assert "ORDER BY created_at DESC" in sql
        assert "LIMIT 1" in sql
        assert arg_user == user_id
        assert arg_code == "000001"

    async def test_no_match_is_invalid(self, otp_store, db):
        db.fetchrow.return_value = None

        result = await otp_store.validate(uuid4(), "654321")

        assert result.valid is False
        assert result.reason == INVALID_CODE_REASON
        assert "invalid" in result.reason.lower()
        assert result.is_expired is False

    async def test_expired_code_reports_expiry(self, otp_store, db):
        user_id = uuid4()
        db.fetchrow.return_value = _make_otp_row(user_id, expires_in=timedelta(seconds=-1))

        result = await otp_store.validate(user_id, "123456")

        assert result.valid is False
        assert result.reason == EXPIRED_CODE_REASON
        assert result.is_expired is True

    async def test_superseded_code_is_invalid_and_new_code_valid(self, otp_store, db):
        """After a second issue the first code no longer matches an unused row."""
        user_id = uuid4()
        first = await otp_store.issue(user_id)
        second = await otp_store.issue(user_id)

        db.fetchrow.return_value = None
        stale = await otp_store.validate(user_id, first)
        assert stale.valid is False
        assert stale.reason == INVALID_CODE_REASON

        db.fetchrow.return_value = _make_otp_row(user_id, code=second)
        fresh = await otp_store.validate(user_id, second)
        assert fresh.valid is True

    async def test_storage_failure_is_translated(self, otp_store, db):
        db.fetchrow.side_effect = OSError("down")

        with pytest.raises(AuthError) as exc_info:
            await otp_store.validate(uuid4(), "123456")

        assert exc_info.value.status_code == 500


# ---------------------------------------------------------------------------
# invalidate
# ---------------------------------------------------------------------------

class TestInvalidate:
    """Tests for invalidate."""

    async def test_marks_used(self, otp_store, db):
        otp_id = uuid4()
        db.execute.return_value = "UPDATE 1"

        assert await otp_store.invalidate(otp_id) is True

        sql, arg = db.execute.call_args[0]
        assert "SET is_used = TRUE" in sql
        assert "WHERE id = $1" in sql
        assert "AND is_used = FALSE" in sql
        assert arg == otp_id

    async def test_idempotent(self, otp_store, db):
        otp_id = uuid4()
        db.execute.side_effect = ["UPDATE 1", "UPDATE 0"]

        assert await otp_store.invalidate(otp_id) is True
        assert await otp_store.invalidate(otp_id) is False

    async def test_only_one_concurrent_consumer_wins(self, otp_store, db):
        """Two verifiers that both validated the code race to consume it."""
        otp_id = uuid4()
        db.execute.side_effect = ["UPDATE 1", "UPDATE 0"]

        first, second = await asyncio.gather(
            otp_store.invalidate(otp_id),
            otp_store.invalidate(otp_id),
        )

        assert sorted([first, second]) == [False, True]

    async def test_storage_failure_is_translated(self, otp_store, db):
        db.execute.side_effect = OSError("down")

        with pytest.raises(AuthError) as exc_info:
            await otp_store.invalidate(uuid4())

        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR

    async def test_full_cycle(self, otp_store, db):
        """issue -> validate ok -> invalidate -> validate invalid."""
        user_id = uuid4()
        code = await otp_store.issue(user_id, 5)
        row = _make_otp_row(user_id, code=code)

        db.fetchrow.return_value = row
        first = await otp_store.validate(user_id, code)
        assert first.valid is True

        await otp_store.invalidate(first.otp_id)

        db.fetchrow.return_value = None
        second = await otp_store.validate(user_id, code)
        assert second.valid is False
        assert "invalid" in second.reason.lower()
