"""
Unit tests for the rate limiter.

These tests cover:
- The pure attempt decision (counting, blocking, window reset)
- check_rate_limit persistence and commit, including a concurrent first attempt
- enforce_rate_limit raising with a retry hint
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from paperly.modules.rate_limits import repository
from paperly.modules.rate_limits.models import RateLimit
from paperly.modules.rate_limits.service import (
    LOGIN_POLICY,
    RateLimitExceededError,
    apply_attempt,
    check_rate_limit,
    enforce_rate_limit,
)

START = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
WINDOW = timedelta(minutes=15)


def _record(count: int = 1, blocked_until: datetime | None = None) -> RateLimit:
    return RateLimit(
        identifier="a@example.com",
        action="login",
        count=count,
        window_start=START,
        blocked_until=blocked_until,
    )


class TestApplyAttempt:
    def test_attempts_up_to_max_are_allowed(self):
        record = _record()
        for expected in range(2, 6):
            decision = apply_attempt(record, START + timedelta(minutes=1), 5, WINDOW)
            assert decision.allowed
            assert decision.count == expected

    def test_attempt_after_max_is_blocked_until_window_end(self):
        record = _record(count=5)
        now = START + timedelta(minutes=5)

        decision = apply_attempt(record, now, 5, WINDOW)

        assert not decision.allowed
        assert record.blocked_until == START + WINDOW
        assert decision.retry_after_seconds == 600

    def test_blocked_record_stays_blocked(self):
        record = _record(count=5, blocked_until=START + WINDOW)

        decision = apply_attempt(record, START + timedelta(minutes=14), 5, WINDOW)

        assert not decision.allowed
        assert decision.retry_after_seconds == 60
        assert record.count == 5

    def test_first_attempt_after_window_resets(self):
        record = _record(count=5, blocked_until=START + WINDOW)
        later = START + WINDOW

        decision = apply_attempt(record, later, 5, WINDOW)

        assert decision.allowed
        assert decision.count == 1
        assert record.count == 1
        assert record.window_start == later
        assert record.blocked_until is None


class TestCheckRateLimit:
    @pytest.mark.asyncio
    async def test_first_attempt_creates_record(self, mock_db):
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(return_value=None)
            mock_repo.insert_if_absent = AsyncMock(return_value=True)

            decision = await check_rate_limit(
                mock_db, " A@Example.com ", "login", 5, WINDOW, now=START
            )

            assert decision.allowed
            assert decision.count == 1
            mock_repo.insert_if_absent.assert_called_once_with(
                mock_db, "a@example.com", "login", window_start=START
            )
            mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_concurrent_first_attempt_counts_against_existing_row(self, mock_db):
        record = _record(count=1)
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(side_effect=[None, record])
            mock_repo.insert_if_absent = AsyncMock(return_value=False)

            decision = await check_rate_limit(
                mock_db, "a@example.com", "login", 5, WINDOW, now=START + timedelta(seconds=1)
            )

            assert decision.allowed
            assert decision.count == 2
            assert record.count == 2
            assert mock_repo.get_for_update.call_count == 2
            mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_existing_record_skips_insert(self, mock_db):
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(return_value=_record(count=1))
            mock_repo.insert_if_absent = AsyncMock()

            await check_rate_limit(mock_db, "a@example.com", "login", 5, WINDOW, now=START)

            mock_repo.insert_if_absent.assert_not_called()

    @pytest.mark.asyncio
    async def test_sixth_attempt_in_window_is_rejected(self, mock_db):
        record = _record(count=5)
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(return_value=record)

            decision = await check_rate_limit(
                mock_db, "a@example.com", "login", 5, WINDOW, now=START + timedelta(minutes=2)
            )

            assert not decision.allowed
            mock_db.commit.assert_called_once()


class TestEnforceRateLimit:
    @pytest.mark.asyncio
    async def test_raises_with_retry_after(self, mock_db):
        record = _record(count=5)
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(return_value=record)

            with pytest.raises(RateLimitExceededError) as exc_info:
                await enforce_rate_limit(
                    mock_db, "a@example.com", LOGIN_POLICY, now=START + timedelta(minutes=10)
                )

            assert exc_info.value.status_code == 429
            assert exc_info.value.error_code == "RATE_LIMITED"
            assert exc_info.value.retry_after_seconds == 300

    @pytest.mark.asyncio
    async def test_allowed_attempt_returns_decision(self, mock_db):
        with patch("paperly.modules.rate_limits.service.repository") as mock_repo:
            mock_repo.get_for_update = AsyncMock(return_value=_record(count=2))

            decision = await enforce_rate_limit(
                mock_db, "a@example.com", LOGIN_POLICY, now=START + timedelta(minutes=1)
            )

            assert decision.count == 3


class TestInsertIfAbsent:
    @pytest.mark.asyncio
    async def test_insert_ignores_existing_row(self, mock_db):
        mock_db.execute.return_value = MagicMock(
            scalar_one_or_none=MagicMock(return_value=None)
        )

        inserted = await repository.insert_if_absent(
            mock_db, "a@example.com", "login", window_start=START
        )

        assert inserted is False
        statement = mock_db.execute.call_args.args[0]
        sql = str(statement.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (identifier, action) DO NOTHING" in sql

    @pytest.mark.asyncio
    async def test_insert_reports_new_row(self, mock_db):
        mock_db.execute.return_value = MagicMock(
            scalar_one_or_none=MagicMock(return_value=uuid4())
        )

        assert await repository.insert_if_absent(
            mock_db, "a@example.com", "login", window_start=START
        )
