"""
Tests for the cleanup job and its scheduling.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from paperly.core import scheduler
from paperly.modules.maintenance import jobs
from paperly.modules.maintenance.service import (
    RATE_LIMIT_RETENTION,
    REALTIME_EVENT_RETENTION,
    SECURITY_EVENT_RETENTION,
    cleanup_expired_data,
)

SERVICE = "paperly.modules.maintenance.service"


@pytest.fixture
def repositories():
    with (
        patch(f"{SERVICE}.SessionRepository") as sessions,
        patch(f"{SERVICE}.token_repository") as tokens,
        patch(f"{SERVICE}.rate_limit_repository") as rate_limits,
        patch(f"{SERVICE}.realtime_service") as realtime,
        patch(f"{SERVICE}.SecurityEventRepository") as security_events,
    ):
        sessions.deactivate_expired = AsyncMock(return_value=2)
        tokens.invalidate_expired = AsyncMock(return_value=3)
        rate_limits.delete_stale = AsyncMock(return_value=4)
        realtime.delete_events_older_than = AsyncMock(return_value=5)
        security_events.delete_older_than = AsyncMock(return_value=6)
        yield {
            "sessions": sessions,
            "tokens": tokens,
            "rate_limits": rate_limits,
            "realtime": realtime,
            "security_events": security_events,
        }


class TestCleanupExpiredData:
    @pytest.mark.asyncio
    async def test_reports_counts_and_commits(self, mock_db, now, repositories):
        counts = await cleanup_expired_data(mock_db, now)

        assert counts == {
            "sessions_revoked": 2,
            "tokens_invalidated": 3,
            "rate_limits_deleted": 4,
            "realtime_events_deleted": 5,
            "security_events_deleted": 6,
        }
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_retention_cutoffs(self, mock_db, now, repositories):
        await cleanup_expired_data(mock_db, now)

        repositories["sessions"].deactivate_expired.assert_called_once_with(mock_db, now)
        repositories["tokens"].invalidate_expired.assert_called_once_with(mock_db, now)
        repositories["rate_limits"].delete_stale.assert_called_once_with(
            mock_db, now - RATE_LIMIT_RETENTION
        )
        repositories["realtime"].delete_events_older_than.assert_called_once_with(
            mock_db, now - REALTIME_EVENT_RETENTION
        )
        repositories["security_events"].delete_older_than.assert_called_once_with(
            mock_db, now - SECURITY_EVENT_RETENTION
        )


def _session_maker(db):
    maker = MagicMock()
    maker.return_value.__aenter__.return_value = db
    return maker


class TestCleanupJob:
    @pytest.mark.asyncio
    async def test_run_cleanup_includes_execution_time(self, mock_db):
        with (
            patch.object(jobs, "async_session_maker", _session_maker(mock_db)),
            patch.object(
                jobs.service,
                "cleanup_expired_data",
                AsyncMock(return_value={"sessions_revoked": 1}),
            ),
        ):
            result = await jobs.run_cleanup()

        assert result["sessions_revoked"] == 1
        assert "executed_at" in result

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_propagates(self, mock_db):
        with (
            patch.object(jobs, "async_session_maker", _session_maker(mock_db)),
            patch.object(
                jobs.service, "cleanup_expired_data", AsyncMock(side_effect=RuntimeError("db gone"))
            ),
        ):
            with pytest.raises(RuntimeError):
                await jobs.run_cleanup()

        mock_db.rollback.assert_called_once()

    @pytest.mark.asyncio
    async def test_registered_job_can_be_triggered(self, mock_db):
        with patch.dict(scheduler._job_registry, clear=True):
            jobs.register_maintenance_jobs()
            assert [j["job_id"] for j in scheduler.list_registered_jobs()] == [
                jobs.JOB_ID_CLEANUP
            ]

            with (
                patch.object(jobs, "async_session_maker", _session_maker(mock_db)),
                patch.object(jobs.service, "cleanup_expired_data", AsyncMock(return_value={})),
            ):
                outcome = await scheduler.trigger_job_manually(jobs.JOB_ID_CLEANUP)

        assert outcome["status"] == "success"
        assert outcome["job_id"] == jobs.JOB_ID_CLEANUP

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        with pytest.raises(ValueError):
            await scheduler.trigger_job_manually("no_such_job")
