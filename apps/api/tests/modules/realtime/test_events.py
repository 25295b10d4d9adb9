"""
Tests for realtime event payloads, channel selection and publishing.
"""

import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from pydantic import ValidationError

from paperly.core.auth import CurrentUser
from paperly.modules.realtime.events import (
    ADMIN_CHANNEL,
    TEACHER_EVENTS_CHANNEL,
    PaymentUpdatedData,
    PaymentUpdatedEvent,
    SubmissionCreatedEvent,
    TokenCreatedEvent,
    parse_event,
    teacher_channel,
    user_channel,
)
from paperly.modules.realtime.models import RealtimeEvent
from paperly.modules.realtime.service import (
    channels_for_user,
    create_realtime_event,
    publish_events,
    to_message,
)
from paperly.modules.users.models import UserRole

SERVICE = "paperly.modules.realtime.service"


class TestParseEvent:
    def test_picks_variant_by_event_type(self, now):
        teacher_id = uuid4()
        event = parse_event(
            {
                "event_type": "token_created",
                "data": {"teacher_id": str(teacher_id), "expires_at": now.isoformat()},
            }
        )

        assert isinstance(event, TokenCreatedEvent)
        assert event.data.teacher_id == teacher_id

    def test_submission_created(self):
        event = parse_event(
            {
                "event_type": "submission_created",
                "data": {
                    "submission_id": str(uuid4()),
                    "teacher_id": str(uuid4()),
                    "teacher_name": "Asha Rao",
                    "subject": "Physics",
                },
            }
        )

        assert isinstance(event, SubmissionCreatedEvent)
        assert event.data.subject == "Physics"

    def test_unknown_event_type(self):
        with pytest.raises(ValidationError):
            parse_event({"event_type": "something_else", "data": {}})

    def test_data_must_match_variant(self):
        with pytest.raises(ValidationError):
            parse_event({"event_type": "payment_updated", "data": {"teacher_name": "x"}})


class TestChannels:
    def test_channel_names(self):
        some_id = uuid4()
        assert user_channel(some_id) == f"user_{some_id}"
        assert teacher_channel(some_id) == f"teacher_{some_id}"

    @pytest.mark.asyncio
    async def test_admin_gets_broadcast_and_token_channels(self, mock_db):
        admin = CurrentUser(id=uuid4(), email="admin@example.com", role=UserRole.ADMIN)

        channels = await channels_for_user(mock_db, admin)

        assert channels == [user_channel(admin.id), ADMIN_CHANNEL, TEACHER_EVENTS_CHANNEL]

    @pytest.mark.asyncio
    async def test_teacher_gets_linked_teacher_channels(self, mock_db):
        user = CurrentUser(id=uuid4(), email="t@example.com", role=UserRole.TEACHER)
        teacher_id = uuid4()
        with patch(f"{SERVICE}.teacher_repository") as repo:
            repo.list_ids_for_profile = AsyncMock(return_value=[teacher_id])

            channels = await channels_for_user(mock_db, user)

        assert channels == [user_channel(user.id), teacher_channel(teacher_id)]
        assert ADMIN_CHANNEL not in channels
        assert TEACHER_EVENTS_CHANNEL not in channels


class TestRecordAndPublish:
    @pytest.mark.asyncio
    async def test_create_stores_json_data(self, mock_db):
        payload = PaymentUpdatedEvent(
            data=PaymentUpdatedData(
                submission_id=uuid4(),
                teacher_id=uuid4(),
                payment_status="completed",
                payment_amount=Decimal("1500.00"),
            )
        )

        event = await create_realtime_event(mock_db, payload, ADMIN_CHANNEL)

        assert event.event_type == "payment_updated"
        assert event.channel == ADMIN_CHANNEL
        assert event.data["payment_amount"] == "1500.00"
        mock_db.add.assert_called_once_with(event)
        mock_db.flush.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_counts_successes(self, mock_redis, now):
        events = [
            RealtimeEvent(
                id=uuid4(),
                event_type="token_created",
                channel=ADMIN_CHANNEL,
                data={"n": i},
                created_at=now + timedelta(seconds=i),
            )
            for i in range(3)
        ]

        assert await publish_events(mock_redis, events) == 3

        channel, body = mock_redis.publish.call_args.args
        assert channel == ADMIN_CHANNEL
        assert json.loads(body) == to_message(events[-1])

    @pytest.mark.asyncio
    async def test_publish_without_redis(self, now):
        event = RealtimeEvent(
            id=uuid4(), event_type="token_created", channel=ADMIN_CHANNEL, data={}, created_at=now
        )

        assert await publish_events(None, [event]) == 0

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(self, mock_redis, now):
        mock_redis.publish = AsyncMock(side_effect=ConnectionError("down"))
        event = RealtimeEvent(
            id=uuid4(), event_type="token_created", channel=ADMIN_CHANNEL, data={}, created_at=now
        )

        assert await publish_events(mock_redis, [event]) == 0
