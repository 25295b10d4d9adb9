"""
Realtime Router

Endpoints:
- WS /realtime/ws?token=<access token> - Live event feed
- GET /realtime/events?since=<timestamp> - Events missed while disconnected

The WebSocket subscribes to the caller's Redis channels and forwards each
message as JSON text. Delivery is at-most-once; after reconnecting,
clients pull `/realtime/events` with the timestamp of the last event they
saw.
"""

import asyncio
import logging
from datetime import datetime

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser, authenticate_token, get_current_user
from paperly.core.database import async_session_maker, get_db
from paperly.core.exceptions import raise_internal_error
from paperly.core.redis import get_redis
from paperly.modules.realtime import service
from paperly.modules.realtime.schemas import RealtimeEventListResponse, RealtimeEventResponse

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward(pubsub: PubSub, websocket: WebSocket) -> None:
    async for message in pubsub.listen():
        if message.get("type") != "message":
            continue
        await websocket.send_text(message["data"])


async def _receive(websocket: WebSocket) -> None:
    # Clients only send keep-alives
    while True:
        text = await websocket.receive_text()
        if text == "ping":
            await websocket.send_text("pong")


@router.websocket("/ws")
async def realtime_ws(
    websocket: WebSocket,
    token: str = Query(...),
    redis: Redis | None = Depends(get_redis),
) -> None:
    """Stream events for the authenticated user until the client disconnects."""
    try:
        user = authenticate_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    if redis is None:
        await websocket.close(
            code=status.WS_1011_INTERNAL_ERROR, reason="Live updates unavailable"
        )
        return

    async with async_session_maker() as db:
        channels = await service.channels_for_user(db, user)

    await websocket.accept()
    pubsub = redis.pubsub()
    await pubsub.subscribe(*channels)
    logger.info(f"Realtime connection for {user.id} on {len(channels)} channel(s)")

    tasks = {
        asyncio.create_task(_forward(pubsub, websocket)),
        asyncio.create_task(_receive(websocket)),
    }
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error(f"Realtime connection for {user.id} failed: {error}")
    finally:
        await pubsub.unsubscribe()
        await pubsub.aclose()
        logger.info(f"Realtime connection for {user.id} closed")


@router.get("/events", response_model=RealtimeEventListResponse, summary="Recent Events")
async def recent_events(
    since: datetime | None = Query(None, description="Only events after this time"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> RealtimeEventListResponse:
    """Events on the caller's channels, oldest first."""
    try:
        channels = await service.channels_for_user(db, user)
        events = await service.list_recent_events(db, channels, since=since, limit=limit)
        return RealtimeEventListResponse(
            events=[RealtimeEventResponse.model_validate(e) for e in events],
            channels=channels,
        )
    except Exception as e:
        raise_internal_error(e, "listing realtime events")
