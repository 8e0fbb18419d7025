import asyncio
import json
import logging
from contextlib import suppress

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import redis.asyncio as redis

from ..config import REDIS_URL
from ..exceptions import MatchNotFound
from ..scoring import molkky
from ..sessions import MatchSessionStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter()

redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def _channel(mid: str) -> str:
    return f"molkky:{mid}"


async def broadcast(mid: str, message: dict) -> None:
    """Publish a scoreboard update for a match to all subscribers."""
    try:
        await redis_client.publish(_channel(mid), json.dumps(message, default=str))
    except redis.ConnectionError:
        logger.warning("Could not broadcast update for match %s; Redis unavailable", mid)


async def _current_summary(store: MatchSessionStore, mid: str) -> dict | None:
    try:
        session = await store.get(mid)
    except MatchNotFound:
        return None
    return molkky.summary(session.state)


# WS /api/v0/matches/{mid}/stream
@router.websocket("/matches/{mid}/stream")
async def match_stream(
    ws: WebSocket, mid: str, store: MatchSessionStore = Depends(get_store)
) -> None:
    """Push scoreboard summaries to spectators.

    A client joining mid-match first receives a ``SNAPSHOT`` of the
    current scoreboard, then every update published by :func:`broadcast`.
    """
    await ws.accept()
    channel = _channel(mid)
    try:
        async with redis_client.pubsub() as pubsub:
            await pubsub.subscribe(channel)
            current = await _current_summary(store, mid)
            if current is not None:
                await ws.send_json({"event": "SNAPSHOT", "summary": current})

            async def relay() -> None:
                try:
                    async for msg in pubsub.listen():
                        if msg.get("type") == "message":
                            await ws.send_text(msg["data"])
                except redis.ConnectionError:
                    logger.warning("Lost Redis subscription for match %s", mid)
                    await ws.close(code=1011)

            relay_task = asyncio.create_task(relay())
            try:
                while True:
                    await ws.receive_text()
            except WebSocketDisconnect:
                logger.debug("Spectator left match %s", mid)
            finally:
                relay_task.cancel()
                with suppress(asyncio.CancelledError):
                    await relay_task
                await pubsub.unsubscribe(channel)
    except redis.ConnectionError:
        logger.warning("Live stream for match %s closed; Redis unavailable", mid)
        await ws.close(code=1011)
