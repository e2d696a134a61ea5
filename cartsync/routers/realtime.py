"""Realtime SSE Endpoint for cart change signals.

Streams the device's cart stream as Server-Sent Events so other open views
re-read the cart when another tab changes it.
"""

import asyncio
import json
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from cartsync.db import RedisKeys, get_redis
from cartsync.logging import get_logger

from .deps import get_device_id

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])

# Note: upstash-redis REST API does NOT support blocking xread,
# so we poll with asyncio.sleep() instead
POLL_INTERVAL_SECS = 1.0

MAX_EVENTS_PER_POLL = 10


def _format_entries(entries: list[tuple[str, dict[str, Any]]]) -> tuple[str | None, list[str]]:
    """Turn stream entries into SSE messages. Returns (last entry id, messages)."""
    last_id = None
    messages = []
    for entry_id, fields in entries:
        last_id = entry_id
        data = fields.get("data", "{}")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON in cart stream: {data}")
                continue
        messages.append(f"data: {json.dumps(data)}\n\n")
    return last_id, messages


async def cart_events_generator(redis, stream_key: str, max_polls: int | None = None) -> AsyncIterator[str]:
    """Yield SSE messages for new entries of one stream.

    Starts after the newest existing entry: a view that just connected has
    already read the current cart.
    """
    last_id = "0"
    try:
        newest = await redis.xrevrange(stream_key, count=1)
        if newest:
            last_id = newest[0][0]
    except Exception as e:
        logger.warning(f"Error reading cart stream head: {e}")

    polls = 0
    while max_polls is None or polls < max_polls:
        polls += 1
        try:
            entries = await redis.xrange(
                stream_key, start=f"({last_id}", end="+", count=MAX_EVENTS_PER_POLL
            )
            new_last_id, messages = _format_entries(entries or [])
            if new_last_id:
                last_id = new_last_id
            for message in messages:
                yield message
            if not messages:
                yield ": keep-alive\n\n"
            await asyncio.sleep(POLL_INTERVAL_SECS)
        except asyncio.CancelledError:
            logger.debug("Cart event stream cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in cart event stream: {e}", exc_info=True)
            yield f"event: error\ndata: {json.dumps({'error': str(e)})}\n\n"
            await asyncio.sleep(POLL_INTERVAL_SECS)


@router.get("/cart/events")
async def cart_events(device_id: str = Depends(get_device_id)):
    """SSE stream of cart.changed signals for the requesting device."""
    stream_key = RedisKeys.cart_stream_key(RedisKeys.cart_key(device_id))
    return StreamingResponse(
        cart_events_generator(get_redis(), stream_key),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
