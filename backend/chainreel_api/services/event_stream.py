"""
Chain Progress Stream

Relays a chain's Redis event list to an HTTP client as server-sent events
in the chat-completion delta shape clients already parse:

    data: {"choices": [{"delta": {"content": "Status: processing (41.7%)\n"}}]}

    data: [DONE]

The stream only reads Redis. Closing it never affects the chain, and a
client can resume from any event offset.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from redis.asyncio import Redis

from chainreel_api.core.queue import TERMINAL_STATUSES, events_key, progress_key

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"

SESSION_EXPIRED_LINE = "Error: chain session expired\n"
# Prefixes of the single line that ends every chain
TERMINAL_LINE_PREFIXES = ("DONE:", "Error:")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def sse_event(content: str) -> str:
    """
    Wrap one progress line as a server-sent event.

    Example:
        >>> sse_event("hi")
        'data: {"choices": [{"delta": {"content": "hi"}}]}\\n\\n'
    """
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload)}\n\n"


async def stream_chain_events(
    redis: Redis,
    session_id: str,
    offset: int = 0,
    poll_interval: float = 0.5,
    idle_timeout: float = 900,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for a chain's events, starting at ``offset``.

    The status is read before the event list on each pass. The worker writes
    its last line before the terminal status, so a terminal status guarantees
    every line has already been read.

    Args:
        redis: Async Redis client with decoded responses
        session_id: Chain session id
        offset: Index of the first event to send
        poll_interval: Delay between Redis reads while the chain runs
        idle_timeout: Stop after this long without new events
        sleep: Awaitable delay, replaceable in tests
    """
    position = max(offset, 0)
    idle = 0.0
    terminal_seen = False

    while True:
        status = await redis.hget(progress_key(session_id), "status")
        lines = await redis.lrange(events_key(session_id), position, -1)

        for line in lines:
            terminal_seen = terminal_seen or line.startswith(TERMINAL_LINE_PREFIXES)
            yield sse_event(line)
        if lines:
            position += len(lines)
            idle = 0.0

        if status is None:
            logger.warning(f"Chain {session_id} has no progress state, closing stream")
            if not terminal_seen:
                yield sse_event(SESSION_EXPIRED_LINE)
            break
        if status in TERMINAL_STATUSES:
            break
        if idle >= idle_timeout:
            logger.warning(f"Stream for chain {session_id} idle for {idle:.0f}s, closing")
            yield sse_event(
                f"Stream closed after {idle:.0f}s without progress; "
                f"resume from event {position}.\n"
            )
            break

        await sleep(poll_interval)
        idle += poll_interval

    yield SSE_DONE
