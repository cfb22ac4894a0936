"""Serialized, rate-limited dispatch of caption requests.

One worker task drains the queue in submission order and awaits each handler
call before starting the next, so at most one remote call is in flight. The
delay between calls is global: it is measured from the previous issue time
whichever request made it.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Optional, Tuple

from .schema import CaptionRequest

logger = logging.getLogger(__name__)

Handler = Callable[[CaptionRequest], Awaitable[str]]
Lookup = Callable[[CaptionRequest], Optional[str]]
# Raises to reject a request before it costs a rate-limit wait
Admit = Callable[[CaptionRequest], None]


@dataclass
class QueuedRequest:
    request: CaptionRequest
    future: "asyncio.Future[Tuple[str, bool]]"


class RequestQueue:
    """FIFO queue with a single worker and a minimum delay between handler calls."""

    def __init__(
        self,
        handler: Handler,
        request_delay: float = 1.0,
        lookup: Optional[Lookup] = None,
        admit: Optional[Admit] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._handler = handler
        self._lookup = lookup
        self._admit = admit
        self._clock = clock
        self._sleep = sleep
        self.request_delay = request_delay
        self.last_issue: Optional[float] = None
        self._items: Deque[QueuedRequest] = deque()
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._items)

    async def submit(self, request: CaptionRequest) -> Tuple[str, bool]:
        """Queue ``request`` and wait for ``(caption, from_lookup)``.

        ``from_lookup`` is True when the caption was found by the lookup
        re-check and no handler call was made. Raises whatever ``admit`` or
        the handler raised for this request.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Tuple[str, bool]] = loop.create_future()
        self._items.append(QueuedRequest(request, future))
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return await future

    async def enqueue(self, request: CaptionRequest) -> str:
        caption, _ = await self.submit(request)
        return caption

    async def _wait_for_rate_limit(self) -> None:
        if self.last_issue is None:
            return
        remaining = self.request_delay - (self._clock() - self.last_issue)
        if remaining > 0:
            logger.debug("Rate limit: waiting %.3fs", remaining)
            await self._sleep(remaining)

    async def _drain(self) -> None:
        while self._items:
            item = self._items.popleft()
            if item.future.done():
                # caller went away
                continue
            if self._lookup is not None:
                hit = self._lookup(item.request)
                if hit is not None:
                    item.future.set_result((hit, True))
                    continue
            if self._admit is not None:
                try:
                    self._admit(item.request)
                except Exception as exc:
                    item.future.set_exception(exc)
                    continue
            await self._wait_for_rate_limit()
            self.last_issue = self._clock()
            try:
                result = await self._handler(item.request)
            except Exception as exc:
                if not item.future.done():
                    item.future.set_exception(exc)
                continue
            if not item.future.done():
                item.future.set_result((result, False))


__all__ = ["RequestQueue", "QueuedRequest"]
