"""
Shared-state channel between the provider and customer observers.

A fan-out of ``StatusUpdate`` objects over ``asyncio.Queue``: every
subscriber gets its own queue, so a slow consumer never blocks the
publisher or the other consumers.

Delivery guarantees
-------------------
* **Order** -- updates are stamped with a channel-wide sequence number and
  each subscriber sees them in publish order.
* **At most once per transition** -- a ``(request_id, status)`` pair is
  delivered the first time only; republishing the same transition (e.g. a
  provider retry after a timeout) is dropped.

  Once a request reaches ``Paid`` or ``Cancelled`` its per-status keys are
  dropped and only the request id is kept, in a ``closed_limit``-sized
  LRU; later updates for a closed request are dropped too.  Memory stays
  bounded by the number of open requests plus ``closed_limit``.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from roadside.domain.enums import TERMINAL_STATUSES, RequestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusUpdate:
    request_id: int
    status: RequestStatus
    provider_name: Optional[str] = None
    eta: Optional[int] = None
    sequence: int = field(default=0, compare=False)


class StatusChannel:
    def __init__(self, maxsize: int = 0, closed_limit: int = 1024) -> None:
        self._subscribers: list[asyncio.Queue[StatusUpdate]] = []
        self._maxsize = maxsize
        self._seen: dict[int, set[RequestStatus]] = {}
        self._closed: OrderedDict[int, None] = OrderedDict()
        self._closed_limit = closed_limit
        self._counter = itertools.count(1)

    def subscribe(self) -> asyncio.Queue[StatusUpdate]:
        queue: asyncio.Queue[StatusUpdate] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[StatusUpdate]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def publish(
        self,
        request_id: int,
        status: RequestStatus | str,
        *,
        provider_name: Optional[str] = None,
        eta: Optional[int] = None,
    ) -> Optional[StatusUpdate]:
        """Deliver to every subscriber; ``None`` if already delivered."""
        status = RequestStatus(status)
        if request_id in self._closed:
            logger.debug("Dropping %s for closed request %s", status.value, request_id)
            return None
        seen = self._seen.setdefault(request_id, set())
        if status in seen:
            logger.debug("Dropping duplicate %s for request %s", status.value, request_id)
            return None
        if status in TERMINAL_STATUSES:
            self._close(request_id)
        else:
            seen.add(status)

        update = StatusUpdate(
            request_id=request_id,
            status=status,
            provider_name=provider_name,
            eta=eta,
            sequence=next(self._counter),
        )
        for queue in self._subscribers:
            await queue.put(update)
        return update

    @property
    def open_requests(self) -> int:
        """Requests with delivered updates that have not reached a terminal status."""
        return len(self._seen)

    def _close(self, request_id: int) -> None:
        self._seen.pop(request_id, None)
        self._closed[request_id] = None
        self._closed.move_to_end(request_id)
        while len(self._closed) > self._closed_limit:
            self._closed.popitem(last=False)
