"""
Background Progression Worker
=============================

Simulates the provider side of the lifecycle for demo deployments.  Runs
every ``PROGRESSION_INTERVAL_SECONDS`` (default 5 s) when
``SIMULATION_ENABLED`` is set.

Per cycle
---------
1. Take the Redis lock; skip the cycle if another process holds it.
2. Load every ``Requested`` / ``Accepted`` / ``En Route`` request FOR UPDATE.
3. Ask ``lifecycle.due_transition`` whether its timer has elapsed:
   * Requested for ``AUTO_ACCEPT_AFTER_SECONDS``  -> Accepted
   * Accepted  for ``AUTO_DEPART_AFTER_SECONDS``  -> En Route
   * En Route with ETA reached, only if ``AUTO_ARRIVE_ON_ETA`` -> Arrived
4. Commit.

The worker never completes a job: sign-off needs service notes, which only a
provider can give.  Timers count from ``status_changed_at``, so an explicit
provider action between cycles resets them.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from roadside.config import settings
from roadside.domain.enums import Actor
from roadside.domain.eta import utcnow
from roadside.domain.lifecycle import due_transition
from roadside.infrastructure.database import async_session_factory
from roadside.infrastructure.locks import DistributedLock
from roadside.infrastructure.redis_client import get_redis
from roadside.infrastructure.repositories import ServiceRequestRepository
from roadside.services import dispatch

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_progression_loop() -> None:
    global _task, _stop_event
    if not settings.simulation_enabled:
        logger.info("Progression simulation disabled")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Progression worker started (interval=%ds)",
        settings.progression_interval_seconds,
    )


async def stop_progression_loop() -> None:
    global _task, _stop_event
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    _task = _stop_event = None
    logger.info("Progression worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a progression cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_progression_cycle()
        except Exception:
            logger.exception("Unhandled error in progression cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.progression_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_progression_cycle(now: Optional[datetime] = None) -> int:
    """Execute one cycle.  Returns the number of requests advanced."""
    redis = await get_redis()
    lock = DistributedLock(redis, "progression", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker, skipping cycle")
        return 0

    advanced = 0
    now = now or utcnow()
    try:
        async with async_session_factory() as session:
            repo = ServiceRequestRepository(session)
            for record in await repo.get_simulated_for_update():
                target = due_transition(
                    record,
                    now,
                    accept_after=settings.auto_accept_after_seconds,
                    depart_after=settings.auto_depart_after_seconds,
                    auto_arrive=settings.auto_arrive_on_eta,
                )
                if target is None:
                    continue
                await dispatch.transition(
                    session, record, target, actor=Actor.SYSTEM, now=now
                )
                advanced += 1

            await session.commit()
            if advanced:
                logger.info("Progression cycle: %d requests advanced", advanced)
    except Exception:
        logger.exception("Error in progression cycle")
    finally:
        await lock.release()

    return advanced
