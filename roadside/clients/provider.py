"""
Provider (driver) observer.

Shows the jobs assigned to one provider and exposes the explicit actions
that move them forward.  Each successful action is published on the shared
``StatusChannel`` so a customer observer in the same process sees it
without waiting for its next poll.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from roadside.clients.api import RoadsideClient
from roadside.clients.channel import StatusChannel
from roadside.clients.polling import Poller
from roadside.config import settings
from roadside.domain.enums import TERMINAL_STATUSES, RequestStatus
from roadside.domain.errors import TransientIOError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ProviderSession:
    provider_id: int
    online: bool = False
    jobs: list[dict[str, Any]] = field(default_factory=list)
    sign_offs: dict[int, str] = field(default_factory=dict)

    def job(self, request_id: int) -> Optional[dict[str, Any]]:
        return next((j for j in self.jobs if j["id"] == request_id), None)


class ProviderObserver:
    def __init__(
        self,
        client: RoadsideClient,
        session: ProviderSession,
        *,
        channel: Optional[StatusChannel] = None,
        poll_interval: Optional[float] = None,
    ):
        self.client = client
        self.session = session
        self.channel = channel
        self.poller = Poller(
            self.refresh,
            settings.driver_poll_seconds if poll_interval is None else poll_interval,
        )

    async def refresh(self) -> list[dict[str, Any]]:
        """Reload this provider's live jobs; keeps the old list on failure."""
        try:
            jobs = await self.client.driver_requests(self.session.provider_id)
        except TransientIOError as exc:
            logger.warning("Driver poll failed: %s", exc)
            return self.session.jobs
        self.session.jobs = jobs
        return jobs

    async def go_online(self) -> None:
        await self.client.set_availability(self.session.provider_id, True)
        self.session.online = True
        logger.info("Provider %s online", self.session.provider_id)
        self.poller.start()

    async def go_offline(self) -> None:
        await self.client.set_availability(self.session.provider_id, False)
        self.session.online = False
        await self.poller.stop()
        self.session.jobs = []
        logger.info("Provider %s offline", self.session.provider_id)

    # ── Job actions ───────────────────────────────────────────────────

    async def accept_job(self, request_id: int) -> dict[str, Any]:
        data = await self.client.driver_action(
            request_id, "accept", provider_id=self.session.provider_id
        )
        return await self._after_action(data)

    async def advance(self, request_id: int) -> dict[str, Any]:
        """One step forward; the final step uses any recorded sign-off."""
        data = await self.client.driver_action(
            request_id,
            "advance",
            provider_id=self.session.provider_id,
            service_notes=self.session.sign_offs.get(request_id),
        )
        return await self._after_action(data)

    def record_sign_off(self, request_id: int, notes: str) -> None:
        if not (notes or "").strip():
            raise ValidationError("Service notes cannot be empty")
        self.session.sign_offs[request_id] = notes.strip()

    async def complete_job(self, request_id: int) -> dict[str, Any]:
        notes = self.session.sign_offs.get(request_id)
        if not notes:
            raise ValidationError("Record service notes before completing the job")
        data = await self.client.driver_action(
            request_id,
            "complete",
            provider_id=self.session.provider_id,
            service_notes=notes,
        )
        return await self._after_action(data)

    async def cancel_job(self, request_id: int) -> dict[str, Any]:
        data = await self.client.cancel(request_id, actor="provider")
        return await self._after_action(data)

    async def _after_action(self, data: dict[str, Any]) -> dict[str, Any]:
        request_id = data["id"]
        status = RequestStatus(data["status"])
        logger.info("Request %s is now %s", request_id, status.value)

        jobs = [j for j in self.session.jobs if j["id"] != request_id]
        if status not in TERMINAL_STATUSES:
            jobs.append(data)
        self.session.jobs = sorted(jobs, key=lambda j: j["id"])
        if status in (RequestStatus.COMPLETED, RequestStatus.CANCELLED):
            self.session.sign_offs.pop(request_id, None)

        if self.channel is not None:
            await self.channel.publish(
                request_id,
                status,
                provider_name=data.get("providerName"),
                eta=data.get("eta"),
            )
        return data
