"""
Customer observer.

Submits a request, polls its status on a fixed interval and runs the
payment step once the job is completed.  All state lives on an explicit
``CustomerSession``; the server record stays authoritative and the session
only mirrors what the last poll (or channel notification) reported.

Rules enforced on the mirror:

* status never moves backwards -- a stale poll that lands after a fresher
  channel update is ignored;
* while ``En Route`` the displayed ETA never increases;
* the payment callback fires once, on the first observation of
  ``Completed``;
* a transient poll failure is logged and retried on the next tick.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from roadside.clients.api import RoadsideClient
from roadside.clients.channel import StatusChannel, StatusUpdate
from roadside.clients.polling import Poller
from roadside.config import settings
from roadside.domain.enums import RequestStatus
from roadside.domain.errors import (
    ActiveRequestExists,
    PaymentNotAllowed,
    TransientIOError,
    ValidationError,
)
from roadside.domain.pricing import payment_strategy

logger = logging.getLogger(__name__)

_PROGRESS = [
    RequestStatus.REQUESTED,
    RequestStatus.ACCEPTED,
    RequestStatus.EN_ROUTE,
    RequestStatus.ARRIVED,
    RequestStatus.COMPLETED,
    RequestStatus.PAID,
]
_ETA_STATUSES = (
    RequestStatus.REQUESTED,
    RequestStatus.ACCEPTED,
    RequestStatus.EN_ROUTE,
)

Callback = Callable[["CustomerSession"], Union[None, Awaitable[None]]]


def _rank(status: RequestStatus) -> int:
    if status == RequestStatus.CANCELLED:
        return len(_PROGRESS)
    return _PROGRESS.index(status)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


@dataclass
class CustomerSession:
    user_id: int
    request_id: Optional[int] = None
    service_type: Optional[str] = None
    status: Optional[RequestStatus] = None
    provider_name: Optional[str] = None
    price: Optional[float] = None
    eta: Optional[int] = None
    last_sequence: int = 0

    @property
    def active(self) -> bool:
        return self.request_id is not None

    @property
    def awaiting_payment(self) -> bool:
        return self.status == RequestStatus.COMPLETED

    def clear(self) -> None:
        self.request_id = None
        self.service_type = None
        self.status = None
        self.provider_name = None
        self.price = None
        self.eta = None


class CustomerObserver:
    def __init__(
        self,
        client: RoadsideClient,
        session: CustomerSession,
        *,
        poll_interval: Optional[float] = None,
        channel: Optional[StatusChannel] = None,
        on_change: Optional[Callback] = None,
        on_payment_due: Optional[Callback] = None,
    ):
        self.client = client
        self.session = session
        self.channel = channel
        self.on_change = on_change
        self.on_payment_due = on_payment_due
        self.poller = Poller(
            self.poll_once,
            settings.customer_poll_seconds if poll_interval is None else poll_interval,
        )
        self._queue: Optional[asyncio.Queue[StatusUpdate]] = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def polling(self) -> bool:
        return self.poller.running

    # ── Submit ────────────────────────────────────────────────────────

    async def submit_request(
        self,
        service_type: Optional[str],
        location: Optional[str],
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> CustomerSession:
        if not service_type:
            raise ValidationError("Please select a service type")
        if not (location or "").strip():
            raise ValidationError("Please enter your location")
        if self.session.active:
            raise ActiveRequestExists("A request is already in progress")

        data = await self.client.create_request(
            self.session.user_id, service_type, location, latitude, longitude
        )
        session = self.session
        session.request_id = data["requestId"]
        session.service_type = service_type
        session.status = RequestStatus(data["status"])
        session.provider_name = data.get("providerName")
        session.price = data["price"]
        session.eta = data.get("eta")
        logger.info(
            "Request %s submitted, provider %s", session.request_id, session.provider_name
        )

        await self._notify_change()
        self.start_polling()
        return session

    # ── Polling ───────────────────────────────────────────────────────

    def start_polling(self) -> None:
        self.poller.start()
        if self.channel is not None and self._listener is None:
            self._queue = self.channel.subscribe()
            self._listener = asyncio.create_task(self._listen(self._queue))

    async def stop_polling(self) -> None:
        await self.poller.stop()
        listener, self._listener = self._listener, None
        if self._queue is not None and self.channel is not None:
            self.channel.unsubscribe(self._queue)
            self._queue = None
        if listener is not None and listener is not asyncio.current_task():
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass

    async def poll_once(self) -> bool:
        """Fetch the status once.  ``False`` if it failed or was discarded."""
        request_id = self.session.request_id
        if request_id is None:
            return False
        generation = self.poller.generation
        try:
            data = await self.client.get_status(request_id)
        except TransientIOError as exc:
            logger.warning("Status poll for request %s failed: %s", request_id, exc)
            return False

        if generation != self.poller.generation or request_id != self.session.request_id:
            logger.debug("Discarding poll result for request %s", request_id)
            return False
        await self._apply(
            RequestStatus(data["status"]), data.get("eta"), data.get("providerName")
        )
        return True

    async def _listen(self, queue: asyncio.Queue[StatusUpdate]) -> None:
        while asyncio.current_task() is self._listener:
            update = await queue.get()
            if update.request_id != self.session.request_id:
                continue
            if update.sequence <= self.session.last_sequence:
                continue
            self.session.last_sequence = update.sequence
            await self._apply(update.status, update.eta, update.provider_name)

    async def _apply(
        self,
        status: RequestStatus,
        eta: Optional[int],
        provider_name: Optional[str],
    ) -> None:
        session = self.session
        previous = session.status
        if previous is not None and _rank(status) < _rank(previous):
            return
        if previous in (RequestStatus.PAID, RequestStatus.CANCELLED):
            return

        if status not in _ETA_STATUSES:
            eta = None
        elif (
            status == RequestStatus.EN_ROUTE
            and previous == RequestStatus.EN_ROUTE
            and eta is not None
            and session.eta is not None
        ):
            eta = min(eta, session.eta)

        if (status, eta) == (previous, session.eta):
            return
        session.status = status
        session.eta = eta
        session.provider_name = provider_name or session.provider_name
        await self._notify_change()

        if status == RequestStatus.COMPLETED and previous != RequestStatus.COMPLETED:
            await self.stop_polling()
            logger.info("Request %s completed, payment due", session.request_id)
            if self.on_payment_due is not None:
                await _maybe_await(self.on_payment_due(session))
        elif status == RequestStatus.CANCELLED:
            logger.info("Request %s was cancelled", session.request_id)
            await self.reset()

    async def _notify_change(self) -> None:
        if self.on_change is not None:
            await _maybe_await(self.on_change(self.session))

    # ── Cancel / pay / reset ──────────────────────────────────────────

    async def cancel(self) -> dict[str, Any]:
        if not self.session.active:
            raise ValidationError("No active request to cancel")
        data = await self.client.cancel(self.session.request_id, actor="customer")
        logger.info("Request %s cancelled by customer", self.session.request_id)
        await self.reset()
        return data

    async def pay(
        self, payment_method: str = "card", insurance_copay: bool = False
    ) -> dict[str, Any]:
        session = self.session
        if not session.awaiting_payment:
            raise PaymentNotAllowed("The service has not been completed yet")
        amount = payment_strategy(insurance_copay, settings.insurance_copay).amount_due(
            session.price
        )
        data = await self.client.pay(
            session.request_id, payment_method, amount, insurance_copay
        )
        logger.info(
            "Payment %s accepted for request %s", data["transactionId"], session.request_id
        )
        await self.reset()
        return data

    async def reset(self) -> None:
        """Back to the pre-request state."""
        await self.stop_polling()
        self.session.clear()
        await self._notify_change()
