"""
Thin async HTTP client for the roadside API (httpx).

Error bodies are mapped back to the domain exception they were rendered
from; transport failures and 5xx responses become ``TransientIOError`` so
pollers can treat them as "try again next tick".
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from roadside.config import settings
from roadside.domain.errors import (
    ERRORS_BY_CODE,
    RoadsideError,
    TransientIOError,
)


class RoadsideClient:
    def __init__(self, http: httpx.AsyncClient, prefix: str = "/api"):
        self.http = http
        self.prefix = prefix.rstrip("/")

    @classmethod
    def connect(
        cls, base_url: Optional[str] = None, timeout: float = 10.0
    ) -> "RoadsideClient":
        """Client for a running server; defaults to ``API_BASE_URL``."""
        return cls(
            httpx.AsyncClient(base_url=base_url or settings.api_base_url, timeout=timeout)
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    # ── Customer ──────────────────────────────────────────────────────

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        license_plate: Optional[str] = None,
        role: str = "customer",
    ) -> dict[str, Any]:
        return await self._send(
            "POST",
            "/register",
            json={
                "name": name,
                "email": email,
                "password": password,
                "licensePlate": license_plate,
                "role": role,
            },
        )

    async def create_request(
        self,
        user_id: int,
        service_type: str,
        location: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "userId": user_id,
            "serviceType": service_type,
            "location": location,
        }
        if latitude is not None and longitude is not None:
            body.update(latitude=latitude, longitude=longitude)
        return await self._send("POST", "/request", json=body)

    async def get_request(self, request_id: int) -> dict[str, Any]:
        return await self._send("GET", f"/request/{request_id}")

    async def get_status(self, request_id: int) -> dict[str, Any]:
        return await self._send("GET", f"/status/{request_id}")

    async def cancel(self, request_id: int, actor: str = "customer") -> dict[str, Any]:
        return await self._send(
            "POST", f"/request/{request_id}/cancel", json={"actor": actor}
        )

    async def pay(
        self,
        request_id: int,
        payment_method: str,
        amount: float,
        insurance_copay: bool = False,
    ) -> dict[str, Any]:
        return await self._send(
            "POST",
            f"/payment/{request_id}",
            json={
                "paymentMethod": payment_method,
                "amount": amount,
                "insuranceCopay": insurance_copay,
            },
        )

    # ── Provider ──────────────────────────────────────────────────────

    async def update_status(
        self,
        request_id: int,
        status: str,
        service_notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"status": status}
        if actor:
            body["actor"] = actor
        if service_notes:
            body["serviceNotes"] = service_notes
        return await self._send("PUT", f"/request/{request_id}/status", json=body)

    async def driver_requests(
        self, provider_id: Optional[int] = None
    ) -> list[dict[str, Any]]:
        params = {"providerId": provider_id} if provider_id is not None else None
        return await self._send("GET", "/driver/requests", params=params)

    async def driver_action(
        self,
        request_id: int,
        action: str,
        provider_id: Optional[int] = None,
        service_notes: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"providerId": provider_id}
        if service_notes:
            body["serviceNotes"] = service_notes
        return await self._send(
            "POST", f"/driver/requests/{request_id}/{action}", json=body
        )

    async def set_availability(self, provider_id: int, online: bool) -> dict[str, Any]:
        return await self._send(
            "PUT", f"/driver/{provider_id}/availability", json={"online": online}
        )

    async def feedback(
        self,
        request_id: int,
        feedback_type: str,
        rating: int,
        comments: Optional[str] = None,
    ) -> dict[str, Any]:
        return await self._send(
            "POST",
            "/feedback",
            json={
                "requestId": request_id,
                "feedbackType": feedback_type,
                "rating": rating,
                "comments": comments,
            },
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.http.request(method, self.prefix + path, **kwargs)
        except httpx.TransportError as exc:
            raise TransientIOError(f"{method} {path}: {exc}") from exc

        if response.is_success:
            return response.json()
        raise self._error_from(response)

    @staticmethod
    def _error_from(response: httpx.Response) -> RoadsideError:
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        message = payload.get("message") or response.text or response.reason_phrase
        if response.status_code >= 500 or response.status_code == 429:
            return TransientIOError(message)
        error_cls = ERRORS_BY_CODE.get(payload.get("error", ""), RoadsideError)
        error = error_cls(message)
        error.status_code = response.status_code
        return error
