"""
ETA quoting and countdown.

Assumption
----------
Distance is great-circle (Haversine) at a constant provider speed rather
than a routing engine, so the project runs locally without API keys.  When
either end has no coordinates the quote falls back to a flat default.

Display rule: while ``En Route`` the remaining time is rounded *up* to whole
minutes and floored at one, so the countdown is non-increasing, never
negative and never shows "0 min" before arrival.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from .enums import RequestStatus

EARTH_RADIUS_KM = 6_371.0
ETA_FLOOR_MINUTES = 1


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return the great-circle distance in **km** between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def quote_eta_minutes(
    provider_lat: Optional[float],
    provider_lng: Optional[float],
    dest_lat: Optional[float],
    dest_lng: Optional[float],
    *,
    speed_kmh: float,
    default_minutes: int,
) -> int:
    if None in (provider_lat, provider_lng, dest_lat, dest_lng) or speed_kmh <= 0:
        return default_minutes
    km = haversine_km(provider_lat, provider_lng, dest_lat, dest_lng)
    return max(ETA_FLOOR_MINUTES, math.ceil(km / speed_kmh * 60))


def countdown_minutes(arrival: datetime, now: datetime) -> int:
    remaining = (as_utc(arrival) - as_utc(now)).total_seconds()
    return max(ETA_FLOOR_MINUTES, math.ceil(remaining / 60))


def eta_reached(arrival: Optional[datetime], now: datetime) -> bool:
    return arrival is not None and as_utc(now) >= as_utc(arrival)


def displayed_eta(record, now: datetime) -> Optional[int]:
    """ETA in minutes to show for *record*, or ``None`` once not applicable."""
    status = RequestStatus(record.status)
    if status in (RequestStatus.REQUESTED, RequestStatus.ACCEPTED):
        return record.quoted_eta_minutes
    if status == RequestStatus.EN_ROUTE and record.estimated_arrival_time:
        return countdown_minutes(record.estimated_arrival_time, now)
    return None
