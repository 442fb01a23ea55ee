"""
Provider matching.

The roster is small and static, so matching is deliberately simple: the
first provider (in roster order) whose specialty equals the requested
service type and who is currently available.  There is no distance or load
balancing; the ETA quote is computed afterwards for whoever was picked.
"""

from __future__ import annotations

from typing import Iterable, Optional, TypeVar

from .enums import ProviderStatus, ServiceType

P = TypeVar("P")


def first_matching_provider(
    providers: Iterable[P], service_type: ServiceType
) -> Optional[P]:
    """Return the first available provider for *service_type*, or ``None``."""
    for provider in providers:
        if (
            ServiceType(provider.service_type) == service_type
            and ProviderStatus(provider.status) == ProviderStatus.AVAILABLE
        ):
            return provider
    return None
