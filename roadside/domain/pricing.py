"""
Service Catalog & Payment Pricing  (Strategy Pattern)
=====================================================

Price is a static lookup on the service type and is fixed when the request
is created.  The only variation happens at payment time, where a customer
may settle with a flat insurance co-pay instead of the full price.

* ``StandardPricing``       -- amount due = catalog price
* ``InsuranceCopayPricing`` -- amount due = min(co-pay, catalog price)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .enums import ServiceType
from .errors import ValidationError


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    base_price: float


SERVICE_CATALOG: dict[ServiceType, CatalogEntry] = {
    ServiceType.FLAT_TIRE: CatalogEntry("Flat Tire Service", 75.00),
    ServiceType.LOCKSMITH: CatalogEntry("Automotive Locksmith", 150.00),
    ServiceType.EMERGENCY: CatalogEntry("Emergency Roadside Assist", 50.00),
    ServiceType.TOWING: CatalogEntry("Towing", 125.00),
}


def parse_service_type(value: str | ServiceType | None) -> ServiceType:
    """Return the catalog key for *value* or raise ``ValidationError``."""
    if not value:
        raise ValidationError("Service type is required")
    try:
        return ServiceType(value)
    except ValueError:
        raise ValidationError(f"Unknown service type: {value}") from None


def price_for(service_type: str | ServiceType) -> float:
    return SERVICE_CATALOG[parse_service_type(service_type)].base_price


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def amount_due(self, price: float) -> float: ...


class StandardPricing(PricingStrategy):
    def amount_due(self, price: float) -> float:
        return round(price, 2)


class InsuranceCopayPricing(PricingStrategy):
    """Customer pays a flat co-pay; insurance covers the rest."""

    def __init__(self, copay: float):
        self.copay = copay

    def amount_due(self, price: float) -> float:
        return round(min(self.copay, price), 2)


def payment_strategy(insurance_copay: bool, copay: float) -> PricingStrategy:
    if insurance_copay:
        return InsuranceCopayPricing(copay)
    return StandardPricing()
