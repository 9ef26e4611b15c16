"""Delivery methods offered at checkout.

The method ids are fixed. Prices come from the commerce system's active rates
when it reports any, matched onto each method by name, and from the built-in
table otherwise. Orders are always priced from this catalog, never from the
price a client sends.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from services.api.app.models.order import FALLBACK_DELIVERY_METHODS, DeliveryMethod
from services.api.app.services.commerce_base import (
    CommerceAdapter,
    CommerceAdapterError,
    DeliveryRate,
)

logger = structlog.get_logger(__name__)

FALLBACK_SOURCE = "fallback"


@dataclass(frozen=True, slots=True)
class DeliveryCatalog:
    methods: list[DeliveryMethod]
    source: str = FALLBACK_SOURCE
    error: str | None = None

    def find(self, method_id: str) -> DeliveryMethod | None:
        for method in self.methods:
            if method.id == method_id:
                return method
        return None


def _matching_rate(method: DeliveryMethod, rates: Sequence[DeliveryRate]) -> DeliveryRate | None:
    wanted = method.name.casefold()
    for rate in rates:
        name = rate.name.strip().casefold()
        if name and (name in wanted or wanted in name):
            return rate
    return None


def merge_delivery_rates(rates: Sequence[DeliveryRate]) -> list[DeliveryMethod]:
    """Every built-in method, repriced by the first upstream rate whose name overlaps it."""
    merged: list[DeliveryMethod] = []
    for method in FALLBACK_DELIVERY_METHODS:
        rate = _matching_rate(method, rates)
        if rate is None:
            merged.append(method)
            continue
        merged.append(
            method.model_copy(update={"price_cents": rate.price_cents, "currency": rate.currency})
        )
    return merged


def load_delivery_catalog(commerce: CommerceAdapter) -> DeliveryCatalog:
    try:
        rates = commerce.list_delivery_rates()
    except CommerceAdapterError as e:
        logger.warning("Delivery rates unavailable; using built-in rates", error=str(e))
        return DeliveryCatalog(list(FALLBACK_DELIVERY_METHODS), error=str(e))

    if not rates:
        return DeliveryCatalog(list(FALLBACK_DELIVERY_METHODS))
    return DeliveryCatalog(merge_delivery_rates(rates), source=commerce.vendor.lower())
