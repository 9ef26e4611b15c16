from __future__ import annotations

import os

from services.api.app.services.commerce_base import CommerceAdapter
from services.api.app.services.commerce_mock import MockCommerceAdapter
from services.api.app.services.token_cache import TokenCache


def get_commerce_adapter(token_cache: TokenCache) -> CommerceAdapter:
    """Adapter named by GIFTING_COMMERCE_ADAPTER, the in-memory mock when unset."""

    mode = os.getenv("GIFTING_COMMERCE_ADAPTER", "mock").strip().lower()

    if mode == "mock":
        return MockCommerceAdapter()

    if mode == "shopify":
        from services.api.app.services.commerce_shopify import ShopifyCommerceAdapter

        return ShopifyCommerceAdapter.from_env(token_cache)

    raise ValueError(f"Unknown GIFTING_COMMERCE_ADAPTER={mode!r}. Expected mock or shopify.")
