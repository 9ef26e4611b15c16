from __future__ import annotations

import json
import urllib.error
import urllib.request
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog

from services.api.app.config import ShopifyConfig
from services.api.app.models.order import DiscountValueType
from services.api.app.services.commerce_base import (
    CommerceAdapterError,
    CommerceNotConfiguredError,
    CreatedOrder,
    DeliveryRate,
    DiscountRecord,
    DraftOrderInput,
    UpstreamOrderError,
)
from services.api.app.services.token_cache import TokenCache

logger = structlog.get_logger(__name__)

# Shopify reports no expiry for offline tokens; refresh daily anyway.
_DEFAULT_TOKEN_TTL_SECONDS = 24 * 60 * 60


class ShopifyCommerceAdapter:
    """Commerce adapter backed by the Shopify Admin GraphQL API.

    Authenticates with a static Admin API token when one is configured,
    otherwise exchanges the app's client credentials for a short-lived token
    held in ``token_cache``.
    """

    vendor = "SHOPIFY"

    def __init__(self, cfg: ShopifyConfig, token_cache: TokenCache) -> None:
        if not cfg.is_configured:
            raise CommerceNotConfiguredError()
        self._cfg = cfg
        self._token_cache = token_cache

    @classmethod
    def from_env(cls, token_cache: TokenCache) -> "ShopifyCommerceAdapter":
        return cls(ShopifyConfig.from_env(), token_cache)

    def lookup_discount(self, code: str) -> DiscountRecord | None:
        data = self._graphql(_DISCOUNT_LOOKUP_QUERY, {"code": code.strip()})
        node = data.get("codeDiscountNodeByCode")
        if not node:
            return None

        discount = node.get("codeDiscount") or {}
        value = ((discount.get("customerGets") or {}).get("value")) or {}

        if "percentage" in value:
            # Shopify stores percentages as a 0..1 fraction.
            value_type = DiscountValueType.PERCENTAGE
            amount = round(float(value["percentage"]) * 100, 4)
        elif "amount" in value:
            value_type = DiscountValueType.FIXED_AMOUNT
            amount = float(value["amount"]["amount"])
        else:
            logger.warning(
                "Unsupported discount type",
                code=code,
                typename=discount.get("__typename"),
            )
            return None

        return DiscountRecord(
            code=code.strip().upper(),
            title=discount.get("title") or code.strip().upper(),
            value_type=value_type,
            value=amount,
            starts_at=_parse_datetime(discount.get("startsAt")),
            ends_at=_parse_datetime(discount.get("endsAt")),
        )

    def create_draft_order(self, order: DraftOrderInput) -> CreatedOrder:
        line_items: list[dict[str, Any]] = [
            {
                "variantId": f"gid://shopify/ProductVariant/{line.variant_id}",
                "quantity": line.quantity,
            }
            for line in order.lines
        ]
        line_items.extend(
            {
                "title": custom.title,
                "quantity": custom.quantity,
                "originalUnitPrice": _dollars(custom.unit_price_cents),
            }
            for custom in order.custom_lines
        )

        first, _, last = order.buyer.name.strip().partition(" ")
        draft_input: dict[str, Any] = {
            "lineItems": line_items,
            "customAttributes": [{"key": k, "value": v} for k, v in order.attributes.items()],
            "note": order.note,
            "email": order.buyer.email,
            "shippingAddress": {
                "firstName": first or order.buyer.name,
                "lastName": last,
                "company": order.buyer.company,
                "phone": order.buyer.phone,
            },
        }

        applied = _applied_discount_input(order)
        if applied is not None:
            draft_input["appliedDiscount"] = applied

        try:
            data = self._graphql(_DRAFT_ORDER_CREATE_MUTATION, {"input": draft_input})
        except CommerceAdapterError as e:
            raise UpstreamOrderError(str(e)) from e

        payload = data.get("draftOrderCreate") or {}
        user_errors = [err.get("message", "") for err in payload.get("userErrors") or []]
        if user_errors:
            raise UpstreamOrderError(", ".join(user_errors), user_errors=user_errors)

        draft = payload.get("draftOrder")
        if not draft:
            raise UpstreamOrderError("Failed to create draft order")

        return CreatedOrder(
            order_id=str(draft["id"]).rsplit("/", 1)[-1],
            order_number=draft.get("name") or "",
            invoice_url=draft.get("invoiceUrl") or "",
        )

    def update_order_note(self, order_id: str, note: str) -> None:
        data = self._graphql(
            _DRAFT_ORDER_UPDATE_MUTATION,
            {"id": _draft_gid(order_id), "input": {"note": note}},
        )
        _raise_user_errors(data.get("draftOrderUpdate"))

    def send_invoice(self, order_id: str, *, to: str, subject: str, message: str) -> None:
        data = self._graphql(
            _DRAFT_ORDER_INVOICE_SEND_MUTATION,
            {
                "id": _draft_gid(order_id),
                "email": {"to": to, "subject": subject, "customMessage": message},
            },
        )
        _raise_user_errors(data.get("draftOrderInvoiceSend"))

    def list_delivery_rates(self) -> list[DeliveryRate]:
        """Active flat rates across every delivery profile, zone and method definition."""
        data = self._graphql(_DELIVERY_PROFILES_QUERY, {})
        rates: list[DeliveryRate] = []
        for profile in _nodes(data.get("deliveryProfiles")):
            for group in profile.get("profileLocationGroups") or []:
                for zone in _nodes(group.get("locationGroupZones")):
                    for method in _nodes(zone.get("methodDefinitions")):
                        price = (method.get("rateProvider") or {}).get("price")
                        if not method.get("active") or not price:
                            continue
                        rates.append(
                            DeliveryRate(
                                name=method.get("name") or "",
                                price_cents=_cents(price["amount"]),
                                currency=price.get("currencyCode") or "USD",
                                rate_id=method.get("id") or "",
                            )
                        )
        logger.debug("Fetched Shopify delivery rates", count=len(rates))
        return rates

    def _access_token(self) -> str:
        if self._cfg.access_token:
            return self._cfg.access_token
        return self._token_cache.get_or_fetch(self._fetch_client_credentials_token)

    def _fetch_client_credentials_token(self) -> tuple[str, float]:
        body = {
            "client_id": self._cfg.client_id,
            "client_secret": self._cfg.client_secret,
            "grant_type": "client_credentials",
        }
        payload = _post_json(self._cfg.token_url, body, {}, timeout=self._cfg.timeout_seconds)

        token = payload.get("access_token")
        if not token:
            raise CommerceAdapterError(f"Unexpected Shopify token response shape: {payload!r}")

        logger.info("Fetched Shopify access token", store=self._cfg.store_domain)
        return token, float(payload.get("expires_in") or _DEFAULT_TOKEN_TTL_SECONDS)

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        headers = {"X-Shopify-Access-Token": self._access_token()}
        payload = _post_json(
            self._cfg.graphql_url,
            {"query": query, "variables": variables},
            headers,
            timeout=self._cfg.timeout_seconds,
        )

        errors = payload.get("errors")
        if errors:
            if isinstance(errors, list):
                raise CommerceAdapterError(", ".join(e.get("message", "") for e in errors))
            raise CommerceAdapterError(str(errors))

        data = payload.get("data")
        if not data:
            raise CommerceAdapterError("No data returned from Shopify")
        return data


def _post_json(
    url: str,
    body: dict[str, Any],
    headers: dict[str, str],
    *,
    timeout: float,
) -> dict[str, Any]:
    req = urllib.request.Request(url, method="POST")
    req.add_header("Content-Type", "application/json")
    for key, value in headers.items():
        req.add_header(key, value)

    try:
        with urllib.request.urlopen(
            req, data=json.dumps(body).encode("utf-8"), timeout=timeout
        ) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        raw = e.read().decode("utf-8", errors="replace")
        raise CommerceAdapterError(f"Shopify HTTP {e.code}: {raw}") from e
    except urllib.error.URLError as e:
        raise CommerceAdapterError(f"Shopify unreachable: {e.reason}") from e


def _applied_discount_input(order: DraftOrderInput) -> dict[str, Any] | None:
    # Draft orders take one order-level discount, and Shopify applies a percentage to
    # custom lines too. The folded total always goes up as FIXED_AMOUNT.
    d = order.applied_discount
    volume = order.volume_discount_cents
    total = volume + (d.discount_amount_cents if d is not None else 0)
    if not total:
        return None

    parts = []
    if volume:
        parts.append(f"Volume discount {_dollars(volume)}")
    if d is not None:
        parts.append(f"{d.code} ({d.title}) {_dollars(d.discount_amount_cents)}")
    return {
        "title": d.code if d is not None else "VOLUME",
        "description": "; ".join(parts),
        "value": total / 100,
        "valueType": "FIXED_AMOUNT",
        "amount": _dollars(total),
    }


def _raise_user_errors(payload: dict[str, Any] | None) -> None:
    messages = [err.get("message", "") for err in (payload or {}).get("userErrors") or []]
    if messages:
        raise CommerceAdapterError(", ".join(messages))


def _draft_gid(order_id: str) -> str:
    if order_id.startswith("gid://"):
        return order_id
    return f"gid://shopify/DraftOrder/{order_id}"


def _dollars(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _cents(amount: str) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [edge["node"] for edge in (connection or {}).get("edges") or [] if edge.get("node")]


def _parse_datetime(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


_DISCOUNT_LOOKUP_QUERY = """
query discountByCode($code: String!) {
  codeDiscountNodeByCode(code: $code) {
    id
    codeDiscount {
      __typename
      ... on DiscountCodeBasic {
        title
        status
        startsAt
        endsAt
        customerGets {
          value {
            ... on DiscountPercentage { percentage }
            ... on DiscountAmount { amount { amount } }
          }
        }
      }
    }
  }
}
"""

_DRAFT_ORDER_CREATE_MUTATION = """
mutation draftOrderCreate($input: DraftOrderInput!) {
  draftOrderCreate(input: $input) {
    draftOrder { id name invoiceUrl }
    userErrors { field message }
  }
}
"""

_DRAFT_ORDER_UPDATE_MUTATION = """
mutation draftOrderUpdate($id: ID!, $input: DraftOrderInput!) {
  draftOrderUpdate(id: $id, input: $input) {
    draftOrder { id }
    userErrors { field message }
  }
}
"""

_DRAFT_ORDER_INVOICE_SEND_MUTATION = """
mutation draftOrderInvoiceSend($id: ID!, $email: EmailInput) {
  draftOrderInvoiceSend(id: $id, email: $email) {
    draftOrder { id }
    userErrors { field message }
  }
}
"""

_DELIVERY_PROFILES_QUERY = """
query deliveryProfiles {
  deliveryProfiles(first: 10) {
    edges {
      node {
        id
        name
        profileLocationGroups {
          locationGroupZones(first: 20) {
            edges {
              node {
                zone { id name }
                methodDefinitions(first: 20) {
                  edges {
                    node {
                      id
                      name
                      active
                      rateProvider {
                        ... on DeliveryRateDefinition {
                          id
                          price { amount currencyCode }
                        }
                      }
                    }
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""
