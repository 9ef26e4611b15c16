from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from services.api.app.deps import get_commerce, get_document_store
from services.api.app.main import app
from services.api.app.services.commerce_base import CommerceAdapterError
from services.api.app.services.commerce_mock import MockCommerceAdapter
from services.api.app.services.document_store import LocalDocumentStore
from services.api.tests.factories import cart_payload, recipient_payload

client = TestClient(app)


@pytest.fixture(autouse=True)
def _local_env(monkeypatch: pytest.MonkeyPatch, store: LocalDocumentStore) -> Iterator[None]:
    monkeypatch.delenv("GIFTING_COMMERCE_ADAPTER", raising=False)
    for name in ("SMTP_USER", "SMTP_PASS", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    app.dependency_overrides[get_document_store] = lambda: store
    yield
    app.dependency_overrides.clear()


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_submit_returns_order_and_step_flags() -> None:
    response = client.post("/v1/orders/submit", json=cart_payload())
    assert response.status_code == 200

    data = response.json()
    assert data["order_number"].startswith("#D")
    assert data["invoice_url"].startswith("https://mock-commerce.local/invoices/")
    assert data["manifest_url"].startswith("https://gifts.example.com/v1/documents/Order_D")
    assert data["pricing"]["total_cents"] == 2_100_000 - 315_000 + 7500

    steps = {s["name"]: s for s in data["steps"]}
    assert steps["manifest_generation"]["success"] is True
    assert steps["payment_invoice_email"]["success"] is True
    assert steps["confirmation_email"] == {
        "name": "confirmation_email",
        "success": False,
        "error": "Email not configured",
        "skipped": False,
    }


def test_submitted_manifest_is_downloadable() -> None:
    manifest_url = client.post("/v1/orders/submit", json=cart_payload()).json()["manifest_url"]
    filename = manifest_url.rsplit("/", 1)[-1]

    response = client.get(f"/v1/documents/{filename}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.content[:2] == b"PK"


def test_submit_validation_errors_are_400() -> None:
    payload = cart_payload(recipient_count=0)
    payload["buyer"]["email"] = ""

    response = client.post("/v1/orders/submit", json=payload)

    assert response.status_code == 400
    errors = response.json()["detail"]["errors"]
    assert "recipient_count: at least one recipient is required" in errors
    assert "buyer.email: required" in errors


def test_submit_malformed_body_is_400_not_422() -> None:
    response = client.post("/v1/orders/submit", json={"selection": {"kind": "bogus"}})
    assert response.status_code == 400
    assert response.json()["detail"]["errors"]


def test_submit_upstream_rejection_is_500_with_message() -> None:
    payload = cart_payload()
    payload["selection"]["items"][0]["variant_id"] = "abc"

    response = client.post("/v1/orders/submit", json=payload)

    assert response.status_code == 500
    assert response.json()["detail"] == "Variant abc does not exist"


def test_pricing_preview() -> None:
    payload = {
        "selection": cart_payload()["selection"],
        "recipient_count": 10,
        "delivery_method": {"id": "ups-ground", "name": "UPS Ground", "price_cents": 1299},
    }

    response = client.post("/v1/pricing/preview", json=payload)

    assert response.status_code == 200
    data = response.json()
    assert data["gift_subtotal_cents"] == 35_000
    assert data["fulfillment_fee_cents"] == 0
    assert data["shipping_cost_cents"] == 12_990
    assert data["total_cents"] == 47_990


def test_invoice_download_is_pdf() -> None:
    response = client.post(
        "/v1/invoice",
        json={"order_number": "#D00042", "cart": cart_payload(discount_code="SAVE50")},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="Invoice_D00042.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_invoice_download_requires_selection() -> None:
    response = client.post(
        "/v1/invoice",
        json={"order_number": "#D1", "cart": cart_payload(selection=None)},
    )
    assert response.status_code == 400


@pytest.mark.parametrize("name", ["missing.pdf", "..secret", ".env"])
def test_unknown_documents_are_404(name: str) -> None:
    assert client.get(f"/v1/documents/{name}").status_code == 404


def test_discount_validate() -> None:
    response = client.post(
        "/v1/discounts/validate", json={"code": "save50", "order_subtotal_cents": 3000}
    )
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "code": "SAVE50",
        "title": "$50 off",
        "value_type": "FIXED_AMOUNT",
        "value": 50.0,
        "discount_amount_cents": 3000,
        "error": None,
    }


def test_discount_validate_unknown_code() -> None:
    response = client.post(
        "/v1/discounts/validate", json={"code": "NOPE", "order_subtotal_cents": 3000}
    )
    assert response.status_code == 200
    assert response.json()["valid"] is False
    assert response.json()["error"] == "Discount code not found"


@pytest.mark.parametrize(
    "payload",
    [{"code": "  ", "order_subtotal_cents": 3000}, {"code": "SAVE50", "order_subtotal_cents": 0}],
)
def test_discount_validate_bad_request(payload: dict) -> None:
    response = client.post("/v1/discounts/validate", json=payload)
    assert response.status_code == 400
    assert response.json()["valid"] is False


def test_recipients_dedupe() -> None:
    payload = {
        "recipients": [
            recipient_payload(gift_message="first"),
            recipient_payload(first_name="ADA", gift_message="second"),
            recipient_payload(first_name="Alan"),
        ]
    }

    data = client.post("/v1/recipients/dedupe", json=payload).json()

    assert [r["first_name"] for r in data["recipients"]] == ["Ada", "Alan"]
    assert data["recipients"][0]["gift_message"] == "first"
    assert data["removed_count"] == 1
    assert len(data["duplicate_groups"]) == 1
    assert len(data["duplicate_groups"][0]["recipients"]) == 2


def test_recipients_merge() -> None:
    payload = {
        "existing": [recipient_payload()],
        "incoming": [recipient_payload(), recipient_payload(first_name="Alan")],
    }

    data = client.post("/v1/recipients/merge", json=payload).json()

    assert [r["first_name"] for r in data["recipients"]] == ["Ada", "Alan"]
    assert [r["first_name"] for r in data["added"]] == ["Alan"]
    assert [r["first_name"] for r in data["duplicates"]] == ["Ada"]


def test_recipients_validate() -> None:
    payload = {"recipients": [recipient_payload(), recipient_payload(state="XX")]}

    data = client.post("/v1/recipients/validate", json=payload).json()

    assert data["valid_count"] == 1
    assert data["invalid_count"] == 1
    assert data["recipients"][1]["errors"] == ["state: Invalid US state abbreviation"]


def test_delivery_methods() -> None:
    data = client.get("/v1/delivery-methods").json()

    assert data["source"] == "commerce_mock"
    assert data["error"] is None

    assert [(m["id"], m["price_cents"]) for m in data["methods"]] == [
        ("one-location", 0),
        ("usps", 899),
        ("ups-ground", 1299),
        ("ups-2day", 2499),
    ]


def test_delivery_methods_fall_back_when_rates_fail() -> None:
    class _NoRates(MockCommerceAdapter):
        def list_delivery_rates(self):
            raise CommerceAdapterError("Shopify HTTP 503: unavailable")

    app.dependency_overrides[get_commerce] = lambda: _NoRates()

    data = client.get("/v1/delivery-methods").json()

    assert data["source"] == "fallback"
    assert data["error"] == "Shopify HTTP 503: unavailable"
    assert [m["id"] for m in data["methods"]] == ["one-location", "usps", "ups-ground", "ups-2day"]


def test_pricing_preview_ignores_client_shipping_price() -> None:
    payload = {
        "selection": cart_payload()["selection"],
        "recipient_count": 10,
        "delivery_method": {"id": "usps", "name": "USPS", "price_cents": 0},
    }

    data = client.post("/v1/pricing/preview", json=payload).json()

    assert data["shipping_per_recipient_cents"] == 899
    assert data["shipping_cost_cents"] == 8990


def test_pricing_preview_unknown_delivery_method_is_400() -> None:
    payload = {
        "selection": cart_payload()["selection"],
        "recipient_count": 10,
        "delivery_method": {"id": "free-please", "price_cents": 0},
    }

    response = client.post("/v1/pricing/preview", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == [
        "delivery_method.id: unknown delivery method 'free-please'"
    ]


def test_submit_unknown_delivery_method_is_400() -> None:
    payload = cart_payload(
        delivery_method={"id": "free-please", "price_cents": 0},
        recipients=[recipient_payload()],
    )

    response = client.post("/v1/orders/submit", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == [
        "delivery_method.id: unknown delivery method 'free-please'"
    ]


def test_invoice_download_unknown_delivery_method_is_400() -> None:
    cart = cart_payload(delivery_method={"id": "free-please", "price_cents": 0})

    response = client.post("/v1/invoice", json={"order_number": "#D1", "cart": cart})

    assert response.status_code == 400
