from __future__ import annotations

import base64
import html
import json
import re
import smtplib
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import structlog

from services.api.app.config import SmtpConfig, TwilioConfig
from services.api.app.models.order import BuyerInfo
from services.api.app.services.commerce_base import CommerceAdapter
from services.api.app.services.documents import (
    OrderSnapshot,
    format_delivery_date,
    format_long_date,
    pricing_rows,
    product_rows,
)
from services.api.app.services.pricing import format_money

logger = structlog.get_logger(__name__)

BAKERY_PHONE = "773-570-7676"
BAKERY_SITE = "https://www.brownsugarbakerychicago.com"


@dataclass(frozen=True, slots=True)
class NotificationResult:
    success: bool
    error: str | None = None
    message_id: str | None = None


@dataclass(frozen=True, slots=True)
class Attachment:
    filename: str
    content: bytes
    maintype: str
    subtype: str


class EmailTransport(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class SmsTransport(Protocol):
    def send(self, to: str, body: str) -> str: ...


class SmtpEmailTransport:
    def __init__(self, cfg: SmtpConfig) -> None:
        self._cfg = cfg

    def send(self, message: EmailMessage) -> None:
        if self._cfg.secure:
            with smtplib.SMTP_SSL(self._cfg.host, self._cfg.port, timeout=30) as smtp:
                smtp.login(self._cfg.user, self._cfg.password)
                smtp.send_message(message)
            return

        with smtplib.SMTP(self._cfg.host, self._cfg.port, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(self._cfg.user, self._cfg.password)
            smtp.send_message(message)


class TwilioSmsTransport:
    def __init__(self, cfg: TwilioConfig) -> None:
        self._cfg = cfg

    def send(self, to: str, body: str) -> str:
        url = f"https://api.twilio.com/2010-04-01/Accounts/{self._cfg.account_sid}/Messages.json"
        form = urllib.parse.urlencode({"To": to, "From": self._cfg.from_number, "Body": body})
        credentials = f"{self._cfg.account_sid}:{self._cfg.auth_token}".encode("utf-8")

        req = urllib.request.Request(url, method="POST")
        req.add_header("Authorization", f"Basic {base64.b64encode(credentials).decode('ascii')}")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")

        try:
            with urllib.request.urlopen(req, data=form.encode("utf-8"), timeout=30) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Twilio HTTP {e.code}: {raw}") from e

        return str(payload.get("sid", ""))


def format_phone_number(phone: str) -> str:
    """E.164 for US numbers; anything unrecognised is returned unchanged."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) > 10:
        return f"+{digits}"
    return phone


def confirmation_subject(order_number: str) -> str:
    return f"Order Confirmation - {order_number} - Brown Sugar Bakery"


def confirmation_text(snapshot: OrderSnapshot, *, now: datetime) -> str:
    cart = snapshot.cart
    buyer = cart.buyer

    lines = [
        "Brown Sugar Bakery - Corporate Gifting",
        "Order Confirmation",
        "",
        f"Dear {buyer.name},",
        "",
        "Thank you for your corporate gifting order! We've received your order and are "
        "excited to help you share the sweetness.",
        "",
        "ORDER DETAILS",
        f"Order Number: {snapshot.order_number}",
        f"Order Date: {format_long_date(now)}",
    ]
    if cart.tier:
        lines.append(f"Tier: {cart.tier}")
    lines += [
        f"Delivery Date: {format_delivery_date(buyer.delivery_date)}",
        f"Delivery Method: {cart.delivery_method.name}",
        f"Number of Recipients: {snapshot.pricing.recipient_count}",
        "",
        "ORDER ITEMS",
    ]
    for row in product_rows(snapshot):
        lines.append(
            f"- {row.title} x {row.quantity_per_recipient} per recipient "
            f"@ {format_money(row.unit_price_cents)} = {format_money(row.subtotal_cents)}"
        )
    lines += ["", "ORDER SUMMARY"]
    lines += [f"{label}: {format_money(cents)}" for label, cents in pricing_rows(snapshot)]

    if buyer.notes:
        lines += ["", "ORDER NOTES", buyer.notes]

    lines += [
        "",
        "WHAT HAPPENS NEXT?",
        "1. You will receive an invoice via email with payment instructions.",
        "2. Our team will call you to confirm the order details and answer any questions.",
        "3. Once confirmed and paid, we'll begin preparing your gifts with care and attention.",
        "",
        f"View Invoice: {snapshot.invoice_url}",
        "",
        f"Questions? Contact us at {BAKERY_PHONE}",
        f"Visit us at {BAKERY_SITE}",
    ]
    return "\n".join(lines)


def confirmation_html(snapshot: OrderSnapshot, *, now: datetime) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(label)}</td>"
        f"<td style=\"text-align:right\">{format_money(cents)}</td></tr>"
        for label, cents in pricing_rows(snapshot)
    )
    items = "".join(
        f"<tr><td>{html.escape(row.title)}</td><td>{row.quantity_per_recipient}</td>"
        f"<td style=\"text-align:right\">{format_money(row.unit_price_cents)}</td></tr>"
        for row in product_rows(snapshot)
    )
    buyer = snapshot.cart.buyer
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #333;\">"
        "<h1 style=\"color: #E98D3D;\">Brown Sugar Bakery</h1>"
        f"<p>Dear {html.escape(buyer.name)},</p>"
        "<p>Thank you for your corporate gifting order!</p>"
        f"<p><strong>Order Number:</strong> {html.escape(snapshot.order_number)}<br>"
        f"<strong>Order Date:</strong> {format_long_date(now)}<br>"
        f"<strong>Delivery Date:</strong> {format_delivery_date(buyer.delivery_date)}<br>"
        f"<strong>Delivery Method:</strong> {html.escape(snapshot.cart.delivery_method.name)}<br>"
        f"<strong>Number of Recipients:</strong> {snapshot.pricing.recipient_count}</p>"
        f"<table>{items}</table>"
        f"<table>{rows}</table>"
        f"<p><a href=\"{html.escape(snapshot.invoice_url)}\">View Invoice</a></p>"
        f"<p>Questions? Contact us at {BAKERY_PHONE}</p>"
        "</body></html>"
    )


class Notifier:
    """Buyer-facing notifications. Every method reports failure instead of raising."""

    def __init__(
        self,
        commerce: CommerceAdapter,
        *,
        smtp: SmtpConfig,
        email_transport: EmailTransport | None = None,
        sms_transport: SmsTransport | None = None,
    ) -> None:
        self._commerce = commerce
        self._smtp = smtp
        self._email = email_transport
        self._sms = sms_transport

    @classmethod
    def from_env(cls, commerce: CommerceAdapter) -> "Notifier":
        smtp = SmtpConfig.from_env()
        twilio = TwilioConfig.from_env()
        return cls(
            commerce,
            smtp=smtp,
            email_transport=SmtpEmailTransport(smtp) if smtp.is_configured else None,
            sms_transport=TwilioSmsTransport(twilio) if twilio.is_configured else None,
        )

    def send_confirmation(
        self,
        buyer: BuyerInfo,
        snapshot: OrderSnapshot,
        attachments: list[Attachment] | None = None,
    ) -> NotificationResult:
        if self._email is None:
            logger.warning("Email not configured; skipping order confirmation email")
            return NotificationResult(success=False, error="Email not configured")

        try:
            # Header assignment raises ValueError on CR/LF in the address.
            message = self._confirmation_message(buyer, snapshot, attachments or [])
            self._email.send(message)
        except Exception as e:
            logger.warning("Order confirmation email failed", to=buyer.email, error=str(e))
            return NotificationResult(success=False, error=str(e))

        logger.info("Order confirmation email sent", to=buyer.email)
        return NotificationResult(success=True)

    def _confirmation_message(
        self, buyer: BuyerInfo, snapshot: OrderSnapshot, attachments: list[Attachment]
    ) -> EmailMessage:
        now = datetime.now()
        message = EmailMessage()
        message["From"] = formataddr((self._smtp.from_name, self._smtp.from_email))
        message["To"] = buyer.email
        message["Reply-To"] = self._smtp.from_email
        message["Subject"] = confirmation_subject(snapshot.order_number)
        message.set_content(confirmation_text(snapshot, now=now))
        message.add_alternative(confirmation_html(snapshot, now=now), subtype="html")
        for attachment in attachments:
            message.add_attachment(
                attachment.content,
                maintype=attachment.maintype,
                subtype=attachment.subtype,
                filename=attachment.filename,
            )
        return message

    def send_payment_invoice(
        self,
        order_id: str,
        buyer_email: str,
        subject: str,
        body_text: str,
    ) -> NotificationResult:
        try:
            self._commerce.send_invoice(order_id, to=buyer_email, subject=subject, message=body_text)
        except Exception as e:
            logger.warning("Payment invoice email failed", order_id=order_id, error=str(e))
            return NotificationResult(success=False, error=str(e))

        logger.info("Payment invoice email triggered", order_id=order_id, to=buyer_email)
        return NotificationResult(success=True)

    def send_invoice_sms(
        self,
        phone: str,
        customer_name: str,
        order_number: str,
        invoice_url: str,
    ) -> NotificationResult:
        if self._sms is None:
            logger.warning("SMS not configured; skipping text notification")
            return NotificationResult(success=False, error="SMS not configured")

        to = format_phone_number(phone)
        body = (
            f"Hi {customer_name}! Thank you for your Brown Sugar Bakery corporate gifting order "
            f"({order_number}). View and pay your invoice here: {invoice_url}\n\n"
            f"Questions? Call {BAKERY_PHONE}"
        )
        try:
            sid = self._sms.send(to, body)
        except Exception as e:
            logger.warning("Invoice SMS failed", to=to, error=str(e))
            return NotificationResult(success=False, error=str(e))

        logger.info("Invoice SMS sent", to=to, sid=sid)
        return NotificationResult(success=True, message_id=sid)
