"""Recipient manifest (xlsx) and customer invoice (pdf) rendering.

Both documents read their money lines from ``pricing_rows`` so the manifest,
the invoice and the confirmation email always agree with the order's
PricingBreakdown.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib.colors import Color
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from services.api.app.models.order import (
    AppliedDiscount,
    CartSnapshot,
    DeliveryMethod,
    PackageSelection,
    PricingBreakdown,
)
from services.api.app.services.pricing import format_money


@dataclass(frozen=True, slots=True)
class OrderSnapshot:
    order_id: str
    order_number: str
    order_date: datetime
    invoice_url: str
    cart: CartSnapshot
    pricing: PricingBreakdown
    discount: AppliedDiscount | None = None


@dataclass(frozen=True, slots=True)
class ProductRow:
    title: str
    quantity_per_recipient: int
    unit_price_cents: int
    total_quantity: int
    subtotal_cents: int


def format_long_date(value: date | datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def format_delivery_date(raw: str) -> str:
    if not raw:
        return "Not specified"
    try:
        return format_long_date(date.fromisoformat(raw[:10]))
    except ValueError:
        return raw


def order_filename_stem(order_number: str) -> str:
    return "".join(ch for ch in order_number if ch.isalnum() or ch in "-_") or "order"


def product_rows(snapshot: OrderSnapshot) -> list[ProductRow]:
    count = snapshot.pricing.recipient_count
    selection = snapshot.cart.selection

    if isinstance(selection, PackageSelection):
        pkg = selection.package
        return [
            ProductRow(
                title=pkg.name,
                quantity_per_recipient=pkg.quantity,
                unit_price_cents=pkg.price_cents,
                total_quantity=pkg.quantity * count,
                subtotal_cents=pkg.price_cents * pkg.quantity * count,
            )
        ]

    rows: list[ProductRow] = []
    for item in selection.items if selection is not None else []:
        rows.append(
            ProductRow(
                title=item.title,
                quantity_per_recipient=item.quantity,
                unit_price_cents=item.unit_price_cents,
                total_quantity=item.quantity * count,
                subtotal_cents=item.unit_price_cents * item.quantity * count,
            )
        )
    return rows


def gift_contents(snapshot: OrderSnapshot) -> str:
    return "; ".join(f"{row.quantity_per_recipient} x {row.title}" for row in product_rows(snapshot))


def breakdown_rows(
    pricing: PricingBreakdown,
    delivery_method: DeliveryMethod,
    discount: AppliedDiscount | None = None,
    *,
    titled_discount: bool = False,
) -> list[tuple[str, int]]:
    """(label, signed cents) lines ending with the order total."""
    rows: list[tuple[str, int]] = [("Gift Subtotal", pricing.gift_subtotal_cents)]
    if pricing.volume_discount_cents:
        rate = pricing.volume_discount_rate * 100
        rows.append((f"Volume Discount ({rate:g}%)", -pricing.volume_discount_cents))
    if pricing.discount_cents:
        if discount is None:
            label = "Discount (code)"
        elif titled_discount:
            label = f"Discount code {discount.code} ({discount.title})"
        else:
            label = f"Discount ({discount.code})"
        rows.append((label, -pricing.discount_cents))
    if delivery_method.is_shipped:
        if pricing.shipping_cost_cents:
            rows.append((f"Shipping ({delivery_method.name})", pricing.shipping_cost_cents))
    elif pricing.fulfillment_fee_cents:
        rows.append(
            (
                f"Delivery Fee ({pricing.fulfillment_fee_label} recipients)",
                pricing.fulfillment_fee_cents,
            )
        )
    rows.append(("Order Total", pricing.total_cents))
    return rows


def pricing_rows(snapshot: OrderSnapshot) -> list[tuple[str, int]]:
    return breakdown_rows(snapshot.pricing, snapshot.cart.delivery_method, snapshot.discount)


_GOLD_FILL = PatternFill(fill_type="solid", fgColor="FFD4AF37")
_CREAM_FILL = PatternFill(fill_type="solid", fgColor="FFF5E6D3")
_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def _header(sheet, columns: list[tuple[str, int]]) -> None:
    sheet.append([title for title, _ in columns])
    for idx, (_, width) in enumerate(columns, start=1):
        sheet.column_dimensions[sheet.cell(row=1, column=idx).column_letter].width = width
    for cell in sheet[1]:
        cell.font = Font(bold=True, size=12)
        cell.fill = _GOLD_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def generate_manifest(snapshot: OrderSnapshot) -> bytes:
    cart = snapshot.cart
    buyer = cart.buyer

    wb = Workbook()
    wb.properties.creator = "Brown Sugar Bakery Corporate Gifting"
    wb.properties.created = snapshot.order_date.replace(tzinfo=None)

    summary = wb.active
    summary.title = "Order Summary"
    _header(summary, [("Field Name", 28), ("Value", 48)])

    rows: list[tuple[str, str]] = [
        ("Order Number", snapshot.order_number),
        ("Order Date", format_long_date(snapshot.order_date)),
        ("Buyer Name", buyer.name),
        ("Buyer Company", buyer.company),
        ("Buyer Email", buyer.email),
        ("Buyer Phone", buyer.phone),
        ("Delivery Date", format_delivery_date(buyer.delivery_date)),
        ("Delivery Method", cart.delivery_method.name),
    ]
    if buyer.notes:
        rows.append(("Order Notes", buyer.notes))
    if cart.vendor_notes:
        rows.append(("Vendor Notes", cart.vendor_notes))
    for idx, url in enumerate(cart.vendor_document_urls, start=1):
        rows.append((f"Vendor Document {idx}", url))
    if cart.tier:
        rows.append(("Tier", cart.tier))
    rows.append(("Total Recipients", str(snapshot.pricing.recipient_count)))
    rows.extend((label, format_money(cents)) for label, cents in pricing_rows(snapshot))

    for field_name, value in rows:
        summary.append([field_name, value])
    for cell in summary["A"][1:]:
        cell.font = Font(bold=True)

    products = wb.create_sheet("Products")
    _header(
        products,
        [
            ("Product Name", 40),
            ("Quantity per Recipient", 22),
            ("Unit Price", 15),
            ("Total Quantity", 18),
            ("Subtotal", 15),
        ],
    )
    for row in product_rows(snapshot):
        products.append(
            [
                row.title,
                row.quantity_per_recipient,
                row.unit_price_cents / 100,
                row.total_quantity,
                row.subtotal_cents / 100,
            ]
        )
    products.append(["TOTAL", None, None, None, snapshot.pricing.gift_subtotal_cents / 100])
    for cell in products[products.max_row]:
        cell.font = Font(bold=True)
        cell.fill = _CREAM_FILL
    for column in ("C", "E"):
        for cell in products[column][1:]:
            cell.number_format = "$#,##0.00"

    recipients = wb.create_sheet("Recipients")
    _header(
        recipients,
        [
            ("Recipient #", 12),
            ("First Name", 18),
            ("Last Name", 18),
            ("Company", 25),
            ("Address Line 1", 30),
            ("Address Line 2", 30),
            ("City", 20),
            ("State", 10),
            ("ZIP Code", 12),
            ("Gift Contents", 40),
            ("Gift Message", 40),
        ],
    )
    recipients.freeze_panes = "A2"
    contents = gift_contents(snapshot)
    for idx, r in enumerate(cart.recipients, start=1):
        recipients.append(
            [
                idx,
                r.first_name,
                r.last_name,
                r.company or "",
                r.address1,
                r.address2 or "",
                r.city,
                r.state,
                r.zip,
                contents,
                r.gift_message or "",
            ]
        )

    for sheet in (summary, products, recipients):
        for sheet_row in sheet.iter_rows():
            for cell in sheet_row:
                cell.border = _BORDER

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


_BRAND_ORANGE = Color(233 / 255, 141 / 255, 61 / 255)
_BRAND_BROWN = Color(139 / 255, 115 / 255, 85 / 255)
_BLACK = Color(0, 0, 0)
_GRAY = Color(0.4, 0.4, 0.4)
_LIGHT_GRAY = Color(0.9, 0.9, 0.9)

_ROW_HEIGHT = 18
# Lowest baseline the item and pricing blocks may use; the pay-online footer sits below it.
_FOOTER_TOP = 80


def _fit_product_rows(
    rows: list[ProductRow], capacity: int
) -> tuple[list[ProductRow], list[ProductRow]]:
    """Rows drawn in full plus the overflow collapsed into one summary row."""
    if len(rows) <= capacity:
        return rows, []
    shown = max(capacity - 1, 0)
    return rows[:shown], rows[shown:]


def generate_invoice(snapshot: OrderSnapshot) -> bytes:
    """Single letter-size page. ``invariant`` keeps the bytes reproducible."""
    cart = snapshot.cart
    buyer = cart.buyer

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=letter, invariant=1, pageCompression=0)
    pdf.setTitle(f"Invoice {snapshot.order_number}")
    width, height = letter

    def text(x: float, y: float, value: str, *, size: int = 10, bold: bool = False, color=_BLACK):
        pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        pdf.setFillColor(color)
        pdf.drawString(x, y, value)

    def right(x: float, y: float, value: str, *, size: int = 10, bold: bool = False):
        pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        pdf.setFillColor(_BLACK)
        pdf.drawRightString(x, y, value)

    text(50, height - 50, "Brown Sugar Bakery", size=24, bold=True, color=_BRAND_ORANGE)
    text(50, height - 70, "Corporate Gifting", size=12, color=_BRAND_BROWN)
    text(width - 130, height - 50, "INVOICE", size=20, bold=True)
    text(width - 200, height - 80, f"Order #: {snapshot.order_number}", color=_GRAY)
    text(width - 200, height - 95, f"Date: {format_long_date(snapshot.order_date)}", color=_GRAY)

    y = height - 120
    pdf.setStrokeColor(_BRAND_ORANGE)
    pdf.setLineWidth(2)
    pdf.line(50, y, width - 50, y)

    y -= 30
    text(50, y, "BILL TO:", bold=True, color=_BRAND_BROWN)
    text(320, y, "DELIVERY:", bold=True, color=_BRAND_BROWN)
    bill_to = [buyer.name, buyer.company, buyer.email, buyer.phone]
    delivery = [
        cart.delivery_method.name,
        f"Delivery Date: {format_delivery_date(buyer.delivery_date)}",
        f"Recipients: {snapshot.pricing.recipient_count}",
    ]
    for idx in range(max(len(bill_to), len(delivery))):
        y -= 15
        if idx < len(bill_to):
            text(50, y, bill_to[idx], size=11 if idx == 0 else 10, bold=idx == 0)
        if idx < len(delivery):
            text(320, y, delivery[idx])

    y -= 35
    pdf.setFillColor(_LIGHT_GRAY)
    pdf.rect(50, y - 5, width - 100, 20, stroke=0, fill=1)
    text(55, y, "Product", bold=True)
    right(340, y, "Qty / Recipient", bold=True)
    right(420, y, "Unit Price", bold=True)
    right(width - 55, y, "Amount", bold=True)

    totals = pricing_rows(snapshot)
    instructions = buyer.notes or cart.vendor_notes
    instruction_lines = instructions.splitlines()[:6] if instructions else []
    reserved = _FOOTER_TOP + 30 + _ROW_HEIGHT * len(totals)
    if instruction_lines:
        reserved += 20 + 14 * len(instruction_lines)
    rows, hidden = _fit_product_rows(product_rows(snapshot), int((y - reserved) // _ROW_HEIGHT))

    for row in rows:
        y -= _ROW_HEIGHT
        text(55, y, row.title[:48])
        right(340, y, str(row.quantity_per_recipient))
        right(420, y, format_money(row.unit_price_cents))
        right(width - 55, y, format_money(row.subtotal_cents))
    if hidden:
        y -= _ROW_HEIGHT
        noun = "item" if len(hidden) == 1 else "items"
        text(55, y, f"... and {len(hidden)} more {noun} (see recipient manifest)", color=_GRAY)
        right(width - 55, y, format_money(sum(row.subtotal_cents for row in hidden)))

    y -= 30
    for label, cents in totals:
        is_total = label == "Order Total"
        if is_total:
            pdf.setStrokeColor(_BRAND_ORANGE)
            pdf.setLineWidth(1)
            pdf.line(330, y + 12, width - 50, y + 12)
        text(340, y, f"{label}:", size=12 if is_total else 10, bold=is_total)
        right(width - 55, y, format_money(cents), size=12 if is_total else 10, bold=is_total)
        y -= _ROW_HEIGHT

    if instruction_lines:
        y -= 20
        text(50, y, "SPECIAL INSTRUCTIONS:", bold=True, color=_BRAND_BROWN)
        for line in instruction_lines:
            y -= 14
            text(50, y, line[:95])

    text(50, 60, f"Pay online: {snapshot.invoice_url}", size=9, color=_GRAY)
    text(50, 45, "Questions? Call 773-570-7676", size=9, color=_GRAY)

    pdf.showPage()
    pdf.save()
    return buf.getvalue()
