"""Order submission: turn a validated cart into a placed order.

The sequence is validate, price, re-check the discount code, create the
upstream order, then run the best-effort steps (documents, storage, order
annotation, notifications). Order creation is the only step whose failure
aborts a submission. Each best-effort step records its own StepResult and
never stops the steps after it.

The discount re-check fails open: a code that no longer validates is dropped
and the order is placed at full price with ``discount_warning`` set.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import structlog

from services.api.app.models.order import (
    DELIVERY_METHOD_IDS,
    AppliedDiscount,
    CartSnapshot,
    LineItemsSelection,
    PackageSelection,
    PricingBreakdown,
    StepName,
    StepResult,
    SubmissionResult,
)
from services.api.app.services.commerce_base import CommerceAdapter, CreatedOrder
from services.api.app.services.delivery import DeliveryCatalog, load_delivery_catalog
from services.api.app.services.discounts import DiscountValidator, normalize_code
from services.api.app.services.document_store import DocumentStore, document_filename
from services.api.app.services.documents import (
    OrderSnapshot,
    generate_invoice,
    generate_manifest,
    order_filename_stem,
)
from services.api.app.services.notifications import Attachment, Notifier
from services.api.app.services.order_creator import OrderCreator, build_order_note
from services.api.app.services.pricing import compute_total, unit_total_cents
from services.api.app.services.recipients import validate_recipient

logger = structlog.get_logger(__name__)


class CartValidationError(Exception):
    """The cart is incomplete; nothing was sent upstream."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class DegradedStepError(Exception):
    """A best-effort step failed; the order stands."""


class StepSkipped(Exception):
    """A best-effort step had nothing to do."""


class SubmissionState(str, Enum):
    VALIDATING = "Validating"
    PRICING = "Pricing"
    DISCOUNT_REVALIDATION = "DiscountRevalidation"
    CREATING = "Creating"
    DOCUMENT_GENERATION = "DocumentGeneration"
    DOCUMENT_STORAGE = "DocumentStorage"
    ORDER_ANNOTATION = "OrderAnnotation"
    NOTIFYING = "Notifying"
    DONE = "Done"


_STEP_STATES = {
    StepName.DISCOUNT_REVALIDATION: SubmissionState.DISCOUNT_REVALIDATION,
    StepName.MANIFEST_GENERATION: SubmissionState.DOCUMENT_GENERATION,
    StepName.INVOICE_GENERATION: SubmissionState.DOCUMENT_GENERATION,
    StepName.MANIFEST_STORAGE: SubmissionState.DOCUMENT_STORAGE,
    StepName.INVOICE_STORAGE: SubmissionState.DOCUMENT_STORAGE,
    StepName.ORDER_ANNOTATION: SubmissionState.ORDER_ANNOTATION,
    StepName.CONFIRMATION_EMAIL: SubmissionState.NOTIFYING,
    StepName.PAYMENT_INVOICE_EMAIL: SubmissionState.NOTIFYING,
    StepName.INVOICE_SMS: SubmissionState.NOTIFYING,
}

XLSX = ("application", "vnd.openxmlformats-officedocument.spreadsheetml.sheet")
PDF = ("application", "pdf")


def validate_cart(cart: CartSnapshot) -> list[str]:
    """Every problem with the cart, not just the first."""
    errors: list[str] = []

    selection = cart.selection
    if selection is None:
        errors.append("selection: choose products or a package")
    elif isinstance(selection, LineItemsSelection):
        if not selection.items:
            errors.append("selection.items: at least one product is required")
        for idx, item in enumerate(selection.items):
            if not item.variant_id:
                errors.append(
                    f"selection.items[{idx}].variant_id: {item.title} has no commerce variant"
                )
    elif isinstance(selection, PackageSelection) and not selection.package.variant_id:
        errors.append(
            f"selection.package.variant_id: {selection.package.name} has no commerce variant"
        )

    method_id = cart.delivery_method.id
    if method_id not in DELIVERY_METHOD_IDS:
        errors.append(unknown_delivery_method(method_id))
    elif cart.delivery_method.is_shipped and not cart.recipients:
        errors.append("recipients: shipped delivery needs a recipient address list")

    if cart.effective_recipient_count < 1:
        errors.append("recipient_count: at least one recipient is required")
    for idx, recipient in enumerate(cart.recipients):
        errors.extend(f"recipients[{idx}].{err}" for err in validate_recipient(recipient))

    buyer = cart.buyer
    for field_name in ("name", "email", "phone", "company", "delivery_date"):
        if not (getattr(buyer, field_name) or "").strip():
            errors.append(f"buyer.{field_name}: required")
    email = buyer.email.strip()
    # Control characters anywhere in the raw value would end up in a mail header.
    if email and (
        "@" not in email
        or "." not in email.rpartition("@")[2]
        or " " in email
        or any(ord(ch) < 32 or ord(ch) == 127 for ch in buyer.email)
    ):
        errors.append("buyer.email: invalid email address")

    return errors


def unknown_delivery_method(method_id: str) -> str:
    return f"delivery_method.id: unknown delivery method {method_id!r}"


@dataclass(frozen=True, slots=True)
class Quote:
    cart: CartSnapshot
    pricing: PricingBreakdown
    discount: AppliedDiscount | None
    discount_step: StepResult
    discount_warning: str | None = None


@dataclass
class SubmissionContext:
    cart: CartSnapshot
    pricing: PricingBreakdown
    discount: AppliedDiscount | None
    order: CreatedOrder
    snapshot: OrderSnapshot
    manifest: bytes | None = None
    invoice: bytes | None = None
    manifest_url: str | None = None
    invoice_document_url: str | None = None
    steps: list[StepResult] = field(default_factory=list)


Step = Callable[[SubmissionContext], None]


class OrderSubmissionOrchestrator:
    def __init__(
        self,
        commerce: CommerceAdapter,
        store: DocumentStore,
        notifier: Notifier,
        *,
        discount_validator: DiscountValidator | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._commerce = commerce
        self._store = store
        self._notifier = notifier
        self._discounts = discount_validator or DiscountValidator(commerce, clock=clock)
        self._creator = OrderCreator(commerce)
        self._clock = clock
        self._catalog: DeliveryCatalog | None = None

    def submit(self, cart: CartSnapshot) -> SubmissionResult:
        log = logger.bind(buyer_email=cart.buyer.email)

        errors = validate_cart(cart)
        if errors:
            log.info("Submission rejected", state=SubmissionState.VALIDATING.value, errors=errors)
            raise CartValidationError(errors)

        quote = self.quote(cart)
        cart, pricing, discount = quote.cart, quote.pricing, quote.discount
        log.debug(
            "Cart priced",
            state=SubmissionState.PRICING.value,
            total_cents=pricing.total_cents,
            discount_code=discount.code if discount else None,
        )

        # Raises UpstreamOrderError; nothing below runs without an order.
        log.debug("Creating upstream order", state=SubmissionState.CREATING.value)
        order = self._creator.create(cart, pricing, cart.buyer, discount)
        log = log.bind(order_id=order.order_id, order_number=order.order_number)

        ctx = SubmissionContext(
            cart=cart,
            pricing=pricing,
            discount=discount,
            order=order,
            snapshot=OrderSnapshot(
                order_id=order.order_id,
                order_number=order.order_number,
                order_date=self._clock(),
                invoice_url=order.invoice_url,
                cart=cart,
                pricing=pricing,
                discount=discount,
            ),
            steps=[quote.discount_step],
        )

        for name, step in self.best_effort_steps():
            ctx.steps.append(self._run_step(name, step, ctx))

        failed = [s.name.value for s in ctx.steps if not s.success and not s.skipped]
        log.info("Submission complete", state=SubmissionState.DONE.value, failed_steps=failed)

        return SubmissionResult(
            order_id=order.order_id,
            order_number=order.order_number,
            invoice_url=order.invoice_url,
            manifest_url=ctx.manifest_url,
            manifest_error=_manifest_error(ctx.steps),
            invoice_document_url=ctx.invoice_document_url,
            pricing=pricing,
            applied_discount=discount,
            discount_warning=quote.discount_warning,
            steps=ctx.steps,
        )

    def quote(self, cart: CartSnapshot) -> Quote:
        """Final pricing with delivery and the discount code re-derived server-side."""
        cart = self.with_catalog_delivery(cart)
        pricing = self.price(cart)
        discount, step, warning = self._revalidate_discount(cart, pricing)
        if discount is not None:
            pricing = self.price(cart, discount_cents=discount.discount_amount_cents)
        return Quote(
            cart=cart,
            pricing=pricing,
            discount=discount,
            discount_step=step,
            discount_warning=warning,
        )

    def delivery_catalog(self) -> DeliveryCatalog:
        if self._catalog is None:
            self._catalog = load_delivery_catalog(self._commerce)
        return self._catalog

    def with_catalog_delivery(self, cart: CartSnapshot) -> CartSnapshot:
        """The cart with its delivery method replaced by the catalog entry of the same id."""
        method = self.delivery_catalog().find(cart.delivery_method.id)
        if method is None:
            raise CartValidationError([unknown_delivery_method(cart.delivery_method.id)])
        if method == cart.delivery_method:
            return cart
        logger.debug(
            "Delivery method repriced from catalog",
            method_id=method.id,
            client_cents=cart.delivery_method.price_cents,
            catalog_cents=method.price_cents,
        )
        return cart.model_copy(update={"delivery_method": method})

    def price(self, cart: CartSnapshot, *, discount_cents: int = 0) -> PricingBreakdown:
        assert cart.selection is not None
        return compute_total(
            unit_total_cents(cart.selection),
            cart.effective_recipient_count,
            cart.delivery_method,
            discount_cents=discount_cents,
        )

    def best_effort_steps(self) -> list[tuple[StepName, Step]]:
        return [
            (StepName.MANIFEST_GENERATION, self._generate_manifest),
            (StepName.INVOICE_GENERATION, self._generate_invoice),
            (StepName.MANIFEST_STORAGE, self._store_manifest),
            (StepName.INVOICE_STORAGE, self._store_invoice),
            (StepName.ORDER_ANNOTATION, self._annotate_order),
            (StepName.CONFIRMATION_EMAIL, self._send_confirmation),
            (StepName.PAYMENT_INVOICE_EMAIL, self._send_payment_invoice),
            (StepName.INVOICE_SMS, self._send_invoice_sms),
        ]

    def _run_step(self, name: StepName, step: Step, ctx: SubmissionContext) -> StepResult:
        try:
            step(ctx)
        except StepSkipped as e:
            logger.debug(
                "Step skipped", step=name.value, state=_STEP_STATES[name].value, reason=str(e)
            )
            return StepResult(name=name, success=False, skipped=True, error=str(e) or None)
        except Exception as e:
            logger.warning(
                "Step failed",
                step=name.value,
                state=_STEP_STATES[name].value,
                order_number=ctx.order.order_number,
                error=str(e),
                error_type=type(e).__name__,
            )
            return StepResult(name=name, success=False, error=str(e) or type(e).__name__)

        logger.debug(
            "Step succeeded",
            step=name.value,
            state=_STEP_STATES[name].value,
            order_number=ctx.order.order_number,
        )
        return StepResult(name=name, success=True)

    def _revalidate_discount(
        self, cart: CartSnapshot, pricing: PricingBreakdown
    ) -> tuple[AppliedDiscount | None, StepResult, str | None]:
        name = StepName.DISCOUNT_REVALIDATION
        raw_code = cart.discount_code or (
            cart.applied_discount.code if cart.applied_discount else ""
        )
        code = normalize_code(raw_code or "")
        if not code:
            return None, StepResult(name=name, success=False, skipped=True), None

        try:
            result = self._discounts.validate(code, pricing.discountable_subtotal_cents)
        except Exception as e:
            logger.warning("Discount re-validation failed; proceeding without", code=code, error=str(e))
            warning = f"Discount code {code} could not be verified and was not applied"
            return None, StepResult(name=name, success=False, error=str(e)), warning

        if not isinstance(result, AppliedDiscount):
            warning = f"Discount code {code} was not applied: {result.reason}"
            logger.warning("Discount no longer valid; proceeding without", code=code, reason=result.reason)
            return None, StepResult(name=name, success=False, error=result.reason), warning

        if cart.applied_discount is not None and (
            cart.applied_discount.discount_amount_cents != result.discount_amount_cents
        ):
            logger.info(
                "Client discount amount replaced",
                code=code,
                client_cents=cart.applied_discount.discount_amount_cents,
                server_cents=result.discount_amount_cents,
            )
        return result, StepResult(name=name, success=True), None

    def _generate_manifest(self, ctx: SubmissionContext) -> None:
        ctx.manifest = generate_manifest(ctx.snapshot)

    def _generate_invoice(self, ctx: SubmissionContext) -> None:
        ctx.invoice = generate_invoice(ctx.snapshot)

    def _store_manifest(self, ctx: SubmissionContext) -> None:
        if ctx.manifest is None:
            raise DegradedStepError("Manifest was not generated")
        stored = self._store.save(ctx.manifest, self._filename(ctx, "Recipients", "xlsx"))
        ctx.manifest_url = self._store.url_for(stored)

    def _store_invoice(self, ctx: SubmissionContext) -> None:
        if ctx.invoice is None:
            raise DegradedStepError("Invoice was not generated")
        stored = self._store.save(ctx.invoice, self._filename(ctx, "Invoice", "pdf"))
        ctx.invoice_document_url = self._store.url_for(stored)

    def _annotate_order(self, ctx: SubmissionContext) -> None:
        if ctx.manifest_url is None:
            raise StepSkipped("No manifest URL to attach")
        note = build_order_note(ctx.cart, ctx.pricing, ctx.discount, manifest_url=ctx.manifest_url)
        self._commerce.update_order_note(ctx.order.order_id, note)

    def _send_confirmation(self, ctx: SubmissionContext) -> None:
        stem = order_filename_stem(ctx.order.order_number)
        attachments: list[Attachment] = []
        if ctx.manifest is not None:
            attachments.append(
                Attachment(f"Order_{stem}_Recipients.xlsx", ctx.manifest, *XLSX)
            )
        if ctx.invoice is not None:
            attachments.append(Attachment(f"Invoice_{stem}.pdf", ctx.invoice, *PDF))

        result = self._notifier.send_confirmation(ctx.cart.buyer, ctx.snapshot, attachments)
        if not result.success:
            raise DegradedStepError(result.error or "Confirmation email failed")

    def _send_payment_invoice(self, ctx: SubmissionContext) -> None:
        buyer = ctx.cart.buyer
        result = self._notifier.send_payment_invoice(
            ctx.order.order_id,
            buyer.email,
            f"Invoice for order {ctx.order.order_number} - Brown Sugar Bakery",
            f"Hi {buyer.name}, thank you for your corporate gifting order. "
            "Use the link below to review and pay your invoice.",
        )
        if not result.success:
            raise DegradedStepError(result.error or "Payment invoice email failed")

    def _send_invoice_sms(self, ctx: SubmissionContext) -> None:
        buyer = ctx.cart.buyer
        if not buyer.notify_by_text:
            raise StepSkipped("Text notification not requested")
        result = self._notifier.send_invoice_sms(
            buyer.phone, buyer.name, ctx.order.order_number, ctx.order.invoice_url
        )
        if not result.success:
            raise DegradedStepError(result.error or "Invoice SMS failed")

    def _filename(self, ctx: SubmissionContext, kind: str, extension: str) -> str:
        return document_filename(
            order_filename_stem(ctx.order.order_number),
            kind,
            ctx.snapshot.order_date.date(),
            extension,
        )


def _manifest_error(steps: list[StepResult]) -> str | None:
    for step in steps:
        if step.name in (StepName.MANIFEST_GENERATION, StepName.MANIFEST_STORAGE) and not step.success:
            return step.error
    return None
