"""
Checkout Orchestrator

Drives one cart through payment:

    BUILDING -> AWAITING_PAYMENT -> CONFIRMED
                      |
                      +-> REJECTED -> BUILDING

- begin() re-checks the checkout permission, resolves the discount and
  freezes a quote of the current cart lines.
- confirm() validates the payment, then submits the sale exactly once
  through the service boundary. Each payment attempt carries a request_id;
  retry() resubmits with the same id so the service records at most one sale.
- Service failures leave the checkout in AWAITING_PAYMENT with the cart and
  payment preserved. Validation failures pass through REJECTED and return to
  BUILDING with the cart untouched.
- The cart is claimed from begin() until the checkout settles, so only one
  orchestrator (and one submission) works on it at a time.
- Cancelling an in-flight submission keeps its request_id on the cart; the
  next attempt with the same lines reuses it and may get the recorded sale
  back as a replay.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol

from ..permissions import CHECKOUT_PERMISSION, DISCOUNT_PERMISSION, Principal, require
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow
from ..validation import format_cents, parse_amount_cents
from .cart import Cart
from .discounts import DiscountResolution, parse_manual_discount, resolve
from .errors import (
    AuthorizationDenied,
    CheckoutCancelled,
    CheckoutInProgress,
    InsufficientPayment,
    InsufficientStock,
    InvalidCoupon,
    InvalidTransition,
    PosError,
    ServiceError,
    ServiceUnavailable,
    ValidationError,
)
from .loyalty import DEFAULT_CENTS_PER_POINT, REASON_PURCHASE, LoyaltyAccount, LoyaltyLedger, points_for_purchase
from .pricing import TaxPolicy, change_due, compute_totals


logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("efectivo", "tarjeta", "transferencia")

# Service answers that mean the sale was refused; the cashier corrects and restarts
_BUSINESS_REJECTIONS = (InsufficientStock, InvalidCoupon, InsufficientPayment, ValidationError)


class CheckoutState(str, enum.Enum):
    BUILDING = "building"
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class CheckoutBoundary(Protocol):
    async def validate_coupon(self, code: str, *, client_id: int | None = None,
                              purchase_amount_cents: int = 0):
        ...

    async def checkout(self, payload: dict) -> dict:
        ...


@dataclass(frozen=True)
class SaleLine:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_payload(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True)
class CheckoutQuote:
    lines: tuple[SaleLine, ...]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    resolution: DiscountResolution
    client_id: int | None = None

    @property
    def issues(self) -> tuple[str, ...]:
        return self.resolution.issues

    @property
    def coupon_code(self) -> str | None:
        return self.resolution.coupon_code


@dataclass(frozen=True)
class Sale:
    """Confirmed, immutable record of a paid transaction."""
    id: int | None
    lines: tuple[SaleLine, ...]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payment_method: str
    tendered_cents: int
    change_cents: int
    client_id: int | None
    created_at: datetime
    request_id: str
    coupon_code: str | None = None
    points_earned: int = 0

    def __post_init__(self):
        if self.change_cents < 0:
            raise ValueError("change_cents cannot be negative")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": [line.to_payload() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "tendered_cents": self.tendered_cents,
            "change_cents": self.change_cents,
            "client_id": self.client_id,
            "coupon_code": self.coupon_code,
            "points_earned": self.points_earned,
            "request_id": self.request_id,
            "created_at": to_utc_z(self.created_at),
        }


@dataclass(frozen=True)
class Transition:
    from_state: CheckoutState
    to_state: CheckoutState
    reason: str | None = None
    at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class _PendingPayment:
    method: str
    tendered_cents: int
    notes: str | None
    request_id: str


class CheckoutOrchestrator:
    def __init__(
        self,
        cart: Cart,
        principal: Callable[[], Principal | None],
        boundary: CheckoutBoundary,
        *,
        ledger: LoyaltyLedger | None = None,
        tax_policy: TaxPolicy | None = None,
        cents_per_point: int = DEFAULT_CENTS_PER_POINT,
    ):
        """
        ``principal`` is called at every check so a logout or token rejection
        in the owning session is seen immediately.
        """
        self.cart = cart
        self.boundary = boundary
        self.ledger = ledger if ledger is not None else LoyaltyLedger()
        self.tax_policy = tax_policy or cart.tax_policy
        self.cents_per_point = cents_per_point

        self._principal = principal
        self._state = CheckoutState.BUILDING
        self._history: list[Transition] = []
        self._quote: CheckoutQuote | None = None
        self._payment: _PendingPayment | None = None
        self._submission: asyncio.Future | None = None
        self._cancelled = False
        self._beginning = False
        self._sale: Sale | None = None
        self.last_error: PosError | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def quote(self) -> CheckoutQuote | None:
        return self._quote

    @property
    def sale(self) -> Sale | None:
        return self._sale

    @property
    def history(self) -> tuple[Transition, ...]:
        return tuple(self._history)

    @property
    def in_flight(self) -> bool:
        return self._submission is not None

    def change_for(self, tendered) -> int:
        if self._quote is None:
            raise InvalidTransition("No checkout in progress")
        return change_due(parse_amount_cents(tendered, "payment_amount"), self._quote.total_cents)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def begin(self, manual_discount=None, coupon_code: str | None = None,
                    client: LoyaltyAccount | None = None) -> CheckoutQuote:
        self._expect(CheckoutState.BUILDING)
        if self._beginning:
            raise CheckoutInProgress("Checkout is already being started")
        self._authorize(CHECKOUT_PERMISSION)

        if self.cart.is_empty:
            raise ValidationError("Cart is empty")

        if parse_manual_discount(manual_discount) > 0:
            self._authorize(DISCOUNT_PERMISSION)

        self.cart.claim_checkout(self)
        self._beginning = True
        try:
            resolution = await resolve(
                self.cart,
                manual_discount,
                coupon_code,
                client,
                validator=self.boundary,
            )
        except BaseException:
            self.cart.release_checkout(self)
            raise
        finally:
            self._beginning = False

        lines = self._cart_lines()
        subtotal = sum(line.subtotal_cents for line in lines)
        totals = compute_totals(subtotal, min(resolution.effective_discount_cents, subtotal), self.tax_policy)

        if client is not None and self.ledger.account(client.client_id) is None:
            self.ledger.register(client)

        self._quote = CheckoutQuote(
            lines=lines,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            resolution=resolution,
            client_id=client.client_id if client else None,
        )
        self.last_error = None
        self._transition(CheckoutState.AWAITING_PAYMENT, "begin")
        return self._quote

    async def confirm(self, payment_method: str | None, tendered, notes: str | None = None) -> Sale:
        owner = self.cart.checkout_owner
        if self._submission is not None or (owner is not None and owner is not self):
            raise CheckoutInProgress("A payment for this cart is already being submitted")
        if self._state == CheckoutState.CONFIRMED:
            raise InvalidTransition("Sale already confirmed")
        self._expect(CheckoutState.AWAITING_PAYMENT)
        self._authorize(CHECKOUT_PERMISSION)

        try:
            payment = self._validate_payment(payment_method, tendered, notes)
        except (ValidationError, InsufficientPayment) as exc:
            self._reject(exc)
            raise

        self._payment = payment
        return await self._submit()

    async def retry(self) -> Sale:
        """Resubmit the preserved payment after a service failure."""
        if self._submission is not None:
            raise CheckoutInProgress("A payment for this cart is already being submitted")
        if self._state == CheckoutState.CONFIRMED:
            raise InvalidTransition("Sale already confirmed")
        self._expect(CheckoutState.AWAITING_PAYMENT)
        if self._payment is None:
            raise InvalidTransition("No payment to retry")
        self._authorize(CHECKOUT_PERMISSION)
        return await self._submit()

    def cancel(self) -> None:
        """Abandon payment and return to BUILDING. The cart is kept."""
        if self._state != CheckoutState.AWAITING_PAYMENT:
            raise InvalidTransition(f"Cannot cancel from {self._state.value}")

        if self._submission is not None:
            if self._submission.done():
                raise CheckoutInProgress("Submission already completed")
            self._cancelled = True
            self._submission.cancel()

        self._discard_payment()
        self._transition(CheckoutState.BUILDING, "cancelled")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _authorize(self, permission: str) -> None:
        principal = self._principal()
        try:
            require(principal, permission)
        except AuthorizationDenied:
            logger.warning(
                "Checkout denied: principal=%s permission=%s",
                principal.id if principal else None,
                permission,
            )
            raise

    def _expect(self, state: CheckoutState) -> None:
        if self._state != state:
            raise InvalidTransition(
                f"Expected state {state.value}, current state is {self._state.value}",
                {"expected": state.value, "current": self._state.value},
            )

    def _transition(self, new_state: CheckoutState, reason: str | None = None) -> None:
        self._history.append(Transition(self._state, new_state, reason))
        logger.info("Checkout %s -> %s (%s)", self._state.value, new_state.value, reason)
        self._state = new_state
        if new_state in (CheckoutState.BUILDING, CheckoutState.CONFIRMED):
            self.cart.release_checkout(self)

    def _discard_payment(self) -> None:
        if self._payment is not None:
            # Submitted but never settled: the service may hold this sale, so
            # the next attempt on the same lines reuses the request_id
            self.cart.unsettled_request = (self._quote.lines, self._payment.request_id)
        self._quote = None
        self._payment = None

    def _reject(self, error: PosError) -> None:
        self.last_error = error
        self._discard_payment()
        self._transition(CheckoutState.REJECTED, error.code)
        self._transition(CheckoutState.BUILDING, "rejected")

    def _cart_lines(self) -> tuple[SaleLine, ...]:
        return tuple(
            SaleLine(item.product_id, item.quantity, item.unit_price_cents)
            for item in self.cart.items
        )

    def _validate_payment(self, payment_method, tendered, notes) -> _PendingPayment:
        quote = self._quote

        if self._cart_lines() != quote.lines:
            raise ValidationError("Cart changed after checkout began")

        method = (payment_method or "").strip().lower()
        if not method:
            raise ValidationError("Payment method is required")
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"Unknown payment method: {payment_method}",
                {"allowed": list(PAYMENT_METHODS)},
            )

        tendered_cents = parse_amount_cents(tendered, "payment_amount")
        if tendered_cents < quote.total_cents:
            raise InsufficientPayment(quote.total_cents, tendered_cents)

        return _PendingPayment(
            method=method,
            tendered_cents=tendered_cents,
            notes=notes,
            request_id=self._request_id_for(quote.lines),
        )

    def _request_id_for(self, lines: tuple[SaleLine, ...]) -> str:
        if self._payment is not None:
            return self._payment.request_id
        unsettled = self.cart.unsettled_request
        if unsettled is not None and unsettled[0] == lines:
            logger.info("Reusing request_id %s of an unsettled attempt", unsettled[1])
            return unsettled[1]
        return uuid.uuid4().hex

    def _payload(self) -> dict:
        quote, payment = self._quote, self._payment
        return {
            "items": [line.to_payload() for line in quote.lines],
            "client_id": quote.client_id,
            "payment_method": payment.method,
            "payment_amount": format_cents(payment.tendered_cents),
            "discount_amount": format_cents(quote.discount_cents),
            "coupon_code": quote.coupon_code,
            "notes": payment.notes,
            "request_id": payment.request_id,
        }

    async def _submit(self) -> Sale:
        payload = self._payload()
        self._cancelled = False
        self._submission = asyncio.ensure_future(self.boundary.checkout(payload))

        try:
            response = await self._submission
        except asyncio.CancelledError:
            if self._cancelled:
                raise CheckoutCancelled("Payment cancelled by operator")
            # Caller went away; nothing was confirmed
            if self._state == CheckoutState.AWAITING_PAYMENT:
                self._discard_payment()
                self._transition(CheckoutState.BUILDING, "abandoned")
            raise
        except _BUSINESS_REJECTIONS as exc:
            logger.info("Checkout rejected by service: %s", exc.code)
            # A refusal means no sale exists under this request_id
            self._payment = None
            self.cart.unsettled_request = None
            self._reject(exc)
            raise
        except (ServiceUnavailable, ServiceError, AuthorizationDenied) as exc:
            # Sale not known to be recorded: keep everything for retry()
            logger.warning("Checkout submission failed (request_id=%s): %s", payload["request_id"], exc)
            self.last_error = exc
            raise
        finally:
            self._submission = None

        return self._complete(response or {})

    def _complete(self, response: dict) -> Sale:
        quote, payment = self._quote, self._payment
        data = response.get("sale") or {}
        replayed = bool(response.get("replayed"))

        def figure(key: str, local):
            # A replayed answer describes the sale recorded by the earlier attempt
            if replayed and data.get(key) is not None:
                return data[key]
            return local

        total = int(figure("total_cents", quote.total_cents))
        tendered = int(figure("payment_cents", payment.tendered_cents))

        created_at = parse_iso_datetime(data.get("created_at")) if data.get("created_at") else utcnow()
        if "points_earned" in data:
            points = int(data["points_earned"] or 0)
        elif quote.client_id is not None:
            points = points_for_purchase(total, self.cents_per_point)
        else:
            points = 0

        sale = Sale(
            id=data.get("id"),
            lines=quote.lines,
            subtotal_cents=int(figure("subtotal_cents", quote.subtotal_cents)),
            discount_cents=int(figure("discount_cents", quote.discount_cents)),
            tax_cents=int(figure("tax_cents", quote.tax_cents)),
            total_cents=total,
            payment_method=figure("payment_method", payment.method),
            tendered_cents=tendered,
            change_cents=change_due(tendered, total),
            client_id=figure("client_id", quote.client_id),
            created_at=created_at,
            request_id=payment.request_id,
            coupon_code=quote.coupon_code,
            points_earned=points,
        )

        self._sale = sale
        self.last_error = None
        self.cart.unsettled_request = None
        self.cart.clear()

        if quote.client_id is not None and points > 0 and self.ledger.account(quote.client_id) is not None:
            self.ledger.adjust(quote.client_id, points, REASON_PURCHASE, f"Venta #{sale.id}")

        self._transition(CheckoutState.CONFIRMED, "confirmed")
        return sale
