# Overview: Service-layer operations for checkout; turns a submitted cart into an immutable Sale.

"""
Checkout Service

One request, one transaction:
1. Validate payment fields and cart lines
2. Lock products, check stock and charge the catalog price (PRICE_CHANGED when the
   cart captured a different one)
3. Resolve the discount (coupon locked and re-validated here; manual discount clamped)
4. Compute tax and total with the same pricing code the POS uses
5. Reject insufficient payment
6. Create Sale + SaleItems, decrement stock with StockMovements, record
   coupon usage and accrue loyalty points, then commit

IDEMPOTENCY: a request carrying a request_id that already produced a sale
returns that sale unchanged (replayed=True) instead of creating another.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Client, Product, Sale, SaleItem, StockMovement, User
from ..permissions import DISCOUNT_PERMISSION
from ..pos.checkout import PAYMENT_METHODS
from ..pos.discounts import clamp_discount
from ..pos.errors import ValidationError
from ..pos.pricing import TaxPolicy, change_due, compute_totals
from ..time_utils import utcnow
from ..validation import parse_amount_cents, parse_int, parse_optional_amount_cents
from . import coupon_service, loyalty_service, permission_service
from .concurrency import lock_for_update, run_with_retry


class CheckoutError(Exception):
    """Business rejection of a checkout; ``code`` is sent to the client."""

    def __init__(self, message: str, code: str, details: dict | None = None, status_code: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status_code = status_code


def _parse_lines(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Carrito vacío")

    lines = []
    seen = set()
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object", {"index": index})
        product_id = parse_int(raw.get("product_id"), "product_id", minimum=1)
        if product_id in seen:
            raise ValidationError("Duplicate product in items", {"product_id": product_id})
        seen.add(product_id)

        captured = raw.get("unit_price_cents")
        lines.append({
            "product_id": product_id,
            "quantity": parse_int(raw.get("quantity"), "quantity", minimum=1),
            "captured_price_cents": parse_int(captured, "unit_price_cents", minimum=0) if captured is not None else None,
        })
    return lines


def _find_replay(request_id: str | None, cashier: User) -> Sale | None:
    if not request_id:
        return None
    sale = db.session.query(Sale).filter_by(request_id=request_id).first()
    if sale is not None and sale.cashier_id != cashier.id:
        raise CheckoutError("request_id already used", "DUPLICATE_REQUEST", {"request_id": request_id}, 409)
    return sale


def process_checkout(
    *,
    cashier: User,
    payload: dict,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[Sale, bool]:
    """
    Returns (sale, replayed).

    Raises:
        ValidationError: malformed request
        PermissionDeniedError: manual discount without sales:apply_discount
        CheckoutError: INSUFFICIENT_STOCK, PRICE_CHANGED, INVALID_COUPON, INSUFFICIENT_PAYMENT, ...
    """
    request_id = str(payload.get("request_id") or "").strip() or None
    existing = _find_replay(request_id, cashier)
    if existing is not None:
        return existing, True

    payment_method = (payload.get("payment_method") or "").strip().lower()
    if not payment_method:
        raise ValidationError("Método de pago y monto son requeridos", {"missing": ["payment_method"]})
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {payment_method}", {"allowed": list(PAYMENT_METHODS)})

    payment_cents = parse_amount_cents(payload.get("payment_amount"), "payment_amount")
    manual_cents = parse_optional_amount_cents(payload.get("discount_amount"), "discount_amount", allow_negative=True)
    lines = _parse_lines(payload.get("items"))

    client_id = payload.get("client_id")
    if client_id is not None:
        client_id = parse_int(client_id, "client_id", minimum=1)

    coupon_code = coupon_service.normalize_code(payload.get("coupon_code")) or None
    notes = payload.get("notes")

    if coupon_code is None and manual_cents > 0:
        permission_service.require_access(
            cashier,
            DISCOUNT_PERMISSION,
            resource="/api/sales/checkout",
            ip_address=ip_address,
            user_agent=user_agent,
        )

    tax_policy = TaxPolicy(current_app.config["TAX_RATE_BPS"])

    def _op():
        client = None
        if client_id is not None:
            client = lock_for_update(db.session.query(Client).filter_by(id=client_id, is_active=True)).first()
            if client is None:
                raise CheckoutError("Client not found", "CLIENT_NOT_FOUND", {"client_id": client_id}, 404)

        products: dict[int, Product] = {}
        for line in lines:
            product = lock_for_update(db.session.query(Product).filter_by(id=line["product_id"])).first()
            if product is None or not product.is_active:
                raise CheckoutError("Product not found", "PRODUCT_NOT_FOUND", {"product_id": line["product_id"]}, 404)
            if product.stock_quantity < line["quantity"]:
                raise CheckoutError(
                    f"Stock insuficiente para {product.name}",
                    "INSUFFICIENT_STOCK",
                    {"product_id": product.id, "requested": line["quantity"], "available": product.stock_quantity},
                )
            # The catalog price is always charged; a stale cart price is sent back for refresh
            captured = line["captured_price_cents"]
            if captured is not None and captured != product.price_cents:
                raise CheckoutError(
                    f"El precio de {product.name} cambió",
                    "PRICE_CHANGED",
                    {"product_id": product.id, "captured_cents": captured, "current_cents": product.price_cents},
                    409,
                )
            line["unit_price_cents"] = product.price_cents
            products[product.id] = product

        subtotal = sum(line["quantity"] * line["unit_price_cents"] for line in lines)

        coupon = None
        if coupon_code:
            try:
                check = coupon_service.validate_code(
                    coupon_code, client_id=client_id, purchase_cents=subtotal, for_update=True,
                )
            except coupon_service.CouponNotFoundError as exc:
                raise CheckoutError(str(exc), "INVALID_COUPON", {"issues": [str(exc)]})
            if not check.is_valid:
                raise CheckoutError("Cupón no válido", "INVALID_COUPON", {"issues": check.issues})
            coupon = check.coupon
            discount = check.discount_cents
        else:
            discount = clamp_discount(manual_cents, subtotal)

        totals = compute_totals(subtotal, discount, tax_policy)

        if payment_cents < totals.total_cents:
            raise CheckoutError(
                "Monto insuficiente",
                "INSUFFICIENT_PAYMENT",
                {"required_cents": totals.total_cents, "provided_cents": payment_cents},
            )

        now = utcnow()
        sale = Sale(
            request_id=request_id,
            cashier_id=cashier.id,
            client_id=client_id,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            payment_method=payment_method,
            payment_cents=payment_cents,
            change_cents=change_due(payment_cents, totals.total_cents),
            coupon_code=coupon.code if coupon else None,
            notes=notes,
            status="completed",
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                subtotal_cents=line["quantity"] * line["unit_price_cents"],
            ))

            previous = product.stock_quantity
            product.stock_quantity = previous - line["quantity"]
            db.session.add(StockMovement(
                product_id=product.id,
                movement_type="sale",
                quantity=-line["quantity"],
                previous_stock=previous,
                new_stock=product.stock_quantity,
                reference_type="sale",
                reference_id=sale.id,
                user_id=cashier.id,
                notes=f"Venta #{sale.id}",
                occurred_at=now,
            ))

        if coupon is not None:
            coupon_service.record_usage(coupon, client_id=client_id, sale_id=sale.id, discount_cents=totals.discount_cents)

        if client is not None:
            sale.points_earned = loyalty_service.accrue_for_sale(
                client,
                sale_id=sale.id,
                total_cents=totals.total_cents,
                user_id=cashier.id,
            )
            client.total_spent_cents = (client.total_spent_cents or 0) + totals.total_cents
            client.last_purchase_at = now

        db.session.commit()
        return sale

    try:
        sale = run_with_retry(_op)
    except CheckoutError:
        db.session.rollback()
        raise
    except IntegrityError:
        # Another submission with the same request_id won the race
        db.session.rollback()
        existing = _find_replay(request_id, cashier)
        if existing is None:
            raise
        return existing, True

    current_app.logger.info(
        "Sale %s completed by user %s: total=%s items=%s",
        sale.id, cashier.id, sale.total_cents, len(lines),
    )
    return sale, False


def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)
