# Overview: Service-layer operations for coupons; validation rules, discount math and usage tracking.

"""
Coupon Service

Rules checked by evaluate() (all of them, so every issue is reported):
- Expiry date
- Client restriction
- Minimum purchase
- Usage limit
- Single use per client unless allow_multiple_use

Discount: percentage of the purchase (rounded half up to the cent) or a fixed
amount, capped by max_discount_cents and by the purchase itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import Client, Coupon, CouponUsage
from ..models.coupons import DISCOUNT_PERCENTAGE, DISCOUNT_TYPES
from ..pos.discounts import clamp_discount
from ..pos.pricing import divide_round_half_up
from ..time_utils import has_expired, utcnow
from ..validation import format_cents
from .concurrency import lock_for_update


class CouponError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CouponNotFoundError(CouponError):
    pass


@dataclass
class CouponCheck:
    coupon: Coupon
    is_valid: bool = True
    issues: list[str] = field(default_factory=list)
    discount_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "code": self.coupon.code,
            "issues": list(self.issues),
            "discount_amount": format_cents(self.discount_cents),
            "discount_amount_cents": self.discount_cents,
            "coupon": self.coupon.to_dict(),
        }


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def find_active_coupon(code: str, *, for_update: bool = False) -> Coupon | None:
    query = db.session.query(Coupon).filter_by(code=normalize_code(code), is_active=True)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def compute_discount(coupon: Coupon, purchase_cents: int) -> int:
    if coupon.discount_type == DISCOUNT_PERCENTAGE:
        discount = divide_round_half_up(purchase_cents * coupon.discount_value, 100)
    else:
        discount = coupon.discount_value

    if coupon.max_discount_cents is not None:
        discount = min(discount, coupon.max_discount_cents)
    return clamp_discount(discount, purchase_cents)


def evaluate(coupon: Coupon, *, client_id: int | None, purchase_cents: int, now=None) -> CouponCheck:
    now = now or utcnow()
    check = CouponCheck(coupon=coupon)

    if has_expired(coupon.expires_at, now):
        check.issues.append("Cupón expirado")

    if coupon.client_id is not None and coupon.client_id != client_id:
        check.issues.append("Cupón no válido para este cliente")

    if coupon.min_purchase_cents and purchase_cents < coupon.min_purchase_cents:
        check.issues.append(f"Compra mínima requerida: ${format_cents(coupon.min_purchase_cents)}")

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        check.issues.append("Límite de uso del cupón alcanzado")

    if not coupon.allow_multiple_use and client_id is not None:
        used = db.session.query(CouponUsage).filter_by(coupon_id=coupon.id, client_id=client_id).first()
        if used:
            check.issues.append("Cupón ya utilizado por este cliente")

    check.is_valid = not check.issues
    if check.is_valid:
        check.discount_cents = compute_discount(coupon, purchase_cents)
    return check


def validate_code(code: str, *, client_id: int | None, purchase_cents: int, for_update: bool = False) -> CouponCheck:
    """
    Raises CouponNotFoundError for unknown or inactive codes.

    ``for_update`` locks the coupon row until the caller's transaction ends, so
    usage limits hold while a sale is recorded.
    """
    coupon = find_active_coupon(code, for_update=for_update)
    if coupon is None:
        raise CouponNotFoundError("Cupón no válido o no existe", {"code": normalize_code(code)})
    return evaluate(coupon, client_id=client_id, purchase_cents=purchase_cents)


def create_coupon(
    *,
    code: str,
    discount_type: str,
    discount_value: int,
    created_by_user_id: int | None = None,
    description: str | None = None,
    min_purchase_cents: int = 0,
    max_discount_cents: int | None = None,
    usage_limit: int | None = None,
    allow_multiple_use: bool = False,
    client_id: int | None = None,
    expires_at=None,
) -> Coupon:
    code = normalize_code(code)
    if not code:
        raise CouponError("Coupon code is required")
    if discount_type not in DISCOUNT_TYPES:
        raise CouponError("discount_type must be percentage or fixed_amount", {"discount_type": discount_type})
    if discount_value <= 0:
        raise CouponError("discount_value must be positive")
    if discount_type == DISCOUNT_PERCENTAGE and discount_value > 100:
        raise CouponError("Percentage discount cannot exceed 100")
    if usage_limit is not None and usage_limit < 1:
        raise CouponError("usage_limit must be at least 1")
    if client_id is not None and db.session.get(Client, client_id) is None:
        raise CouponError("Client not found", {"client_id": client_id})
    if db.session.query(Coupon).filter_by(code=code).first():
        raise CouponError("Coupon code already exists", {"code": code})

    coupon = Coupon(
        code=code,
        description=description,
        discount_type=discount_type,
        discount_value=discount_value,
        min_purchase_cents=min_purchase_cents,
        max_discount_cents=max_discount_cents,
        usage_limit=usage_limit,
        allow_multiple_use=allow_multiple_use,
        client_id=client_id,
        expires_at=expires_at,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(coupon)
    db.session.commit()
    return coupon


def record_usage(coupon: Coupon, *, client_id: int | None, sale_id: int, discount_cents: int) -> CouponUsage:
    """Adds to the caller's transaction; does not commit."""
    coupon.usage_count = (coupon.usage_count or 0) + 1
    usage = CouponUsage(
        coupon_id=coupon.id,
        client_id=client_id,
        sale_id=sale_id,
        discount_cents=discount_cents,
    )
    db.session.add(usage)
    return usage
