"""
Discount/Coupon Resolver

Combines a manual discount with an optional coupon into one effective
discount for the current cart.

Policy:
- The manual discount is clamped to [0, subtotal].
- Coupon rules (expiry, minimum purchase, usage limits, client restriction)
  are evaluated by the backing service; this module never applies a coupon
  the validator did not accept.
- A valid coupon replaces the manual discount; the result is clamped again.
- An invalid coupon leaves the manual discount alone and reports its issues.
- Loyalty tier discount is reported for the operator but never applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..validation import parse_optional_amount_cents
from .cart import Cart
from .errors import InvalidCoupon
from .loyalty import LoyaltyAccount, Tier, tier_for


SOURCE_NONE = "none"
SOURCE_MANUAL = "manual"
SOURCE_COUPON = "coupon"


@dataclass(frozen=True)
class CouponValidation:
    is_valid: bool
    discount_cents: int = 0
    issues: tuple[str, ...] = ()
    code: str | None = None

    @classmethod
    def from_dict(cls, data: dict, code: str | None = None) -> "CouponValidation":
        if data.get("discount_amount_cents") is not None:
            discount = int(data["discount_amount_cents"])
        else:
            discount = parse_optional_amount_cents(data.get("discount_amount"), "discount_amount")
        return cls(
            is_valid=bool(data.get("is_valid")),
            discount_cents=discount,
            issues=tuple(data.get("issues") or ()),
            code=code,
        )


class CouponValidator(Protocol):
    async def validate_coupon(self, code: str, *, client_id: int | None = None,
                              purchase_amount_cents: int = 0) -> CouponValidation:
        ...


@dataclass(frozen=True)
class DiscountResolution:
    effective_discount_cents: int
    issues: tuple[str, ...] = ()
    source: str = SOURCE_NONE
    coupon_code: str | None = None
    tier: Tier | None = None
    tier_discount_cents: int = 0

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def raise_for_issues(self) -> None:
        if self.issues:
            raise InvalidCoupon("Coupon is not valid for this purchase", self.issues)

    def to_dict(self) -> dict:
        return {
            "effective_discount_cents": self.effective_discount_cents,
            "issues": list(self.issues),
            "source": self.source,
            "coupon_code": self.coupon_code,
            "tier": self.tier.name if self.tier else None,
            "tier_discount_cents": self.tier_discount_cents,
        }


def clamp_discount(amount_cents: int, subtotal_cents: int) -> int:
    return max(0, min(int(amount_cents), max(0, int(subtotal_cents))))


def parse_manual_discount(value) -> int:
    """Blank or None means no discount. Negative amounts are clamped later, not rejected."""
    return parse_optional_amount_cents(value, "discount", allow_negative=True)


def _tier_info(client: LoyaltyAccount | None, subtotal_cents: int) -> tuple[Tier | None, int]:
    if client is None:
        return None, 0
    tier = tier_for(client.points)
    return tier, subtotal_cents * tier.discount_percent // 100


async def resolve(
    cart: Cart,
    manual_discount=None,
    coupon_code: str | None = None,
    client: LoyaltyAccount | None = None,
    *,
    validator: CouponValidator,
) -> DiscountResolution:
    """
    Resolve the effective discount for ``cart``. Tax is charged afterwards on
    (subtotal - discount).

    ``manual_discount`` may be cents-free user input ("150", Decimal, int
    pesos) or None. ``ServiceUnavailable`` from the validator propagates.
    """
    subtotal = cart.subtotal_cents()
    manual = clamp_discount(parse_manual_discount(manual_discount), subtotal)
    tier, tier_discount = _tier_info(client, subtotal)

    def manual_only(issues=()) -> DiscountResolution:
        return DiscountResolution(
            effective_discount_cents=manual,
            issues=tuple(issues),
            source=SOURCE_MANUAL if manual else SOURCE_NONE,
            tier=tier,
            tier_discount_cents=tier_discount,
        )

    code = (coupon_code or "").strip()
    if not code:
        return manual_only()

    result = await validator.validate_coupon(
        code,
        client_id=client.client_id if client else None,
        purchase_amount_cents=subtotal,
    )

    if not result.is_valid:
        return manual_only(result.issues or ("Cupón no válido",))

    return DiscountResolution(
        effective_discount_cents=clamp_discount(result.discount_cents, subtotal),
        source=SOURCE_COUPON,
        coupon_code=code,
        tier=tier,
        tier_discount_cents=tier_discount,
    )
