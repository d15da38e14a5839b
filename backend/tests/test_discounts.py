"""
Discount/coupon resolver tests.

Verifies:
- Manual discount clamped to [0, subtotal]
- Valid coupon replaces the manual discount; invalid coupon keeps it
- Service failures during validation propagate
- Tier discount is reported, never applied
"""

import asyncio

import pytest

from economica.pos.cart import Cart, ProductSnapshot
from economica.pos.discounts import (
    CouponValidation,
    SOURCE_COUPON,
    SOURCE_MANUAL,
    SOURCE_NONE,
    clamp_discount,
    parse_manual_discount,
    resolve,
)
from economica.pos.errors import InvalidCoupon, ServiceUnavailable, ValidationError
from economica.pos.loyalty import LoyaltyAccount


class FakeValidator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def validate_coupon(self, code, *, client_id=None, purchase_amount_cents=0):
        self.calls.append((code, client_id, purchase_amount_cents))
        if self.error:
            raise self.error
        return self.result


def cart_with(subtotal_cents):
    cart = Cart()
    cart.add_item(ProductSnapshot(id=1, name="Arroz", unit_price_cents=subtotal_cents, stock_quantity=1))
    return cart


def run(coro):
    return asyncio.run(coro)


class TestManualDiscount:

    def test_oversized_manual_discount_clamps_to_subtotal(self):
        resolution = run(resolve(cart_with(10000), "150", validator=FakeValidator()))
        assert resolution.effective_discount_cents == 10000
        assert resolution.source == SOURCE_MANUAL

    def test_negative_manual_discount_clamps_to_zero(self):
        resolution = run(resolve(cart_with(10000), "-20", validator=FakeValidator()))
        assert resolution.effective_discount_cents == 0
        assert resolution.source == SOURCE_NONE

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_manual_discount_is_zero(self, value):
        assert parse_manual_discount(value) == 0

    def test_unparseable_manual_discount(self):
        with pytest.raises(ValidationError):
            parse_manual_discount("diez")

    @pytest.mark.parametrize("amount,subtotal,expected", [
        (-1, 100, 0),
        (50, 100, 50),
        (101, 100, 100),
        (10, -5, 0),
    ])
    def test_clamp(self, amount, subtotal, expected):
        assert clamp_discount(amount, subtotal) == expected


class TestCoupon:

    def test_blank_coupon_skips_validator(self):
        validator = FakeValidator()
        run(resolve(cart_with(10000), "10", "  ", validator=validator))
        assert validator.calls == []

    def test_valid_coupon_replaces_manual(self):
        validator = FakeValidator(CouponValidation(is_valid=True, discount_cents=1500))
        client = LoyaltyAccount(client_id=7, points=0)

        resolution = run(resolve(cart_with(10000), "50", "DESC15", client, validator=validator))

        assert resolution.effective_discount_cents == 1500
        assert resolution.source == SOURCE_COUPON
        assert resolution.coupon_code == "DESC15"
        assert validator.calls == [("DESC15", 7, 10000)]

    def test_valid_coupon_reclamped_to_subtotal(self):
        validator = FakeValidator(CouponValidation(is_valid=True, discount_cents=25000))
        resolution = run(resolve(cart_with(10000), None, "GRANDE", validator=validator))
        assert resolution.effective_discount_cents == 10000

    def test_invalid_coupon_keeps_manual_and_reports_issues(self):
        validator = FakeValidator(CouponValidation(is_valid=False, issues=("Cupón expirado",)))

        resolution = run(resolve(cart_with(10000), "20", "VIEJO", validator=validator))

        assert resolution.effective_discount_cents == 2000
        assert resolution.issues == ("Cupón expirado",)
        assert resolution.coupon_code is None
        with pytest.raises(InvalidCoupon) as exc:
            resolution.raise_for_issues()
        assert exc.value.issues == ("Cupón expirado",)

    def test_invalid_coupon_without_issues_gets_default_issue(self):
        validator = FakeValidator(CouponValidation(is_valid=False))
        resolution = run(resolve(cart_with(10000), None, "X", validator=validator))
        assert resolution.has_issues

    def test_service_unavailable_propagates(self):
        validator = FakeValidator(error=ServiceUnavailable("down"))
        with pytest.raises(ServiceUnavailable):
            run(resolve(cart_with(10000), None, "DESC10", validator=validator))

    def test_validation_from_wire_prefers_cents(self):
        result = CouponValidation.from_dict({"is_valid": True, "discount_amount": "9.99", "discount_amount_cents": 1000})
        assert result.discount_cents == 1000
        result = CouponValidation.from_dict({"is_valid": True, "discount_amount": "12.50"})
        assert result.discount_cents == 1250


class TestTierInformation:

    def test_tier_discount_reported_but_not_applied(self):
        client = LoyaltyAccount(client_id=1, points=1600)
        resolution = run(resolve(cart_with(10000), None, None, client, validator=FakeValidator()))

        assert resolution.tier.name == "Oro"
        assert resolution.tier_discount_cents == 800
        assert resolution.effective_discount_cents == 0

    @pytest.mark.parametrize("manual", ["-500", "0", "99", "100", "10000", "1e3"])
    @pytest.mark.parametrize("coupon_cents", [None, 0, 5000, 20000])
    def test_effective_discount_within_bounds(self, manual, coupon_cents):
        validator = FakeValidator(CouponValidation(is_valid=coupon_cents is not None, discount_cents=coupon_cents or 0))
        code = "C" if coupon_cents is not None else None
        resolution = run(resolve(cart_with(10000), manual, code, validator=validator))
        assert 0 <= resolution.effective_discount_cents <= 10000
