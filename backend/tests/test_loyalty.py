"""Loyalty ledger tests: tiers, zero floor and accrual."""

import pytest

from economica.pos.errors import ValidationError
from economica.pos.loyalty import (
    LoyaltyAccount,
    LoyaltyLedger,
    TIERS,
    adjust,
    next_tier,
    points_for_purchase,
    points_to_next_tier,
    tier_for,
)


@pytest.mark.parametrize("points,name", [
    (-10, "Bronce"),
    (0, "Bronce"),
    (499, "Bronce"),
    (500, "Plata"),
    (1499, "Plata"),
    (1500, "Oro"),
    (2999, "Oro"),
    (3000, "Platino"),
    (100000, "Platino"),
])
def test_tier_for(points, name):
    assert tier_for(points).name == name


def test_tiers_ordered_by_threshold():
    thresholds = [t.min_points for t in TIERS]
    assert thresholds == sorted(thresholds)
    assert thresholds[0] == 0


def test_next_tier():
    assert next_tier(0).name == "Plata"
    assert points_to_next_tier(1200) == 300
    assert next_tier(3000) is None
    assert points_to_next_tier(5000) is None


def test_sale_then_correction_floors_at_zero():
    account = LoyaltyAccount(client_id=1)
    assert account.tier.name == "Bronce"

    entry = adjust(account, 1600, "sale")
    assert account.points == 1600
    assert account.tier.name == "Oro"
    assert (entry.previous_points, entry.new_points) == (0, 1600)

    entry = adjust(account, -5000, "correction")
    assert account.points == 0
    assert account.tier.name == "Bronce"
    assert entry.delta == -5000
    assert entry.applied_delta == -1600


def test_adjust_requires_integer_delta_and_reason():
    account = LoyaltyAccount(client_id=1, points=10)
    with pytest.raises(ValidationError):
        adjust(account, 1.5, "sale")
    with pytest.raises(ValidationError):
        adjust(account, 5, "")
    assert account.points == 10


def test_negative_account_rejected():
    with pytest.raises(ValidationError):
        LoyaltyAccount(client_id=1, points=-1)


def test_account_from_wire():
    account = LoyaltyAccount.from_dict({"id": 3, "total_points": 620, "name": "Juan"})
    assert account.client_id == 3
    assert account.to_dict()["tier"]["name"] == "Plata"


@pytest.mark.parametrize("total_cents,points", [(0, 0), (999, 0), (1000, 1), (8750, 8), (-500, 0)])
def test_points_for_purchase(total_cents, points):
    assert points_for_purchase(total_cents) == points


def test_points_for_purchase_custom_rate():
    assert points_for_purchase(8750, cents_per_point=100) == 87
    with pytest.raises(ValueError):
        points_for_purchase(100, cents_per_point=0)


class TestLedger:

    def test_history_records_every_change(self):
        ledger = LoyaltyLedger()
        ledger.register(LoyaltyAccount(client_id=5, points=480))

        ledger.adjust(5, 40, "purchase", "Venta #1")
        ledger.adjust(5, -100, "manual_adjustment")

        history = ledger.history(5)
        assert [e.new_points for e in history] == [520, 420]
        assert ledger.account(5).tier.name == "Bronce"

    def test_unknown_account(self):
        with pytest.raises(ValidationError):
            LoyaltyLedger().adjust(1, 10, "purchase")
        assert LoyaltyLedger().history(1) == ()
