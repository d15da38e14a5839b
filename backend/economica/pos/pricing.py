# Overview: Tax and total arithmetic shared by the POS terminal and the checkout service.

from __future__ import annotations

from dataclasses import dataclass


def divide_round_half_up(numerator: int, denominator: int) -> int:
    return (numerator * 2 + denominator) // (denominator * 2)


@dataclass(frozen=True)
class TaxPolicy:
    """Flat tax in basis points (1600 = 16%)."""
    rate_bps: int = 0

    def __post_init__(self):
        if self.rate_bps < 0:
            raise ValueError("rate_bps must be >= 0")

    def tax_for(self, taxable_cents: int) -> int:
        if taxable_cents <= 0 or self.rate_bps == 0:
            return 0
        return divide_round_half_up(taxable_cents * self.rate_bps, 10_000)


@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
        }


def compute_totals(subtotal_cents: int, discount_cents: int, tax_policy: TaxPolicy) -> Totals:
    """
    Final total = subtotal - discount + tax, with tax charged on the
    discounted amount. ``discount_cents`` must already be clamped.
    """
    taxable = subtotal_cents - discount_cents
    tax = tax_policy.tax_for(taxable)
    return Totals(
        subtotal_cents=subtotal_cents,
        discount_cents=discount_cents,
        tax_cents=tax,
        total_cents=taxable + tax,
    )


def change_due(tendered_cents: int, total_cents: int) -> int:
    return max(0, tendered_cents - total_cents)
