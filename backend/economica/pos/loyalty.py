"""
Loyalty Ledger

Points balance per client, the tier derived from it, and an audit entry for
every change. The tier is never stored; it is recomputed from points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..time_utils import to_utc_z, utcnow
from .errors import ValidationError


logger = logging.getLogger(__name__)

DEFAULT_CENTS_PER_POINT = 1000

REASON_PURCHASE = "purchase"
REASON_MANUAL = "manual_adjustment"


@dataclass(frozen=True)
class Tier:
    name: str
    min_points: int
    discount_percent: int

    def to_dict(self) -> dict:
        return {"name": self.name, "min_points": self.min_points, "discount_percent": self.discount_percent}


# Ordered by threshold, lowest first
TIERS: tuple[Tier, ...] = (
    Tier("Bronce", 0, 2),
    Tier("Plata", 500, 5),
    Tier("Oro", 1500, 8),
    Tier("Platino", 3000, 12),
)


def tier_for(points: int) -> Tier:
    current = TIERS[0]
    for tier in TIERS:
        if points >= tier.min_points:
            current = tier
    return current


def next_tier(points: int) -> Tier | None:
    for tier in TIERS:
        if tier.min_points > points:
            return tier
    return None


def points_to_next_tier(points: int) -> int | None:
    upcoming = next_tier(points)
    return upcoming.min_points - points if upcoming else None


@dataclass
class LoyaltyAccount:
    client_id: int
    points: int = 0
    name: str | None = None

    def __post_init__(self):
        if self.points < 0:
            raise ValidationError("Points cannot be negative", {"points": self.points})

    @property
    def tier(self) -> Tier:
        return tier_for(self.points)

    @classmethod
    def from_dict(cls, data: dict) -> "LoyaltyAccount":
        return cls(
            client_id=int(data["id"]),
            points=max(0, int(data.get("total_points") or 0)),
            name=data.get("name"),
        )

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "points": self.points,
            "name": self.name,
            "tier": self.tier.to_dict(),
            "points_to_next_tier": points_to_next_tier(self.points),
        }


@dataclass(frozen=True)
class LedgerEntry:
    client_id: int
    delta: int
    previous_points: int
    new_points: int
    reason: str
    description: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def applied_delta(self) -> int:
        """Change actually applied after the floor at zero."""
        return self.new_points - self.previous_points

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "delta": self.delta,
            "previous_points": self.previous_points,
            "new_points": self.new_points,
            "reason": self.reason,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
        }


def adjust(account: LoyaltyAccount, delta: int, reason: str, description: str | None = None) -> LedgerEntry:
    """Apply ``delta`` to the account, flooring the balance at zero."""
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Points delta must be an integer", {"delta": delta})
    if not reason:
        raise ValidationError("A reason is required for points adjustments")

    previous = account.points
    account.points = max(0, previous + delta)
    return LedgerEntry(
        client_id=account.client_id,
        delta=delta,
        previous_points=previous,
        new_points=account.points,
        reason=reason,
        description=description,
    )


def points_for_purchase(total_cents: int, cents_per_point: int = DEFAULT_CENTS_PER_POINT) -> int:
    if cents_per_point <= 0:
        raise ValueError("cents_per_point must be positive")
    return max(0, total_cents) // cents_per_point


class LoyaltyLedger:
    """Session-local accounts and their change history."""

    def __init__(self):
        self._accounts: dict[int, LoyaltyAccount] = {}
        self._entries: dict[int, list[LedgerEntry]] = {}

    def register(self, account: LoyaltyAccount) -> LoyaltyAccount:
        """Track ``account``, replacing any previous view of the same client."""
        self._accounts[account.client_id] = account
        self._entries.setdefault(account.client_id, [])
        return account

    def account(self, client_id: int) -> LoyaltyAccount | None:
        return self._accounts.get(client_id)

    def adjust(self, client_id: int, delta: int, reason: str, description: str | None = None) -> LedgerEntry:
        account = self._accounts.get(client_id)
        if account is None:
            raise ValidationError("Unknown loyalty account", {"client_id": client_id})

        previous_tier = account.tier
        entry = adjust(account, delta, reason, description)
        self._entries[client_id].append(entry)

        if account.tier != previous_tier:
            logger.info("Client %s moved from %s to %s", client_id, previous_tier.name, account.tier.name)
        return entry

    def history(self, client_id: int) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries.get(client_id, ()))
