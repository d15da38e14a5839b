# Overview: Service-layer operations for client points; persists the shared loyalty rules.

"""
Loyalty Service

Sale accrual and manual adjustments both go through economica.pos.loyalty.adjust,
so the zero floor and the tier thresholds are the same on the server and on
the POS terminal. Every change appends a ClientReward row.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Client, ClientReward
from ..pos.loyalty import REASON_MANUAL, REASON_PURCHASE, LoyaltyAccount, adjust, points_for_purchase
from .concurrency import lock_for_update, run_with_retry


class LoyaltyError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if client is None or not client.is_active:
        raise LoyaltyError("Client not found", {"client_id": client_id})
    return client


def apply_points(
    client: Client,
    delta: int,
    reward_type: str,
    description: str | None = None,
    *,
    sale_id: int | None = None,
    user_id: int | None = None,
) -> ClientReward:
    """Apply ``delta`` to the client's balance and stage the ledger row. No commit."""
    account = LoyaltyAccount(client_id=client.id, points=max(0, client.total_points or 0), name=client.name)
    entry = adjust(account, delta, reward_type, description)

    client.total_points = entry.new_points
    reward = ClientReward(
        client_id=client.id,
        reward_type=reward_type,
        points=delta,
        previous_points=entry.previous_points,
        new_points=entry.new_points,
        description=description,
        sale_id=sale_id,
        user_id=user_id,
        occurred_at=entry.occurred_at,
    )
    db.session.add(reward)
    return reward


def points_for_total(total_cents: int) -> int:
    return points_for_purchase(total_cents, current_app.config["LOYALTY_CENTS_PER_POINT"])


def accrue_for_sale(client: Client, *, sale_id: int, total_cents: int, user_id: int | None) -> int:
    """Stage purchase accrual inside the checkout transaction. Returns points earned."""
    points = points_for_total(total_cents)
    if points > 0:
        apply_points(
            client,
            points,
            REASON_PURCHASE,
            f"Puntos por compra - Venta #{sale_id}",
            sale_id=sale_id,
            user_id=user_id,
        )
    return points


def adjust_points(
    *,
    client_id: int,
    points: int,
    description: str | None = None,
    reason: str = REASON_MANUAL,
    user_id: int | None = None,
) -> tuple[Client, ClientReward]:
    """Manual administrative adjustment. The balance floors at zero."""
    if isinstance(points, bool) or not isinstance(points, int):
        raise LoyaltyError("points must be an integer", {"points": points})
    if points == 0:
        raise LoyaltyError("points must not be zero")

    def _op():
        client = lock_for_update(db.session.query(Client).filter_by(id=client_id, is_active=True)).first()
        if client is None:
            raise LoyaltyError("Client not found", {"client_id": client_id})
        reward = apply_points(client, points, reason or REASON_MANUAL, description, user_id=user_id)
        db.session.commit()
        return client, reward

    return run_with_retry(_op)


def list_rewards(client_id: int, limit: int = 100) -> list[ClientReward]:
    get_client(client_id)
    return (
        db.session.query(ClientReward)
        .filter_by(client_id=client_id)
        .order_by(ClientReward.occurred_at.desc(), ClientReward.id.desc())
        .limit(limit)
        .all()
    )
