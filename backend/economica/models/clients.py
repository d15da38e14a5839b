from __future__ import annotations

from ..extensions import db
from ..pos.loyalty import points_to_next_tier, tier_for
from ..time_utils import to_utc_z, utcnow


class Client(db.Model):
    """
    Loyalty client. ``total_points`` never goes below zero; the tier is
    derived from it on read and never stored.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)

    total_points = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)
    last_purchase_at = db.Column(db.DateTime, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        tier = tier_for(self.total_points)
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "total_points": self.total_points,
            "total_spent_cents": self.total_spent_cents,
            "tier": tier.to_dict(),
            "points_to_next_tier": points_to_next_tier(self.total_points),
            "last_purchase_at": to_utc_z(self.last_purchase_at) if self.last_purchase_at else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class ClientReward(db.Model):
    """
    Append-only ledger of points changes.

    ``points`` is the requested delta; previous/new balances record what was
    actually applied after the floor at zero.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "client_rewards"
    __table_args__ = (
        db.Index("ix_client_rewards_client_occurred", "client_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    reward_type = db.Column(db.String(32), nullable=False)  # purchase, manual_adjustment
    points = db.Column(db.Integer, nullable=False)
    previous_points = db.Column(db.Integer, nullable=False)
    new_points = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    client = db.relationship("Client", backref=db.backref("rewards", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "reward_type": self.reward_type,
            "points": self.points,
            "previous_points": self.previous_points,
            "new_points": self.new_points,
            "description": self.description,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
