from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed_amount"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class Coupon(db.Model):
    """
    Discount coupon.

    discount_value meaning depends on discount_type:
    - percentage: whole percent (10 = 10%)
    - fixed_amount: cents
    """
    __tablename__ = "coupons"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.String(255), nullable=True)

    discount_type = db.Column(db.String(16), nullable=False, default=DISCOUNT_PERCENTAGE)
    discount_value = db.Column(db.Integer, nullable=False)
    min_purchase_cents = db.Column(db.Integer, nullable=False, default=0)
    max_discount_cents = db.Column(db.Integer, nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    allow_multiple_use = db.Column(db.Boolean, nullable=False, default=False)

    # Restricts the coupon to one client when set
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    expires_at = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("coupons", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "min_purchase_cents": self.min_purchase_cents,
            "max_discount_cents": self.max_discount_cents,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "allow_multiple_use": self.allow_multiple_use,
            "client_id": self.client_id,
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CouponUsage(db.Model):
    __tablename__ = "coupon_usages"
    __table_args__ = (
        db.Index("ix_coupon_usages_coupon_client", "coupon_id", "client_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    coupon = db.relationship("Coupon", backref=db.backref("usages", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "coupon_id": self.coupon_id,
            "client_id": self.client_id,
            "sale_id": self.sale_id,
            "discount_cents": self.discount_cents,
            "used_at": to_utc_z(self.used_at),
        }
