# Overview: Flask API routes for coupon validation and creation.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..pos.errors import ValidationError
from ..services import coupon_service
from ..services.coupon_service import CouponError, CouponNotFoundError
from ..time_utils import parse_iso_datetime
from ..validation import parse_amount_cents, parse_int, parse_optional_amount_cents


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


@coupons_bp.get("/validate/<code>")
@require_auth
def validate_coupon_route(code: str):
    """
    Check a coupon against a purchase.

    Query: client_id (optional), purchase_amount (decimal, optional).
    Unknown or inactive codes answer 404 with is_valid=false.
    """
    try:
        client_id = request.args.get("client_id")
        client_id = parse_int(client_id, "client_id", minimum=1) if client_id else None
        purchase_cents = parse_optional_amount_cents(request.args.get("purchase_amount"), "purchase_amount")

        check = coupon_service.validate_code(code, client_id=client_id, purchase_cents=purchase_cents)
        return jsonify(check.to_dict()), 200

    except CouponNotFoundError as e:
        return jsonify({"error": str(e), "is_valid": False, "issues": [str(e)]}), 404
    except ValidationError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to validate coupon")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.post("")
@require_auth
@require_permission("business:manage_pricing")
def create_coupon_route():
    """
    discount_value is a whole percent for percentage coupons and a decimal
    amount for fixed_amount coupons; min_purchase and max_discount are decimal amounts.
    """
    try:
        data = request.get_json(silent=True) or {}
        discount_type = data.get("discount_type") or "percentage"

        if discount_type == "percentage":
            discount_value = parse_int(data.get("discount_value"), "discount_value", minimum=1, maximum=100)
        else:
            discount_value = parse_amount_cents(data.get("discount_value"), "discount_value")

        max_discount = data.get("max_discount")
        usage_limit = data.get("usage_limit")
        client_id = data.get("client_id")

        coupon = coupon_service.create_coupon(
            code=data.get("code"),
            discount_type=discount_type,
            discount_value=discount_value,
            description=data.get("description"),
            min_purchase_cents=parse_optional_amount_cents(data.get("min_purchase"), "min_purchase"),
            max_discount_cents=parse_amount_cents(max_discount, "max_discount") if max_discount not in (None, "") else None,
            usage_limit=parse_int(usage_limit, "usage_limit", minimum=1) if usage_limit is not None else None,
            allow_multiple_use=bool(data.get("allow_multiple_use", False)),
            client_id=parse_int(client_id, "client_id", minimum=1) if client_id is not None else None,
            expires_at=parse_iso_datetime(data.get("expires_at")),
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"coupon": coupon.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except CouponError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create coupon")
        return jsonify({"error": "Internal server error"}), 500
