# Overview: Flask API routes for checkout and sale lookup.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..pos.errors import ValidationError
from ..services import checkout_service, permission_service
from ..services.checkout_service import CheckoutError
from ..services.permission_service import PermissionDeniedError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
@require_permission("sales:process_payment")
def checkout_route():
    """
    Turn a cart into a completed sale.

    Body: {items[], client_id?, payment_method, payment_amount, discount_amount,
    coupon_code?, notes?, request_id?}. A repeated request_id returns the
    original sale with replayed=true and status 200.
    """
    try:
        data = request.get_json(silent=True) or {}
        sale, replayed = checkout_service.process_checkout(
            cashier=g.current_user,
            payload=data,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({
            "sale": sale.to_dict(),
            "replayed": replayed,
            "message": "Venta procesada exitosamente",
        }), 200 if replayed else 201

    except ValidationError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except PermissionDeniedError as e:
        return jsonify({"error": str(e), "code": "AUTHORIZATION_DENIED", "details": e.details}), 403
    except CheckoutError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process checkout")
        return jsonify({"error": "Error al procesar venta"}), 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    """Cashiers may read their own sales; anyone else needs sales:view_sales."""
    sale = checkout_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404

    user = g.current_user
    if sale.cashier_id != user.id and not permission_service.user_is_authorized(user, "sales:view_sales"):
        return jsonify({"error": "Permission denied", "code": "AUTHORIZATION_DENIED"}), 403

    return jsonify({"sale": sale.to_dict()}), 200
