# Overview: Flask API routes for loyalty clients and points adjustments.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..pos.errors import ValidationError
from ..services import loyalty_service
from ..services.loyalty_service import LoyaltyError
from ..validation import parse_int


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("/<int:client_id>")
@require_auth
@require_permission("customers:view_basic")
def get_client_route(client_id: int):
    try:
        client = loyalty_service.get_client(client_id)
    except LoyaltyError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    return jsonify({"client": client.to_dict()}), 200


@clients_bp.get("/<int:client_id>/rewards")
@require_auth
@require_permission("customers:view_basic")
def list_rewards_route(client_id: int):
    try:
        rewards = loyalty_service.list_rewards(client_id)
    except LoyaltyError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    return jsonify({"rewards": [r.to_dict() for r in rewards]}), 200


@clients_bp.post("/<int:client_id>/points")
@require_auth
@require_permission("customers:manage_loyalty")
def adjust_points_route(client_id: int):
    """
    Manual points adjustment.

    Body: {"points": <signed int>, "reason": str?, "description": str?}
    The balance never goes below zero.
    """
    try:
        data = request.get_json(silent=True) or {}
        points = parse_int(data.get("points"), "points")

        client, reward = loyalty_service.adjust_points(
            client_id=client_id,
            points=points,
            reason=data.get("reason") or "manual_adjustment",
            description=data.get("description"),
            user_id=g.current_user.id,
        )
        return jsonify({"client": client.to_dict(), "reward": reward.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "code": e.code, "details": e.details}), 400
    except LoyaltyError as e:
        status = 404 if "client_id" in e.details else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to adjust client points")
        return jsonify({"error": "Internal server error"}), 500
