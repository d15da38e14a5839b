# Overview: Flask API routes for catalog reads used by the POS.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import products_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("inventory:view")
def list_products_route():
    products = products_service.list_products(search=request.args.get("search"))
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("inventory:view")
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200
