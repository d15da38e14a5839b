# backend/economica/services/products_service.py
"""
Products Service

Catalog reads for the POS plus creation for bootstrap and tests. Stock only
changes through checkout (StockMovement) or explicit adjustments.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, StockMovement
from ..validation import MAX_AMOUNT_CENTS


class ProductError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def list_products(search: str | None = None, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.name.ilike(like),
            Product.sku.ilike(like),
            Product.barcode == search.strip(),
        ))
    return query.order_by(Product.name.asc()).all()


def get_product(product_id: int) -> Product | None:
    product = db.session.get(Product, product_id)
    if product is None or not product.is_active:
        return None
    return product


def create_product(
    *,
    sku: str,
    name: str,
    price_cents: int,
    stock_quantity: int = 0,
    min_stock: int = 0,
    unit: str = "pieza",
    barcode: str | None = None,
    description: str | None = None,
    user_id: int | None = None,
) -> Product:
    sku = (sku or "").strip()
    if not sku or not (name or "").strip():
        raise ProductError("sku and name are required")
    if not 0 <= price_cents <= MAX_AMOUNT_CENTS:
        raise ProductError("price_cents out of range", {"price_cents": price_cents})
    if stock_quantity < 0:
        raise ProductError("stock_quantity cannot be negative")
    if db.session.query(Product).filter_by(sku=sku).first():
        raise ProductError("SKU already exists", {"sku": sku})

    product = Product(
        sku=sku,
        name=name.strip(),
        price_cents=price_cents,
        stock_quantity=stock_quantity,
        min_stock=min_stock,
        unit=unit or "pieza",
        barcode=barcode,
        description=description,
    )
    db.session.add(product)
    db.session.flush()

    if stock_quantity:
        db.session.add(StockMovement(
            product_id=product.id,
            movement_type="receive",
            quantity=stock_quantity,
            previous_stock=0,
            new_stock=stock_quantity,
            user_id=user_id,
            notes="Initial stock",
        ))

    db.session.commit()
    return product
