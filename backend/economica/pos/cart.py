"""
Cart Aggregate

Session-scoped collection of pending purchase lines, keyed by product id.
Quantities are bounded by the stock of the product snapshot the line was
built from; violations are rejected, never clamped. Totals are derived from
the current lines on every call to ``summary()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import CheckoutInProgress, InsufficientStock, ValidationError
from .pricing import TaxPolicy


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only view of a catalog product at fetch time."""
    id: int
    name: str
    unit_price_cents: int
    stock_quantity: int
    unit: str = "pieza"
    sku: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProductSnapshot":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            unit_price_cents=int(data["price_cents"]),
            stock_quantity=int(data.get("stock_quantity") or 0),
            unit=data.get("unit") or "pieza",
            sku=data.get("sku"),
        )


@dataclass
class CartItem:
    product: ProductSnapshot
    quantity: int
    unit_price_cents: int  # captured when the line was created or refreshed

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def subtotal_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    def to_payload(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True)
class CartSummary:
    item_count: int
    subtotal_cents: int
    tax_cents: int
    total_cents: int


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer", {"quantity": quantity})
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1; remove the item instead", {"quantity": quantity})


def _check_stock(product: ProductSnapshot, quantity: int) -> None:
    if quantity > product.stock_quantity:
        raise InsufficientStock(
            f"Only {product.stock_quantity} {product.unit} of {product.name or product.id} available",
            product_id=product.id,
            requested=quantity,
            available=product.stock_quantity,
        )


class Cart:
    def __init__(self, tax_policy: TaxPolicy | None = None):
        self.tax_policy = tax_policy or TaxPolicy()
        self._items: dict[int, CartItem] = {}
        # Checkout bookkeeping, shared by every orchestrator over this cart
        self._checkout_owner = None
        self.unsettled_request: tuple[tuple, str] | None = None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, product_id) -> bool:
        return product_id in self._items

    @property
    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get(self, item_id: int) -> CartItem | None:
        return self._items.get(item_id)

    def quantity_of(self, item_id: int) -> int:
        item = self._items.get(item_id)
        return item.quantity if item else 0

    def add_item(self, product: ProductSnapshot, quantity: int = 1) -> CartItem:
        """
        Add ``quantity`` of ``product``. Merges into an existing line for the
        same product, whose captured price is kept; the stock bound is taken
        from the newer snapshot.
        """
        _check_quantity(quantity)

        existing = self._items.get(product.id)
        new_quantity = quantity + (existing.quantity if existing else 0)
        _check_stock(product, new_quantity)

        if existing:
            existing.product = product
            existing.quantity = new_quantity
            return existing

        item = CartItem(product=product, quantity=quantity, unit_price_cents=product.unit_price_cents)
        self._items[product.id] = item
        logger.debug("Added product %s x%s to cart", product.id, quantity)
        return item

    def set_quantity(self, item_id: int, quantity: int) -> CartItem:
        item = self._items.get(item_id)
        if item is None:
            raise ValidationError("Item is not in the cart", {"item_id": item_id})

        _check_quantity(quantity)
        _check_stock(item.product, quantity)

        item.quantity = quantity
        return item

    def refresh_item(self, product: ProductSnapshot) -> CartItem:
        """Replace a line's snapshot and captured price with a freshly fetched one."""
        item = self._items.get(product.id)
        if item is None:
            raise ValidationError("Item is not in the cart", {"item_id": product.id})
        _check_stock(product, item.quantity)

        if item.unit_price_cents != product.unit_price_cents:
            logger.info(
                "Price of product %s refreshed: %s -> %s",
                product.id, item.unit_price_cents, product.unit_price_cents,
            )
        item.product = product
        item.unit_price_cents = product.unit_price_cents
        return item

    def remove_item(self, item_id: int) -> CartItem | None:
        return self._items.pop(item_id, None)

    def clear(self) -> None:
        self._items.clear()

    def subtotal_cents(self) -> int:
        return sum(item.subtotal_cents for item in self._items.values())

    def summary(self) -> CartSummary:
        subtotal = self.subtotal_cents()
        tax = self.tax_policy.tax_for(subtotal)
        return CartSummary(
            item_count=sum(item.quantity for item in self._items.values()),
            subtotal_cents=subtotal,
            tax_cents=tax,
            total_cents=subtotal + tax,
        )

    def to_payload(self) -> list[dict]:
        return [item.to_payload() for item in self._items.values()]

    # ------------------------------------------------------------------
    # Checkout ownership
    # ------------------------------------------------------------------

    @property
    def checkout_owner(self):
        return self._checkout_owner

    def claim_checkout(self, owner) -> None:
        """Reserve the cart for one checkout from begin() until it settles."""
        if self._checkout_owner is not None and self._checkout_owner is not owner:
            raise CheckoutInProgress("Another checkout is already using this cart")
        self._checkout_owner = owner

    def release_checkout(self, owner) -> None:
        if self._checkout_owner is owner:
            self._checkout_owner = None
