"""
Per-terminal POS session.

Owns the principal, the cart and the loyalty ledger for one logged-in
operator. The principal is passed explicitly to every component that checks
authorization; it collapses to None on logout or when the service rejects
the token.
"""

from __future__ import annotations

import logging

from ..config import Config
from ..permissions import Principal, TemporaryGrant, is_authorized
from .cart import Cart, ProductSnapshot
from .checkout import CheckoutOrchestrator
from .client import ServiceClient
from .errors import AuthenticationRequired
from .loyalty import LoyaltyAccount, LoyaltyLedger
from .pricing import TaxPolicy


logger = logging.getLogger(__name__)


class PosSession:
    def __init__(
        self,
        client: ServiceClient,
        *,
        tax_policy: TaxPolicy | None = None,
        cents_per_point: int | None = None,
    ):
        self.client = client
        self.tax_policy = tax_policy or TaxPolicy(Config.TAX_RATE_BPS)
        self.cents_per_point = cents_per_point or Config.LOYALTY_CENTS_PER_POINT
        self.cart = Cart(self.tax_policy)
        self.ledger = LoyaltyLedger()
        self._principal: Principal | None = None

    @property
    def principal(self) -> Principal | None:
        # A 401 anywhere drops the token; treat the session as logged out
        if self._principal is not None and not self.client.token:
            logger.info("Session token rejected; principal %s cleared", self._principal.id)
            self._principal = None
        return self._principal

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    def is_authorized(self, check=None) -> bool:
        return is_authorized(self.principal, check)

    async def login(self, email: str, password: str) -> Principal:
        await self.client.login(email, password)
        return await self.refresh()

    async def logout(self) -> None:
        try:
            await self.client.logout()
        finally:
            self._principal = None
            self.cart.clear()

    async def refresh(self) -> Principal:
        """Re-read the user and active temporary grants from the service."""
        try:
            data = await self.client.me()
        except AuthenticationRequired:
            self._principal = None
            raise
        grants = [TemporaryGrant.from_dict(row) for row in data.get("temporary_permissions", [])]
        self._principal = Principal.from_dict(data["user"], grants)
        return self._principal

    async def product_snapshot(self, product_id: int) -> ProductSnapshot:
        return await self.client.get_product(product_id)

    async def add_product(self, product_id: int, quantity: int = 1):
        """Fetch a fresh snapshot and add it to the cart."""
        product = await self.product_snapshot(product_id)
        return self.cart.add_item(product, quantity)

    async def refresh_product(self, product_id: int):
        """Re-fetch a cart line's product after the service reported PRICE_CHANGED."""
        return self.cart.refresh_item(await self.product_snapshot(product_id))

    async def load_client(self, client_id: int) -> LoyaltyAccount:
        return self.ledger.register(await self.client.get_client(client_id))

    def new_checkout(self) -> CheckoutOrchestrator:
        return CheckoutOrchestrator(
            self.cart,
            lambda: self.principal,
            self.client,
            ledger=self.ledger,
            tax_policy=self.tax_policy,
            cents_per_point=self.cents_per_point,
        )
