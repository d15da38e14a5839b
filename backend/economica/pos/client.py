"""
Async client for the backing service (`/api/...`).

Holds the session's bearer token and maps HTTP outcomes onto the POS error
taxonomy:
- transport failures, timeouts and 5xx -> ServiceUnavailable
- 401 -> token dropped, AuthenticationRequired
- 403 -> AuthorizationDenied
- 4xx with a known ``code`` -> matching POS error (PRICE_CHANGED is a
  ValidationError), else ServiceError

No request is retried automatically.
"""

from __future__ import annotations

import logging

import httpx

from ..config import Config
from ..permissions import TemporaryGrant
from ..validation import format_cents
from .cart import ProductSnapshot
from .discounts import CouponValidation
from .errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    InsufficientPayment,
    InsufficientStock,
    InvalidCoupon,
    PriceChanged,
    ServiceError,
    ServiceUnavailable,
    ValidationError,
)
from .loyalty import LoyaltyAccount


logger = logging.getLogger(__name__)


def _error_from_response(status_code: int, body: dict):
    message = body.get("error") or f"Service returned HTTP {status_code}"
    code = body.get("code")
    details = body.get("details") or {}

    if status_code == 403:
        return AuthorizationDenied(message, details)
    if code == InsufficientStock.code:
        return InsufficientStock(
            message,
            product_id=details.get("product_id"),
            requested=details.get("requested"),
            available=details.get("available"),
        )
    if code == InsufficientPayment.code:
        return InsufficientPayment(int(details.get("required_cents") or 0), int(details.get("provided_cents") or 0))
    if code == InvalidCoupon.code:
        return InvalidCoupon(message, details.get("issues") or ())
    if code == PriceChanged.code:
        return PriceChanged(message, details)
    if code == ValidationError.code:
        return ValidationError(message, details)
    return ServiceError(message, status_code, body)


class ServiceClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self._http = httpx.AsyncClient(
            base_url=base_url or Config.SERVICE_BASE_URL,
            timeout=timeout if timeout is not None else Config.SERVICE_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, *, json=None, params=None, allow_404: bool = False) -> dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise ServiceUnavailable("Service timed out", {"path": path}) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ServiceUnavailable("Service unreachable", {"path": path}) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.status_code >= 500:
            logger.warning("%s %s returned %s", method, path, response.status_code)
            raise ServiceUnavailable(
                body.get("error") or "Service error",
                {"path": path, "status_code": response.status_code},
            )
        if response.status_code == 401:
            self.token = None
            raise AuthenticationRequired(body.get("error") or "Authentication required")
        if response.status_code == 404 and allow_404:
            return body
        if response.status_code >= 400:
            raise _error_from_response(response.status_code, body)
        return body

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> dict:
        data = await self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data.get("token")
        return data

    async def logout(self) -> None:
        if not self.token:
            return
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.token = None

    async def me(self) -> dict:
        return await self._request("GET", "/auth/me")

    # ------------------------------------------------------------------
    # Users and temporary permissions
    # ------------------------------------------------------------------

    async def list_users(self) -> list[dict]:
        data = await self._request("GET", "/users")
        return data.get("users", [])

    async def update_user_role(self, user_id: int, role: str) -> dict:
        data = await self._request("PUT", f"/users/{user_id}/role", json={"role": role})
        return data.get("user", data)

    async def get_temporary_permissions(self, user_id: int) -> list[TemporaryGrant]:
        data = await self._request("GET", f"/users/{user_id}/temporary-permissions")
        return [TemporaryGrant.from_dict(row) for row in data.get("temporary_permissions", [])]

    async def grant_temporary_permission(self, user_id: int, permission: str,
                                         duration_minutes: int | None = None) -> TemporaryGrant:
        payload = {"permission": permission}
        if duration_minutes is not None:
            payload["duration_minutes"] = duration_minutes
        data = await self._request("POST", f"/users/{user_id}/temporary-permissions", json=payload)
        return TemporaryGrant.from_dict(data["temporary_permission"])

    async def revoke_temporary_permission(self, user_id: int, permission: str) -> None:
        await self._request("DELETE", f"/users/{user_id}/temporary-permissions/{permission}")

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def get_product(self, product_id: int) -> ProductSnapshot:
        data = await self._request("GET", f"/products/{product_id}")
        return ProductSnapshot.from_dict(data["product"])

    async def list_products(self, search: str | None = None) -> list[ProductSnapshot]:
        params = {"search": search} if search else None
        data = await self._request("GET", "/products", params=params)
        return [ProductSnapshot.from_dict(row) for row in data.get("products", [])]

    # ------------------------------------------------------------------
    # Coupons and sales
    # ------------------------------------------------------------------

    async def validate_coupon(self, code: str, *, client_id: int | None = None,
                              purchase_amount_cents: int = 0) -> CouponValidation:
        """An unknown or inactive code (404) is an invalid coupon, not an error."""
        params = {"purchase_amount": format_cents(purchase_amount_cents)}
        if client_id is not None:
            params["client_id"] = client_id
        data = await self._request("GET", f"/coupons/validate/{code}", params=params, allow_404=True)
        if "is_valid" not in data:
            data = {"is_valid": False, "issues": [data.get("error") or "Cupón no encontrado"]}
        return CouponValidation.from_dict(data, code=code)

    async def checkout(self, payload: dict) -> dict:
        return await self._request("POST", "/sales/checkout", json=payload)

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    async def get_client(self, client_id: int) -> LoyaltyAccount:
        data = await self._request("GET", f"/clients/{client_id}")
        return LoyaltyAccount.from_dict(data["client"])

    async def adjust_client_points(self, client_id: int, points: int, reason: str,
                                   description: str | None = None) -> dict:
        return await self._request(
            "POST",
            f"/clients/{client_id}/points",
            json={"points": points, "reason": reason, "description": description},
        )
