"""
POS error taxonomy.

Every error carries a human-readable message, a machine-readable ``code``
(the same string the backing service puts in its JSON error bodies) and a
``details`` dict for display.
"""


class PosError(Exception):
    """Base class for POS core errors."""
    code = "POS_ERROR"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(PosError, ValueError):
    """Missing or malformed input (e.g. absent payment amount)."""
    code = "VALIDATION_ERROR"


class PriceChanged(ValidationError):
    """Catalog price differs from the one captured in the cart; refresh the snapshot."""
    code = "PRICE_CHANGED"


class AuthorizationDenied(PosError):
    """Principal lacks the permission, role or level required."""
    code = "AUTHORIZATION_DENIED"


class AuthenticationRequired(AuthorizationDenied):
    """No principal, or the service rejected the session token."""
    code = "AUTHENTICATION_REQUIRED"


class InsufficientStock(PosError):
    """Requested quantity exceeds the product snapshot's stock."""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, message: str, *, product_id=None, requested: int | None = None,
                 available: int | None = None, details: dict | None = None):
        merged = {"product_id": product_id, "requested": requested, "available": available}
        merged.update(details or {})
        super().__init__(message, merged)
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidCoupon(PosError):
    """Coupon failed validation; ``issues`` holds the reasons for display."""
    code = "INVALID_COUPON"

    def __init__(self, message: str, issues=(), details: dict | None = None):
        self.issues = tuple(issues)
        merged = {"issues": list(self.issues)}
        merged.update(details or {})
        super().__init__(message, merged)


class InsufficientPayment(PosError):
    """Tendered amount is below the final total."""
    code = "INSUFFICIENT_PAYMENT"

    def __init__(self, required_cents: int, provided_cents: int):
        super().__init__(
            "Tendered amount is less than the total due",
            {"required_cents": required_cents, "provided_cents": provided_cents},
        )
        self.required_cents = required_cents
        self.provided_cents = provided_cents


class ServiceUnavailable(PosError):
    """Backing service call failed or timed out. Safe to retry by the operator."""
    code = "SERVICE_UNAVAILABLE"
    retryable = True


class ServiceError(PosError):
    """Backing service answered with an error outside the known taxonomy."""
    code = "SERVICE_ERROR"

    def __init__(self, message: str, status_code: int | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.status_code = status_code


class InvalidTransition(PosError):
    """Checkout operation not allowed in the current state."""
    code = "INVALID_TRANSITION"


class CheckoutInProgress(InvalidTransition):
    """A confirmation for this cart is already in flight."""
    code = "CHECKOUT_IN_PROGRESS"


class CheckoutCancelled(PosError):
    """The in-flight payment attempt was cancelled by the operator."""
    code = "CHECKOUT_CANCELLED"
