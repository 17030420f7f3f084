"""Business errors raised by the service layer.

Each error knows the HTTP status it maps to and a short machine readable code;
``main`` registers a single handler that renders them as JSON.
"""
from typing import Any, Dict, Optional


class StoreError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message, **self.extra}


class ValidationError(StoreError):
    status_code = 400
    code = "validation_error"


class NotFoundError(StoreError):
    status_code = 404
    code = "not_found"


class ConflictError(StoreError):
    status_code = 400
    code = "conflict"


class EmptyCartError(ConflictError):
    code = "empty_cart"

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStockError(ConflictError):
    code = "insufficient_stock"

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}",
            product_id=product_id,
            product_name=product_name,
            available=available,
            requested=requested,
        )


class DuplicatePaymentError(ConflictError):
    code = "duplicate_payment"


class AlreadyProcessedError(ConflictError):
    code = "already_processed"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot move payment from {current} to {target}",
            current_status=current,
            target_status=target,
        )


class AuthError(StoreError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"
