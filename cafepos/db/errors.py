"""Domain errors raised by the order and payment services.

Each error knows the HTTP status it maps to; ``cafepos.main`` registers a
single handler that renders them as ``{"detail": ..., "error": kind}``.
"""

from typing import Any, Dict, Optional


class OrderServiceError(Exception):
    """Base class for business-rule failures."""

    status_code = 400

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error": self.kind, **self.extra}


class ValidationError(OrderServiceError):
    """Malformed input: quantity, enum value, discount range, notes length."""


class NotFound(OrderServiceError):
    status_code = 404


class InvalidState(OrderServiceError):
    """Operation not allowed in the order's current status."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        extra = {"currentStatus": current_status} if current_status is not None else None
        super().__init__(message, extra)
        self.current_status = current_status


class Conflict(OrderServiceError):
    status_code = 409


class EmptyOrder(OrderServiceError):
    pass


class MissingPayment(OrderServiceError):
    pass
