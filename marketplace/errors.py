"""Domain errors.

Every error carries a stable ``kind`` that clients can switch on, an HTTP
status for the request boundary and optional context merged into the
response body.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class MarketplaceError(Exception):
    kind = "marketplace_error"
    status_code = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.context}


class ProductNotFound(MarketplaceError):
    kind = "product_not_found"
    status_code = 404

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product with id {product_id} not found", product_id=product_id)


class OrderNotFound(MarketplaceError):
    kind = "order_not_found"
    status_code = 404

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order with id {order_id} not found", order_id=order_id)


class ProductUnavailable(MarketplaceError):
    kind = "product_unavailable"
    status_code = 409

    def __init__(self, product_id: int) -> None:
        super().__init__(f"Product with id {product_id} is not available", product_id=product_id)


class InsufficientStock(MarketplaceError):
    kind = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: int, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}. Available: {available}, Requested: {requested}",
            product_id=product_id,
            available=available,
            requested=requested,
        )


class InvalidAction(MarketplaceError):
    kind = "invalid_action"
    status_code = 400

    def __init__(self, action: str, allowed: list[str]) -> None:
        super().__init__(f"Unknown order action '{action}'", action=action, allowed=allowed)


class InvalidTransition(MarketplaceError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, order_id: int, action: str, status: str) -> None:
        super().__init__(
            f"Action '{action}' is not allowed for order {order_id} in status '{status}'",
            order_id=order_id,
            action=action,
            status=status,
        )


class InvalidRating(MarketplaceError):
    kind = "invalid_rating"
    status_code = 400

    def __init__(self, rating: Any) -> None:
        super().__init__("Rating must be between 1 and 5", rating=rating)


class OrderNotEligible(MarketplaceError):
    kind = "order_not_eligible"
    status_code = 400

    def __init__(self, order_id: int, reason: str) -> None:
        super().__init__(f"Order {order_id} cannot be reviewed: {reason}", order_id=order_id)


class DuplicateReview(MarketplaceError):
    kind = "duplicate_review"
    status_code = 409

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} has already been reviewed", order_id=order_id)


class AuthorizationDenied(MarketplaceError):
    kind = "authorization_denied"
    status_code = 403


class DependencyUnavailable(MarketplaceError):
    kind = "dependency_unavailable"
    status_code = 503

    def __init__(self, dependency: str, detail: Optional[str] = None) -> None:
        message = f"{dependency} is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, dependency=dependency)
