"""Error hierarchy for the checkout and order boundary.

Every failure carries a stable ``kind`` (what went wrong), a human-readable
message and the HTTP status the API layer maps it to. Route handlers never
build error responses by hand; they raise one of these and the handlers in
``error_handlers.py`` render the envelope.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_TRANSITION = "invalid_transition"
    PROVIDER_ERROR = "provider_error"
    CONFLICT = "conflict"


class CubeCartError(Exception):
    """Base exception for all domain and provider failures."""

    kind: ErrorKind = ErrorKind.VALIDATION
    http_status: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}


# ---- 401 / 403 ---------------------------------------------------------------

class Unauthenticated(CubeCartError):
    kind = ErrorKind.UNAUTHENTICATED
    http_status = 401


class TokenError(Unauthenticated):
    """A bearer token was presented but could not be verified."""

    EXPIRED = "expired"
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"

    def __init__(self, reason: str, message: Optional[str] = None):
        super().__init__(message or f"token rejected: {reason}", {"reason": reason})
        self.reason = reason


class Forbidden(CubeCartError):
    kind = ErrorKind.FORBIDDEN
    http_status = 403


# ---- 400 / 404 / 409 ---------------------------------------------------------

class NotFound(CubeCartError):
    kind = ErrorKind.NOT_FOUND
    http_status = 404

    def __init__(self, resource: str, resource_id: str, http_status: Optional[int] = None):
        super().__init__(f"{resource} not found: {resource_id}",
                         {"resource": resource, "id": resource_id})
        if http_status is not None:
            # a missing catalog item inside a request body is a 400, not a 404
            self.http_status = http_status
        self.resource = resource
        self.resource_id = resource_id


class ValidationFailed(CubeCartError):
    kind = ErrorKind.VALIDATION
    http_status = 400


class InsufficientStock(CubeCartError):
    kind = ErrorKind.INSUFFICIENT_STOCK
    http_status = 400

    def __init__(self, product_id: str, requested: int, available: Optional[int] = None):
        details: Dict[str, Any] = {"productId": product_id, "requested": requested}
        if available is not None:
            details["available"] = available
        super().__init__(f"insufficient stock for product {product_id}", details)
        self.product_id = product_id


class InvalidTransition(CubeCartError):
    kind = ErrorKind.INVALID_TRANSITION
    http_status = 400

    def __init__(self, axis: str, current: str, target: str):
        super().__init__(
            f"cannot move {axis} from '{current}' to '{target}'",
            {"axis": axis, "from": current, "to": target},
        )


class Conflict(CubeCartError):
    kind = ErrorKind.CONFLICT
    http_status = 409


# ---- 500 ---------------------------------------------------------------------

class ProviderError(CubeCartError):
    """The payment processor failed, timed out or returned something unusable."""

    kind = ErrorKind.PROVIDER_ERROR
    http_status = 500
