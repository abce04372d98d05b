# app/errors.py
"""
Typed errors for the booking, pricing and settlement core.

Services raise these; routers translate them with `to_http_exception`.
Each error carries a stable `code` so API clients can branch on it without
parsing messages.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class MarketplaceError(Exception):
    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(MarketplaceError):
    code = "validation_error"
    status_code = 400


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404


class PermissionDenied(MarketplaceError):
    code = "permission_denied"
    status_code = 403


class Conflict(MarketplaceError):
    code = "conflict"
    status_code = 409


class InvalidTransition(MarketplaceError):
    code = "invalid_transition"
    status_code = 400

    def __init__(self, from_status: Any, to_status: Any):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        super().__init__(
            f"Cannot change status from {from_value} to {to_value}",
            {"from": from_value, "to": to_value},
        )
        self.from_status = from_status
        self.to_status = to_status


class CancellationWindowExpired(MarketplaceError):
    code = "cancellation_window_expired"
    status_code = 400


class UnsupportedPricingType(MarketplaceError):
    code = "unsupported_pricing_type"
    status_code = 400

    def __init__(self, pricing_type: Any):
        value = getattr(pricing_type, "value", pricing_type)
        super().__init__(f"Unsupported pricing model: {value}", {"pricing_type": value})


class PricingModelNotFound(MarketplaceError):
    code = "pricing_model_not_found"
    status_code = 404


class AmountTooLow(MarketplaceError):
    code = "amount_too_low"
    status_code = 400


class InsufficientEarnings(MarketplaceError):
    code = "insufficient_earnings"
    status_code = 400


class AlreadyPaid(MarketplaceError):
    code = "already_paid"
    status_code = 409


class InternalError(MarketplaceError):
    code = "internal_error"
    status_code = 500


def to_http_exception(exc: MarketplaceError) -> HTTPException:
    """Map a core error onto the transport-level response."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
