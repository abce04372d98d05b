# app/services/pricing_models.py
"""
Pricing Model Registry

Each pricing type is a handler object exposing `validate_booking` and
`compute_price`; `get_pricing_handler` selects one by PricingType. Call
sites never branch on the type themselves.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional, Type

from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.crud import pricing as pricing_crud
from app.errors import AmountTooLow, Conflict, MarketplaceError, UnsupportedPricingType, ValidationError
from app.models.pricing import PricingType
from app.services.conflict_detector import find_conflicting_session
from app.utils.clock import minutes_between, quantize_money, utcnow


# =====================================
# POLICY AND VALUE OBJECTS
# =====================================

@dataclass(frozen=True)
class BookingPolicy:
    """Scheduling and charging limits, passed explicitly to the booking core."""
    min_session_minutes: int = 15
    max_session_minutes: int = 480
    one_time_tolerance_minutes: int = 5
    default_session_minutes: int = 60
    subscription_period_days: int = 30
    cancellation_cutoff_hours: int = 2
    min_charge_amount: Decimal = Decimal("1.00")

    @classmethod
    def from_settings(cls, cfg=settings) -> "BookingPolicy":
        return cls(
            min_session_minutes=cfg.MIN_SESSION_MINUTES,
            max_session_minutes=cfg.MAX_SESSION_MINUTES,
            one_time_tolerance_minutes=cfg.ONE_TIME_DURATION_TOLERANCE_MINUTES,
            subscription_period_days=cfg.SUBSCRIPTION_PERIOD_DAYS,
            cancellation_cutoff_hours=cfg.CANCELLATION_CUTOFF_HOURS,
            min_charge_amount=cfg.MIN_CHARGE_AMOUNT,
        )


@dataclass
class BookingParams:
    mentor_id: int
    mentee_id: int
    start: datetime
    end: Optional[datetime] = None
    estimated_minutes: Optional[int] = None
    now: Optional[datetime] = None


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[MarketplaceError] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: MarketplaceError) -> "ValidationResult":
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class PricingDecision:
    """Outcome of pricing a booking; consumed by the payment processor."""
    pricing_type: PricingType
    pricing_model_id: Optional[int]
    amount: Decimal
    start: datetime
    end: datetime
    hourly_rate: Optional[Decimal] = None
    estimated_minutes: Optional[int] = None
    subscription_end: Optional[datetime] = None


def compute_hourly_amount(rate, minutes) -> Decimal:
    """rate x minutes / 60, rounded to the cent."""
    return quantize_money(Decimal(str(rate)) * Decimal(str(minutes)) / Decimal(60))


# =====================================
# HANDLERS
# =====================================

class PricingHandler:
    pricing_type: PricingType = None

    def __init__(self, policy: Optional[BookingPolicy] = None):
        self.policy = policy or BookingPolicy.from_settings()

    def resolve_end(self, pricing_model: models.PricingModel, params: BookingParams) -> datetime:
        raise NotImplementedError

    def validate_booking(
        self,
        db: Session,
        pricing_model: models.PricingModel,
        params: BookingParams,
    ) -> ValidationResult:
        raise NotImplementedError

    def compute_price(self, pricing_model: models.PricingModel, params: BookingParams) -> Decimal:
        raise NotImplementedError

    # ---------- shared helpers ----------

    def _check_calendar(self, db: Session, params: BookingParams, start: datetime, end: datetime) -> ValidationResult:
        if end <= start:
            return ValidationResult.fail(ValidationError("Session end must be after its start"))
        clash = find_conflicting_session(db, params.mentor_id, start, end)
        if clash is not None:
            return ValidationResult.fail(Conflict(
                "Mentor is not available at this time",
                {"conflicting_session_id": clash.id},
            ))
        return ValidationResult.ok()

    def decide(
        self,
        db: Session,
        pricing_model: models.PricingModel,
        params: BookingParams,
    ) -> PricingDecision:
        """
        Validate then price a booking.

        Raises:
            The error carried by a failed ValidationResult
            AmountTooLow: Computed charge below the minimum charge
        """
        result = self.validate_booking(db, pricing_model, params)
        if not result.valid:
            raise result.error

        amount = self.compute_price(pricing_model, params)
        if amount < self.policy.min_charge_amount:
            raise AmountTooLow(
                f"Charge {amount} is below the minimum of {self.policy.min_charge_amount}",
                {"amount": str(amount), "minimum": str(self.policy.min_charge_amount)},
            )
        return self._build_decision(pricing_model, params, amount)

    def _build_decision(self, pricing_model, params: BookingParams, amount: Decimal) -> PricingDecision:
        return PricingDecision(
            pricing_type=self.pricing_type,
            pricing_model_id=pricing_model.id,
            amount=amount,
            start=params.start,
            end=self.resolve_end(pricing_model, params),
        )


class OneTimeSessionHandler(PricingHandler):
    """Flat price for a fixed-length session."""

    pricing_type = PricingType.ONE_TIME

    def resolve_end(self, pricing_model, params):
        if params.end is not None:
            return params.end
        if pricing_model.duration:
            return params.start + timedelta(minutes=pricing_model.duration)
        return params.start + timedelta(minutes=self.policy.default_session_minutes)

    def validate_booking(self, db, pricing_model, params):
        end = self.resolve_end(pricing_model, params)
        if pricing_model.duration and end > params.start:
            requested = minutes_between(params.start, end)
            if abs(requested - pricing_model.duration) > self.policy.one_time_tolerance_minutes:
                return ValidationResult.fail(ValidationError(
                    f"Session duration must be {pricing_model.duration} minutes",
                    {"requested_minutes": round(requested), "expected_minutes": pricing_model.duration},
                ))
        return self._check_calendar(db, params, params.start, end)

    def compute_price(self, pricing_model, params):
        return quantize_money(pricing_model.price)


class HourlySessionHandler(PricingHandler):
    """Rate per hour applied to the estimated, later the actual, minutes."""

    pricing_type = PricingType.HOURLY

    def estimated_minutes(self, pricing_model, params) -> Optional[int]:
        if params.estimated_minutes is not None:
            return params.estimated_minutes
        if params.end is not None:
            return round(minutes_between(params.start, params.end))
        return pricing_model.duration

    def resolve_end(self, pricing_model, params):
        minutes = self.estimated_minutes(pricing_model, params) or self.policy.default_session_minutes
        return params.start + timedelta(minutes=minutes)

    def validate_booking(self, db, pricing_model, params):
        minutes = self.estimated_minutes(pricing_model, params)
        low, high = self.policy.min_session_minutes, self.policy.max_session_minutes
        if params.end is not None and params.estimated_minutes is not None:
            requested = round(minutes_between(params.start, params.end))
            if requested != params.estimated_minutes:
                return ValidationResult.fail(ValidationError(
                    "End time and estimated duration disagree",
                    {"end_time_minutes": requested, "estimated_minutes": params.estimated_minutes},
                ))
        if minutes is None:
            return ValidationResult.fail(ValidationError("Estimated duration is required for hourly sessions"))
        if not low <= minutes <= high:
            return ValidationResult.fail(ValidationError(
                f"Estimated duration must be between {low} and {high} minutes",
                {"estimated_minutes": minutes},
            ))
        return self._check_calendar(db, params, params.start, self.resolve_end(pricing_model, params))

    def compute_price(self, pricing_model, params):
        return compute_hourly_amount(pricing_model.price, self.estimated_minutes(pricing_model, params))

    def _build_decision(self, pricing_model, params, amount):
        return PricingDecision(
            pricing_type=self.pricing_type,
            pricing_model_id=pricing_model.id,
            amount=amount,
            start=params.start,
            end=self.resolve_end(pricing_model, params),
            hourly_rate=quantize_money(pricing_model.price),
            estimated_minutes=self.estimated_minutes(pricing_model, params),
        )


class MonthlySubscriptionHandler(PricingHandler):
    """Flat monthly fee; the booked session is the first session of the period."""

    pricing_type = PricingType.MONTHLY_SUBSCRIPTION

    def resolve_end(self, pricing_model, params):
        if params.end is not None:
            return params.end
        minutes = pricing_model.duration or self.policy.default_session_minutes
        return params.start + timedelta(minutes=minutes)

    def validate_booking(self, db, pricing_model, params):
        now = params.now or utcnow()
        existing = pricing_crud.find_active_subscription(db, params.mentee_id, params.mentor_id, now)
        if existing is not None:
            return ValidationResult.fail(Conflict(
                "You already have an active subscription with this mentor",
                {"subscription_id": existing.id},
            ))
        return self._check_calendar(db, params, params.start, self.resolve_end(pricing_model, params))

    def compute_price(self, pricing_model, params):
        return quantize_money(pricing_model.price)

    def subscription_end(self, params: BookingParams) -> datetime:
        now = params.now or utcnow()
        return now + timedelta(days=self.policy.subscription_period_days)

    def _build_decision(self, pricing_model, params, amount):
        return PricingDecision(
            pricing_type=self.pricing_type,
            pricing_model_id=pricing_model.id,
            amount=amount,
            start=params.start,
            end=self.resolve_end(pricing_model, params),
            subscription_end=self.subscription_end(params),
        )


# =====================================
# REGISTRY
# =====================================

PRICING_HANDLERS: Dict[PricingType, Type[PricingHandler]] = {
    PricingType.ONE_TIME: OneTimeSessionHandler,
    PricingType.HOURLY: HourlySessionHandler,
    PricingType.MONTHLY_SUBSCRIPTION: MonthlySubscriptionHandler,
}


def coerce_pricing_type(value) -> PricingType:
    """
    Raises:
        UnsupportedPricingType: Value is not a known pricing type
    """
    if isinstance(value, PricingType):
        return value
    try:
        return PricingType(str(value).upper())
    except ValueError:
        raise UnsupportedPricingType(value)


def get_pricing_handler(pricing_type, policy: Optional[BookingPolicy] = None) -> PricingHandler:
    """
    Handler for a pricing type.

    Raises:
        UnsupportedPricingType: No handler registered for the type
    """
    resolved = coerce_pricing_type(pricing_type)
    handler_cls = PRICING_HANDLERS.get(resolved)
    if handler_cls is None:
        raise UnsupportedPricingType(resolved)
    return handler_cls(policy)
