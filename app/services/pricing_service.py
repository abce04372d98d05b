import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app import models
from app.crud import pricing as pricing_crud
from app.errors import InternalError, PermissionDenied, PricingModelNotFound, ValidationError
from app.models.pricing import PricingType
from app.models.user import Role
from app.services.pricing_models import coerce_pricing_type
from app.utils.clock import quantize_money

logger = logging.getLogger(__name__)

MAX_PRICE = Decimal("10000")
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480
MAX_DESCRIPTION_LENGTH = 200
DURATION_REQUIRED_TYPES = (PricingType.ONE_TIME, PricingType.HOURLY)


def _validate_terms(pricing_type: PricingType, price, duration: Optional[int], description: Optional[str]) -> Decimal:
    try:
        amount = quantize_money(price)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError("Price must be a number")
    if amount is None or amount <= 0 or amount > MAX_PRICE:
        raise ValidationError(f"Price must be greater than 0 and at most {MAX_PRICE}")
    if duration is None and pricing_type in DURATION_REQUIRED_TYPES:
        raise ValidationError(f"Duration is required for {pricing_type.value} pricing")
    if duration is not None and not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
        raise ValidationError(
            f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return amount


def _get_owned_model(db: Session, mentor: models.User, pricing_model_id: int) -> models.PricingModel:
    pricing_model = pricing_crud.get_pricing_model(db, pricing_model_id)
    if pricing_model is None or pricing_model.mentor_id != mentor.id:
        raise PricingModelNotFound("Pricing model not found")
    return pricing_model


def create_pricing_model(
    db: Session,
    mentor: models.User,
    *,
    pricing_type,
    price,
    duration: Optional[int] = None,
    description: Optional[str] = None,
) -> models.PricingModel:
    if not mentor.has_role(Role.MENTOR):
        raise PermissionDenied("Only mentors can create pricing models")
    resolved = coerce_pricing_type(pricing_type)
    amount = _validate_terms(resolved, price, duration, description)

    try:
        pricing_model = pricing_crud.create_pricing_model(
            db,
            mentor_id=mentor.id,
            type=resolved,
            price=amount,
            duration=duration,
            description=description,
        )
        db.commit()
        db.refresh(pricing_model)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to create pricing model: {str(e)}")

    logger.info("Pricing model %s (%s) created for mentor %s", pricing_model.id, resolved.value, mentor.id)
    return pricing_model


def update_pricing_model(
    db: Session,
    mentor: models.User,
    pricing_model_id: int,
    *,
    price=None,
    duration: Optional[int] = None,
    description: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> models.PricingModel:
    """Existing sessions keep the price they were booked at."""
    pricing_model = _get_owned_model(db, mentor, pricing_model_id)

    new_price = pricing_model.price if price is None else price
    new_duration = pricing_model.duration if duration is None else duration
    new_description = pricing_model.description if description is None else description
    amount = _validate_terms(pricing_model.type, new_price, new_duration, new_description)

    try:
        pricing_model.price = amount
        pricing_model.duration = new_duration
        pricing_model.description = new_description
        if is_active is not None:
            pricing_model.is_active = is_active
        db.commit()
        db.refresh(pricing_model)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(f"Failed to update pricing model: {str(e)}")
    return pricing_model


def deactivate_pricing_model(db: Session, mentor: models.User, pricing_model_id: int) -> models.PricingModel:
    return update_pricing_model(db, mentor, pricing_model_id, is_active=False)


def list_mentor_pricing_models(db: Session, mentor_id: int, include_inactive: bool = False) -> List[models.PricingModel]:
    return pricing_crud.list_pricing_models(db, mentor_id, active_only=not include_inactive)
