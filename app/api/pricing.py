from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import Role, User
from app.schemas.pricing import PricingModelCreate, PricingModelResponse, PricingModelUpdate
from app.services import pricing_service
from app.utils.security import require_role

router = APIRouter(prefix="/pricing-models", tags=["Pricing"])


@router.post("", response_model=PricingModelResponse, status_code=201)
def create_pricing_model(
    payload: PricingModelCreate,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return pricing_service.create_pricing_model(
            db,
            current_user,
            pricing_type=payload.type,
            price=payload.price,
            duration=payload.duration,
            description=payload.description,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.get("/my", response_model=List[PricingModelResponse])
def list_my_pricing_models(
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    return pricing_service.list_mentor_pricing_models(db, current_user.id, include_inactive=True)


@router.get("/mentor/{mentor_id}", response_model=List[PricingModelResponse])
def list_mentor_pricing_models(mentor_id: int, db: Session = Depends(get_db)):
    """Active pricing models a mentee can book against."""
    return pricing_service.list_mentor_pricing_models(db, mentor_id)


@router.patch("/{pricing_model_id}", response_model=PricingModelResponse)
def update_pricing_model(
    pricing_model_id: int,
    payload: PricingModelUpdate,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return pricing_service.update_pricing_model(
            db, current_user, pricing_model_id, **payload.model_dump(exclude_unset=True)
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.delete("/{pricing_model_id}", response_model=PricingModelResponse)
def deactivate_pricing_model(
    pricing_model_id: int,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return pricing_service.deactivate_pricing_model(db, current_user, pricing_model_id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
