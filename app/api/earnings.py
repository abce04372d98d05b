from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import Role, User
from app.schemas.earnings import (
    EarningsHistory,
    EarningsSummary,
    PayoutEvent,
    PayoutList,
    PayoutRequest,
    PayoutResponse,
    TaxReport,
)
from app.services import earnings_service, payout_service
from app.services.pricing_models import coerce_pricing_type
from app.utils.security import require_role

router = APIRouter(prefix="/earnings", tags=["Earnings"])


# ======================
# EARNINGS
# ======================
@router.get("/summary", response_model=EarningsSummary)
def get_summary(
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    return earnings_service.get_earnings_summary(db, current_user.id)


@router.get("/history", response_model=EarningsHistory)
def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    pricing_type: Optional[str] = None,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        resolved = coerce_pricing_type(pricing_type) if pricing_type else None
        return earnings_service.get_earnings_history(
            db, current_user.id, page=page, limit=limit, pricing_type=resolved
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)


@router.get("/tax-report", response_model=TaxReport)
def get_tax_report(
    year: int = Query(...),
    month: Optional[int] = Query(None),
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        return earnings_service.generate_tax_report(db, current_user.id, year, month)
    except MarketplaceError as exc:
        raise to_http_exception(exc)


# ======================
# PAYOUTS
# ======================
@router.post("/payouts", response_model=PayoutResponse, status_code=201)
def request_payout(
    payload: PayoutRequest,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.request_payout(
            db,
            current_user.id,
            payload.amount,
            payout_method=payload.payout_method,
            actor_id=current_user.id,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return PayoutResponse.from_payout(payout)


@router.get("/payouts", response_model=PayoutList)
def list_payouts(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        result = payout_service.list_payouts(db, current_user.id, status=status, page=page, limit=limit)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    result["items"] = [PayoutResponse.from_payout(p) for p in result["items"]]
    return result


@router.post("/payouts/{payout_id}/retry", response_model=PayoutResponse)
def retry_payout(
    payout_id: int,
    current_user: User = Depends(require_role(Role.MENTOR)),
    db: Session = Depends(get_db),
):
    try:
        payout = payout_service.retry_payout(db, payout_id, mentor_id=current_user.id)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return PayoutResponse.from_payout(payout)


@router.post("/payouts/{payout_id}/events", response_model=PayoutResponse)
def record_payout_event(
    payout_id: int,
    payload: PayoutEvent,
    current_user: User = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    """Provider confirmation for bank_transfer / paypal / stripe payouts."""
    try:
        payout = payout_service.apply_payout_event(
            db, payout_id, payload.status, failure_reason=payload.failure_reason
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    return PayoutResponse.from_payout(payout)
