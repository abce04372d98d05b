import hashlib
import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.crud import transaction as transaction_crud
from app.database import get_db
from app.errors import MarketplaceError, to_http_exception
from app.models.user import User
from app.schemas.payment import PaymentWebhookEvent, TransactionResponse
from app.services import booking_service, payment_service
from app.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """Hex HMAC-SHA256 of the raw body; always True when no secret is configured."""
    if not secret:
        return True
    if not signature:
        return False
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


@router.get("/session/{session_id}", response_model=TransactionResponse)
def get_session_transaction(
    session_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking_service.get_session_for_participant(db, session_id, current_user)
    except MarketplaceError as exc:
        raise to_http_exception(exc)
    transaction = transaction_crud.get_transaction_by_session(db, session_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_webhook_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """Payment gateway callback (payment.success / payment.failed / payment.pending)."""
    raw_body = await request.body()
    if not verify_webhook_signature(raw_body, x_webhook_signature, settings.PAYMENT_WEBHOOK_SECRET):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = PaymentWebhookEvent.model_validate(json.loads(raw_body or b"{}"))
    except (ValueError, PydanticValidationError):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    try:
        transaction = payment_service.apply_gateway_event(
            db,
            event.transaction_id,
            event.event_type,
            gateway_reference=event.gateway_transaction_id,
        )
    except MarketplaceError as exc:
        raise to_http_exception(exc)

    return {
        "received": True,
        "transaction_id": transaction.id,
        "status": transaction.status.value,
    }
