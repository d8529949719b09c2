from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user, require_admin
from core.db import get_db
from models.user import User
from schemas.payment import (
    WebhookRequest,
    WebhookResponse,
    RefundRequest,
    RefundResponse,
    PaymentStatusResponse,
)
from services.payments import get_payment_status
from services.refunds import refund_payment
from services.webhooks import apply_webhook

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhooks/{provider}", response_model=WebhookResponse)
def handle_webhook(provider: Literal["vnpay", "momo", "bank_transfer"], data: WebhookRequest, db: Session = Depends(get_db)):
    return apply_webhook(db, provider, data.payload, data.signature)


@router.get("/{payment_id}", response_model=PaymentStatusResponse)
def payment_status(payment_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_payment_status(db, payment_id, user)


@router.post("/{payment_id}/refund", response_model=RefundResponse)
def refund(payment_id: int, data: RefundRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    info = refund_payment(db, payment_id, data.amount, data.reason, data.refund_method)
    kind = "full" if info["is_full_refund"] else "partial"
    return {
        "message": f"Issued a {kind} refund of {info['refund_amount']:,.2f} for payment {payment_id}",
        "refund": info,
    }
