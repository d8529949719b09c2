from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.db import atomic
from core.logging_config import get_logger
from models.order import Order
from models.payment import Payment
from services import providers

logger = get_logger(__name__)


ACTIONS = {
    "completed": "payment_completed",
    "failed": "payment_failed",
    "cancelled": "payment_cancelled",
    "pending": "payment_pending",
    "processing": "payment_pending",
}


def _outcome(message: str, normalized: providers.NormalizedWebhook, action: str, payment: Optional[Payment] = None) -> Dict[str, Any]:
    return {
        "message": message,
        "result": {
            "transaction_id": normalized.transaction_id,
            "status": normalized.status,
            "amount": normalized.amount,
            "error_message": normalized.error_message,
            "action": action,
        },
        "payment": payment,
    }


def apply_webhook(db: Session, provider: str, payload: Dict[str, Any], signature: Optional[str] = None) -> Dict[str, Any]:
    """Apply a provider notification to the matching payment and its order.

    Unknown transactions and repeated deliveries are successful no-ops.
    """
    providers.verify_signature(provider, payload, signature)
    normalized = providers.normalize(provider, payload)
    log = logger.bind(provider=provider, transaction_id=normalized.transaction_id, status=normalized.status)

    matches = (
        db.query(Payment)
        .filter(Payment.transaction_id == normalized.transaction_id, Payment.payment_provider == provider)
        .limit(2)
        .all()
    )
    if len(matches) > 1:
        log.warning("webhook_ambiguous_transaction")
        return _outcome("Transaction matches more than one payment", normalized, "no_action")
    payment = matches[0] if matches else None
    if not payment:
        log.info("webhook_no_matching_payment")
        return _outcome("Transaction not found or already processed", normalized, "no_action")

    if payment.status == normalized.status:
        log.info("webhook_duplicate_delivery", payment_id=payment.id)
        return _outcome("Transaction was already updated", normalized, "no_action", payment)

    if normalized.amount is not None and normalized.amount != payment.amount:
        log.warning("webhook_amount_differs", payment_id=payment.id, expected=str(payment.amount), reported=str(normalized.amount))

    now = datetime.utcnow()
    values: Dict[str, Any] = {"status": normalized.status, "gateway_response": payload, "updated_at": now}
    if normalized.status == "completed":
        values["processed_at"] = now

    with atomic(db):
        # Only move from the status we read; a racing delivery that got there first wins.
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == payment.status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            log.info("webhook_lost_race", payment_id=payment.id)
            return _outcome("Transaction was already updated", normalized, "no_action", payment)

        order = db.get(Order, payment.order_id) if payment.order_id else None
        if order is not None:
            if normalized.status == "completed":
                order.payment_status = "paid"
                if order.status == "pending":
                    order.status = "confirmed"
            elif normalized.status == "failed":
                order.payment_status = "failed"

    db.refresh(payment)
    log.info("webhook_applied", payment_id=payment.id, order_id=payment.order_id)
    return _outcome(
        f"Processed webhook for transaction {normalized.transaction_id}",
        normalized,
        ACTIONS.get(normalized.status, "no_action"),
        payment,
    )
