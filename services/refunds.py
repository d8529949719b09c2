import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from core.db import atomic
from core.errors import DomainError, NotFoundError
from core.logging_config import get_logger
from models.order import Order
from models.order_item import OrderItem
from models.payment import Payment, REFUND_PREFIX
from models.product import Product

logger = get_logger(__name__)


def _to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def refunded_total(db: Session, original: Payment) -> Decimal:
    """Sum of completed refunds already issued against ``original``.

    Counts rows linked through refund_of_payment_id, plus older rows of the
    same order that only carry the REFUND- transaction id prefix.
    """
    total = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(
            Payment.status == "completed",
            or_(
                Payment.refund_of_payment_id == original.id,
                and_(
                    Payment.refund_of_payment_id.is_(None),
                    Payment.order_id == original.order_id,
                    Payment.transaction_id.like(f"{REFUND_PREFIX}%"),
                ),
            ),
        )
        .scalar()
    )
    return _to_decimal(total)


def refund_transaction_id(original: Payment) -> str:
    suffix = str(int(time.time() * 1000))[-6:]
    return f"{REFUND_PREFIX}{original.transaction_id or original.id}-{suffix}"


def refund_payment(db: Session, payment_id: int, amount: float | Decimal, reason: str, refund_method: str = "original_payment") -> Dict[str, Any]:
    amount = _to_decimal(amount)
    if amount <= 0:
        raise DomainError("Refund amount must be greater than 0")

    original = db.get(Payment, payment_id)
    if not original:
        raise NotFoundError("Payment not found")
    if original.is_refund:
        raise DomainError("A refund payment cannot itself be refunded")
    if original.status != "completed":
        raise DomainError("Only completed payments can be refunded")

    original_amount = _to_decimal(original.amount)
    if amount > original_amount:
        raise DomainError("Refund amount cannot exceed the original payment amount")

    order = db.get(Order, original.order_id) if original.order_id else None
    if not order:
        raise NotFoundError("Order for this payment was not found")

    already_refunded = refunded_total(db, original)
    remaining = original_amount - already_refunded
    if amount > remaining:
        raise DomainError(
            f"Total refunds cannot exceed {_money(original_amount)}. "
            f"Already refunded: {_money(already_refunded)}. Remaining refundable: {_money(remaining)}",
            details={"remaining_refundable": float(remaining)},
        )

    now = datetime.utcnow()
    is_full_refund = already_refunded + amount == original_amount
    txn_id = refund_transaction_id(original)

    with atomic(db):
        refund = Payment(
            order_id=order.id,
            payment_method=original.payment_method,
            payment_provider=original.payment_provider,
            transaction_id=txn_id,
            amount=amount,
            currency=original.currency,
            status="completed",
            processed_at=now,
            refund_of_payment_id=original.id,
            gateway_response={
                "refund_reason": reason,
                "refund_method": refund_method,
                "original_payment_id": original.id,
                "original_transaction_id": original.transaction_id,
            },
        )
        db.add(refund)
        db.flush()

        if is_full_refund:
            original.status = "refunded"
            order.status = "refunded"
            order.payment_status = "refunded"
            order.admin_notes = f"Full refund: {_money(amount)} - {reason}"
            for item in db.query(OrderItem).filter(OrderItem.order_id == order.id).all():
                db.execute(
                    update(Product)
                    .where(Product.id == item.product_id)
                    .values(stock_quantity=Product.stock_quantity + item.quantity, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
        else:
            order.admin_notes = f"Partial refund: {_money(amount)} - {reason}"

    logger.info(
        "refund_created",
        refund_payment_id=refund.id,
        original_payment_id=original.id,
        order_id=order.id,
        amount=str(amount),
        full=is_full_refund,
    )

    total_refunded = already_refunded + amount
    return {
        "refund_payment_id": refund.id,
        "original_payment_id": original.id,
        "order_id": order.id,
        "order_number": order.order_number,
        "refund_amount": amount,
        "original_amount": original_amount,
        "total_refunded": total_refunded,
        "remaining_refundable": original_amount - total_refunded,
        "is_full_refund": is_full_refund,
        "reason": reason,
        "refund_method": refund_method,
        "transaction_id": txn_id,
        "processed_at": refund.processed_at or now,
    }
