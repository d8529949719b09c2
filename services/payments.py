from typing import Any, Dict

from sqlalchemy.orm import Session

from core.errors import ForbiddenError, NotFoundError
from models.payment import Payment
from models.user import User, ROLE_ADMIN


def get_payment_status(db: Session, payment_id: int, user: User) -> Dict[str, Any]:
    """Payment with its order state and the refunds issued against it."""
    payment = db.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")

    order = payment.order
    is_admin = ROLE_ADMIN in user.role_names
    if not is_admin and (order is None or order.user_id != user.id):
        raise ForbiddenError("You do not have access to this payment")

    refunds = (
        db.query(Payment)
        .filter(Payment.refund_of_payment_id == payment.id)
        .order_by(Payment.created_at.asc())
        .all()
    )
    return {
        "payment": payment,
        "order_status": order.status if order else None,
        "order_payment_status": order.payment_status if order else None,
        "refunds": refunds,
    }
