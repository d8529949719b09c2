"""
Daily cross-check of payment rows against order rows.

Findings are computed fresh on every run and never stored. The only write is
the optional status auto-fix, applied per payment as a committed conditional
update. A payment that changed since it was read, or whose write fails, is
left alone and reported as unfixed.
"""
import datetime as dt
from collections import Counter, defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.logging_config import get_logger
from models.order import Order
from models.payment import Payment

logger = get_logger(__name__)

AMOUNT_TOLERANCE = Decimal("0.01")
PAID_ORDER_STATUSES = ("confirmed", "processing", "shipped", "delivered")


def day_bounds(day: dt.date, tz_name: Optional[str] = None) -> Tuple[dt.datetime, dt.datetime]:
    """Local 00:00:00.000 and 23:59:59.999 of ``day`` as naive UTC datetimes."""
    tz = ZoneInfo(tz_name or settings.TIMEZONE)
    start = dt.datetime.combine(day, dt.time.min, tzinfo=tz)
    end = dt.datetime.combine(day, dt.time(23, 59, 59, 999000), tzinfo=tz)
    utc = dt.timezone.utc
    return start.astimezone(utc).replace(tzinfo=None), end.astimezone(utc).replace(tzinfo=None)


def _issue(type_: str, severity: str, description: str, **fields: Any) -> Dict[str, Any]:
    issue = {
        "type": type_,
        "severity": severity,
        "description": description,
        "payment_id": None,
        "order_id": None,
        "order_number": None,
        "expected_value": None,
        "actual_value": None,
        "suggestion": None,
        "auto_fixable": False,
    }
    issue.update(fields)
    return issue


def _expected_payment_status(order_status: str, payment_status: str) -> Optional[str]:
    if order_status == "delivered" and payment_status != "completed":
        return "completed"
    if order_status == "pending" and payment_status == "completed":
        return "pending"
    return None


def _fix_status(db: Session, payment: Payment, expected: str) -> bool:
    payment_id, observed = payment.id, payment.status
    try:
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == observed)
            .values(status=expected, updated_at=dt.datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("reconcile_autofix_failed", payment_id=payment_id, observed=observed, expected=expected)
        return False
    if result.rowcount == 0:
        logger.warning("reconcile_autofix_conflict", payment_id=payment_id, observed=observed, expected=expected)
        return False
    db.commit()
    return True


def reconcile_payments(db: Session, date: dt.date, include_partial: bool = False, auto_fix: bool = False) -> Dict[str, Any]:
    start, end = day_bounds(date)

    payments: List[Payment] = (
        db.query(Payment)
        .filter(Payment.created_at >= start, Payment.created_at <= end)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
    order_ids = {p.order_id for p in payments if p.order_id is not None}
    order_map: Dict[int, Order] = {}
    if order_ids:
        order_map = {o.id: o for o in db.query(Order).filter(Order.id.in_(order_ids)).all()}

    orders: List[Order] = (
        db.query(Order)
        .filter(Order.created_at >= start, Order.created_at <= end, Order.status.in_(PAID_ORDER_STATUSES))
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )

    issues: List[Dict[str, Any]] = []
    fixed_issues: List[Dict[str, Any]] = []

    # Amount mismatches
    for payment in payments:
        order = order_map.get(payment.order_id)
        if not order or payment.is_refund:
            continue
        order_amount = Decimal(str(order.total_amount))
        payment_amount = Decimal(str(payment.amount))
        if abs(order_amount - payment_amount) > AMOUNT_TOLERANCE:
            issues.append(_issue(
                "amount_mismatch",
                "high" if order_amount > payment_amount else "medium",
                "Payment amount does not match order total",
                payment_id=payment.id,
                order_id=order.id,
                order_number=order.order_number,
                expected_value=float(order_amount),
                actual_value=float(payment_amount),
                suggestion=f"Check the payment amount for order {order.order_number}",
            ))

    # Status mismatches
    for payment in payments:
        order = order_map.get(payment.order_id)
        if not order:
            continue
        expected = _expected_payment_status(order.status, payment.status)
        if expected is None:
            continue
        issue = _issue(
            "status_mismatch",
            "medium",
            "Payment status does not match order status",
            payment_id=payment.id,
            order_id=order.id,
            order_number=order.order_number,
            expected_value=expected,
            actual_value=payment.status,
            suggestion=f'Update payment status to "{expected}"',
            auto_fixable=auto_fix,
        )
        if auto_fix and _fix_status(db, payment, expected):
            fixed_issues.append(issue)
        else:
            issues.append(issue)

    # Orders marked paid without a payment row that day
    paid_order_ids = {p.order_id for p in payments if p.order_id is not None}
    for order in orders:
        if order.id not in paid_order_ids and order.payment_status == "paid":
            issues.append(_issue(
                "missing_payment",
                "high",
                "Order is marked as paid but has no payment record",
                order_id=order.id,
                order_number=order.order_number,
                expected_value="Payment record exists",
                actual_value="No payment record",
                suggestion=f"Create a payment record for order {order.order_number}",
            ))

    # More than one payment for the same order
    by_order: Dict[int, List[Payment]] = defaultdict(list)
    for payment in payments:
        if payment.order_id is None:
            continue
        if not include_partial and payment.is_refund:
            continue
        by_order[payment.order_id].append(payment)
    for order_id, group in by_order.items():
        if len(group) > 1:
            order = order_map.get(order_id)
            issues.append(_issue(
                "duplicate_payment",
                "high",
                "Order has more than one payment record",
                order_id=order_id,
                order_number=order.order_number if order else None,
                expected_value=1,
                actual_value=len(group),
                suggestion="Review and merge the duplicate payment records",
            ))

    # Payments that point at no order
    for payment in payments:
        if payment.order_id is None or payment.order_id not in order_map:
            issues.append(_issue(
                "orphan_payment",
                "medium",
                "Payment record has no matching order",
                payment_id=payment.id,
                expected_value="Valid order reference",
                actual_value="No order found",
                suggestion="Check and link the payment to the correct order",
            ))

    discrepancy = sum(
        (abs(Decimal(str(i["expected_value"])) - Decimal(str(i["actual_value"]))) for i in issues if i["type"] == "amount_mismatch"),
        Decimal("0"),
    )
    summary = {
        "total_payments_checked": len(payments),
        "total_orders_checked": len(orders),
        "total_issues_found": len(issues),
        "issues_by_type": dict(Counter(i["type"] for i in issues)),
        "issues_by_severity": dict(Counter(i["severity"] for i in issues)),
        "total_amount_discrepancy": float(discrepancy),
        "auto_fixed_count": len(fixed_issues),
    }

    logger.info("reconciliation_completed", date=date.isoformat(), **{k: v for k, v in summary.items() if isinstance(v, (int, float))})

    message = (
        f"Reconciliation completed for {date.isoformat()}. "
        f"Checked {summary['total_payments_checked']} payments and {summary['total_orders_checked']} orders. "
    )
    if not issues and not fixed_issues:
        message += "No issues found."
    else:
        message += f"Found {len(issues)} issues."
        if fixed_issues:
            message += f" Auto-fixed {len(fixed_issues)} issues."

    return {
        "message": message,
        "reconciliation": {
            "date": date,
            "summary": summary,
            "issues": issues,
            "fixed_issues": fixed_issues,
        },
    }
