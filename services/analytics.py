"""
Read-only dashboard aggregations over payments and orders.
"""
import datetime as dt
from collections import Counter, defaultdict
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from core.errors import ValidationError
from models.order import Order
from models.payment import Payment

GROUP_BY = ("day", "week", "month")


def _amount(rows: Iterable[Any], attr: str = "amount") -> float:
    return float(sum((Decimal(str(getattr(r, attr) or 0)) for r in rows), Decimal("0")))


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def _change_pct(current: float, previous: float) -> float:
    return ((current - previous) / previous) * 100 if previous else 0.0


def bucket_key(moment: dt.datetime, group_by: str) -> str:
    if group_by == "week":
        # weeks start on Sunday
        start = moment.date() - dt.timedelta(days=(moment.weekday() + 1) % 7)
        return start.isoformat()
    if group_by == "month":
        return f"{moment.year}-{moment.month:02d}"
    return moment.date().isoformat()


def validate_range(start: dt.datetime, end: dt.datetime, group_by: str = "day") -> None:
    if start > end:
        raise ValidationError("Start date must be before end date")
    if group_by not in GROUP_BY:
        raise ValidationError(f"group_by must be one of {', '.join(GROUP_BY)}")


def previous_period(start: dt.datetime, end: dt.datetime) -> tuple[dt.datetime, dt.datetime]:
    length = end - start
    return start - length, end - length


def _group(rows: Iterable[Any], group_by: str) -> Dict[str, List[Any]]:
    grouped: Dict[str, List[Any]] = defaultdict(list)
    for row in rows:
        grouped[bucket_key(row.created_at, group_by)].append(row)
    return grouped


def _timeline(rows: List[Any], group_by: str, summarize: Callable[[List[Any]], Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{"date": key, **summarize(group)} for key, group in sorted(_group(rows, group_by).items())]


def _payments_between(db: Session, start: dt.datetime, end: dt.datetime) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.created_at >= start, Payment.created_at <= end)
        .order_by(Payment.created_at.asc())
        .all()
    )


def _orders_between(db: Session, start: dt.datetime, end: dt.datetime) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.created_at >= start, Order.created_at <= end)
        .order_by(Order.created_at.asc())
        .all()
    )


def _payment_bucket(payments: List[Payment]) -> Dict[str, Any]:
    completed = [p for p in payments if p.status == "completed"]
    failed = [p for p in payments if p.status == "failed"]
    total = _amount(payments)
    return {
        "total_payments": len(payments),
        "total_amount": total,
        "completed_amount": _amount(completed),
        "failed_amount": _amount(failed),
        "success_rate": _pct(len(completed), len(payments)),
        "average_payment_value": total / len(payments) if payments else 0.0,
        "payments_by_status": dict(Counter(p.status for p in payments)),
        "payments_by_method": dict(Counter(p.payment_method for p in payments)),
    }


def payment_analytics(db: Session, start: dt.datetime, end: dt.datetime, group_by: str = "day", include_comparison: bool = False) -> Dict[str, Any]:
    validate_range(start, end, group_by)
    payments = _payments_between(db, start, end)

    summary = _payment_bucket(payments)
    for status in ("completed", "failed", "pending", "refunded"):
        rows = [p for p in payments if p.status == status]
        summary[f"{status}_payments"] = len(rows)
        summary[f"{status}_amount"] = _amount(rows)

    methods: Dict[str, List[Payment]] = defaultdict(list)
    for p in payments:
        methods[p.payment_method].append(p)
    summary["top_payment_methods"] = sorted(
        (
            {"method": method, "count": len(rows), "amount": _amount(rows), "percentage": _pct(len(rows), len(payments))}
            for method, rows in methods.items()
        ),
        key=lambda m: m["amount"],
        reverse=True,
    )

    analytics: Dict[str, Any] = {
        "period": {"start_date": start, "end_date": end, "group_by": group_by},
        "summary": summary,
        "timeline": _timeline(payments, group_by, _payment_bucket),
    }

    if include_comparison:
        prev = _payment_bucket(_payments_between(db, *previous_period(start, end)))
        analytics["comparison"] = {
            "total_payments_change": summary["total_payments"] - prev["total_payments"],
            "total_amount_change": summary["total_amount"] - prev["total_amount"],
            "completed_amount_change": summary["completed_amount"] - prev["completed_amount"],
            "success_rate_change": summary["success_rate"] - prev["success_rate"],
            "change_percentage": {
                "payments": _change_pct(summary["total_payments"], prev["total_payments"]),
                "amount": _change_pct(summary["total_amount"], prev["total_amount"]),
                "completed_amount": _change_pct(summary["completed_amount"], prev["completed_amount"]),
                "success_rate": _change_pct(summary["success_rate"], prev["success_rate"]),
            },
        }
    return analytics


def _order_bucket(orders: List[Order]) -> Dict[str, Any]:
    billable = [o for o in orders if o.status != "cancelled"]
    revenue = _amount(billable, "total_amount")
    return {
        "total_orders": len(orders),
        "total_revenue": revenue,
        "average_order_value": revenue / len(billable) if billable else 0.0,
        "orders_by_status": dict(Counter(o.status for o in orders)),
        "orders_by_payment_status": dict(Counter(o.payment_status for o in orders)),
    }


def order_analytics(db: Session, start: dt.datetime, end: dt.datetime, group_by: str = "day", include_comparison: bool = False) -> Dict[str, Any]:
    validate_range(start, end, group_by)
    orders = _orders_between(db, start, end)
    summary = _order_bucket(orders)
    summary["cancelled_orders"] = summary["orders_by_status"].get("cancelled", 0)
    summary["refunded_orders"] = summary["orders_by_status"].get("refunded", 0)
    summary["cancellation_rate"] = _pct(summary["cancelled_orders"], summary["total_orders"])

    analytics: Dict[str, Any] = {
        "period": {"start_date": start, "end_date": end, "group_by": group_by},
        "summary": summary,
        "timeline": _timeline(orders, group_by, _order_bucket),
    }
    if include_comparison:
        prev = _order_bucket(_orders_between(db, *previous_period(start, end)))
        analytics["comparison"] = {
            "total_orders_change": summary["total_orders"] - prev["total_orders"],
            "total_revenue_change": summary["total_revenue"] - prev["total_revenue"],
            "change_percentage": {
                "orders": _change_pct(summary["total_orders"], prev["total_orders"]),
                "revenue": _change_pct(summary["total_revenue"], prev["total_revenue"]),
            },
        }
    return analytics


def urgency(order: Order, now: dt.datetime) -> Dict[str, Any]:
    """Score a pending order: older, bigger and already-paid orders rank higher."""
    age = now - order.created_at
    days = age.total_seconds() / 86400
    hours = age.total_seconds() / 3600
    value = float(order.total_amount or 0)

    score = 0
    if days > 3:
        score += 30
    elif days > 1:
        score += 20
    elif hours > 12:
        score += 10

    if value > 5_000_000:
        score += 25
    elif value > 2_000_000:
        score += 15
    elif value > 1_000_000:
        score += 10

    if order.payment_status == "paid":
        score += 15

    return {
        "urgency_score": score,
        "days_pending": round(days, 1),
        "requires_attention": score > 30 or days > 2 or value > 3_000_000,
    }


def pending_orders(db: Session, sort_by: str = "created_at", sort_order: str = "asc", urgent_only: bool = False, now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    now = now or dt.datetime.utcnow()
    orders = db.query(Order).filter(Order.status == "pending").all()

    rows = [{"order": o, **urgency(o, now)} for o in orders]
    if urgent_only:
        rows = [r for r in rows if r["urgency_score"] > 25 or r["requires_attention"]]

    reverse = sort_order == "desc"
    if sort_by == "priority":
        rows.sort(key=lambda r: r["urgency_score"], reverse=True)
    elif sort_by == "total_amount":
        rows.sort(key=lambda r: Decimal(str(r["order"].total_amount or 0)), reverse=reverse)
    else:
        rows.sort(key=lambda r: r["order"].created_at, reverse=reverse)

    summary = {
        "total_pending": len(rows),
        "urgent_count": sum(1 for r in rows if r["urgency_score"] > 25),
        "requires_attention_count": sum(1 for r in rows if r["requires_attention"]),
        "total_value": _amount((r["order"] for r in rows), "total_amount"),
        "average_wait_hours": sum(r["days_pending"] * 24 for r in rows) / len(rows) if rows else 0.0,
    }

    alerts = []
    urgent = [r["order"].id for r in rows if r["urgency_score"] > 35]
    if urgent:
        alerts.append({"type": "urgent", "message": f"{len(urgent)} orders need urgent handling", "order_ids": urgent})
    old = [r["order"].id for r in rows if r["days_pending"] > 2]
    if old:
        alerts.append({"type": "old", "message": f"{len(old)} orders pending for more than 2 days", "order_ids": old})
    high_value = [r["order"].id for r in rows if float(r["order"].total_amount or 0) > 3_000_000]
    if high_value:
        alerts.append({"type": "high_value", "message": f"{len(high_value)} high-value orders awaiting processing", "order_ids": high_value})

    return {"orders": rows, "summary": summary, "alerts": alerts}
