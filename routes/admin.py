from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import require_admin
from core.db import get_db
from models.user import User
from schemas.analytics import DateRangeQuery
from schemas.reconciliation import ReconcileRequest, ReconcileResponse
from services import analytics
from services.reconciliation import reconcile_payments

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/payments/reconcile", response_model=ReconcileResponse)
def reconcile(data: ReconcileRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return reconcile_payments(db, data.date, include_partial=data.include_partial, auto_fix=data.auto_fix)


@router.get("/payments/analytics")
def payments_analytics(q: DateRangeQuery = Depends(), admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {
        "success": True,
        "analytics": analytics.payment_analytics(db, q.start_date, q.end_date, q.group_by, q.include_comparison),
    }


@router.get("/orders/analytics")
def orders_analytics(q: DateRangeQuery = Depends(), admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {
        "success": True,
        "analytics": analytics.order_analytics(db, q.start_date, q.end_date, q.group_by, q.include_comparison),
    }


@router.get("/orders/pending")
def pending_orders(
    sort_by: Literal["created_at", "total_amount", "priority"] = "created_at",
    sort_order: Literal["asc", "desc"] = "asc",
    urgent_only: bool = False,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = analytics.pending_orders(db, sort_by=sort_by, sort_order=sort_order, urgent_only=urgent_only)
    orders = [
        {
            "id": row["order"].id,
            "order_number": row["order"].order_number,
            "total_amount": float(row["order"].total_amount),
            "payment_status": row["order"].payment_status,
            "created_at": row["order"].created_at,
            "urgency_score": row["urgency_score"],
            "days_pending": row["days_pending"],
            "requires_attention": row["requires_attention"],
        }
        for row in result["orders"]
    ]
    return {"success": True, "orders": orders, "summary": result["summary"], "alerts": result["alerts"]}
