from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user, get_optional_user
from core.db import get_db
from models.user import User
from schemas.order import OrderCreate, OrderResponse, OrderListResponse
from services import orders as order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderResponse, status_code=201)
def create_order(data: OrderCreate, user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    order = order_service.create_order(
        db,
        user,
        items=[item.model_dump() for item in data.items],
        payment_method=data.payment_method,
        shipping_address=data.shipping_address,
        coupon_code=data.coupon_code,
        shipping_amount=data.shipping_amount,
    )
    return {"order": order}


@router.get("/", response_model=OrderListResponse)
def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    orders, total = order_service.list_user_orders(db, user, page, page_size)
    return {"orders": orders, "total": total, "page": page, "page_size": page_size}


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"order": order_service.get_order(db, order_id, user)}
