from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(min_length=1)
    payment_method: Literal["vnpay", "momo", "cod", "bank_transfer"]
    shipping_address: Optional[Dict[str, Any]] = None
    coupon_code: Optional[str] = None
    shipping_amount: float = Field(default=0, ge=0)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    order_number: str
    status: str
    payment_status: str
    subtotal: float
    tax_amount: float
    shipping_amount: float
    discount_amount: float
    total_amount: float
    coupon_code: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    items: List[OrderItemOut]

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    success: bool = True
    order: OrderOut


class OrderListResponse(BaseModel):
    success: bool = True
    orders: List[OrderOut]
    total: int
    page: int
    page_size: int
