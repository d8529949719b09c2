from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CouponValidateRequest(BaseModel):
    coupon_code: str = Field(min_length=1)
    cart_total: float = Field(ge=0)


class CouponOut(BaseModel):
    id: int
    code: str
    name: str
    type: str
    value: float
    minimum_amount: Optional[float] = None
    maximum_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int
    starts_at: datetime
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CouponValidation(BaseModel):
    is_valid: bool
    reason: Optional[str] = None
    coupon: Optional[CouponOut] = None
    discount_amount: Optional[float] = None
    final_total: Optional[float] = None


class CouponValidateResponse(BaseModel):
    success: bool = True
    validation: CouponValidation
