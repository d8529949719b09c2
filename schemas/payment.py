from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


WebhookValue = Union[str, int, float, bool, None]


class WebhookRequest(BaseModel):
    payload: Dict[str, WebhookValue]
    signature: Optional[str] = None
    timestamp: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    order_id: Optional[int] = None
    payment_method: str
    payment_provider: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    refund_of_payment_id: Optional[int] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookResult(BaseModel):
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[float] = None
    error_message: Optional[str] = None
    action: Literal["payment_completed", "payment_failed", "payment_cancelled", "payment_pending", "no_action"]


class WebhookResponse(BaseModel):
    success: bool = True
    message: str
    result: WebhookResult
    payment: Optional[PaymentOut] = None


class RefundRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: str = Field(min_length=1, max_length=500)
    refund_method: Literal["original_payment", "bank_transfer", "cash"] = "original_payment"


class RefundInfo(BaseModel):
    refund_payment_id: int
    original_payment_id: int
    order_id: int
    order_number: str
    refund_amount: float
    original_amount: float
    total_refunded: float
    remaining_refundable: float
    is_full_refund: bool
    reason: str
    refund_method: str
    transaction_id: str
    processed_at: datetime


class RefundResponse(BaseModel):
    success: bool = True
    message: str
    refund: RefundInfo


class PaymentStatusResponse(BaseModel):
    success: bool = True
    payment: PaymentOut
    order_status: Optional[str] = None
    order_payment_status: Optional[str] = None
    refunds: List[PaymentOut] = []
