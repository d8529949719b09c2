from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.coupon import CouponValidateRequest, CouponValidateResponse
from services.coupons import validate_coupon

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate", response_model=CouponValidateResponse)
def validate(data: CouponValidateRequest, db: Session = Depends(get_db)):
    return {"validation": validate_coupon(db, data.coupon_code, data.cart_total)}
