from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from models.coupon import Coupon


def _to_decimal(value: float | int | Decimal | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_discount(coupon: Coupon, cart_total: float | Decimal) -> Decimal:
    """Discount a coupon grants on ``cart_total``; never more than the total itself."""
    total = _to_decimal(cart_total)
    if total <= 0:
        return Decimal("0.00")
    value = _to_decimal(coupon.value)

    discount = Decimal("0")
    if coupon.type == "percentage":
        discount = total * value / 100
        if coupon.maximum_discount and discount > _to_decimal(coupon.maximum_discount):
            discount = _to_decimal(coupon.maximum_discount)
    elif coupon.type == "fixed_amount":
        discount = min(value, total)

    discount = max(Decimal("0"), min(discount, total))
    return discount.quantize(Decimal("0.01"))


def coupon_rejection_reason(coupon: Optional[Coupon], cart_total: Decimal, now: Optional[datetime] = None) -> Optional[str]:
    if coupon is None:
        return "Coupon code does not exist"
    now = now or datetime.utcnow()
    if not coupon.is_active:
        return "Coupon has been deactivated"
    if coupon.starts_at and now < coupon.starts_at:
        return "Coupon is not active yet"
    if coupon.expires_at and now > coupon.expires_at:
        return "Coupon has expired"
    if coupon.usage_limit and coupon.used_count >= coupon.usage_limit:
        return "Coupon usage limit has been reached"
    if coupon.minimum_amount and cart_total < _to_decimal(coupon.minimum_amount):
        return f"Minimum order of {_to_decimal(coupon.minimum_amount):,.2f} required for this coupon"
    return None


def get_coupon(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == code.strip().upper()).one_or_none()


def validate_coupon(db: Session, code: str, cart_total: float | Decimal) -> Dict[str, Any]:
    total = _to_decimal(cart_total)
    coupon = get_coupon(db, code)
    reason = coupon_rejection_reason(coupon, total)
    if reason:
        return {"is_valid": False, "reason": reason, "coupon": coupon}

    discount = calculate_discount(coupon, total)
    return {
        "is_valid": True,
        "reason": None,
        "coupon": coupon,
        "discount_amount": discount,
        "final_total": max(Decimal("0"), total - discount),
    }
