import random
import string
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.config import settings
from core.db import atomic, paginate
from core.errors import DomainError, ForbiddenError, NotFoundError, ValidationError
from core.logging_config import get_logger
from models.order import Order
from models.order_item import OrderItem
from models.payment import Payment
from models.product import Product
from models.user import User, ROLE_ADMIN
from services.coupons import calculate_discount, coupon_rejection_reason, get_coupon

logger = get_logger(__name__)

ONLINE_METHODS = ("vnpay", "momo", "bank_transfer")


def _to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def generate_order_number() -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def create_order(
    db: Session,
    user: Optional[User],
    items: List[Dict[str, int]],
    payment_method: str,
    shipping_address: Optional[Dict[str, Any]] = None,
    coupon_code: Optional[str] = None,
    shipping_amount: float | Decimal = 0,
) -> Order:
    if not items:
        raise ValidationError("Order must contain items")

    quantities: Dict[int, int] = {}
    for item in items:
        quantities[item["product_id"]] = quantities.get(item["product_id"], 0) + item["quantity"]

    products_map = {p.id: p for p in db.query(Product).filter(Product.id.in_(quantities)).all()}
    if len(products_map) != len(quantities):
        raise NotFoundError("One or more products were not found")

    for product_id, qty in quantities.items():
        product = products_map[product_id]
        if not product.is_active:
            raise DomainError(f"Product {product.name} is no longer available")
        if qty > product.stock_quantity:
            raise DomainError(f"Not enough stock for {product.name}. Only {product.stock_quantity} left")

    subtotal = Decimal("0.00")
    order_items: List[OrderItem] = []
    for product_id, qty in quantities.items():
        product = products_map[product_id]
        unit_price = _to_decimal(product.price)
        total = unit_price * qty
        subtotal += total
        order_items.append(
            OrderItem(product_id=product.id, product_name=product.name, quantity=qty, unit_price=unit_price, total=total)
        )

    coupon = None
    discount = Decimal("0.00")
    if coupon_code:
        coupon = get_coupon(db, coupon_code)
        reason = coupon_rejection_reason(coupon, subtotal)
        if reason:
            raise DomainError(reason)
        discount = calculate_discount(coupon, subtotal)

    shipping = _to_decimal(shipping_amount)
    tax = Decimal("0.00")
    total_amount = max(Decimal("0.00"), subtotal + tax + shipping - discount)

    with atomic(db):
        order = Order(
            order_number=generate_order_number(),
            user_id=user.id if user else None,
            status="pending",
            payment_status="unpaid",
            subtotal=subtotal,
            tax_amount=tax,
            shipping_amount=shipping,
            discount_amount=discount,
            total_amount=total_amount,
            coupon_code=coupon.code if coupon else None,
            shipping_address=shipping_address,
            items=order_items,
        )
        db.add(order)
        db.flush()

        for product_id, qty in quantities.items():
            result = db.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= qty)
                .values(stock_quantity=Product.stock_quantity - qty)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise DomainError(f"Not enough stock for {products_map[product_id].name}")

        if coupon:
            coupon.used_count = (coupon.used_count or 0) + 1

        db.add(Payment(
            order_id=order.id,
            payment_method=payment_method,
            payment_provider=payment_method if payment_method in ONLINE_METHODS else None,
            transaction_id=order.order_number if payment_method in ONLINE_METHODS else None,
            amount=total_amount,
            currency=settings.CURRENCY,
            status="pending",
        ))

    db.refresh(order)
    logger.info("order_created", order_id=order.id, order_number=order.order_number, total=str(total_amount))
    return order


def get_order(db: Session, order_id: int, user: User) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and ROLE_ADMIN not in user.role_names:
        raise ForbiddenError("You do not have access to this order")
    return order


def list_user_orders(db: Session, user: User, page: int = 1, page_size: int = 20) -> Tuple[List[Order], int]:
    query = db.query(Order).filter(Order.user_id == user.id).order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(query, page, page_size)
