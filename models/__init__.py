# Import models so that SQLAlchemy metadata includes them on app startup
from .user import User, UserRole  # noqa: F401
from .product import Product  # noqa: F401
from .coupon import Coupon  # noqa: F401
from .order import Order  # noqa: F401
from .order_item import OrderItem  # noqa: F401
from .payment import Payment  # noqa: F401
