from app.models.database import Base, get_db
from app.models.enums import OrderStatus, PaymentMethod, PaymentStatus, UserRole
from app.models.user import User
from app.models.product import Product
from app.models.order import Order, OrderItem
from app.models.payment import Payment

__all__ = [
    "Base",
    "get_db",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "UserRole",
    "User",
    "Product",
    "Order",
    "OrderItem",
    "Payment",
]
