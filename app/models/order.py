from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.models.database import Base
from app.models.enums import OrderStatus, PaymentMethod


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    shipping_address = Column(String(512), nullable=False)
    status = Column(
        Enum(OrderStatus, name="order_status", native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    placed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    payment_method = Column(
        Enum(PaymentMethod, name="payment_method", native_enum=False, length=10),
        nullable=False,
    )
    payment_reference = Column(String(255), nullable=True)  # external gateway order id

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), primary_key=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    product_name = Column(String(255), nullable=False)

    order = relationship("Order", back_populates="items")
