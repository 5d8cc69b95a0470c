from enum import Enum


class _UpperCaseEnum(str, Enum):
    """String enum parsed case-insensitively from inbound values."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"{value!r} is not a valid {cls.__name__}")
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"{value!r} is not a valid {cls.__name__}") from None


class OrderStatus(_UpperCaseEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"


# Once reached, the buyer can no longer cancel.
PROCESSED_ORDER_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})


class PaymentStatus(_UpperCaseEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Automatic synchronization never moves a payment out of these.
STICKY_PAYMENT_STATUSES = frozenset({PaymentStatus.FAILED, PaymentStatus.REFUNDED})


class PaymentMethod(_UpperCaseEnum):
    COD = "COD"
    UPI = "UPI"


class UserRole(_UpperCaseEnum):
    BUYER = "BUYER"
    SELLER = "SELLER"
    ADMIN = "ADMIN"
