from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.orm import Session

from app.config import settings
from app.services import inventory
from app.services.errors import ResourceNotFound


class DeliveryEstimator(Protocol):
    def estimate_days(self, buyer_id: int, product_id: int) -> int: ...


@dataclass(frozen=True)
class StockAwareDeliveryEstimator:
    """Fixed lead time, extended while the product is out of stock."""

    db: Session
    base_days: int
    backorder_extra_days: int

    def estimate_days(self, buyer_id: int, product_id: int) -> int:
        product = inventory.find_product(self.db, product_id)
        if product is None:
            raise ResourceNotFound(f"Product not found with id: {product_id}")
        if product.stock <= 0:
            return self.base_days + self.backorder_extra_days
        return self.base_days


def get_delivery_estimator(db: Session) -> DeliveryEstimator:
    return StockAwareDeliveryEstimator(
        db=db,
        base_days=settings.DELIVERY_BASE_DAYS,
        backorder_extra_days=settings.DELIVERY_BACKORDER_EXTRA_DAYS,
    )
