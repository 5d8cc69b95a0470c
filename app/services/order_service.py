"""Order/payment synchronization engine.

Order status and payment status are tracked separately and kept consistent by
two one-directional rules:

* an order-side change (admin update, cancellation, expiry) goes through
  ``update_order_status`` and then writes the implied payment status straight
  to the payment ledger;
* a payment-side change (webhook, admin) goes through ``update_payment_status``
  and then writes the implied order status straight to the order store.

Neither rule calls the other's public entry point, so one change never bounces
back and forth between the two records.

Every public mutating method is one transaction: it commits when it returns and
rolls back when it raises. The order row is locked (``SELECT ... FOR UPDATE``)
before any read-then-write, so two operations on the same order never
interleave.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus
from app.models.enums import PROCESSED_ORDER_STATUSES, STICKY_PAYMENT_STATUSES
from app.services import inventory, order_store, payment_ledger
from app.services.clock import Clock, as_utc, db_datetime, utcnow
from app.services.delivery import DeliveryEstimator, get_delivery_estimator
from app.services.errors import (
    InsufficientStock,
    InvalidPaymentMethod,
    OrderServiceError,
    OrderAlreadyProcessed,
    PaymentNotFound,
    PersistenceFailure,
    ResourceNotFound,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderItemRequest:
    product_id: int
    quantity: int


@dataclass
class NewOrder:
    user_id: int
    total_amount: Decimal
    shipping_address: str
    payment_method: PaymentMethod | str | None
    status: OrderStatus | None = None
    placed_at: datetime | None = None
    items: list[OrderItemRequest] = field(default_factory=list)


# Payment status implied by an order status, whatever the payment method.
_PAYMENT_STATUS_FOR_ORDER_STATUS = {
    OrderStatus.DELIVERED: PaymentStatus.PAID,
    OrderStatus.CANCELLED: PaymentStatus.FAILED,
    OrderStatus.EXPIRED: PaymentStatus.FAILED,
    OrderStatus.REFUNDED: PaymentStatus.REFUNDED,
    OrderStatus.PENDING: PaymentStatus.PENDING,
}

# While the order is in flight: UPI is captured at checkout, COD on delivery.
_IN_FLIGHT_PAYMENT_STATUS = {
    PaymentMethod.COD: PaymentStatus.PENDING,
    PaymentMethod.UPI: PaymentStatus.PAID,
}


def derive_payment_status(
    method: PaymentMethod,
    new_order_status: OrderStatus,
    current: PaymentStatus,
) -> PaymentStatus:
    """Payment status an order-status change should leave the payment in."""
    if current in STICKY_PAYMENT_STATUSES:
        return current
    target = _PAYMENT_STATUS_FOR_ORDER_STATUS.get(new_order_status)
    if target is None:
        target = _IN_FLIGHT_PAYMENT_STATUS[method]
    return target


def derive_order_status(payment_status: PaymentStatus, current: OrderStatus) -> OrderStatus:
    """Order status a payment-status change should leave the order in."""
    if payment_status is PaymentStatus.PAID:
        # TODO: a PAID event on a cancelled/expired order is accepted silently; decide
        # whether it should trigger a refund instead.
        return OrderStatus.PROCESSING if current is OrderStatus.PENDING else current
    if payment_status is PaymentStatus.REFUNDED:
        return OrderStatus.REFUNDED
    return OrderStatus.PENDING


def parse_payment_method(value: PaymentMethod | str | None) -> PaymentMethod:
    if value is None:
        raise InvalidPaymentMethod(value)
    try:
        return PaymentMethod.parse(value)
    except ValueError:
        raise InvalidPaymentMethod(value) from None


def _merge_items(items: list[OrderItemRequest]) -> dict[int, int]:
    quantities: dict[int, int] = {}
    for item in items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
    return quantities


class OrderService:
    def __init__(
        self,
        db: Session,
        clock: Clock = utcnow,
        delivery_estimator: DeliveryEstimator | None = None,
    ):
        self.db = db
        self.clock = clock
        self.delivery_estimator = delivery_estimator or get_delivery_estimator(db)

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # Queries

    def get_order(self, order_id: int) -> Order:
        order = order_store.find_by_id(self.db, order_id)
        if order is None:
            raise ResourceNotFound(f"Order not found with id: {order_id}")
        return order

    def list_orders(self) -> list[Order]:
        return order_store.find_all(self.db)

    def list_orders_for_user(self, user_id: int) -> list[Order]:
        return order_store.find_by_user_id(self.db, user_id)

    def list_orders_with_items(self, user_id: int) -> list[dict]:
        return order_store.find_orders_with_items(self.db, user_id)

    def get_payment(self, order_id: int) -> Payment | None:
        return payment_ledger.find_by_order_id(self.db, order_id)

    # Creation

    def create_order(self, new_order: NewOrder) -> Order:
        method = parse_payment_method(new_order.payment_method)
        order_status = new_order.status or OrderStatus.PENDING
        placed_at = as_utc(new_order.placed_at or self.clock())

        with self._transaction():
            order = Order(
                user_id=new_order.user_id,
                total_amount=new_order.total_amount,
                shipping_address=new_order.shipping_address,
                status=order_status,
                placed_at=placed_at,
                payment_method=method,
            )
            order_id = order_store.save(self.db, order)
            if order_id <= 0:
                raise PersistenceFailure(f"Create failed for order of user {new_order.user_id}")

            # Stock rows are locked in product id order.
            for product_id, quantity in sorted(_merge_items(new_order.items).items()):
                self._reserve_item(order_id, product_id, quantity)

            payment_ledger.create(
                self.db,
                order_id=order_id,
                user_id=new_order.user_id,
                amount=new_order.total_amount,
                currency=settings.SETTLEMENT_CURRENCY,
                method=method,
            )

        logger.info("Order %s created for user %s (%s)", order_id, new_order.user_id, method.value)
        return self.get_order(order_id)

    def _reserve_item(self, order_id: int, product_id: int, quantity: int) -> None:
        product = inventory.find_product(self.db, product_id)
        if product is None:
            raise ResourceNotFound(f"Product not found with id: {product_id}")
        available = product.stock
        if inventory.decrease_stock(self.db, product_id, quantity) <= 0:
            raise InsufficientStock(product_id, quantity, available)
        self.db.add(
            OrderItem(
                order_id=order_id,
                product_id=product_id,
                quantity=quantity,
                unit_price=product.price,
                product_name=product.name,
            )
        )

    # Order side -> payment side

    def update_order_status(self, order_id: int, new_status: OrderStatus) -> Order:
        with self._transaction():
            order_store.find_by_id_for_update(self.db, order_id)
            self._apply_order_status(order_id, new_status)
        return self.get_order(order_id)

    def _apply_order_status(self, order_id: int, new_status: OrderStatus) -> int:
        rows = order_store.update_status(self.db, order_id, new_status)
        if rows <= 0:
            raise PersistenceFailure(f"Update status failed for order {order_id}")
        logger.info("Order %s status set to %s", order_id, new_status.value)
        self._sync_payment_with_order(order_id, new_status)
        return rows

    def _sync_payment_with_order(self, order_id: int, new_status: OrderStatus) -> None:
        payment = payment_ledger.find_by_order_id(self.db, order_id)
        if payment is None:
            return
        target = derive_payment_status(payment.payment_method, new_status, payment.status)
        if target is not payment.status:
            self._write_payment_status(payment, target)

    def _write_payment_status(self, payment: Payment, target: PaymentStatus) -> None:
        previous = payment.status
        if payment_ledger.update_status(self.db, payment.id, target) <= 0:
            raise PersistenceFailure(f"Update failed for payment {payment.id}")
        logger.info(
            "Payment %s for order %s: %s -> %s",
            payment.id,
            payment.order_id,
            previous.value,
            target.value,
        )

    # Payment side -> order side

    def update_payment_status(
        self,
        order_id: int,
        new_status: PaymentStatus,
        reference: str | None = None,
    ) -> Order:
        with self._transaction():
            order = order_store.find_by_id_for_update(self.db, order_id)
            payment = payment_ledger.find_by_order_id(self.db, order_id)
            if payment is None:
                raise PaymentNotFound(order_id)

            if payment.status is not new_status:
                self._write_payment_status(payment, new_status)

            current = order.status if order is not None else OrderStatus.PENDING
            next_status = derive_order_status(new_status, current)
            if order_store.update_status(self.db, order_id, next_status) <= 0:
                raise PersistenceFailure(f"Failed to sync order status for order {order_id}")

            if reference and order_store.update_payment_reference(self.db, order_id, reference) <= 0:
                raise PersistenceFailure(f"Failed to store payment reference for order {order_id}")

        logger.info(
            "Order %s synced from payment status %s: %s -> %s",
            order_id,
            new_status.value,
            current.value,
            next_status.value,
        )
        return self.get_order(order_id)

    # Cancellation

    def cancel_order(self, order_id: int) -> Order:
        with self._transaction():
            order = order_store.find_by_id_for_update(self.db, order_id)
            if order is None:
                raise ResourceNotFound(f"Order not found with id: {order_id}")
            if order.status in PROCESSED_ORDER_STATUSES:
                raise OrderAlreadyProcessed(order_id, order.status)

            # A missing payment is rare but legitimate.
            payment = payment_ledger.find_by_order_id(self.db, order_id)
            final_status = OrderStatus.CANCELLED
            if payment is not None:
                if payment.status is PaymentStatus.PAID:
                    self._write_payment_status(payment, PaymentStatus.REFUNDED)
                    final_status = OrderStatus.REFUNDED
                elif payment.status is PaymentStatus.PENDING:
                    self._write_payment_status(payment, PaymentStatus.FAILED)

            self._apply_order_status(order_id, final_status)

        logger.info("Order %s cancelled, final status %s", order_id, final_status.value)
        return self.get_order(order_id)

    # Deletion

    def delete_order(self, order_id: int) -> None:
        with self._transaction():
            if order_store.find_by_id_for_update(self.db, order_id) is None:
                raise ResourceNotFound(f"Order not found with id: {order_id}")
            if order_store.delete_by_id(self.db, order_id) <= 0:
                raise PersistenceFailure(f"Delete failed for order {order_id}")
        logger.info("Order %s deleted", order_id)

    # Delivery

    def estimate_delivery(self, buyer_id: int, product_id: int) -> int:
        days = self.delivery_estimator.estimate_days(buyer_id, product_id)
        logger.info("Estimated delivery for buyer %s, product %s: %s day(s)", buyer_id, product_id, days)
        return days

    # Expiry

    def expire_stale_orders(self, window_minutes: int | None = None) -> int:
        """Expire PENDING orders placed before ``now - window`` and give their stock back.

        Each order is handled in its own transaction. An order that left PENDING
        after the query (paid or cancelled meanwhile) is skipped.
        """
        if window_minutes is None:
            window_minutes = settings.ORDER_EXPIRY_MINUTES
        cutoff = db_datetime(self.db, self.clock() - timedelta(minutes=window_minutes))
        candidate_ids = [
            order.id
            for order in order_store.find_by_status_before(self.db, OrderStatus.PENDING, cutoff)
        ]
        self.db.commit()

        expired = 0
        for order_id in candidate_ids:
            try:
                if self._expire_order(order_id):
                    expired += 1
            except (OrderServiceError, SQLAlchemyError):
                logger.exception("Failed to expire order %s", order_id)

        if candidate_ids:
            logger.info("Expiry sweep: %s of %s stale order(s) expired", expired, len(candidate_ids))
        return expired

    def _expire_order(self, order_id: int) -> bool:
        with self._transaction():
            order = order_store.find_by_id_for_update(self.db, order_id)
            if order is None or order.status is not OrderStatus.PENDING:
                logger.info("Order %s is no longer pending, skipping expiry", order_id)
                return False

            for item in order_store.find_items_by_order_id(self.db, order_id):
                inventory.increase_stock(self.db, item.product_id, item.quantity)
            self._apply_order_status(order_id, OrderStatus.EXPIRED)
        return True
