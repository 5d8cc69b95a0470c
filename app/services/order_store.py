from datetime import datetime

from sqlalchemy.orm import Session

from app.models import Order, OrderItem, OrderStatus, Payment


def save(db: Session, order: Order) -> int:
    """Insert the order and return its generated id (0 when nothing was written)."""
    db.add(order)
    db.flush()
    return order.id or 0


def find_by_id(db: Session, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def find_by_id_for_update(db: Session, order_id: int) -> Order | None:
    """Load the order row and hold its lock until the transaction ends."""
    return (
        db.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def find_all(db: Session) -> list[Order]:
    return db.query(Order).order_by(Order.id).all()


def find_by_user_id(db: Session, user_id: int) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.placed_at.desc(), Order.id.desc())
        .all()
    )


def find_by_status_before(db: Session, order_status: OrderStatus, cutoff: datetime) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.status == order_status, Order.placed_at < cutoff)
        .order_by(Order.placed_at)
        .all()
    )


def update_status(db: Session, order_id: int, order_status: OrderStatus) -> int:
    return (
        db.query(Order)
        .filter(Order.id == order_id)
        .update({Order.status: order_status}, synchronize_session="fetch")
    )


def update_payment_reference(db: Session, order_id: int, reference: str) -> int:
    return (
        db.query(Order)
        .filter(Order.id == order_id)
        .update({Order.payment_reference: reference}, synchronize_session="fetch")
    )


def delete_by_id(db: Session, order_id: int) -> int:
    # SQLite does not enforce ON DELETE CASCADE unless asked to, so dependants go first.
    db.query(Payment).filter(Payment.order_id == order_id).delete(synchronize_session=False)
    db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
    rows = db.query(Order).filter(Order.id == order_id).delete(synchronize_session=False)
    db.expire_all()
    return rows


def find_items_by_order_id(db: Session, order_id: int) -> list[OrderItem]:
    return (
        db.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.product_id)
        .all()
    )


def find_orders_with_items(db: Session, user_id: int) -> list[dict]:
    """Flattened order/item rows for a user, one row per ordered product."""
    rows = (
        db.query(
            Order.id,
            Order.total_amount,
            Order.shipping_address,
            Order.status,
            OrderItem.product_id,
            OrderItem.product_name,
            OrderItem.quantity,
            OrderItem.unit_price,
        )
        .join(OrderItem, OrderItem.order_id == Order.id)
        .filter(Order.user_id == user_id)
        .order_by(Order.id, OrderItem.product_id)
        .all()
    )
    return [
        {
            "order_id": row.id,
            "total_amount": row.total_amount,
            "shipping_address": row.shipping_address,
            "status": row.status,
            "product_id": row.product_id,
            "product_name": row.product_name,
            "quantity": row.quantity,
            "unit_price": row.unit_price,
        }
        for row in rows
    ]
