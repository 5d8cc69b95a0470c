from decimal import Decimal

from sqlalchemy.orm import Session

from app.models import Payment, PaymentMethod, PaymentStatus


def create(
    db: Session,
    order_id: int,
    user_id: int,
    amount: Decimal,
    currency: str,
    method: PaymentMethod,
) -> int:
    payment = Payment(
        order_id=order_id,
        user_id=user_id,
        amount=amount,
        currency=currency,
        payment_method=method,
        status=PaymentStatus.PENDING,
    )
    db.add(payment)
    db.flush()
    return payment.id


def find_by_order_id(db: Session, order_id: int) -> Payment | None:
    return db.query(Payment).filter(Payment.order_id == order_id).populate_existing().first()


def update_status(db: Session, payment_id: int, payment_status: PaymentStatus) -> int:
    return (
        db.query(Payment)
        .filter(Payment.id == payment_id)
        .update({Payment.status: payment_status}, synchronize_session="fetch")
    )
