from sqlalchemy.orm import Session

from app.models import Product


def find_product(db: Session, product_id: int) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def increase_stock(db: Session, product_id: int, quantity: int) -> int:
    return (
        db.query(Product)
        .filter(Product.id == product_id)
        .update({Product.stock: Product.stock + quantity}, synchronize_session="fetch")
    )


def decrease_stock(db: Session, product_id: int, quantity: int) -> int:
    """Take ``quantity`` units off the shelf; 0 rows means not enough stock."""
    return (
        db.query(Product)
        .filter(Product.id == product_id, Product.stock >= quantity)
        .update({Product.stock: Product.stock - quantity}, synchronize_session="fetch")
    )
