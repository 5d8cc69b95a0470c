from sqlalchemy import Column, DateTime, Enum, Integer, String
from sqlalchemy.sql import func

from app.models.database import Base
from app.models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=10),
        nullable=False,
        default=UserRole.BUYER,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
