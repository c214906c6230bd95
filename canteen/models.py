from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .database import Base
from .status import INITIAL_STATUS

ROLE_STUDENT = "student"
ROLE_STAFF = "staff"
ROLES = (ROLE_STUDENT, ROLE_STAFF)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(80), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_STUDENT)
    orders = relationship("Order", back_populates="owner")


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(50), nullable=False, default="General")
    image_url = Column(String(255))
    is_available = Column(Boolean, nullable=False, default=True)


class Order(Base):
    __tablename__ = "orders"

    # assigned from OrderSequence, see store.next_order_id
    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=INITIAL_STATUS.value)
    items = Column(JSON, nullable=False)  # [{item_id, name, quantity, price}, ...]
    total_price = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    owner = relationship("User", back_populates="orders")


class OrderSequence(Base):
    """Single row holding the next token number to hand out."""

    __tablename__ = "order_sequence"

    id = Column(Integer, primary_key=True)
    next_value = Column(Integer, nullable=False, default=1)
