"""
Order store: plain reads and writes over the canteen tables.

No business rules live here: callers validate and own the transaction
(nothing in this module commits).
"""

from datetime import timedelta
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, joinedload

from .models import ROLE_STUDENT, MenuItem, Order, OrderSequence, User, utcnow
from .status import INITIAL_STATUS, OrderStatus

SEQUENCE_ROW_ID = 1


# ---------- ORDERS ----------
def next_order_id(db: Session) -> int:
    """Hand out the next token number, skipping any id still held by a live order."""
    seq = db.get(OrderSequence, SEQUENCE_ROW_ID, with_for_update=True)
    if seq is None:
        seq = OrderSequence(id=SEQUENCE_ROW_ID, next_value=1)
        db.add(seq)
    candidate = seq.next_value
    taken = set(db.scalars(select(Order.id).where(Order.id >= candidate)))
    while candidate in taken:
        candidate += 1
    seq.next_value = candidate + 1
    return candidate


def insert_order(db: Session, user_id: int, items: List[dict], total_price: float) -> Order:
    order = Order(
        id=next_order_id(db),
        user_id=user_id,
        status=INITIAL_STATUS.value,
        items=items,
        total_price=total_price,
        created_at=utcnow(),
    )
    db.add(order)
    db.flush()
    return order


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.get(Order, order_id)


def get_order_for_owner(db: Session, order_id: int, user_id: int) -> Optional[Order]:
    stmt = select(Order).where(Order.id == order_id, Order.user_id == user_id)
    return db.execute(stmt).scalar_one_or_none()


def update_status(
    db: Session,
    order_id: int,
    new_status: OrderStatus,
    expected: Optional[OrderStatus] = None,
) -> Optional[Order]:
    """Set the status of one order.

    With ``expected`` the write only applies while the row still holds that
    status. Returns the updated order, or None when no row matched.
    """
    stmt = update(Order).where(Order.id == order_id).values(status=new_status.value)
    if expected is not None:
        stmt = stmt.where(Order.status == expected.value)
    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        return None
    order = db.get(Order, order_id)
    db.refresh(order)
    return order


def list_by_user(
    db: Session,
    user_id: int,
    within: timedelta,
    active_only: bool = True,
) -> List[Order]:
    """A user's orders from the last ``within``, newest first."""
    stmt = select(Order).where(Order.user_id == user_id, Order.created_at >= utcnow() - within)
    if active_only:
        stmt = stmt.where(Order.status != OrderStatus.COMPLETED.value)
    return list(db.scalars(stmt.order_by(Order.created_at.desc(), Order.id.desc())))


def list_active_for_staff(db: Session, within: timedelta) -> List[Order]:
    """Every not-yet-completed order from the last ``within``, oldest first."""
    stmt = (
        select(Order)
        .options(joinedload(Order.owner))
        .where(Order.status != OrderStatus.COMPLETED.value)
        .where(Order.created_at >= utcnow() - within)
        .order_by(Order.created_at, Order.id)
    )
    return list(db.scalars(stmt))


def delete_where(db: Session, *criteria) -> int:
    """Delete the orders matching ``criteria``; returns how many went."""
    result = db.execute(delete(Order).where(*criteria).execution_options(synchronize_session=False))
    return result.rowcount


def ensure_order_sequence(db: Session) -> None:
    if db.get(OrderSequence, SEQUENCE_ROW_ID) is None:
        db.add(OrderSequence(id=SEQUENCE_ROW_ID, next_value=1))
        db.flush()


def reset_order_sequence(db: Session) -> None:
    """Restart token numbering at 1."""
    result = db.execute(
        update(OrderSequence).where(OrderSequence.id == SEQUENCE_ROW_ID).values(next_value=1)
    )
    if result.rowcount == 0:
        db.add(OrderSequence(id=SEQUENCE_ROW_ID, next_value=1))
        db.flush()


# ---------- MENU ----------
def list_menu(db: Session, available_only: bool = False) -> List[MenuItem]:
    stmt = select(MenuItem)
    if available_only:
        stmt = stmt.where(MenuItem.is_available == True)  # noqa: E712
    return list(db.scalars(stmt.order_by(MenuItem.category, MenuItem.name)))


def get_menu_items(db: Session, item_ids) -> dict:
    stmt = select(MenuItem).where(MenuItem.id.in_(set(item_ids)))
    return {item.id: item for item in db.scalars(stmt)}


def add_menu_item(db: Session, name: str, price: float, category: str, image_url: str = None) -> MenuItem:
    item = MenuItem(name=name, price=price, category=category, image_url=image_url, is_available=True)
    db.add(item)
    db.flush()
    return item


def toggle_availability(db: Session, item_id: int) -> Optional[MenuItem]:
    item = db.get(MenuItem, item_id)
    if item is None:
        return None
    item.is_available = not item.is_available
    db.flush()
    return item


# ---------- USERS ----------
def create_user(db: Session, username: str, password_hash: str, role: str) -> User:
    user = User(username=username, password_hash=password_hash, role=role)
    db.add(user)
    db.flush()
    return user


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def list_students(db: Session) -> List[User]:
    return list(db.scalars(select(User).where(User.role == ROLE_STUDENT).order_by(User.id)))
