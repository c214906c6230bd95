"""
Order service: place orders and move them through the kitchen lifecycle,
telling live listeners about each change.
"""

import logging
from typing import List, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import store
from .broadcast import (
    EVENT_NEW_ORDER,
    EVENT_STATUS_CHANGED,
    STAFF_GROUP,
    ConnectionHub,
    order_group,
    user_group,
)
from .errors import EmptyCartError, InvalidCartError, InvalidTransitionError, OrderNotFoundError, OrderPlacementError
from .models import Order
from .schemas import CartItemIn, OrderItemOut, OrderOut
from .status import OrderStatus, check_transition, parse_status

logger = logging.getLogger(__name__)


def order_total(lines: Sequence[OrderItemOut]) -> float:
    return round(sum(line.quantity * line.price for line in lines), 2)


def price_cart(db: Session, cart: Sequence[CartItemIn]) -> List[OrderItemOut]:
    """Build order lines from a submitted cart using current menu prices.

    Whatever name or price the browser sent is ignored; unknown or
    unavailable items reject the whole cart.
    """
    menu = store.get_menu_items(db, [line.id for line in cart])
    lines = []
    for line in cart:
        item = menu.get(line.id)
        if item is None:
            raise InvalidCartError(f"Menu item {line.id} not found")
        if not item.is_available:
            raise InvalidCartError(f"Item '{item.name}' is not available")
        lines.append(OrderItemOut(item_id=item.id, name=item.name, quantity=line.quantity, price=item.price))
    return lines


def order_payload(order: Order) -> dict:
    return OrderOut.from_order(order).model_dump(mode="json")


class OrderService:
    """Order writes plus their live notifications.

    Database work runs in the threadpool so a slow query never holds up the
    event loop; only the broadcast happens on the loop itself.
    """

    def __init__(self, hub: ConnectionHub) -> None:
        self.hub = hub

    async def place_order(self, db: Session, user_id: int, lines: Sequence[OrderItemOut]) -> Order:
        order, payload = await run_in_threadpool(self._persist_order, db, user_id, lines)
        await self.hub.emit(EVENT_NEW_ORDER, payload, STAFF_GROUP)
        return order

    async def advance_status(self, db: Session, order_id: int, requested: Union[str, OrderStatus]) -> Order:
        order, payload = await run_in_threadpool(self._apply_status, db, order_id, requested)
        await self.hub.emit(EVENT_STATUS_CHANGED, payload, user_group(order.user_id), order_group(order.id))
        return order

    def _persist_order(self, db: Session, user_id: int, lines: Sequence[OrderItemOut]) -> Tuple[Order, dict]:
        if not lines:
            raise EmptyCartError()
        total = order_total(lines)
        try:
            order = store.insert_order(db, user_id, [line.model_dump() for line in lines], total)
            db.commit()
            payload = order_payload(order)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Placing order for user %s failed", user_id)
            raise OrderPlacementError() from exc

        logger.info("Order #%s placed by user %s (%d line(s), total %.2f)", order.id, user_id, len(lines), total)
        return order, payload

    def _apply_status(self, db: Session, order_id: int, requested: Union[str, OrderStatus]) -> Tuple[Order, dict]:
        order = store.get_order(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        requested = parse_status(requested)

        current = OrderStatus(order.status)
        check_transition(current, requested)

        updated = store.update_status(db, order_id, requested, expected=current)
        if updated is None:
            # someone else moved it between our read and write
            db.rollback()
            if store.get_order(db, order_id) is None:
                raise OrderNotFoundError(order_id)
            raise InvalidTransitionError(current, requested)
        db.commit()

        logger.info("Order #%s: %s -> %s", order_id, current.value, requested.value)
        return updated, order_payload(updated)
