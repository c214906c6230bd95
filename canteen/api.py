"""
JSON API and the live-updates WebSocket.
"""

import logging
from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.requests import HTTPConnection

from . import config, store
from .broadcast import STAFF_GROUP, ConnectionHub, order_group, user_group
from .database import get_db
from .errors import AuthenticationError, UsernameTakenError
from .models import ROLES
from .schemas import (
    Credentials, MenuItemCreate, MenuItemOut, OrderCreate, OrderOut,
    RegisterIn, SessionUserOut, StatusByToken, StatusUpdate, UserOut,
)
from .services import OrderService, price_cart
from .utils import (
    SessionUser, hash_password, login_session, require_staff, require_user,
    session_user, verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ACTIVE_WINDOW = timedelta(hours=config.ACTIVE_WINDOW_HOURS)


def get_hub(conn: HTTPConnection) -> ConnectionHub:
    return conn.app.state.hub


def get_order_service(conn: HTTPConnection) -> OrderService:
    return conn.app.state.order_service


@router.get("/health")
def health():
    return {"status": "ok"}


# ---------- AUTH ----------
@router.post("/register", response_model=SessionUserOut, status_code=201)
def register(payload: RegisterIn, request: Request, db: Session = Depends(get_db)):
    if payload.role not in ROLES:
        raise HTTPException(400, f"Invalid role. Allowed: {list(ROLES)}")
    try:
        user = store.create_user(db, payload.username, hash_password(payload.password), payload.role)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise UsernameTakenError()
    logger.info("New %s registered: %s", user.role, user.username)
    return login_session(request, user).as_dict()


@router.post("/login", response_model=SessionUserOut)
def login(payload: Credentials, request: Request, db: Session = Depends(get_db)):
    user = store.get_user_by_username(db, payload.username)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError()
    if payload.role and payload.role != user.role:
        raise AuthenticationError()
    return login_session(request, user).as_dict()


@router.get("/api/me", response_model=SessionUserOut)
def me(user: SessionUser = Depends(require_user)):
    return user.as_dict()


# ---------- MENU ----------
@router.get("/api/menu", response_model=List[MenuItemOut])
def list_menu(available_only: bool = Query(default=False), db: Session = Depends(get_db)):
    return store.list_menu(db, available_only=available_only)


@router.post("/api/staff/menu", response_model=MenuItemOut, status_code=201, dependencies=[Depends(require_staff)])
def add_menu_item(payload: MenuItemCreate, db: Session = Depends(get_db)):
    item = store.add_menu_item(db, payload.name, payload.price, payload.category, payload.image_url)
    db.commit()
    logger.info("Menu item added: %s (%.2f)", item.name, item.price)
    return item


@router.post("/api/staff/menu/{item_id}/toggle", response_model=MenuItemOut, dependencies=[Depends(require_staff)])
def toggle_menu_item(item_id: int, db: Session = Depends(get_db)):
    item = store.toggle_availability(db, item_id)
    if item is None:
        raise HTTPException(404, "Menu item not found")
    db.commit()
    return item


@router.get("/api/staff/users", response_model=List[UserOut], dependencies=[Depends(require_staff)])
def list_students(db: Session = Depends(get_db)):
    return store.list_students(db)


# ---------- ORDERS ----------
@router.post("/api/orders", response_model=OrderOut, status_code=201)
async def place_order(
    payload: OrderCreate,
    request: Request,
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
    orders: OrderService = Depends(get_order_service),
):
    lines = await run_in_threadpool(price_cart, db, payload.items)
    order = await orders.place_order(db, user.id, lines)
    request.session["last_order_token"] = order.id
    return OrderOut.from_order(order)


@router.get("/api/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, user: SessionUser = Depends(require_user), db: Session = Depends(get_db)):
    if user.is_staff:
        order = store.get_order(db, order_id)
    else:
        order = store.get_order_for_owner(db, order_id, user.id)
    if order is None:
        raise HTTPException(404, "Order not found")
    return OrderOut.from_order(order)


@router.get("/status/{order_id}", response_model=StatusByToken)
def status_by_token(order_id: int, db: Session = Depends(get_db)):
    order = store.get_order(db, order_id)
    if order is None:
        raise HTTPException(404, "Invalid token")
    return {"order_id": order.id, "status": order.status}


@router.get("/api/my-orders", response_model=List[OrderOut])
def my_orders(
    include_completed: bool = Query(default=False),
    user: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    orders = store.list_by_user(db, user.id, ACTIVE_WINDOW, active_only=not include_completed)
    return [OrderOut.from_order(o) for o in orders]


@router.get("/api/staff/orders", response_model=List[OrderOut], dependencies=[Depends(require_staff)])
def staff_orders(db: Session = Depends(get_db)):
    return [OrderOut.from_order(o) for o in store.list_active_for_staff(db, ACTIVE_WINDOW)]


@router.post("/api/staff/orders/{order_id}/status", response_model=OrderOut, dependencies=[Depends(require_staff)])
async def update_order_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    orders: OrderService = Depends(get_order_service),
):
    order = await orders.advance_status(db, order_id, payload.status)
    return OrderOut.from_order(order)


# ---------- LIVE UPDATES ----------
def _join_target(message: dict, websocket: WebSocket):
    """Group named by a join message, or None when it is not acceptable."""
    if message.get("user_id") is not None:
        return user_group(int(message["user_id"]))
    if message.get("order_id") is not None:
        return order_group(int(message["order_id"]))
    if message.get("group") == STAFF_GROUP:
        user = session_user(websocket)
        if user is not None and user.is_staff:
            return STAFF_GROUP
    return None


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    hub = get_hub(websocket)
    await websocket.accept()
    logger.info("Live client connected")
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Malformed message"}})
                continue
            action = message.get("action") if isinstance(message, dict) else None
            if action == "join":
                try:
                    group = _join_target(message, websocket)
                except (TypeError, ValueError):
                    group = None
                if group is None:
                    await websocket.send_json({"event": "error", "data": {"message": "Cannot join"}})
                    continue
                hub.join(websocket, group)
                await websocket.send_json({"event": "joined", "data": {"group": group}})
            elif action == "leave" and message.get("group"):
                hub.leave(websocket, message["group"])
                await websocket.send_json({"event": "left", "data": {"group": message["group"]}})
            else:
                await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})
    except WebSocketDisconnect:
        logger.info("Live client disconnected")
    finally:
        hub.leave(websocket)
