"""
HTML pages. Every page reads from the store and hands a plain context to a
Jinja template; live updates and actions go through the JSON API.
"""

from datetime import timedelta
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from . import config, store
from .database import get_db
from .models import ROLE_STAFF, ROLE_STUDENT
from .schemas import OrderOut
from .status import OrderStatus, next_status
from .utils import logout_session, session_user

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

router = APIRouter(include_in_schema=False)

ACTIVE_WINDOW = timedelta(hours=config.ACTIVE_WINDOW_HOURS)


def _render(request: Request, name: str, **context):
    context.setdefault("user", session_user(request))
    return templates.TemplateResponse(request, name, context)


def _home():
    return RedirectResponse("/", status_code=303)


@router.get("/")
def student_login(request: Request, error: int = 0):
    return _render(request, "login.html", role=ROLE_STUDENT, error=error)


@router.get("/staff-login")
def staff_login(request: Request, error: int = 0):
    return _render(request, "login.html", role=ROLE_STAFF, error=error)


@router.get("/register")
def register_page(request: Request):
    return _render(request, "register.html")


@router.get("/logout")
def logout(request: Request):
    logout_session(request)
    return _home()


@router.get("/student/dashboard")
def student_dashboard(request: Request, db: Session = Depends(get_db)):
    if session_user(request) is None:
        return _home()
    return _render(request, "menu.html", items=store.list_menu(db, available_only=True))


@router.get("/student/my-orders")
def my_orders_page(request: Request, db: Session = Depends(get_db)):
    user = session_user(request)
    if user is None:
        return _home()
    orders = [OrderOut.from_order(o) for o in store.list_by_user(db, user.id, ACTIVE_WINDOW)]
    return _render(request, "my_orders.html", orders=orders)


@router.get("/order-success")
def order_success(request: Request, db: Session = Depends(get_db)):
    if session_user(request) is None:
        return _home()
    token = request.session.pop("last_order_token", None)
    order = store.get_order(db, token) if token else None
    if order is None:
        return RedirectResponse("/student/dashboard", status_code=303)
    return _render(request, "token.html", order=OrderOut.from_order(order))


@router.get("/orders/{order_id}/track")
def track_order(order_id: int, request: Request, db: Session = Depends(get_db)):
    user = session_user(request)
    if user is None:
        return _home()
    if user.is_staff:
        order = store.get_order(db, order_id)
    else:
        order = store.get_order_for_owner(db, order_id, user.id)
    if order is None:
        return RedirectResponse("/student/my-orders", status_code=303)
    return _render(request, "token.html", order=OrderOut.from_order(order))


def _staff_only(request: Request) -> bool:
    user = session_user(request)
    return user is not None and user.is_staff


@router.get("/staff/dashboard")
def staff_dashboard(request: Request, db: Session = Depends(get_db)):
    if not _staff_only(request):
        return _home()
    orders = [OrderOut.from_order(o) for o in store.list_active_for_staff(db, ACTIVE_WINDOW)]
    return _render(request, "staff_dashboard.html", orders=orders, next_label=_next_label)


@router.get("/staff/manage-menu")
def manage_menu(request: Request, db: Session = Depends(get_db)):
    if not _staff_only(request):
        return _home()
    return _render(request, "manage_menu.html", items=store.list_menu(db))


@router.get("/staff/manage-users")
def manage_users(request: Request, db: Session = Depends(get_db)):
    if not _staff_only(request):
        return _home()
    return _render(request, "manage_users.html", users=store.list_students(db))


def _next_label(status: str):
    following = next_status(OrderStatus(status))
    return following.value if following else None
