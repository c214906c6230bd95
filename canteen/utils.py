"""
Authentication helpers: password hashing and the per-request session user.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status
from starlette.requests import HTTPConnection
from werkzeug.security import check_password_hash, generate_password_hash

from .models import ROLE_STAFF

SESSION_KEY = "user"


def hash_password(plain: str) -> str:
    return generate_password_hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return check_password_hash(hashed, plain)


@dataclass(frozen=True)
class SessionUser:
    id: int
    username: str
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_STAFF

    def as_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}


def login_session(conn: HTTPConnection, user) -> SessionUser:
    session_user = SessionUser(id=user.id, username=user.username, role=user.role)
    conn.session.clear()
    conn.session[SESSION_KEY] = session_user.as_dict()
    return session_user


def logout_session(conn: HTTPConnection) -> None:
    conn.session.clear()


def session_user(conn: HTTPConnection) -> Optional[SessionUser]:
    """The logged-in user for this request/socket, or None."""
    data = conn.session.get(SESSION_KEY)
    if not data:
        return None
    return SessionUser(id=data["id"], username=data["username"], role=data["role"])


def require_user(conn: HTTPConnection) -> SessionUser:
    user = session_user(conn)
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Login required")
    return user


def require_staff(conn: HTTPConnection) -> SessionUser:
    user = require_user(conn)
    if not user.is_staff:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Staff only")
    return user
