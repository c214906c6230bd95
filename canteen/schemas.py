from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------- AUTH ----------
class Credentials(BaseModel):
    username: str = Field(min_length=1, max_length=80)
    password: str = Field(min_length=1)
    role: Optional[str] = None


class RegisterIn(Credentials):
    role: str = "student"


class SessionUserOut(BaseModel):
    id: int
    username: str
    role: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    role: str


# ---------- MENU ----------
class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price: float = Field(ge=0)
    category: str = "General"
    image_url: Optional[str] = None


class MenuItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: float
    category: str
    image_url: Optional[str] = None
    is_available: bool


# ---------- ORDERS ----------
class CartItemIn(BaseModel):
    """One cart line as the browser sends it. Name and price are informational only."""

    id: int
    quantity: int = Field(default=1, ge=1)
    name: Optional[str] = None
    price: Optional[float] = None


class OrderCreate(BaseModel):
    items: List[CartItemIn] = Field(default_factory=list)


class OrderItemOut(BaseModel):
    item_id: Optional[int] = None
    name: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)

    @property
    def line_total(self) -> float:
        return self.quantity * self.price


class OrderOut(BaseModel):
    id: int
    user_id: int
    username: Optional[str] = None
    status: str
    items: List[OrderItemOut]
    total_price: float
    created_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderOut":
        return cls(
            id=order.id,
            user_id=order.user_id,
            username=order.owner.username if order.owner is not None else None,
            status=order.status,
            items=order.items,
            total_price=order.total_price,
            created_at=order.created_at,
        )


class StatusUpdate(BaseModel):
    status: str


class StatusByToken(BaseModel):
    order_id: int
    status: str
