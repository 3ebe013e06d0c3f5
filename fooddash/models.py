from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

ORDER_STATUSES = (
    "pending",
    "confirmed",
    "preparing",
    "ready",
    "out_for_delivery",
    "delivered",
    "cancelled",
)
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
TRANSACTION_STATUSES = ("pending", "completed", "failed", "refunded")
USER_ROLES = ("customer", "admin", "driver")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, sa_column_kwargs={"unique": True})
    username: str
    role: str = Field(default="customer", index=True)
    api_token: Optional[str] = Field(default=None, index=True, sa_column_kwargs={"unique": True})
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Address(SQLModel, table=True):
    __tablename__ = "user_addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    label: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Restaurant(SQLModel, table=True):
    __tablename__ = "restaurants"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, sa_column_kwargs={"unique": True})
    description: Optional[str] = None
    image_url: Optional[str] = None
    rating: Decimal = Field(default=Decimal("0"), max_digits=3, decimal_places=2)
    delivery_time: Optional[str] = None
    delivery_fee: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2, ge=0)
    min_order: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2, ge=0)
    is_active: bool = Field(default=True, index=True)
    address: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    menu_items: List["MenuItem"] = Relationship(back_populates="restaurant")


class MenuItem(SQLModel, table=True):
    __tablename__ = "menu_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    price: Decimal = Field(max_digits=10, decimal_places=2, ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_vegetarian: bool = False
    is_available: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    restaurant: Optional[Restaurant] = Relationship(back_populates="menu_items")


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_number: str = Field(index=True, sa_column_kwargs={"unique": True})
    user_id: int = Field(foreign_key="users.id", index=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    # JSON snapshot, not a foreign key: later address edits must not touch old orders
    delivery_address: str
    delivery_instructions: Optional[str] = None
    subtotal: Decimal = Field(max_digits=10, decimal_places=2)
    delivery_fee: Decimal = Field(max_digits=10, decimal_places=2)
    tax: Decimal = Field(max_digits=10, decimal_places=2)
    discount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    total: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default="pending", index=True)
    payment_status: str = Field(default="pending", index=True)
    payment_method: Optional[str] = None
    driver_id: Optional[int] = Field(default=None, foreign_key="users.id")
    confirmed_at: Optional[datetime] = None
    preparing_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    out_for_delivery_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    items: List["OrderItem"] = Relationship(back_populates="order")
    restaurant: Optional[Restaurant] = Relationship()


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    menu_item_id: int = Field(foreign_key="menu_items.id")
    item_name: str
    item_price: Decimal = Field(max_digits=10, decimal_places=2)
    quantity: int = Field(default=1, ge=1)
    special_instructions: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    order: Optional[Order] = Relationship(back_populates="items")


class OrderStatusLog(SQLModel, table=True):
    __tablename__ = "order_status_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    status: str
    created_at: datetime = Field(default_factory=utcnow)


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    payment_method: str
    transaction_id: Optional[str] = Field(default=None, index=True)
    status: str = Field(default="pending")
    created_at: datetime = Field(default_factory=utcnow)


class Review(SQLModel, table=True):
    __tablename__ = "reviews"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    restaurant_id: int = Field(foreign_key="restaurants.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id")
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Coupon(SQLModel, table=True):
    __tablename__ = "coupons"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, sa_column_kwargs={"unique": True})
    description: Optional[str] = None
    discount_type: str = "percentage"
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)
    min_order_amount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    max_uses: Optional[int] = None
    used_count: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "Address",
    "Coupon",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatusLog",
    "Payment",
    "Restaurant",
    "Review",
    "User",
]
