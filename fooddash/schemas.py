from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    status: str = "success"
    message: Optional[str] = None
    data: Optional[T] = None


# -------------------------
# Orders
# -------------------------

class DeliveryAddress(BaseModel):
    label: Optional[str] = None
    address_line1: str = Field(min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(min_length=1)
    state: Optional[str] = None
    postal_code: Optional[str] = None

    @field_validator("address_line1", "city")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class OrderItemCreate(BaseModel):
    menu_item_id: int
    item_name: str
    item_price: Money = Field(ge=0)
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = None


class OrderCreate(BaseModel):
    restaurant_id: int
    delivery_address: DeliveryAddress
    delivery_instructions: Optional[str] = None
    items: List[OrderItemCreate] = Field(min_length=1)
    subtotal: Money
    delivery_fee: Money = Decimal("0")
    tax: Money = Decimal("0")
    discount: Money = Decimal("0")
    total: Money
    payment_method: str = "card"


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    menu_item_id: int
    item_name: str
    item_price: Money
    quantity: int
    special_instructions: Optional[str] = None
    created_at: datetime


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    restaurant_id: int
    restaurant_name: Optional[str] = None
    restaurant_image: Optional[str] = None
    delivery_address: dict
    delivery_instructions: Optional[str] = None
    subtotal: Money
    delivery_fee: Money
    tax: Money
    discount: Money
    total: Money
    status: str
    payment_status: str
    payment_method: Optional[str] = None
    driver_id: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    preparing_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    out_for_delivery_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = Field(default_factory=list)

    @field_validator("delivery_address", mode="before")
    @classmethod
    def parse_delivery_address(cls, value: Any) -> dict:
        if isinstance(value, str):
            return json.loads(value)
        return value


class OrderCancel(BaseModel):
    reason: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: str


class OrderStatusLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    status: str
    created_at: datetime


class OrderData(BaseModel):
    order: OrderRead


class OrderListData(BaseModel):
    orders: List[OrderRead]


class StatusLogData(BaseModel):
    entries: List[OrderStatusLogRead]


# -------------------------
# Payments
# -------------------------

class PaymentStatusUpdate(BaseModel):
    status: Literal["paid", "failed", "refunded"]


class PaymentCreate(BaseModel):
    order_id: int
    amount: Money = Field(ge=0)
    payment_method: str
    transaction_id: Optional[str] = None
    status: Literal["pending", "completed", "failed", "refunded"] = "pending"


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: Money
    payment_method: str
    transaction_id: Optional[str] = None
    status: str
    created_at: datetime


class PaymentData(BaseModel):
    payment: PaymentRead


# -------------------------
# Catalogue
# -------------------------

class RestaurantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    rating: Money
    delivery_time: Optional[str] = None
    delivery_fee: Money
    min_order: Money
    is_active: bool
    address: Optional[str] = None
    phone: Optional[str] = None


class MenuItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    name: str
    description: Optional[str] = None
    price: Money
    image_url: Optional[str] = None
    category: Optional[str] = None
    is_vegetarian: bool
    is_available: bool


class RestaurantData(BaseModel):
    restaurant: RestaurantRead


class RestaurantListData(BaseModel):
    restaurants: List[RestaurantRead]


class MenuData(BaseModel):
    menu_items: List[MenuItemRead]


class MenuItemData(BaseModel):
    menu_item: MenuItemRead


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    restaurant_id: int
    order_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class ReviewData(BaseModel):
    review: ReviewRead


class ReviewListData(BaseModel):
    reviews: List[ReviewRead]


# -------------------------
# Users and addresses
# -------------------------

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    role: str
    avatar_url: Optional[str] = None
    created_at: datetime


class UserData(BaseModel):
    user: UserRead


class UserUpdate(BaseModel):
    username: str = Field(min_length=1)
    avatar_url: Optional[str] = None


class AddressBase(BaseModel):
    label: Optional[str] = None
    address_line1: str = Field(min_length=1)
    address_line2: Optional[str] = None
    city: str = Field(min_length=1)
    state: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_default: bool = False


class AddressCreate(AddressBase):
    pass


class AddressUpdate(AddressBase):
    pass


class AddressRead(AddressBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    created_at: datetime
    updated_at: datetime


class AddressData(BaseModel):
    address: AddressRead


class AddressListData(BaseModel):
    addresses: List[AddressRead]
