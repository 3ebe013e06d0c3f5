from __future__ import annotations

import json
import logging
import secrets
import string
import time
from decimal import Decimal
from typing import List

from sqlalchemy import or_
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from .errors import InvalidStateError, NotFoundError, TransactionError, ValidationError
from .menu_data import DEFAULT_COUPONS, DEFAULT_RESTAURANTS
from .models import (
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    TRANSACTION_STATUSES,
    USER_ROLES,
    Address,
    Coupon,
    MenuItem,
    Order,
    OrderItem,
    OrderStatusLog,
    Payment,
    Restaurant,
    Review,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)

# statuses an operator may set; "pending" is only ever the initial state
ADVANCE_STATUSES = tuple(status for status in ORDER_STATUSES if status != "pending")
SETTABLE_PAYMENT_STATUSES = tuple(status for status in PAYMENT_STATUSES if status != "pending")
ORDER_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
REQUIRED_ADDRESS_FIELDS = ("address_line1", "city")


# -------------------------
# Order operations
# -------------------------

def generate_order_number() -> str:
    timestamp = str(int(time.time() * 1000))[-6:]
    token = "".join(secrets.choice(ORDER_TOKEN_ALPHABET) for _ in range(6))
    return f"ORD-{timestamp}-{token}"


def list_orders(session: Session, user_id: int) -> List[Order]:
    statement = (
        select(Order)
        .where(Order.user_id == user_id)
        .options(selectinload(Order.restaurant))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(session.exec(statement))


def get_order(session: Session, order_id: int, user_id: int | None = None) -> Order | None:
    statement = select(Order).where(Order.id == order_id)
    if user_id is not None:
        statement = statement.where(Order.user_id == user_id)
    return session.exec(statement).first()


def create_order(session: Session, user_id: int, data: dict) -> Order:
    """Persist an order and its line items in one transaction.

    ``data`` carries the caller's cart snapshot: ``restaurant_id``,
    ``delivery_address``, ``items`` and the precomputed ``subtotal``,
    ``delivery_fee``, ``tax``, ``discount`` and ``total``. The amounts are
    stored as given.
    """
    _validate_order_data(data)
    restaurant_id = data["restaurant_id"]
    if session.get(Restaurant, restaurant_id) is None:
        raise NotFoundError("Restaurant not found")

    now = utcnow()
    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        restaurant_id=restaurant_id,
        delivery_address=json.dumps(data["delivery_address"]),
        delivery_instructions=data.get("delivery_instructions"),
        subtotal=_money(data["subtotal"]),
        delivery_fee=_money(data.get("delivery_fee", 0)),
        tax=_money(data.get("tax", 0)),
        discount=_money(data.get("discount") or 0),
        total=_money(data["total"]),
        payment_method=data.get("payment_method"),
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(order)
        session.flush()
        for item in data["items"]:
            session.add(_build_order_item(order.id, item))
            session.flush()
        session.commit()
    except Exception as exc:
        session.rollback()
        raise TransactionError("Order could not be created") from exc

    session.refresh(order)
    logger.info("Created order %s for user %s (%d items)", order.order_number, user_id, len(order.items))
    return order


def cancel_order(session: Session, order_id: int, user_id: int, reason: str | None) -> Order:
    order = get_order(session, order_id, user_id=user_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.status != "pending":
        raise InvalidStateError("Order cannot be cancelled at this stage")

    now = utcnow()
    order.status = "cancelled"
    order.cancelled_at = now
    order.cancellation_reason = reason
    order.updated_at = now
    session.add(order)
    session.add(OrderStatusLog(order_id=order.id, status="cancelled", created_at=now))
    session.commit()
    session.refresh(order)
    logger.info("Order %s cancelled by user %s", order.order_number, user_id)
    return order


def advance_status(session: Session, order_id: int, new_status: str) -> Order:
    # transitions are not forced forward; any allowed value is recorded
    if new_status not in ADVANCE_STATUSES:
        raise ValidationError("Invalid status")
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    now = utcnow()
    order.status = new_status
    setattr(order, f"{new_status}_at", now)
    order.updated_at = now
    session.add(order)
    session.add(OrderStatusLog(order_id=order.id, status=new_status, created_at=now))
    session.commit()
    session.refresh(order)
    logger.info("Order %s moved to %s", order.order_number, new_status)
    return order


def list_status_log(session: Session, order_id: int) -> List[OrderStatusLog]:
    if session.get(Order, order_id) is None:
        raise NotFoundError("Order not found")
    statement = (
        select(OrderStatusLog)
        .where(OrderStatusLog.order_id == order_id)
        .order_by(OrderStatusLog.created_at.asc(), OrderStatusLog.id.asc())
    )
    return list(session.exec(statement))


def update_payment_status(session: Session, order_id: int, user_id: int, status: str) -> Order:
    if status not in SETTABLE_PAYMENT_STATUSES:
        raise ValidationError("Invalid payment status")
    order = get_order(session, order_id, user_id=user_id)
    if not order:
        raise NotFoundError("Order not found")
    order.payment_status = status
    order.updated_at = utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)
    return order


def record_payment(session: Session, user_id: int, data: dict) -> Payment:
    if data.get("status", "pending") not in TRANSACTION_STATUSES:
        raise ValidationError("Invalid payment transaction status")
    order = get_order(session, data["order_id"], user_id=user_id)
    if not order:
        raise NotFoundError("Order not found")
    payment = Payment(
        order_id=order.id,
        amount=_money(data["amount"]),
        payment_method=data["payment_method"],
        transaction_id=data.get("transaction_id"),
        status=data.get("status", "pending"),
        created_at=utcnow(),
    )
    session.add(payment)
    session.commit()
    session.refresh(payment)
    return payment


def _validate_order_data(data: dict) -> None:
    if not data.get("restaurant_id"):
        raise ValidationError("Restaurant ID is required")
    items = data.get("items") or []
    if not items:
        raise ValidationError("Order must contain at least one item")
    for item in items:
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be at least 1")
    address = data.get("delivery_address")
    if not isinstance(address, dict):
        raise ValidationError("Delivery address is required")
    for field in REQUIRED_ADDRESS_FIELDS:
        value = address.get(field)
        if not value or not str(value).strip():
            raise ValidationError(f"Delivery address {field} is required")


def _build_order_item(order_id: int, item: dict) -> OrderItem:
    return OrderItem(
        order_id=order_id,
        menu_item_id=item["menu_item_id"],
        item_name=item["item_name"],
        item_price=_money(item["item_price"]),
        quantity=item["quantity"],
        special_instructions=item.get("special_instructions"),
    )


def _money(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# -------------------------
# Address operations
# -------------------------

def list_addresses(session: Session, user_id: int) -> List[Address]:
    statement = (
        select(Address)
        .where(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
    )
    return list(session.exec(statement))


def get_address(session: Session, address_id: int, user_id: int) -> Address | None:
    statement = select(Address).where(Address.id == address_id, Address.user_id == user_id)
    return session.exec(statement).first()


def create_address(session: Session, user_id: int, data: dict) -> Address:
    if data.get("is_default"):
        _unset_default_addresses(session, user_id)
    now = utcnow()
    address = Address(user_id=user_id, created_at=now, updated_at=now, **data)
    session.add(address)
    session.commit()
    session.refresh(address)
    return address


def update_address(session: Session, address: Address, data: dict) -> Address:
    if data.get("is_default"):
        _unset_default_addresses(session, address.user_id, keep_id=address.id)
    for key, value in data.items():
        setattr(address, key, value)
    address.updated_at = utcnow()
    session.add(address)
    session.commit()
    session.refresh(address)
    return address


def delete_address(session: Session, address: Address) -> None:
    session.delete(address)
    session.commit()


def set_default_address(session: Session, user_id: int, address_id: int) -> Address:
    address = get_address(session, address_id, user_id)
    if not address:
        raise NotFoundError("Address not found")
    _unset_default_addresses(session, user_id, keep_id=address.id)
    address.is_default = True
    address.updated_at = utcnow()
    session.add(address)
    session.commit()
    session.refresh(address)
    return address


def _unset_default_addresses(session: Session, user_id: int, keep_id: int | None = None) -> None:
    statement = select(Address).where(Address.user_id == user_id, Address.is_default.is_(True))
    for other in session.exec(statement).all():
        if other.id == keep_id:
            continue
        other.is_default = False
        session.add(other)


# -------------------------
# Restaurant and menu operations
# -------------------------

def list_restaurants(session: Session, *, q: str | None = None, active_only: bool = True) -> List[Restaurant]:
    statement = select(Restaurant)
    if active_only:
        statement = statement.where(Restaurant.is_active.is_(True))
    if q:
        pattern = f"%{q}%"
        statement = statement.where(or_(Restaurant.name.ilike(pattern), Restaurant.description.ilike(pattern)))
    statement = statement.order_by(Restaurant.rating.desc(), Restaurant.id.asc())
    return list(session.exec(statement))


def get_restaurant(session: Session, restaurant_id: int, *, active_only: bool = True) -> Restaurant | None:
    statement = select(Restaurant).where(Restaurant.id == restaurant_id)
    if active_only:
        statement = statement.where(Restaurant.is_active.is_(True))
    return session.exec(statement).first()


def list_menu_items(session: Session, restaurant_id: int, *, available_only: bool = True) -> List[MenuItem]:
    statement = select(MenuItem).where(MenuItem.restaurant_id == restaurant_id)
    if available_only:
        statement = statement.where(MenuItem.is_available.is_(True))
    statement = statement.order_by(MenuItem.category.asc(), MenuItem.name.asc())
    return list(session.exec(statement))


def get_menu_item(session: Session, menu_item_id: int) -> MenuItem | None:
    statement = select(MenuItem).where(MenuItem.id == menu_item_id, MenuItem.is_available.is_(True))
    return session.exec(statement).first()


def search_menu_items(session: Session, q: str | None) -> List[MenuItem]:
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    pattern = f"%{q.strip()}%"
    statement = (
        select(MenuItem)
        .where(MenuItem.is_available.is_(True))
        .where(
            or_(
                MenuItem.name.ilike(pattern),
                MenuItem.description.ilike(pattern),
                MenuItem.category.ilike(pattern),
            )
        )
        .order_by(MenuItem.name.asc(), MenuItem.id.asc())
    )
    return list(session.exec(statement))


def ensure_default_catalogue(session: Session) -> None:
    existing = session.exec(select(Restaurant.id)).first()
    if existing is not None:
        return
    now = utcnow()
    for entry in DEFAULT_RESTAURANTS:
        fields = {key: value for key, value in entry.items() if key != "menu"}
        for key in ("rating", "delivery_fee", "min_order"):
            fields[key] = Decimal(fields[key])
        restaurant = Restaurant(created_at=now, updated_at=now, **fields)
        session.add(restaurant)
        session.flush()
        for item in entry["menu"]:
            session.add(
                MenuItem(
                    restaurant_id=restaurant.id,
                    name=item["name"],
                    price=Decimal(item["price"]),
                    category=item.get("category"),
                    is_vegetarian=item.get("is_vegetarian", False),
                    created_at=now,
                    updated_at=now,
                )
            )
    for coupon in DEFAULT_COUPONS:
        session.add(
            Coupon(
                code=coupon["code"],
                description=coupon["description"],
                discount_type=coupon["discount_type"],
                discount_value=Decimal(coupon["discount_value"]),
                min_order_amount=Decimal(coupon["min_order_amount"]),
                created_at=now,
            )
        )
    session.commit()
    logger.info("Seeded %d default restaurants", len(DEFAULT_RESTAURANTS))


# -------------------------
# Review operations
# -------------------------

def list_reviews(session: Session, restaurant_id: int) -> List[tuple[Review, User]]:
    """Reviews of a restaurant with their authors, newest first."""
    statement = (
        select(Review, User)
        .join(User, Review.user_id == User.id)
        .where(Review.restaurant_id == restaurant_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return list(session.exec(statement))


def create_review(session: Session, user_id: int, order_id: int, data: dict) -> Review:
    order = get_order(session, order_id, user_id=user_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.status != "delivered":
        raise InvalidStateError("Only delivered orders can be reviewed")
    existing = session.exec(select(Review).where(Review.order_id == order.id)).first()
    if existing is not None:
        raise InvalidStateError("Order has already been reviewed")

    review = Review(
        user_id=user_id,
        restaurant_id=order.restaurant_id,
        order_id=order.id,
        rating=data["rating"],
        comment=data.get("comment"),
        created_at=utcnow(),
    )
    session.add(review)
    session.commit()
    session.refresh(review)
    logger.info("Order %s reviewed by user %s", order.order_number, user_id)
    return review


# -------------------------
# User operations
# -------------------------

def get_user_by_token(session: Session, token: str) -> User | None:
    statement = select(User).where(User.api_token == token)
    return session.exec(statement).first()


def create_user(session: Session, *, email: str, username: str, role: str = "customer") -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"Unknown role: {role}")
    now = utcnow()
    user = User(
        email=email,
        username=username,
        role=role,
        api_token=secrets.token_urlsafe(32),
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def update_profile(session: Session, user: User, data: dict) -> User:
    for key in ("username", "avatar_url"):
        if key in data:
            setattr(user, key, data[key])
    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
