"""Checkout sequencing for a single storefront session.

``selecting`` -> ``submitted`` -> (``card-collection`` ->) ``completed``.
Any failure moves the session to ``failed``; the cart is never touched on
failure, so the user can go back to ``selecting`` and submit again. Once the
card has been charged the session never goes back to ``selecting``: a retry
returns to ``card-collection`` and only repeats the order bookkeeping.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Protocol

from .cart import Cart
from .client import FoodDashClient
from .errors import FoodDashError, InvalidStateError, PaymentRecordingError, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("card", "cash")


class CheckoutState(str, Enum):
    SELECTING = "selecting"
    SUBMITTED = "submitted"
    CARD_COLLECTION = "card-collection"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentProvider(Protocol):
    def confirm(self, amount: Decimal, currency: str, *, order_id: int) -> str:
        """Return a confirmation token, or raise ``UpstreamError`` on decline."""


class CheckoutSession:
    def __init__(
        self,
        cart: Cart,
        client: FoodDashClient,
        payment_provider: Optional[PaymentProvider] = None,
        *,
        currency: str = "usd",
    ) -> None:
        self.cart = cart
        self.client = client
        self.payment_provider = payment_provider
        self.currency = currency
        self.state = CheckoutState.SELECTING
        self.history: List[CheckoutState] = [CheckoutState.SELECTING]
        self.addresses: List[dict] = []
        self.selected_address_id: Optional[int] = None
        self.payment_method = "card"
        self.delivery_instructions: Optional[str] = None
        self.order: Optional[dict] = None
        self.payment_token: Optional[str] = None
        self.redirect_path: Optional[str] = None
        self.error: Optional[FoodDashError] = None

    def load_addresses(self) -> List[dict]:
        self.addresses = self.client.list_addresses()
        default = next((address for address in self.addresses if address.get("is_default")), None)
        if default is not None:
            self.selected_address_id = default["id"]
        elif self.addresses:
            self.selected_address_id = self.addresses[0]["id"]
        return self.addresses

    def select_address(self, address_id: int) -> None:
        self._require(CheckoutState.SELECTING)
        if self._find_address(address_id) is None:
            raise ValidationError("Please select a delivery address")
        self.selected_address_id = address_id

    def select_payment_method(self, method: str) -> None:
        self._require(CheckoutState.SELECTING)
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Unsupported payment method: {method}")
        self.payment_method = method

    def place_order(self) -> dict:
        self._require(CheckoutState.SELECTING)
        try:
            payload = self._build_order_payload()
            self.order = self.client.create_order(payload)
        except FoodDashError as exc:
            self._fail(exc)
            raise

        self._transition(CheckoutState.SUBMITTED)
        logger.info("Order %s submitted", self.order.get("order_number"))
        if self.payment_method == "card":
            self._transition(CheckoutState.CARD_COLLECTION)
        else:
            self._complete()
        return self.order

    def confirm_card_payment(self) -> str:
        self._require(CheckoutState.CARD_COLLECTION)
        order_id = self.order["id"]
        amount = Decimal(str(self.order["total"]))
        if self.payment_token is None:
            try:
                if self.payment_provider is None:
                    raise ValidationError("No payment provider configured for card payments")
                self.payment_token = self.payment_provider.confirm(amount, self.currency, order_id=order_id)
            except FoodDashError as exc:
                self._fail(exc)
                raise
            logger.info("Card payment confirmed for order %s", self.order.get("order_number"))

        try:
            self.client.update_payment_status(order_id, "paid")
            self.client.record_payment(
                order_id=order_id,
                amount=float(amount),
                payment_method="card",
                transaction_id=self.payment_token,
                status="completed",
            )
        except FoodDashError as exc:
            error = PaymentRecordingError(
                order_id,
                self.order.get("order_number"),
                self.payment_token,
                status_code=getattr(exc, "status_code", None),
            )
            logger.error("Order %s charged as %s but not marked paid: %s", order_id, self.payment_token, exc)
            self._fail(error)
            raise error from exc

        self._complete()
        return self.payment_token

    def retry(self) -> None:
        """Leave ``failed``; a charged order goes back to ``card-collection``, anything else to ``selecting``."""
        self._require(CheckoutState.FAILED)
        self.error = None
        if self.payment_token is not None:
            self._transition(CheckoutState.CARD_COLLECTION)
        else:
            self._transition(CheckoutState.SELECTING)

    def _build_order_payload(self) -> dict:
        if self.cart.is_empty or self.cart.restaurant is None:
            raise ValidationError("Your cart is empty")
        if self.payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Unsupported payment method: {self.payment_method}")
        address = self._find_address(self.selected_address_id)
        if address is None:
            raise ValidationError("Please select a delivery address")

        items = [
            {**item, "item_price": float(item["item_price"])}
            for item in self.cart.order_items()
        ]
        return {
            "restaurant_id": self.cart.restaurant.id,
            "delivery_address": {
                "label": address.get("label"),
                "address_line1": address["address_line1"],
                "address_line2": address.get("address_line2") or None,
                "city": address["city"],
                "state": address.get("state") or None,
                "postal_code": address.get("postal_code") or None,
            },
            "delivery_instructions": self.delivery_instructions or None,
            "items": items,
            "subtotal": float(self.cart.subtotal),
            "delivery_fee": float(self.cart.delivery_fee),
            "tax": float(self.cart.tax),
            "discount": 0,
            "total": float(self.cart.total),
            "payment_method": self.payment_method,
        }

    def _find_address(self, address_id: Optional[int]) -> Optional[dict]:
        if address_id is None:
            return None
        return next((address for address in self.addresses if address["id"] == address_id), None)

    def _complete(self) -> None:
        self.cart.clear()
        self.redirect_path = f"/order/{self.order['id']}"
        self._transition(CheckoutState.COMPLETED)

    def _fail(self, exc: FoodDashError) -> None:
        logger.warning("Checkout failed in state %s: %s", self.state.value, exc)
        self.error = exc
        self._transition(CheckoutState.FAILED)

    def _transition(self, state: CheckoutState) -> None:
        self.state = state
        self.history.append(state)

    def _require(self, state: CheckoutState) -> None:
        if self.state != state:
            raise InvalidStateError(f"Checkout is {self.state.value}, expected {state.value}")
