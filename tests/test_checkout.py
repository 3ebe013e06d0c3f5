from decimal import Decimal

import httpx
import pytest
from sqlmodel import select

from fooddash.cart import Cart, CartMenuItem, CartRestaurant, LocalStore
from fooddash.checkout import CheckoutSession, CheckoutState
from fooddash.client import FoodDashClient
from fooddash.errors import InvalidStateError, PaymentRecordingError, UpstreamError, ValidationError
from fooddash.models import Order, OrderItem, Payment

PIZZA_PLACE = CartRestaurant(id=7, name="Tony's Pizza Palace", delivery_fee=Decimal("2.99"))
MARGHERITA = CartMenuItem(id=3, name="Margherita Pizza", price=Decimal("9.99"))
BREAD = CartMenuItem(id=4, name="Garlic Bread", price=Decimal("4.50"))


class FakePaymentProvider:
    def __init__(self, token="pi_test_123", decline=None):
        self.token = token
        self.decline = decline
        self.calls = []

    def confirm(self, amount, currency, *, order_id):
        self.calls.append((amount, currency, order_id))
        if self.decline:
            raise UpstreamError(self.decline, status_code=402)
        return self.token


@pytest.fixture
def cart(tmp_path):
    cart = Cart(LocalStore(tmp_path / "storage.json"))
    cart.add_item(PIZZA_PLACE, MARGHERITA, quantity=2)
    cart.add_item(PIZZA_PLACE, BREAD, instructions="extra garlic")
    return cart


@pytest.fixture
def api(client, customer, restaurant, home_address):
    return FoodDashClient("http://testserver", customer.api_token, http_client=client)


def test_cash_checkout_completes_without_card_step(api, cart, session):
    checkout = CheckoutSession(cart, api)
    checkout.load_addresses()
    checkout.select_payment_method("cash")
    expected_total = cart.total

    order = checkout.place_order()

    assert checkout.state == CheckoutState.COMPLETED
    assert checkout.history == [CheckoutState.SELECTING, CheckoutState.SUBMITTED, CheckoutState.COMPLETED]
    assert checkout.redirect_path == f"/order/{order['id']}"
    assert cart.is_empty
    stored = session.get(Order, order["id"])
    assert stored.payment_method == "cash"
    assert abs(stored.total - expected_total) < Decimal("0.01")
    assert len(session.exec(select(OrderItem)).all()) == 2


def test_card_checkout_collects_payment(api, cart, session):
    provider = FakePaymentProvider()
    checkout = CheckoutSession(cart, api, provider)
    checkout.load_addresses()

    order = checkout.place_order()
    assert checkout.state == CheckoutState.CARD_COLLECTION
    assert not cart.is_empty

    token = checkout.confirm_card_payment()

    assert token == "pi_test_123"
    assert checkout.state == CheckoutState.COMPLETED
    assert checkout.history == [
        CheckoutState.SELECTING,
        CheckoutState.SUBMITTED,
        CheckoutState.CARD_COLLECTION,
        CheckoutState.COMPLETED,
    ]
    assert cart.is_empty
    assert provider.calls == [(Decimal(str(order["total"])), "usd", order["id"])]
    assert session.get(Order, order["id"]).payment_status == "paid"
    payment = session.exec(select(Payment)).one()
    assert payment.transaction_id == "pi_test_123"
    assert payment.status == "completed"


def test_declined_card_fails_and_keeps_cart(api, cart, session):
    checkout = CheckoutSession(cart, api, FakePaymentProvider(decline="Your card was declined"))
    checkout.load_addresses()
    order = checkout.place_order()

    with pytest.raises(UpstreamError):
        checkout.confirm_card_payment()

    assert checkout.state == CheckoutState.FAILED
    assert str(checkout.error) == "Your card was declined"
    assert len(cart.items) == 2
    # the created order is left alone
    stored = session.get(Order, order["id"])
    assert stored.status == "pending"
    assert stored.payment_status == "pending"

    checkout.retry()
    assert checkout.state == CheckoutState.SELECTING
    assert checkout.error is None
    assert checkout.payment_method == "card"


def test_bookkeeping_failure_after_charge_never_charges_twice(api, cart, session, monkeypatch):
    provider = FakePaymentProvider()
    checkout = CheckoutSession(cart, api, provider)
    checkout.load_addresses()
    order = checkout.place_order()

    mark_paid = api.update_payment_status
    failures = [UpstreamError("Gateway timeout", status_code=504)]

    def flaky_update(order_id, status):
        if failures:
            raise failures.pop()
        return mark_paid(order_id, status)

    monkeypatch.setattr(api, "update_payment_status", flaky_update)

    with pytest.raises(PaymentRecordingError) as excinfo:
        checkout.confirm_card_payment()

    assert excinfo.value.order_id == order["id"]
    assert excinfo.value.transaction_id == "pi_test_123"
    assert order["order_number"] in str(excinfo.value)
    assert checkout.state == CheckoutState.FAILED
    assert checkout.payment_token == "pi_test_123"
    assert session.get(Order, order["id"]).payment_status == "pending"

    checkout.retry()
    assert checkout.state == CheckoutState.CARD_COLLECTION
    with pytest.raises(InvalidStateError):
        checkout.place_order()

    assert checkout.confirm_card_payment() == "pi_test_123"

    assert checkout.state == CheckoutState.COMPLETED
    assert len(provider.calls) == 1
    assert [(item.id, item.payment_status) for item in session.exec(select(Order)).all()] == [(order["id"], "paid")]
    assert session.exec(select(Payment)).one().transaction_id == "pi_test_123"
    assert cart.is_empty


def test_load_addresses_preselects_default(api, cart, home_address):
    checkout = CheckoutSession(cart, api)
    checkout.load_addresses()
    assert checkout.selected_address_id == home_address.id


def test_missing_address_fails_before_submitting(client, customer, restaurant, cart, session):
    api = FoodDashClient("http://testserver", customer.api_token, http_client=client)
    checkout = CheckoutSession(cart, api)
    checkout.load_addresses()

    with pytest.raises(ValidationError):
        checkout.place_order()

    assert checkout.state == CheckoutState.FAILED
    assert session.exec(select(Order)).all() == []
    assert not cart.is_empty


def test_select_unknown_address_is_rejected(api, cart):
    checkout = CheckoutSession(cart, api)
    checkout.load_addresses()
    with pytest.raises(ValidationError):
        checkout.select_address(9999)
    with pytest.raises(ValidationError):
        checkout.select_payment_method("bitcoin")


def test_server_failure_moves_to_failed_and_retains_inputs(cart):
    def handler(request):
        if request.url.path == "/users/me/addresses":
            return httpx.Response(200, json={"status": "success", "data": {"addresses": [
                {"id": 1, "label": "Home", "address_line1": "1 Main St", "city": "Springfield", "is_default": True},
            ]}})
        return httpx.Response(500, json={"status": "error", "message": "Internal server error"})

    api = FoodDashClient("http://api.test", "token", transport=httpx.MockTransport(handler))
    checkout = CheckoutSession(cart, api)
    checkout.load_addresses()
    checkout.select_payment_method("cash")
    checkout.delivery_instructions = "Leave at the door"

    with pytest.raises(UpstreamError) as excinfo:
        checkout.place_order()

    assert excinfo.value.status_code == 500
    assert checkout.state == CheckoutState.FAILED
    assert len(cart.items) == 2
    checkout.retry()
    assert checkout.selected_address_id == 1
    assert checkout.payment_method == "cash"
    assert checkout.delivery_instructions == "Leave at the door"


def test_card_confirmation_requires_card_collection_state(api, cart):
    checkout = CheckoutSession(cart, api)
    with pytest.raises(InvalidStateError):
        checkout.confirm_card_payment()


def test_client_rejects_error_envelopes():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(404, json={"status": "error", "message": "Order not found"})
    )
    with FoodDashClient("http://api.test", "token", transport=transport) as api:
        with pytest.raises(UpstreamError) as excinfo:
            api.get_order(1)
    assert str(excinfo.value) == "Order not found"
    assert excinfo.value.status_code == 404


def test_client_wraps_network_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = FoodDashClient("http://api.test", transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamError):
        api.list_orders()
