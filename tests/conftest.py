import os

os.environ.setdefault("FOODDASH_DATABASE_URL", "sqlite://")
os.environ.setdefault("FOODDASH_SEED_DEFAULTS", "false")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402

from fooddash import crud  # noqa: E402
from fooddash.database import build_engine, get_session, init_db  # noqa: E402
from fooddash.main import app  # noqa: E402
from fooddash.models import Address, MenuItem, Restaurant  # noqa: E402


@pytest.fixture
def session():
    engine = build_engine("sqlite://")
    init_db(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def client(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer(session):
    return crud.create_user(session, email="ana@example.com", username="ana")


@pytest.fixture
def other_customer(session):
    return crud.create_user(session, email="bo@example.com", username="bo")


@pytest.fixture
def driver(session):
    return crud.create_user(session, email="dee@example.com", username="dee", role="driver")


@pytest.fixture
def restaurant(session):
    restaurant = Restaurant(
        id=7,
        name="Tony's Pizza Palace",
        slug="tonys-pizza-palace",
        image_url="https://img.example.com/tonys.png",
        delivery_fee=Decimal("2.99"),
    )
    session.add(restaurant)
    session.add(MenuItem(id=3, restaurant_id=7, name="Margherita Pizza", price=Decimal("9.99")))
    session.add(MenuItem(id=4, restaurant_id=7, name="Garlic Bread", price=Decimal("4.50")))
    session.add(MenuItem(id=5, restaurant_id=7, name="Tiramisu", price=Decimal("6.25")))
    session.commit()
    session.refresh(restaurant)
    return restaurant


@pytest.fixture
def home_address(session, customer):
    address = Address(
        user_id=customer.id,
        label="Home",
        address_line1="1 Main St",
        city="Springfield",
        postal_code="12345",
        is_default=True,
    )
    session.add(address)
    session.commit()
    session.refresh(address)
    return address

