import pytest
from sqlmodel import select

from fooddash import crud
from fooddash.errors import ValidationError
from fooddash.menu_data import DEFAULT_COUPONS, DEFAULT_RESTAURANTS
from fooddash.models import Coupon, MenuItem, Restaurant, Review

from .utils import auth, order_payload


def test_default_catalogue_is_seeded_once(session):
    crud.ensure_default_catalogue(session)
    crud.ensure_default_catalogue(session)

    restaurants = session.exec(select(Restaurant)).all()
    assert len(restaurants) == len(DEFAULT_RESTAURANTS)
    expected_items = sum(len(entry["menu"]) for entry in DEFAULT_RESTAURANTS)
    assert len(session.exec(select(MenuItem)).all()) == expected_items
    assert len(session.exec(select(Coupon)).all()) == len(DEFAULT_COUPONS)


def test_seeding_skips_existing_catalogue(session, restaurant):
    crud.ensure_default_catalogue(session)
    assert [item.id for item in session.exec(select(Restaurant)).all()] == [restaurant.id]


def test_restaurant_search_and_inactive_filter(client, session):
    crud.ensure_default_catalogue(session)
    burger = session.exec(select(Restaurant).where(Restaurant.slug == "burger-junction")).one()
    burger.is_active = False
    session.add(burger)
    session.commit()

    names = [item["name"] for item in client.get("/restaurants").json()["data"]["restaurants"]]
    assert "Burger Junction" not in names
    assert len(names) == len(DEFAULT_RESTAURANTS) - 1

    found = client.get("/restaurants", params={"q": "sushi"}).json()["data"]["restaurants"]
    assert [item["slug"] for item in found] == ["sakura-sushi-bar"]


def test_unavailable_menu_items_are_hidden(client, session, restaurant):
    item = session.get(MenuItem, 5)
    item.is_available = False
    session.add(item)
    session.commit()

    menu = client.get(f"/restaurants/{restaurant.id}/menu").json()["data"]["menu_items"]
    assert {entry["id"] for entry in menu} == {3, 4}


def test_profile_endpoint(client, customer):
    response = client.get("/users/me", headers=auth(customer))
    assert response.status_code == 200
    assert response.json()["data"]["user"]["username"] == "ana"
    assert "api_token" not in response.json()["data"]["user"]


def test_unknown_token_is_rejected(client):
    response = client.get("/users/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.json() == {"status": "error", "message": "Not authorized to access this route"}


def test_create_user_rejects_unknown_role(session):
    with pytest.raises(ValidationError):
        crud.create_user(session, email="x@example.com", username="x", role="chef")


def test_restaurant_search_matches_description(client, session):
    crud.ensure_default_catalogue(session)

    found = client.get("/restaurants", params={"q": "italian"}).json()["data"]["restaurants"]

    assert {item["slug"] for item in found} == {"tonys-pizza-palace", "pasta-paradise"}


def test_inactive_restaurant_is_hidden_everywhere(client, session, restaurant):
    restaurant.is_active = False
    session.add(restaurant)
    session.commit()

    assert client.get(f"/restaurants/{restaurant.id}").status_code == 404
    assert client.get(f"/restaurants/{restaurant.id}/menu").status_code == 404
    assert client.get(f"/restaurants/{restaurant.id}/reviews").status_code == 404


def test_menu_item_lookup(client, session, restaurant):
    response = client.get("/menu/3")
    assert response.status_code == 200
    assert response.json()["data"]["menu_item"]["name"] == "Margherita Pizza"
    assert response.json()["data"]["menu_item"]["price"] == 9.99

    item = session.get(MenuItem, 4)
    item.is_available = False
    session.add(item)
    session.commit()
    assert client.get("/menu/4").status_code == 404
    assert client.get("/menu/999").status_code == 404


def test_menu_search_matches_name_description_and_category(client, session):
    crud.ensure_default_catalogue(session)
    pasta = session.exec(select(MenuItem).where(MenuItem.name == "Penne Arrabbiata")).one()
    pasta.description = "Spicy tomato sauce, served with garlic bread"
    session.add(pasta)
    session.commit()

    def search(q):
        return [item["name"] for item in client.get("/menu/search", params={"q": q}).json()["data"]["menu_items"]]

    assert search("bread") == ["Garlic Bread", "Penne Arrabbiata"]
    assert search("sides") == ["French Fries", "Garlic Bread"]
    assert search("SUSHI") == ["California Roll", "Salmon Nigiri"]


@pytest.mark.parametrize("params", [{}, {"q": ""}, {"q": "   "}])
def test_menu_search_requires_query(client, params):
    response = client.get("/menu/search", params=params)
    assert response.status_code == 400
    assert response.json()["message"] == "Search query is required"


def _delivered_order(session, user):
    order = crud.create_order(session, user.id, order_payload())
    return crud.advance_status(session, order.id, "delivered")


def test_review_delivered_order_and_list(client, session, customer, restaurant):
    order = _delivered_order(session, customer)

    response = client.post(f"/orders/{order.id}/review", json={"rating": 5, "comment": "Great crust"}, headers=auth(customer))

    assert response.status_code == 201
    review = response.json()["data"]["review"]
    assert review["restaurant_id"] == restaurant.id
    assert review["username"] == "ana"

    listed = client.get(f"/restaurants/{restaurant.id}/reviews").json()["data"]["reviews"]
    assert [(item["rating"], item["comment"], item["username"]) for item in listed] == [(5, "Great crust", "ana")]


def test_review_rules(client, session, customer, other_customer, restaurant):
    pending = crud.create_order(session, customer.id, order_payload())
    delivered = _delivered_order(session, customer)

    not_delivered = client.post(f"/orders/{pending.id}/review", json={"rating": 4}, headers=auth(customer))
    assert not_delivered.status_code == 400
    assert not_delivered.json()["message"] == "Only delivered orders can be reviewed"

    foreign = client.post(f"/orders/{delivered.id}/review", json={"rating": 4}, headers=auth(other_customer))
    assert foreign.status_code == 404

    out_of_range = client.post(f"/orders/{delivered.id}/review", json={"rating": 6}, headers=auth(customer))
    assert out_of_range.status_code == 400

    assert client.post(f"/orders/{delivered.id}/review", json={"rating": 4}, headers=auth(customer)).status_code == 201
    again = client.post(f"/orders/{delivered.id}/review", json={"rating": 1}, headers=auth(customer))
    assert again.status_code == 400
    assert len(session.exec(select(Review)).all()) == 1


def test_update_profile(client, session, customer):
    response = client.put(
        "/users/me",
        json={"username": "ana.b", "avatar_url": "https://img.example.com/ana.png"},
        headers=auth(customer),
    )

    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["username"] == "ana.b"
    assert user["avatar_url"] == "https://img.example.com/ana.png"
    session.refresh(customer)
    assert customer.username == "ana.b"

    assert client.put("/users/me", json={"username": ""}, headers=auth(customer)).status_code == 400
    assert client.put("/users/me", json={"username": "x"}).status_code == 401
