def auth(user) -> dict:
    return {"Authorization": f"Bearer {user.api_token}"}


def order_payload(**overrides) -> dict:
    payload = {
        "restaurant_id": 7,
        "delivery_address": {"label": "Home", "address_line1": "1 Main St", "city": "Springfield"},
        "delivery_instructions": "Ring twice",
        "items": [
            {"menu_item_id": 3, "item_name": "Margherita Pizza", "item_price": 9.99, "quantity": 2},
        ],
        "subtotal": 19.98,
        "delivery_fee": 2.99,
        "tax": 1.60,
        "discount": 0,
        "total": 24.57,
        "payment_method": "cash",
    }
    payload.update(overrides)
    return payload
