DEFAULT_RESTAURANTS = [
    {
        "name": "Tony's Pizza Palace",
        "slug": "tonys-pizza-palace",
        "description": "Authentic Italian pizza made with fresh ingredients and traditional recipes.",
        "rating": "4.8",
        "delivery_time": "25-35 min",
        "delivery_fee": "2.99",
        "min_order": "15.00",
        "address": "123 Main St",
        "phone": "+1 555 0101",
        "menu": [
            {"name": "Margherita Pizza", "price": "12.99", "category": "Pizza", "is_vegetarian": True},
            {"name": "Pepperoni Pizza", "price": "14.99", "category": "Pizza"},
            {"name": "Garlic Bread", "price": "4.99", "category": "Sides", "is_vegetarian": True},
        ],
    },
    {
        "name": "Burger Junction",
        "slug": "burger-junction",
        "description": "Juicy burgers with premium beef and fresh toppings.",
        "rating": "4.6",
        "delivery_time": "20-30 min",
        "delivery_fee": "1.99",
        "min_order": "10.00",
        "address": "456 Oak Ave",
        "phone": "+1 555 0102",
        "menu": [
            {"name": "Classic Burger", "price": "9.99", "category": "Burgers"},
            {"name": "Double Cheeseburger", "price": "12.49", "category": "Burgers"},
            {"name": "French Fries", "price": "3.99", "category": "Sides", "is_vegetarian": True},
        ],
    },
    {
        "name": "Sakura Sushi Bar",
        "slug": "sakura-sushi-bar",
        "description": "Fresh sushi and Japanese cuisine prepared by expert chefs.",
        "rating": "4.9",
        "delivery_time": "30-40 min",
        "delivery_fee": "3.99",
        "min_order": "20.00",
        "address": "789 Pine Rd",
        "phone": "+1 555 0103",
        "menu": [
            {"name": "Salmon Nigiri", "price": "6.99", "category": "Sushi"},
            {"name": "California Roll", "price": "8.49", "category": "Sushi"},
            {"name": "Miso Soup", "price": "2.99", "category": "Soups", "is_vegetarian": True},
        ],
    },
    {
        "name": "Pasta Paradise",
        "slug": "pasta-paradise",
        "description": "Delicious Italian pasta dishes with homemade sauces.",
        "rating": "4.7",
        "delivery_time": "25-35 min",
        "delivery_fee": "2.49",
        "min_order": "12.00",
        "address": "101 Elm St",
        "phone": "+1 555 0104",
        "menu": [
            {"name": "Spaghetti Carbonara", "price": "13.99", "category": "Pasta"},
            {"name": "Penne Arrabbiata", "price": "11.99", "category": "Pasta", "is_vegetarian": True},
        ],
    },
]

DEFAULT_COUPONS = [
    {"code": "WELCOME10", "description": "10% off your first order", "discount_type": "percentage", "discount_value": "10", "min_order_amount": "15.00"},
    {"code": "FREESHIP", "description": "3.00 off delivery", "discount_type": "fixed", "discount_value": "3.00", "min_order_amount": "20.00"},
]
