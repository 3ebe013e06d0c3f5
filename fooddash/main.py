from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud, schemas
from .config import get_settings
from .database import engine, get_session, init_db
from .errors import FoodDashError, InvalidStateError, NotFoundError, TransactionError, ValidationError
from .models import Order, User

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="FoodDash Orders", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidStateError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (TransactionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)
GENERIC_ERROR_MESSAGE = "Internal server error"


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    if settings.seed_defaults:
        with Session(engine) as session:
            crud.ensure_default_catalogue(session)


@app.exception_handler(FoodDashError)
async def fooddash_error_handler(request: Request, exc: FoodDashError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        message = GENERIC_ERROR_MESSAGE
    else:
        message = str(exc)
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "error", "message": GENERIC_ERROR_MESSAGE},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"status": "error", "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    session: Session = Depends(get_session),
) -> User:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized to access this route",
        )
    user = crud.get_user_by_token(session, token.strip())
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized to access this route",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_role(*roles: str):
    def check_role(user: CurrentUser) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return check_role


StaffUser = Annotated[User, Depends(require_role("admin", "driver"))]


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


# -------------------------
# Restaurants
# -------------------------

@app.get("/restaurants", response_model=schemas.Envelope[schemas.RestaurantListData])
def list_restaurants(
    q: Optional[str] = None,
    session: Session = Depends(get_session),
):
    restaurants = crud.list_restaurants(session, q=q)
    restaurants = [schemas.RestaurantRead.model_validate(item) for item in restaurants]
    return schemas.Envelope(data=schemas.RestaurantListData(restaurants=restaurants))


@app.get("/restaurants/{restaurant_id}", response_model=schemas.Envelope[schemas.RestaurantData])
def get_restaurant(
    restaurant_id: int,
    session: Session = Depends(get_session),
):
    restaurant = crud.get_restaurant(session, restaurant_id)
    if not restaurant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Restaurant not found")
    data = schemas.RestaurantData(restaurant=schemas.RestaurantRead.model_validate(restaurant))
    return schemas.Envelope(data=data)


@app.get("/restaurants/{restaurant_id}/menu", response_model=schemas.Envelope[schemas.MenuData])
def get_menu(
    restaurant_id: int,
    session: Session = Depends(get_session),
):
    if not crud.get_restaurant(session, restaurant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Restaurant not found")
    items = crud.list_menu_items(session, restaurant_id)
    menu_items = [schemas.MenuItemRead.model_validate(item) for item in items]
    return schemas.Envelope(data=schemas.MenuData(menu_items=menu_items))


@app.get("/restaurants/{restaurant_id}/reviews", response_model=schemas.Envelope[schemas.ReviewListData])
def get_reviews(
    restaurant_id: int,
    session: Session = Depends(get_session),
):
    if not crud.get_restaurant(session, restaurant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Restaurant not found")
    reviews = []
    for review, author in crud.list_reviews(session, restaurant_id):
        data = schemas.ReviewRead.model_validate(review)
        data.username = author.username
        data.avatar_url = author.avatar_url
        reviews.append(data)
    return schemas.Envelope(data=schemas.ReviewListData(reviews=reviews))


# -------------------------
# Menu items
# -------------------------

@app.get("/menu/search", response_model=schemas.Envelope[schemas.MenuData])
def search_menu(
    q: Optional[str] = None,
    session: Session = Depends(get_session),
):
    items = crud.search_menu_items(session, q)
    menu_items = [schemas.MenuItemRead.model_validate(item) for item in items]
    return schemas.Envelope(data=schemas.MenuData(menu_items=menu_items))


@app.get("/menu/{menu_item_id}", response_model=schemas.Envelope[schemas.MenuItemData])
def get_menu_item(
    menu_item_id: int,
    session: Session = Depends(get_session),
):
    item = crud.get_menu_item(session, menu_item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
    return schemas.Envelope(data=schemas.MenuItemData(menu_item=schemas.MenuItemRead.model_validate(item)))


# -------------------------
# Orders
# -------------------------

@app.get("/orders", response_model=schemas.Envelope[schemas.OrderListData])
def list_orders(
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    orders = [_order_read(order, include_items=False) for order in crud.list_orders(session, user.id)]
    return schemas.Envelope(data=schemas.OrderListData(orders=orders))


@app.get("/orders/{order_id}", response_model=schemas.Envelope[schemas.OrderData])
def get_order(
    order_id: int,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    order = crud.get_order(session, order_id, user_id=user.id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return schemas.Envelope(data=schemas.OrderData(order=_order_read(order)))


@app.post(
    "/orders",
    response_model=schemas.Envelope[schemas.OrderData],
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: schemas.OrderCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    order = crud.create_order(session, user.id, payload.model_dump())
    return schemas.Envelope(
        message="Order created successfully",
        data=schemas.OrderData(order=_order_read(order)),
    )


@app.put("/orders/{order_id}/cancel", response_model=schemas.Envelope[schemas.OrderData])
def cancel_order(
    order_id: int,
    payload: schemas.OrderCancel,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    order = crud.cancel_order(session, order_id, user.id, payload.reason)
    return schemas.Envelope(
        message="Order cancelled successfully",
        data=schemas.OrderData(order=_order_read(order)),
    )


@app.put("/orders/{order_id}/status", response_model=schemas.Envelope[schemas.OrderData])
def update_order_status(
    order_id: int,
    payload: schemas.OrderStatusUpdate,
    _: StaffUser,
    session: Session = Depends(get_session),
):
    order = crud.advance_status(session, order_id, payload.status)
    return schemas.Envelope(
        message="Order status updated successfully",
        data=schemas.OrderData(order=_order_read(order)),
    )


@app.get("/orders/{order_id}/status-log", response_model=schemas.Envelope[schemas.StatusLogData])
def get_status_log(
    order_id: int,
    _: StaffUser,
    session: Session = Depends(get_session),
):
    entries = crud.list_status_log(session, order_id)
    entries = [schemas.OrderStatusLogRead.model_validate(entry) for entry in entries]
    return schemas.Envelope(data=schemas.StatusLogData(entries=entries))


@app.put("/orders/{order_id}/payment-status", response_model=schemas.Envelope[schemas.OrderData])
def update_payment_status(
    order_id: int,
    payload: schemas.PaymentStatusUpdate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    order = crud.update_payment_status(session, order_id, user.id, payload.status)
    return schemas.Envelope(
        message="Payment status updated successfully",
        data=schemas.OrderData(order=_order_read(order)),
    )


@app.post(
    "/payments",
    response_model=schemas.Envelope[schemas.PaymentData],
    status_code=status.HTTP_201_CREATED,
)
def record_payment(
    payload: schemas.PaymentCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    payment = crud.record_payment(session, user.id, payload.model_dump())
    return schemas.Envelope(
        message="Payment recorded successfully",
        data=schemas.PaymentData(payment=schemas.PaymentRead.model_validate(payment)),
    )


@app.post(
    "/orders/{order_id}/review",
    response_model=schemas.Envelope[schemas.ReviewData],
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    order_id: int,
    payload: schemas.ReviewCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    review = crud.create_review(session, user.id, order_id, payload.model_dump())
    data = schemas.ReviewRead.model_validate(review)
    data.username = user.username
    data.avatar_url = user.avatar_url
    return schemas.Envelope(message="Review added successfully", data=schemas.ReviewData(review=data))


# -------------------------
# Users and addresses
# -------------------------

@app.get("/users/me", response_model=schemas.Envelope[schemas.UserData])
def get_profile(user: CurrentUser):
    return schemas.Envelope(data=schemas.UserData(user=schemas.UserRead.model_validate(user)))


@app.put("/users/me", response_model=schemas.Envelope[schemas.UserData])
def update_profile(
    payload: schemas.UserUpdate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    user = crud.update_profile(session, user, payload.model_dump())
    return schemas.Envelope(
        message="Profile updated successfully",
        data=schemas.UserData(user=schemas.UserRead.model_validate(user)),
    )


@app.get("/users/me/addresses", response_model=schemas.Envelope[schemas.AddressListData])
def list_addresses(
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    addresses = crud.list_addresses(session, user.id)
    addresses = [schemas.AddressRead.model_validate(item) for item in addresses]
    return schemas.Envelope(data=schemas.AddressListData(addresses=addresses))


@app.post(
    "/users/me/addresses",
    response_model=schemas.Envelope[schemas.AddressData],
    status_code=status.HTTP_201_CREATED,
)
def create_address(
    payload: schemas.AddressCreate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    address = crud.create_address(session, user.id, payload.model_dump())
    return schemas.Envelope(
        message="Address added successfully",
        data=schemas.AddressData(address=schemas.AddressRead.model_validate(address)),
    )


@app.put("/users/me/addresses/{address_id}", response_model=schemas.Envelope[schemas.AddressData])
def update_address(
    address_id: int,
    payload: schemas.AddressUpdate,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    address = crud.get_address(session, address_id, user.id)
    if not address:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    address = crud.update_address(session, address, payload.model_dump())
    return schemas.Envelope(
        message="Address updated successfully",
        data=schemas.AddressData(address=schemas.AddressRead.model_validate(address)),
    )


@app.delete("/users/me/addresses/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    address_id: int,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    address = crud.get_address(session, address_id, user.id)
    if not address:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Address not found")
    crud.delete_address(session, address)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/users/me/addresses/{address_id}/default", response_model=schemas.Envelope[schemas.AddressData])
def set_default_address(
    address_id: int,
    user: CurrentUser,
    session: Session = Depends(get_session),
):
    address = crud.set_default_address(session, user.id, address_id)
    return schemas.Envelope(
        message="Default address updated successfully",
        data=schemas.AddressData(address=schemas.AddressRead.model_validate(address)),
    )


def _order_read(order: Order, *, include_items: bool = True) -> schemas.OrderRead:
    # column values only; items are loaded on demand
    data = schemas.OrderRead.model_validate(order.model_dump())
    if include_items:
        data.items = [schemas.OrderItemRead.model_validate(item) for item in order.items]
    if order.restaurant is not None:
        data.restaurant_name = order.restaurant.name
        data.restaurant_image = order.restaurant.image_url
    return data


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
