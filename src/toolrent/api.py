"""FastAPI REST API the storefront pages read cart and order state through."""

from typing import Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .checkout import ORDERS_ROUTE
from .errors import (
    IncompleteCheckoutError,
    InvalidQuantityError,
    InvalidStatusError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    StorageCorruptionError,
    StorageWriteError,
    ToolRentError,
)
from .models import CustomerInfo, DeliveryInfo, LineItem, Order
from .pricing import format_currency, line_total
from .session import Session

ItemId = Union[int, str]


# --- Pydantic Schemas ---


class LineItemSchema(BaseModel):
    id: ItemId
    name: str
    brand: str
    image: str
    price: float
    quantity: int
    days: int
    line_total: float


class CartTotalsSchema(BaseModel):
    subtotal: float
    delivery_fee: float
    tax: float
    total: float
    display_total: str


class CartResponse(BaseModel):
    items: list[LineItemSchema]
    total_items: int
    totals: CartTotalsSchema


class ProductRequest(BaseModel):
    """A catalog product being added to the cart."""

    id: ItemId
    name: str
    brand: str = ""
    image: str = ""
    price: float = Field(..., ge=0)
    increment: int = Field(default=1, description="Units to add; merged with an existing line")


class CartItemUpdateRequest(BaseModel):
    quantity: Optional[int] = None
    days: Optional[int] = None


class CustomerInfoSchema(BaseModel):
    name: str
    email: str
    phone: str


class DeliveryInfoSchema(BaseModel):
    address: str
    city: str
    postal_code: str


class CheckoutRequest(BaseModel):
    delivery: DeliveryInfoSchema
    customer: CustomerInfoSchema
    payment_method: Optional[str] = Field(None, description="card, bank, promptpay or cod")
    delivery_time: Optional[str] = Field(None, description="One of the delivery time slots")


class OrderSchema(BaseModel):
    id: str
    items: list[LineItemSchema]
    total_amount: float
    delivery_fee: float
    delivery_address: str
    payment_method: str
    status: str
    status_label: str
    order_date: str
    customer_info: CustomerInfoSchema
    delivery_time: str
    estimated_delivery: str
    payment_verified: bool


class CheckoutResponse(BaseModel):
    order: OrderSchema
    redirect: str


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class StatusUpdateRequest(BaseModel):
    status: str


# --- Helper Functions ---


def get_session() -> Session:
    """Open the session backed by the configured data directory."""
    return Session.open()


def line_item_to_schema(item: LineItem) -> LineItemSchema:
    return LineItemSchema(
        id=item.id,
        name=item.name,
        brand=item.brand,
        image=item.image,
        price=item.price,
        quantity=item.quantity,
        days=item.days,
        line_total=line_total(item),
    )


def cart_to_response(session: Session) -> CartResponse:
    totals = session.cart.totals()
    return CartResponse(
        items=[line_item_to_schema(i) for i in session.cart.items],
        total_items=session.cart.total_items,
        totals=CartTotalsSchema(
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            tax=totals.tax,
            total=totals.total,
            display_total=format_currency(totals.total),
        ),
    )


def order_to_schema(order: Order) -> OrderSchema:
    """Convert dataclass Order to Pydantic schema."""
    return OrderSchema(
        id=order.id,
        items=[line_item_to_schema(i) for i in order.items],
        total_amount=order.total_amount,
        delivery_fee=order.delivery_fee,
        delivery_address=order.delivery_address,
        payment_method=order.payment_method,
        status=order.status,
        status_label=order.status_label,
        order_date=order.order_date,
        customer_info=CustomerInfoSchema(**order.customer_info.to_dict()),
        delivery_time=order.delivery_time,
        estimated_delivery=order.estimated_delivery,
        payment_verified=order.payment_verified,
    )


def _require_order(order: Optional[Order], order_id: str) -> Order:
    # The stores treat unknown IDs as no-ops; over HTTP that is a 404.
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _coerce_item_id(item_id: str) -> ItemId:
    """Path parameters arrive as strings; catalog IDs are usually numeric."""
    return int(item_id) if item_id.isdigit() else item_id


app = FastAPI(
    title="toolrent API",
    description="Cart and order state for the tool-rental storefront",
    version="0.1.0",
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    InvalidQuantityError: 400,
    IncompleteCheckoutError: 422,
    InvalidStatusError: 400,
    InvalidStatusTransitionError: 409,
    OrderNotFoundError: 404,
    StorageCorruptionError: 500,
    StorageWriteError: 503,
}


@app.exception_handler(ToolRentError)
async def toolrent_error_handler(request: Request, exc: ToolRentError) -> JSONResponse:
    """Map ToolRentError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    if isinstance(exc, IncompleteCheckoutError):
        content["missing"] = exc.missing
    return JSONResponse(status_code=status_code, content=content)


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """
    Health check endpoint.

    Reports counts and any storage records that had to be discarded on load.
    """
    session = get_session()
    return {
        "status": "ok",
        "cart_items": session.cart.total_items,
        "order_count": len(session.orders.all),
        "recovered_errors": [str(e) for e in session.recovered_errors],
    }


# --- Cart Endpoints ---


@app.get("/api/cart", response_model=CartResponse)
def get_cart():
    return cart_to_response(get_session())


@app.post("/api/cart/items", response_model=CartResponse, status_code=201)
def add_cart_item(request: ProductRequest):
    session = get_session()
    session.cart.add_item(
        request.model_dump(exclude={"increment"}), increment=request.increment
    )
    return cart_to_response(session)


@app.patch("/api/cart/items/{item_id}", response_model=CartResponse)
def update_cart_item(item_id: str, request: CartItemUpdateRequest):
    """Change quantity and/or rental days of a line. Unknown IDs leave the cart as is."""
    session = get_session()
    key = _coerce_item_id(item_id)
    session.cart.update_item(key, quantity=request.quantity, days=request.days)
    return cart_to_response(session)


@app.delete("/api/cart/items/{item_id}", response_model=CartResponse)
def remove_cart_item(item_id: str):
    session = get_session()
    session.cart.remove_item(_coerce_item_id(item_id))
    return cart_to_response(session)


@app.delete("/api/cart", response_model=CartResponse)
def clear_cart():
    session = get_session()
    session.cart.clear()
    return cart_to_response(session)


# --- Checkout & Order Endpoints ---


@app.post("/api/checkout", response_model=CheckoutResponse, status_code=201)
def checkout(request: CheckoutRequest):
    session = get_session()
    order = session.checkout.place_order(
        DeliveryInfo(**request.delivery.model_dump()),
        CustomerInfo(**request.customer.model_dump()),
        request.payment_method,
        request.delivery_time,
    )
    return CheckoutResponse(order=order_to_schema(order), redirect=ORDERS_ROUTE)


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(search: str = ""):
    session = get_session()
    orders = session.orders.search(search)
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str):
    session = get_session()
    return order_to_schema(_require_order(session.orders.get_by_id(order_id), order_id))


@app.patch("/api/orders/{order_id}/status", response_model=OrderSchema)
def update_order_status(order_id: str, request: StatusUpdateRequest):
    session = get_session()
    order = session.orders.update_status(order_id, request.status)
    return order_to_schema(_require_order(order, order_id))


@app.post("/api/orders/{order_id}/verify-payment", response_model=OrderSchema)
def verify_payment(order_id: str):
    session = get_session()
    return order_to_schema(_require_order(session.orders.verify_payment(order_id), order_id))
