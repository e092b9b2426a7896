"""Data models for toolrent."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping
import uuid

# Order lifecycle
STATUS_PENDING = "pending"
STATUS_PAYMENT_VERIFICATION = "payment_verification"
STATUS_PROCESSING = "processing"
STATUS_DELIVERED = "delivered"
STATUS_COMPLETED = "completed"

ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_PAYMENT_VERIFICATION,
    STATUS_PROCESSING,
    STATUS_DELIVERED,
    STATUS_COMPLETED,
)

STATUS_LABELS = {
    STATUS_PAYMENT_VERIFICATION: "Awaiting Payment Verification",
    STATUS_PENDING: "Pending",
    STATUS_PROCESSING: "Processing",
    STATUS_DELIVERED: "Delivered",
    STATUS_COMPLETED: "Completed",
}

# Payment methods offered at checkout
PAYMENT_CARD = "card"
PAYMENT_BANK = "bank"
PAYMENT_PROMPTPAY = "promptpay"
PAYMENT_COD = "cod"  # cash on delivery, verified on creation

PAYMENT_METHODS = (PAYMENT_CARD, PAYMENT_BANK, PAYMENT_PROMPTPAY, PAYMENT_COD)

DELIVERY_TIME_SLOTS = (
    "09:00 - 11:00",
    "11:00 - 13:00",
    "13:00 - 15:00",
    "15:00 - 17:00",
    "17:00 - 19:00",
)

ESTIMATED_DELIVERY_DAYS = 3


def _utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def _isoformat(moment: datetime) -> str:
    """Format a datetime as an ISO 8601 instant with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _generate_order_id() -> str:
    """Generate a new order ID."""
    return f"ORD-{uuid.uuid4().hex[:12].upper()}"


def status_label(status: str) -> str:
    """Human readable label for a status, falling back to the raw value."""
    return STATUS_LABELS.get(status, status)


def _product_field(product: Any, name: str, default: Any = None) -> Any:
    if isinstance(product, Mapping):
        return product.get(name, default)
    return getattr(product, name, default)


@dataclass(frozen=True)
class LineItem:
    """One rented product selection in the cart."""

    id: int | str
    name: str
    brand: str
    image: str
    price: float  # per rental-day
    quantity: int = 1
    days: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "image": self.image,
            "price": self.price,
            "quantity": self.quantity,
            "days": self.days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        """
        Build a line item from its stored form.

        Raises:
            KeyError: If id, name or price is missing.
            TypeError: If id is not an int or str, or price is not a number.
            ValueError: If price is negative.
        """
        item_id = data["id"]
        if isinstance(item_id, bool) or not isinstance(item_id, (int, str)):
            raise TypeError(f"line item id must be an int or str, got {item_id!r}")
        price = data["price"]
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise TypeError(f"price of line item {item_id!r} must be a number, got {price!r}")
        if price < 0:
            raise ValueError(f"price of line item {item_id!r} is negative")
        return cls(
            id=item_id,
            name=data["name"],
            brand=data.get("brand", ""),
            image=data.get("image", ""),
            price=price,
            quantity=data.get("quantity", 1),
            days=data.get("days", 1),
        )

    @classmethod
    def from_product(cls, product: Any, quantity: int = 1, days: int = 1) -> "LineItem":
        """
        Build a line item from a catalog product.

        Accepts a mapping or any object exposing id, name, brand, image and price.
        """
        return cls(
            id=_product_field(product, "id"),
            name=_product_field(product, "name", ""),
            brand=_product_field(product, "brand", ""),
            image=_product_field(product, "image", ""),
            price=_product_field(product, "price", 0),
            quantity=quantity,
            days=days,
        )


@dataclass(frozen=True)
class CustomerInfo:
    """Contact details of the person renting."""

    name: str
    email: str
    phone: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "phone": self.phone}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomerInfo":
        if not isinstance(data, Mapping):
            raise TypeError(f"customer info must be a mapping, got {type(data).__name__}")
        fields = {name: data.get(name, "") for name in ("name", "email", "phone")}
        for name, value in fields.items():
            if not isinstance(value, str):
                raise TypeError(f"customer {name} must be a str, got {value!r}")
        return cls(**fields)


@dataclass(frozen=True)
class DeliveryInfo:
    """Where the rented tools are dropped off."""

    address: str
    city: str
    postal_code: str

    def format(self) -> str:
        """Render the single-line address stored on an order."""
        return f"{self.address}, {self.city}, {self.postal_code}"

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.address.strip():
            missing.append("address")
        if not self.city.strip():
            missing.append("city")
        if not self.postal_code.strip():
            missing.append("postal_code")
        return missing


@dataclass(frozen=True)
class Order:
    """
    A completed checkout.

    Orders are frozen: status changes produce a new Order via dataclasses.replace,
    so everything except status and payment_verified stays as captured.
    """

    id: str
    items: tuple[LineItem, ...]
    total_amount: float  # subtotal, pre-tax and pre-fee
    delivery_fee: float
    delivery_address: str
    payment_method: str
    status: str
    order_date: str
    customer_info: CustomerInfo
    delivery_time: str
    estimated_delivery: str
    payment_verified: bool = False

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "totalAmount": self.total_amount,
            "deliveryFee": self.delivery_fee,
            "deliveryAddress": self.delivery_address,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "orderDate": self.order_date,
            "customerInfo": self.customer_info.to_dict(),
            "deliveryTime": self.delivery_time,
            "estimatedDelivery": self.estimated_delivery,
            "paymentVerified": self.payment_verified,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        order_id = data["id"]
        if not isinstance(order_id, str):
            raise TypeError(f"order id must be a str, got {order_id!r}")
        items = data.get("items", [])
        if not isinstance(items, list) or not all(isinstance(i, Mapping) for i in items):
            raise TypeError(f"items of order {order_id} must be a list of records")
        return cls(
            id=order_id,
            items=tuple(LineItem.from_dict(i) for i in items),
            total_amount=data["totalAmount"],
            delivery_fee=data.get("deliveryFee", 0),
            delivery_address=data.get("deliveryAddress", ""),
            payment_method=data["paymentMethod"],
            status=data["status"],
            order_date=data["orderDate"],
            customer_info=CustomerInfo.from_dict(data.get("customerInfo", {})),
            delivery_time=data.get("deliveryTime", ""),
            estimated_delivery=data.get("estimatedDelivery", ""),
            payment_verified=bool(data.get("paymentVerified", False)),
        )

    @classmethod
    def create(
        cls,
        order_id: str,
        items: tuple[LineItem, ...],
        total_amount: float,
        delivery_fee: float,
        delivery_address: str,
        payment_method: str,
        status: str,
        customer_info: CustomerInfo,
        delivery_time: str,
        payment_verified: bool,
        now: datetime | None = None,
    ) -> "Order":
        """Create a new order stamped with order date and estimated delivery."""
        now = now or _utc_now()
        return cls(
            id=order_id,
            items=tuple(items),
            total_amount=total_amount,
            delivery_fee=delivery_fee,
            delivery_address=delivery_address,
            payment_method=payment_method,
            status=status,
            order_date=_isoformat(now),
            customer_info=customer_info,
            delivery_time=delivery_time,
            estimated_delivery=_isoformat(now + timedelta(days=ESTIMATED_DELIVERY_DAYS)),
            payment_verified=payment_verified,
        )
