"""Checkout: turns the cart into an order."""

import time
from typing import Callable

import structlog

from .cart_store import CartStore
from .errors import IncompleteCheckoutError
from .models import DELIVERY_TIME_SLOTS, PAYMENT_METHODS, CustomerInfo, DeliveryInfo, Order
from .order_store import OrderStore
from .pricing import DELIVERY_FEE, subtotal

logger = structlog.get_logger(__name__)

ORDERS_ROUTE = "/orders"


def missing_checkout_fields(
    cart: CartStore,
    delivery_info: DeliveryInfo | str | None,
    customer_info: CustomerInfo | None,
    payment_method: str | None,
    delivery_time: str | None,
) -> list[str]:
    """List every field that blocks checkout, in form order."""
    missing: list[str] = []
    if cart.is_empty():
        missing.append("cart")

    if customer_info is None:
        missing.append("customer_info")
    else:
        for field in ("name", "email", "phone"):
            if not getattr(customer_info, field, "").strip():
                missing.append(field)

    if delivery_info is None:
        missing.append("delivery_address")
    elif isinstance(delivery_info, DeliveryInfo):
        missing.extend(delivery_info.missing_fields())
    elif not delivery_info.strip():
        missing.append("delivery_address")

    if not delivery_time:
        missing.append("delivery_time")
    elif delivery_time not in DELIVERY_TIME_SLOTS:
        missing.append(f"delivery_time (unknown slot {delivery_time!r})")

    if not payment_method:
        missing.append("payment_method")
    elif payment_method not in PAYMENT_METHODS:
        missing.append(f"payment_method (unsupported {payment_method!r})")

    return missing


class CheckoutOrchestrator:
    """
    Sequences a checkout across the cart and order stores.

    This is the only code that touches both stores. The cart is cleared only
    after the order store has committed the new order.
    """

    def __init__(
        self,
        cart: CartStore,
        orders: OrderStore,
        delivery_fee: float = DELIVERY_FEE,
        confirmation_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        on_complete: Callable[[Order], None] | None = None,
    ):
        """
        Initialize CheckoutOrchestrator.

        Args:
            cart: The session's cart.
            orders: The session's order store.
            delivery_fee: Flat fee recorded on every order.
            confirmation_delay: Seconds to wait after committing, before on_complete.
            sleep: Sleep function (for testing).
            on_complete: Called with the new order, e.g. to navigate to the orders page.
        """
        self.cart = cart
        self.orders = orders
        self.delivery_fee = delivery_fee
        self.confirmation_delay = confirmation_delay
        self._sleep = sleep
        self.on_complete = on_complete

    def place_order(
        self,
        delivery_info: DeliveryInfo | str | None,
        customer_info: CustomerInfo | None,
        payment_method: str | None,
        delivery_time: str | None,
    ) -> Order:
        """
        Create an order from the current cart and empty the cart.

        Returns:
            The created Order.

        Raises:
            IncompleteCheckoutError: If the cart is empty or a required field is
                missing. Nothing is changed.
            StorageWriteError: If the order could not be persisted. The cart is
                left untouched.
        """
        missing = missing_checkout_fields(
            self.cart, delivery_info, customer_info, payment_method, delivery_time
        )
        if missing:
            raise IncompleteCheckoutError(missing)

        snapshot = self.cart.snapshot()
        order = self.orders.create_order(
            snapshot,
            delivery_info,
            customer_info,
            payment_method,
            delivery_time,
            total_amount=subtotal(snapshot),
            delivery_fee=self.delivery_fee,
        )
        self.cart.clear()
        logger.info("checkout_completed", order_id=order.id, lines=len(snapshot))

        if self.confirmation_delay > 0:
            self._sleep(self.confirmation_delay)
        if self.on_complete is not None:
            self.on_complete(order)
        return order
