"""Order storage and the order status lifecycle."""

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable

import structlog

from .errors import (
    InvalidStatusError,
    InvalidStatusTransitionError,
    ToolRentError,
)
from .models import (
    ORDER_STATUSES,
    PAYMENT_COD,
    STATUS_COMPLETED,
    STATUS_DELIVERED,
    STATUS_PAYMENT_VERIFICATION,
    STATUS_PENDING,
    STATUS_PROCESSING,
    CustomerInfo,
    DeliveryInfo,
    LineItem,
    Order,
    _generate_order_id,
    _utc_now,
)
from .pricing import DELIVERY_FEE, subtotal
from .storage import ORDERS_KEY, JsonFileStorage, MemoryStorage, PersistentCollection

logger = structlog.get_logger(__name__)

# Moves update_status accepts in strict mode. verify_payment bypasses this table.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_PAYMENT_VERIFICATION, STATUS_PROCESSING}),
    STATUS_PAYMENT_VERIFICATION: frozenset({STATUS_PROCESSING}),
    STATUS_PROCESSING: frozenset({STATUS_DELIVERED}),
    STATUS_DELIVERED: frozenset({STATUS_COMPLETED}),
    STATUS_COMPLETED: frozenset(),
}

_MAX_ID_ATTEMPTS = 10


def initial_status(payment_method: str) -> tuple[str, bool]:
    """
    Status and payment_verified flag for a freshly created order.

    Cash on delivery needs no verification and goes straight to processing;
    every other method waits in payment_verification.
    """
    if payment_method == PAYMENT_COD:
        return STATUS_PROCESSING, True
    return STATUS_PAYMENT_VERIFICATION, False


def can_transition(current: str, target: str) -> bool:
    return target == current or target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _parse_order(data: dict[str, Any]) -> Order:
    order = Order.from_dict(data)
    if order.status not in ORDER_STATUSES:
        raise ValueError(f"unknown status {order.status!r} on order {order.id}")
    return order


class OrderStore(PersistentCollection):
    """
    Owns every order of the session, newest first.

    Each mutation rewrites the whole collection. Writes happen before the
    in-memory list changes, so a StorageWriteError leaves the store as it was.
    """

    def __init__(
        self,
        storage: MemoryStorage | JsonFileStorage,
        key: str = ORDERS_KEY,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
        strict_transitions: bool = False,
        on_recover: Callable[[ToolRentError], None] | None = None,
    ):
        """
        Initialize OrderStore.

        Args:
            storage: Durable key-value storage.
            key: Storage key of the order collection.
            clock: Returns the current time (for testing).
            id_factory: Returns candidate order IDs (for testing).
            strict_transitions: If True, update_status only accepts moves listed in
                ALLOWED_TRANSITIONS. By default any known status may follow any other.
            on_recover: Called with the error when stored orders had to be discarded.
        """
        super().__init__(storage, key, on_recover)
        self._clock = clock or _utc_now
        self._id_factory = id_factory or _generate_order_id
        self.strict_transitions = strict_transitions

        self._orders: list[Order] = self._restore(_parse_order, identity=lambda order: order.id)

    @property
    def all(self) -> list[Order]:
        """All orders, newest first."""
        return list(self._orders)

    def get_by_id(self, order_id: str) -> Order | None:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    def search(self, term: str) -> list[Order]:
        """Orders whose ID or customer name contains term (case-insensitive)."""
        needle = term.strip().lower()
        if not needle:
            return self.all
        return [
            o
            for o in self._orders
            if needle in o.id.lower() or needle in o.customer_info.name.lower()
        ]

    def create_order(
        self,
        snapshot: Iterable[LineItem],
        delivery_info: DeliveryInfo | str,
        customer_info: CustomerInfo,
        payment_method: str,
        delivery_time: str,
        total_amount: float | None = None,
        delivery_fee: float = DELIVERY_FEE,
    ) -> Order:
        """
        Create an order from a cart snapshot and put it at the front of the list.

        Monetary fields are taken as given; total_amount defaults to the
        snapshot's subtotal.

        Returns:
            The created Order.

        Raises:
            StorageWriteError: If the collection could not be persisted. The
                order is not added in that case.
        """
        items = tuple(snapshot)
        if total_amount is None:
            total_amount = subtotal(items)
        address = delivery_info.format() if isinstance(delivery_info, DeliveryInfo) else delivery_info
        status, verified = initial_status(payment_method)

        order = Order.create(
            order_id=self._new_id(),
            items=items,
            total_amount=total_amount,
            delivery_fee=delivery_fee,
            delivery_address=address,
            payment_method=payment_method,
            status=status,
            customer_info=customer_info,
            delivery_time=delivery_time,
            payment_verified=verified,
            now=self._clock(),
        )

        self._commit([order, *self._orders])
        logger.info("order_created", order_id=order.id, payment_method=payment_method, status=status)
        return order

    def update_status(self, order_id: str, new_status: str) -> Order | None:
        """
        Move an order to a new status.

        Returns:
            The updated Order, or None if no order has that ID.

        Raises:
            InvalidStatusError: If new_status is not a known status.
            InvalidStatusTransitionError: If the move is not allowed and the
                store enforces transitions.
        """
        if new_status not in ORDER_STATUSES:
            raise InvalidStatusError(new_status)

        index = self._index_of(order_id)
        if index is None:
            return None

        current = self._orders[index]
        if current.status == new_status:
            return current
        if self.strict_transitions and not can_transition(current.status, new_status):
            raise InvalidStatusTransitionError(order_id, current.status, new_status)

        return self._replace_at(index, replace(current, status=new_status))

    def verify_payment(self, order_id: str) -> Order | None:
        """
        Mark payment as verified and move the order to processing.

        Applies whatever the current status or payment method is.

        Returns:
            The updated Order, or None if no order has that ID.
        """
        index = self._index_of(order_id)
        if index is None:
            return None

        updated = replace(self._orders[index], status=STATUS_PROCESSING, payment_verified=True)
        updated = self._replace_at(index, updated)
        logger.info("payment_verified", order_id=order_id)
        return updated

    def _new_id(self) -> str:
        existing = {o.id for o in self._orders}
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in existing:
                return candidate
        raise ToolRentError(f"Could not generate a unique order ID after {_MAX_ID_ATTEMPTS} attempts")

    def _index_of(self, order_id: str) -> int | None:
        for i, order in enumerate(self._orders):
            if order.id == order_id:
                return i
        return None

    def _replace_at(self, index: int, order: Order) -> Order:
        orders = list(self._orders)
        orders[index] = order
        self._commit(orders)
        return order

    def _commit(self, orders: list[Order]) -> None:
        self._persist([o.to_dict() for o in orders])
        self._orders = orders
