"""Per-session wiring of storage, stores and checkout."""

from pathlib import Path
from typing import Callable

from .cart_store import CartStore
from .checkout import CheckoutOrchestrator
from .errors import ToolRentError
from .order_store import OrderStore
from .storage import JsonFileStorage, MemoryStorage


class Session:
    """
    One shopping session: a cart, an order store and the checkout joining them.

    Both stores share the same storage backend and are built once per session.
    """

    def __init__(
        self,
        storage: MemoryStorage | JsonFileStorage | None = None,
        strict_transitions: bool = False,
        confirmation_delay: float = 0.0,
        on_recover: Callable[[ToolRentError], None] | None = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.cart = CartStore(self.storage, on_recover=on_recover)
        self.orders = OrderStore(
            self.storage, strict_transitions=strict_transitions, on_recover=on_recover
        )
        self.checkout = CheckoutOrchestrator(
            self.cart, self.orders, confirmation_delay=confirmation_delay
        )

    @classmethod
    def open(cls, data_dir: Path | None = None, **kwargs) -> "Session":
        """Open a session backed by JSON files in data_dir."""
        return cls(JsonFileStorage(data_dir), **kwargs)

    @property
    def recovered_errors(self) -> list[ToolRentError]:
        """Storage problems both stores recovered from."""
        return [*self.cart.recovered_errors, *self.orders.recovered_errors]
