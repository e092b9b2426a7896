"""Cart storage for toolrent."""

from dataclasses import replace
from typing import Any, Callable

import structlog

from .errors import InvalidQuantityError, StorageWriteError, ToolRentError
from .models import LineItem
from .pricing import DELIVERY_FEE, OrderTotals, compute_totals
from .storage import CART_KEY, JsonFileStorage, MemoryStorage, PersistentCollection

logger = structlog.get_logger(__name__)


def _require_positive(field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidQuantityError(field, value)


def _parse_item(data: dict[str, Any]) -> LineItem:
    item = LineItem.from_dict(data)
    _require_positive("quantity", item.quantity)
    _require_positive("days", item.days)
    return item


class CartStore(PersistentCollection):
    """
    Holds the line items of the active session.

    Every mutation writes the whole cart back to storage. A failed write is
    logged and recorded in recovered_errors; the in-memory cart stays authoritative.
    """

    def __init__(
        self,
        storage: MemoryStorage | JsonFileStorage,
        key: str = CART_KEY,
        on_recover: Callable[[ToolRentError], None] | None = None,
    ):
        super().__init__(storage, key, on_recover)
        restored = self._restore(_parse_item, identity=lambda item: item.id)
        self._items: dict[int | str, LineItem] = {item.id: item for item in restored}

    @property
    def items(self) -> list[LineItem]:
        return list(self._items.values())

    @property
    def total_items(self) -> int:
        """Total number of units across all line items."""
        return sum(item.quantity for item in self._items.values())

    def totals(self, delivery_fee: float = DELIVERY_FEE) -> OrderTotals:
        return compute_totals(self._items.values(), delivery_fee)

    def contains(self, item_id: int | str) -> bool:
        return item_id in self._items

    def get(self, item_id: int | str) -> LineItem | None:
        return self._items.get(item_id)

    def is_empty(self) -> bool:
        return not self._items

    def snapshot(self) -> tuple[LineItem, ...]:
        """Immutable copy of the current items, detached from later cart changes."""
        return tuple(self._items.values())

    def add_item(self, product: Any, increment: int = 1) -> LineItem:
        """
        Add a product, merging with an existing line of the same id.

        New lines start with quantity=increment and days=1. Stock is not checked
        here; callers must do that before adding.

        Raises:
            InvalidQuantityError: If increment is below 1.
        """
        _require_positive("quantity", increment)
        candidate = LineItem.from_product(product, quantity=increment, days=1)
        item_id = candidate.id

        existing = self._items.get(item_id)
        if existing is not None:
            item = replace(existing, quantity=existing.quantity + increment)
        else:
            item = candidate

        new_items = dict(self._items)
        new_items[item_id] = item
        self._commit(new_items)
        return item

    def update_quantity(self, item_id: int | str, quantity: int) -> LineItem | None:
        """
        Set the quantity of a line. Missing ids are ignored.

        Raises:
            InvalidQuantityError: If quantity is below 1.
        """
        return self.update_item(item_id, quantity=quantity)

    def update_days(self, item_id: int | str, days: int) -> LineItem | None:
        """
        Set the rental duration of a line. Missing ids are ignored.

        Raises:
            InvalidQuantityError: If days is below 1.
        """
        return self.update_item(item_id, days=days)

    def update_item(
        self, item_id: int | str, quantity: int | None = None, days: int | None = None
    ) -> LineItem | None:
        """
        Set quantity and/or days of a line in one commit.

        Both values are checked before anything changes, so a rejected update
        leaves the cart and storage as they were. Missing ids are ignored.

        Raises:
            InvalidQuantityError: If quantity or days is below 1.
        """
        changes: dict[str, int] = {}
        if quantity is not None:
            _require_positive("quantity", quantity)
            changes["quantity"] = quantity
        if days is not None:
            _require_positive("days", days)
            changes["days"] = days

        if not changes:
            return self._items.get(item_id)
        return self._update(item_id, **changes)

    def remove_item(self, item_id: int | str) -> None:
        """Remove a line. Removing an id that isn't in the cart does nothing."""
        if item_id not in self._items:
            return
        new_items = dict(self._items)
        del new_items[item_id]
        self._commit(new_items)

    def clear(self) -> None:
        self._commit({})

    def _update(self, item_id: int | str, **changes: int) -> LineItem | None:
        existing = self._items.get(item_id)
        if existing is None:
            return None
        item = replace(existing, **changes)
        new_items = dict(self._items)
        new_items[item_id] = item
        self._commit(new_items)
        return item

    def _commit(self, new_items: dict[int | str, LineItem]) -> None:
        self._items = new_items
        logger.debug("cart_committed", lines=len(new_items))
        try:
            self._persist([item.to_dict() for item in new_items.values()])
        except StorageWriteError as e:
            self._recovered(e)
