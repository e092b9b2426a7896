"""Custom exceptions for toolrent."""

from typing import Any


class ToolRentError(Exception):
    """Base exception for all toolrent errors."""

    pass


class InvalidQuantityError(ToolRentError):
    """Raised when a quantity or rental duration is below 1."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r} (must be an integer >= 1)")


class IncompleteCheckoutError(ToolRentError):
    """Raised when required checkout fields are missing or invalid."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Checkout incomplete: {', '.join(self.missing)}")


class StorageCorruptionError(ToolRentError):
    """Raised when a persisted record cannot be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupt storage record '{key}': {reason}")


class InvalidSchemaVersionError(StorageCorruptionError):
    """Raised when a persisted record has an unsupported schema version."""

    def __init__(self, key: str, found: Any, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            key,
            f"unsupported schema version {found}, this build supports version {supported}",
        )


class StorageWriteError(ToolRentError):
    """Raised when a record could not be written to durable storage."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to write storage record '{key}': {reason}")


class OrderNotFoundError(ToolRentError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidStatusError(ToolRentError):
    """Raised when a status is not part of the order lifecycle."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unknown order status: {status!r}")


class InvalidStatusTransitionError(ToolRentError):
    """Raised when an order cannot move from its current status to the target."""

    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(
            f"Order {order_id} cannot move from '{current}' to '{target}'"
        )
