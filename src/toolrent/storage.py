"""Durable key-value storage for toolrent session state."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

import structlog

from .errors import (
    InvalidSchemaVersionError,
    StorageCorruptionError,
    StorageWriteError,
    ToolRentError,
)

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1

# Local data directory within the toolrent project
# Can be overridden via TOOLRENT_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATA_DIR = Path(os.environ.get("TOOLRENT_DATA_DIR", _default_data_dir))

CART_KEY = "cart"
ORDERS_KEY = "orders"


class MemoryStorage:
    """In-process storage. State lives as long as the object does."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStorage:
    """Stores each key as <data_dir>/<key>.json, written atomically."""

    def __init__(self, data_dir: Path | None = None):
        """
        Initialize JsonFileStorage.

        Args:
            data_dir: Override data directory (for testing).
        """
        self.data_dir = Path(data_dir) if data_dir is not None else data_dir_from_env()

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        """
        Write a value atomically.

        Uses write-to-temp-then-rename so readers see either the old or the new record.

        Raises:
            StorageWriteError: If the record could not be written.
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}_", suffix=".tmp")
        except OSError as e:
            raise StorageWriteError(key, str(e)) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.write("\n")
            os.replace(temp_path, self.path_for(key))
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StorageWriteError(key, str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass


def data_dir_from_env() -> Path:
    """Resolve the data directory, honouring TOOLRENT_DATA_DIR at call time."""
    override = os.environ.get("TOOLRENT_DATA_DIR")
    return Path(override) if override else DATA_DIR


def encode_records(records: list[dict[str, Any]]) -> str:
    """Wrap records in a versioned envelope and serialize them."""
    return json.dumps({"schema_version": SCHEMA_VERSION, "data": records}, indent=2)


def _migrate_v0(payload: Any) -> dict[str, Any]:
    # Version 0 is the bare array the storefront originally wrote.
    return {"schema_version": 1, "data": payload}


MIGRATIONS: dict[int, Callable[[Any], dict[str, Any]]] = {
    0: _migrate_v0,
}


def decode_records(key: str, raw: str) -> list[dict[str, Any]]:
    """
    Parse a stored record, migrating older layouts to the current schema.

    Raises:
        StorageCorruptionError: If the record is not valid JSON or has the wrong shape.
        InvalidSchemaVersionError: If the schema version is newer or unknown.
    """
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise StorageCorruptionError(key, f"invalid JSON ({e})") from e

    if isinstance(payload, list):
        version = 0
    elif isinstance(payload, dict):
        version = payload.get("schema_version")
    else:
        raise StorageCorruptionError(key, f"unexpected top-level {type(payload).__name__}")

    if not isinstance(version, int) or isinstance(version, bool):
        raise InvalidSchemaVersionError(key, version, SCHEMA_VERSION)

    while version < SCHEMA_VERSION:
        migrate = MIGRATIONS.get(version)
        if migrate is None:
            raise InvalidSchemaVersionError(key, version, SCHEMA_VERSION)
        payload = migrate(payload)
        version = payload["schema_version"]

    if version != SCHEMA_VERSION:
        raise InvalidSchemaVersionError(key, version, SCHEMA_VERSION)

    records = payload.get("data")
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise StorageCorruptionError(key, "expected a list of records")
    return records


class PersistentCollection:
    """
    Base for stores that keep one list of records under a storage key.

    Subclasses call _restore() once on construction and _persist() after each
    mutation. Corrupt records never escape _restore(): the store starts empty and
    the error is logged, kept in recovered_errors and passed to on_recover.
    """

    def __init__(
        self,
        storage: "MemoryStorage | JsonFileStorage",
        key: str,
        on_recover: Callable[[ToolRentError], None] | None = None,
    ):
        self.storage = storage
        self.key = key
        self.on_recover = on_recover
        self.recovered_errors: list[ToolRentError] = []

    def _restore(
        self,
        parse: Callable[[dict[str, Any]], Any],
        identity: Callable[[Any], Any] | None = None,
    ) -> list[Any]:
        """
        Load and parse the stored collection.

        Args:
            parse: Turns one stored record into a model, raising on bad data.
            identity: Returns the id of a parsed model; ids must be unique.

        Returns:
            The parsed models, or an empty list if the record is absent or corrupt.
        """
        try:
            raw = self.storage.get(self.key)
        except (OSError, ValueError) as e:
            self._recovered(StorageCorruptionError(self.key, f"unreadable ({e})"))
            return []
        if raw is None:
            return []
        try:
            restored = [parse(record) for record in decode_records(self.key, raw)]
            if identity is not None:
                ids = [identity(model) for model in restored]
                if len(set(ids)) != len(ids):
                    raise StorageCorruptionError(self.key, "duplicate ids")
            return restored
        except StorageCorruptionError as e:
            self._recovered(e)
        except (AttributeError, KeyError, TypeError, ValueError, ToolRentError) as e:
            self._recovered(StorageCorruptionError(self.key, f"malformed record ({e!r})"))
        return []

    def _recovered(self, error: ToolRentError) -> None:
        logger.warning("storage_error_recovered", key=self.key, error=str(error))
        self.recovered_errors.append(error)
        if self.on_recover is not None:
            self.on_recover(error)

    def _persist(self, records: list[dict[str, Any]]) -> None:
        """
        Write the full collection.

        Raises:
            StorageWriteError: If the storage backend fails.
        """
        self.storage.set(self.key, encode_records(records))
