"""Persistent record store backing the local fallback engine.

Each key holds one JSON document in a directory on local disk:
- collections are JSON arrays of records, read and written whole
- slots hold a single JSON object (e.g. the current session)

The store has no query capability. Callers read a key's full array, compute
with plain list operations and write the full array back. Writes to a single
key are atomic (temp file + rename); writes across keys are not, unless they
run inside `batch()`.
"""
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

# Collection and slot names, before the configured prefix is applied
USERS = 'users'
SELLERS = 'sellers'
PRODUCTS = 'products'
CART_ITEMS = 'cart_items'
ORDERS = 'orders'
ORDER_ITEMS = 'order_items'
REVIEWS = 'reviews'
CURRENT_USER = 'current_user'

COLLECTIONS = (USERS, SELLERS, PRODUCTS, CART_ITEMS, ORDERS, ORDER_ITEMS, REVIEWS)

class StorageError(Exception):
    """Raised when a stored document cannot be read or written."""
    pass

class RecordStore:
    """Named arrays of JSON records persisted under a directory."""

    def __init__(self, root: str, prefix: str = 'bazarlink_') -> None:
        """Initialize record store.

        Args:
            root: Directory holding one file per key (created if missing)
            prefix: Prefix applied to every key's file name
        """
        self.root = Path(root)
        self.prefix = prefix

    def path(self, key: str) -> Path:
        """File path backing a key."""
        return self.root / f"{self.prefix}{key}.json"

    def exists(self, key: str) -> bool:
        return self.path(key).exists()

    def _load(self, key: str) -> Any:
        path = self.path(key)
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {path}: {e}")
            raise StorageError(f"Failed to read {key}: {str(e)}")

    def _dump(self, key: str, value: Any) -> None:
        path = self.path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=path.name, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(value, f)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error writing {path}: {e}")
            raise StorageError(f"Failed to write {key}: {str(e)}")

    def read(self, key: str) -> List[Dict[str, Any]]:
        """Read every record stored under a key.

        Returns:
            The stored records, or an empty list if the key was never written

        Raises:
            StorageError: If the stored document is unreadable or not an array
        """
        data = self._load(key)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StorageError(f"Key {key} does not hold a record array")
        return data

    def write(self, key: str, records: Iterable[Dict[str, Any]]) -> None:
        """Replace everything stored under a key with `records`."""
        self._dump(key, list(records))

    def ensure(self, keys: Iterable[str]) -> None:
        """Initialize keys that have never been written with an empty array."""
        for key in keys:
            if not self.exists(key):
                self.write(key, [])

    def get_slot(self, key: str) -> Optional[Dict[str, Any]]:
        """Read a single-record slot, None if empty."""
        data = self._load(key)
        if data is not None and not isinstance(data, dict):
            raise StorageError(f"Key {key} does not hold a single record")
        return data

    def set_slot(self, key: str, record: Dict[str, Any]) -> None:
        self._dump(key, record)

    def clear_slot(self, key: str) -> None:
        try:
            self.path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Error clearing slot {key}: {e}")
            raise StorageError(f"Failed to clear {key}: {str(e)}")

    @contextmanager
    def batch(self, *keys: str) -> Iterator['RecordStore']:
        """Run several writes as one all-or-nothing unit.

        The named keys are snapshotted on entry. If the body raises, every
        snapshotted key is restored to its prior content (or removed if it
        did not exist) and the exception propagates.
        """
        snapshot = {key: self._load(key) for key in keys}
        try:
            yield self
        except BaseException:
            logger.warning(f"Rolling back batch over {', '.join(keys)}")
            for key, value in snapshot.items():
                if value is None:
                    self.clear_slot(key)
                else:
                    self._dump(key, value)
            raise

__all__ = [
    'RecordStore',
    'StorageError',
    'COLLECTIONS',
    'USERS',
    'SELLERS',
    'PRODUCTS',
    'CART_ITEMS',
    'ORDERS',
    'ORDER_ITEMS',
    'REVIEWS',
    'CURRENT_USER'
]
