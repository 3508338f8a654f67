# services/storage.py
"""
Key-Value Store for portal collections.

Every entity collection (templates, documents, signatures, contracts,
users) is stored under one string key as a JSON list. Writes notify all
subscribers with the key and the new serialized value so other observers
of the same collection can refresh.

Two backends are provided:
- MemoryBackend: plain dict, used by tests and scripts
- SQLAlchemyBackend: one StoredCollection row per key (needs app context)

Usage:
    store = KeyValueStore(MemoryBackend())
    store.subscribe(lambda key, value: print(key))
    with store.transaction():
        store.add_item('templates', template_dict)
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.documents.exceptions import PersistenceError
from services.documents.types import ALL_KEYS

logger = logging.getLogger(__name__)

Listener = Callable[[str, str], None]


# =============================================================================
# BACKENDS
# =============================================================================

class MemoryBackend:
    """Dict-backed storage. Not shared between processes."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, serialized: str) -> None:
        self._data[key] = serialized

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SQLAlchemyBackend:
    """Stores each key as a StoredCollection row through Flask-SQLAlchemy."""

    def read(self, key: str) -> Optional[str]:
        from models import db, StoredCollection

        row = db.session.get(StoredCollection, key)
        return row.value if row else None

    def write(self, key: str, serialized: str) -> None:
        from models import db, StoredCollection

        try:
            row = db.session.get(StoredCollection, key)
            if row is None:
                row = StoredCollection(key=key, value=serialized)
                db.session.add(row)
            else:
                row.value = serialized
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def delete(self, key: str) -> None:
        from models import db, StoredCollection

        try:
            row = db.session.get(StoredCollection, key)
            if row is not None:
                db.session.delete(row)
                db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise


# =============================================================================
# STORE
# =============================================================================

class KeyValueStore:
    """
    String-keyed JSON store with change notification.

    `transaction()` is the critical section for read-modify-write
    sequences. It is re-entrant, so helpers that lock internally can be
    called from inside it.
    """

    def __init__(self, backend=None):
        self.backend = backend or MemoryBackend()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    @contextmanager
    def transaction(self):
        with self._lock:
            yield self

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Register a callback invoked as listener(key, serialized_value) after each set."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, key: str, serialized: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, serialized)
            except Exception:
                logger.exception(f"Store listener failed for key '{key}'")

    # -------------------------------------------------------------------------
    # Raw get / set
    # -------------------------------------------------------------------------

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.backend.read(key)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error reading store key '{key}': {e}")
            raise PersistenceError(f"Failed to read '{key}': {e}", key=key) from e

    def get(self, key: str, fallback: Any = None) -> Any:
        """
        Read a key, returning `fallback` when it is missing or unreadable.

        Raises:
            PersistenceError: if the backend itself fails
        """
        raw = self._read(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Error parsing stored value for key '{key}': {e}")
            return fallback

    def set(self, key: str, value: Any) -> None:
        """
        Serialize and write a value, then notify subscribers.

        Raises:
            PersistenceError: if serialization or the backend write fails;
                subscribers are not notified in that case
        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Error serializing value for key '{key}': {e}")
            raise PersistenceError(f"Cannot serialize '{key}': {e}", key=key) from e

        try:
            with self._lock:
                self.backend.write(key, serialized)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error setting store key '{key}': {e}")
            raise PersistenceError(f"Failed to write '{key}': {e}", key=key) from e

        self._notify(key, serialized)

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self.backend.delete(key)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error deleting store key '{key}': {e}")
            raise PersistenceError(f"Failed to delete '{key}': {e}", key=key) from e

    def clear_all(self, keys=ALL_KEYS) -> None:
        """Remove every collection key. For tests and resets."""
        for key in keys:
            self.delete(key)

    # -------------------------------------------------------------------------
    # Collection helpers
    # -------------------------------------------------------------------------

    def get_collection(self, key: str) -> List[Dict[str, Any]]:
        """
        Read a collection. A missing key is an empty collection.

        Raises:
            PersistenceError: if the stored value is not a JSON list, so a
                following write cannot replace the unreadable collection
        """
        raw = self._read(key)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except ValueError as e:
            logger.error(f"Error parsing stored collection '{key}': {e}")
            raise PersistenceError(f"Collection '{key}' is unreadable: {e}", key=key) from e
        if not isinstance(items, list):
            logger.error(f"Stored collection '{key}' is a {type(items).__name__}, not a list")
            raise PersistenceError(f"Collection '{key}' is not a list", key=key)
        return items

    def find_item(self, key: str, item_id: str) -> Optional[Dict[str, Any]]:
        return next((item for item in self.get_collection(key) if item.get('id') == item_id), None)

    def add_item(self, key: str, item: Dict[str, Any]) -> None:
        with self._lock:
            items = self.get_collection(key)
            self.set(key, items + [item])

    def update_item(self, key: str, item_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Merge `updates` into the item with `item_id`. Returns the updated item, or None if absent."""
        with self._lock:
            items = self.get_collection(key)
            updated = None
            new_items = []
            for item in items:
                if item.get('id') == item_id:
                    updated = {**item, **updates}
                    new_items.append(updated)
                else:
                    new_items.append(item)
            if updated is None:
                return None
            self.set(key, new_items)
            return updated

    def remove_item(self, key: str, item_id: str) -> bool:
        """Remove the item with `item_id`. Returns False if it was not present."""
        with self._lock:
            items = self.get_collection(key)
            remaining = [item for item in items if item.get('id') != item_id]
            if len(remaining) == len(items):
                return False
            self.set(key, remaining)
            return True
