"""Data access layer for the embedded key-value store"""

import json
import logging
from typing import Any, Callable, Dict, List, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from warrantyhub.infrastructure.database.models import KVEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

RawItems = List[Dict[str, Any]]


def _decode(key: str, raw: str | None) -> RawItems:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable collection blob, treating as empty", extra={"storage_key": key})
        return []
    if not isinstance(parsed, list):
        logger.warning("Collection blob is not a list, treating as empty", extra={"storage_key": key})
        return []
    return [item for item in parsed if isinstance(item, dict)]


class KeyValueRepository:
    """Reads and rewrites whole JSON collections stored under string keys"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _load(self, db: Session, key: str) -> RawItems:
        entry = db.get(KVEntry, key)
        return _decode(key, entry.value if entry else None)

    def _store(self, db: Session, key: str, items: RawItems) -> None:
        payload = json.dumps(items)
        entry = db.get(KVEntry, key)
        if entry is None:
            db.add(KVEntry(key=key, value=payload))
        else:
            entry.value = payload

    def read(self, key: str) -> RawItems:
        with self.session_factory() as db:
            return self._load(db, key)

    def write(self, key: str, items: RawItems) -> None:
        with self.session_factory() as db:
            self._store(db, key, items)
            db.commit()

    def mutate(self, key: str, fn: Callable[[RawItems], tuple[RawItems, T]]) -> T:
        """
        Read-modify-write one collection inside a single transaction.

        fn receives the current items and returns (new_items, result). If fn raises,
        nothing is written.
        """
        with self.session_factory() as db:
            items = self._load(db, key)
            new_items, result = fn(items)
            self._store(db, key, new_items)
            db.commit()
            return result
