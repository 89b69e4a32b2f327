"""
Embedded backend: one JSON collection per kind in the local key-value store.

Every mutation reads the whole collection, changes it and rewrites it in one transaction.
Two writers to the same kind can still overwrite each other (last write wins); the remote
backend does not have this limitation because it updates single rows.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from warrantyhub.config import settings
from warrantyhub.domain.exceptions import AlreadyExists, NotFound
from warrantyhub.domain.models import Batch, Contract, EntityKind, Remittance, warranty_id_from_contract_id
from warrantyhub.domain.validation import NUMBER_FIELD
from warrantyhub.infrastructure.database.repositories import KeyValueRepository, RawItems
from warrantyhub.infrastructure.observability.logging import log_dropped_records
from warrantyhub.infrastructure.observability.metrics import dropped_records_counter
from warrantyhub.infrastructure.stores.base import LifecycleStore, R, merge
from warrantyhub.infrastructure.stores.codecs import RECORD_TYPES, STORAGE_KEYS, decode, encode, row_id
from warrantyhub.utils.date_utils import utc_now


class EmbeddedStore(LifecycleStore[R]):
    """Key-value backed store for one entity kind"""

    backend = "embedded"

    def __init__(self, repository: KeyValueRepository):
        self.repository = repository
        self.storage_key = STORAGE_KEYS[self.kind]
        # Malformed entries excluded by the most recent read
        self.last_dropped = 0

    def _decode_all(self, raw: RawItems, now: datetime) -> List[R]:
        records: List[R] = []
        dropped = 0
        for item in raw:
            record = decode(self.kind, item, now)
            if record is None:
                dropped += 1
            else:
                records.append(record)

        self.last_dropped = dropped
        if dropped:
            dropped_records_counter.labels(kind=self.kind.value).inc(dropped)
            log_dropped_records(self.kind.value, dropped, self.storage_key)
        return records

    def _check_number_free(self, items: RawItems, number: Any, own_id: Optional[str] = None) -> None:
        field = NUMBER_FIELD[self.kind]
        for item in items:
            if item.get(field) == number and row_id(self.kind, item) != own_id:
                raise AlreadyExists(f"{self.kind.value.capitalize()} {number} already exists")

    async def list(self) -> List[R]:
        records = self._decode_all(self.repository.read(self.storage_key), utc_now())
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def get(self, record_id: str) -> Optional[R]:
        records = self._decode_all(self.repository.read(self.storage_key), utc_now())
        return next((r for r in records if r.id == record_id), None)

    async def _insert(self, values: Dict[str, Any], now: datetime) -> R:
        record_id = str(uuid.uuid4())
        values = {**values, "id": record_id, "created_at": now, "updated_at": now}
        if self.kind == EntityKind.CONTRACT:
            values["warranty_id"] = warranty_id_from_contract_id(record_id, settings.warranty_id_prefix)
        record = RECORD_TYPES[self.kind](**values)

        def prepend(items: RawItems):
            self._check_number_free(items, values[NUMBER_FIELD[self.kind]])
            return [encode(record)] + items, record

        return self.repository.mutate(self.storage_key, prepend)

    async def _apply(self, current: R, changes: Dict[str, Any]) -> R:
        updated = merge(current, changes)
        number_field = NUMBER_FIELD[self.kind]

        def replace_item(items: RawItems):
            if number_field in changes:
                self._check_number_free(items, changes[number_field], own_id=current.id)
            for idx, item in enumerate(items):
                if row_id(self.kind, item) == current.id:
                    new_items = list(items)
                    new_items[idx] = encode(updated)
                    return new_items, updated
            raise NotFound(f"{self.kind.value.capitalize()} not found")

        return self.repository.mutate(self.storage_key, replace_item)


class EmbeddedContractStore(EmbeddedStore[Contract]):
    kind = EntityKind.CONTRACT


class EmbeddedBatchStore(EmbeddedStore[Batch]):
    kind = EntityKind.BATCH


class EmbeddedRemittanceStore(EmbeddedStore[Remittance]):
    kind = EntityKind.REMITTANCE
