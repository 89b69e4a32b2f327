"""
Remote backend: one relational table per kind behind a REST API.

Older backend installs may lack columns added after the first schema. Writes are first
sent with the extended column set; when the backend rejects them the write is retried with
the base columns only and the result is reconciled with the values the client already
knows (initial status and the extended input values).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from warrantyhub.config import settings
from warrantyhub.domain.exceptions import BackendError, NotFound
from warrantyhub.domain.models import Batch, Contract, EntityKind, Remittance, warranty_id_from_contract_id
from warrantyhub.infrastructure.clients.rest import RestClient
from warrantyhub.infrastructure.observability.logging import log_dropped_records
from warrantyhub.infrastructure.observability.metrics import backend_fallback_counter, dropped_records_counter
from warrantyhub.infrastructure.stores.base import LifecycleStore, R, merge
from warrantyhub.infrastructure.stores.codecs import TABLES, decode, encode_changes
from warrantyhub.utils.date_utils import format_timestamp, utc_now

logger = logging.getLogger(__name__)

# Columns missing from older installs
EXTENDED_COLUMNS = {
    EntityKind.CONTRACT: frozenset(
        {
            "status",
            "updated_at",
            "vehicle_mileage_km",
            "pricing_dealer_cost_cents",
            "addon_total_retail_cents",
            "addon_total_cost_cents",
            "dealer_id",
        }
    ),
    EntityKind.BATCH: frozenset({"dealer_id", "updated_at"}),
    EntityKind.REMITTANCE: frozenset(
        {"status", "updated_at", "dealer_id", "provider_id", "created_by_user_id", "created_by_email"}
    ),
}

LIFECYCLE_COLUMNS = frozenset({"status", "payment_status"})


class RemoteStore(LifecycleStore[R]):
    """REST-backed store for one entity kind"""

    backend = "remote"

    def __init__(self, client: RestClient):
        self.client = client
        self.table = TABLES[self.kind]
        self.extended = EXTENDED_COLUMNS[self.kind]
        # Unusable rows excluded by the most recent read
        self.last_dropped = 0

    def _decode(self, row: Dict[str, Any], now: datetime) -> R:
        record = decode(self.kind, row, now)
        if record is None:
            raise BackendError(f"Backend returned an unusable {self.kind.value} row")
        return record

    def _decode_rows(self, rows: List[Dict[str, Any]], now: datetime) -> List[R]:
        records: List[R] = []
        for row in rows:
            record = decode(self.kind, row, now)
            if record is not None:
                records.append(record)

        self.last_dropped = len(rows) - len(records)
        if self.last_dropped:
            dropped_records_counter.labels(kind=self.kind.value).inc(self.last_dropped)
            log_dropped_records(self.kind.value, self.last_dropped, self.table)
        return records

    async def list(self) -> List[R]:
        records = self._decode_rows(await self.client.select(self.table), utc_now())
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def get(self, record_id: str) -> Optional[R]:
        row = await self.client.select_one(self.table, record_id)
        if row is None:
            return None
        records = self._decode_rows([row], utc_now())
        return records[0] if records else None

    async def _insert(self, values: Dict[str, Any], now: datetime) -> R:
        # created_at and updated_at are assigned by the backend
        extended_row = {k: v for k, v in encode_changes(values).items() if v is not None}
        base_row = {k: v for k, v in extended_row.items() if k not in self.extended}

        try:
            row = await self.client.insert(self.table, extended_row)
        except BackendError as e:
            logger.warning(
                "Extended insert rejected, retrying with base columns",
                extra={"table": self.table, "error": str(e)},
            )
            backend_fallback_counter.labels(table=self.table, operation="insert").inc()
            row = await self.client.insert(self.table, base_row)
            # Initial status and the input's extended values are known client-side
            row = {**row, **{k: v for k, v in extended_row.items() if k in self.extended}}

        record = self._decode(row, now)

        if self.kind == EntityKind.CONTRACT and not (row.get("warranty_id") or "").strip():
            record = await self._backfill_warranty_id(record)
        return record

    async def _backfill_warranty_id(self, record: Contract) -> Contract:
        derived = warranty_id_from_contract_id(record.id, settings.warranty_id_prefix)
        try:
            row = await self.client.update(self.table, record.id, {"warranty_id": derived})
        except BackendError as e:
            # The id is derived deterministically, so reads still produce the same value
            logger.warning(
                "Could not store warranty id",
                extra={"table": self.table, "record_id": record.id, "error": str(e)},
            )
            return merge(record, {"warranty_id": derived})
        stored = (row or {}).get("warranty_id") or derived
        return merge(record, {"warranty_id": stored})

    async def _apply(self, current: R, changes: Dict[str, Any]) -> R:
        now = changes.get("updated_at") or utc_now()
        extended_row = encode_changes(changes)
        base_row = {k: v for k, v in extended_row.items() if k not in self.extended}
        dropped = set(extended_row) - set(base_row)

        try:
            row = await self.client.update(self.table, current.id, extended_row)
        except BackendError as e:
            # Never report a status change the backend did not store
            if not base_row or dropped & LIFECYCLE_COLUMNS:
                raise
            logger.warning(
                "Extended update rejected, retrying with base columns",
                extra={"table": self.table, "record_id": current.id, "dropped": sorted(dropped), "error": str(e)},
            )
            backend_fallback_counter.labels(table=self.table, operation="update").inc()
            row = await self.client.update(self.table, current.id, base_row)
            if row is not None:
                row = {**row, "updated_at": format_timestamp(now)}

        if row is None:
            raise NotFound(f"{self.kind.value.capitalize()} not found")
        return self._decode(row, now)


class RemoteContractStore(RemoteStore[Contract]):
    kind = EntityKind.CONTRACT


class RemoteBatchStore(RemoteStore[Batch]):
    kind = EntityKind.BATCH


class RemoteRemittanceStore(RemoteStore[Remittance]):
    kind = EntityKind.REMITTANCE
