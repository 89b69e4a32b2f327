"""
Row codecs shared by both backends.

Rows are plain dicts keyed by column name (column names equal the dataclass field names).
Decoding is defensive: missing status defaults to the kind's initial state, missing
timestamps default to now, wrongly typed optional values become None. A row that still
fails the required-field check decodes to None and is excluded by the caller.
"""

import uuid
from dataclasses import fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type

from warrantyhub.config import settings
from warrantyhub.domain.models import (
    Batch,
    BatchPaymentStatus,
    BatchStatus,
    Contract,
    ContractStatus,
    EntityKind,
    LifecycleRecord,
    Remittance,
    RemittanceStatus,
    warranty_id_from_contract_id,
)
from warrantyhub.domain.validation import NON_NEGATIVE_INT_FIELDS, NUMBER_FIELD, REQUIRED_TEXT_FIELDS
from warrantyhub.utils.date_utils import format_timestamp, parse_timestamp

RECORD_TYPES: Dict[EntityKind, Type] = {
    EntityKind.CONTRACT: Contract,
    EntityKind.BATCH: Batch,
    EntityKind.REMITTANCE: Remittance,
}

TABLES = {
    EntityKind.CONTRACT: "contracts",
    EntityKind.BATCH: "batches",
    EntityKind.REMITTANCE: "remittances",
}

STORAGE_KEYS = {
    EntityKind.CONTRACT: "warrantyhub.local.contracts",
    EntityKind.BATCH: "warrantyhub.local.batches",
    EntityKind.REMITTANCE: "warrantyhub.local.remittances",
}

DATETIME_FIELDS = frozenset({"created_at", "updated_at", "sold_at", "remitted_at", "paid_at"})

ENUM_FIELDS: Dict[EntityKind, Dict[str, Type[Enum]]] = {
    EntityKind.CONTRACT: {"status": ContractStatus},
    EntityKind.BATCH: {"status": BatchStatus, "payment_status": BatchPaymentStatus},
    EntityKind.REMITTANCE: {"status": RemittanceStatus},
}

# Integer columns that default to zero rather than None
ZERO_DEFAULT_FIELDS = frozenset({"subtotal_cents", "tax_cents", "total_cents", "amount_cents"})


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return list(value)
    return value


def encode(record: LifecycleRecord) -> Dict[str, Any]:
    """Record -> row"""
    return {f.name: _encode_value(getattr(record, f.name)) for f in fields(record)}


def encode_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Partial field changes -> partial row"""
    return {name: _encode_value(value) for name, value in changes.items()}


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _decode_field(kind: EntityKind, name: str, value: Any, now: datetime) -> Any:
    enums = ENUM_FIELDS[kind]
    if name in enums:
        if value is None or value == "":
            # Missing lifecycle values start at the beginning of the chain
            return list(enums[name])[0]
        return enums[name](value)
    if name in DATETIME_FIELDS:
        return parse_timestamp(value)
    if name in NON_NEGATIVE_INT_FIELDS:
        parsed = _int_or_none(value)
        if parsed is None and name in ZERO_DEFAULT_FIELDS:
            return 0
        return parsed
    if name == "contract_ids":
        return [v for v in value if isinstance(v, str)] if isinstance(value, list) else []
    if name == "tax_rate_pct":
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0
    return _str_or_none(value)


def row_id(kind: EntityKind, row: Mapping[str, Any]) -> str:
    """Stored id, or one derived from the record number for rows saved without an id"""
    stored = row.get("id")
    if isinstance(stored, str) and stored:
        return stored
    number = row.get(NUMBER_FIELD[kind])
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"warrantyhub:{kind.value}:{number}"))


def decode(kind: EntityKind, row: Mapping[str, Any], now: datetime) -> Optional[LifecycleRecord]:
    """
    Row -> record, or None when the row is unusable.

    Raises nothing: unknown status values and blank required fields yield None.
    """
    cls = RECORD_TYPES[kind]
    values: Dict[str, Any] = {}
    try:
        for f in fields(cls):
            values[f.name] = _decode_field(kind, f.name, row.get(f.name), now)
    except ValueError:
        return None

    values["id"] = values.get("id") or row_id(kind, row)
    values["created_at"] = values.get("created_at") or now
    values["updated_at"] = values.get("updated_at") or values["created_at"]

    for name in REQUIRED_TEXT_FIELDS[kind]:
        values[name] = values.get(name) or ""
        if not values[name].strip():
            return None

    if kind == EntityKind.CONTRACT:
        existing = (values.get("warranty_id") or "").strip()
        values["warranty_id"] = existing or warranty_id_from_contract_id(values["id"], settings.warranty_id_prefix)

    return cls(**values)
