"""
Patch variants per entity kind and the shared update rule.

Every update is one of two shapes: a status change, or a field edit. Field edits are only
accepted while the record is still in its kind's initial state (the lifecycle lock);
status changes go through the transition validator. Both storage backends call
resolve_patch() so they reject and accept exactly the same updates.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from warrantyhub.domain.exceptions import InvalidTransition, Locked, ValidationError
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
)
from warrantyhub.domain.transitions import check_transition, initial_state
from warrantyhub.domain.validation import validate_values

# Never editable through a field edit: identity, lifecycle and attribution of later steps
_CONTRACT_SYSTEM_FIELDS = frozenset(
    {
        "id",
        "warranty_id",
        "status",
        "created_at",
        "updated_at",
        "sold_by_user_id",
        "sold_by_email",
        "sold_at",
        "remitted_by_user_id",
        "remitted_by_email",
        "remitted_at",
        "paid_by_user_id",
        "paid_by_email",
        "paid_at",
    }
)

EDITABLE_FIELDS = {
    EntityKind.CONTRACT: frozenset(f.name for f in fields(Contract)) - _CONTRACT_SYSTEM_FIELDS,
    EntityKind.BATCH: frozenset(
        {"batch_number", "dealer_id", "contract_ids", "subtotal_cents", "tax_rate_pct", "tax_cents", "total_cents"}
    ),
    EntityKind.REMITTANCE: frozenset({"remittance_number", "amount_cents", "dealer_id", "provider_id"}),
}

# Attribution prefix stamped when a contract enters each status
_ATTRIBUTION_PREFIX = {
    ContractStatus.SOLD: "sold",
    ContractStatus.REMITTED: "remitted",
    ContractStatus.PAID: "paid",
}


class _FieldEdit:
    kind: EntityKind

    def _check(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        if not values:
            raise ValidationError("Field edit has no fields")
        unknown = sorted(set(values) - EDITABLE_FIELDS[self.kind])
        if unknown:
            raise ValidationError(f"Fields not editable on {self.kind.value}: {', '.join(unknown)}")
        validate_values(self.kind, values, partial=True)
        return dict(values)


@dataclass(frozen=True)
class ContractStatusChange:
    status: Union[ContractStatus, str]
    by_user_id: Optional[str] = None
    by_email: Optional[str] = None
    at: Optional[datetime] = None


@dataclass(frozen=True)
class ContractFieldEdit(_FieldEdit):
    fields: Mapping[str, Any] = field(default_factory=dict)
    kind = EntityKind.CONTRACT

    def __post_init__(self):
        object.__setattr__(self, "fields", self._check(self.fields))


@dataclass(frozen=True)
class BatchStatusChange:
    status: Union[BatchStatus, str]


@dataclass(frozen=True)
class BatchPaymentChange:
    payment_status: Union[BatchPaymentStatus, str]
    paid_at: Optional[datetime] = None


@dataclass(frozen=True)
class BatchFieldEdit(_FieldEdit):
    fields: Mapping[str, Any] = field(default_factory=dict)
    kind = EntityKind.BATCH

    def __post_init__(self):
        object.__setattr__(self, "fields", self._check(self.fields))


@dataclass(frozen=True)
class RemittanceStatusChange:
    status: Union[RemittanceStatus, str]


@dataclass(frozen=True)
class RemittanceFieldEdit(_FieldEdit):
    fields: Mapping[str, Any] = field(default_factory=dict)
    kind = EntityKind.REMITTANCE

    def __post_init__(self):
        object.__setattr__(self, "fields", self._check(self.fields))


ContractPatch = Union[ContractStatusChange, ContractFieldEdit]
BatchPatch = Union[BatchStatusChange, BatchPaymentChange, BatchFieldEdit]
RemittancePatch = Union[RemittanceStatusChange, RemittanceFieldEdit]
Patch = Union[ContractPatch, BatchPatch, RemittancePatch]


def _coerce(enum_cls, value, kind: EntityKind):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidTransition(f"Unknown {kind.value} status: {value}")


def kind_of(record: LifecycleRecord) -> EntityKind:
    if isinstance(record, Contract):
        return EntityKind.CONTRACT
    if isinstance(record, Batch):
        return EntityKind.BATCH
    if isinstance(record, Remittance):
        return EntityKind.REMITTANCE
    raise TypeError(f"Not a lifecycle record: {type(record).__name__}")


def state_of(record: LifecycleRecord):
    if isinstance(record, Batch):
        return record.state
    return record.status


def is_status_change(patch: Patch) -> bool:
    return not isinstance(patch, _FieldEdit)


def _field_edit_changes(kind: EntityKind, current: LifecycleRecord, patch: _FieldEdit) -> Dict[str, Any]:
    if state_of(current) != initial_state(kind):
        raise Locked(f"{kind.value.capitalize()} is locked (only records in their initial state are editable)")
    return dict(patch.fields)


def _contract_changes(current: Contract, patch: ContractPatch, now: datetime) -> Dict[str, Any]:
    if isinstance(patch, ContractFieldEdit):
        return _field_edit_changes(EntityKind.CONTRACT, current, patch)
    if isinstance(patch, ContractStatusChange):
        requested = _coerce(ContractStatus, patch.status, EntityKind.CONTRACT)
        check_transition(EntityKind.CONTRACT, current.status, requested)
        changes: Dict[str, Any] = {"status": requested}
        if requested != current.status:
            prefix = _ATTRIBUTION_PREFIX[requested]
            changes[f"{prefix}_at"] = patch.at or now
            if patch.by_user_id is not None:
                changes[f"{prefix}_by_user_id"] = patch.by_user_id
            if patch.by_email is not None:
                changes[f"{prefix}_by_email"] = patch.by_email
        return changes
    raise TypeError(f"Unsupported contract patch: {type(patch).__name__}")


def _batch_changes(current: Batch, patch: BatchPatch, now: datetime) -> Dict[str, Any]:
    if isinstance(patch, BatchFieldEdit):
        return _field_edit_changes(EntityKind.BATCH, current, patch)
    if isinstance(patch, BatchStatusChange):
        requested = _coerce(BatchStatus, patch.status, EntityKind.BATCH)
        check_transition(EntityKind.BATCH, current.state, (requested, current.payment_status))
        return {"status": requested}
    if isinstance(patch, BatchPaymentChange):
        requested = _coerce(BatchPaymentStatus, patch.payment_status, EntityKind.BATCH)
        check_transition(EntityKind.BATCH, current.state, (current.status, requested))
        changes: Dict[str, Any] = {"payment_status": requested}
        if requested != current.payment_status and requested == BatchPaymentStatus.PAID:
            changes["paid_at"] = patch.paid_at or now
        return changes
    raise TypeError(f"Unsupported batch patch: {type(patch).__name__}")


def _remittance_changes(current: Remittance, patch: RemittancePatch, now: datetime) -> Dict[str, Any]:
    if isinstance(patch, RemittanceFieldEdit):
        return _field_edit_changes(EntityKind.REMITTANCE, current, patch)
    if isinstance(patch, RemittanceStatusChange):
        requested = _coerce(RemittanceStatus, patch.status, EntityKind.REMITTANCE)
        check_transition(EntityKind.REMITTANCE, current.status, requested)
        return {"status": requested}
    raise TypeError(f"Unsupported remittance patch: {type(patch).__name__}")


def resolve_patch(current: LifecycleRecord, patch: Patch, now: datetime) -> Dict[str, Any]:
    """
    Turn a patch into the field changes to persist, enforcing the update rule.

    Returns:
        Mapping of field name -> new value, always including updated_at

    Raises:
        Locked: Field edit on a record that left its initial state
        InvalidTransition: Illegal status change
    """
    if isinstance(current, Contract):
        changes = _contract_changes(current, patch, now)
    elif isinstance(current, Batch):
        changes = _batch_changes(current, patch, now)
    elif isinstance(current, Remittance):
        changes = _remittance_changes(current, patch, now)
    else:
        raise TypeError(f"Not a lifecycle record: {type(current).__name__}")

    changes["updated_at"] = now
    return changes
