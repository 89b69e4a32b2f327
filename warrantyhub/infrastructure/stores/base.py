"""
Storage capability interface shared by the embedded and remote backends.

LifecycleStore owns the create/update rules so the two backends cannot drift apart:
subclasses only supply raw reads and writes (_insert, _apply, list, get).
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass, replace
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from warrantyhub.domain.exceptions import InvalidTransition, Locked, NotFound, ValidationError
from warrantyhub.domain.models import Batch, Contract, EntityKind, LifecycleRecord, Remittance
from warrantyhub.domain.patches import Patch, resolve_patch, state_of
from warrantyhub.domain.transitions import initial_state
from warrantyhub.domain.validation import validate_values
from warrantyhub.infrastructure.observability.logging import log_rejected_update, log_transition
from warrantyhub.infrastructure.observability.metrics import record_rejection, record_transition
from warrantyhub.utils.date_utils import utc_now

R = TypeVar("R", Contract, Batch, Remittance)

_REJECTION_REASONS = {
    NotFound: "not_found",
    Locked: "locked",
    InvalidTransition: "invalid_transition",
    ValidationError: "validation",
}


def _state_label(state: Any) -> str:
    if isinstance(state, tuple):
        return "/".join(_state_label(s) for s in state)
    return getattr(state, "value", str(state))


def initial_values(kind: EntityKind) -> Dict[str, Any]:
    """Lifecycle fields every new record starts with"""
    state = initial_state(kind)
    if kind == EntityKind.BATCH:
        status, payment_status = state
        return {"status": status, "payment_status": payment_status}
    return {"status": state}


class LifecycleStore(ABC, Generic[R]):
    """list / get / create / update for one entity kind"""

    kind: EntityKind
    backend: str

    @abstractmethod
    async def list(self) -> List[R]:
        """All usable records, newest first"""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[R]:
        """Record by id, or None"""

    @abstractmethod
    async def _insert(self, values: Dict[str, Any], now: datetime) -> R:
        """Persist a new record built from validated input values"""

    @abstractmethod
    async def _apply(self, current: R, changes: Dict[str, Any]) -> R:
        """Persist field changes on top of current and return the new version"""

    async def create(self, data: Any) -> R:
        """
        Create a record in the kind's initial state.

        Raises:
            ValidationError: Missing or malformed required fields
            AlreadyExists: Record number already used
        """
        values = asdict(data) if is_dataclass(data) else dict(data)
        # Lifecycle fields are never caller-controlled on create
        for name in ("id", "status", "payment_status", "created_at", "updated_at", "warranty_id"):
            values.pop(name, None)
        validate_values(self.kind, values)
        values.update(initial_values(self.kind))
        return await self._insert(values, utc_now())

    async def update(self, record_id: str, patch: Patch, actor_id: Optional[str] = None) -> R:
        """
        Apply a patch under the lifecycle rules.

        1. load current (NotFound)
        2. field edits only in the initial state (Locked)
        3. status changes through the validator (InvalidTransition)
        4. merge, stamp updated_at, persist

        Raises:
            NotFound, Locked, InvalidTransition
        """
        now = utc_now()
        try:
            current = await self.get(record_id)
            if current is None:
                raise NotFound(f"{self.kind.value.capitalize()} not found")
            changes = resolve_patch(current, patch, now)
        except (NotFound, Locked, InvalidTransition, ValidationError) as e:
            reason = _REJECTION_REASONS[type(e)]
            record_rejection(self.kind.value, reason)
            log_rejected_update(self.kind.value, record_id, reason, str(e))
            raise

        updated = await self._apply(current, changes)

        before, after = state_of(current), state_of(updated)
        if before != after:
            record_transition(self.kind.value, _state_label(after))
            log_transition(
                self.kind.value,
                record_id,
                _state_label(before),
                _state_label(after),
                actor_id=actor_id,
                backend=self.backend,
            )
        return updated


def merge(current: LifecycleRecord, changes: Dict[str, Any]) -> LifecycleRecord:
    """New record version with changes applied over current"""
    return replace(current, **changes)
