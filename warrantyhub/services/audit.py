"""
Append-only audit trail of lifecycle actions.

Events always live in the embedded key-value store, whichever backend holds the records,
newest first and capped at settings.audit_log_max_events.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from warrantyhub.config import settings
from warrantyhub.domain.models import Actor
from warrantyhub.infrastructure.database.repositories import KeyValueRepository, RawItems
from warrantyhub.utils.date_utils import format_timestamp, parse_timestamp, utc_now

AUDIT_STORAGE_KEY = "warrantyhub.local.audit_events"


@dataclass
class AuditEvent:
    id: str
    created_at: datetime
    kind: str
    actor_user_id: Optional[str] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    message: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _encode(event: AuditEvent) -> Dict[str, Any]:
    row = asdict(event)
    row["created_at"] = format_timestamp(event.created_at)
    return row


def _decode(item: Dict[str, Any], now: datetime) -> AuditEvent:
    """Stored events are never dropped; unusable fields fall back to defaults"""
    meta = item.get("meta")
    return AuditEvent(
        id=_text(item.get("id")) or str(uuid.uuid4()),
        created_at=parse_timestamp(item.get("created_at")) or now,
        kind=_text(item.get("kind")) or "UNKNOWN",
        actor_user_id=_text(item.get("actor_user_id")),
        actor_email=_text(item.get("actor_email")),
        actor_role=_text(item.get("actor_role")),
        dealer_id=_text(item.get("dealer_id")),
        provider_id=_text(item.get("provider_id")),
        entity_type=_text(item.get("entity_type")),
        entity_id=_text(item.get("entity_id")),
        message=_text(item.get("message")),
        meta=meta if isinstance(meta, dict) else {},
    )


def _matches(value: Optional[str], wanted: str) -> bool:
    return not wanted or (value or "").strip() == wanted


class AuditLog:
    """Audit events stored under one key of the embedded store"""

    def __init__(self, repository: KeyValueRepository, max_events: Optional[int] = None):
        self.repository = repository
        self.max_events = max_events or settings.audit_log_max_events

    def log_event(
        self,
        kind: str,
        actor: Optional[Actor] = None,
        *,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        message: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        dealer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> AuditEvent:
        """Record one event; dealer and provider default to the actor's"""
        event = AuditEvent(
            id=str(uuid.uuid4()),
            created_at=created_at or utc_now(),
            kind=kind,
            actor_user_id=actor.id if actor else None,
            actor_email=actor.email if actor else None,
            actor_role=actor.role.value if actor else None,
            dealer_id=dealer_id or (actor.dealer_id if actor else None),
            provider_id=provider_id or (actor.provider_id if actor else None),
            entity_type=entity_type,
            entity_id=entity_id,
            message=message,
            meta=dict(meta or {}),
        )

        def prepend(items: RawItems):
            return ([_encode(event)] + items)[: self.max_events], event

        return self.repository.mutate(AUDIT_STORAGE_KEY, prepend)

    def list_events(
        self,
        dealer_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        actor_user_id: Optional[str] = None,
        limit: int = 200,
    ) -> List[AuditEvent]:
        """Newest first, filtered by exact (trimmed) dealer / provider / actor ids"""
        dealer_id = (dealer_id or "").strip()
        provider_id = (provider_id or "").strip()
        actor_user_id = (actor_user_id or "").strip()

        now = utc_now()
        events = [_decode(item, now) for item in self.repository.read(AUDIT_STORAGE_KEY)]
        events.sort(key=lambda e: e.created_at, reverse=True)
        events = [
            e
            for e in events
            if _matches(e.dealer_id, dealer_id)
            and _matches(e.provider_id, provider_id)
            and _matches(e.actor_user_id, actor_user_id)
        ]
        return events[: max(0, limit)]
