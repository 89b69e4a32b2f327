"""
Role- and ownership-based authorization for lifecycle records.

The guard is pure: callers resolve whatever context it needs (dealer memberships, the
provider's product ids, the contract ids the actor can already see) and pass it in an
AccessScope. Rules are evaluated in role precedence order, first match wins:

    ADMIN / SUPER_ADMIN  -> everything visible; may change status and payment
    DEALER_ADMIN         -> own dealer's records, or records they created
    DEALER_EMPLOYEE      -> only records they created
    PROVIDER             -> read-only, records referencing their provider id or products
    anyone else          -> nothing

Unauthorized reads surface as NotFound so record existence never leaks; Forbidden is only
raised for records the actor is already allowed to see.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Mapping, Optional

from warrantyhub.domain.exceptions import Forbidden, NotFound
from warrantyhub.domain.models import (
    Actor,
    Batch,
    BatchPaymentStatus,
    Contract,
    ContractStatus,
    EntityKind,
    LifecycleRecord,
    Remittance,
    RemittanceStatus,
    Role,
)
from warrantyhub.domain.patches import (
    BatchPaymentChange,
    ContractStatusChange,
    Patch,
    RemittanceStatusChange,
)


@dataclass
class AccessScope:
    """Context the guard needs beyond the actor and the record itself"""

    # dealer id -> user ids recorded as members (embedded mode only)
    dealer_members: Mapping[str, AbstractSet[str]] = field(default_factory=dict)
    # product ids published by the acting provider
    provider_product_ids: AbstractSet[str] = frozenset()
    # contracts the actor may view; batches are matched through these
    visible_contract_ids: AbstractSet[str] = frozenset()


EMPTY_SCOPE = AccessScope()


def _norm(value: Optional[str]) -> str:
    return (value or "").strip()


def _norm_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_creator(actor: Actor, record: LifecycleRecord) -> bool:
    """Creator id match when both ids exist, otherwise creator email match"""
    by_id = _norm(getattr(record, "created_by_user_id", None))
    by_email = _norm_email(getattr(record, "created_by_email", None))
    uid = _norm(actor.id)
    uem = _norm_email(actor.email)

    if uid and by_id:
        return by_id == uid
    if uem and by_email:
        return by_email == uem
    return False


def _dealer_matches(actor: Actor, record: LifecycleRecord, scope: AccessScope) -> bool:
    dealer_id = _norm(actor.dealer_id)
    if not dealer_id:
        return False

    if _norm(getattr(record, "dealer_id", None)) == dealer_id:
        return True

    # Transitive match through recorded memberships: the creator belongs to this dealer
    creator_id = _norm(getattr(record, "created_by_user_id", None))
    if dealer_id in scope.dealer_members and creator_id:
        return creator_id == dealer_id or creator_id in scope.dealer_members[dealer_id]
    return False


def _batch_in_scope(batch: Batch, scope: AccessScope) -> bool:
    return any(cid in scope.visible_contract_ids for cid in batch.contract_ids)


def _provider_sees(actor: Actor, record: LifecycleRecord, scope: AccessScope) -> bool:
    identity = actor.provider_identity
    if not identity:
        return False
    if isinstance(record, Contract):
        product_id = _norm(record.product_id)
        return _norm(record.provider_id) == identity or bool(product_id and product_id in scope.provider_product_ids)
    if isinstance(record, Remittance):
        return _norm(record.provider_id) == identity
    return False


def can_view(actor: Actor, record: LifecycleRecord, scope: AccessScope = EMPTY_SCOPE) -> bool:
    if actor.is_admin:
        return True

    if actor.role == Role.DEALER_ADMIN:
        if isinstance(record, Batch):
            return _dealer_matches(actor, record, scope) or _batch_in_scope(record, scope)
        return _dealer_matches(actor, record, scope) or is_creator(actor, record)

    if actor.role == Role.DEALER_EMPLOYEE:
        if isinstance(record, Batch):
            return _batch_in_scope(record, scope)
        return is_creator(actor, record)

    if actor.role == Role.PROVIDER:
        return _provider_sees(actor, record, scope)

    return False


def _is_payment_change(patch: Optional[Patch]) -> bool:
    if isinstance(patch, ContractStatusChange):
        return patch.status == ContractStatus.PAID
    if isinstance(patch, RemittanceStatusChange):
        return patch.status == RemittanceStatus.PAID
    if isinstance(patch, BatchPaymentChange):
        return patch.payment_status == BatchPaymentStatus.PAID
    return False


def can_mutate(
    actor: Actor,
    record: LifecycleRecord,
    change: Optional[Patch] = None,
    scope: AccessScope = EMPTY_SCOPE,
) -> bool:
    """
    Whether actor may apply change to record.

    The lifecycle lock is not checked here; the store enforces it for every role.
    """
    if not can_view(actor, record, scope):
        return False

    if actor.is_admin:
        return True

    if actor.role == Role.PROVIDER:
        return False

    if actor.is_dealer:
        # Payment is recorded by accounting / platform admins only
        return not _is_payment_change(change)

    return False


def can_create(actor: Actor, kind: EntityKind) -> bool:
    if kind in (EntityKind.CONTRACT, EntityKind.BATCH):
        return actor.is_dealer
    if kind == EntityKind.REMITTANCE:
        return actor.is_dealer or actor.is_admin
    return False


def can_assign_role(actor: Actor, role: Role, request_type: Optional[str] = None) -> bool:
    """
    Access-request approval rules.

    - provider access requests: SUPER_ADMIN only
    - ADMIN / SUPER_ADMIN roles: SUPER_ADMIN only
    - dealer and provider roles: ADMIN or above
    """
    if not actor.is_admin:
        return False
    if (request_type or "").upper() == "PROVIDER" and actor.role != Role.SUPER_ADMIN:
        return False
    if role in (Role.ADMIN, Role.SUPER_ADMIN):
        return actor.role == Role.SUPER_ADMIN
    return role in (Role.DEALER_ADMIN, Role.DEALER_EMPLOYEE, Role.PROVIDER)


def ensure_can_view(actor: Actor, record: Optional[LifecycleRecord], scope: AccessScope = EMPTY_SCOPE):
    """
    Raises:
        NotFound: Record missing or hidden from actor
    """
    if record is None or not can_view(actor, record, scope):
        raise NotFound("Record not found")
    return record


def ensure_can_mutate(
    actor: Actor,
    record: Optional[LifecycleRecord],
    change: Optional[Patch] = None,
    scope: AccessScope = EMPTY_SCOPE,
) -> None:
    """
    Raises:
        NotFound: Record missing or hidden from actor
        Forbidden: Record visible but actor may not apply change
    """
    ensure_can_view(actor, record, scope)
    if not can_mutate(actor, record, change, scope):
        raise Forbidden(f"{actor.role.value} may not modify this record")


def ensure_can_create(actor: Actor, kind: EntityKind) -> None:
    if not can_create(actor, kind):
        raise Forbidden(f"{actor.role.value} may not create {kind.value} records")


def ensure_can_assign_role(actor: Actor, role: Role, request_type: Optional[str] = None) -> None:
    if not can_assign_role(actor, role, request_type):
        raise Forbidden(f"{actor.role.value} may not assign role {role.value}")
