"""
Caller-facing lifecycle operations.

Every call takes the acting user explicitly. A mutation runs in a fixed order: visibility
(NotFound), guard (Forbidden), store update (Locked / InvalidTransition), then an audit
event.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import AbstractSet, Dict, Generic, Iterable, List, Mapping, Optional

from warrantyhub.domain.authorization import (
    AccessScope,
    can_view,
    ensure_can_create,
    ensure_can_mutate,
    ensure_can_view,
)
from warrantyhub.domain.batches import (
    check_members_sold,
    check_unique_membership,
    compute_batch_totals,
)
from warrantyhub.domain.exceptions import Locked
from warrantyhub.domain.models import (
    Actor,
    Batch,
    BatchPaymentStatus,
    BatchStatus,
    Contract,
    ContractStatus,
    CreateBatchInput,
    CreateContractInput,
    CreateRemittanceInput,
    EntityKind,
    PricingSnapshot,
    ProductRef,
    Remittance,
    RemittanceStatus,
)
from warrantyhub.domain.patches import (
    BatchFieldEdit,
    BatchPaymentChange,
    BatchStatusChange,
    ContractStatusChange,
    Patch,
    RemittanceStatusChange,
    is_status_change,
    resolve_patch,
)
from warrantyhub.domain.transitions import CHAINS, check_transition, initial_state
from warrantyhub.infrastructure.stores.base import LifecycleStore, R
from warrantyhub.services.audit import AuditLog
from warrantyhub.utils.date_utils import utc_now

logger = logging.getLogger(__name__)

DealerMembers = Mapping[str, AbstractSet[str]]


class LifecycleService(Generic[R]):
    """Guarded list / get / update shared by the per-kind services"""

    kind: EntityKind

    def __init__(
        self,
        store: LifecycleStore[R],
        audit: Optional[AuditLog] = None,
        dealer_members: Optional[DealerMembers] = None,
    ):
        self.store = store
        self.audit = audit
        self.dealer_members = dealer_members or {}

    async def scope(self, actor: Actor) -> AccessScope:
        return AccessScope(dealer_members=self.dealer_members)

    async def list(self, actor: Actor) -> List[R]:
        """Records visible to actor, newest first"""
        scope = await self.scope(actor)
        return [r for r in await self.store.list() if can_view(actor, r, scope)]

    async def get(self, actor: Actor, record_id: str) -> R:
        """
        Raises:
            NotFound: Missing, or hidden from actor
        """
        return ensure_can_view(actor, await self.store.get(record_id), await self.scope(actor))

    async def update(self, actor: Actor, record_id: str, patch: Patch) -> R:
        """
        Raises:
            NotFound, Forbidden, Locked, InvalidTransition
        """
        current = await self.store.get(record_id)
        ensure_can_mutate(actor, current, patch, await self.scope(actor))
        updated = await self.store.update(record_id, patch, actor_id=actor.id)
        self._record(
            actor,
            f"{self.kind.name}_STATUS_CHANGED" if is_status_change(patch) else f"{self.kind.name}_UPDATED",
            updated,
            meta={"patch": type(patch).__name__},
        )
        return updated

    def _record(self, actor: Actor, event: str, record: R, meta: Optional[Dict] = None) -> None:
        logger.info(
            "Lifecycle action",
            extra={"event": event, "kind": self.kind.value, "record_id": record.id, "actor_id": actor.id},
        )
        if self.audit is None:
            return
        self.audit.log_event(
            event,
            actor,
            entity_type=self.kind.value,
            entity_id=record.id,
            dealer_id=getattr(record, "dealer_id", None),
            provider_id=getattr(record, "provider_id", None),
            message=f"{event.replace('_', ' ').lower()}: {record.id}",
            meta=meta,
        )


class ContractService(LifecycleService[Contract]):
    kind = EntityKind.CONTRACT

    def __init__(
        self,
        store: LifecycleStore[Contract],
        audit: Optional[AuditLog] = None,
        dealer_members: Optional[DealerMembers] = None,
        products: Optional[Mapping[str, ProductRef]] = None,
    ):
        super().__init__(store, audit, dealer_members)
        self.products = products or {}

    async def scope(self, actor: Actor) -> AccessScope:
        identity = actor.provider_identity
        product_ids = frozenset(p.id for p in self.products.values() if identity and p.provider_id == identity)
        return AccessScope(dealer_members=self.dealer_members, provider_product_ids=product_ids)

    async def visible_ids(self, actor: Actor) -> AbstractSet[str]:
        return frozenset(c.id for c in await self.list(actor))

    async def create(
        self,
        actor: Actor,
        data: CreateContractInput,
        pricing: Optional[PricingSnapshot] = None,
    ) -> Contract:
        """
        Create a DRAFT contract owned by actor.

        The catalog pricing snapshot is copied in once here and never re-fetched.

        Raises:
            Forbidden: Actor is not dealer staff
            ValidationError, AlreadyExists
        """
        ensure_can_create(actor, self.kind)
        data = replace(
            data,
            dealer_id=data.dealer_id or actor.dealer_id,
            created_by_user_id=actor.id,
            created_by_email=actor.email,
        )
        if pricing is not None:
            data.apply_pricing(pricing)

        contract = await self.store.create(data)
        self._record(actor, "CONTRACT_CREATED", contract)
        return contract

    async def update(self, actor: Actor, record_id: str, patch: Patch) -> Contract:
        if isinstance(patch, ContractStatusChange):
            # Attribution defaults to the acting user
            patch = replace(
                patch,
                by_user_id=patch.by_user_id or actor.id,
                by_email=patch.by_email or actor.email,
            )
        return await super().update(actor, record_id, patch)

    async def mark_sold(self, actor: Actor, contract_id: str) -> Contract:
        return await self.update(actor, contract_id, ContractStatusChange(ContractStatus.SOLD))

    async def mark_remitted(self, actor: Actor, contract_id: str) -> Contract:
        return await self.update(actor, contract_id, ContractStatusChange(ContractStatus.REMITTED))

    async def mark_paid(self, actor: Actor, contract_id: str) -> Contract:
        return await self.update(actor, contract_id, ContractStatusChange(ContractStatus.PAID))


class BatchService(LifecycleService[Batch]):
    """Payment batches; membership is resolved through the contract service"""

    kind = EntityKind.BATCH

    def __init__(
        self,
        store: LifecycleStore[Batch],
        contracts: ContractService,
        audit: Optional[AuditLog] = None,
        dealer_members: Optional[DealerMembers] = None,
    ):
        super().__init__(store, audit, dealer_members)
        self.contracts = contracts

    async def scope(self, actor: Actor) -> AccessScope:
        return AccessScope(
            dealer_members=self.dealer_members,
            visible_contract_ids=await self.contracts.visible_ids(actor),
        )

    async def _members(
        self,
        actor: Actor,
        contract_ids: Iterable[str],
        exclude_batch_id: Optional[str] = None,
    ) -> List[Contract]:
        """
        Resolve and check a requested membership.

        Raises:
            NotFound: A contract is missing or hidden from actor
            ValidationError: Duplicates, or a contract that is not SOLD
            AlreadyExists: A contract already belongs to another batch
        """
        contract_ids = list(contract_ids)
        members = [await self.contracts.get(actor, cid) for cid in contract_ids]
        check_unique_membership(contract_ids, await self.store.list(), exclude_batch_id=exclude_batch_id)
        check_members_sold(members)
        return members

    async def create(
        self,
        actor: Actor,
        batch_number: str,
        contract_ids: Iterable[str] = (),
        tax_rate_pct: float = 0,
    ) -> Batch:
        """Create an OPEN batch with totals frozen from its members"""
        ensure_can_create(actor, self.kind)
        members = await self._members(actor, contract_ids)
        totals = compute_batch_totals(members, tax_rate_pct)

        batch = await self.store.create(
            CreateBatchInput(
                batch_number=batch_number,
                dealer_id=actor.dealer_id,
                contract_ids=[c.id for c in members],
                subtotal_cents=totals.subtotal_cents,
                tax_rate_pct=totals.tax_rate_pct,
                tax_cents=totals.tax_cents,
                total_cents=totals.total_cents,
            )
        )
        self._record(actor, "BATCH_CREATED", batch, meta={"contract_count": len(members)})
        return batch

    async def set_members(
        self,
        actor: Actor,
        batch_id: str,
        contract_ids: Iterable[str],
        tax_rate_pct: Optional[float] = None,
    ) -> Batch:
        """
        Replace the membership of an OPEN batch and recompute its totals.

        Raises:
            NotFound, Forbidden
            Locked: Batch already closed
            ValidationError, AlreadyExists: See _members
        """
        batch = await self.get(actor, batch_id)
        ensure_can_mutate(actor, batch, None, await self.scope(actor))
        if batch.state != initial_state(self.kind):
            raise Locked("Batch is locked (only OPEN batches are editable)")

        members = await self._members(actor, contract_ids, exclude_batch_id=batch.id)
        rate = batch.tax_rate_pct if tax_rate_pct is None else tax_rate_pct
        totals = compute_batch_totals(members, rate)
        patch = BatchFieldEdit(
            {
                "contract_ids": [c.id for c in members],
                "subtotal_cents": totals.subtotal_cents,
                "tax_rate_pct": totals.tax_rate_pct,
                "tax_cents": totals.tax_cents,
                "total_cents": totals.total_cents,
            }
        )
        return await self.update(actor, batch_id, patch)

    async def _pending_members(self, batch: Batch, target: ContractStatus) -> List[str]:
        """
        Member contracts one step before target. Members already at or past target are skipped.

        Raises:
            InvalidTransition: A member is more than one step before target
        """
        chain = CHAINS[EntityKind.CONTRACT]
        pending = []
        for contract_id in batch.contract_ids:
            contract = await self.contracts.store.get(contract_id)
            if contract is None or chain.index(contract.status) >= chain.index(target):
                continue
            check_transition(EntityKind.CONTRACT, contract.status, target)
            pending.append(contract_id)
        return pending

    async def _advance_members(
        self, actor: Actor, batch: Batch, contract_ids: List[str], target: ContractStatus
    ) -> None:
        """Move member contracts to target, stamping actor as attribution"""
        patch = ContractStatusChange(target, by_user_id=actor.id, by_email=actor.email)
        for contract_id in contract_ids:
            contract = await self.contracts.store.update(contract_id, patch, actor_id=actor.id)
            self.contracts._record(
                actor,
                "CONTRACT_STATUS_CHANGED",
                contract,
                meta={"patch": type(patch).__name__, "batch_id": batch.id},
            )

    async def _settle(self, actor: Actor, batch_id: str, patch: Patch, target: ContractStatus) -> Batch:
        """
        Apply a batch status patch and carry its members to target.

        Every check runs before anything is written, so a rejected request leaves the batch
        and its members unchanged.
        """
        current = await self.get(actor, batch_id)
        ensure_can_mutate(actor, current, patch, await self.scope(actor))
        resolve_patch(current, patch, utc_now())
        pending = await self._pending_members(current, target)

        batch = await self.update(actor, batch_id, patch)
        await self._advance_members(actor, batch, pending, target)
        return batch

    async def close(self, actor: Actor, batch_id: str) -> Batch:
        """OPEN -> CLOSED; member contracts SOLD -> REMITTED"""
        return await self._settle(actor, batch_id, BatchStatusChange(BatchStatus.CLOSED), ContractStatus.REMITTED)

    async def create_remittance_batch(
        self,
        actor: Actor,
        batch_number: str,
        contract_ids: Iterable[str],
        tax_rate_pct: float = 0,
    ) -> Batch:
        """Batch that is submitted for payment immediately (created, then closed)"""
        batch = await self.create(actor, batch_number, contract_ids, tax_rate_pct)
        return await self.close(actor, batch.id)

    async def mark_paid(self, actor: Actor, batch_id: str, paid_at: Optional[datetime] = None) -> Batch:
        """
        CLOSED/UNPAID -> CLOSED/PAID; member contracts REMITTED -> PAID.

        Raises:
            Forbidden: Actor is not an admin
            InvalidTransition: Batch still OPEN, or already paid
        """
        patch = BatchPaymentChange(BatchPaymentStatus.PAID, paid_at=paid_at)
        return await self._settle(actor, batch_id, patch, ContractStatus.PAID)


class RemittanceService(LifecycleService[Remittance]):
    kind = EntityKind.REMITTANCE

    async def create(
        self,
        actor: Actor,
        remittance_number: str,
        amount_cents: int,
        provider_id: Optional[str] = None,
    ) -> Remittance:
        """
        Record a DUE remittance owned by actor.

        Raises:
            Forbidden: Actor is neither dealer staff nor an admin
            ValidationError, AlreadyExists
        """
        ensure_can_create(actor, self.kind)
        remittance = await self.store.create(
            CreateRemittanceInput(
                remittance_number=remittance_number,
                amount_cents=amount_cents,
                dealer_id=actor.dealer_id,
                provider_id=provider_id,
                created_by_user_id=actor.id,
                created_by_email=actor.email,
            )
        )
        self._record(actor, "REMITTANCE_CREATED", remittance)
        return remittance

    async def mark_paid(self, actor: Actor, remittance_id: str) -> Remittance:
        return await self.update(actor, remittance_id, RemittanceStatusChange(RemittanceStatus.PAID))
