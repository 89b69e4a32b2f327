"""Batch totals and membership rules"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from warrantyhub.domain.exceptions import AlreadyExists, ValidationError
from warrantyhub.domain.models import Batch, Contract, ContractStatus


@dataclass
class BatchTotals:
    subtotal_cents: int
    tax_rate_pct: float
    tax_cents: int
    total_cents: int


def compute_tax_cents(subtotal_cents: int, tax_rate_pct: float) -> int:
    """
    Tax on an integer cent amount, rounded half up to the cent.

    Example:
        subtotal 12345, rate 13 -> 1604.85 -> 1605
    """
    rate = Decimal(str(tax_rate_pct))
    tax = Decimal(subtotal_cents) * rate / Decimal(100)
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_batch_totals(contracts: Iterable[Contract], tax_rate_pct: float = 0) -> BatchTotals:
    """Amount owed for the member contracts: dealer cost plus addon cost, plus tax"""
    if tax_rate_pct < 0:
        raise ValidationError("Tax rate must not be negative")

    subtotal = sum(c.cost_cents for c in contracts)
    tax = compute_tax_cents(subtotal, tax_rate_pct)
    return BatchTotals(
        subtotal_cents=subtotal,
        tax_rate_pct=tax_rate_pct,
        tax_cents=tax,
        total_cents=subtotal + tax,
    )


def check_members_sold(contracts: Iterable[Contract]) -> None:
    """
    Raises:
        ValidationError: If any member contract is not SOLD
    """
    not_sold = [c.contract_number for c in contracts if c.status != ContractStatus.SOLD]
    if not_sold:
        raise ValidationError(f"Only SOLD contracts can be batched: {', '.join(not_sold)}")


def membership_index(batches: Iterable[Batch]) -> Dict[str, str]:
    """contract id -> id of the batch that already holds it"""
    index: Dict[str, str] = {}
    for b in batches:
        for cid in b.contract_ids:
            index.setdefault(cid, b.id)
    return index


def check_unique_membership(
    contract_ids: List[str],
    batches: Iterable[Batch],
    exclude_batch_id: Optional[str] = None,
) -> None:
    """
    A contract may belong to at most one batch.

    Raises:
        ValidationError: Duplicate ids in the requested membership
        AlreadyExists: A contract is already a member of another batch
    """
    if len(set(contract_ids)) != len(contract_ids):
        raise ValidationError("Contract ids must be unique within a batch")

    index = membership_index(b for b in batches if b.id != exclude_batch_id)
    taken = [cid for cid in contract_ids if cid in index]
    if taken:
        raise AlreadyExists(f"Contracts already batched: {', '.join(taken)}")
