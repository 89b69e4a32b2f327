"""Financial totals and rollups over already-authorized contract and batch collections"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional

from warrantyhub.domain.models import (
    QUALIFYING_STATUSES,
    Batch,
    BatchPaymentStatus,
    BatchStatus,
    Contract,
    ContractStatus,
    ProductRef,
)
from warrantyhub.utils.date_utils import ensure_aware, exclusive_end_of_day, start_of_day


@dataclass
class FinancialTotals:
    """Money over qualifying contracts, counts over all contracts"""

    retail_cents: int = 0
    cost_cents: int = 0
    margin_cents: int = 0
    count: int = 0
    counts_by_status: Dict[ContractStatus, int] = field(
        default_factory=lambda: {status: 0 for status in ContractStatus}
    )


@dataclass
class SellerRollup:
    email: str
    count: int
    retail_cents: int
    cost_cents: int
    margin_cents: int


def financial_totals(contracts: Iterable[Contract]) -> FinancialTotals:
    """
    Sum retail (base + addon retail) and cost (dealer cost + addon cost).

    DRAFT contracts are unconfirmed sales: they are counted but contribute no money.
    """
    totals = FinancialTotals()
    for c in contracts:
        totals.count += 1
        totals.counts_by_status[c.status] = totals.counts_by_status.get(c.status, 0) + 1
        if c.status in QUALIFYING_STATUSES:
            totals.retail_cents += c.retail_cents
            totals.cost_cents += c.cost_cents

    totals.margin_cents = totals.retail_cents - totals.cost_cents
    return totals


def seller_key(contract: Contract) -> str:
    return ((contract.sold_by_email or "").strip() or (contract.created_by_email or "").strip()).lower()


def seller_rollup(contracts: Iterable[Contract]) -> List[SellerRollup]:
    """
    Group by normalized seller email (falling back to creator email).

    Contracts with neither email are skipped. Output is sorted by count descending;
    ties keep the order in which groups were first seen.
    """
    groups: Dict[str, List[int]] = {}
    for c in contracts:
        key = seller_key(c)
        if not key:
            continue
        count, retail, cost = groups.get(key, [0, 0, 0])
        if c.status in QUALIFYING_STATUSES:
            retail += c.retail_cents
            cost += c.cost_cents
        groups[key] = [count + 1, retail, cost]

    rows = [
        SellerRollup(email=email, count=count, retail_cents=retail, cost_cents=cost, margin_cents=retail - cost)
        for email, (count, retail, cost) in groups.items()
    ]
    # sorted() is stable, so ties stay in first-seen order
    return sorted(rows, key=lambda r: r.count, reverse=True)


def batches_for_dealer(
    batches: Iterable[Batch],
    dealer_id: Optional[str],
    dealer_contract_ids: AbstractSet[str],
) -> List[Batch]:
    """Batches with a matching dealer id or at least one member contract of the dealer"""
    did = (dealer_id or "").strip()
    return [
        b
        for b in batches
        if (did and (b.dealer_id or "").strip() == did) or any(cid in dealer_contract_ids for cid in b.contract_ids)
    ]


def outstanding_balance_cents(batches: Iterable[Batch]) -> int:
    """Closed batches still waiting for payment"""
    return sum(
        b.total_cents or 0
        for b in batches
        if b.status == BatchStatus.CLOSED and b.payment_status == BatchPaymentStatus.UNPAID
    )


def paid_balance_cents(batches: Iterable[Batch]) -> int:
    return sum(b.total_cents or 0 for b in batches if b.payment_status == BatchPaymentStatus.PAID)


def effective_date(contract: Contract) -> Optional[datetime]:
    """First present of sold_at, remitted_at, paid_at, updated_at, created_at"""
    for value in (contract.sold_at, contract.remitted_at, contract.paid_at, contract.updated_at, contract.created_at):
        if isinstance(value, datetime):
            return ensure_aware(value)
    return None


def within_date_range(moment: Optional[datetime], start: Optional[date], end: Optional[date]) -> bool:
    """
    Inclusive day-granularity range check.

    A missing date is always in range so malformed records stay visible in reports.
    """
    if moment is None:
        return True
    moment = ensure_aware(moment)
    if start is not None and moment < start_of_day(start):
        return False
    if end is not None and moment >= exclusive_end_of_day(end):
        return False
    return True


def filter_by_date_range(contracts: Iterable[Contract], start: Optional[date], end: Optional[date]) -> List[Contract]:
    return [c for c in contracts if within_date_range(effective_date(c), start, end)]


def filter_contracts(
    contracts: Iterable[Contract],
    *,
    status: Optional[ContractStatus] = None,
    sold_by: Optional[str] = None,
    provider_id: Optional[str] = None,
    product_type: Optional[str] = None,
    query: Optional[str] = None,
    products: Optional[Mapping[str, ProductRef]] = None,
) -> List[Contract]:
    """
    Report filters: exact status, seller email substring, provider / product type via the
    catalog, and free-text search over the identifying fields.
    """
    sold_by = (sold_by or "").strip().lower()
    provider_id = (provider_id or "").strip()
    product_type = (product_type or "").strip()
    q = (query or "").strip().lower()
    products = products or {}

    result = []
    for c in contracts:
        if status is not None and c.status != status:
            continue
        if sold_by and sold_by not in (c.sold_by_email or "").strip().lower():
            continue
        if provider_id or product_type:
            product = products.get(c.product_id or "")
            effective_provider = (c.provider_id or (product.provider_id if product else "") or "").strip()
            effective_type = product.product_type if product else ""
            if provider_id and effective_provider != provider_id:
                continue
            if product_type and effective_type != product_type:
                continue
        if q:
            haystack = [c.warranty_id, c.contract_number, c.customer_name, c.vin, c.customer_email, c.customer_phone]
            if not any(q in str(v).lower() for v in haystack if v):
                continue
        result.append(c)
    return result


def sort_by_effective_date(contracts: Iterable[Contract]) -> List[Contract]:
    """Newest first; contracts without any date sort last"""
    dated = [(effective_date(c), c) for c in contracts]
    with_date = sorted((p for p in dated if p[0] is not None), key=lambda p: p[0], reverse=True)
    return [c for _, c in with_date] + [c for d, c in dated if d is None]
