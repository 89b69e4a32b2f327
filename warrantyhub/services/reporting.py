"""Dealer reporting over the records an actor can see"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Mapping, Optional

from warrantyhub.domain.aggregation import (
    FinancialTotals,
    SellerRollup,
    batches_for_dealer,
    filter_by_date_range,
    filter_contracts,
    financial_totals,
    outstanding_balance_cents,
    paid_balance_cents,
    seller_rollup,
    sort_by_effective_date,
)
from warrantyhub.domain.models import Actor, Batch, Contract, ContractStatus, ProductRef
from warrantyhub.services.lifecycle import BatchService, ContractService


@dataclass
class DealerReport:
    contracts: List[Contract]
    totals: FinancialTotals
    sellers: List[SellerRollup]
    batches: List[Batch] = field(default_factory=list)
    outstanding_cents: int = 0
    paid_cents: int = 0


class ReportingService:
    def __init__(
        self,
        contracts: ContractService,
        batches: BatchService,
        products: Optional[Mapping[str, ProductRef]] = None,
    ):
        self.contracts = contracts
        self.batches = batches
        self.products = products if products is not None else contracts.products

    async def dealer_report(
        self,
        actor: Actor,
        start: Optional[date] = None,
        end: Optional[date] = None,
        *,
        status: Optional[ContractStatus] = None,
        sold_by: Optional[str] = None,
        provider_id: Optional[str] = None,
        product_type: Optional[str] = None,
        query: Optional[str] = None,
    ) -> DealerReport:
        """
        Totals, per-seller rollup and batch balances for actor's visible records.

        Contract filters and the date range narrow the contract figures only; batch
        balances cover every batch of the actor's dealer.
        """
        visible = await self.contracts.list(actor)
        selected = filter_contracts(
            visible,
            status=status,
            sold_by=sold_by,
            provider_id=provider_id,
            product_type=product_type,
            query=query,
            products=self.products,
        )
        selected = sort_by_effective_date(filter_by_date_range(selected, start, end))

        batches = await self.batches.list(actor)
        if actor.dealer_id:
            batches = batches_for_dealer(batches, actor.dealer_id, {c.id for c in visible})

        return DealerReport(
            contracts=selected,
            totals=financial_totals(selected),
            sellers=seller_rollup(selected),
            batches=batches,
            outstanding_cents=outstanding_balance_cents(batches),
            paid_cents=paid_balance_cents(batches),
        )
