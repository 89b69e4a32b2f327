"""
Conformance suite: every test runs against both the embedded and the remote backend and
must behave identically.
"""

import pytest

from conftest import contract_input
from warrantyhub.domain.aggregation import financial_totals, outstanding_balance_cents
from warrantyhub.domain.exceptions import AlreadyExists, InvalidTransition, Locked, NotFound, ValidationError
from warrantyhub.domain.models import (
    BatchPaymentStatus,
    BatchStatus,
    ContractStatus,
    CreateBatchInput,
    CreateRemittanceInput,
    RemittanceStatus,
    warranty_id_from_contract_id,
)
from warrantyhub.domain.patches import (
    BatchFieldEdit,
    BatchPaymentChange,
    BatchStatusChange,
    ContractFieldEdit,
    ContractStatusChange,
    RemittanceFieldEdit,
    RemittanceStatusChange,
)

pytestmark = pytest.mark.integration


async def test_create_starts_in_initial_state(stores):
    contract = await stores.contracts.create(contract_input())

    assert contract.status == ContractStatus.DRAFT
    assert contract.id
    assert contract.warranty_id == warranty_id_from_contract_id(contract.id)
    assert contract.updated_at >= contract.created_at


async def test_create_then_get_round_trips(stores):
    created = await stores.contracts.create(contract_input(vehicle_mileage_km=42000))
    fetched = await stores.contracts.get(created.id)

    assert fetched.contract_number == "C-1001"
    assert fetched.customer_name == "Jordan Lee"
    assert fetched.vehicle_mileage_km == 42000
    assert fetched.pricing_base_price_cents == 50000
    assert fetched.status == ContractStatus.DRAFT
    assert fetched.warranty_id == created.warranty_id


async def test_get_missing_returns_none(stores):
    assert await stores.contracts.get("does-not-exist") is None


async def test_list_newest_first(stores):
    first = await stores.contracts.create(contract_input("C-1"))
    second = await stores.contracts.create(contract_input("C-2"))

    assert [c.id for c in await stores.contracts.list()] == [second.id, first.id]


async def test_create_validates_required_fields(stores):
    with pytest.raises(ValidationError, match="Customer name is required"):
        await stores.contracts.create(contract_input(customer_name="  "))
    assert await stores.contracts.list() == []


async def test_create_ignores_caller_supplied_status(stores):
    contract = await stores.contracts.create({**vars(contract_input()), "status": "PAID"})
    assert contract.status == ContractStatus.DRAFT


async def test_duplicate_number_already_exists(stores):
    await stores.contracts.create(contract_input("C-7"))
    with pytest.raises(AlreadyExists):
        await stores.contracts.create(contract_input("C-7"))


async def test_update_missing_record_is_not_found(stores):
    with pytest.raises(NotFound):
        await stores.contracts.update("does-not-exist", ContractStatusChange(ContractStatus.SOLD))


async def test_contract_lifecycle_scenario(stores):
    """DRAFT 50000/30000 -> SOLD -> edit locked -> PAID skipped -> REMITTED -> totals"""
    contract = await stores.contracts.create(contract_input())

    sold = await stores.contracts.update(
        contract.id,
        ContractStatusChange(ContractStatus.SOLD, by_user_id="emp-1", by_email="sam@northmotors.test"),
    )
    assert sold.status == ContractStatus.SOLD
    assert sold.sold_by_user_id == "emp-1"
    assert sold.sold_at is not None

    with pytest.raises(Locked):
        await stores.contracts.update(contract.id, ContractFieldEdit({"customer_name": "Changed"}))
    with pytest.raises(InvalidTransition):
        await stores.contracts.update(contract.id, ContractStatusChange(ContractStatus.PAID))

    remitted = await stores.contracts.update(contract.id, ContractStatusChange(ContractStatus.REMITTED))
    assert remitted.status == ContractStatus.REMITTED
    assert remitted.sold_by_user_id == "emp-1"

    stored = await stores.contracts.get(contract.id)
    assert stored.status == ContractStatus.REMITTED
    assert stored.customer_name == "Jordan Lee"

    totals = financial_totals(await stores.contracts.list())
    assert (totals.retail_cents, totals.cost_cents, totals.margin_cents) == (50000, 30000, 20000)


async def test_field_edit_while_draft(stores):
    contract = await stores.contracts.create(contract_input())
    updated = await stores.contracts.update(contract.id, ContractFieldEdit({"vin": "JH4KA8260MC000000"}))

    assert updated.vin == "JH4KA8260MC000000"
    assert (await stores.contracts.get(contract.id)).vin == "JH4KA8260MC000000"


async def test_field_edit_cannot_take_another_number(stores):
    await stores.contracts.create(contract_input("C-1"))
    second = await stores.contracts.create(contract_input("C-2"))
    with pytest.raises(AlreadyExists):
        await stores.contracts.update(second.id, ContractFieldEdit({"contract_number": "C-1"}))


async def test_same_status_is_noop_refreshing_updated_at(stores):
    contract = await stores.contracts.create(contract_input())
    again = await stores.contracts.update(contract.id, ContractStatusChange(ContractStatus.DRAFT))

    assert again.status == ContractStatus.DRAFT
    assert again.updated_at >= contract.updated_at


async def test_batch_payment_scenario(stores):
    """CLOSED/UNPAID batch counts as outstanding until it is marked paid"""
    batch = await stores.batches.create(CreateBatchInput(batch_number="B-1", dealer_id="dealer-1", total_cents=12000))
    assert batch.state == (BatchStatus.OPEN, BatchPaymentStatus.UNPAID)

    with pytest.raises(InvalidTransition):
        await stores.batches.update(batch.id, BatchPaymentChange(BatchPaymentStatus.PAID))

    closed = await stores.batches.update(batch.id, BatchStatusChange(BatchStatus.CLOSED))
    assert closed.state == (BatchStatus.CLOSED, BatchPaymentStatus.UNPAID)
    assert outstanding_balance_cents(await stores.batches.list()) == 12000

    with pytest.raises(Locked):
        await stores.batches.update(batch.id, BatchFieldEdit({"total_cents": 1}))

    paid = await stores.batches.update(batch.id, BatchPaymentChange(BatchPaymentStatus.PAID))
    assert paid.payment_status == BatchPaymentStatus.PAID
    assert paid.paid_at is not None
    assert outstanding_balance_cents(await stores.batches.list()) == 0

    with pytest.raises(InvalidTransition):
        await stores.batches.update(batch.id, BatchPaymentChange(BatchPaymentStatus.PAID))


async def test_open_batch_membership_edit(stores):
    batch = await stores.batches.create(CreateBatchInput(batch_number="B-2"))
    updated = await stores.batches.update(
        batch.id, BatchFieldEdit({"contract_ids": ["c-1", "c-2"], "subtotal_cents": 500, "total_cents": 565})
    )

    stored = await stores.batches.get(batch.id)
    assert updated.contract_ids == ["c-1", "c-2"]
    assert stored.contract_ids == ["c-1", "c-2"]
    assert stored.total_cents == 565


async def test_remittance_lifecycle(stores):
    remittance = await stores.remittances.create(
        CreateRemittanceInput(remittance_number="R-1", amount_cents=12000, dealer_id="dealer-1")
    )
    assert remittance.status == RemittanceStatus.DUE

    edited = await stores.remittances.update(remittance.id, RemittanceFieldEdit({"amount_cents": 13000}))
    assert edited.amount_cents == 13000

    paid = await stores.remittances.update(remittance.id, RemittanceStatusChange(RemittanceStatus.PAID))
    assert paid.status == RemittanceStatus.PAID

    with pytest.raises(Locked):
        await stores.remittances.update(remittance.id, RemittanceFieldEdit({"amount_cents": 1}))


async def test_remittance_requires_amount(stores):
    with pytest.raises(ValidationError):
        await stores.remittances.create({"remittance_number": "R-2"})
