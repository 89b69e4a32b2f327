"""Unit tests for row decoding defaults"""

from datetime import datetime, timezone

from conftest import make_batch, make_contract
from warrantyhub.domain.models import (
    BatchPaymentStatus,
    BatchStatus,
    ContractStatus,
    EntityKind,
    RemittanceStatus,
    warranty_id_from_contract_id,
)
from warrantyhub.infrastructure.stores.codecs import decode, encode, encode_changes

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def test_warranty_id_derivation():
    assert warranty_id_from_contract_id("3f2a9c1e-77b0-4d7e-9d1a-0c5e2b8f6a11") == "WH-3F2A9C1E77B0"
    assert warranty_id_from_contract_id("abc", prefix="X-") == "X-ABC"


def test_encode_uses_wire_values():
    row = encode(make_batch(contract_ids=("c-1",)))
    assert row["status"] == "OPEN"
    assert row["payment_status"] == "UNPAID"
    assert row["contract_ids"] == ["c-1"]
    assert row["created_at"] == "2024-03-02T00:00:00+00:00"


def test_encode_changes_is_partial():
    assert encode_changes({"status": ContractStatus.SOLD, "sold_at": NOW}) == {
        "status": "SOLD",
        "sold_at": "2024-05-01T08:00:00+00:00",
    }


def test_decode_round_trips_a_record():
    contract = make_contract(sold_at=NOW, vehicle_mileage_km=42000)
    assert decode(EntityKind.CONTRACT, encode(contract), NOW) == contract


def test_decode_fills_lifecycle_defaults():
    row = {
        "id": "5d7c0b6e-1111-2222-3333-444455556666",
        "contract_number": "C-1",
        "customer_name": "Jordan Lee",
        "created_at": "2024-03-01T10:00:00Z",
    }

    contract = decode(EntityKind.CONTRACT, row, NOW)

    assert contract.status == ContractStatus.DRAFT
    assert contract.created_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert contract.updated_at == contract.created_at
    assert contract.warranty_id == "WH-5D7C0B6E1111"


def test_decode_missing_id_and_timestamps():
    remittance = decode(EntityKind.REMITTANCE, {"remittance_number": "R-1"}, NOW)
    assert remittance.id
    assert decode(EntityKind.REMITTANCE, {"remittance_number": "R-1"}, NOW).id == remittance.id
    assert decode(EntityKind.REMITTANCE, {"remittance_number": "R-2"}, NOW).id != remittance.id
    assert remittance.created_at == NOW
    assert remittance.amount_cents == 0
    assert remittance.status == RemittanceStatus.DUE


def test_decode_batch_defaults():
    batch = decode(EntityKind.BATCH, {"id": "b-1", "batch_number": "B-1", "contract_ids": "c-1"}, NOW)
    assert batch.state == (BatchStatus.OPEN, BatchPaymentStatus.UNPAID)
    assert batch.contract_ids == []
    assert batch.tax_rate_pct == 0


def test_decode_rejects_blank_required_fields():
    assert decode(EntityKind.CONTRACT, {"id": "c-1", "contract_number": " ", "customer_name": "A"}, NOW) is None
    assert decode(EntityKind.BATCH, {"id": "b-1"}, NOW) is None


def test_decode_rejects_unknown_status():
    row = {"id": "c-1", "contract_number": "C-1", "customer_name": "A", "status": "VOID"}
    assert decode(EntityKind.CONTRACT, row, NOW) is None


def test_decode_drops_wrongly_typed_optionals():
    row = {
        "id": "c-1",
        "contract_number": "C-1",
        "customer_name": "A",
        "vehicle_mileage_km": "42000",
        "pricing_base_price_cents": True,
        "vin": 123,
        "sold_at": "not a date",
    }
    contract = decode(EntityKind.CONTRACT, row, NOW)
    assert contract.vehicle_mileage_km is None
    assert contract.pricing_base_price_cents is None
    assert contract.vin is None
    assert contract.sold_at is None
