"""Pytest fixtures for testing"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Generator

import httpx
import pytest

from mock_services.rest_backend.main import API_KEY, create_app
from warrantyhub.domain.models import (
    Actor,
    Batch,
    BatchPaymentStatus,
    BatchStatus,
    Contract,
    ContractStatus,
    CreateContractInput,
    Role,
)
from warrantyhub.infrastructure.clients.rest import RestClient
from warrantyhub.infrastructure.database.repositories import KeyValueRepository
from warrantyhub.infrastructure.database.session import build_engine, build_session_factory
from warrantyhub.infrastructure.stores.base import LifecycleStore
from warrantyhub.infrastructure.stores.embedded import (
    EmbeddedBatchStore,
    EmbeddedContractStore,
    EmbeddedRemittanceStore,
)
from warrantyhub.infrastructure.stores.remote import (
    RemoteBatchStore,
    RemoteContractStore,
    RemoteRemittanceStore,
)

TEST_API_BASE = "http://backend.test"


@dataclass
class Stores:
    backend: str
    contracts: LifecycleStore
    batches: LifecycleStore
    remittances: LifecycleStore


def make_rest_client(app) -> RestClient:
    """Client wired straight into an in-process mock backend"""
    return RestClient(base_url=TEST_API_BASE, api_key=API_KEY, transport=httpx.ASGITransport(app=app))


@pytest.fixture
def repository(tmp_path) -> Generator[KeyValueRepository, None, None]:
    """Embedded key-value store on a throwaway SQLite file"""
    engine = build_engine(f"sqlite:///{tmp_path / 'warrantyhub.db'}")
    yield KeyValueRepository(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def backend_app():
    return create_app()


@pytest.fixture
def rest_client(backend_app) -> RestClient:
    return make_rest_client(backend_app)


@pytest.fixture
def embedded_stores(repository) -> Stores:
    return Stores(
        backend="embedded",
        contracts=EmbeddedContractStore(repository),
        batches=EmbeddedBatchStore(repository),
        remittances=EmbeddedRemittanceStore(repository),
    )


@pytest.fixture
def remote_stores(rest_client) -> Stores:
    return Stores(
        backend="remote",
        contracts=RemoteContractStore(rest_client),
        batches=RemoteBatchStore(rest_client),
        remittances=RemoteRemittanceStore(rest_client),
    )


@pytest.fixture(params=["embedded", "remote"])
def stores(request) -> Stores:
    """Each test using this fixture runs once per backend"""
    return request.getfixturevalue(f"{request.param}_stores")


# Actors


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", email="admin@warrantyhub.test", role=Role.ADMIN)


@pytest.fixture
def super_admin() -> Actor:
    return Actor(id="root-1", email="root@warrantyhub.test", role=Role.SUPER_ADMIN)


@pytest.fixture
def dealer_admin() -> Actor:
    return Actor(id="dadmin-1", email="owner@northmotors.test", role=Role.DEALER_ADMIN, dealer_id="dealer-1")


@pytest.fixture
def employee() -> Actor:
    return Actor(id="emp-1", email="sam@northmotors.test", role=Role.DEALER_EMPLOYEE, dealer_id="dealer-1")


@pytest.fixture
def other_employee() -> Actor:
    return Actor(id="emp-2", email="alex@northmotors.test", role=Role.DEALER_EMPLOYEE, dealer_id="dealer-1")


@pytest.fixture
def provider() -> Actor:
    return Actor(id="prov-user-1", email="claims@shieldco.test", role=Role.PROVIDER, provider_id="prov-1")


# Records


def contract_input(number: str = "C-1001", **overrides: Any) -> CreateContractInput:
    values = dict(
        contract_number=number,
        customer_name="Jordan Lee",
        customer_email="jordan@example.test",
        vin="1HGCM82633A004352",
        dealer_id="dealer-1",
        provider_id="prov-1",
        product_id="prod-1",
        pricing_base_price_cents=50000,
        pricing_dealer_cost_cents=30000,
        created_by_user_id="emp-1",
        created_by_email="sam@northmotors.test",
    )
    values.update(overrides)
    return CreateContractInput(**values)


def make_contract(
    contract_id: str = "c-1",
    status: ContractStatus = ContractStatus.SOLD,
    created_at: datetime | None = None,
    **overrides: Any,
) -> Contract:
    created_at = created_at or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    values = dict(
        id=contract_id,
        warranty_id=f"WH-{contract_id.upper()}",
        contract_number=f"N-{contract_id}",
        customer_name="Jordan Lee",
        status=status,
        created_at=created_at,
        updated_at=created_at,
        dealer_id="dealer-1",
        provider_id="prov-1",
        product_id="prod-1",
        pricing_base_price_cents=50000,
        pricing_dealer_cost_cents=30000,
        created_by_user_id="emp-1",
        created_by_email="sam@northmotors.test",
    )
    values.update(overrides)
    return Contract(**values)


def make_batch(
    batch_id: str = "b-1",
    status: BatchStatus = BatchStatus.OPEN,
    payment_status: BatchPaymentStatus = BatchPaymentStatus.UNPAID,
    **overrides: Any,
) -> Batch:
    created_at = datetime(2024, 3, 2, tzinfo=timezone.utc)
    values = dict(
        id=batch_id,
        batch_number=f"B-{batch_id}",
        status=status,
        payment_status=payment_status,
        created_at=created_at,
        updated_at=created_at + timedelta(minutes=1),
        dealer_id="dealer-1",
    )
    values.update(overrides)
    return Batch(**values)
