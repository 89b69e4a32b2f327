"""Backend mode selection and wiring"""

import pytest

from conftest import contract_input
from warrantyhub import dependencies
from warrantyhub.config import Settings, settings
from warrantyhub.domain.models import Actor, Role
from warrantyhub.infrastructure.stores.directory import DEALER_MEMBERSHIPS_KEY, PRODUCTS_KEY
from warrantyhub.infrastructure.stores.embedded import EmbeddedBatchStore, EmbeddedContractStore
from warrantyhub.infrastructure.stores.remote import RemoteContractStore, RemoteRemittanceStore


@pytest.mark.parametrize(
    "base,key,mode",
    [
        ("https://db.example.test", "key", "remote"),
        ("https://db.example.test", None, "embedded"),
        (None, "key", "embedded"),
        ("  ", "key", "embedded"),
        (None, None, "embedded"),
    ],
)
def test_app_mode(base, key, mode):
    assert Settings(remote_api_base=base, remote_api_key=key).app_mode == mode


def test_defaults():
    defaults = Settings(remote_api_base=None, remote_api_key=None)
    assert defaults.warranty_id_prefix == "WH-"
    assert defaults.audit_log_max_events == 5000
    assert defaults.http_timeout_seconds == 5.0


@pytest.fixture
def isolated_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "embedded_database_url", f"sqlite:///{tmp_path / 'wiring.db'}")
    dependencies.get_session_factory.cache_clear()
    yield settings
    dependencies.get_session_factory.cache_clear()


def test_embedded_wiring(isolated_settings, monkeypatch):
    monkeypatch.setattr(settings, "remote_api_base", None)

    assert isinstance(dependencies.get_contract_store(), EmbeddedContractStore)
    assert isinstance(dependencies.get_batch_service().store, EmbeddedBatchStore)


def test_remote_wiring(isolated_settings, monkeypatch):
    monkeypatch.setattr(settings, "remote_api_base", "https://db.example.test")
    monkeypatch.setattr(settings, "remote_api_key", "key")

    store = dependencies.get_contract_store()
    assert isinstance(store, RemoteContractStore)
    assert store.client.base_url == "https://db.example.test"
    assert isinstance(dependencies.get_remittance_service().store, RemoteRemittanceStore)


async def test_embedded_services_read_memberships_and_products(
    isolated_settings, monkeypatch, dealer_admin, provider
):
    monkeypatch.setattr(settings, "remote_api_base", None)
    repository = dependencies.get_repository()
    outside_employee = Actor(id="emp-9", email="kim@eastside.test", role=Role.DEALER_EMPLOYEE)
    contract = await dependencies.get_contract_service().create(
        outside_employee, contract_input(dealer_id=None, provider_id=None, product_id="prod-7")
    )

    assert await dependencies.get_contract_service().list(dealer_admin) == []
    assert await dependencies.get_contract_service().list(provider) == []

    repository.write(
        DEALER_MEMBERSHIPS_KEY,
        [{"dealer_id": "dealer-1", "user_id": "emp-9"}, {"dealer_id": "dealer-1"}, {"user_id": "emp-3"}],
    )
    repository.write(
        PRODUCTS_KEY,
        [{"id": "prod-7", "provider_id": "prov-1", "product_type": "GAP"}, {"id": "prod-8"}],
    )

    service = dependencies.get_contract_service()
    assert service.dealer_members == {"dealer-1": frozenset({"emp-9"})}
    assert [c.id for c in await service.list(dealer_admin)] == [contract.id]
    assert [c.id for c in await service.list(provider)] == [contract.id]
    assert list(dependencies.get_reporting_service().products) == ["prod-7"]


def test_remote_services_ignore_embedded_memberships(isolated_settings, monkeypatch):
    monkeypatch.setattr(settings, "remote_api_base", "https://db.example.test")
    monkeypatch.setattr(settings, "remote_api_key", "key")
    dependencies.get_repository().write(DEALER_MEMBERSHIPS_KEY, [{"dealer_id": "dealer-1", "user_id": "emp-9"}])

    assert dependencies.get_contract_service().dealer_members == {}
