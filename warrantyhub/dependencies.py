"""Wiring for stores, clients and services according to the configured backend mode"""

from functools import lru_cache
from typing import Mapping

from sqlalchemy.orm import sessionmaker

from warrantyhub.config import AppMode, settings
from warrantyhub.domain.models import Batch, Contract, ProductRef, Remittance
from warrantyhub.infrastructure.clients.rest import RestClient
from warrantyhub.infrastructure.database.repositories import KeyValueRepository
from warrantyhub.infrastructure.database.session import build_engine, build_session_factory
from warrantyhub.infrastructure.stores.base import LifecycleStore
from warrantyhub.infrastructure.stores.directory import read_dealer_members, read_products
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
from warrantyhub.services.audit import AuditLog
from warrantyhub.services.lifecycle import BatchService, ContractService, DealerMembers, RemittanceService
from warrantyhub.services.reporting import ReportingService


def get_app_mode() -> AppMode:
    return settings.app_mode


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    """Embedded store sessions (the audit log uses these in every mode)"""
    return build_session_factory(build_engine())


def get_repository() -> KeyValueRepository:
    return KeyValueRepository(get_session_factory())


def get_rest_client() -> RestClient:
    """Provide remote backend client instance"""
    return RestClient()


def get_contract_store() -> LifecycleStore[Contract]:
    if get_app_mode() == "remote":
        return RemoteContractStore(get_rest_client())
    return EmbeddedContractStore(get_repository())


def get_batch_store() -> LifecycleStore[Batch]:
    if get_app_mode() == "remote":
        return RemoteBatchStore(get_rest_client())
    return EmbeddedBatchStore(get_repository())


def get_remittance_store() -> LifecycleStore[Remittance]:
    if get_app_mode() == "remote":
        return RemoteRemittanceStore(get_rest_client())
    return EmbeddedRemittanceStore(get_repository())


def get_audit_log() -> AuditLog:
    return AuditLog(get_repository())


def get_dealer_members() -> DealerMembers:
    """Recorded dealer memberships (embedded mode only)"""
    if get_app_mode() == "remote":
        return {}
    return read_dealer_members(get_repository())


def get_products() -> Mapping[str, ProductRef]:
    """Catalog products for provider visibility (embedded mode only)"""
    if get_app_mode() == "remote":
        return {}
    return read_products(get_repository())


def get_contract_service() -> ContractService:
    return ContractService(get_contract_store(), get_audit_log(), get_dealer_members(), get_products())


def get_batch_service() -> BatchService:
    return BatchService(get_batch_store(), get_contract_service(), get_audit_log(), get_dealer_members())


def get_remittance_service() -> RemittanceService:
    return RemittanceService(get_remittance_store(), get_audit_log(), get_dealer_members())


def get_reporting_service() -> ReportingService:
    contracts = get_contract_service()
    batches = BatchService(get_batch_store(), contracts, get_audit_log(), contracts.dealer_members)
    return ReportingService(contracts, batches, contracts.products)
