"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union


class EntityKind(str, Enum):
    CONTRACT = "contract"
    BATCH = "batch"
    REMITTANCE = "remittance"


class ContractStatus(str, Enum):
    DRAFT = "DRAFT"
    SOLD = "SOLD"
    REMITTED = "REMITTED"
    PAID = "PAID"


class BatchStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class BatchPaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class RemittanceStatus(str, Enum):
    DUE = "DUE"
    PAID = "PAID"


class Role(str, Enum):
    UNASSIGNED = "UNASSIGNED"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    DEALER_ADMIN = "DEALER_ADMIN"
    DEALER_EMPLOYEE = "DEALER_EMPLOYEE"
    PROVIDER = "PROVIDER"


# Contract statuses that count toward revenue and cost
QUALIFYING_STATUSES = frozenset({ContractStatus.SOLD, ContractStatus.REMITTED, ContractStatus.PAID})

BatchState = Tuple[BatchStatus, BatchPaymentStatus]


def warranty_id_from_contract_id(contract_id: str, prefix: str = "WH-") -> str:
    """
    Derive the customer-facing warranty identifier from a contract id.

    Example:
        "3f2a9c1e-77b0-4d7e-9d1a-0c5e2b8f6a11" -> "WH-3F2A9C1E77B0"
    """
    compact = contract_id.replace("-", "").upper()
    return f"{prefix}{compact[:12]}"


@dataclass
class Actor:
    """Identity of the caller, supplied by the authentication collaborator"""

    id: str
    email: str
    role: Role
    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    @property
    def is_dealer(self) -> bool:
        return self.role in (Role.DEALER_ADMIN, Role.DEALER_EMPLOYEE)

    @property
    def provider_identity(self) -> str:
        return (self.provider_id or self.id or "").strip()


@dataclass
class Contract:
    """One sold (or draft) warranty agreement"""

    id: str
    warranty_id: str
    contract_number: str
    customer_name: str
    status: ContractStatus
    created_at: datetime
    updated_at: datetime

    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_province: Optional[str] = None
    customer_postal_code: Optional[str] = None

    vin: Optional[str] = None
    vehicle_year: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_trim: Optional[str] = None
    vehicle_mileage_km: Optional[int] = None
    vehicle_body_class: Optional[str] = None
    vehicle_engine: Optional[str] = None
    vehicle_transmission: Optional[str] = None

    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None
    product_id: Optional[str] = None
    product_pricing_id: Optional[str] = None

    # Pricing snapshot captured at sale time
    pricing_term_months: Optional[int] = None
    pricing_term_km: Optional[int] = None
    pricing_deductible_cents: Optional[int] = None
    pricing_base_price_cents: Optional[int] = None
    pricing_dealer_cost_cents: Optional[int] = None
    addon_total_retail_cents: Optional[int] = None
    addon_total_cost_cents: Optional[int] = None

    created_by_user_id: Optional[str] = None
    created_by_email: Optional[str] = None
    sold_by_user_id: Optional[str] = None
    sold_by_email: Optional[str] = None
    sold_at: Optional[datetime] = None
    remitted_by_user_id: Optional[str] = None
    remitted_by_email: Optional[str] = None
    remitted_at: Optional[datetime] = None
    paid_by_user_id: Optional[str] = None
    paid_by_email: Optional[str] = None
    paid_at: Optional[datetime] = None

    @property
    def retail_cents(self) -> int:
        return (self.pricing_base_price_cents or 0) + (self.addon_total_retail_cents or 0)

    @property
    def cost_cents(self) -> int:
        return (self.pricing_dealer_cost_cents or 0) + (self.addon_total_cost_cents or 0)


@dataclass
class Batch:
    """Dealer-side grouping of contracts for payment reconciliation"""

    id: str
    batch_number: str
    status: BatchStatus
    payment_status: BatchPaymentStatus
    created_at: datetime
    updated_at: datetime
    contract_ids: List[str] = field(default_factory=list)
    subtotal_cents: int = 0
    tax_rate_pct: float = 0
    tax_cents: int = 0
    total_cents: int = 0
    dealer_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    @property
    def state(self) -> BatchState:
        return (self.status, self.payment_status)


@dataclass
class Remittance:
    """Payment instrument reported by a dealer"""

    id: str
    remittance_number: str
    amount_cents: int
    status: RemittanceStatus
    created_at: datetime
    updated_at: datetime
    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None
    created_by_user_id: Optional[str] = None
    created_by_email: Optional[str] = None


LifecycleRecord = Union[Contract, Batch, Remittance]


@dataclass
class PricingSnapshot:
    """Catalog pricing captured once when a contract is created"""

    product_pricing_id: Optional[str] = None
    term_months: Optional[int] = None
    term_km: Optional[int] = None
    deductible_cents: Optional[int] = None
    base_price_cents: Optional[int] = None
    dealer_cost_cents: Optional[int] = None
    addon_total_retail_cents: Optional[int] = None
    addon_total_cost_cents: Optional[int] = None


@dataclass
class ProductRef:
    """Minimal catalog product reference used for filtering and provider visibility"""

    id: str
    provider_id: str
    product_type: str  # EXTENDED_WARRANTY | TIRE_RIM | APPEARANCE | GAP | OTHER


@dataclass
class CreateContractInput:
    contract_number: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    customer_city: Optional[str] = None
    customer_province: Optional[str] = None
    customer_postal_code: Optional[str] = None
    vin: Optional[str] = None
    vehicle_year: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_trim: Optional[str] = None
    vehicle_mileage_km: Optional[int] = None
    vehicle_body_class: Optional[str] = None
    vehicle_engine: Optional[str] = None
    vehicle_transmission: Optional[str] = None
    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None
    product_id: Optional[str] = None
    product_pricing_id: Optional[str] = None
    pricing_term_months: Optional[int] = None
    pricing_term_km: Optional[int] = None
    pricing_deductible_cents: Optional[int] = None
    pricing_base_price_cents: Optional[int] = None
    pricing_dealer_cost_cents: Optional[int] = None
    addon_total_retail_cents: Optional[int] = None
    addon_total_cost_cents: Optional[int] = None
    created_by_user_id: Optional[str] = None
    created_by_email: Optional[str] = None

    def apply_pricing(self, snapshot: PricingSnapshot) -> None:
        """Copy a catalog snapshot into the pricing fields"""
        self.product_pricing_id = snapshot.product_pricing_id
        self.pricing_term_months = snapshot.term_months
        self.pricing_term_km = snapshot.term_km
        self.pricing_deductible_cents = snapshot.deductible_cents
        self.pricing_base_price_cents = snapshot.base_price_cents
        self.pricing_dealer_cost_cents = snapshot.dealer_cost_cents
        self.addon_total_retail_cents = snapshot.addon_total_retail_cents
        self.addon_total_cost_cents = snapshot.addon_total_cost_cents


@dataclass
class CreateBatchInput:
    batch_number: str
    dealer_id: Optional[str] = None
    contract_ids: List[str] = field(default_factory=list)
    subtotal_cents: int = 0
    tax_rate_pct: float = 0
    tax_cents: int = 0
    total_cents: int = 0


@dataclass
class CreateRemittanceInput:
    remittance_number: str
    amount_cents: int
    dealer_id: Optional[str] = None
    provider_id: Optional[str] = None
    created_by_user_id: Optional[str] = None
    created_by_email: Optional[str] = None
