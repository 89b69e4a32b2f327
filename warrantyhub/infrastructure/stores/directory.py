"""
Embedded reference collections the access guard reads: dealer memberships and catalog products.

Both are read-only here. Entries missing an id are skipped.
"""

from typing import AbstractSet, Dict, Mapping

from warrantyhub.domain.models import ProductRef
from warrantyhub.infrastructure.database.repositories import KeyValueRepository

DEALER_MEMBERSHIPS_KEY = "warrantyhub.local.dealer_memberships"
PRODUCTS_KEY = "warrantyhub.local.products"


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def read_dealer_members(repository: KeyValueRepository) -> Mapping[str, AbstractSet[str]]:
    """dealer id -> ids of users recorded as members of that dealership"""
    members: Dict[str, set] = {}
    for item in repository.read(DEALER_MEMBERSHIPS_KEY):
        dealer_id, user_id = _text(item.get("dealer_id")), _text(item.get("user_id"))
        if dealer_id and user_id:
            members.setdefault(dealer_id, set()).add(user_id)
    return {dealer_id: frozenset(ids) for dealer_id, ids in members.items()}


def read_products(repository: KeyValueRepository) -> Mapping[str, ProductRef]:
    products = {}
    for item in repository.read(PRODUCTS_KEY):
        product_id, provider_id = _text(item.get("id")), _text(item.get("provider_id"))
        if product_id and provider_id:
            products[product_id] = ProductRef(
                id=product_id,
                provider_id=provider_id,
                product_type=_text(item.get("product_type")) or "OTHER",
            )
    return products
