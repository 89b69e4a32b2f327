"""Required-field checks shared by both storage backends"""

from typing import Any, Mapping

from warrantyhub.domain.exceptions import ValidationError
from warrantyhub.domain.models import EntityKind

# Fields that must be present and non-blank on every stored record
REQUIRED_TEXT_FIELDS = {
    EntityKind.CONTRACT: ("contract_number", "customer_name"),
    EntityKind.BATCH: ("batch_number",),
    EntityKind.REMITTANCE: ("remittance_number",),
}

# Fields whose value is a count of cents or another non-negative integer
NON_NEGATIVE_INT_FIELDS = frozenset(
    {
        "amount_cents",
        "subtotal_cents",
        "tax_cents",
        "total_cents",
        "vehicle_mileage_km",
        "pricing_term_months",
        "pricing_term_km",
        "pricing_deductible_cents",
        "pricing_base_price_cents",
        "pricing_dealer_cost_cents",
        "addon_total_retail_cents",
        "addon_total_cost_cents",
    }
)

# Natural key used for uniqueness on each kind
NUMBER_FIELD = {
    EntityKind.CONTRACT: "contract_number",
    EntityKind.BATCH: "batch_number",
    EntityKind.REMITTANCE: "remittance_number",
}


def _label(name: str) -> str:
    return name.replace("_", " ").capitalize()


def validate_values(kind: EntityKind, values: Mapping[str, Any], *, partial: bool = False) -> None:
    """
    Check required text fields and integer money fields.

    With partial=True only the keys present in values are checked (field edits).

    Raises:
        ValidationError: On blank required fields, negative or non-integer cents
    """
    for name in REQUIRED_TEXT_FIELDS[kind]:
        if partial and name not in values:
            continue
        value = values.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{_label(name)} is required")

    for name, value in values.items():
        if name not in NON_NEGATIVE_INT_FIELDS or value is None:
            continue
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{_label(name)} must be an integer")
        if value < 0:
            raise ValidationError(f"{_label(name)} must not be negative")

    if kind == EntityKind.REMITTANCE and not partial and values.get("amount_cents") is None:
        raise ValidationError("Amount cents is required")

    if "contract_ids" in values:
        ids = values["contract_ids"]
        if not isinstance(ids, (list, tuple)) or not all(isinstance(i, str) and i.strip() for i in ids):
            raise ValidationError("Contract ids must be a list of identifiers")
