"""Status transition rules for contracts, batches and remittances"""

from typing import Any, Dict, Hashable, Optional, Tuple

from warrantyhub.domain.exceptions import InvalidTransition
from warrantyhub.domain.models import (
    BatchPaymentStatus,
    BatchStatus,
    ContractStatus,
    EntityKind,
    RemittanceStatus,
)

# Ordered chains: each state's only legal successor is the next entry.
# A batch's state is the pair (status, payment_status).
CHAINS: Dict[EntityKind, Tuple[Hashable, ...]] = {
    EntityKind.CONTRACT: (
        ContractStatus.DRAFT,
        ContractStatus.SOLD,
        ContractStatus.REMITTED,
        ContractStatus.PAID,
    ),
    EntityKind.REMITTANCE: (
        RemittanceStatus.DUE,
        RemittanceStatus.PAID,
    ),
    EntityKind.BATCH: (
        (BatchStatus.OPEN, BatchPaymentStatus.UNPAID),
        (BatchStatus.CLOSED, BatchPaymentStatus.UNPAID),
        (BatchStatus.CLOSED, BatchPaymentStatus.PAID),
    ),
}

# Kinds whose terminal state also rejects a repeated request for the same state.
# "Mark paid" on a paid batch must fail so payment history stays auditable.
STRICT_TERMINAL_KINDS = frozenset({EntityKind.BATCH})


def initial_state(kind: EntityKind) -> Any:
    return CHAINS[kind][0]


def next_state(kind: EntityKind, current: Any) -> Optional[Any]:
    """Single successor of current, or None for terminal / unknown states"""
    chain = CHAINS[kind]
    if current not in chain:
        return None
    idx = chain.index(current)
    return chain[idx + 1] if idx + 1 < len(chain) else None


def is_terminal(kind: EntityKind, state: Any) -> bool:
    chain = CHAINS[kind]
    return state in chain and next_state(kind, state) is None


def is_legal_transition(kind: EntityKind, current: Any, requested: Any) -> bool:
    """
    Return whether moving from current to requested is allowed.

    - requested == current is a no-op and legal (except a strict terminal state)
    - otherwise requested must be the single successor of current
    - states outside the chain are never legal targets
    """
    chain = CHAINS[kind]
    if requested not in chain:
        return False

    if requested == current:
        return not (kind in STRICT_TERMINAL_KINDS and is_terminal(kind, current))

    return next_state(kind, current) == requested


def _label(state: Any) -> str:
    if isinstance(state, tuple):
        return "/".join(_label(s) for s in state)
    return getattr(state, "value", str(state))


def check_transition(kind: EntityKind, current: Any, requested: Any) -> None:
    """
    Raises:
        InvalidTransition: When the change skips a step, moves backward, or leaves a terminal state
    """
    if not is_legal_transition(kind, current, requested):
        raise InvalidTransition(
            f"Invalid {kind.value} status transition: {_label(current)} -> {_label(requested)}"
        )
