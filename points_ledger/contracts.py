"""
contracts.py - Contract Evaluator

Computes the effective amount of a transfer from its draft Transaction and
the contract registry. Evaluation is pure: it reads contracts through a
read-only ContractRegistry and never touches accounts.

Policies:
1. travel_policy() - halve the amount strictly inside the validity window
2. feedback_policy() - flat bonus plus per-activity points inside the window
3. discount_policy() - reduce the amount by a matching contract's discount rate
4. evaluate() - select the policy from the contract's method and run it

The draft's timestamp is the only notion of "now" a policy sees.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable

from loguru import logger

from .core import (
    Contract, Transaction, PolicyMethod,
    StoreUnavailable, ContractLookupError,
    FEEDBACK_BONUS, FEEDBACK_POINTS_PER_ACTIVITY, TRAVEL_RATE, ZERO,
)


@runtime_checkable
class ContractRegistry(Protocol):
    """
    Read-only access to registered contracts.

    Implementations raise StoreUnavailable if the backing store fails.
    """

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        """Return the contract stored under `contract_id`, or None."""
        ...

    def list_contract_ids(self) -> List[str]:
        """Return the contract index in registration order."""
        ...


def travel_policy(draft: Transaction, contract: Contract) -> Decimal:
    """
    Halve the requested amount while the contract is in force.

    Window bounds are exclusive: a transfer stamped exactly at start or end
    pays full price.
    """
    if contract.is_active(draft.date):
        return draft.amount * TRAVEL_RATE
    return draft.amount


def feedback_policy(draft: Transaction, contract: Contract) -> Decimal:
    """
    Pay a flat bonus plus 100 points per recorded activity.

    Outside the window nothing is paid, whatever the requested amount.
    """
    if not contract.is_active(draft.date):
        return ZERO
    points = FEEDBACK_BONUS
    if draft.activities > 0:
        points += FEEDBACK_POINTS_PER_ACTIVITY * draft.activities
    return points


def discount_policy(draft: Transaction, registry: ContractRegistry) -> Decimal:
    """
    Apply the discount rate of the contract named by the draft.

    Scans the whole index and compares each stored contract's own identifier
    with the draft's. The rate is not range-checked here; registration is
    where rates are validated.
    """
    amount = draft.amount
    for contract_id in registry.list_contract_ids():
        contract = registry.get_contract(contract_id)
        if contract is None:
            continue
        if contract.contract_id == draft.contract_id:
            amount = amount - amount * contract.discount_rate
    return amount


# Time-limited policies keyed by method. Every other method falls through to
# discount_policy, which needs the whole registry rather than one contract.
WINDOW_POLICIES: Dict[PolicyMethod, Callable[[Transaction, Contract], Decimal]] = {
    PolicyMethod.TRAVEL: travel_policy,
    PolicyMethod.FEEDBACK: feedback_policy,
}


def evaluate(draft: Transaction, registry: ContractRegistry) -> Decimal:
    """
    Compute the effective amount for a draft transfer.

    Args:
        draft: Transaction with amount, activities, date and contract_id set
        registry: Read-only contract access

    Returns:
        The amount to credit the receiver and debit the sender.

    Raises:
        ContractLookupError: If a contract could not be read from the store.
    """
    try:
        contract = registry.get_contract(draft.contract_id) if draft.contract_id else None
        policy = WINDOW_POLICIES.get(contract.method) if contract is not None else None
        if policy is not None:
            amount = policy(draft, contract)
            logger.debug("{} {} on {}: {} -> {}", contract.method.value, contract.contract_id,
                         draft.date, draft.amount, amount)
            return amount
        amount = discount_policy(draft, registry)
    except StoreUnavailable as e:
        raise ContractLookupError(
            f"Cannot evaluate contract {draft.contract_id!r}: {e}"
        ) from e
    logger.debug("discount {!r}: {} -> {}", draft.contract_id, draft.amount, amount)
    return amount
