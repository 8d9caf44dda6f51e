"""
Core types and pure functions for the points ledger.

This module provides the foundational data structures for the engine:
1. Immutable entities: Account, Contract, Transaction, TransactionLog,
   ReferenceCounter, ContractIndex
2. Closed enumerations: PolicyMethod, TransactionStatus
3. Exceptions: LedgerError and domain-specific error types
4. Amount parsing helpers shared by the engine and the dispatch layer

Entities are frozen. The Ledger Engine is the only component that produces
new versions of them (via dataclasses.replace) and writes them to the store.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Optional, Tuple, Union


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Point amounts use Decimal arithmetic with a fixed, global context.
# Discount and halving must produce identical results on every peer.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Store keys for the singleton entities.
TRANSACTION_LOG_KEY = "allTx"
CONTRACT_INDEX_KEY = "contractIds"
REFERENCE_COUNTER_KEY = "refNumber"

# First reference number handed out after provisioning.
REFERENCE_NUMBER_SEED = 2985674978

# Maximum number of transactions returned by a per-account history query.
NUM_TX_TO_RETURN = 27

# Feedback policy payouts.
FEEDBACK_BONUS = Decimal("1000")
FEEDBACK_POINTS_PER_ACTIVITY = Decimal("100")

# Travel policy multiplier inside the validity window.
TRAVEL_RATE = Decimal("0.5")

# Title recorded for contracts registered with an unusable discount rate.
INVALID_CONTRACT_TITLE = "Invalid Contract"

# Display format for account modification stamps ("19 Oct 26 12:00 UTC").
MODIFIED_DATE_FORMAT = "%d %b %y %H:%M UTC"

ZERO = Decimal("0")

AmountLike = Union[str, Decimal, int]


# ============================================================================
# ENUMS
# ============================================================================

class PolicyMethod(Enum):
    """
    Evaluation function selected by a contract.

    TRAVEL: halve the requested amount inside the validity window.
    FEEDBACK: flat bonus plus a per-activity amount inside the window.
    DISCOUNT: reduce the requested amount by the contract's discount rate.
    """
    TRAVEL = "travelContract"
    FEEDBACK = "feedbackContract"
    DISCOUNT = "discountContract"


class TransactionStatus(Enum):
    """
    Outcome recorded on a Transaction.

    COMPLETED: both amount fields parsed.
    INVALID_AMOUNT: the requested or money amount failed to parse and was
                    recorded as zero. The transfer was still applied.
    """
    COMPLETED = (1, "Transaction Completed")
    INVALID_AMOUNT = (0, "Invalid Amount")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]

    @classmethod
    def from_code(cls, code: int) -> TransactionStatus:
        for status in cls:
            if status.code == code:
                return status
        raise ValueError(f"Unknown transaction status code: {code}")


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class NotFound(LedgerError):
    """Raised when a required key is absent from the state store."""
    pass


class AccountNotFound(NotFound):
    """Raised when a transfer or query names an account that was never provisioned."""
    pass


class ContractNotFound(NotFound):
    """Raised when a contract lookup by identifier finds nothing."""
    pass


class ReferenceCounterNotFound(NotFound):
    """Raised when the reference counter has not been provisioned."""
    pass


class StoreUnavailable(LedgerError):
    """Raised when the state store adapter itself fails. Never retried."""
    pass


class CorruptDocument(LedgerError):
    """Raised when a stored value is present but cannot be decoded as the entity its key holds."""
    pass


class KeyConflict(LedgerError):
    """Raised when registering a contract under a key that holds an account or a ledger singleton."""
    pass


class ContractLookupError(LedgerError):
    """Raised when contract evaluation cannot load the contract it needs."""
    pass


class MalformedAmount(LedgerError):
    """Raised by strict amount parsing when text is not a finite number."""
    pass


class UnknownOperation(LedgerError):
    """Raised when the dispatch layer receives an operation name it does not know."""
    pass


class IncorrectArgumentCount(LedgerError):
    """Raised when an operation is invoked with the wrong number of arguments."""
    pass


class ConfigError(LedgerError):
    """Raised when a configuration or seed file cannot be loaded or validated."""
    pass


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Account:
    """
    A named balance-holding member of the ledger.

    Attributes:
        account_id: Globally unique identifier, also the store key.
        name: Display name recorded on transactions.
        balance: Current points. May go negative.
        status: Free-form tier tag (e.g. "Member", "Platinum").
        num_transactions: Number of transfers this account took part in.
        join_date, modified_date, expiration_date: Display strings, never parsed.
    """
    account_id: str = ""
    name: str = ""
    balance: Decimal = ZERO
    status: str = ""
    num_transactions: int = 0
    join_date: str = ""
    modified_date: str = ""
    expiration_date: str = ""

    def __repr__(self) -> str:
        return f"Account({self.account_id} {self.name!r}: {self.balance})"


@dataclass(frozen=True, slots=True)
class Contract:
    """
    A policy record controlling how a transfer's amount is adjusted.

    The identifier doubles as the policy selector named by transfers.
    Conditions are documentation only and never evaluated.
    A contract without start/end has no validity window: time-limited
    policies never apply.
    """
    contract_id: str = ""
    business_id: str = ""
    business_name: str = ""
    title: str = ""
    description: str = ""
    conditions: Tuple[str, ...] = ()
    icon: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    method: PolicyMethod = PolicyMethod.DISCOUNT
    discount_rate: Decimal = ZERO

    def is_active(self, when: Optional[datetime]) -> bool:
        """Return True if `when` falls strictly inside the validity window."""
        if when is None or self.start_date is None or self.end_date is None:
            return False
        return self.start_date < when < self.end_date


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Immutable record of one transfer.

    `money` is tracked alongside the points amount but never used in balance
    math. `activities` is consumed only by the feedback policy.
    """
    ref_number: int = 0
    date: Optional[datetime] = None
    description: str = ""
    tx_type: str = ""
    amount: Decimal = ZERO
    money: Decimal = ZERO
    activities: int = 0
    to_id: str = ""
    from_id: str = ""
    to_name: str = ""
    from_name: str = ""
    contract_id: str = ""
    status: TransactionStatus = TransactionStatus.COMPLETED

    def involves(self, account_id: str) -> bool:
        return self.to_id == account_id or self.from_id == account_id

    def __repr__(self) -> str:
        return (f"Transaction(#{self.ref_number} {self.amount}: "
                f"{self.from_id}→{self.to_id} [{self.contract_id}] {self.status.message})")


@dataclass(frozen=True, slots=True)
class TransactionLog:
    """Append-only ordered history of transfers, stored as one entity."""
    transactions: Tuple[Transaction, ...] = ()

    def append(self, tx: Transaction) -> TransactionLog:
        return TransactionLog(self.transactions + (tx,))

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True, slots=True)
class ReferenceCounter:
    """The next reference number to allocate."""
    value: int = 0

    def advance(self) -> ReferenceCounter:
        return ReferenceCounter(self.value + 1)


@dataclass(frozen=True, slots=True)
class ContractIndex:
    """Ordered list of registered contract identifiers, without duplicates."""
    contract_ids: Tuple[str, ...] = ()

    def with_id(self, contract_id: str) -> ContractIndex:
        """Return an index containing `contract_id`, appending it only if absent."""
        if contract_id in self.contract_ids:
            return self
        return ContractIndex(self.contract_ids + (contract_id,))

    def __contains__(self, contract_id: object) -> bool:
        return contract_id in self.contract_ids

    def __iter__(self):
        return iter(self.contract_ids)


# ============================================================================
# PARSING HELPERS
# ============================================================================

def parse_amount(text: AmountLike) -> Decimal:
    """
    Parse a point or money amount.

    Raises:
        MalformedAmount: If the text is not a finite decimal number.
    """
    if isinstance(text, Decimal):
        value = text
    else:
        try:
            value = Decimal(str(text).strip())
        except InvalidOperation:
            raise MalformedAmount(f"Not a number: {text!r}") from None
    if not value.is_finite():
        raise MalformedAmount(f"Amount must be finite, got {text!r}")
    return value


def parse_amount_lenient(text: AmountLike) -> Tuple[Decimal, bool]:
    """
    Parse an amount, falling back to zero.

    Returns:
        (value, ok) where ok is False if the text failed to parse.
    """
    try:
        return parse_amount(text), True
    except MalformedAmount:
        return ZERO, False


def parse_count(text: Union[str, int]) -> Optional[int]:
    """Parse an activity count. Returns None if the text is not an integer."""
    if isinstance(text, int):
        return text
    try:
        return int(str(text).strip())
    except ValueError:
        return None


def utc(when: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as already UTC."""
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)
