"""
points_ledger - Points-Transfer Ledger

Accounts hold point balances; transfers move points between accounts under
pluggable contract policies (travel discount, feedback bonus, flat discount).
State lives in an external key-value store reached through StateStore.

Usage:
    from points_ledger import LedgerEngine, MemoryStore, provision, DEMO_SEED

    store = MemoryStore()
    provision(store, DEMO_SEED)
    engine = LedgerEngine(store)

    tx = engine.transfer(
        sender_id="B1928564", receiver_id="U2974034",
        tx_type="Purchase", description="Paris dinner",
        contract_id="Paris", activity_count=0,
        requested_amount="100", money_amount="0",
    )
    history = engine.get_transactions("U2974034")
"""

__version__ = '1.0.0'

# Core types
from .core import (
    Account,
    Contract,
    Transaction,
    TransactionLog,
    ReferenceCounter,
    ContractIndex,
    PolicyMethod,
    TransactionStatus,
    LedgerError,
    NotFound,
    AccountNotFound,
    ContractNotFound,
    ReferenceCounterNotFound,
    StoreUnavailable,
    ContractLookupError,
    CorruptDocument,
    KeyConflict,
    MalformedAmount,
    UnknownOperation,
    IncorrectArgumentCount,
    ConfigError,
    parse_amount,
    NUM_TX_TO_RETURN,
    REFERENCE_NUMBER_SEED,
)

# Codec
from .codec import encode, decode, decode_strict, encode_many

# Store
from .store import StateStore, MemoryStore, FileStore, WriteBatch

# Contract evaluation
from .contracts import (
    ContractRegistry,
    evaluate,
    travel_policy,
    feedback_policy,
    discount_policy,
)

# Engine
from .ledger import LedgerEngine

# Provisioning
from .seed import AccountRecord, ContractRecord, SeedData, DEMO_SEED, demo_seed, load_seed, provision

# Configuration
from .config import LedgerConfig, load_config

# Dispatch
from .dispatch import Dispatcher, INVOKE_HANDLERS, QUERY_HANDLERS

__all__ = [
    # Core
    'Account', 'Contract', 'Transaction', 'TransactionLog', 'ReferenceCounter', 'ContractIndex',
    'PolicyMethod', 'TransactionStatus',
    'LedgerError', 'NotFound', 'AccountNotFound', 'ContractNotFound', 'ReferenceCounterNotFound',
    'StoreUnavailable', 'ContractLookupError', 'CorruptDocument', 'KeyConflict',
    'MalformedAmount', 'UnknownOperation',
    'IncorrectArgumentCount', 'ConfigError',
    'parse_amount', 'NUM_TX_TO_RETURN', 'REFERENCE_NUMBER_SEED',
    # Codec
    'encode', 'decode', 'decode_strict', 'encode_many',
    # Store
    'StateStore', 'MemoryStore', 'FileStore', 'WriteBatch',
    # Contracts
    'ContractRegistry', 'evaluate', 'travel_policy', 'feedback_policy', 'discount_policy',
    # Engine
    'LedgerEngine',
    # Provisioning
    'AccountRecord', 'ContractRecord', 'SeedData', 'DEMO_SEED', 'demo_seed', 'load_seed', 'provision',
    # Configuration
    'LedgerConfig', 'load_config',
    # Dispatch
    'Dispatcher', 'INVOKE_HANDLERS', 'QUERY_HANDLERS',
]
