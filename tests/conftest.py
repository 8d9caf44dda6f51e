"""
conftest.py - Shared pytest fixtures for points ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A fixed, settable clock
- Stores provisioned with the demo seed
- Engines and dispatchers bound to those stores
- Helpers for building accounts and reading balances
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable

from points_ledger import (
    LedgerEngine, LedgerConfig, MemoryStore, Dispatcher,
    AccountRecord, ContractRecord, SeedData, DEMO_SEED,
    PolicyMethod, provision,
)


# Demo account identifiers
BANK = "B1928564"
TRAVEL = "T5940872"
NATALIE = "U2974034"
ANTHONY = "U3151672"

DEMO_ACCOUNTS = (BANK, TRAVEL, NATALIE, ANTHONY)

# Inside both demo contract windows
IN_WINDOW = datetime(2016, 6, 1, tzinfo=timezone.utc)
# After both demo contract windows
AFTER_WINDOW = datetime(2099, 1, 1, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def balances(engine: LedgerEngine, account_ids: Iterable[str] = DEMO_ACCOUNTS) -> Dict[str, Decimal]:
    """Snapshot of balances by account id."""
    return {a: engine.get_account(a).balance for a in account_ids}


def simple_seed(*accounts: AccountRecord, contracts=(), reference_number: int = 100) -> SeedData:
    """Seed with the given accounts and contracts and a small counter."""
    return SeedData(accounts=list(accounts), contracts=list(contracts),
                    reference_number=reference_number)


def discount_contract(contract_id: str, rate: str) -> ContractRecord:
    return ContractRecord(contract_id=contract_id, title=f"{contract_id} discount",
                          method=PolicyMethod.DISCOUNT, discount_rate=Decimal(rate))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Clock fixed inside the demo contract windows."""
    return FixedClock(IN_WINDOW)


@pytest.fixture
def store():
    """Memory store provisioned with the demo seed."""
    s = MemoryStore()
    provision(s, DEMO_SEED)
    return s


@pytest.fixture
def engine(store, clock):
    """Engine over the demo store with a fixed clock."""
    return LedgerEngine(store, LedgerConfig(), clock=clock)


@pytest.fixture
def dispatcher(engine):
    """Dispatcher over the demo engine."""
    return Dispatcher(engine)


@pytest.fixture
def pair_engine(clock):
    """Engine with two accounts, alice (1000) and bob (0), and counter at 100."""
    s = MemoryStore()
    provision(s, simple_seed(
        AccountRecord(account_id="alice", name="Alice", balance=Decimal("1000")),
        AccountRecord(account_id="bob", name="Bob", balance=Decimal("0")),
    ))
    return LedgerEngine(s, clock=clock)
