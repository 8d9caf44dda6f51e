"""
Reference Number Conformance Tests

INVARIANT: Reference numbers step by one from the seeded value.

    ∀ sequence of N transfer attempts after provisioning with seed s:
        ref(T_i) = s + i                  for every transfer that completes
        counter  = s + N + k              after N attempts and k explicit increments

An attempt consumes a number even if the transfer later fails, so numbers
are never reused.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from points_ledger import (
    LedgerEngine, MemoryStore, LedgerError, TransactionStatus, DEMO_SEED, provision,
)
from tests.conftest import DEMO_ACCOUNTS, IN_WINDOW, FixedClock


SEED = DEMO_SEED.reference_number


def demo_engine():
    store = MemoryStore()
    provision(store, DEMO_SEED)
    return LedgerEngine(store, clock=FixedClock(IN_WINDOW))


# Each step is a transfer attempt (possibly malformed or naming an unknown
# account) or an explicit counter increment.
steps = st.one_of(
    st.tuples(
        st.just("transfer"),
        st.sampled_from(DEMO_ACCOUNTS + ("U0000000",)),
        st.sampled_from(DEMO_ACCOUNTS),
        st.sampled_from(["10", "0", "abc", "12.5", ""]),
    ),
    st.tuples(st.just("increment")),
)


class TestReferenceNumberProperties:

    @given(st.integers(min_value=1, max_value=40))
    @settings(max_examples=30)
    def test_sequential_transfers_step_by_one(self, n):
        """
        PROPERTY: N transfers receive s, s+1, ..., s+N-1.
        """
        engine = demo_engine()
        refs = []
        for i in range(n):
            tx = engine.transfer(DEMO_ACCOUNTS[i % 2], DEMO_ACCOUNTS[2], "Purchase", "",
                                 "", "0", "1", "0")
            refs.append(tx.ref_number)
        assert refs == list(range(SEED, SEED + n))
        assert engine.get_reference_number() == SEED + n

    @given(st.lists(steps, max_size=30))
    @settings(max_examples=50)
    def test_every_attempt_consumes_one_number(self, plan):
        """
        PROPERTY: counter = seed + attempts + increments, and logged numbers
        are strictly increasing.
        """
        engine = demo_engine()
        for step in plan:
            if step[0] == "increment":
                engine.increment_reference_number()
                continue
            _, receiver, sender, amount = step
            try:
                engine.transfer(sender, receiver, "Purchase", "", "", "0", amount, "0")
            except LedgerError:
                pass

        assert engine.get_reference_number() == SEED + len(plan)
        logged = [tx.ref_number for tx in engine.get_transaction_log().transactions]
        assert logged == sorted(set(logged))
        assert all(SEED <= ref < SEED + len(plan) for ref in logged)


class TestReferenceNumberExamples:

    def test_malformed_transfer_still_numbered(self):
        engine = demo_engine()
        first = engine.transfer(DEMO_ACCOUNTS[0], DEMO_ACCOUNTS[2], "Purchase", "", "", "0", "abc", "0")
        second = engine.transfer(DEMO_ACCOUNTS[0], DEMO_ACCOUNTS[2], "Purchase", "", "", "0", "1", "0")
        assert first.status is TransactionStatus.INVALID_AMOUNT
        assert (first.ref_number, second.ref_number) == (SEED, SEED + 1)

    def test_failed_transfer_leaves_gap(self):
        engine = demo_engine()
        with pytest.raises(LedgerError):
            engine.transfer(DEMO_ACCOUNTS[0], "U0000000", "Purchase", "", "", "0", "1", "0")
        tx = engine.transfer(DEMO_ACCOUNTS[0], DEMO_ACCOUNTS[2], "Purchase", "", "", "0", "1", "0")
        assert tx.ref_number == SEED + 1
