"""
Contract Index Conformance Tests

INVARIANT: The contract index holds each registered identifier exactly once,
in order of first registration, and every entry resolves to a stored contract.

    ∀ sequence of registerContract(id_1..id_n):
        index = unique(id_1..id_n) in first-seen order
        ∀ id ∈ index: get_contract(id) is the most recent registration of id
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from points_ledger import LedgerEngine, MemoryStore, SeedData, provision
from tests.conftest import IN_WINDOW, FixedClock


registrations = st.lists(
    st.tuples(
        st.sampled_from(["Spring", "Summer", "Autumn", "Winter", "Paris"]),
        st.sampled_from(["0", "0.1", "0.5", "0.99", "1", "abc"]),
    ),
    max_size=30,
)


def empty_engine():
    store = MemoryStore()
    provision(store, SeedData())
    return LedgerEngine(store, clock=FixedClock(IN_WINDOW))


class TestContractIndexProperties:

    @given(registrations)
    @settings(max_examples=100)
    def test_no_duplicates_first_seen_order(self, plan):
        engine = empty_engine()
        for contract_id, rate in plan:
            engine.register_contract(contract_id, f"{contract_id} sale", "a", "b", rate)

        expected = list(dict.fromkeys(contract_id for contract_id, _ in plan))
        assert engine.list_contract_ids() == expected

    @given(registrations)
    @settings(max_examples=100)
    def test_latest_registration_wins(self, plan):
        engine = empty_engine()
        latest = {}
        for contract_id, rate in plan:
            latest[contract_id] = engine.register_contract(contract_id, f"{contract_id} sale",
                                                           "a", "b", rate)

        for contract_id, contract in latest.items():
            assert engine.get_contract(contract_id) == contract
        assert [c.contract_id for c in engine.get_all_contracts()] == engine.list_contract_ids()


class TestContractIndexExamples:

    def test_repeated_registration(self):
        engine = empty_engine()
        for _ in range(5):
            engine.register_contract("Spring", "Spring sale", "a", "b", "0.2")
        assert engine.list_contract_ids() == ["Spring"]

    def test_invalid_registration_still_indexed_once(self):
        engine = empty_engine()
        engine.register_contract("Spring", "Spring sale", "a", "b", "abc")
        engine.register_contract("Spring", "Spring sale", "a", "b", "0.2")
        assert engine.list_contract_ids() == ["Spring"]
        assert engine.get_contract("Spring").title == "Spring sale"
