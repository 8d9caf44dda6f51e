"""
fake_store.py - Test Helpers for StateStore and ContractRegistry

Provides a store that fails on demand (to exercise StoreUnavailable paths
and the atomic commit) and a minimal in-memory ContractRegistry for testing
the evaluator without an engine.
"""

from __future__ import annotations
from typing import Dict, List, Mapping, Optional, Set

from points_ledger import Contract, MemoryStore, StoreUnavailable


class FailingStore(MemoryStore):
    """
    MemoryStore that raises StoreUnavailable on selected operations.

    Example:
        store = FailingStore()
        store.fail_get_keys.add("Paris")      # reads of "Paris" fail
        store.fail_commit_keys.add("allTx")   # any commit touching "allTx" fails
        store.fail_all = True                 # everything fails
    """

    def __init__(self, initial: Optional[Mapping[str, bytes]] = None):
        super().__init__(initial)
        self.fail_get_keys: Set[str] = set()
        self.fail_commit_keys: Set[str] = set()
        self.fail_all = False
        self.commits: List[Dict[str, bytes]] = []

    def get(self, key: str) -> Optional[bytes]:
        if self.fail_all or key in self.fail_get_keys:
            raise StoreUnavailable(f"get {key} failed")
        return super().get(key)

    def commit(self, writes: Mapping[str, bytes]) -> None:
        if self.fail_all or self.fail_commit_keys & set(writes):
            raise StoreUnavailable(f"commit of {sorted(writes)} failed")
        self.commits.append(dict(writes))
        super().commit(writes)


class FakeRegistry:
    """
    Minimal ContractRegistry for testing evaluation functions.

    Example:
        registry = FakeRegistry([paris, feedback])
        amount = evaluate(draft, registry)
    """

    def __init__(self, contracts: List[Contract] = (), index: Optional[List[str]] = None):
        self._contracts = {c.contract_id: c for c in contracts}
        self._index = list(index) if index is not None else [c.contract_id for c in contracts]
        self.fail = False

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        if self.fail:
            raise StoreUnavailable("registry unavailable")
        return self._contracts.get(contract_id)

    def list_contract_ids(self) -> List[str]:
        if self.fail:
            raise StoreUnavailable("registry unavailable")
        return list(self._index)
