"""
dispatch.py - Operation Dispatch

Maps named operations with ordered string arguments onto LedgerEngine calls
and returns raw bytes, the shape in which the host ledger platform invokes
and queries the engine.

Following the handler-table pattern:
- Plain functions, one per operation
- Two dicts (mutating and read-only) instead of a class hierarchy
- Unknown names and wrong argument counts are explicit errors
"""

from __future__ import annotations
from typing import Callable, Dict, List, Optional, Sequence
import json

from loguru import logger

from .codec import encode, encode_many, to_document
from .core import IncorrectArgumentCount, ReferenceCounter, UnknownOperation
from .ledger import LedgerEngine
from .seed import SeedData, demo_seed, provision


Handler = Callable[[LedgerEngine, Sequence[str]], bytes]


def _expect(function: str, args: Sequence[str], count: int) -> None:
    if len(args) != count:
        raise IncorrectArgumentCount(
            f"{function}: incorrect number of arguments, expecting {count}, got {len(args)}"
        )


# ============================================================================
# MUTATING OPERATIONS
# ============================================================================

def transfer_points(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """transferPoints(toId, fromId, type, description, contractId, activities, amount, money)"""
    _expect("transferPoints", args, 8)
    to_id, from_id, tx_type, description, contract_id, activities, amount, money = args
    tx = engine.transfer(
        sender_id=from_id,
        receiver_id=to_id,
        tx_type=tx_type,
        description=description,
        contract_id=contract_id,
        activity_count=activities,
        requested_amount=amount,
        money_amount=money,
    )
    return encode(tx)


def add_smart_contract(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """addSmartContract(id, title, conditionA, conditionB, discountRate)"""
    _expect("addSmartContract", args, 5)
    contract = engine.register_contract(*args)
    return encode(contract)


def increment_reference_number(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """incrementReferenceNumber()"""
    _expect("incrementReferenceNumber", args, 0)
    return encode(ReferenceCounter(engine.increment_reference_number()))


# ============================================================================
# READ-ONLY OPERATIONS
# ============================================================================

def get_user_account(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """getUserAccount(userId)"""
    _expect("getUserAccount", args, 1)
    return encode(engine.get_account(args[0]))


def get_txs(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """getTxs(userId): most recent transactions first"""
    _expect("getTxs", args, 1)
    txs = engine.get_transactions(args[0])
    doc = {"transactions": [to_document(tx) for tx in txs]}
    return json.dumps(doc, separators=(",", ":")).encode("utf-8")


def get_all_contracts(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """getAllContracts()"""
    _expect("getAllContracts", args, 0)
    return encode_many(engine.get_all_contracts())


def get_reference_number(engine: LedgerEngine, args: Sequence[str]) -> bytes:
    """getReferenceNumber()"""
    _expect("getReferenceNumber", args, 0)
    return encode(ReferenceCounter(engine.get_reference_number()))


INVOKE_HANDLERS: Dict[str, Handler] = {
    "transferPoints": transfer_points,
    "addSmartContract": add_smart_contract,
    "incrementReferenceNumber": increment_reference_number,
}

QUERY_HANDLERS: Dict[str, Handler] = {
    "getUserAccount": get_user_account,
    "getTxs": get_txs,
    "getAllContracts": get_all_contracts,
    "getReferenceNumber": get_reference_number,
}


class Dispatcher:
    """
    Entry point for named invocations and queries.

    Example:
        dispatcher = Dispatcher(LedgerEngine(store))
        dispatcher.invoke("init", [])
        dispatcher.invoke("transferPoints", ["U2974034", "B1928564", "Purchase",
                                             "Dinner", "Paris", "0", "100", "0"])
        history = dispatcher.query("getTxs", ["U2974034"])
    """

    def __init__(self, engine: LedgerEngine, seed: Optional[SeedData] = None):
        """
        Args:
            engine: Engine the operations run against
            seed: Records written by the `init` operation (default: the demo seed)
        """
        self.engine = engine
        self.seed = seed or demo_seed(engine.config)

    def _init(self, engine: LedgerEngine, args: Sequence[str]) -> bytes:
        provision(engine.store, self.seed, engine.config)
        return b""

    def invoke(self, function: str, args: Optional[List[str]] = None) -> bytes:
        """
        Run a mutating operation.

        Raises:
            UnknownOperation: If `function` is not a mutating operation
        """
        args = list(args or [])
        logger.debug("invoke {} {}", function, args)
        if function == "init":
            return self._init(self.engine, args)
        handler = INVOKE_HANDLERS.get(function)
        if handler is None:
            raise UnknownOperation(f"Received unknown function invocation: {function}")
        return handler(self.engine, args)

    def query(self, function: str, args: Optional[List[str]] = None) -> bytes:
        """
        Run a read-only operation.

        Raises:
            UnknownOperation: If `function` is not a query
        """
        args = list(args or [])
        logger.debug("query {} {}", function, args)
        handler = QUERY_HANDLERS.get(function)
        if handler is None:
            raise UnknownOperation(f"Received unknown function query: {function}")
        return handler(self.engine, args)

    @staticmethod
    def operations() -> List[str]:
        return ["init", *INVOKE_HANDLERS, *QUERY_HANDLERS]
