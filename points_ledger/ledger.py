"""
ledger.py - Points Ledger Engine

The LedgerEngine is the transactional core of the points ledger. It is the
only component that mutates state, and it does so exclusively through the
state store: every invocation reloads what it needs, so no entity is shared
in memory between invocations.

Key responsibilities:
    - Implements the ContractRegistry protocol for the contract evaluator
    - Allocates reference numbers (exactly one per transfer)
    - Applies transfers: receiver credit, sender debit and log append are
      staged in one WriteBatch and committed atomically
    - Registers contracts with an idempotent contract index
    - Answers read-only queries (accounts, history, contracts, counter)
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Union

from loguru import logger

from .codec import decode, decode_strict, encode
from .config import LedgerConfig
from .contracts import evaluate
from .core import (
    # Types
    Account, Contract, Transaction, TransactionLog, ReferenceCounter, ContractIndex,
    PolicyMethod, TransactionStatus, AmountLike,
    # Constants
    INVALID_CONTRACT_TITLE, MODIFIED_DATE_FORMAT, ZERO,
    # Exceptions
    AccountNotFound, ContractNotFound, ReferenceCounterNotFound, MalformedAmount, KeyConflict,
    # Helper functions
    parse_amount, parse_amount_lenient, parse_count, utc,
)
from .store import StateStore, WriteBatch


Clock = Callable[[], datetime]

# Anything read through during an invocation: the store itself or a staged batch
KeySource = Union[StateStore, WriteBatch]


def _system_clock() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEngine:
    """
    Points-transfer engine running against an external key-value store.

    Implements the ContractRegistry protocol, so the engine itself is passed
    to the pure evaluation functions in contracts.py.

    Atomicity:
        The reference number is committed on its own before evaluation, so
        ordering does not depend on the evaluation outcome. Receiver, sender
        and log writes are committed together: a failure before that commit
        leaves balances and history untouched.

    Thread Safety:
        None of its own. The host platform serializes invocations.

    Example:
        store = MemoryStore()
        provision(store, DEMO_SEED)
        engine = LedgerEngine(store)
        tx = engine.transfer(
            sender_id="B1928564", receiver_id="U2974034",
            tx_type="Purchase", description="Paris dinner",
            contract_id="Paris", activity_count=0,
            requested_amount="100", money_amount="0",
        )
    """

    def __init__(
        self,
        store: StateStore,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Create an engine.

        Args:
            store: State store adapter
            config: Key names, query limit and registration defaults
            clock: Source of the current time (default: system UTC clock)
        """
        self.store = store
        self.config = config or LedgerConfig()
        self._clock = clock or _system_clock

    @property
    def current_time(self) -> datetime:
        """Current time, UTC, truncated to the minute like every transfer stamp."""
        return utc(self._clock()).replace(second=0, microsecond=0)

    # ========================================================================
    # ContractRegistry PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        """Return the contract stored under `contract_id`, or None if absent."""
        data = self.store.get(contract_id)
        if data is None:
            return None
        return decode(Contract, data)

    def list_contract_ids(self) -> List[str]:
        """Return the contract index in registration order."""
        return list(decode(ContractIndex, self.store.get(self.config.contract_index_key)).contract_ids)

    # ========================================================================
    # QUERIES (read-only)
    # ========================================================================

    def get_account(self, account_id: str) -> Account:
        """
        Fetch an account.

        Raises:
            AccountNotFound: If the account was never provisioned
        """
        return self._load_account(self.store, account_id)

    def get_transactions(self, account_id: str, limit: Optional[int] = None) -> List[Transaction]:
        """
        Most recent transactions in which `account_id` is sender or receiver.

        Scans the log from its tail, so the result is most-recent-first.
        A self-transfer appears once.

        Args:
            account_id: Account to filter on
            limit: Maximum entries (default: config.tx_query_limit)
        """
        limit = self.config.tx_query_limit if limit is None else limit
        log = decode(TransactionLog, self.store.get(self.config.transaction_log_key))
        result: List[Transaction] = []
        for tx in reversed(log.transactions):
            if len(result) >= limit:
                break
            if tx.involves(account_id):
                result.append(tx)
        return result

    def get_transaction_log(self) -> TransactionLog:
        """Return the full transaction log in transfer order."""
        return decode(TransactionLog, self.store.get(self.config.transaction_log_key))

    def get_all_contracts(self) -> List[Contract]:
        """
        All registered contracts in index order.

        An index entry whose key is missing decodes to a zero-valued contract.
        """
        return [decode(Contract, self.store.get(cid)) for cid in self.list_contract_ids()]

    def require_contract(self, contract_id: str) -> Contract:
        """
        Fetch a contract that must exist.

        Raises:
            ContractNotFound: If nothing is stored under `contract_id`
        """
        contract = self.get_contract(contract_id)
        if contract is None:
            raise ContractNotFound(f"Contract {contract_id} not found")
        return contract

    def get_reference_number(self) -> int:
        """Return the next reference number without allocating it."""
        return self._load_counter(self.store).value

    def total_supply(self, account_ids: Iterable[str]) -> Decimal:
        """
        Sum of balances over the given accounts.

        Transfers conserve this sum when both parties are included.
        Accounts are sorted before summation for a deterministic order.
        """
        return sum(
            (self.get_account(account_id).balance for account_id in sorted(set(account_ids))),
            ZERO,
        )

    # ========================================================================
    # REFERENCE NUMBERS (Mutating)
    # ========================================================================

    def increment_reference_number(self) -> int:
        """
        Advance the counter without a transfer.

        Returns:
            The new counter value
        """
        counter = self._load_counter(self.store).advance()
        self.store.commit({self.config.reference_counter_key: encode(counter)})
        return counter.value

    def _allocate_reference_number(self) -> int:
        counter = self._load_counter(self.store)
        self.store.commit({self.config.reference_counter_key: encode(counter.advance())})
        return counter.value

    # ========================================================================
    # TRANSFERS (Mutating)
    # ========================================================================

    def transfer(
        self,
        sender_id: str,
        receiver_id: str,
        tx_type: str,
        description: str,
        contract_id: str,
        activity_count: Union[str, int],
        requested_amount: AmountLike,
        money_amount: AmountLike,
    ) -> Transaction:
        """
        Move points from sender to receiver under the named contract.

        Steps:
        1. Parse amounts. A malformed amount is recorded as zero with status
           INVALID_AMOUNT and processing continues.
        2. Allocate a reference number (committed immediately).
        3. Evaluate the contract to get the effective amount.
        4. Credit the receiver.
        5. Debit the sender. There is no floor: balances may go negative.
        6. Append the transaction to the log.
        Steps 4-6 are committed as one batch.

        Returns:
            The completed Transaction as appended to the log

        Raises:
            ReferenceCounterNotFound: If the ledger was never provisioned
            ContractLookupError: If a contract could not be loaded
            AccountNotFound: If the receiver or sender does not exist
            CorruptDocument: If an account, the counter or the log is stored
                             but does not decode. Nothing is overwritten.
            StoreUnavailable: If the store fails
        """
        status = TransactionStatus.COMPLETED
        amount, amount_ok = parse_amount_lenient(requested_amount)
        money, money_ok = parse_amount_lenient(money_amount)
        if not (amount_ok and money_ok):
            status = TransactionStatus.INVALID_AMOUNT
            logger.warning("Invalid amount in transfer {} -> {}: amount={!r} money={!r}",
                           sender_id, receiver_id, requested_amount, money_amount)

        activities = parse_count(activity_count)
        if activities is None:
            logger.warning("Invalid activity count {!r}, using 0", activity_count)
            activities = 0

        now = self.current_time
        draft = Transaction(
            ref_number=self._allocate_reference_number(),
            date=now,
            description=description,
            tx_type=tx_type,
            amount=amount,
            money=money,
            activities=activities,
            to_id=receiver_id,
            from_id=sender_id,
            contract_id=contract_id,
            status=status,
        )

        effective = evaluate(draft, self)
        stamp = now.strftime(MODIFIED_DATE_FORMAT)
        batch = WriteBatch(self.store)

        receiver = self._load_account(batch, receiver_id)
        receiver = replace(
            receiver,
            balance=receiver.balance + effective,
            num_transactions=receiver.num_transactions + 1,
            modified_date=stamp,
        )
        batch.put(receiver_id, encode(receiver))

        sender = self._load_account(batch, sender_id)
        sender = replace(
            sender,
            balance=sender.balance - effective,
            num_transactions=sender.num_transactions + 1,
            modified_date=stamp,
        )
        batch.put(sender_id, encode(sender))

        tx = replace(draft, amount=effective, to_name=receiver.name, from_name=sender.name)
        log_key = self.config.transaction_log_key
        log = decode_strict(TransactionLog, batch.get(log_key)).append(tx)
        batch.put(log_key, encode(log))

        batch.commit()
        logger.info("Transfer #{}: {} {} -> {} [{}] {}", tx.ref_number, effective,
                    sender_id, receiver_id, contract_id or "-", status.message)
        return tx

    # ========================================================================
    # CONTRACT REGISTRATION (Mutating)
    # ========================================================================

    def register_contract(
        self,
        contract_id: str,
        title: str,
        condition_a: str,
        condition_b: str,
        discount_rate: AmountLike,
    ) -> Contract:
        """
        Register or overwrite a discount contract.

        A rate that does not parse or falls outside [0, 1) is not rejected:
        the contract is stored with the title "Invalid Contract" and rate 0,
        so it never changes an amount.

        The identifier is appended to the contract index only if absent.
        Contract and index are committed together.

        Returns:
            The stored Contract

        Raises:
            KeyConflict: If `contract_id` names an account or a ledger singleton key
            CorruptDocument: If the stored contract index does not decode
        """
        try:
            rate = parse_amount(discount_rate)
            if not ZERO <= rate < 1:
                raise MalformedAmount(f"Discount rate must be in [0, 1), got {rate}")
        except MalformedAmount as e:
            logger.warning("Contract {} registered as invalid: {}", contract_id, e)
            title, rate = INVALID_CONTRACT_TITLE, ZERO

        contract = Contract(
            contract_id=contract_id,
            business_id=self.config.business_id,
            business_name=self.config.business_name,
            title=title,
            description="",
            conditions=(condition_a, condition_b),
            icon="",
            method=PolicyMethod.DISCOUNT,
            discount_rate=rate,
        )

        batch = WriteBatch(self.store)
        self._check_contract_key(batch, contract_id)
        batch.put(contract_id, encode(contract))
        index = self._load_index(batch)
        updated = index.with_id(contract_id)
        if updated is not index:
            batch.put(self.config.contract_index_key, encode(updated))
        batch.commit()
        logger.info("Registered contract {} ({}) rate={}", contract_id, contract.title, rate)
        return contract

    # ========================================================================
    # LOADERS
    # ========================================================================

    def _load_account(self, source: KeySource, account_id: str) -> Account:
        data = source.get(account_id)
        if data is None:
            raise AccountNotFound(f"Account {account_id} not found")
        account = decode_strict(Account, data)
        if account.account_id != account_id:
            # Accounts and contracts share one key space
            raise AccountNotFound(f"Key {account_id} does not hold an account")
        return account

    def _load_counter(self, source: KeySource) -> ReferenceCounter:
        data = source.get(self.config.reference_counter_key)
        if data is None:
            raise ReferenceCounterNotFound("Reference number has not been provisioned")
        return decode_strict(ReferenceCounter, data)

    def _load_index(self, source: KeySource) -> ContractIndex:
        return decode_strict(ContractIndex, source.get(self.config.contract_index_key))

    def _check_contract_key(self, source: KeySource, contract_id: str) -> None:
        reserved = (self.config.transaction_log_key, self.config.contract_index_key,
                    self.config.reference_counter_key)
        if contract_id in reserved:
            raise KeyConflict(f"Contract id {contract_id!r} is a reserved ledger key")
        data = source.get(contract_id)
        if data is not None and decode(Account, data).account_id == contract_id:
            raise KeyConflict(f"Key {contract_id} holds an account")
