"""
Tests for seed.py - Provisioning

Tests:
- Demo seed contents
- Record validation and conversion
- provision() writes everything in one commit and resets log and counter
- load_seed() reads JSON and reports failures as ConfigError
"""

import json
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import ValidationError

from points_ledger import (
    Account, Contract, ContractIndex, TransactionLog, ReferenceCounter, PolicyMethod,
    AccountRecord, ContractRecord, SeedData, DEMO_SEED, demo_seed, load_seed, provision,
    LedgerConfig, MemoryStore, ConfigError, REFERENCE_NUMBER_SEED, decode, encode,
)
from tests.conftest import BANK, TRAVEL, NATALIE, ANTHONY, simple_seed
from tests.fake_store import FailingStore


class TestDemoSeed:

    def test_accounts(self):
        ids = [record.account_id for record in DEMO_SEED.accounts]
        assert ids == [BANK, TRAVEL, NATALIE, ANTHONY]

    def test_contracts(self):
        methods = {record.contract_id: record.method for record in DEMO_SEED.contracts}
        assert methods == {"Paris": PolicyMethod.TRAVEL, "Feedback": PolicyMethod.FEEDBACK}

    def test_reference_number(self):
        assert DEMO_SEED.reference_number == REFERENCE_NUMBER_SEED

    def test_demo_seed_uses_configured_counter(self):
        seed = demo_seed(LedgerConfig(reference_number_seed=7))
        assert seed.reference_number == 7
        assert DEMO_SEED.reference_number == REFERENCE_NUMBER_SEED


class TestRecords:

    def test_account_record_to_account(self):
        account = AccountRecord(account_id="a", name="A", balance=Decimal("5")).to_account()
        assert account == Account(account_id="a", name="A", balance=Decimal("5"), status="Member")

    def test_empty_account_id_rejected(self):
        with pytest.raises(ValidationError):
            AccountRecord(account_id="", name="A")

    def test_contract_record_naive_dates_become_utc(self):
        contract = ContractRecord(contract_id="c", start_date=datetime(2020, 1, 1),
                                  end_date=datetime(2021, 1, 1)).to_contract()
        assert contract.start_date == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert contract.end_date.tzinfo is not None

    def test_contract_record_conditions_become_tuple(self):
        contract = ContractRecord(contract_id="c", conditions=["x", "y"]).to_contract()
        assert contract.conditions == ("x", "y")

    @pytest.mark.parametrize("rate", ["1", "1.5", "-0.1"])
    def test_contract_record_rate_range(self, rate):
        with pytest.raises(ValidationError, match="discount_rate"):
            ContractRecord(contract_id="c", discount_rate=Decimal(rate))

    def test_negative_reference_number_rejected(self):
        with pytest.raises(ValidationError):
            SeedData(reference_number=-1)


class TestProvision:

    def test_writes_all_entities(self):
        store = MemoryStore()
        provision(store, DEMO_SEED)
        assert decode(Account, store.get(NATALIE)).balance == Decimal("1001")
        assert decode(Contract, store.get("Paris")).method is PolicyMethod.TRAVEL
        assert decode(ContractIndex, store.get("contractIds")) == ContractIndex(("Paris", "Feedback"))
        assert decode(TransactionLog, store.get("allTx")) == TransactionLog()
        assert decode(ReferenceCounter, store.get("refNumber")).value == REFERENCE_NUMBER_SEED

    def test_single_commit(self):
        store = FailingStore()
        provision(store, DEMO_SEED)
        assert len(store.commits) == 1

    def test_resets_log_and_counter(self):
        store = MemoryStore()
        provision(store, simple_seed(AccountRecord(account_id="a", name="A")))
        store.put("allTx", b'{"transactions":[{"RefNumber":"1"}]}')
        store.put("refNumber", encode(ReferenceCounter(500)))
        provision(store, simple_seed(AccountRecord(account_id="a", name="A"), reference_number=100))
        assert decode(TransactionLog, store.get("allTx")) == TransactionLog()
        assert decode(ReferenceCounter, store.get("refNumber")).value == 100

    def test_duplicate_contract_indexed_once(self):
        store = MemoryStore()
        seed = simple_seed(contracts=[ContractRecord(contract_id="c"), ContractRecord(contract_id="c")])
        provision(store, seed)
        assert decode(ContractIndex, store.get("contractIds")) == ContractIndex(("c",))

    def test_custom_keys(self):
        store = MemoryStore()
        config = LedgerConfig(transaction_log_key="log", reference_counter_key="ref",
                              contract_index_key="idx")
        provision(store, simple_seed(), config)
        assert set(store.snapshot()) == {"log", "ref", "idx"}


class TestLoadSeed:

    def test_load(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({
            "accounts": [{"account_id": "a", "name": "A", "balance": "10.5"}],
            "contracts": [{"contract_id": "Rome", "method": "travelContract",
                           "start_date": "2020-01-01T00:00:00Z",
                           "end_date": "2030-01-01T00:00:00Z"}],
            "reference_number": 1,
        }))
        seed = load_seed(str(path))
        assert seed.accounts[0].balance == Decimal("10.5")
        assert seed.contracts[0].method is PolicyMethod.TRAVEL
        assert seed.reference_number == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Failed to load seed"):
            load_seed(str(tmp_path / "nope.json"))

    def test_invalid_content(self, tmp_path):
        path = tmp_path / "seed.json"
        path.write_text(json.dumps({"accounts": [{"name": "no id"}]}))
        with pytest.raises(ConfigError, match="Invalid seed"):
            load_seed(str(path))
