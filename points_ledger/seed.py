"""
seed.py - Provisioning

Creates the initial ledger state from a list of account and contract
records. The engine never seeds itself: provisioning is run by the CLI's
`seed` command or by the dispatch layer's `init` operation.

Provisioning resets the transaction log and the reference counter, writes
every account and contract, and rebuilds the contract index, all in one
commit.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
import json
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .codec import encode
from .config import LedgerConfig
from .core import (
    Account, Contract, ContractIndex, PolicyMethod, ReferenceCounter, TransactionLog,
    ConfigError, REFERENCE_NUMBER_SEED, utc,
)
from .store import StateStore, WriteBatch


class AccountRecord(BaseModel):
    """Seed record for one account"""

    account_id: str = Field(min_length=1)
    name: str
    balance: Decimal = Decimal("0")
    status: str = "Member"
    expiration_date: str = ""
    join_date: str = ""
    modified_date: str = ""

    def to_account(self) -> Account:
        return Account(
            account_id=self.account_id,
            name=self.name,
            balance=self.balance,
            status=self.status,
            num_transactions=0,
            join_date=self.join_date,
            modified_date=self.modified_date,
            expiration_date=self.expiration_date,
        )


class ContractRecord(BaseModel):
    """Seed record for one contract"""

    contract_id: str = Field(min_length=1)
    business_id: str = ""
    business_name: str = ""
    title: str = ""
    description: str = ""
    conditions: List[str] = Field(default_factory=list)
    icon: str = ""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    method: PolicyMethod = PolicyMethod.DISCOUNT
    discount_rate: Decimal = Decimal("0")

    @field_validator("discount_rate")
    @classmethod
    def _check_rate(cls, value: Decimal) -> Decimal:
        if not Decimal("0") <= value < Decimal("1"):
            raise ValueError(f"discount_rate must be in [0, 1), got {value}")
        return value

    def to_contract(self) -> Contract:
        return Contract(
            contract_id=self.contract_id,
            business_id=self.business_id,
            business_name=self.business_name,
            title=self.title,
            description=self.description,
            conditions=tuple(self.conditions),
            icon=self.icon,
            start_date=utc(self.start_date) if self.start_date else None,
            end_date=utc(self.end_date) if self.end_date else None,
            method=self.method,
            discount_rate=self.discount_rate,
        )


class SeedData(BaseModel):
    """Complete initial state"""

    accounts: List[AccountRecord] = Field(default_factory=list)
    contracts: List[ContractRecord] = Field(default_factory=list)
    reference_number: int = Field(default=REFERENCE_NUMBER_SEED, ge=0)


DEMO_SEED = SeedData(
    accounts=[
        AccountRecord(account_id="B1928564", name="OpenFN", balance=Decimal("1000000"),
                      status="Originator", expiration_date="2099-12-31",
                      join_date="2015-01-01", modified_date="2016-05-06"),
        AccountRecord(account_id="T5940872", name="Open Travel", balance=Decimal("500000"),
                      status="Member", expiration_date="2099-12-31",
                      join_date="2015-01-01", modified_date="2016-05-06"),
        AccountRecord(account_id="U2974034", name="Natalie", balance=Decimal("1001"),
                      status="Platinum", expiration_date="2017-06-01",
                      join_date="2015-05-31", modified_date="2016-05-06"),
        AccountRecord(account_id="U3151672", name="Anthony", balance=Decimal("50000"),
                      status="Silver", expiration_date="2017-03-15",
                      join_date="2015-08-15", modified_date="2016-04-17"),
    ],
    contracts=[
        ContractRecord(
            contract_id="Paris",
            business_id="T5940872",
            business_name="Open Travel",
            title="Paris for Less",
            description="All Paris travel activities are half the stated point price",
            conditions=["Half off dining and travel activities in Paris", "Valid from May 11, 2016"],
            start_date=datetime.fromisoformat("2016-05-11T12:00:00+00:00"),
            end_date=datetime.fromisoformat("2060-12-31T11:59:00+00:00"),
            method=PolicyMethod.TRAVEL,
        ),
        ContractRecord(
            contract_id="Feedback",
            business_id="T5940872",
            business_name="Open Travel",
            title="Points for Feedback",
            description="Earn points by sharing your thoughts on travel package and activities",
            conditions=["1,000 points for travel package ", "Valid from May 24, 2016"],
            start_date=datetime.fromisoformat("2016-05-24T12:00:00+00:00"),
            end_date=datetime.fromisoformat("2060-12-31T11:59:00+00:00"),
            method=PolicyMethod.FEEDBACK,
        ),
    ],
)


def demo_seed(config: Optional[LedgerConfig] = None) -> SeedData:
    """DEMO_SEED with the reference counter taken from `config`."""
    config = config or LedgerConfig()
    return DEMO_SEED.model_copy(update={"reference_number": config.reference_number_seed})


def load_seed(path: str) -> SeedData:
    """
    Load seed records from a JSON file.

    Raises:
        ConfigError: If the file cannot be read or does not validate.
    """
    try:
        with open(Path(path), "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to load seed file {path}: {e}") from e
    try:
        return SeedData.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid seed file {path}: {e}") from e


def provision(store: StateStore, seed: SeedData = DEMO_SEED,
              config: Optional[LedgerConfig] = None) -> None:
    """
    Write the initial ledger state.

    Accounts and contracts are overwritten by identifier; the transaction log
    is emptied and the reference counter reset to `seed.reference_number`.
    """
    config = config or LedgerConfig()
    batch = WriteBatch(store)
    for record in seed.accounts:
        batch.put(record.account_id, encode(record.to_account()))

    index = ContractIndex()
    for record in seed.contracts:
        batch.put(record.contract_id, encode(record.to_contract()))
        index = index.with_id(record.contract_id)

    batch.put(config.contract_index_key, encode(index))
    batch.put(config.transaction_log_key, encode(TransactionLog()))
    batch.put(config.reference_counter_key, encode(ReferenceCounter(seed.reference_number)))
    batch.commit()
    logger.info("Provisioned {} account(s), {} contract(s), reference number {}",
                len(seed.accounts), len(index.contract_ids), seed.reference_number)
