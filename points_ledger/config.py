"""
Configuration management for the points ledger
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core import (
    ConfigError,
    TRANSACTION_LOG_KEY, CONTRACT_INDEX_KEY, REFERENCE_COUNTER_KEY,
    REFERENCE_NUMBER_SEED, NUM_TX_TO_RETURN,
)


ENV_PREFIX = "POINTS_LEDGER_"

VALID_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class LedgerConfig(BaseModel):
    """Configuration model for the ledger engine and CLI"""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    # Storage
    store_path: str = Field(default="points_ledger_state.json", description="State file used by the CLI")
    transaction_log_key: str = Field(default=TRANSACTION_LOG_KEY, description="Store key of the transaction log")
    contract_index_key: str = Field(default=CONTRACT_INDEX_KEY, description="Store key of the contract index")
    reference_counter_key: str = Field(default=REFERENCE_COUNTER_KEY, description="Store key of the reference counter")

    # Engine
    tx_query_limit: int = Field(default=NUM_TX_TO_RETURN, gt=0, description="Max transactions returned by getTxs")
    reference_number_seed: int = Field(default=REFERENCE_NUMBER_SEED, ge=0, description="Counter value after provisioning")
    business_id: str = Field(default="T5940872", description="Owner recorded on contracts registered at runtime")
    business_name: str = Field(default="Open Travel", description="Owner name recorded on registered contracts")

    # Provisioning
    seed_file: Optional[str] = Field(default=None, description="JSON seed file; the demo seed when unset")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    log_rotation: str = Field(default="10 MB", description="Log rotation size")
    log_retention: str = Field(default="30 days", description="Log retention period")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return level


def environment_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Collect POINTS_LEDGER_<FIELD> variables as field overrides."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for field_name in LedgerConfig.model_fields:
        value = environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None:
            overrides[field_name] = value
    return overrides


def load_config(config_file: Optional[str] = None,
                environ: Optional[Dict[str, str]] = None,
                **overrides: Any) -> LedgerConfig:
    """
    Build the configuration from, in increasing priority: defaults, a JSON
    config file, environment variables, and keyword overrides.

    Raises:
        ConfigError: If the file cannot be read or a value fails validation.
    """
    data: Dict[str, Any] = {}
    if config_file is not None:
        path = Path(config_file)
        try:
            with open(path, "r", encoding="utf-8") as f:
                file_data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to load configuration from {path}: {e}") from e
        if not isinstance(file_data, dict):
            raise ConfigError(f"Configuration file {path} must hold a JSON object")
        data.update(file_data)

    data.update(environment_overrides(environ))
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return LedgerConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
