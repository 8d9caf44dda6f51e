"""
codec.py - Entity Codec

Serializes ledger entities to and from the byte values held by the state
store. Documents are JSON objects using the field names clients of the
points network already read (UserId, Balance, RefNumber, ...).

Decoding is permissive: absent, empty, or malformed bytes decode to the
zero-valued entity so that first use of a never-written key (e.g. the
transaction log) behaves like an empty entity. Whether absence is an error
is decided by the caller, not here.

decode_strict() is the variant for values the engine is about to rewrite:
there malformed bytes raise CorruptDocument instead of reading as empty.

Round-trip guarantee: decode(type(x), encode(x)) == x for every entity.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar
import json

from loguru import logger

from .core import (
    Account, Contract, Transaction, TransactionLog, ReferenceCounter, ContractIndex,
    PolicyMethod, TransactionStatus, CorruptDocument, ZERO, utc,
)


E = TypeVar("E")


# ============================================================================
# FIELD HELPERS
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Canonical string form of a Decimal.

    Decimal("1.0") and Decimal("1.00") both become "1"; no scientific notation.
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _encode_decimal(d: Decimal) -> Any:
    """
    JSON value for an amount.

    Integral amounts become JSON integers. Fractional amounts become JSON
    numbers when the float representation reads back to the same Decimal,
    and canonical strings otherwise.
    """
    if d == d.to_integral_value():
        return int(d)
    as_float = float(d)
    if Decimal(repr(as_float)) == d:
        return as_float
    return _normalize_decimal(d)


def _decode_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Expected a number, got {value!r}") from None
        if not result.is_finite():
            raise ValueError(f"Expected a finite number, got {value!r}")
        return result
    raise ValueError(f"Expected a number, got {value!r}")


def _encode_time(when: Optional[datetime]) -> Optional[str]:
    if when is None:
        return None
    return utc(when).isoformat().replace("+00:00", "Z")


def _decode_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO-8601 timestamp, got {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    return utc(datetime.fromisoformat(text))


def _str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"Expected a string, got {value!r}")
    return value


def _int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got {value!r}")
    return int(value)


def _method(value: Any) -> PolicyMethod:
    if not value:
        return PolicyMethod.DISCOUNT
    try:
        return PolicyMethod(value)
    except ValueError:
        logger.warning("Unknown contract method {!r}, treating as discount policy", value)
        return PolicyMethod.DISCOUNT


# ============================================================================
# ENTITY <-> DOCUMENT
# ============================================================================

def _account_to_doc(account: Account) -> Dict[str, Any]:
    return {
        "UserId": account.account_id,
        "Name": account.name,
        "Balance": _encode_decimal(account.balance),
        "NumberOfTransactions": account.num_transactions,
        "Status": account.status,
        "ExpirationDate": account.expiration_date,
        "JoinDate": account.join_date,
        "LastModifiedDate": account.modified_date,
    }


def _account_from_doc(doc: Dict[str, Any]) -> Account:
    return Account(
        account_id=_str(doc.get("UserId")),
        name=_str(doc.get("Name")),
        balance=_decode_decimal(doc.get("Balance")),
        status=_str(doc.get("Status")),
        num_transactions=_int(doc.get("NumberOfTransactions")),
        join_date=_str(doc.get("JoinDate")),
        modified_date=_str(doc.get("LastModifiedDate")),
        expiration_date=_str(doc.get("ExpirationDate")),
    )


def _contract_to_doc(contract: Contract) -> Dict[str, Any]:
    return {
        "ID": contract.contract_id,
        "BusinessId": contract.business_id,
        "BusinessName": contract.business_name,
        "Title": contract.title,
        "Description": contract.description,
        "Conditions": list(contract.conditions),
        "Icon": contract.icon,
        "StartDate": _encode_time(contract.start_date),
        "EndDate": _encode_time(contract.end_date),
        "Method": contract.method.value,
        "DiscountRate": _encode_decimal(contract.discount_rate),
    }


def _contract_from_doc(doc: Dict[str, Any]) -> Contract:
    conditions = doc.get("Conditions") or []
    if not isinstance(conditions, list):
        raise ValueError(f"Expected a list of conditions, got {conditions!r}")
    return Contract(
        contract_id=_str(doc.get("ID")),
        business_id=_str(doc.get("BusinessId")),
        business_name=_str(doc.get("BusinessName")),
        title=_str(doc.get("Title")),
        description=_str(doc.get("Description")),
        conditions=tuple(_str(c) for c in conditions),
        icon=_str(doc.get("Icon")),
        start_date=_decode_time(doc.get("StartDate")),
        end_date=_decode_time(doc.get("EndDate")),
        method=_method(doc.get("Method")),
        discount_rate=_decode_decimal(doc.get("DiscountRate")),
    )


def _transaction_to_doc(tx: Transaction) -> Dict[str, Any]:
    return {
        "RefNumber": str(tx.ref_number),
        "Date": _encode_time(tx.date),
        "description": tx.description,
        "Type": tx.tx_type,
        "Amount": _encode_decimal(tx.amount),
        "Money": _encode_decimal(tx.money),
        "FeedbackActivitiesDone": tx.activities,
        "ToUserid": tx.to_id,
        "FromUserid": tx.from_id,
        "ToName": tx.to_name,
        "FromName": tx.from_name,
        "ContractId": tx.contract_id,
        "StatusCode": tx.status.code,
        "StatusMsg": tx.status.message,
    }


def _status(value: Any) -> TransactionStatus:
    if value is None:
        return TransactionStatus.COMPLETED
    code = _int(value)
    try:
        return TransactionStatus.from_code(code)
    except ValueError:
        logger.warning("Unknown transaction status code {}, treating as completed", code)
        return TransactionStatus.COMPLETED


def _transaction_from_doc(doc: Dict[str, Any]) -> Transaction:
    status = _status(doc.get("StatusCode"))
    return Transaction(
        ref_number=_int(doc.get("RefNumber")),
        date=_decode_time(doc.get("Date")),
        description=_str(doc.get("description")),
        tx_type=_str(doc.get("Type")),
        amount=_decode_decimal(doc.get("Amount")),
        money=_decode_decimal(doc.get("Money")),
        activities=_int(doc.get("FeedbackActivitiesDone")),
        to_id=_str(doc.get("ToUserid")),
        from_id=_str(doc.get("FromUserid")),
        to_name=_str(doc.get("ToName")),
        from_name=_str(doc.get("FromName")),
        contract_id=_str(doc.get("ContractId")),
        status=status,
    )


def _log_to_doc(log: TransactionLog) -> Dict[str, Any]:
    return {"transactions": [_transaction_to_doc(tx) for tx in log.transactions]}


def _log_from_doc(doc: Dict[str, Any]) -> TransactionLog:
    entries = doc.get("transactions") or []
    if not isinstance(entries, list):
        raise ValueError(f"Expected a list of transactions, got {entries!r}")
    return TransactionLog(tuple(_transaction_from_doc(_object(e)) for e in entries))


def _counter_to_doc(counter: ReferenceCounter) -> int:
    return counter.value


def _counter_from_doc(doc: Any) -> ReferenceCounter:
    return ReferenceCounter(_int(doc))


def _index_to_doc(index: ContractIndex) -> list:
    return list(index.contract_ids)


def _index_from_doc(doc: Any) -> ContractIndex:
    if doc is None:
        return ContractIndex()
    if not isinstance(doc, list):
        raise ValueError(f"Expected a list of contract ids, got {doc!r}")
    index = ContractIndex()
    for contract_id in doc:
        index = index.with_id(_str(contract_id))
    return index


def _object(doc: Any) -> Dict[str, Any]:
    if not isinstance(doc, dict):
        raise ValueError(f"Expected a JSON object, got {type(doc).__name__}")
    return doc


# entity type -> (to_doc, from_doc)
_CODECS: Dict[type, Tuple[Callable[[Any], Any], Callable[[Any], Any]]] = {
    Account: (_account_to_doc, lambda doc: _account_from_doc(_object(doc))),
    Contract: (_contract_to_doc, lambda doc: _contract_from_doc(_object(doc))),
    Transaction: (_transaction_to_doc, lambda doc: _transaction_from_doc(_object(doc))),
    TransactionLog: (_log_to_doc, lambda doc: _log_from_doc(_object(doc))),
    ReferenceCounter: (_counter_to_doc, _counter_from_doc),
    ContractIndex: (_index_to_doc, _index_from_doc),
}


# ============================================================================
# PUBLIC API
# ============================================================================

def to_document(entity: Any) -> Any:
    """Return the JSON-compatible document for an entity."""
    try:
        to_doc, _ = _CODECS[type(entity)]
    except KeyError:
        raise TypeError(f"No codec for {type(entity).__name__}") from None
    return to_doc(entity)


def encode(entity: Any) -> bytes:
    """Serialize an entity to store bytes."""
    return json.dumps(to_document(entity), separators=(",", ":")).encode("utf-8")


def encode_many(entities) -> bytes:
    """Serialize a sequence of entities as a JSON array."""
    return json.dumps([to_document(e) for e in entities], separators=(",", ":")).encode("utf-8")


def decode_strict(entity_type: Type[E], data: Optional[bytes]) -> E:
    """
    Deserialize store bytes that are about to be read, modified and written back.

    Absent or empty data yields the zero-valued entity.

    Raises:
        CorruptDocument: If data is present but does not decode.
    """
    try:
        _, from_doc = _CODECS[entity_type]
    except KeyError:
        raise TypeError(f"No codec for {entity_type.__name__}") from None

    if not data:
        return entity_type()
    try:
        doc = json.loads(data, parse_float=Decimal)
        return from_doc(doc)
    except (ValueError, TypeError, UnicodeDecodeError) as e:
        # json.JSONDecodeError is a ValueError
        raise CorruptDocument(f"Malformed {entity_type.__name__} document: {e}") from e


def decode(entity_type: Type[E], data: Optional[bytes]) -> E:
    """
    Deserialize store bytes into an entity of `entity_type`.

    Absent or empty data yields the zero-valued entity. Malformed data also
    yields the zero-valued entity and is logged. Read-modify-write paths use
    decode_strict instead, so a malformed value is never overwritten.
    """
    try:
        return decode_strict(entity_type, data)
    except CorruptDocument as e:
        logger.warning("{}, using zero value", e)
        return entity_type()
