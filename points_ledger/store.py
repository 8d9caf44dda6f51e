"""
store.py - State Store Adapter

The ordered key-value store the engine runs against is owned by the host
ledger platform. This module defines the contract the engine consumes and
two local implementations used by the CLI and the tests.

Classes:
- StateStore: Protocol for get/put plus an all-or-nothing multi-key commit
- MemoryStore: In-process dict-backed store
- FileStore: JSON file on disk, replaced atomically on every commit
- WriteBatch: Staged writes for one invocation, read back before commit
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Protocol, runtime_checkable
import json
import os
import tempfile

from loguru import logger

from .core import StoreUnavailable


@runtime_checkable
class StateStore(Protocol):
    """
    Key-value interface to ledger state.

    Implementations must guarantee that `commit` applies every write or none
    of them. Any adapter failure is reported as StoreUnavailable.
    """

    def get(self, key: str) -> Optional[bytes]:
        """Return the value stored at `key`, or None if the key was never written."""
        ...

    def put(self, key: str, value: bytes) -> None:
        """Write a single key."""
        ...

    def commit(self, writes: Mapping[str, bytes]) -> None:
        """Write several keys atomically."""
        ...


class MemoryStore:
    """
    Dict-backed store.

    Commits are applied with a single dict.update, so readers never observe
    half of a batch.
    """

    def __init__(self, initial: Optional[Mapping[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self.commit({key: value})

    def commit(self, writes: Mapping[str, bytes]) -> None:
        for key, value in writes.items():
            if not isinstance(value, (bytes, bytearray)):
                raise TypeError(f"Store values must be bytes, got {type(value).__name__} for {key!r}")
        self._data.update({k: bytes(v) for k, v in writes.items()})

    def keys(self) -> Iterator[str]:
        return iter(sorted(self._data))

    def snapshot(self) -> Dict[str, bytes]:
        """Return a copy of every key and value."""
        return dict(self._data)


class FileStore:
    """
    Store persisted as a single JSON object mapping keys to UTF-8 values.

    Each commit rewrites the file through a temporary file and os.replace,
    which is atomic on POSIX and Windows.

    Not safe for concurrent writers. The host platform is expected to
    serialize invocations.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StoreUnavailable(f"Cannot read state file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreUnavailable(f"State file {self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[bytes]:
        value = self._load().get(key)
        return None if value is None else value.encode("utf-8")

    def put(self, key: str, value: bytes) -> None:
        self.commit({key: value})

    def commit(self, writes: Mapping[str, bytes]) -> None:
        data = self._load()
        try:
            for key, value in writes.items():
                data[key] = bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise StoreUnavailable(f"Store values must be UTF-8: {e}") from e

        directory = self.path.parent if str(self.path.parent) else Path(".")
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, sort_keys=True)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StoreUnavailable(f"Cannot write state file {self.path}: {e}") from e
        logger.debug("Committed {} key(s) to {}", len(writes), self.path)


class WriteBatch:
    """
    Staged writes for a single invocation.

    Reads go to the staged value first and fall through to the store, so a
    later step sees what an earlier step wrote (a self-transfer debits the
    already-credited account). Nothing reaches the store until commit().

    Example:
        batch = WriteBatch(store)
        batch.put("alice", encode(alice))
        batch.put("allTx", encode(log))
        batch.commit()          # both keys or neither
    """

    def __init__(self, store: StateStore):
        self._store = store
        self._writes: Dict[str, bytes] = {}
        self._committed = False

    def get(self, key: str) -> Optional[bytes]:
        if key in self._writes:
            return self._writes[key]
        return self._store.get(key)

    def put(self, key: str, value: bytes) -> None:
        if self._committed:
            raise RuntimeError("WriteBatch already committed")
        self._writes[key] = value

    @property
    def pending_keys(self) -> tuple:
        return tuple(self._writes)

    def commit(self) -> None:
        if self._committed:
            raise RuntimeError("WriteBatch already committed")
        if self._writes:
            self._store.commit(dict(self._writes))
        self._committed = True
