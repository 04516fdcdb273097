"""
trustledger.storage — Ledger Store: pluggable persistence plus typed tables.

Backends: MemoryBackend, SQLiteBackend, FileBackend
LedgerStore: accounts, verifiers, submissions, disputes, counters and the
logical clock, with all-or-nothing transactions on top of any backend.
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from trustledger.models import AccountReputation, Dispute, Submission, Verifier

ACCOUNT_PREFIX = "account:"
VERIFIER_PREFIX = "verifier:"
SUBMISSION_PREFIX = "submission:"
DISPUTE_PREFIX = "dispute:"
COUNTER_PREFIX = "counter:"

COUNTERS = ("total_users", "total_verifiers", "submission_sequence", "dispute_sequence", "height")


# ─── Abstract Backend ──────────────────────────────────────────────

class StorageBackend(ABC):
    """Abstract persistence interface."""

    @abstractmethod
    def save(self, key: str, data: dict) -> None: ...

    @abstractmethod
    def load(self, key: str) -> Optional[dict]: ...

    @abstractmethod
    def list_keys(self, prefix: str = "") -> list[str]: ...

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    # Bulk operations (default impls, backends may override)
    def save_many(self, items: dict[str, dict], create_only: Iterable[str] = ()) -> None:
        """Write ``items``; keys in ``create_only`` must not exist yet."""
        for k in create_only:
            if self.exists(k):
                raise ValueError(f"Record {k} already exists")
        for k, v in items.items():
            self.save(k, v)

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the backend's write lock for a whole ledger transaction."""
        yield

    def load_many(self, keys: list[str]) -> dict[str, Optional[dict]]:
        return {k: self.load(k) for k in keys}

    def close(self) -> None:
        pass


def _account_of(data: dict) -> Optional[str]:
    return data.get("account") or data.get("user")


# ─── Memory Backend ────────────────────────────────────────────────

class MemoryBackend(StorageBackend):
    """In-memory dict storage (default, for testing)."""

    def __init__(self):
        self._store: dict[str, dict] = {}

    def save(self, key: str, data: dict) -> None:
        self._store[key] = data

    def load(self, key: str) -> Optional[dict]:
        return self._store.get(key)

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._store if k.startswith(prefix))

    def exists(self, key: str) -> bool:
        return key in self._store

    def save_many(self, items: dict[str, dict], create_only: Iterable[str] = ()) -> None:
        clashes = [k for k in create_only if k in self._store]
        if clashes:
            raise ValueError(f"Record {clashes[0]} already exists")
        self._store.update(items)


# ─── SQLite Backend ────────────────────────────────────────────────

class SQLiteBackend(StorageBackend):
    """
    File-based SQLite with WAL mode, safe to share between processes.

    ``exclusive()`` opens a ``BEGIN IMMEDIATE`` transaction, so every ledger
    transaction holds the database write lock from its first read to its
    flush. Other connections on the same file wait up to ``timeout`` seconds.
    """

    def __init__(self, db_path: str = "trustledger.db", timeout: float = 30.0):
        self._db_path = db_path
        self._lock = threading.RLock()
        self._in_transaction = False
        self._conn = sqlite3.connect(
            db_path, timeout=timeout, check_same_thread=False, isolation_level=None,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                account TEXT,
                updated_at TEXT DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_account ON kv(account)")

    def _write(self, key: str, data: dict, create: bool = False) -> None:
        verb = "INSERT" if create else "INSERT OR REPLACE"
        try:
            self._conn.execute(
                f"{verb} INTO kv (key, data, account, updated_at) VALUES (?, ?, ?, ?)",
                (key, json.dumps(data), _account_of(data), datetime.now(timezone.utc).isoformat()),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Record {key} already exists") from e

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._lock:
            if self._in_transaction:
                yield
                return
            self._conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._in_transaction = False

    def save(self, key: str, data: dict) -> None:
        self.save_many({key: data})

    def load(self, key: str) -> Optional[dict]:
        with self._lock:
            row = self._conn.execute("SELECT data FROM kv WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [r[0] for r in rows]

    def exists(self, key: str) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM kv WHERE key = ?", (key,)).fetchone()
        return row is not None

    def save_many(self, items: dict[str, dict], create_only: Iterable[str] = ()) -> None:
        created = set(create_only)
        with self.exclusive():
            for k, data in items.items():
                self._write(k, data, create=k in created)

    def close(self):
        self._conn.close()


# ─── File Backend ──────────────────────────────────────────────────

class FileBackend(StorageBackend):
    """JSONL-based file storage. One file per namespace, last write wins."""

    def __init__(self, base_dir: str = "trustledger_data", namespace: str = "ledger"):
        self._base_dir = Path(base_dir)
        self._namespace = namespace
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def _filepath(self) -> Path:
        return self._base_dir / f"{self._namespace}.jsonl"

    def _read_all(self) -> dict[str, dict]:
        records: dict[str, dict] = {}
        if not self._filepath.exists():
            return records
        with open(self._filepath, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = json.loads(line)
                key = entry.pop("__key__")
                records[key] = entry
        return records

    def save(self, key: str, data: dict) -> None:
        self.save_many({key: data})

    def save_many(self, items: dict[str, dict], create_only: Iterable[str] = ()) -> None:
        # One write call per batch so a transaction lands as a single append
        if create_only:
            with self._lock:
                existing = self._read_all()
            clashes = [k for k in create_only if k in existing]
            if clashes:
                raise ValueError(f"Record {clashes[0]} already exists")
        lines = "".join(json.dumps({"__key__": k, **v}) + "\n" for k, v in items.items())
        with self._lock:
            with open(self._filepath, "a") as f:
                f.write(lines)

    def load(self, key: str) -> Optional[dict]:
        with self._lock:
            records = self._read_all()
        return records.get(key)

    def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            records = self._read_all()
        return sorted(k for k in records if k.startswith(prefix))

    def exists(self, key: str) -> bool:
        with self._lock:
            records = self._read_all()
        return key in records


# ─── Ledger Store ──────────────────────────────────────────────────

def submission_key(sequence: int) -> str:
    return f"{SUBMISSION_PREFIX}{sequence:012d}"


def dispute_key(account: str, sequence: int) -> str:
    return f"{DISPUTE_PREFIX}{account}:{sequence:012d}"


class LedgerStore:
    """
    Typed ledger state over a StorageBackend.

    Every public ledger operation runs inside ``transaction()``: the store
    lock serializes operations within the process and the backend's
    ``exclusive()`` lock serializes them across processes sharing a file.
    Writes are buffered and flushed to the backend in one ``save_many``
    only if the block exits cleanly. Reads inside a transaction see its own
    buffered writes. Submissions and disputes are flushed as create-only
    keys, so an append never overwrites an existing record.

    Usage:
        store = LedgerStore(SQLiteBackend("ledger.db"))
        with store.transaction():
            seq = store.next_sequence("submission_sequence")
            store.put_submission(Submission(sequence=seq, ...))
    """

    def __init__(self, backend: Optional[StorageBackend] = None):
        self._backend = backend or MemoryBackend()
        self._lock = threading.RLock()
        self._pending: Optional[dict[str, dict]] = None
        self._created: set[str] = set()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @contextmanager
    def transaction(self) -> Iterator["LedgerStore"]:
        with self._lock:
            if self._pending is not None:
                # Nested: fold into the enclosing transaction
                yield self
                return
            with self._backend.exclusive():
                self._pending, self._created = {}, set()
                try:
                    yield self
                except BaseException:
                    self._pending = None
                    raise
                pending, self._pending = self._pending, None
                if pending:
                    self._backend.save_many(pending, create_only=self._created)

    # -- raw access --

    def _read(self, key: str) -> Optional[dict]:
        with self._lock:
            if self._pending is not None and key in self._pending:
                return self._pending[key]
            return self._backend.load(key)

    def _write(self, key: str, data: dict, create: bool = False) -> None:
        with self.transaction():
            self._pending[key] = data
            if create:
                self._created.add(key)

    def _keys(self, prefix: str) -> list[str]:
        with self._lock:
            keys = set(self._backend.list_keys(prefix))
            if self._pending:
                keys.update(k for k in self._pending if k.startswith(prefix))
        return sorted(keys)

    # -- counters --

    def counter(self, name: str) -> int:
        if name not in COUNTERS:
            raise KeyError(f"Unknown counter: {name}")
        data = self._read(f"{COUNTER_PREFIX}{name}")
        return int(data["value"]) if data else 0

    def _set_counter(self, name: str, value: int) -> None:
        self._write(f"{COUNTER_PREFIX}{name}", {"value": value})

    def increment(self, name: str, by: int = 1) -> int:
        """Add ``by`` to a counter and return the new value."""
        with self.transaction():
            value = self.counter(name) + by
            self._set_counter(name, value)
        return value

    def next_sequence(self, name: str) -> int:
        """Allocate the next id from a sequence counter (first id is 0)."""
        with self.transaction():
            allocated = self.counter(name)
            self._set_counter(name, allocated + 1)
        return allocated

    # -- logical clock --

    @property
    def height(self) -> int:
        return self.counter("height")

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("Ledger height cannot move backwards")
        return self.increment("height", blocks)

    # -- accounts --

    def get_account(self, account: str) -> Optional[AccountReputation]:
        data = self._read(f"{ACCOUNT_PREFIX}{account}")
        return AccountReputation.from_dict(data) if data else None

    def put_account(self, record: AccountReputation) -> None:
        self._write(f"{ACCOUNT_PREFIX}{record.account}", record.to_dict())

    # -- verifiers --

    def get_verifier(self, account: str) -> Optional[Verifier]:
        data = self._read(f"{VERIFIER_PREFIX}{account}")
        return Verifier.from_dict(data) if data else None

    def put_verifier(self, record: Verifier) -> None:
        self._write(f"{VERIFIER_PREFIX}{record.account}", record.to_dict())

    # -- submissions (append-only) --

    def get_submission(self, sequence: int) -> Optional[Submission]:
        data = self._read(submission_key(sequence))
        return Submission.from_dict(data) if data else None

    def put_submission(self, record: Submission) -> None:
        key = submission_key(record.sequence)
        with self.transaction():
            if self._read(key) is not None:
                raise ValueError(f"Submission {record.sequence} already written")
            self._write(key, record.to_dict(), create=True)

    def list_submissions(self, user: Optional[str] = None) -> list[Submission]:
        records = [Submission.from_dict(self._read(k)) for k in self._keys(SUBMISSION_PREFIX)]
        if user is not None:
            records = [s for s in records if s.user == user]
        return records

    # -- disputes (append-only) --

    def get_dispute(self, account: str, sequence: int) -> Optional[Dispute]:
        data = self._read(dispute_key(account, sequence))
        return Dispute.from_dict(data) if data else None

    def put_dispute(self, record: Dispute) -> None:
        key = dispute_key(record.account, record.sequence)
        with self.transaction():
            if self._read(key) is not None:
                raise ValueError(f"Dispute {record.sequence} already written")
            self._write(key, record.to_dict(), create=True)

    def list_disputes(self, account: str) -> list[Dispute]:
        return [Dispute.from_dict(self._read(k)) for k in self._keys(f"{DISPUTE_PREFIX}{account}:")]

    def close(self) -> None:
        self._backend.close()


__all__ = [
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
    "FileBackend",
    "LedgerStore",
    "submission_key",
    "dispute_key",
]
