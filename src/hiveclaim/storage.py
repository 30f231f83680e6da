"""
hiveclaim.storage — Durable set of Bitcoin addresses already used to create accounts.

Backends: MemoryAddressLedger, JsonFileAddressLedger, SQLiteAddressLedger

Every backend exposes the same three operations:
    reserve(address): atomic check-and-set, granted at most once per address
    contains(address): membership test
    load(): all used addresses in reservation order

Membership is monotonic: there is no release.
"""

import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from hiveclaim.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_JSON_PATH = "btc_addresses.json"
SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")


@dataclass(frozen=True)
class Reservation:
    address: str
    granted: bool


# ─── Abstract Ledger ───────────────────────────────────────────────

class UsedAddressLedger(ABC):
    """Abstract used-address store. ``reserve`` is the only mutation."""

    @abstractmethod
    def reserve(self, address: str) -> Reservation: ...

    @abstractmethod
    def contains(self, address: str) -> bool: ...

    @abstractmethod
    def load(self) -> list[str]: ...

    def __contains__(self, address: str) -> bool:
        return self.contains(address)

    def __len__(self) -> int:
        return len(self.load())

    def close(self) -> None:
        pass


# ─── Memory Ledger ─────────────────────────────────────────────────

class MemoryAddressLedger(UsedAddressLedger):
    """In-process set (testing and dry runs; not durable)."""

    def __init__(self, addresses=()):
        self._lock = threading.Lock()
        self._ordered: list[str] = []
        self._set: set[str] = set()
        for address in addresses:
            if address not in self._set:
                self._ordered.append(address)
                self._set.add(address)

    def reserve(self, address: str) -> Reservation:
        with self._lock:
            if address in self._set:
                return Reservation(address, False)
            self._ordered.append(address)
            self._set.add(address)
            return Reservation(address, True)

    def contains(self, address: str) -> bool:
        with self._lock:
            return address in self._set

    def load(self) -> list[str]:
        with self._lock:
            return list(self._ordered)


# ─── JSON File Ledger ──────────────────────────────────────────────

class JsonFileAddressLedger(UsedAddressLedger):
    """JSON array of addresses, loaded at startup and rewritten on each reservation.

    Rewrites go through a temp file in the same directory that is fsynced
    and renamed over the target, so a crash leaves either the old or the
    new list on disk.
    """

    def __init__(self, path: str = DEFAULT_JSON_PATH):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._ordered = self._read()
        self._set = set(self._ordered)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> list[str]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.info("No used-address file at %s, starting empty", self._path)
            return []
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self._path}: {e}") from e
        if not isinstance(data, list) or not all(isinstance(a, str) for a in data):
            raise StorageError(f"{self._path} must hold a JSON array of address strings")
        # tolerate duplicates written by older deployments
        return list(dict.fromkeys(data))

    def _rewrite(self, addresses: list[str]) -> None:
        tmp = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(addresses, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"Cannot write {self._path}: {e}") from e

    def reserve(self, address: str) -> Reservation:
        with self._lock:
            if address in self._set:
                return Reservation(address, False)
            updated = self._ordered + [address]
            self._rewrite(updated)
            self._ordered = updated
            self._set.add(address)
            return Reservation(address, True)

    def contains(self, address: str) -> bool:
        with self._lock:
            return address in self._set

    def load(self) -> list[str]:
        with self._lock:
            return list(self._ordered)


# ─── SQLite Ledger ─────────────────────────────────────────────────

class SQLiteAddressLedger(UsedAddressLedger):
    """Transactional store: WAL mode, one row per address, thread-safe."""

    def __init__(self, db_path: str = "hiveclaim.db"):
        self._db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=FULL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS used_addresses (
                    address TEXT PRIMARY KEY,
                    reserved_at TEXT NOT NULL
                )
            """)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {db_path}: {e}") from e

    def reserve(self, address: str) -> Reservation:
        with self._lock:
            try:
                cur = self._conn.execute(
                    "INSERT OR IGNORE INTO used_addresses (address, reserved_at) VALUES (?, ?)",
                    (address, datetime.now(timezone.utc).isoformat()),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StorageError(f"Cannot reserve address: {e}") from e
            return Reservation(address, cur.rowcount == 1)

    def contains(self, address: str) -> bool:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT 1 FROM used_addresses WHERE address = ?", (address,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
        return row is not None

    def load(self) -> list[str]:
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT address FROM used_addresses ORDER BY rowid"
                ).fetchall()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
        return [r[0] for r in rows]

    def close(self):
        self._conn.close()


def open_ledger(location: str = DEFAULT_JSON_PATH) -> UsedAddressLedger:
    """Pick a backend from a location string.

    ``:memory:`` → memory, ``*.db``/``*.sqlite``/``*.sqlite3`` → SQLite,
    anything else → JSON file.
    """
    if location == ":memory:":
        return MemoryAddressLedger()
    if location.endswith(SQLITE_SUFFIXES):
        return SQLiteAddressLedger(location)
    return JsonFileAddressLedger(location)


__all__ = [
    "Reservation",
    "UsedAddressLedger",
    "MemoryAddressLedger",
    "JsonFileAddressLedger",
    "SQLiteAddressLedger",
    "open_ledger",
]
