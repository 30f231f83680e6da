"""Tests for hiveclaim.storage — used-address ledger backends."""

import json
import threading

import pytest

from hiveclaim.errors import StorageError
from hiveclaim.storage import (
    JsonFileAddressLedger,
    MemoryAddressLedger,
    Reservation,
    SQLiteAddressLedger,
    UsedAddressLedger,
    open_ledger,
)


@pytest.fixture
def memory():
    return MemoryAddressLedger()

@pytest.fixture
def json_ledger(tmp_path):
    return JsonFileAddressLedger(str(tmp_path / "btc_addresses.json"))

@pytest.fixture
def sqlite_ledger(tmp_path):
    db = SQLiteAddressLedger(str(tmp_path / "used.db"))
    yield db
    db.close()


# ─── Common interface (parametrized) ───────────────────────────────

ALL_LEDGERS = ["memory", "json_ledger", "sqlite_ledger"]


@pytest.fixture
def ledger(request):
    return request.getfixturevalue(request.param)


@pytest.mark.parametrize("ledger", ALL_LEDGERS, indirect=True)
class TestLedgerInterface:
    """Test the common interface across all backends."""

    def test_is_ledger(self, ledger):
        assert isinstance(ledger, UsedAddressLedger)

    def test_starts_empty(self, ledger):
        assert ledger.load() == []
        assert not ledger.contains("1Addr")

    def test_reserve_twice(self, ledger):
        assert ledger.reserve("1Addr") == Reservation("1Addr", True)
        assert ledger.reserve("1Addr") == Reservation("1Addr", False)
        assert ledger.load() == ["1Addr"]

    def test_contains_after_reserve(self, ledger):
        ledger.reserve("1Addr")
        assert ledger.contains("1Addr")
        assert "1Addr" in ledger
        assert not ledger.contains("1Other")

    def test_order_preserved(self, ledger):
        for a in ["c", "a", "b"]:
            ledger.reserve(a)
        assert ledger.load() == ["c", "a", "b"]
        assert len(ledger) == 3

    def test_distinct_addresses(self, ledger):
        assert all(ledger.reserve(f"addr{i}").granted for i in range(10))

    def test_concurrent_same_address(self, ledger):
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            granted = ledger.reserve("1Hot").granted
            with lock:
                results.append(granted)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1
        assert results.count(False) == 15
        assert ledger.load() == ["1Hot"]

    def test_concurrent_distinct_addresses(self, ledger):
        threads = [threading.Thread(target=ledger.reserve, args=(f"a{i}",)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(ledger.load()) == sorted(f"a{i}" for i in range(20))


# ─── Durability ────────────────────────────────────────────────────

class TestJsonFile:

    def test_missing_file_is_empty(self, tmp_path):
        ledger = JsonFileAddressLedger(str(tmp_path / "nope.json"))
        assert ledger.load() == []
        assert not (tmp_path / "nope.json").exists()

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "btc.json")
        JsonFileAddressLedger(path).reserve("1Addr")
        fresh = JsonFileAddressLedger(path)
        assert fresh.contains("1Addr")
        assert not fresh.reserve("1Addr").granted

    def test_file_is_flat_json_array(self, tmp_path):
        path = tmp_path / "btc.json"
        ledger = JsonFileAddressLedger(str(path))
        ledger.reserve("1A")
        ledger.reserve("1B")
        assert json.loads(path.read_text()) == ["1A", "1B"]

    def test_reads_existing_file(self, tmp_path):
        path = tmp_path / "btc.json"
        path.write_text(json.dumps(["1A", "1B", "1A"]))
        ledger = JsonFileAddressLedger(str(path))
        assert ledger.load() == ["1A", "1B"]
        assert not ledger.reserve("1B").granted

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "btc.json"
        JsonFileAddressLedger(str(path)).reserve("1A")
        assert path.exists()

    def test_no_temp_files_left(self, tmp_path):
        ledger = JsonFileAddressLedger(str(tmp_path / "btc.json"))
        for i in range(5):
            ledger.reserve(f"a{i}")
        assert [p.name for p in tmp_path.iterdir()] == ["btc.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "btc.json"
        path.write_text("{not json")
        with pytest.raises(StorageError):
            JsonFileAddressLedger(str(path))

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "btc.json"
        path.write_text(json.dumps({"addresses": []}))
        with pytest.raises(StorageError):
            JsonFileAddressLedger(str(path))

    def test_write_failure_leaves_state_unchanged(self, tmp_path, monkeypatch):
        path = tmp_path / "btc.json"
        ledger = JsonFileAddressLedger(str(path))
        ledger.reserve("1A")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("hiveclaim.storage.os.replace", broken_replace)
        with pytest.raises(StorageError):
            ledger.reserve("1B")
        assert not ledger.contains("1B")
        assert json.loads(path.read_text()) == ["1A"]
        assert [p.name for p in tmp_path.iterdir()] == ["btc.json"]

    def test_unreadable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("i am a file")
        with pytest.raises(StorageError):
            JsonFileAddressLedger(str(blocker / "btc.json"))


class TestSQLite:

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "used.db")
        first = SQLiteAddressLedger(path)
        first.reserve("1Addr")
        first.close()
        fresh = SQLiteAddressLedger(path)
        try:
            assert fresh.contains("1Addr")
            assert not fresh.reserve("1Addr").granted
            assert fresh.load() == ["1Addr"]
        finally:
            fresh.close()

    def test_unopenable_path(self, tmp_path):
        with pytest.raises(StorageError):
            SQLiteAddressLedger(str(tmp_path / "missing-dir" / "used.db"))


class TestMemory:

    def test_seeded(self):
        ledger = MemoryAddressLedger(["1A", "1A", "1B"])
        assert ledger.load() == ["1A", "1B"]


# ─── open_ledger ───────────────────────────────────────────────────

class TestOpenLedger:

    def test_memory(self):
        assert isinstance(open_ledger(":memory:"), MemoryAddressLedger)

    @pytest.mark.parametrize("name", ["used.db", "used.sqlite", "used.sqlite3"])
    def test_sqlite(self, tmp_path, name):
        ledger = open_ledger(str(tmp_path / name))
        try:
            assert isinstance(ledger, SQLiteAddressLedger)
        finally:
            ledger.close()

    def test_json_default(self, tmp_path):
        assert isinstance(open_ledger(str(tmp_path / "btc_addresses.json")), JsonFileAddressLedger)
