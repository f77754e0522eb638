"""
Tests for local slots, mirrored storage and identity switching
"""

import time
from concurrent.futures import Executor, ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from wallet_ledger.audit import AuditLogger
from wallet_ledger.config.settings import LocalStoreSettings
from wallet_ledger.engine import LedgerEngine
from wallet_ledger.models.ledger import Account, LedgerChange, Transaction
from wallet_ledger.services.storage import (
    ConnectionError,
    JSONFileSlotStore,
    LocalLedgerStorage,
    MemorySlotStore,
    MirroredLedgerStorage,
    StorageError,
    select_storage,
)
from wallet_ledger.validation import LedgerValidationError


class DeferredExecutor(Executor):
    """Executor that holds submitted work until run_all() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        self.pending.append((fn, args, kwargs))

    def run_all(self):
        pending, self.pending = self.pending, []
        for fn, args, kwargs in pending:
            fn(*args, **kwargs)


class TestJSONFileSlotStore:
    """Tests for the file-backed slot store."""

    def test_missing_slot_returns_default(self, tmp_path):
        """Test reading a slot that was never written."""
        store = JSONFileSlotStore(tmp_path)
        assert store.get("accounts") is None
        assert store.get("accounts", []) == []

    def test_set_and_get(self, tmp_path):
        """Test a written slot reads back equal."""
        store = JSONFileSlotStore(tmp_path / "nested" / "dir")
        store.set("accounts", [{"id": "a", "balance": 1.5}])

        assert store.get("accounts") == [{"id": "a", "balance": 1.5}]
        assert (tmp_path / "nested" / "dir" / "accounts.json").exists()
        assert not list((tmp_path / "nested" / "dir").glob("*.tmp"))

    def test_corrupt_slot(self, tmp_path):
        """Test that unreadable JSON is a storage error."""
        (tmp_path / "accounts.json").write_text("[{", encoding="utf-8")
        store = JSONFileSlotStore(tmp_path)
        with pytest.raises(StorageError):
            store.get("accounts")

    def test_unserializable_value(self, tmp_path):
        """Test that writing a non-JSON value is a storage error."""
        store = JSONFileSlotStore(tmp_path)
        with pytest.raises(StorageError):
            store.set("accounts", [object()])

    def test_clear(self, tmp_path):
        """Test clearing removes every slot."""
        store = JSONFileSlotStore(tmp_path)
        store.set("accounts", [])
        store.set("transactions", [])

        store.clear()

        assert store.get("accounts") is None
        assert store.get("transactions") is None

    def test_engine_on_files(self, tmp_path, local_settings):
        """Test a ledger survives a restart on the file store."""
        first = LedgerEngine(JSONFileSlotStore(tmp_path), settings=local_settings)
        account = first.create_account("A", "10.10")
        first.add_transaction("income", "0.20", "x", account.id)

        second = LedgerEngine(JSONFileSlotStore(tmp_path), settings=local_settings)
        assert second.get_account(account.id).balance == Decimal("10.30")


class TestMemorySlotStore:
    """Tests for the in-memory slot store."""

    def test_values_are_copied(self):
        """Test callers never share structures with the store."""
        store = MemorySlotStore()
        value = [{"id": "a"}]
        store.set("accounts", value)
        value.append({"id": "b"})

        assert store.get("accounts") == [{"id": "a"}]
        assert store.keys() == ["accounts"]


class TestLocalLedgerStorage:
    """Tests for local-only ledger storage."""

    def test_load_empty(self, slots, local_settings):
        """Test absent slots load as empty collections."""
        snapshot = LocalLedgerStorage(slots, local_settings).load()
        assert snapshot.accounts == []
        assert snapshot.transactions == []

    def test_persist_writes_both_slots(self, slots, local_settings):
        """Test persist rewrites accounts and transactions."""
        storage = LocalLedgerStorage(slots, local_settings)
        account = Account(name="A", balance=5)
        transaction = Transaction(type="income", amount=5, account_id=account.id)

        storage.persist([account], [transaction], LedgerChange())

        assert slots.get("accounts")[0]["id"] == account.id
        assert slots.get("transactions")[0]["accountId"] == account.id
        assert storage.owner_id is None

    def test_malformed_records(self, slots, local_settings):
        """Test invalid stored records are a storage error."""
        slots.set("accounts", [{"id": "a"}])
        with pytest.raises(StorageError):
            LocalLedgerStorage(slots, local_settings).load()

    def test_non_list_slot(self, slots, local_settings):
        """Test a slot that is not an array is a storage error."""
        slots.set("transactions", {"id": "t"})
        with pytest.raises(StorageError):
            LocalLedgerStorage(slots, local_settings).load()

    def test_custom_slot_names(self, slots):
        """Test configured slot names are used."""
        settings = LocalStoreSettings(accounts_key="acc", transactions_key="txn")
        storage = LocalLedgerStorage(slots, settings)
        storage.persist([Account(name="A")], [], LedgerChange())

        assert sorted(slots.keys()) == ["acc", "txn"]


class TestSelectStorage:
    """Tests for storage selection by identity."""

    def test_no_identity_is_local(self, slots, mirror, local_settings):
        """Test that no identity means local-only storage."""
        storage = select_storage(slots, mirror=mirror, settings=local_settings)
        assert isinstance(storage, LocalLedgerStorage)

    def test_identity_is_mirrored(self, slots, mirror, local_settings):
        """Test that an identity selects mirrored storage."""
        storage = select_storage(
            slots, mirror=mirror, owner_id="u1", settings=local_settings
        )
        assert isinstance(storage, MirroredLedgerStorage)
        assert storage.owner_id == "u1"

    def test_identity_without_mirror(self, slots, local_settings):
        """Test that an identity needs a mirror."""
        with pytest.raises(ConnectionError):
            select_storage(slots, owner_id="u1", settings=local_settings)


class TestMirroredLedgerStorage:
    """Tests for best-effort mirroring."""

    def test_local_written_even_when_remote_fails(self, slots, mirror, local_settings):
        """Test remote failures never block the local write."""
        audit_logger = MagicMock(spec=AuditLogger)
        storage = MirroredLedgerStorage(
            slots, mirror, "u1", settings=local_settings, audit_logger=audit_logger
        )
        mirror.fail_on = {"upsert_accounts", "upsert_transactions"}
        account = Account(name="A")

        storage.persist([account], [], LedgerChange(upserted_accounts=[account]))

        assert slots.get("accounts")[0]["id"] == account.id
        audit_logger.log_remote_sync_failed.assert_called_once_with(
            "upsert_accounts", "upsert_accounts failed", "u1"
        )

    def test_operations_are_independent(self, slots, mirror, local_settings):
        """Test a failed upsert does not stop the other collection."""
        storage = MirroredLedgerStorage(
            slots, mirror, "u1",
            settings=local_settings, audit_logger=MagicMock(spec=AuditLogger),
        )
        mirror.fail_on = {"upsert_accounts"}
        account = Account(name="A")
        transaction = Transaction(type="income", amount=1, account_id=account.id)

        storage.persist(
            [account],
            [transaction],
            LedgerChange(
                upserted_accounts=[account], upserted_transactions=[transaction]
            ),
        )

        assert "upsert_transactions" in mirror.calls
        assert transaction.id in mirror.transactions["u1"]
        assert "u1" not in mirror.accounts

    def test_empty_change_is_not_pushed(self, slots, mirror, local_settings):
        """Test nothing is sent when nothing changed."""
        storage = MirroredLedgerStorage(slots, mirror, "u1", settings=local_settings)
        storage.persist([], [], LedgerChange())
        assert mirror.calls == []

    def test_executor_push(self, slots, mirror, local_settings):
        """Test remote pushes can be deferred to an executor."""
        executor = DeferredExecutor()
        storage = MirroredLedgerStorage(
            slots, mirror, "u1", settings=local_settings, executor=executor
        )
        account = Account(name="A")

        storage.persist([account], [], LedgerChange(upserted_accounts=[account]))

        assert slots.get("accounts")[0]["id"] == account.id
        assert mirror.calls == []
        executor.run_all()
        assert mirror.calls == ["upsert_accounts"]

    def test_multi_worker_pool_keeps_push_order(self, slots, mirror, local_settings):
        """Test pushes from a multi-worker pool reach the mirror in mutation order."""
        upsert_accounts = mirror.upsert_accounts
        seen = []

        def slow_first_income(owner_id, accounts):
            if accounts[0].balance == Decimal("1"):
                time.sleep(0.2)
            seen.append(accounts[0].balance)
            upsert_accounts(owner_id, accounts)

        mirror.upsert_accounts = slow_first_income
        pool = ThreadPoolExecutor(max_workers=4)
        engine = LedgerEngine(
            slots, mirror=mirror, settings=local_settings,
            executor=pool, owner_id="u1",
        )

        account = engine.create_account("A", 0)
        for _ in range(5):
            engine.add_transaction("income", 1, "x", account.id)
        pool.shutdown(wait=True)

        assert seen == [Decimal(n) for n in range(6)]
        assert mirror.accounts["u1"][account.id].balance == Decimal("5")
        assert len(mirror.transactions["u1"]) == 5

    def test_shut_down_executor_pushes_inline(self, slots, mirror, local_settings):
        """Test a push still happens once the executor refuses work."""
        pool = ThreadPoolExecutor(max_workers=2)
        pool.shutdown()
        storage = MirroredLedgerStorage(
            slots, mirror, "u1", settings=local_settings, executor=pool
        )
        account = Account(name="A")

        storage.persist([account], [], LedgerChange(upserted_accounts=[account]))

        assert account.id in mirror.accounts["u1"]

    def test_load_adopts_remote(self, slots, mirror, local_settings):
        """Test load replaces local slots with the remote copy, newest first."""
        older = Transaction(
            type="income", amount=1, account_id="a",
            created_at="2024-01-01T00:00:00Z",
        )
        newer = Transaction(
            type="income", amount=2, account_id="a",
            created_at="2024-01-02T00:00:00Z",
        )
        mirror.accounts["u1"] = {"a": Account(id="a", name="Remote", owner_id="u1")}
        mirror.transactions["u1"] = {older.id: older, newer.id: newer}
        slots.set("accounts", [Account(name="Local").to_record()])

        storage = MirroredLedgerStorage(slots, mirror, "u1", settings=local_settings)
        snapshot = storage.load()

        assert [a.name for a in snapshot.accounts] == ["Remote"]
        assert [t.id for t in snapshot.transactions] == [newer.id, older.id]
        assert slots.get("accounts")[0]["name"] == "Remote"

    def test_load_falls_back_to_local(self, slots, mirror, local_settings):
        """Test an unreachable mirror leaves the local copy in use."""
        slots.set("accounts", [Account(name="Local").to_record()])
        mirror.fail_on = {"fetch_accounts"}

        storage = MirroredLedgerStorage(
            slots, mirror, "u1",
            settings=local_settings, audit_logger=MagicMock(spec=AuditLogger),
        )
        snapshot = storage.load()

        assert [a.name for a in snapshot.accounts] == ["Local"]

    def test_requires_owner(self, slots, mirror, local_settings):
        """Test mirrored storage needs an identity."""
        with pytest.raises(ValueError):
            MirroredLedgerStorage(slots, mirror, "", settings=local_settings)


class TestIdentity:
    """Tests for attaching and detaching a remote identity."""

    def test_attach_loads_remote(self, engine, mirror):
        """Test the remote ledger replaces the local one on attach."""
        engine.create_account("Local only", 5)
        mirror.accounts["u1"] = {
            "r": Account(id="r", name="Remote", balance=50, owner_id="u1")
        }
        calls = []
        engine.subscribe(lambda: calls.append("n"))

        engine.attach_identity("u1")

        assert engine.owner_id == "u1"
        assert [a.name for a in engine.get_accounts()] == ["Remote"]
        assert engine.get_total_balance() == Decimal("50")
        assert calls == ["n"]

    def test_mutations_are_mirrored(self, engine, mirror):
        """Test every mutation reaches the mirror for the identity."""
        engine.attach_identity("u1")

        account = engine.create_account("A", 100)
        transaction = engine.add_transaction("expense", 30, "x", account.id)

        assert account.owner_id == "u1"
        assert mirror.accounts["u1"][account.id].balance == Decimal("70")
        assert transaction.id in mirror.transactions["u1"]

        engine.update_transaction(transaction.id, {"amount": 10})
        assert mirror.transactions["u1"][transaction.id].amount == Decimal("10")
        assert mirror.accounts["u1"][account.id].balance == Decimal("90")

        engine.delete_transaction(transaction.id)
        assert transaction.id not in mirror.transactions["u1"]
        assert mirror.accounts["u1"][account.id].balance == Decimal("100")

        engine.delete_account(account.id)
        assert account.id not in mirror.accounts["u1"]

    def test_remote_failure_is_suppressed(self, engine, mirror, slots):
        """Test the engine keeps working while the mirror is failing."""
        engine.attach_identity("u1")
        mirror.fail_on = {
            "upsert_accounts", "upsert_transactions",
            "delete_accounts", "delete_transactions",
        }

        account = engine.create_account("A", 100)
        transaction = engine.add_transaction("income", 1, "x", account.id)
        assert engine.delete_transaction(transaction.id) is True

        assert engine.get_account(account.id).balance == Decimal("100")
        assert slots.get("accounts")[0]["id"] == account.id
        assert "u1" not in mirror.accounts

    def test_attach_with_unreachable_mirror(self, engine, mirror):
        """Test attach keeps the local ledger if the mirror cannot be read."""
        engine.create_account("Local", 5)
        mirror.fail_on = {"fetch_accounts"}

        engine.attach_identity("u1")

        assert [a.name for a in engine.get_accounts()] == ["Local"]
        assert engine.owner_id == "u1"

    def test_import_mirrors_deletions(self, engine, mirror):
        """Test ids dropped by an import are deleted remotely."""
        engine.attach_identity("u1")
        old = engine.create_account("Old")

        engine.import_data({
            "accounts": [{"id": "new", "name": "New"}],
            "transactions": [],
        })

        assert set(mirror.accounts["u1"]) == {"new"}
        assert old.id not in mirror.accounts["u1"]

    def test_detach_keeps_state(self, engine, mirror):
        """Test detaching stops mirroring but keeps the ledger."""
        engine.attach_identity("u1")
        engine.create_account("A", 1)
        mirror.calls.clear()

        engine.detach_identity()
        engine.create_account("B", 2)

        assert engine.owner_id is None
        assert [a.name for a in engine.get_accounts()] == ["A", "B"]
        assert mirror.calls == []

    def test_attach_requires_mirror(self, slots, local_settings):
        """Test attach without a configured mirror."""
        engine = LedgerEngine(slots, settings=local_settings)
        with pytest.raises(ConnectionError):
            engine.attach_identity("u1")
        assert engine.owner_id is None

    def test_attach_requires_owner(self, engine):
        """Test an empty identity is rejected."""
        with pytest.raises(LedgerValidationError):
            engine.attach_identity("")

    def test_engine_starts_attached(self, slots, mirror, local_settings):
        """Test an engine created with an identity loads the remote ledger."""
        mirror.accounts["u1"] = {"r": Account(id="r", name="Remote", owner_id="u1")}
        engine = LedgerEngine(
            slots, mirror=mirror, settings=local_settings, owner_id="u1"
        )
        assert engine.owner_id == "u1"
        assert engine.get_account("r").name == "Remote"

    def test_identities_are_isolated(self, engine, mirror):
        """Test one identity never sees another identity's rows."""
        engine.attach_identity("u1")
        engine.create_account("Mine")
        engine.attach_identity("u2")

        assert engine.get_accounts() == []
