"""
LedgerMirror - Storage Tests
=============================
Unit tests for the ledger store and the atomic writer.
"""

import importlib.util
from decimal import Decimal
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

import ledger_mirror.storage
from ledger_mirror.domain.models import Asset, Block, Output, Transaction
from ledger_mirror.errors import StoreWriteError
from ledger_mirror.storage.db import LedgerStore


def _block(height: int) -> Block:
    return Block(height=height, hash=f"h{height}", timestamp=1000 + height, tx_count=1)


def _tx(txid: str, height: int, vin=None) -> Transaction:
    return Transaction(
        txid=txid,
        type="ContractTransaction",
        block_hash=f"h{height}",
        block_height=height,
        timestamp=1000 + height,
        vin=vin or [],
    )


def _store_block(store: LedgerStore, height: int, outputs=(), spends=()) -> None:
    """Blocco con una tx che spende `spends` e produce `outputs` [(address, value)]"""
    txid = f"tx{height}"
    with store.atomic() as writer:
        writer.insert_block(_block(height))
        resolved = []
        for ref_txid, n in spends:
            output = writer.find_output(ref_txid, n)
            writer.credit_address(output.address_hash, output, height)
            resolved.append(output)
        writer.insert_transaction(_tx(txid, height, resolved))
        for n, (address, value) in enumerate(outputs):
            writer.insert_output(Output(txid, n, "gas", address, Decimal(value)), height)


class TestLedgerStore:
    """Test LedgerStore basics"""

    def test_empty_store(self, store):
        assert store.highest_height() is None
        assert store.get_block_count() == 0

    def test_highest_height(self, store):
        for height in (1, 2, 3):
            _store_block(store, height)

        assert store.highest_height() == 3
        assert store.get_block_count() == 3
        assert store.get_block(2).hash == "h2"
        assert store.get_block_by_hash("h3").height == 3

    def test_atomic_rollback_on_error(self, store):
        """Test nothing is persisted when the unit of work fails"""
        with pytest.raises(RuntimeError):
            with store.atomic() as writer:
                writer.insert_block(_block(1))
                raise RuntimeError("boom")

        assert store.highest_height() is None

    def test_duplicate_height_rejected(self, store):
        _store_block(store, 1)

        with pytest.raises(StoreWriteError):
            with store.atomic() as writer:
                writer.insert_block(_block(1))

        assert store.get_block_count() == 1

    def test_lookup_sees_uncommitted_writes(self, store):
        """Test outputs written earlier in the same unit are resolvable"""
        with store.atomic() as writer:
            writer.insert_block(_block(1))
            writer.insert_transaction(_tx("a", 1))
            writer.insert_output(Output("a", 0, "gas", "A1", Decimal("5")), 1)

            found = writer.find_output("a", 0)

        assert found == Output("a", 0, "gas", "A1", Decimal("5"))
        assert store.find_output("a", 1) is None

    def test_decimal_precision(self, store):
        """Test values survive storage without float rounding"""
        _store_block(store, 1, outputs=[("A1", "12345678901234567890.12345678")])

        outputs = store.get_outputs("tx1")

        assert outputs[0].value == Decimal("12345678901234567890.12345678")

    def test_transaction_roundtrip(self, store):
        _store_block(store, 1, outputs=[("A1", "10")])
        _store_block(store, 2, spends=[("tx1", 0)])

        tx = store.get_transaction("tx2")

        assert tx.block_height == 2
        assert tx.vin == [Output("tx1", 0, "gas", "A1", Decimal("10"))]
        assert tx.claims is None
        assert [t.txid for t in store.get_transactions_in_block(2)] == ["tx2"]

    def test_persistence_across_instances(self, tmp_path):
        """Test a file database keeps its height after reopening"""
        url = f"sqlite:///{tmp_path / 'ledger.db'}"

        first = LedgerStore(url)
        _store_block(first, 1)
        first.close()

        second = LedgerStore(url)
        assert second.highest_height() == 1
        second.close()


class TestAssets:
    """Test asset storage"""

    def test_asset_name(self, store):
        with store.atomic() as writer:
            writer.insert_block(_block(1))
            writer.insert_asset(Asset(
                txid="asset1",
                type="Token",
                name=[{"lang": "zh", "name": "甲"}, {"lang": "en", "name": "Gold"}],
                amount=Decimal("100000000"),
                block_height=1,
                precision=8,
            ))

        asset = store.get_asset("asset1")

        assert asset.amount == Decimal("100000000")
        assert asset.precision == 8
        assert store.get_asset_name("asset1") == "Gold"
        assert store.get_asset_name("missing") is None
        assert [a.txid for a in store.list_assets()] == ["asset1"]


class TestAddresses:
    """Test address crediting"""

    def test_credit_creates_address(self, store):
        _store_block(store, 1, outputs=[("A1", "10"), ("A1", "5")])
        _store_block(store, 2, spends=[("tx1", 0)])
        _store_block(store, 3, spends=[("tx1", 1)])

        address = store.get_address("A1")

        assert address.vin_count == 2
        assert address.first_seen_height == 2
        assert address.last_seen_height == 3

    def test_unknown_address(self, store):
        assert store.get_address("nobody") is None


class TestRollback:
    """Test delete_above"""

    def test_delete_above(self, store):
        """Test blocks and owned rows above the height are removed"""
        _store_block(store, 1, outputs=[("A1", "10")])
        _store_block(store, 2, outputs=[("A2", "1")])
        _store_block(store, 3, outputs=[("A3", "1")])

        deleted = store.delete_above(1)

        assert deleted == 2
        assert store.highest_height() == 1
        assert store.get_transaction("tx2") is None
        assert store.get_outputs("tx3") == []
        assert store.find_output("tx1", 0) is not None

    def test_delete_above_noop(self, store):
        _store_block(store, 1)

        assert store.delete_above(1) == 0
        assert store.delete_above(5) == 0
        assert store.highest_height() == 1

    def test_delete_all(self, store):
        _store_block(store, 1)

        store.delete_above(0)

        assert store.highest_height() is None

    def test_address_recomputed(self, store):
        """Test address aggregates follow the rollback"""
        _store_block(store, 1, outputs=[("A1", "10"), ("A1", "5")])
        _store_block(store, 2, spends=[("tx1", 0)])
        _store_block(store, 3, spends=[("tx1", 1)])

        store.delete_above(2)
        address = store.get_address("A1")

        assert address.vin_count == 1
        assert address.last_seen_height == 2

        store.delete_above(1)

        assert store.get_address("A1") is None

    def test_reingest_after_rollback(self, store):
        """Test a height can be written again after being rolled back"""
        _store_block(store, 1, outputs=[("A1", "10")])
        _store_block(store, 2, outputs=[("A2", "1")])

        store.delete_above(1)
        _store_block(store, 2, outputs=[("A2", "1")])

        assert store.highest_height() == 2


class TestMigration:
    """Test the alembic initial schema"""

    def _load_migration(self):
        path = (
            Path(ledger_mirror.storage.__file__).parent
            / "migrations" / "versions" / "001_initial_schema.py"
        )
        spec = importlib.util.spec_from_file_location("initial_schema", path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def test_upgrade_creates_tables(self):
        migration = self._load_migration()
        engine = create_engine("sqlite://")

        with engine.begin() as connection:
            context = MigrationContext.configure(connection)
            with Operations.context(context):
                migration.upgrade()

            tables = set(inspect(connection).get_table_names())

        assert {
            "blocks", "transactions", "vouts", "assets", "addresses", "address_activity"
        } <= tables

    def test_downgrade_drops_tables(self):
        migration = self._load_migration()
        engine = create_engine("sqlite://")

        with engine.begin() as connection:
            context = MigrationContext.configure(connection)
            with Operations.context(context):
                migration.upgrade()
                migration.downgrade()

            tables = set(inspect(connection).get_table_names())

        assert "blocks" not in tables
        assert "vouts" not in tables
