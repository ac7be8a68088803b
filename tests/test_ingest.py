"""
LedgerMirror - Ingestion Tests
===============================
Unit tests for block ingestion and input resolution.
"""

from decimal import Decimal

import pytest

from ledger_mirror.domain.models import Output
from ledger_mirror.errors import AssetAmountParseError, ResolutionError, StoreWriteError
from ledger_mirror.services.ingest_service import parse_asset_amount
from ledger_mirror.storage.db import LedgerWriter


GAS = "602c79718b16e442de58778e148d0b1084e3b2dffd5de6b7b16cee7969282de7"
NEO = "c56f33fc6ecfcd0c225c4ab356fee59390af8560be0e930faebe74a6daff7c9b"


class TestParseAssetAmount:
    """Test decimal amount parsing"""

    def test_integer_text(self):
        assert parse_asset_amount("100000000") == Decimal("100000000")

    def test_fractional_text(self):
        assert parse_asset_amount(" 0.00000001 ") == Decimal("0.00000001")

    def test_not_a_number(self):
        with pytest.raises(AssetAmountParseError) as exc_info:
            parse_asset_amount("abc")

        assert exc_info.value.code == "ASSET_AMOUNT_INVALID"

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-inf", ""])
    def test_non_finite_rejected(self, amount):
        with pytest.raises(AssetAmountParseError):
            parse_asset_amount(amount)

    @pytest.mark.parametrize("amount", ["1_000", "0.000_1"])
    def test_digit_separators_rejected(self, amount):
        with pytest.raises(AssetAmountParseError) as exc_info:
            parse_asset_amount(amount)

        assert exc_info.value.details["amount"] == amount


class TestIngestBlock:
    """Test LedgerIngestor.ingest_block"""

    def test_block_record(self, store, ingestor, block_payload, make_tx):
        """Test the block row carries the transaction count"""
        block = ingestor.ingest_block(block_payload(1, [make_tx("a"), make_tx("b")]))

        assert block.tx_count == 2
        assert store.highest_height() == 1
        assert store.get_block(1).tx_count == 2
        assert [tx.txid for tx in store.get_transactions_in_block(1)] == ["a", "b"]

    def test_outputs_persisted(self, store, ingestor, block_payload, make_tx):
        ingestor.ingest_block(block_payload(1, [
            make_tx("a", vout=[(GAS, "A1", "10"), (NEO, "A2", "3")]),
        ]))

        outputs = store.get_outputs("a")

        assert [(o.n, o.address_hash, o.value) for o in outputs] == [
            (0, "A1", Decimal("10")),
            (1, "A2", Decimal("3")),
        ]

    def test_vin_resolved_from_earlier_block(self, store, ingestor, block_payload, make_tx):
        """Test vin references are replaced by the stored outputs"""
        ingestor.ingest_block(block_payload(1, [make_tx("a", vout=[(GAS, "A1", "10")])]))
        ingestor.ingest_block(block_payload(2, [
            make_tx("b", vin=[("a", 0)], vout=[(GAS, "A2", "10")]),
        ]))

        tx = store.get_transaction("b")

        assert tx.vin == [Output("a", 0, GAS, "A1", Decimal("10"))]
        assert tx.block_hash == f"0x{2:064x}"

    def test_vin_resolved_within_same_block(self, store, ingestor, block_payload, make_tx):
        """Test a transaction can spend an output of an earlier tx in the same block"""
        ingestor.ingest_block(block_payload(1, [
            make_tx("a", vout=[(GAS, "A1", "10")]),
            make_tx("b", vin=[("a", 0)], vout=[(GAS, "A2", "10")]),
        ]))

        assert store.get_transaction("b").vin[0].address_hash == "A1"

    def test_vin_credits_address(self, store, ingestor, block_payload, make_tx):
        ingestor.ingest_block(block_payload(1, [make_tx("a", vout=[(GAS, "A1", "10")])]))
        ingestor.ingest_block(block_payload(2, [make_tx("b", vin=[("a", 0)])]))

        address = store.get_address("A1")

        assert address.vin_count == 1
        assert address.first_seen_height == 2

    def test_missing_vin_rejects_block(self, store, ingestor, block_payload, make_tx):
        """Test an unresolvable input leaves no trace of the block"""
        ingestor.ingest_block(block_payload(1, [make_tx("a", vout=[(GAS, "A1", "10")])]))

        with pytest.raises(ResolutionError) as exc_info:
            ingestor.ingest_block(block_payload(2, [
                make_tx("b", vout=[(GAS, "A2", "1")]),
                make_tx("c", vin=[("a", 5)]),
            ]))

        assert exc_info.value.details["txid"] == "a"
        assert exc_info.value.details["n"] == 5
        assert store.highest_height() == 1
        assert store.get_block(2) is None
        assert store.get_transaction("b") is None
        assert store.get_outputs("b") == []

    def test_address_credit_failure_rejects_block(self, store, ingestor, block_payload, make_tx, monkeypatch):
        """Test a failed address credit rolls back everything written for the block"""
        ingestor.ingest_block(block_payload(1, [make_tx("a", vout=[(GAS, "A1", "10")])]))

        def _broken(self, address_hash, output, block_height):
            raise StoreWriteError(f"Failed to credit address {address_hash}", code="ADDRESS_CREDIT_FAILED")

        monkeypatch.setattr(LedgerWriter, "credit_address", _broken)

        with pytest.raises(StoreWriteError) as exc_info:
            ingestor.ingest_block(block_payload(2, [
                make_tx("b", vout=[(GAS, "A2", "1")]),
                make_tx("c", vin=[("a", 0)]),
            ]))

        assert exc_info.value.code == "ADDRESS_CREDIT_FAILED"
        assert store.highest_height() == 1
        assert store.get_block(2) is None
        assert store.get_transaction("b") is None
        assert store.get_outputs("b") == []
        assert store.get_address("A1") is None

    def test_claims_resolved_without_credit(self, store, ingestor, block_payload, make_tx):
        ingestor.ingest_block(block_payload(1, [make_tx("a", vout=[(NEO, "A1", "100")])]))
        ingestor.ingest_block(block_payload(2, [
            make_tx("claim", claims=[("a", 0)], vout=[(GAS, "A1", "0.5")], type="ClaimTransaction"),
        ]))

        tx = store.get_transaction("claim")

        assert tx.claims == [Output("a", 0, NEO, "A1", Decimal("100"))]
        assert tx.vin == []
        assert store.get_address("A1") is None

    def test_missing_claim_rejects_block(self, store, ingestor, block_payload, make_tx):
        with pytest.raises(ResolutionError) as exc_info:
            ingestor.ingest_block(block_payload(1, [
                make_tx("claim", claims=[("nope", 0)], type="ClaimTransaction"),
            ]))

        assert exc_info.value.details["kind"] == "claim"
        assert store.highest_height() is None


class TestAssetRegistration:
    """Test asset issuance ingestion"""

    def _register(self, make_tx, amount, name):
        return make_tx(
            "reg",
            type="RegisterTransaction",
            asset={
                "type": "Token",
                "name": name,
                "amount": amount,
                "precision": 8,
                "owner": "03abcdef",
                "admin": "Abf2qMs1pzQb8kYk9RuxtUb9jtRKJVuBJt",
            },
        )

    def test_asset_registered(self, store, ingestor, block_payload, make_tx):
        names = [{"lang": "zh", "name": "甲"}, {"lang": "en", "name": "Gold"}]
        ingestor.ingest_block(block_payload(1, [self._register(make_tx, "100000000", names)]))

        asset = store.get_asset("reg")

        assert asset.amount == Decimal("100000000")
        assert asset.precision == 8
        assert asset.block_height == 1
        assert store.get_asset_name("reg") == "Gold"
        assert store.get_transaction("reg").asset["amount"] == "100000000"

    def test_asset_name_fallback(self, store, ingestor, block_payload, make_tx):
        ingestor.ingest_block(block_payload(1, [
            self._register(make_tx, "1", [{"lang": "zh", "name": "甲"}]),
        ]))

        assert store.get_asset_name("reg") == "甲"

    def test_bad_amount_rejects_block(self, store, ingestor, block_payload, make_tx):
        with pytest.raises(AssetAmountParseError):
            ingestor.ingest_block(block_payload(1, [
                self._register(make_tx, "abc", [{"lang": "en", "name": "Bad"}]),
            ]))

        assert store.highest_height() is None
        assert store.get_asset("reg") is None
