"""
LedgerMirror - Pytest Configuration
====================================
Fixtures e configurazione per testing.

Last Updated: 2026-10-19
Version: 1.0.0
"""

import asyncio
from typing import Dict, List, Optional

import pytest

# Internal imports
from ledger_mirror.config import override_settings
from ledger_mirror.domain.payloads import BlockPayload
from ledger_mirror.services.ingest_service import LedgerIngestor
from ledger_mirror.storage.db import LedgerStore


GAS = "602c79718b16e442de58778e148d0b1084e3b2dffd5de6b7b16cee7969282de7"
NEO = "c56f33fc6ecfcd0c225c4ab356fee59390af8560be0e930faebe74a6daff7c9b"


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def test_config(tmp_path):
    """Test configuration (in-memory DB, no log files)"""
    return override_settings(
        seeds=["http://seed0.test:10332", "http://seed1.test:10332"],
        database_url="sqlite://",
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        log_to_file=False,
        restart_delay_seconds=0,
    )


# ============================================================================
# STORAGE FIXTURES
# ============================================================================

@pytest.fixture
def store():
    """In-memory ledger store"""
    ledger = LedgerStore("sqlite://")
    yield ledger
    ledger.close()


@pytest.fixture
def ingestor(store):
    return LedgerIngestor(store)


# ============================================================================
# PAYLOAD BUILDERS
# ============================================================================

def _tx(
    txid: str,
    vout: Optional[List[tuple]] = None,
    vin: Optional[List[tuple]] = None,
    claims: Optional[List[tuple]] = None,
    asset: Optional[dict] = None,
    type: str = "ContractTransaction"
) -> dict:
    tx = {
        "txid": txid,
        "type": type,
        "size": 100,
        "version": 0,
        "attributes": [],
        "scripts": [],
        "sys_fee": "0",
        "net_fee": "0",
        "vin": [{"txid": ref_txid, "vout": n} for ref_txid, n in (vin or [])],
        "vout": [
            {"n": n, "asset": asset_id, "address": address, "value": value}
            for n, (asset_id, address, value) in enumerate(vout or [])
        ],
    }
    if claims is not None:
        tx["claims"] = [{"txid": ref_txid, "vout": n} for ref_txid, n in claims]
    if asset is not None:
        tx["asset"] = asset
    return tx


def _block(height: int, txs: Optional[List[dict]] = None, hash: Optional[str] = None) -> dict:
    return {
        "index": height,
        "hash": hash or f"0x{height:064x}",
        "time": 1476647382 + height * 15,
        "size": 686,
        "version": 0,
        "merkleroot": f"0x{height + 1000:064x}",
        "previousblockhash": f"0x{height - 1:064x}" if height > 0 else None,
        "nonce": "000000007c2bac1d",
        "nextconsensus": "APyEx5f4Zm4oCHwFWiSTaph1fPBxZacYVR",
        "tx": txs if txs is not None else [_tx(f"miner-{height}", type="MinerTransaction")],
    }


@pytest.fixture
def make_tx():
    """Builder transazioni: make_tx(txid, vout=[(asset, address, value)], vin=[(txid, n)])"""
    return _tx


@pytest.fixture
def make_block():
    """Builder blocchi in forma wire (dict)"""
    return _block


@pytest.fixture
def block_payload():
    """Builder blocchi validati (BlockPayload)"""
    def _build(height: int, txs: Optional[List[dict]] = None, hash: Optional[str] = None) -> BlockPayload:
        return BlockPayload.model_validate(_block(height, txs, hash))
    return _build


# ============================================================================
# FAKE CHAIN CLIENT
# ============================================================================

class FakeChainClient:
    """
    Chain client scriptabile.

    `height` None -> la height remota e' la piu' alta dei blocchi caricati.
    `errors` e' una coda di eccezioni sollevate alle chiamate successive.
    """

    def __init__(self, seeds: List[str]):
        self.seeds = list(seeds)
        self.blocks: Dict[int, dict] = {}
        self.height: Optional[int] = None
        self.errors: List[BaseException] = []
        self.calls: List[tuple] = []

    def load(self, *blocks: dict) -> "FakeChainClient":
        for block in blocks:
            self.blocks[block["index"]] = block
        return self

    def truncate(self, height: int) -> None:
        self.blocks = {h: b for h, b in self.blocks.items() if h <= height}
        self.height = None

    def fail_with(self, *errors: BaseException) -> None:
        self.errors.extend(errors)

    def _raise_pending(self) -> None:
        if self.errors:
            raise self.errors.pop(0)

    async def current_height(self, seed: int) -> int:
        self.calls.append(("getblockcount", seed))
        self._raise_pending()
        if self.height is not None:
            return self.height
        return max(self.blocks) if self.blocks else 0

    async def get_block_by_height(self, seed: int, height: int) -> BlockPayload:
        self.calls.append(("getblock", seed, height))
        self._raise_pending()
        return BlockPayload.model_validate(self.blocks[height])

    def fetched_heights(self) -> List[int]:
        return [call[2] for call in self.calls if call[0] == "getblock"]

    async def aclose(self) -> None:
        pass


@pytest.fixture
def fake_client(test_config):
    return FakeChainClient(test_config.seeds)


# ============================================================================
# SLEEP RECORDER
# ============================================================================

class RecordingSleep:
    """
    Sleep iniettabile: registra le attese senza dormire.

    Con `stop_after` imposta `shutdown` dopo N attese.
    """

    def __init__(self):
        self.delays: List[float] = []
        self.shutdown: Optional[asyncio.Event] = None
        self.stop_after: Optional[int] = None

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.stop_after is not None and len(self.delays) >= self.stop_after and self.shutdown:
            self.shutdown.set()
        await asyncio.sleep(0)


@pytest.fixture
def sleeper():
    return RecordingSleep()
