"""
LedgerMirror - Sync Tests
==========================
Unit tests for the block synchronization loop.
"""

import asyncio
import time

import pytest

from ledger_mirror.errors import (
    RemoteProtocolError,
    ResolutionError,
    StoreReadError,
    TransientRemoteError,
)
from ledger_mirror.network.sync import BlockSync, SyncAction, SyncState, SyncStatus


@pytest.fixture
def sync(store, fake_client, sleeper):
    loop = BlockSync(store, fake_client, seed=0, poll_interval=15, retry_interval=5, sleep=sleeper)
    sleeper.shutdown = loop.shutdown
    return loop


def _chain(make_block, fake_client, top: int) -> None:
    fake_client.load(*[make_block(height) for height in range(1, top + 1)])


class TestSyncState:
    """Test SyncState class"""

    def test_sync_state_creation(self):
        state = SyncState()

        assert state.cycles == 0
        assert state.local_height is None
        assert state.get_blocks_behind() is None

    def test_blocks_behind(self):
        state = SyncState(local_height=40, remote_height=100)

        assert state.get_blocks_behind() == 60

    def test_ingest_rate(self):
        state = SyncState(blocks_ingested=100, sync_start_time=time.time() - 10)

        assert state.get_ingest_rate() > 0


class TestStep:
    """Test single sync cycles"""

    @pytest.mark.asyncio
    async def test_empty_store_fetches_first_block(self, sync, store, fake_client, make_block):
        """Test an empty store starts from height 1 without asking the remote height"""
        _chain(make_block, fake_client, 3)

        action = await sync.step()

        assert action is SyncAction.INGESTED
        assert store.highest_height() == 1
        assert fake_client.calls == [("getblock", 0, 1)]

    @pytest.mark.asyncio
    async def test_one_block_per_cycle(self, sync, store, fake_client, make_block):
        _chain(make_block, fake_client, 5)

        for expected in (1, 2, 3):
            assert await sync.step() is SyncAction.INGESTED
            assert store.highest_height() == expected

        assert fake_client.fetched_heights() == [1, 2, 3]
        assert sync.state.blocks_ingested == 3

    @pytest.mark.asyncio
    async def test_idle_when_caught_up(self, sync, store, fake_client, make_block, sleeper):
        """Test remote == local waits the long interval and writes nothing"""
        _chain(make_block, fake_client, 2)
        await sync.step()
        await sync.step()
        before = store.get_block(2)

        action = await sync.step()

        assert action is SyncAction.IDLE
        assert sleeper.delays == [15]
        assert store.get_block_count() == 2
        assert store.get_block(2) == before
        assert fake_client.fetched_heights() == [1, 2]

    @pytest.mark.asyncio
    async def test_rollback_when_remote_shorter(self, sync, store, fake_client, make_block, sleeper):
        """Test stored 10, remote 7 -> stored 7, then the next cycle fetches 8"""
        _chain(make_block, fake_client, 10)
        for _ in range(10):
            await sync.step()
        assert store.highest_height() == 10

        fake_client.truncate(7)
        action = await sync.step()

        assert action is SyncAction.ROLLED_BACK
        assert store.highest_height() == 7
        assert all(store.get_block(h) is None for h in (8, 9, 10))
        assert sleeper.delays == [15]
        assert sync.state.rollbacks == 1

        fake_client.load(make_block(8, hash="0xfork8"))
        action = await sync.step()

        assert action is SyncAction.INGESTED
        assert fake_client.fetched_heights()[-1] == 8
        assert store.get_block(8).hash == "0xfork8"

    @pytest.mark.asyncio
    async def test_timeout_on_fetch_retries(self, sync, store, fake_client, make_block, sleeper):
        _chain(make_block, fake_client, 1)
        fake_client.fail_with(TransientRemoteError("timeout"))

        assert await sync.step() is SyncAction.RETRY
        assert store.highest_height() is None
        assert sleeper.delays == [5]

        assert await sync.step() is SyncAction.INGESTED
        assert store.highest_height() == 1

    @pytest.mark.asyncio
    async def test_timeout_on_height_retries(self, sync, store, fake_client, make_block, sleeper):
        _chain(make_block, fake_client, 2)
        await sync.step()
        fake_client.fail_with(TransientRemoteError("timeout"), TransientRemoteError("timeout"))

        assert await sync.step() is SyncAction.RETRY
        assert await sync.step() is SyncAction.RETRY
        assert await sync.step() is SyncAction.INGESTED

        assert sleeper.delays == [5, 5]
        assert sync.state.retries == 2
        assert store.highest_height() == 2

    @pytest.mark.asyncio
    async def test_fatal_error_propagates(self, sync, fake_client):
        fake_client.fail_with(RemoteProtocolError("bad payload"))

        with pytest.raises(RemoteProtocolError):
            await sync.step()

    @pytest.mark.asyncio
    async def test_change_seed_next_cycle(self, sync, fake_client, make_block):
        """Test a seed switch is applied at the start of the next cycle"""
        _chain(make_block, fake_client, 3)
        await sync.step()

        sync.change_seed(1)
        assert sync.seed == 0

        await sync.step()

        assert sync.seed == 1
        assert fake_client.calls[-2:] == [("getblockcount", 1), ("getblock", 1, 2)]
        assert sync.get_sync_state()["seed"] == 1


class TestRun:
    """Test run() termination"""

    @pytest.mark.asyncio
    async def test_max_cycles(self, sync, store, fake_client, make_block):
        _chain(make_block, fake_client, 5)

        result = await sync.run(max_cycles=3)

        assert result.status is SyncStatus.COMPLETED
        assert result.cycles == 3
        assert store.highest_height() == 3

    @pytest.mark.asyncio
    async def test_shutdown_before_start(self, sync, fake_client):
        sync.shutdown.set()

        result = await sync.run()

        assert result.status is SyncStatus.STOPPED
        assert result.cycles == 0
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_shutdown_checked_at_cycle_start(self, sync, store, fake_client, make_block, sleeper):
        _chain(make_block, fake_client, 1)
        sleeper.stop_after = 1

        result = await sync.run()

        assert result.status is SyncStatus.STOPPED
        assert result.cycles == 2
        assert store.highest_height() == 1

    @pytest.mark.asyncio
    async def test_fatal_error_faults(self, sync, store, fake_client, make_block, make_tx):
        """Test an unresolvable input ends the instance with FAULTED"""
        fake_client.load(make_block(1), make_block(2, [make_tx("bad", vin=[("ghost", 0)])]))

        result = await sync.run(max_cycles=10)

        assert result.faulted
        assert isinstance(result.error, ResolutionError)
        assert result.cycles == 1
        assert store.highest_height() == 1

    @pytest.mark.asyncio
    async def test_store_read_failure_faults(self, sync, store, fake_client, make_block, monkeypatch):
        """Test a failed local height read ends the instance before any remote call"""
        _chain(make_block, fake_client, 3)
        failure = StoreReadError("Failed to read highest height")

        def _broken():
            raise failure

        monkeypatch.setattr(store, "highest_height", _broken)

        result = await sync.run(max_cycles=3)

        assert result.status is SyncStatus.FAULTED
        assert result.error is failure
        assert result.cycles == 0
        assert fake_client.calls == []
        assert store.get_block_count() == 0

    @pytest.mark.asyncio
    async def test_default_wait_wakes_on_shutdown(self, store, fake_client, make_block):
        """Test the built-in wait returns as soon as shutdown is set"""
        _chain(make_block, fake_client, 1)
        sync = BlockSync(store, fake_client, poll_interval=60, retry_interval=60)
        await sync.step()

        asyncio.get_running_loop().call_later(0.05, sync.shutdown.set)
        result = await asyncio.wait_for(sync.run(), timeout=5)

        assert result.status is SyncStatus.STOPPED

    @pytest.mark.asyncio
    async def test_from_settings(self, test_config, store, fake_client):
        sync = BlockSync.from_settings(test_config, store, fake_client, seed=1)

        assert sync.seed == 1
        assert sync.poll_interval == test_config.poll_interval_seconds
        assert sync.retry_interval == test_config.retry_interval_seconds
