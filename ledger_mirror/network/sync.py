"""
LedgerMirror - Block Synchronization Loop
==========================================
Convergenza continua tra ledger locale e nodo remoto.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Ciclo:
- store vuoto      -> scarica blocco 1, ingest
- remote > local   -> scarica local+1, ingest (un blocco per ciclo)
- remote == local  -> attesa lunga, nessuna scrittura
- remote < local   -> rollback a remote, attesa lunga
- timeout remoto   -> attesa breve, retry (mai escalation)
- altro errore     -> FAULTED, il supervisor decide il riavvio

Known limitation: il rollback non verifica che il prefisso locale rimasto
abbia gli stessi hash della chain remota. Un fork piu' profondo
dell'altezza remota non viene rilevato.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional
import asyncio
import time

# Internal imports
from ledger_mirror.config import MirrorSettings
from ledger_mirror.constants import (
    FIRST_BLOCK_HEIGHT,
    POLL_INTERVAL_SECONDS,
    RETRY_INTERVAL_SECONDS,
)
from ledger_mirror.errors import TransientRemoteError
from ledger_mirror.logging_setup import get_logger
from ledger_mirror.network.chain_client import ChainClient
from ledger_mirror.services.ingest_service import LedgerIngestor
from ledger_mirror.storage.db import LedgerStore


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("network.sync")


SleepFn = Callable[[float], Awaitable[None]]


async def sleep_until(shutdown: asyncio.Event, seconds: float) -> None:
    """Attende `seconds`; ritorna subito se `shutdown` viene impostato"""
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


# ============================================================================
# CYCLE OUTCOMES
# ============================================================================

class SyncAction(str, Enum):
    """Esito di un singolo ciclo"""
    INGESTED = "ingested"
    IDLE = "idle"
    ROLLED_BACK = "rolled_back"
    RETRY = "retry"


class SyncStatus(str, Enum):
    """Motivo di terminazione di un'istanza del loop"""
    STOPPED = "stopped"        # shutdown cooperativo
    COMPLETED = "completed"    # max_cycles raggiunto
    FAULTED = "faulted"        # errore fatale


@dataclass
class SyncResult:
    """Valore restituito al supervisor quando il loop termina"""

    status: SyncStatus
    cycles: int = 0
    error: Optional[BaseException] = None

    @property
    def faulted(self) -> bool:
        return self.status is SyncStatus.FAULTED


# ============================================================================
# SYNC STATE
# ============================================================================

@dataclass
class SyncState:
    """
    Stato osservabile del loop.

    Attributes:
        seed: Seed corrente
        cycles: Cicli completati
        blocks_ingested: Blocchi salvati da questa istanza
        rollbacks: Rollback eseguiti
        retries: Timeout ritentati
        local_height: Ultima height locale letta
        remote_height: Ultima height remota letta
        sync_start_time: Timestamp avvio
    """

    seed: int = 0
    cycles: int = 0
    blocks_ingested: int = 0
    rollbacks: int = 0
    retries: int = 0
    local_height: Optional[int] = None
    remote_height: Optional[int] = None
    sync_start_time: Optional[float] = None
    last_action: Optional[SyncAction] = None

    def get_sync_duration(self) -> float:
        if not self.sync_start_time:
            return 0.0
        return time.time() - self.sync_start_time

    def get_ingest_rate(self) -> float:
        """Blocks per second"""
        duration = self.get_sync_duration()
        if duration <= 0:
            return 0.0
        return self.blocks_ingested / duration

    def get_blocks_behind(self) -> Optional[int]:
        if self.remote_height is None:
            return None
        return max(self.remote_height - (self.local_height or 0), 0)


# ============================================================================
# BLOCK SYNC LOOP
# ============================================================================

class BlockSync:
    """
    Loop di sincronizzazione per una chain.

    Un'istanza non ha stato globale: height e progresso vengono sempre
    riletti dallo store, quindi un'istanza nuova riparte esattamente dove
    la precedente si e' fermata.

    Attributes:
        store: LedgerStore locale
        client: ChainClient remoto
        ingestor: LedgerIngestor
        shutdown: Evento di shutdown cooperativo (controllato a inizio ciclo)
        state: SyncState

    Examples:
        >>> sync = BlockSync(store, client, seed=0, shutdown=stop_event)
        >>> result = await sync.run()
        >>> result.status
        <SyncStatus.STOPPED: 'stopped'>
    """

    def __init__(
        self,
        store: LedgerStore,
        client: ChainClient,
        ingestor: Optional[LedgerIngestor] = None,
        seed: int = 0,
        shutdown: Optional[asyncio.Event] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        retry_interval: float = RETRY_INTERVAL_SECONDS,
        log_progress_every: int = 1000,
        sleep: Optional[SleepFn] = None
    ):
        self.store = store
        self.client = client
        self.ingestor = ingestor or LedgerIngestor(store)
        self.shutdown = shutdown or asyncio.Event()
        self.poll_interval = poll_interval
        self.retry_interval = retry_interval
        self.log_progress_every = log_progress_every
        self._sleep = sleep or self._sleep_until_shutdown

        self._seed = seed
        self._pending_seed: Optional[int] = None

        self.state = SyncState(seed=seed)

    @classmethod
    def from_settings(
        cls,
        config: MirrorSettings,
        store: LedgerStore,
        client: ChainClient,
        seed: Optional[int] = None,
        shutdown: Optional[asyncio.Event] = None,
        sleep: Optional[SleepFn] = None
    ) -> "BlockSync":
        return cls(
            store,
            client,
            seed=config.default_seed if seed is None else seed,
            shutdown=shutdown,
            poll_interval=config.poll_interval_seconds,
            retry_interval=config.retry_interval_seconds,
            log_progress_every=config.log_progress_every,
            sleep=sleep,
        )

    # ========================================================================
    # CONTROL
    # ========================================================================

    @property
    def seed(self) -> int:
        return self._seed

    def change_seed(self, seed: int) -> None:
        """
        Richiede un cambio di seed.

        Applicato all'inizio del ciclo successivo: una chiamata in corso
        termina sul seed con cui e' partita.
        """
        self._pending_seed = seed
        logger.info("Seed change requested", extra_data={"from": self._seed, "to": seed})

    def is_alive(self) -> bool:
        return not self.shutdown.is_set()

    def _apply_pending_seed(self) -> None:
        if self._pending_seed is None:
            return

        if self._pending_seed != self._seed:
            logger.info("Switching seed", extra_data={"from": self._seed, "to": self._pending_seed})
            self._seed = self._pending_seed
            self.state.seed = self._seed

        self._pending_seed = None

    async def _sleep_until_shutdown(self, seconds: float) -> None:
        await sleep_until(self.shutdown, seconds)

    async def _wait(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    # ========================================================================
    # LOOP
    # ========================================================================

    async def run(self, max_cycles: Optional[int] = None) -> SyncResult:
        """
        Esegue cicli finche' shutdown, errore fatale o `max_cycles`.

        Gli errori fatali non vengono sollevati: sono restituiti come
        SyncResult(FAULTED) al chiamante, che possiede la politica di restart.

        Returns:
            SyncResult: Motivo della terminazione
        """
        self.state.sync_start_time = time.time()
        cycles = 0

        logger.info("Sync loop started", extra_data={"seed": self._seed})

        while True:
            if not self.is_alive():
                logger.info("Sync loop stopped", extra_data={"cycles": cycles})
                return SyncResult(SyncStatus.STOPPED, cycles=cycles)

            if max_cycles is not None and cycles >= max_cycles:
                return SyncResult(SyncStatus.COMPLETED, cycles=cycles)

            try:
                await self.step()
            except Exception as e:
                logger.error(
                    "Sync loop faulted",
                    extra_data={
                        "seed": self._seed,
                        "local_height": self.state.local_height,
                        "error": getattr(e, "code", e.__class__.__name__),
                    },
                    exc_info=e
                )
                return SyncResult(SyncStatus.FAULTED, cycles=cycles, error=e)

            cycles += 1

    async def step(self) -> SyncAction:
        """
        Esegue un singolo ciclo.

        Returns:
            SyncAction: Cosa e' successo

        Raises:
            Qualsiasi errore non-timeout (fatale per l'istanza)
        """
        self._apply_pending_seed()
        seed = self._seed

        local = self.store.highest_height()
        self.state.local_height = local

        try:
            if local is None:
                action = await self._advance(seed, FIRST_BLOCK_HEIGHT)
            else:
                action = await self._compare(seed, local)
        except TransientRemoteError as e:
            self.state.retries += 1
            logger.warning(
                "Remote timeout, retrying",
                extra_data={"seed": seed, "retry_in": self.retry_interval, "code": e.code}
            )
            await self._wait(self.retry_interval)
            action = SyncAction.RETRY

        self.state.cycles += 1
        self.state.last_action = action
        return action

    async def _compare(self, seed: int, local: int) -> SyncAction:
        remote = await self.client.current_height(seed)
        self.state.remote_height = remote

        if remote > local:
            return await self._advance(seed, local + 1)

        if remote == local:
            await self._wait(self.poll_interval)
            return SyncAction.IDLE

        deleted = self.store.delete_above(remote)
        self.state.rollbacks += 1
        self.state.local_height = remote
        logger.warning(
            "Remote chain is shorter, rolled back",
            extra_data={"local_height": local, "remote_height": remote, "deleted_blocks": deleted}
        )
        await self._wait(self.poll_interval)
        return SyncAction.ROLLED_BACK

    async def _advance(self, seed: int, height: int) -> SyncAction:
        payload = await self.client.get_block_by_height(seed, height)
        self.ingestor.ingest_block(payload)

        self.state.local_height = height
        self.state.blocks_ingested += 1

        if height % self.log_progress_every == 0:
            logger.info(
                "Sync progress",
                extra_data={
                    "height": height,
                    "remote_height": self.state.remote_height,
                    "rate": round(self.state.get_ingest_rate(), 2),
                }
            )

        return SyncAction.INGESTED

    # ========================================================================
    # UTILITIES
    # ========================================================================

    def get_sync_state(self) -> Dict:
        return {
            "seed": self.state.seed,
            "alive": self.is_alive(),
            "cycles": self.state.cycles,
            "local_height": self.state.local_height,
            "remote_height": self.state.remote_height,
            "blocks_behind": self.state.get_blocks_behind(),
            "blocks_ingested": self.state.blocks_ingested,
            "rollbacks": self.state.rollbacks,
            "retries": self.state.retries,
            "last_action": self.state.last_action.value if self.state.last_action else None,
            "ingest_rate": round(self.state.get_ingest_rate(), 2),
            "duration_seconds": round(self.state.get_sync_duration(), 2),
        }


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "BlockSync",
    "SyncAction",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "sleep_until",
]
