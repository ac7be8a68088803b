"""
LedgerMirror - Sync Service
============================
Supervisione del loop di sincronizzazione.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- start(seed) / switch_endpoint(seed) / stop()
- Restart di un'istanza nuova dopo un errore fatale
- Nessuno stato da riconciliare: ogni istanza rilegge lo store
"""

from typing import Optional, Dict, Any
import asyncio

# Internal imports
from ledger_mirror.config import MirrorSettings, resolve_seed
from ledger_mirror.errors import SyncError
from ledger_mirror.logging_setup import get_logger
from ledger_mirror.network.chain_client import ChainClient
from ledger_mirror.network.sync import BlockSync, SyncResult, SleepFn, sleep_until
from ledger_mirror.services.ingest_service import LedgerIngestor
from ledger_mirror.storage.db import LedgerStore


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("sync_service")


# ============================================================================
# SYNC SERVICE
# ============================================================================

class SyncService:
    """
    Supervisor del loop di sincronizzazione.

    Garantisce al piu' un'istanza attiva di BlockSync per store.

    Attributes:
        config: Settings
        store: LedgerStore
        client: ChainClient
        restarts: Riavvii dopo FAULTED

    Examples:
        >>> service = SyncService(config, store, client)
        >>> service.start(seed=0)
        >>> service.switch_endpoint(2)
        >>> await service.stop()
    """

    def __init__(
        self,
        config: MirrorSettings,
        store: LedgerStore,
        client: ChainClient,
        sleep: Optional[SleepFn] = None
    ):
        self.config = config
        self.store = store
        self.client = client
        self.ingestor = LedgerIngestor(store)
        self._sleep = sleep

        self._seed = config.default_seed
        self._shutdown = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._current: Optional[BlockSync] = None

        self.restarts = 0
        self.last_result: Optional[SyncResult] = None

    # ========================================================================
    # CONTROL
    # ========================================================================

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def current_loop(self) -> Optional[BlockSync]:
        return self._current

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, seed: Optional[int] = None) -> asyncio.Task:
        """
        Avvia (o riprende) la sincronizzazione.

        Richiede un event loop in esecuzione.

        Raises:
            SyncError: Se il servizio e' gia' attivo
        """
        if self.is_running():
            raise SyncError("Sync service already running", code="ALREADY_RUNNING")

        if seed is not None:
            resolve_seed(self.client.seeds, seed)
            self._seed = seed

        self._shutdown = asyncio.Event()
        self._task = asyncio.create_task(self._supervise(), name="ledger-mirror-sync")

        logger.info("Sync service started", extra_data={"seed": self._seed})
        return self._task

    def switch_endpoint(self, seed: int) -> None:
        """
        Usa un altro seed dal ciclo successivo.

        I dati gia' ingeriti non vengono toccati.
        """
        resolve_seed(self.client.seeds, seed)
        self._seed = seed

        if self._current is not None:
            self._current.change_seed(seed)

    def request_stop(self) -> None:
        """Segnala lo shutdown senza attendere (es. da signal handler)"""
        self._shutdown.set()

    async def stop(self) -> Optional[SyncResult]:
        """
        Shutdown cooperativo: il loop termina all'inizio del ciclo successivo.
        """
        self.request_stop()

        if self._task is None:
            return self.last_result

        result = await self._task
        logger.info("Sync service stopped", extra_data={"restarts": self.restarts})
        return result

    async def wait(self) -> Optional[SyncResult]:
        """Attende la fine del servizio (stop o restart esauriti)"""
        if self._task is None:
            return self.last_result
        return await self._task

    # ========================================================================
    # SUPERVISION
    # ========================================================================

    def _new_loop(self) -> BlockSync:
        return BlockSync(
            self.store,
            self.client,
            ingestor=self.ingestor,
            seed=self._seed,
            shutdown=self._shutdown,
            poll_interval=self.config.poll_interval_seconds,
            retry_interval=self.config.retry_interval_seconds,
            log_progress_every=self.config.log_progress_every,
            sleep=self._sleep,
        )

    async def _supervise(self) -> SyncResult:
        while True:
            self._current = self._new_loop()
            result = await self._current.run()
            self.last_result = result

            if not result.faulted or self._shutdown.is_set():
                return result

            max_restarts = self.config.max_restarts
            if max_restarts is not None and self.restarts >= max_restarts:
                logger.critical(
                    "Restart limit reached, giving up",
                    extra_data={"restarts": self.restarts, "error": str(result.error)}
                )
                return result

            self.restarts += 1
            logger.warning(
                "Restarting sync loop",
                extra_data={
                    "restart": self.restarts,
                    "delay": self.config.restart_delay_seconds,
                    "error": str(result.error),
                }
            )

            if self.config.restart_delay_seconds > 0:
                if self._sleep is not None:
                    await self._sleep(self.config.restart_delay_seconds)
                else:
                    await sleep_until(self._shutdown, self.config.restart_delay_seconds)

    # ========================================================================
    # UTILITIES
    # ========================================================================

    def get_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "running": self.is_running(),
            "seed": self._seed,
            "seed_url": self.client.seeds[self._seed] if self.client.seeds else None,
            "restarts": self.restarts,
            "last_result": self.last_result.status.value if self.last_result else None,
        }
        if self._current is not None:
            status["loop"] = self._current.get_sync_state()
        return status


# ============================================================================
# FACTORY
# ============================================================================

def create_sync_service(config: MirrorSettings) -> SyncService:
    """
    Crea store, client e servizio dalla configurazione.

    Example:
        >>> service = create_sync_service(get_settings())
    """
    store = LedgerStore.from_settings(config)
    client = ChainClient.from_settings(config)
    return SyncService(config, store, client)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "SyncService",
    "create_sync_service",
]
