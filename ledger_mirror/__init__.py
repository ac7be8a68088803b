"""
LedgerMirror - Local Ledger Mirror
===================================
Mirror locale di una chain remota: polling, rollback su reorg,
ingestione blocchi con integrita' referenziale vin -> vout.

Version: 1.0.0
License: MIT
"""

from ledger_mirror.version import __version__

__license__ = "MIT"

# Core imports
from ledger_mirror.config import MirrorSettings, get_settings
from ledger_mirror.storage.db import LedgerStore
from ledger_mirror.services.ingest_service import LedgerIngestor
from ledger_mirror.services.sync_service import SyncService, create_sync_service
from ledger_mirror.network.chain_client import ChainClient
from ledger_mirror.network.sync import BlockSync, SyncResult, SyncStatus

__all__ = [
    # Version
    "__version__",

    # Config
    "MirrorSettings",
    "get_settings",

    # Core
    "LedgerStore",
    "LedgerIngestor",
    "ChainClient",
    "BlockSync",
    "SyncResult",
    "SyncStatus",
    "SyncService",
    "create_sync_service",
]
