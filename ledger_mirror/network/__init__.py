"""
LedgerMirror - Network Package
===============================
Client JSON-RPC e loop di sincronizzazione.
"""

from ledger_mirror.network.chain_client import ChainClient
from ledger_mirror.network.sync import (
    BlockSync,
    SyncAction,
    SyncResult,
    SyncState,
    SyncStatus,
)

__all__ = [
    "ChainClient",
    "BlockSync",
    "SyncAction",
    "SyncResult",
    "SyncState",
    "SyncStatus",
]
