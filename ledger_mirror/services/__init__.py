"""
LedgerMirror - Services Package
================================
Ingestione blocchi e supervisione della sincronizzazione.

`SyncService` si importa da `ledger_mirror.services.sync_service`.
"""

from ledger_mirror.services.ingest_service import LedgerIngestor, parse_asset_amount

__all__ = [
    "LedgerIngestor",
    "parse_asset_amount",
]
