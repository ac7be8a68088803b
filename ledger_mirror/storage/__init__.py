"""
LedgerMirror - Storage Package
===============================
Persistenza del ledger locale.
"""

from ledger_mirror.storage.db import LedgerStore, LedgerWriter

__all__ = [
    "LedgerStore",
    "LedgerWriter",
]
