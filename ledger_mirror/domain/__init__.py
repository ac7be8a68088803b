"""
LedgerMirror - Domain Package
===============================
Payload del nodo remoto e record del ledger locale.
"""

from ledger_mirror.domain.payloads import (
    InputRefPayload,
    OutputPayload,
    AssetNamePayload,
    AssetIssuancePayload,
    TransactionPayload,
    BlockPayload,
)
from ledger_mirror.domain.models import (
    asset_display_name,
    Block,
    Output,
    Transaction,
    Asset,
    Address,
)

__all__ = [
    "InputRefPayload",
    "OutputPayload",
    "AssetNamePayload",
    "AssetIssuancePayload",
    "TransactionPayload",
    "BlockPayload",
    "asset_display_name",
    "Block",
    "Output",
    "Transaction",
    "Asset",
    "Address",
]
