"""
LedgerMirror - Core Constants
================================
Costanti del motore di sincronizzazione.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0
"""

from enum import Enum
from typing import Final, Tuple


# ============================================================================
# IDENTIFICAZIONE PROGETTO
# ============================================================================

PROJECT_NAME: Final[str] = "LedgerMirror"
SOFTWARE_VERSION: Final[str] = "1.0.0"


# ============================================================================
# SYNC TIMING
# ============================================================================

# Attesa in steady state (remote == local) e dopo un rollback
POLL_INTERVAL_SECONDS: Final[float] = 15.0

# Backoff fisso dopo un timeout del nodo remoto
RETRY_INTERVAL_SECONDS: Final[float] = 5.0

# Attesa del supervisor prima di riavviare un loop FAULTED
RESTART_DELAY_SECONDS: Final[float] = 5.0

# Primo blocco scaricato quando lo store e' vuoto
FIRST_BLOCK_HEIGHT: Final[int] = 1


# ============================================================================
# REMOTE NODE (JSON-RPC)
# ============================================================================

DEFAULT_SEEDS: Final[Tuple[str, ...]] = (
    "http://seed1.neo.org:10332",
    "http://seed2.neo.org:10332",
    "http://seed3.neo.org:10332",
    "http://seed4.neo.org:10332",
    "http://seed5.neo.org:10332",
)

RPC_TIMEOUT_SECONDS: Final[float] = 30.0

JSONRPC_VERSION: Final[str] = "2.0"


class RpcMethod(str, Enum):
    """Metodi JSON-RPC usati dal client"""
    GET_BLOCK_COUNT = "getblockcount"
    GET_BLOCK = "getblock"


# Verbose flag per getblock (JSON invece di hex serializzato)
GETBLOCK_VERBOSE: Final[int] = 1


# ============================================================================
# ASSETS
# ============================================================================

# Lingua preferita per il nome visualizzato di un asset
DISPLAY_LANGUAGE: Final[str] = "en"


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PROJECT_NAME",
    "SOFTWARE_VERSION",
    "POLL_INTERVAL_SECONDS",
    "RETRY_INTERVAL_SECONDS",
    "RESTART_DELAY_SECONDS",
    "FIRST_BLOCK_HEIGHT",
    "DEFAULT_SEEDS",
    "RPC_TIMEOUT_SECONDS",
    "JSONRPC_VERSION",
    "RpcMethod",
    "GETBLOCK_VERBOSE",
    "DISPLAY_LANGUAGE",
]
