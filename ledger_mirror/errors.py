"""
LedgerMirror - Custom Exceptions
=================================
Gerarchia eccezioni del motore di sincronizzazione.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Classificazione:
- Transient: timeout verso il nodo remoto (retry in place)
- Fatal: tutto il resto (termina l'istanza del loop)
"""

from typing import Optional, Any


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class LedgerMirrorException(Exception):
    """
    Eccezione base per tutte le eccezioni LedgerMirror.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "RESOLUTION_FAILED")
        details (dict): Dettagli aggiuntivi
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(LedgerMirrorException):
    """Errore configurazione sistema"""
    pass


class InvalidConfigError(ConfigError):
    """Configurazione invalida"""
    pass


# ============================================================================
# REMOTE NODE ERRORS
# ============================================================================

class RemoteError(LedgerMirrorException):
    """Errore comunicazione con il nodo remoto (base)"""
    pass


class TransientRemoteError(RemoteError):
    """Timeout verso il nodo: ritentato con backoff fisso, mai propagato"""
    pass


class RemoteProtocolError(RemoteError):
    """Risposta invalida o errore non-timeout del nodo (fatale)"""
    pass


# ============================================================================
# STORAGE ERRORS
# ============================================================================

class StorageError(LedgerMirrorException):
    """Errore storage/database"""
    pass


class StoreReadError(StorageError):
    """Lettura fallita"""
    pass


class StoreWriteError(StorageError):
    """Scrittura fallita"""
    pass


# ============================================================================
# INGESTION ERRORS
# ============================================================================

class IngestionError(LedgerMirrorException):
    """Errore ingestione blocco (base)"""
    pass


class ResolutionError(IngestionError):
    """Vin o claim che non risolve a un output salvato"""
    pass


class AssetAmountParseError(IngestionError):
    """Amount dell'asset emesso non e' un decimale valido"""
    pass


# ============================================================================
# SYNC ERRORS
# ============================================================================

class SyncError(LedgerMirrorException):
    """Errore sincronizzazione"""
    pass


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_resolution_error(
    txid: str,
    index: int,
    kind: str = "vin",
    code: Optional[str] = None
) -> ResolutionError:
    """
    Helper per creare ResolutionError formattati.

    Args:
        txid: Transaction ID referenziata
        index: Indice output referenziato
        kind: "vin" o "claim"
        code: Codice errore custom

    Returns:
        ResolutionError: Eccezione formattata

    Example:
        >>> raise format_resolution_error("ab12...", 0)
    """
    return ResolutionError(
        message=f"Unresolved {kind} reference {txid}:{index}",
        code=code or "RESOLUTION_FAILED",
        details={"txid": txid, "n": index, "kind": kind}
    )


# ============================================================================
# EXPORT ALL
# ============================================================================

__all__ = [
    # Base
    "LedgerMirrorException",

    # Config
    "ConfigError",
    "InvalidConfigError",

    # Remote
    "RemoteError",
    "TransientRemoteError",
    "RemoteProtocolError",

    # Storage
    "StorageError",
    "StoreReadError",
    "StoreWriteError",

    # Ingestion
    "IngestionError",
    "ResolutionError",
    "AssetAmountParseError",

    # Sync
    "SyncError",

    # Helpers
    "format_resolution_error",
]
