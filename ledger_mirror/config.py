"""
LedgerMirror - Configuration Management
=======================================
Configurazione centralizzata con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso LEDGERMIRROR_
- File .env support
- Seed list del nodo remoto
"""

import os
from pathlib import Path
from typing import Optional, List, Sequence
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ledger_mirror.constants import (
    DEFAULT_SEEDS,
    POLL_INTERVAL_SECONDS,
    RETRY_INTERVAL_SECONDS,
    RESTART_DELAY_SECONDS,
    RPC_TIMEOUT_SECONDS,
)
from ledger_mirror.errors import InvalidConfigError


# ============================================================================
# SEED RESOLUTION
# ============================================================================

def resolve_seed(seeds: Sequence[str], seed: int) -> str:
    """
    Indice seed -> URL.

    Raises:
        InvalidConfigError: NO_SEEDS se la lista e' vuota,
            SEED_OUT_OF_RANGE se l'indice non esiste
    """
    if not seeds:
        raise InvalidConfigError("No seeds configured", code="NO_SEEDS")
    if not 0 <= seed < len(seeds):
        raise InvalidConfigError(
            f"Seed index {seed} out of range",
            code="SEED_OUT_OF_RANGE",
            details={"seed": seed, "available": len(seeds)}
        )
    return seeds[seed]


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class MirrorSettings(BaseSettings):
    """
    Configurazione principale LedgerMirror.

    Example:
        # Da environment
        export LEDGERMIRROR_SEEDS='["http://127.0.0.1:10332"]'
        export LEDGERMIRROR_POLL_INTERVAL_SECONDS=5

        # Da codice
        config = MirrorSettings(seeds=["http://127.0.0.1:10332"])
    """

    model_config = SettingsConfigDict(
        env_prefix='LEDGERMIRROR_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # REMOTE NODE
    # ========================================================================

    seeds: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SEEDS),
        description="Endpoint JSON-RPC intercambiabili (seed)"
    )

    default_seed: int = Field(
        default=0,
        ge=0,
        description="Indice del seed usato all'avvio"
    )

    rpc_timeout_seconds: float = Field(
        default=RPC_TIMEOUT_SECONDS,
        gt=0,
        le=600,
        description="Timeout singola chiamata RPC (secondi)"
    )

    # ========================================================================
    # SYNC LOOP
    # ========================================================================

    poll_interval_seconds: float = Field(
        default=POLL_INTERVAL_SECONDS,
        ge=0,
        description="Attesa quando local == remote e dopo un rollback"
    )

    retry_interval_seconds: float = Field(
        default=RETRY_INTERVAL_SECONDS,
        ge=0,
        description="Backoff dopo un timeout del nodo"
    )

    restart_delay_seconds: float = Field(
        default=RESTART_DELAY_SECONDS,
        ge=0,
        description="Attesa prima di riavviare un loop terminato per errore"
    )

    max_restarts: Optional[int] = Field(
        default=None,
        ge=0,
        description="Riavvii massimi del supervisor (None = illimitati)"
    )

    log_progress_every: int = Field(
        default=1000,
        ge=1,
        description="Log INFO di progresso ogni N blocchi"
    )

    # ========================================================================
    # STORAGE
    # ========================================================================

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory dati"
    )

    database_url: Optional[str] = Field(
        default=None,
        description="URL SQLAlchemy (auto: sqlite:///data_dir/ledgermirror.db)"
    )

    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_to_file: bool = Field(
        default=True,
        description="Salva log su file"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    log_format: str = Field(
        default="json",
        description="Formato log file: json, text"
    )

    log_rotation_mb: int = Field(
        default=100,
        ge=1,
        description="Dimensione max file log prima rotation (MB)"
    )

    log_backup_count: int = Field(
        default=30,
        ge=1,
        description="File di backup mantenuti dopo rotation"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ('json', 'text'):
            raise ValueError(f"Invalid log_format: {v}. Must be json or text")
        return v_lower

    @field_validator('seeds')
    @classmethod
    def validate_seeds(cls, v: List[str]) -> List[str]:
        """Valida formato URL dei seed"""
        validated = []
        for seed in v:
            seed = seed.strip().rstrip('/')
            if not seed.startswith(('http://', 'https://')):
                raise ValueError(f"Invalid seed URL: {seed}. Expected http(s)://host:port")
            validated.append(seed)
        return validated

    # ========================================================================
    # POST-INIT PROCESSING
    # ========================================================================

    def model_post_init(self, __context) -> None:
        if self.database_url is None:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.database_url = f"sqlite:///{self.data_dir / 'ledgermirror.db'}"

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def seed_url(self, seed: int) -> str:
        """
        Risolvi indice seed in URL.

        Raises:
            InvalidConfigError: Se l'indice non esiste
        """
        return resolve_seed(self.seeds, seed)

    def to_dict(self) -> dict:
        return self.model_dump()

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    def __repr__(self) -> str:
        return (
            f"MirrorSettings("
            f"seeds={len(self.seeds)}, "
            f"default_seed={self.default_seed}, "
            f"database_url={self.database_url})"
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> MirrorSettings:
    """
    Ottieni istanza cached di MirrorSettings.

    Example:
        >>> config = get_settings()
        >>> config.poll_interval_seconds
        15.0
    """
    return MirrorSettings()


def reload_settings() -> MirrorSettings:
    """Ricarica settings (invalida cache)"""
    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> MirrorSettings:
    """
    Settings con valori custom (utile per testing).

    Example:
        >>> config = override_settings(poll_interval_seconds=0)
    """
    return MirrorSettings(**kwargs)


# ============================================================================
# CONFIGURATION VALIDATION
# ============================================================================

def validate_config(config: MirrorSettings) -> tuple[bool, list[str]]:
    """
    Valida configurazione completa.

    Returns:
        tuple: (is_valid, errors_list)

    Example:
        >>> is_valid, errors = validate_config(get_settings())
    """
    errors = []

    if not config.seeds:
        errors.append("At least one seed is required")
    elif config.default_seed >= len(config.seeds):
        errors.append(
            f"default_seed={config.default_seed} but only {len(config.seeds)} seeds configured"
        )

    if config.retry_interval_seconds > config.poll_interval_seconds:
        errors.append("WARNING: retry_interval_seconds is longer than poll_interval_seconds")

    if config.log_to_file and config.log_dir.exists() and not os.access(config.log_dir, os.W_OK):
        errors.append(f"Directory not writable: {config.log_dir}")

    return (len(errors) == 0, errors)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "MirrorSettings",
    "resolve_seed",
    "get_settings",
    "reload_settings",
    "override_settings",
    "validate_config",
]
