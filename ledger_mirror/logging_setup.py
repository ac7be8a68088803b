"""
LedgerMirror - Logging System
==============================
Logging strutturato JSON per il processo di sincronizzazione.

Security Level: MEDIUM
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Un record JSON per riga su file (con rotation)
- Console colorata
- Log errori separato
- Context enrichment per logger (seed, height, ...)
- Timing delle operazioni lente
"""

import logging
import logging.handlers
import json
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any, MutableMapping, Tuple
from datetime import datetime, timezone


ROOT_LOGGER_NAME = "ledgermirror"

MAIN_LOG_FILE = "ledgermirror.log"
ERROR_LOG_FILE = "ledgermirror_errors.log"


def _utc(created: float) -> datetime:
    return datetime.fromtimestamp(created, tz=timezone.utc)


# ============================================================================
# FORMATTERS
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    Un oggetto JSON per record.

    {"timestamp": "...Z", "level": "INFO", "logger": "ledgermirror.network.sync",
     "message": "Sync progress", "extra_data": {"height": 1000}}
    """

    def __init__(self, include_location: bool = True):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc(record.created).isoformat(timespec="microseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_location:
            payload["location"] = f"{record.module}:{record.funcName}:{record.lineno}"

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra_data"] = extra_data

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(payload, default=str, ensure_ascii=False)


class ColoredTextFormatter(logging.Formatter):
    """Formatter colorato per console"""

    COLORS = {
        logging.DEBUG: '\033[90m',
        logging.INFO: '\033[92m',
        logging.WARNING: '\033[93m',
        logging.ERROR: '\033[91m',
        logging.CRITICAL: '\033[1;91m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        level = f"{color}{record.levelname:<8}{self.RESET}" if color else f"{record.levelname:<8}"
        category = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")

        line = f"{_utc(record.created):%H:%M:%S} {level} {category}: {record.getMessage()}"

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            line += " " + " ".join(f"{key}={value}" for key, value in extra_data.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


# ============================================================================
# LOGGER ADAPTER
# ============================================================================

class MirrorLogger(logging.LoggerAdapter):
    """
    Logger con dati strutturati.

    Ogni chiamata accetta `extra_data={...}`; il context impostato con
    `set_context()` viene unito a ogni record.

    Example:
        >>> logger = get_logger("network.sync")
        >>> logger.set_context(seed=0)
        >>> logger.info("Block ingested", extra_data={"height": 42})
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def set_context(self, **kwargs) -> None:
        self.extra.update(kwargs)

    def clear_context(self) -> None:
        self.extra.clear()

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        merged = {**self.extra, **(kwargs.pop("extra_data", None) or {})}
        if merged:
            kwargs["extra"] = {**kwargs.get("extra", {}), "extra_data": merged}
        return msg, kwargs


# ============================================================================
# SETUP FUNCTION
# ============================================================================

def _rotating_handler(
    path: Path,
    formatter: logging.Formatter,
    max_mb: int,
    backups: int,
    level: int = logging.NOTSET
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    log_dir: Path = Path("./logs"),
    log_format: str = "json",
    log_rotation_mb: int = 100,
    log_backup_count: int = 30,
    enable_console: bool = True,
) -> MirrorLogger:
    """
    Configura il logger radice `ledgermirror`.

    Chiamate ripetute sostituiscono gli handler precedenti.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_to_file: Scrive ledgermirror.log e ledgermirror_errors.log in `log_dir`
        log_format: Formato file (json, text)
        log_rotation_mb: MB prima della rotation
        log_backup_count: File di backup mantenuti
        enable_console: Log anche su stdout

    Returns:
        MirrorLogger: Logger radice configurato
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(log_level.upper())

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if log_to_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        def _file_formatter() -> logging.Formatter:
            if log_format == "json":
                return JSONFormatter()
            return logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

        root_logger.addHandler(_rotating_handler(
            log_dir / MAIN_LOG_FILE, _file_formatter(), log_rotation_mb, log_backup_count
        ))
        root_logger.addHandler(_rotating_handler(
            log_dir / ERROR_LOG_FILE, _file_formatter(), log_rotation_mb, log_backup_count,
            level=logging.ERROR
        ))

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ColoredTextFormatter())
        root_logger.addHandler(console_handler)

    return MirrorLogger(root_logger)


def get_logger(category: str) -> MirrorLogger:
    """Logger per categoria: get_logger("storage") -> ledgermirror.storage"""
    return MirrorLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.{category}"))


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

class PerformanceLogger:
    """
    Misura la durata di un blocco di codice.

    DEBUG a ogni uscita, WARNING oltre `threshold_ms`.

    Example:
        >>> with PerformanceLogger(logger, "ingest_block", threshold_ms=5000):
        ...     ingestor.ingest_block(payload)
    """

    def __init__(
        self,
        logger: MirrorLogger,
        operation: str,
        threshold_ms: Optional[float] = None,
        extra_data: Optional[Dict[str, Any]] = None
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.extra_data = extra_data or {}
        self.elapsed_ms: float = 0.0
        self._started: float = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        data = {**self.extra_data, "operation": self.operation, "duration_ms": round(self.elapsed_ms, 2)}

        if exc_type is not None:
            self.logger.debug(f"{self.operation} failed after {self.elapsed_ms:.2f}ms", extra_data=data)
        elif self.threshold_ms and self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation} slow: {self.elapsed_ms:.2f}ms", extra_data=data)
        else:
            self.logger.debug(f"{self.operation} completed in {self.elapsed_ms:.2f}ms", extra_data=data)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "setup_logging",
    "get_logger",
    "MirrorLogger",
    "PerformanceLogger",
    "JSONFormatter",
    "ColoredTextFormatter",
    "ROOT_LOGGER_NAME",
]
