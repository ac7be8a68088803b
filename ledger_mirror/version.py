"""
LedgerMirror - Version Management
==================================
Versioning semantico e user agent.

Last Updated: 2026-10-19
Version: 1.0.0
"""

from typing import NamedTuple


# ============================================================================
# VERSION INFO
# ============================================================================

class VersionInfo(NamedTuple):
    """Version information structure"""
    major: int
    minor: int
    patch: int
    prerelease: str = ""


VERSION = VersionInfo(major=1, minor=0, patch=0)


def get_version_string() -> str:
    """
    Get version as string.

    Example:
        >>> get_version_string()
        '1.0.0'
    """
    version_str = f"{VERSION.major}.{VERSION.minor}.{VERSION.patch}"

    if VERSION.prerelease:
        version_str += f"-{VERSION.prerelease}"

    return version_str


def get_user_agent() -> str:
    """
    User-Agent per le richieste JSON-RPC.

    Format: LedgerMirror/1.0.0
    """
    return f"LedgerMirror/{get_version_string()}"


# ============================================================================
# EXPORT
# ============================================================================

__version__ = get_version_string()

__all__ = [
    "__version__",
    "VERSION",
    "get_version_string",
    "get_user_agent",
]
