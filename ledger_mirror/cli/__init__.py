"""
LedgerMirror - CLI Module
==========================
Entry point `ledgermirror` (typer).
"""
