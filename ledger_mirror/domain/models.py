"""
LedgerMirror - Ledger Records
==============================
Record normalizzati del ledger locale.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Models:
- Block: blocco salvato (senza transazioni)
- Output: output (Vout) identificato da (txid, n)
- Transaction: transazione con vin/claims risolti
- Asset: asset emesso, chiave = txid di emissione
- Address: vista aggregata per address hash

Tutte le strutture sono immutabili (frozen).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List, Dict, Any, Sequence, Mapping

from ledger_mirror.constants import DISPLAY_LANGUAGE
from ledger_mirror.domain.payloads import BlockPayload, OutputPayload


# ============================================================================
# ASSET NAME PROJECTION
# ============================================================================

def asset_display_name(
    variants: Sequence[Mapping[str, str]],
    language: str = DISPLAY_LANGUAGE
) -> Optional[str]:
    """
    Nome visualizzato di un asset.

    Sceglie la variante con `lang == language`; altrimenti la prima
    variante della lista. Lista vuota -> None.

    Examples:
        >>> asset_display_name([{"lang": "zh", "name": "甲"}, {"lang": "en", "name": "Gold"}])
        'Gold'
        >>> asset_display_name([{"lang": "zh", "name": "甲"}])
        '甲'
    """
    if not variants:
        return None

    for variant in variants:
        if variant.get("lang") == language:
            return variant.get("name")

    return variants[0].get("name")


# ============================================================================
# BLOCK
# ============================================================================

@dataclass(frozen=True)
class Block:
    """
    Blocco salvato.

    Attributes:
        height (int): Altezza (unica, monotona)
        hash (str): Hash blocco
        timestamp (int): Unix time
        tx_count (int): Numero transazioni
    """

    height: int
    hash: str
    timestamp: int
    tx_count: int
    size: Optional[int] = None
    version: Optional[int] = None
    merkle_root: Optional[str] = None
    previous_hash: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: BlockPayload) -> Block:
        return cls(
            height=payload.height,
            hash=payload.hash,
            timestamp=payload.timestamp,
            tx_count=payload.tx_count,
            size=payload.size,
            version=payload.version,
            merkle_root=payload.merkleroot,
            previous_hash=payload.previousblockhash,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "height": self.height,
            "hash": self.hash,
            "timestamp": self.timestamp,
            "tx_count": self.tx_count,
            "size": self.size,
            "version": self.version,
            "merkle_root": self.merkle_root,
            "previous_hash": self.previous_hash,
        }


# ============================================================================
# OUTPUT (VOUT)
# ============================================================================

@dataclass(frozen=True)
class Output:
    """
    Output di transazione.

    Nessun flag "spent": la risoluzione avviene on demand per (txid, n).

    Attributes:
        txid (str): Transazione proprietaria
        n (int): Indice output
        asset (str): Asset ID
        address_hash (str): Address proprietario
        value (Decimal): Valore
    """

    txid: str
    n: int
    asset: str
    address_hash: str
    value: Decimal

    @classmethod
    def from_payload(cls, txid: str, payload: OutputPayload) -> Output:
        return cls(
            txid=txid,
            n=payload.n,
            asset=payload.asset,
            address_hash=payload.address,
            value=payload.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Serializza output (value come stringa per non perdere precisione).

        Examples:
            >>> Output("ab", 0, "c5", "AQ", Decimal("1.5")).to_dict()["value"]
            '1.5'
        """
        return {
            "txid": self.txid,
            "n": self.n,
            "asset": self.asset,
            "address_hash": self.address_hash,
            "value": str(self.value),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Output:
        return cls(
            txid=data["txid"],
            n=int(data["n"]),
            asset=data["asset"],
            address_hash=data["address_hash"],
            value=Decimal(str(data["value"])),
        )


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass(frozen=True)
class Transaction:
    """
    Transazione salvata.

    `vin` e `claims` contengono gli output risolti, non i riferimenti.
    Gli output prodotti sono salvati a parte (vedi Output).
    """

    txid: str
    type: str
    block_hash: str
    block_height: int
    timestamp: int
    vin: List[Output] = field(default_factory=list)
    claims: Optional[List[Output]] = None
    asset: Optional[Dict[str, Any]] = None
    size: Optional[int] = None
    version: Optional[int] = None
    sys_fee: Optional[Decimal] = None
    net_fee: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "type": self.type,
            "block_hash": self.block_hash,
            "block_height": self.block_height,
            "timestamp": self.timestamp,
            "vin": [out.to_dict() for out in self.vin],
            "claims": [out.to_dict() for out in self.claims] if self.claims is not None else None,
            "asset": self.asset,
            "size": self.size,
            "version": self.version,
            "sys_fee": str(self.sys_fee) if self.sys_fee is not None else None,
            "net_fee": str(self.net_fee) if self.net_fee is not None else None,
        }


# ============================================================================
# ASSET
# ============================================================================

@dataclass(frozen=True)
class Asset:
    """
    Asset registrato da una transazione di emissione.

    Attributes:
        txid (str): Transazione di emissione (chiave)
        type (str): Tipo asset
        name (list): Varianti [{"lang": ..., "name": ...}]
        amount (Decimal): Totale emesso
        precision (int): Cifre decimali
        owner (str): Public key proprietario
        admin (str): Address amministratore
        block_height (int): Blocco di emissione
    """

    txid: str
    type: str
    name: List[Dict[str, str]]
    amount: Decimal
    block_height: int
    precision: int = 0
    owner: Optional[str] = None
    admin: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return asset_display_name(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txid": self.txid,
            "type": self.type,
            "name": self.name,
            "display_name": self.display_name,
            "amount": str(self.amount),
            "precision": self.precision,
            "owner": self.owner,
            "admin": self.admin,
            "block_height": self.block_height,
        }


# ============================================================================
# ADDRESS
# ============================================================================

@dataclass(frozen=True)
class Address:
    """Vista aggregata di un address (aggiornata dagli accrediti)"""

    address_hash: str
    vin_count: int = 0
    first_seen_height: Optional[int] = None
    last_seen_height: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address_hash": self.address_hash,
            "vin_count": self.vin_count,
            "first_seen_height": self.first_seen_height,
            "last_seen_height": self.last_seen_height,
        }


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "asset_display_name",
    "Block",
    "Output",
    "Transaction",
    "Asset",
    "Address",
]
