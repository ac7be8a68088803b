"""
LedgerMirror - Wire Payload Models
===================================
Modelli Pydantic per i payload JSON-RPC del nodo remoto.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

I nomi dei campi sul filo (index, time, tx, vin, vout, ...) sono mantenuti
tramite alias; `model_dump(by_alias=True)` restituisce la forma originale.
Campi non modellati sono conservati (extra='allow').

Models:
- InputRefPayload: riferimento (txid, vout) usato da vin e claims
- OutputPayload: output prodotto (n, asset, address, value)
- AssetNamePayload: variante localizzata del nome asset
- AssetIssuancePayload: registrazione asset
- TransactionPayload: transazione
- BlockPayload: blocco con lista transazioni
"""

from decimal import Decimal
from typing import Optional, List, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WirePayload(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra='allow',
        frozen=True,
    )


# ============================================================================
# TRANSACTION PARTS
# ============================================================================

class InputRefPayload(_WirePayload):
    """Puntatore a un output precedente: {"txid": ..., "vout": n}"""

    txid: str = Field(..., min_length=1, description="Transaction ID precedente")
    index: int = Field(..., alias="vout", ge=0, description="Indice output precedente")


class OutputPayload(_WirePayload):
    """Output prodotto da una transazione"""

    n: int = Field(..., ge=0, description="Indice output")
    asset: str = Field(..., description="Asset ID")
    address: str = Field(..., description="Address hash proprietario")
    value: Decimal = Field(..., description="Valore")


class AssetNamePayload(_WirePayload):
    """Variante localizzata: {"lang": "en", "name": "Gold"}"""

    lang: str
    name: str


class AssetIssuancePayload(_WirePayload):
    """
    Asset registrato da una transazione di emissione.

    `amount` resta testuale: il parsing decimale avviene in ingestione.
    """

    type: str
    name: List[AssetNamePayload] = Field(default_factory=list)
    amount: str
    precision: int = 0
    owner: Optional[str] = None
    admin: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('name', mode='before')
    @classmethod
    def single_name_as_list(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return [v]
        return v


# ============================================================================
# TRANSACTION
# ============================================================================

class TransactionPayload(_WirePayload):
    """Transazione come restituita da getblock verbose"""

    txid: str = Field(..., min_length=1)
    type: str
    vin: List[InputRefPayload] = Field(default_factory=list)
    vout: List[OutputPayload] = Field(default_factory=list)
    claims: Optional[List[InputRefPayload]] = None
    asset: Optional[AssetIssuancePayload] = None
    size: Optional[int] = None
    version: Optional[int] = None
    sys_fee: Optional[Decimal] = None
    net_fee: Optional[Decimal] = None
    attributes: List[Any] = Field(default_factory=list)
    scripts: List[Any] = Field(default_factory=list)

    def ordered_outputs(self) -> List[OutputPayload]:
        """Output ordinati per indice n"""
        return sorted(self.vout, key=lambda out: out.n)


# ============================================================================
# BLOCK
# ============================================================================

class BlockPayload(_WirePayload):
    """Blocco come restituito da getblock [height, 1]"""

    height: int = Field(..., alias="index", ge=0)
    hash: str = Field(..., min_length=1)
    timestamp: int = Field(..., alias="time")
    transactions: List[TransactionPayload] = Field(default_factory=list, alias="tx")
    size: Optional[int] = None
    version: Optional[int] = None
    merkleroot: Optional[str] = None
    previousblockhash: Optional[str] = None
    nextconsensus: Optional[str] = None
    confirmations: Optional[int] = None

    @property
    def tx_count(self) -> int:
        return len(self.transactions)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "InputRefPayload",
    "OutputPayload",
    "AssetNamePayload",
    "AssetIssuancePayload",
    "TransactionPayload",
    "BlockPayload",
]
