"""
LedgerMirror - Ledger Ingestion Service
========================================
Trasforma un payload di blocco in record del ledger locale.

Security Level: CRITICAL
Last Updated: 2026-10-19
Version: 1.0.0

Per ogni blocco:
1. Block record (tx_count = numero transazioni)
2. Per ogni transazione, in ordine:
   - risoluzione vin (con accredito address)
   - risoluzione claims (senza accredito)
   - registrazione asset emesso (amount decimale)
   - transaction record
   - vout ordinati per n

Tutto dentro una sola unit of work: un errore su qualsiasi transazione
annulla l'intero blocco.
"""

from decimal import Decimal, InvalidOperation
from typing import List, Optional

# Internal imports
from ledger_mirror.domain.models import Block, Output, Transaction, Asset
from ledger_mirror.domain.payloads import (
    BlockPayload,
    TransactionPayload,
    InputRefPayload,
    AssetIssuancePayload,
)
from ledger_mirror.errors import AssetAmountParseError, format_resolution_error
from ledger_mirror.logging_setup import get_logger, PerformanceLogger
from ledger_mirror.storage.db import LedgerStore, LedgerWriter


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("ingest")


# ============================================================================
# HELPERS
# ============================================================================

def parse_asset_amount(amount: str) -> Decimal:
    """
    Parsing dell'amount testuale di un asset emesso.

    Raises:
        AssetAmountParseError: Se non e' un decimale finito

    Examples:
        >>> parse_asset_amount("100000000")
        Decimal('100000000')
        >>> parse_asset_amount("abc")
        Traceback (most recent call last):
        ...
        ledger_mirror.errors.AssetAmountParseError: ...
    """
    try:
        text = amount.strip()
        value = Decimal(text)
    except (InvalidOperation, AttributeError) as e:
        raise AssetAmountParseError(
            f"Asset amount is not a decimal number: {amount!r}",
            code="ASSET_AMOUNT_INVALID",
            details={"amount": amount}
        ) from e

    # Decimal() accetta "1_000"
    if "_" in text:
        raise AssetAmountParseError(
            f"Asset amount has digit separators: {amount!r}",
            code="ASSET_AMOUNT_INVALID",
            details={"amount": amount}
        )

    if not value.is_finite():
        raise AssetAmountParseError(
            f"Asset amount is not finite: {amount!r}",
            code="ASSET_AMOUNT_INVALID",
            details={"amount": amount}
        )

    return value


# ============================================================================
# INGESTOR
# ============================================================================

class LedgerIngestor:
    """
    Ingestione blocchi nel ledger locale.

    Le lookup di risoluzione interrogano lo store (non uno stato in memoria):
    un output e' risolvibile appena la sua scrittura e' stata fatta,
    anche all'interno dello stesso blocco.

    Attributes:
        store: LedgerStore di destinazione

    Examples:
        >>> ingestor = LedgerIngestor(store)
        >>> block = ingestor.ingest_block(payload)
    """

    def __init__(self, store: LedgerStore, slow_block_ms: Optional[int] = 5000):
        self.store = store
        self.slow_block_ms = slow_block_ms

    # ========================================================================
    # BLOCK
    # ========================================================================

    def ingest_block(self, payload: BlockPayload) -> Block:
        """
        Salva blocco e transazioni in modo atomico.

        Returns:
            Block: Record salvato

        Raises:
            ResolutionError, AssetAmountParseError, StorageError: il blocco
            non viene salvato
        """
        block = Block.from_payload(payload)

        with PerformanceLogger(
            logger,
            "ingest_block",
            threshold_ms=self.slow_block_ms,
            extra_data={"height": block.height, "tx_count": block.tx_count}
        ):
            with self.store.atomic() as writer:
                writer.insert_block(block)

                for tx_payload in payload.transactions:
                    self.ingest_transaction(writer, block, tx_payload)

        logger.debug(
            "Block ingested",
            extra_data={"height": block.height, "hash": block.hash, "tx_count": block.tx_count}
        )
        return block

    # ========================================================================
    # TRANSACTION
    # ========================================================================

    def ingest_transaction(
        self,
        writer: LedgerWriter,
        block: Block,
        payload: TransactionPayload
    ) -> Transaction:
        vin = []
        if payload.vin:
            vin = self._resolve(writer, payload.vin, "vin")
            for output in vin:
                writer.credit_address(output.address_hash, output, block.height)

        claims = None
        if payload.claims is not None:
            claims = self._resolve(writer, payload.claims, "claim")

        asset_data = None
        if payload.asset is not None:
            asset = self._build_asset(payload.txid, payload.asset, block.height)
            writer.insert_asset(asset)
            asset_data = {**payload.asset.model_dump(mode="json"), "amount": str(asset.amount)}

        transaction = Transaction(
            txid=payload.txid,
            type=payload.type,
            block_hash=block.hash,
            block_height=block.height,
            timestamp=block.timestamp,
            vin=vin,
            claims=claims,
            asset=asset_data,
            size=payload.size,
            version=payload.version,
            sys_fee=payload.sys_fee,
            net_fee=payload.net_fee,
        )
        writer.insert_transaction(transaction)

        for out in payload.ordered_outputs():
            writer.insert_output(Output.from_payload(payload.txid, out), block.height)

        return transaction

    @staticmethod
    def _resolve(
        writer: LedgerWriter,
        refs: List[InputRefPayload],
        kind: str
    ) -> List[Output]:
        resolved = []
        for ref in refs:
            output = writer.find_output(ref.txid, ref.index)
            if output is None:
                raise format_resolution_error(ref.txid, ref.index, kind)
            resolved.append(output)
        return resolved

    @staticmethod
    def _build_asset(txid: str, payload: AssetIssuancePayload, block_height: int) -> Asset:
        return Asset(
            txid=txid,
            type=payload.type,
            name=[variant.model_dump() for variant in payload.name],
            amount=parse_asset_amount(payload.amount),
            block_height=block_height,
            precision=payload.precision,
            owner=payload.owner,
            admin=payload.admin,
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "LedgerIngestor",
    "parse_asset_amount",
]
