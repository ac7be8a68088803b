"""
LedgerMirror - Ledger Store
============================
Persistenza del ledger locale con SQLAlchemy.

Security Level: HIGH
Last Updated: 2026-10-19
Version: 1.0.0

Features:
- Highest height / rollback (delete above)
- Unit of work atomica per blocco (LedgerWriter)
- Lookup output per (txid, n)
- Accredito address con storico per rollback
- Accessor read-only (blocchi, transazioni, asset, address)
"""

from contextlib import contextmanager
from typing import Optional, List, Iterator, Set

from sqlalchemy import create_engine, select, delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Internal imports
from ledger_mirror.domain.models import (
    Block,
    Output,
    Transaction,
    Asset,
    Address,
)
from ledger_mirror.storage.models_orm import (
    Base,
    BlockORM,
    TransactionORM,
    VoutORM,
    AssetORM,
    AddressORM,
    AddressActivityORM,
)
from ledger_mirror.errors import StoreReadError, StoreWriteError
from ledger_mirror.logging_setup import get_logger
from ledger_mirror.config import MirrorSettings


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("storage")


# ============================================================================
# ROW <-> RECORD
# ============================================================================

def _block_from_row(row: BlockORM) -> Block:
    return Block(
        height=row.height,
        hash=row.hash,
        timestamp=row.timestamp,
        tx_count=row.tx_count,
        size=row.size,
        version=row.version,
        merkle_root=row.merkle_root,
        previous_hash=row.previous_hash,
    )


def _output_from_row(row: VoutORM) -> Output:
    return Output(
        txid=row.txid,
        n=row.n,
        asset=row.asset,
        address_hash=row.address_hash,
        value=row.value,
    )


def _transaction_from_row(row: TransactionORM) -> Transaction:
    return Transaction(
        txid=row.txid,
        type=row.type,
        block_hash=row.block_hash,
        block_height=row.block_height,
        timestamp=row.timestamp,
        vin=[Output.from_dict(item) for item in (row.vin or [])],
        claims=[Output.from_dict(item) for item in row.claims] if row.claims is not None else None,
        asset=row.asset,
        size=row.size,
        version=row.version,
        sys_fee=row.sys_fee,
        net_fee=row.net_fee,
    )


def _asset_from_row(row: AssetORM) -> Asset:
    return Asset(
        txid=row.txid,
        type=row.type,
        name=list(row.name or []),
        amount=row.amount,
        block_height=row.block_height,
        precision=row.precision,
        owner=row.owner,
        admin=row.admin,
    )


def _address_from_row(row: AddressORM) -> Address:
    return Address(
        address_hash=row.address_hash,
        vin_count=row.vin_count,
        first_seen_height=row.first_seen_height,
        last_seen_height=row.last_seen_height,
    )


# ============================================================================
# UNIT OF WORK
# ============================================================================

class LedgerWriter:
    """
    Scritture di un singolo blocco, dentro una transazione database.

    Ogni insert fa flush: le lookup successive (stessa transazione)
    vedono gli output appena scritti.

    Ottenuto solo tramite `LedgerStore.atomic()`.
    """

    def __init__(self, session: Session):
        self._session = session

    def _write(self, row, what: str) -> None:
        try:
            self._session.add(row)
            self._session.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to insert {what}: {e}",
                code=f"{what.upper()}_INSERT_FAILED"
            ) from e

    def insert_block(self, block: Block) -> None:
        self._write(
            BlockORM(
                height=block.height,
                hash=block.hash,
                timestamp=block.timestamp,
                tx_count=block.tx_count,
                size=block.size,
                version=block.version,
                merkle_root=block.merkle_root,
                previous_hash=block.previous_hash,
            ),
            "block"
        )

    def insert_transaction(self, tx: Transaction) -> None:
        data = tx.to_dict()
        self._write(
            TransactionORM(
                txid=tx.txid,
                type=tx.type,
                block_hash=tx.block_hash,
                block_height=tx.block_height,
                timestamp=tx.timestamp,
                vin=data["vin"],
                claims=data["claims"],
                asset=tx.asset,
                size=tx.size,
                version=tx.version,
                sys_fee=tx.sys_fee,
                net_fee=tx.net_fee,
            ),
            "transaction"
        )

    def insert_output(self, output: Output, block_height: int) -> None:
        self._write(
            VoutORM(
                txid=output.txid,
                n=output.n,
                asset=output.asset,
                address_hash=output.address_hash,
                value=output.value,
                block_height=block_height,
            ),
            "vout"
        )

    def insert_asset(self, asset: Asset) -> None:
        self._write(
            AssetORM(
                txid=asset.txid,
                type=asset.type,
                name=asset.name,
                amount=asset.amount,
                precision=asset.precision,
                owner=asset.owner,
                admin=asset.admin,
                block_height=asset.block_height,
            ),
            "asset"
        )

    def find_output(self, txid: str, n: int) -> Optional[Output]:
        """
        Lookup output per (txid, n).

        Returns:
            Output: Output salvato, o None se non esiste
        """
        try:
            row = self._session.execute(
                select(VoutORM).where(VoutORM.txid == txid, VoutORM.n == n)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"Failed to look up output {txid}:{n}: {e}",
                code="VOUT_LOOKUP_FAILED"
            ) from e

        return _output_from_row(row) if row is not None else None

    def credit_address(self, address_hash: str, output: Output, block_height: int) -> None:
        """
        Registra il consumo di `output` sull'address proprietario.

        Crea l'address al primo accredito.
        """
        try:
            address = self._session.get(AddressORM, address_hash)
            if address is None:
                address = AddressORM(
                    address_hash=address_hash,
                    vin_count=0,
                    first_seen_height=block_height,
                )
                self._session.add(address)

            address.vin_count += 1
            address.last_seen_height = block_height

            self._session.add(AddressActivityORM(
                address_hash=address_hash,
                txid=output.txid,
                n=output.n,
                asset=output.asset,
                value=output.value,
                block_height=block_height,
            ))
            self._session.flush()
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to credit address {address_hash}: {e}",
                code="ADDRESS_CREDIT_FAILED"
            ) from e


# ============================================================================
# STORE
# ============================================================================

class LedgerStore:
    """
    Store del ledger locale.

    Attributes:
        database_url: URL SQLAlchemy
        engine: Engine SQLAlchemy

    Examples:
        >>> store = LedgerStore("sqlite:///ledger.db")
        >>> with store.atomic() as writer:
        ...     writer.insert_block(block)
        >>> store.highest_height()
        1
    """

    def __init__(self, database_url: str = "sqlite://", echo: bool = False):
        self.database_url = database_url
        self.engine = self._create_engine(database_url, echo)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

        self._initialize_database()

        logger.info(
            "Ledger store initialized",
            extra_data={"database_url": self.engine.url.render_as_string(hide_password=True)}
        )

    @classmethod
    def from_settings(cls, config: MirrorSettings) -> "LedgerStore":
        return cls(config.database_url, echo=config.database_echo)

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Un'unica connessione condivisa, altrimenti ogni sessione vede un DB vuoto
            return create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, echo=echo)

    def _initialize_database(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to initialize database: {e}",
                code="DB_INIT_FAILED"
            ) from e

    # ========================================================================
    # UNIT OF WORK
    # ========================================================================

    @contextmanager
    def atomic(self) -> Iterator[LedgerWriter]:
        """
        Unit of work atomica.

        Commit all'uscita normale, rollback su qualsiasi eccezione
        (che viene ripropagata).
        """
        session = self._session_factory()
        try:
            yield LedgerWriter(session)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(f"Failed to commit: {e}", code="COMMIT_FAILED") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def _reading(self, what: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to read {what}: {e}") from e
        finally:
            session.close()

    # ========================================================================
    # SYNC OPERATIONS
    # ========================================================================

    def highest_height(self) -> Optional[int]:
        """
        Height ultimo blocco salvato.

        Returns:
            int: Height, o None se lo store e' vuoto

        Raises:
            StoreReadError: Se la query fallisce
        """
        with self._reading("highest height") as session:
            return session.execute(select(func.max(BlockORM.height))).scalar()

    def delete_above(self, height: int) -> int:
        """
        Rollback: elimina ogni blocco con height > `height` e tutto
        quello che gli appartiene (transazioni, output, asset, accrediti).

        Gli address toccati vengono ricalcolati dallo storico rimasto.

        Returns:
            int: Numero blocchi eliminati
        """
        session = self._session_factory()
        try:
            touched: Set[str] = set(session.execute(
                select(AddressActivityORM.address_hash)
                .where(AddressActivityORM.block_height > height)
                .distinct()
            ).scalars())

            for model in (AddressActivityORM, VoutORM, AssetORM, TransactionORM):
                session.execute(delete(model).where(model.block_height > height))

            deleted = session.execute(
                delete(BlockORM).where(BlockORM.height > height)
            ).rowcount

            for address_hash in touched:
                self._recompute_address(session, address_hash)

            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreWriteError(
                f"Failed to delete blocks above {height}: {e}",
                code="ROLLBACK_FAILED"
            ) from e
        finally:
            session.close()

        logger.info(
            "Blocks deleted",
            extra_data={"above_height": height, "deleted": deleted, "addresses": len(touched)}
        )
        return deleted

    @staticmethod
    def _recompute_address(session: Session, address_hash: str) -> None:
        count, first, last = session.execute(
            select(
                func.count(AddressActivityORM.id),
                func.min(AddressActivityORM.block_height),
                func.max(AddressActivityORM.block_height),
            ).where(AddressActivityORM.address_hash == address_hash)
        ).one()

        address = session.get(AddressORM, address_hash)
        if address is None:
            return

        if count == 0:
            session.delete(address)
        else:
            address.vin_count = count
            address.first_seen_height = first
            address.last_seen_height = last

    # ========================================================================
    # READ-ONLY ACCESSORS
    # ========================================================================

    def get_block_count(self) -> int:
        with self._reading("block count") as session:
            return session.execute(select(func.count(BlockORM.height))).scalar_one()

    def get_block(self, height: int) -> Optional[Block]:
        with self._reading("block") as session:
            row = session.get(BlockORM, height)
            return _block_from_row(row) if row is not None else None

    def get_block_by_hash(self, block_hash: str) -> Optional[Block]:
        with self._reading("block") as session:
            row = session.execute(
                select(BlockORM).where(BlockORM.hash == block_hash)
            ).scalar_one_or_none()
            return _block_from_row(row) if row is not None else None

    def get_transaction(self, txid: str) -> Optional[Transaction]:
        with self._reading("transaction") as session:
            row = session.execute(
                select(TransactionORM).where(TransactionORM.txid == txid)
            ).scalar_one_or_none()
            return _transaction_from_row(row) if row is not None else None

    def get_transactions_in_block(self, height: int) -> List[Transaction]:
        with self._reading("transactions") as session:
            rows = session.execute(
                select(TransactionORM)
                .where(TransactionORM.block_height == height)
                .order_by(TransactionORM.id)
            ).scalars()
            return [_transaction_from_row(row) for row in rows]

    def get_outputs(self, txid: str) -> List[Output]:
        with self._reading("outputs") as session:
            rows = session.execute(
                select(VoutORM).where(VoutORM.txid == txid).order_by(VoutORM.n)
            ).scalars()
            return [_output_from_row(row) for row in rows]

    def find_output(self, txid: str, n: int) -> Optional[Output]:
        with self._reading("output") as session:
            return LedgerWriter(session).find_output(txid, n)

    def get_asset(self, txid: str) -> Optional[Asset]:
        with self._reading("asset") as session:
            row = session.get(AssetORM, txid)
            return _asset_from_row(row) if row is not None else None

    def get_asset_name(self, txid: str) -> Optional[str]:
        """Nome visualizzato dell'asset (variante "en", altrimenti la prima)"""
        asset = self.get_asset(txid)
        return asset.display_name if asset is not None else None

    def list_assets(self) -> List[Asset]:
        with self._reading("assets") as session:
            rows = session.execute(
                select(AssetORM).order_by(AssetORM.block_height, AssetORM.txid)
            ).scalars()
            return [_asset_from_row(row) for row in rows]

    def get_address(self, address_hash: str) -> Optional[Address]:
        with self._reading("address") as session:
            row = session.get(AddressORM, address_hash)
            return _address_from_row(row) if row is not None else None

    # ========================================================================
    # UTILITY
    # ========================================================================

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Ledger store closed")


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "LedgerStore",
    "LedgerWriter",
]
