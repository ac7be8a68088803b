"""
LedgerMirror - ORM Models
==========================
SQLAlchemy ORM models del ledger locale.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Column,
    Integer,
    String,
    BigInteger,
    DateTime,
    JSON,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecimalText(TypeDecorator):
    """Decimal salvato come testo (precisione esatta anche su SQLite)"""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class BlockORM(Base):
    """Block ORM model"""
    __tablename__ = 'blocks'

    height = Column(Integer, primary_key=True, autoincrement=False)
    hash = Column(String(66), unique=True, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    tx_count = Column(Integer, nullable=False)
    size = Column(Integer, nullable=True)
    version = Column(Integer, nullable=True)
    merkle_root = Column(String(66), nullable=True)
    previous_hash = Column(String(66), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index('idx_blocks_hash', 'hash'),
        Index('idx_blocks_timestamp', 'timestamp'),
    )


class TransactionORM(Base):
    """Transaction ORM model (vin/claims risolti in JSON)"""
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    txid = Column(String(66), unique=True, nullable=False)
    type = Column(String(64), nullable=False)
    block_hash = Column(String(66), nullable=False)
    block_height = Column(
        Integer, ForeignKey('blocks.height', ondelete='CASCADE'), nullable=False
    )
    timestamp = Column(BigInteger, nullable=False)
    vin = Column(JSON, nullable=False, default=list)
    claims = Column(JSON, nullable=True)
    asset = Column(JSON, nullable=True)
    size = Column(Integer, nullable=True)
    version = Column(Integer, nullable=True)
    sys_fee = Column(DecimalText, nullable=True)
    net_fee = Column(DecimalText, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        Index('idx_transactions_txid', 'txid'),
        Index('idx_transactions_block', 'block_height'),
        Index('idx_transactions_type', 'type'),
    )


class VoutORM(Base):
    """Output ORM model, unico per (txid, n)"""
    __tablename__ = 'vouts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    txid = Column(String(66), nullable=False)
    n = Column(Integer, nullable=False)
    asset = Column(String(66), nullable=False)
    address_hash = Column(String(128), nullable=False)
    value = Column(DecimalText, nullable=False)
    block_height = Column(
        Integer, ForeignKey('blocks.height', ondelete='CASCADE'), nullable=False
    )

    __table_args__ = (
        UniqueConstraint('txid', 'n', name='uq_vouts_txid_n'),
        Index('idx_vouts_address', 'address_hash'),
        Index('idx_vouts_block', 'block_height'),
    )


class AssetORM(Base):
    """Asset ORM model, chiave = txid di emissione"""
    __tablename__ = 'assets'

    txid = Column(String(66), primary_key=True)
    type = Column(String(64), nullable=False)
    name = Column(JSON, nullable=False, default=list)
    amount = Column(DecimalText, nullable=False)
    precision = Column(Integer, nullable=False, default=0)
    owner = Column(String(128), nullable=True)
    admin = Column(String(128), nullable=True)
    block_height = Column(
        Integer, ForeignKey('blocks.height', ondelete='CASCADE'), nullable=False
    )

    __table_args__ = (
        Index('idx_assets_block', 'block_height'),
    )


class AddressORM(Base):
    """Address ORM model (vista aggregata)"""
    __tablename__ = 'addresses'

    address_hash = Column(String(128), primary_key=True)
    vin_count = Column(Integer, nullable=False, default=0)
    first_seen_height = Column(Integer, nullable=True)
    last_seen_height = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class AddressActivityORM(Base):
    """Output consumato da un address (una riga per accredito)"""
    __tablename__ = 'address_activity'

    id = Column(Integer, primary_key=True, autoincrement=True)
    address_hash = Column(String(128), nullable=False)
    txid = Column(String(66), nullable=False)
    n = Column(Integer, nullable=False)
    asset = Column(String(66), nullable=False)
    value = Column(DecimalText, nullable=False)
    block_height = Column(
        Integer, ForeignKey('blocks.height', ondelete='CASCADE'), nullable=False
    )

    __table_args__ = (
        Index('idx_activity_address', 'address_hash'),
        Index('idx_activity_block', 'block_height'),
    )


__all__ = [
    'Base',
    'DecimalText',
    'BlockORM',
    'TransactionORM',
    'VoutORM',
    'AssetORM',
    'AddressORM',
    'AddressActivityORM',
]
