"""
Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

from ledger_mirror.storage.models_orm import DecimalText


# revision identifiers, used by Alembic
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create initial database schema for LedgerMirror.
    """

    # ========================================================================
    # BLOCKS TABLE
    # ========================================================================

    op.create_table(
        'blocks',
        sa.Column('height', sa.Integer(), autoincrement=False, nullable=False),
        sa.Column('hash', sa.String(length=66), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('tx_count', sa.Integer(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=True),
        sa.Column('merkle_root', sa.String(length=66), nullable=True),
        sa.Column('previous_hash', sa.String(length=66), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('height'),
        sa.UniqueConstraint('hash')
    )

    op.create_index('idx_blocks_hash', 'blocks', ['hash'])
    op.create_index('idx_blocks_timestamp', 'blocks', ['timestamp'])

    # ========================================================================
    # TRANSACTIONS TABLE
    # ========================================================================

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('txid', sa.String(length=66), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('block_hash', sa.String(length=66), nullable=False),
        sa.Column('block_height', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('vin', sa.JSON(), nullable=False),
        sa.Column('claims', sa.JSON(), nullable=True),
        sa.Column('asset', sa.JSON(), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=True),
        sa.Column('sys_fee', DecimalText(), nullable=True),
        sa.Column('net_fee', DecimalText(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['block_height'], ['blocks.height'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('txid')
    )

    op.create_index('idx_transactions_txid', 'transactions', ['txid'])
    op.create_index('idx_transactions_block', 'transactions', ['block_height'])
    op.create_index('idx_transactions_type', 'transactions', ['type'])

    # ========================================================================
    # VOUTS TABLE
    # ========================================================================

    op.create_table(
        'vouts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('txid', sa.String(length=66), nullable=False),
        sa.Column('n', sa.Integer(), nullable=False),
        sa.Column('asset', sa.String(length=66), nullable=False),
        sa.Column('address_hash', sa.String(length=128), nullable=False),
        sa.Column('value', DecimalText(), nullable=False),
        sa.Column('block_height', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['block_height'], ['blocks.height'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('txid', 'n', name='uq_vouts_txid_n')
    )

    op.create_index('idx_vouts_address', 'vouts', ['address_hash'])
    op.create_index('idx_vouts_block', 'vouts', ['block_height'])

    # ========================================================================
    # ASSETS TABLE
    # ========================================================================

    op.create_table(
        'assets',
        sa.Column('txid', sa.String(length=66), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('name', sa.JSON(), nullable=False),
        sa.Column('amount', DecimalText(), nullable=False),
        sa.Column('precision', sa.Integer(), nullable=False),
        sa.Column('owner', sa.String(length=128), nullable=True),
        sa.Column('admin', sa.String(length=128), nullable=True),
        sa.Column('block_height', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['block_height'], ['blocks.height'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('txid')
    )

    op.create_index('idx_assets_block', 'assets', ['block_height'])

    # ========================================================================
    # ADDRESSES TABLES
    # ========================================================================

    op.create_table(
        'addresses',
        sa.Column('address_hash', sa.String(length=128), nullable=False),
        sa.Column('vin_count', sa.Integer(), nullable=False),
        sa.Column('first_seen_height', sa.Integer(), nullable=True),
        sa.Column('last_seen_height', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('address_hash')
    )

    op.create_table(
        'address_activity',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address_hash', sa.String(length=128), nullable=False),
        sa.Column('txid', sa.String(length=66), nullable=False),
        sa.Column('n', sa.Integer(), nullable=False),
        sa.Column('asset', sa.String(length=66), nullable=False),
        sa.Column('value', DecimalText(), nullable=False),
        sa.Column('block_height', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['block_height'], ['blocks.height'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index('idx_activity_address', 'address_activity', ['address_hash'])
    op.create_index('idx_activity_block', 'address_activity', ['block_height'])


def downgrade() -> None:
    """
    Drop all tables.
    """
    op.drop_table('address_activity')
    op.drop_table('addresses')
    op.drop_table('assets')
    op.drop_table('vouts')
    op.drop_table('transactions')
    op.drop_table('blocks')
