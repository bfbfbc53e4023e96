"""Create cnpj mining cache tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Whitelist: empresas confirmadas (upsert por cnpj)
    op.create_table(
        'cnpj_whitelist',
        sa.Column('cnpj', sa.String(14), nullable=False),
        sa.Column('razao_social', sa.String(200), nullable=False, server_default=''),
        sa.Column('nome_fantasia', sa.String(200), nullable=True),
        sa.Column('uf', sa.String(2), nullable=True),
        sa.Column('municipio', sa.String(100), nullable=True),
        sa.Column('capital_social', sa.Numeric(18, 2), nullable=True),
        sa.Column('porte', sa.String(50), nullable=True),
        sa.Column('trust_score', sa.Integer(), server_default='0'),

        # Controle
        sa.Column('times_verified', sa.Integer(), server_default='1'),
        sa.Column('found_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('last_verified', sa.DateTime(timezone=True), server_default=sa.text('now()')),

        sa.PrimaryKeyConstraint('cnpj')
    )
    op.create_index('ix_cnpj_whitelist_uf', 'cnpj_whitelist', ['uf'])

    # Blacklist: insert ignorando duplicados
    op.create_table(
        'cnpj_blacklist',
        sa.Column('cnpj', sa.String(14), nullable=False),
        sa.Column('reason', sa.String(20), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('cnpj')
    )

    # CNPJs já reivindicados
    op.create_table(
        'cnpj_used',
        sa.Column('cnpj', sa.String(14), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('cnpj')
    )


def downgrade() -> None:
    op.drop_table('cnpj_used')
    op.drop_table('cnpj_blacklist')
    op.drop_index('ix_cnpj_whitelist_uf', table_name='cnpj_whitelist')
    op.drop_table('cnpj_whitelist')
