"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - short_links: code -> target mappings (unique code backs reservation)
    - click_events: append-only redirect log
    - click_aggregates: compacted per-code counters
    - click_daily_counts: compacted per-code, per-day histogram
    """
    op.create_table(
        'short_links',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('target', sa.Text(), nullable=False),
        sa.Column('owner', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('custom', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_short_links_code', 'short_links', ['code'], unique=True)
    op.create_index('ix_short_links_owner', 'short_links', ['owner'])
    op.create_index('ix_short_links_created_at', 'short_links', ['created_at'])
    op.create_index('ix_short_links_expires_at', 'short_links', ['expires_at'])

    op.create_table(
        'click_events',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('clicked_at', sa.DateTime(), nullable=False),
        sa.Column('referrer', sa.String(length=500), nullable=True),
        sa.Column('client_hash', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_click_events_code', 'click_events', ['code'])
    op.create_index('ix_click_events_clicked_at', 'click_events', ['clicked_at'])
    op.create_index('ix_click_events_code_clicked_at', 'click_events', ['code', 'clicked_at'])

    op.create_table(
        'click_aggregates',
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_clicked_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('code')
    )

    op.create_table(
        'click_daily_counts',
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('code', 'day')
    )


def downgrade() -> None:
    """
    Drop all tables and indexes.
    """
    op.drop_table('click_daily_counts')
    op.drop_table('click_aggregates')

    op.drop_index('ix_click_events_code_clicked_at', table_name='click_events')
    op.drop_index('ix_click_events_clicked_at', table_name='click_events')
    op.drop_index('ix_click_events_code', table_name='click_events')
    op.drop_table('click_events')

    op.drop_index('ix_short_links_expires_at', table_name='short_links')
    op.drop_index('ix_short_links_created_at', table_name='short_links')
    op.drop_index('ix_short_links_owner', table_name='short_links')
    op.drop_index('ix_short_links_code', table_name='short_links')
    op.drop_table('short_links')
