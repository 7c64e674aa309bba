"""
create habits, daily_stats and last_logins

Revision ID: 20261019_create_sync_tables
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_create_sync_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'habits',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('owner_id', sa.Uuid, nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('is_completed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('order', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'daily_stats',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('owner_id', sa.Uuid, nullable=False, index=True),
        sa.Column('date', sa.Date, nullable=False, index=True),
        sa.Column('completion_percentage', sa.Float, nullable=False),
        sa.Column('habits_completed', sa.Integer, nullable=False),
        sa.Column('total_habits', sa.Integer, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('owner_id', 'date', name='uq_daily_stats_owner_date'),
    )

    op.create_table(
        'last_logins',
        sa.Column('owner_id', sa.Uuid, primary_key=True),
        sa.Column('last_seen_day', sa.Date, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('last_logins')
    op.drop_table('daily_stats')
    op.drop_table('habits')
