"""create room, timer and timer_session

Revision ID: 5b7c1d9e2f30
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c1d9e2f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    tables = set(sa.inspect(bind).get_table_names())
    if 'room' not in tables:
        op.create_table(
            'room',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('slug', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
        )
        op.create_index('ix_room_slug', 'room', ['slug'], unique=True)
    if 'timer' not in tables:
        op.create_table(
            'timer',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('appearance', sa.String(length=16), nullable=False),
            sa.Column('duration_ms', sa.Integer(), nullable=False),
            sa.Column('yellow_warning_ms', sa.Integer(), nullable=True),
            sa.Column('red_warning_ms', sa.Integer(), nullable=True),
            sa.Column('index', sa.Integer(), nullable=False),
        )
        op.create_index('ix_timer_room_id', 'timer', ['room_id'])
    if 'timer_session' not in tables:
        op.create_table(
            'timer_session',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
            sa.Column('timer_id', sa.Integer(), sa.ForeignKey('timer.id'), nullable=False),
            sa.Column('kickoff', sa.BigInteger(), nullable=True),
            sa.Column('deadline', sa.BigInteger(), nullable=True),
            sa.Column('last_stop', sa.BigInteger(), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('seq', sa.Integer(), nullable=False),
        )
        op.create_index('ix_timer_session_room_id', 'timer_session', ['room_id'], unique=True)


def downgrade():
    op.drop_index('ix_timer_session_room_id', table_name='timer_session')
    op.drop_table('timer_session')
    op.drop_index('ix_timer_room_id', table_name='timer')
    op.drop_table('timer')
    op.drop_index('ix_room_slug', table_name='room')
    op.drop_table('room')
