"""initial schema: offices, users, teams, memberships, reps

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    office = op.create_table(
        'office',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('head_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('day_offset_hours', sa.Integer(), server_default='0', nullable=False),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('office', sa.Integer(), sa.ForeignKey('office.id'), nullable=True),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'user_team',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id'), nullable=False),
        sa.UniqueConstraint('user_id', 'team_id', name='uq_user_team_user_id_team_id'),
    )
    op.create_index('ix_user_team_team_id', 'user_team', ['team_id'])

    op.create_table(
        'reps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('exercise', sa.Text(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('count >= 0', name='ck_reps_count_non_negative'),
    )
    op.create_index('ix_reps_user_id_created_at', 'reps', ['user_id', 'created_at'])

    # "" is the unassigned office new users start in. Offsets are hours
    # ahead of the server clock (America/Los_Angeles).
    op.bulk_insert(office, [
        {'name': '', 'head_count': 0, 'day_offset_hours': 0},
        {'name': 'OC', 'head_count': 0, 'day_offset_hours': 0},
        {'name': 'Denver', 'head_count': 0, 'day_offset_hours': 1},
        {'name': 'NY', 'head_count': 0, 'day_offset_hours': 3},
        {'name': 'London', 'head_count': 0, 'day_offset_hours': 7},
        {'name': 'Romania', 'head_count': 0, 'day_offset_hours': 9},
    ])


def downgrade() -> None:
    op.drop_index('ix_reps_user_id_created_at', table_name='reps')
    op.drop_table('reps')
    op.drop_index('ix_user_team_team_id', table_name='user_team')
    op.drop_table('user_team')
    op.drop_table('team')
    op.drop_table('user')
    op.drop_table('office')
