"""create user, shared_entry and stone tables

Revision ID: 5c2d7e9a1b30
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2d7e9a1b30'
down_revision = None
branch_labels = None
depends_on = None


USER_PROFILE_COLUMNS = (
    ('xp', lambda: sa.Column('xp', sa.Integer(), nullable=False, server_default='0')),
    ('level', lambda: sa.Column('level', sa.Integer(), nullable=False, server_default='1')),
    ('balance', lambda: sa.Column('balance', sa.Integer(), nullable=False, server_default='0')),
    ('last_attendance_date', lambda: sa.Column('last_attendance_date', sa.String(length=10), nullable=True)),
)


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())

    if 'user' not in tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            *[make() for _, make in USER_PROFILE_COLUMNS],
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)
    else:
        # pre-existing user table from an earlier schema: add what is missing
        cols = {c['name'] for c in insp.get_columns('user')}
        with op.batch_alter_table('user') as batch_op:
            for name, make in USER_PROFILE_COLUMNS:
                if name not in cols:
                    batch_op.add_column(make())

    if 'shared_entry' not in tables:
        op.create_table(
            'shared_entry',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('scope', sa.String(length=64), nullable=False),
            sa.Column('key', sa.String(length=128), nullable=False),
            sa.Column('value', sa.Text(), nullable=False),
            sa.Column('updated_at', sa.Float(), nullable=True),
            sa.UniqueConstraint('scope', 'key', name='uq_shared_entry_scope_key'),
        )
        op.create_index('ix_shared_entry_scope', 'shared_entry', ['scope'])

    if 'stone' not in tables:
        op.create_table(
            'stone',
            sa.Column('id', sa.String(length=36), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
            sa.Column('type', sa.String(length=32), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('size', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('total_elapsed', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('discovered_at', sa.Float(), nullable=True),
            sa.Column('updated_at', sa.Float(), nullable=True),
        )
        op.create_index('ix_stone_user_id', 'stone', ['user_id'])


def downgrade():
    op.drop_index('ix_stone_user_id', table_name='stone')
    op.drop_table('stone')
    op.drop_index('ix_shared_entry_scope', table_name='shared_entry')
    op.drop_table('shared_entry')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
