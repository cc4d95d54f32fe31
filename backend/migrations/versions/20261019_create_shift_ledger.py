"""Create shifts and cash_movements (append-only drawer ledger)

Revision ID: 20261019_shift_ledger
Revises:
Create Date: 2026-10-19 10:12:44.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_shift_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('shifts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('operator_id', sa.String(length=64), nullable=False),
    sa.Column('location_id', sa.String(length=64), nullable=False),
    sa.Column('status', sa.String(length=16), nullable=False),
    sa.Column('opening_cash_cents', sa.Integer(), nullable=False),
    sa.Column('closing_cash_cents', sa.Integer(), nullable=True),
    sa.Column('expected_cash_cents', sa.Integer(), nullable=True),
    sa.Column('variance_cents', sa.Integer(), nullable=True),
    sa.Column('denomination_breakdown', sa.JSON(), nullable=True),
    sa.Column('opening_notes', sa.Text(), nullable=True),
    sa.Column('closing_notes', sa.Text(), nullable=True),
    sa.Column('closed_by', sa.String(length=64), nullable=True),
    sa.Column('opened_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sqlite_autoincrement=True
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shifts_operator_id'), ['operator_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_location_id'), ['location_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_opened_at'), ['opened_at'], unique=False)
        batch_op.create_index('ix_shifts_location_status_opened', ['location_id', 'status', 'opened_at'], unique=False)

    # One OPEN shift per operator per location. Partial index so closed
    # history rows never collide.
    op.create_index(
        'uq_shifts_open_operator_location',
        'shifts',
        ['operator_id', 'location_id'],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table('cash_movements',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('shift_id', sa.Integer(), nullable=False),
    sa.Column('movement_type', sa.String(length=16), nullable=False),
    sa.Column('amount_cents', sa.Integer(), nullable=False),
    sa.Column('reason', sa.String(length=255), nullable=True),
    sa.Column('category', sa.String(length=64), nullable=True),
    sa.Column('attachment', sa.String(length=512), nullable=True),
    sa.Column('performed_by', sa.String(length=64), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.CheckConstraint('amount_cents > 0', name='ck_cash_movements_amount_positive'),
    sqlite_autoincrement=True
    )
    with op.batch_alter_table('cash_movements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cash_movements_shift_id'), ['shift_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_cash_movements_movement_type'), ['movement_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_cash_movements_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_cash_movements_shift_created', ['shift_id', 'created_at'], unique=False)


def downgrade():
    with op.batch_alter_table('cash_movements', schema=None) as batch_op:
        batch_op.drop_index('ix_cash_movements_shift_created')
        batch_op.drop_index(batch_op.f('ix_cash_movements_created_at'))
        batch_op.drop_index(batch_op.f('ix_cash_movements_movement_type'))
        batch_op.drop_index(batch_op.f('ix_cash_movements_shift_id'))

    op.drop_table('cash_movements')

    op.drop_index('uq_shifts_open_operator_location', table_name='shifts')
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.drop_index('ix_shifts_location_status_opened')
        batch_op.drop_index(batch_op.f('ix_shifts_opened_at'))
        batch_op.drop_index(batch_op.f('ix_shifts_status'))
        batch_op.drop_index(batch_op.f('ix_shifts_location_id'))
        batch_op.drop_index(batch_op.f('ix_shifts_operator_id'))

    op.drop_table('shifts')
