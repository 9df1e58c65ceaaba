"""create pg, maintainer and salary tables

Revision ID: 3b1f0c9a2d41
Revises:
Create Date: 2026-10-19 10:12:44.318207
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '3b1f0c9a2d41'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

salary_status = sa.Enum('PENDING', 'PARTIALLY_PAID', 'PAID', 'CANCELLED', name='salarystatus')
payment_method = sa.Enum('CASH', 'ONLINE_TRANSFER', 'UPI', 'CHEQUE', 'CARD', name='paymentmethod')
user_role = sa.Enum('SUPERADMIN', 'ADMIN', 'MAINTAINER', 'USER', name='userrole')
maintainer_status = sa.Enum('ACTIVE', 'INACTIVE', 'SUSPENDED', name='maintainerstatus')


def _audit_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'pgs',
        *_audit_columns(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_pgs_id', 'pgs', ['id'])

    op.create_table(
        'users',
        *_audit_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('pg_id', sa.Integer(), sa.ForeignKey('pgs.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_pg_id', 'users', ['pg_id'])

    op.create_table(
        'branches',
        *_audit_columns(),
        sa.Column('pg_id', sa.Integer(), sa.ForeignKey('pgs.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )
    op.create_index('ix_branches_id', 'branches', ['id'])
    op.create_index('ix_branches_pg_id', 'branches', ['pg_id'])

    op.create_table(
        'maintainers',
        *_audit_columns(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('pg_id', sa.Integer(), sa.ForeignKey('pgs.id'), nullable=False),
        sa.Column('specialization', sa.JSON(), nullable=True),
        sa.Column('status', maintainer_status, nullable=True),
    )
    op.create_index('ix_maintainers_id', 'maintainers', ['id'])
    op.create_index('ix_maintainers_pg_id', 'maintainers', ['pg_id'])
    op.create_index('ix_maintainers_status', 'maintainers', ['status'])

    op.create_table(
        'maintainer_branches',
        sa.Column('maintainer_id', sa.Integer(), sa.ForeignKey('maintainers.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id', ondelete='CASCADE'), primary_key=True),
    )

    op.create_table(
        'salaries',
        *_audit_columns(),
        sa.Column('maintainer_id', sa.Integer(), sa.ForeignKey('maintainers.id'), nullable=False),
        sa.Column('pg_id', sa.Integer(), sa.ForeignKey('pgs.id'), nullable=False),
        sa.Column('branch_id', sa.Integer(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('month', sa.String(length=10), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('base_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('bonus', sa.Numeric(12, 2), nullable=True),
        sa.Column('overtime_hours', sa.Numeric(8, 2), nullable=True),
        sa.Column('overtime_rate', sa.Numeric(12, 2), nullable=True),
        sa.Column('overtime_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('other_deductions', sa.Numeric(12, 2), nullable=True),
        sa.Column('gross_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_deductions', sa.Numeric(12, 2), nullable=True),
        sa.Column('net_salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('pending_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', salary_status, nullable=False),
        sa.Column('payment_method', payment_method, nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('receipt_image', sa.JSON(), nullable=True),
        sa.Column('paid_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('edit_lock_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_salaries_id', 'salaries', ['id'])
    op.create_index('ix_salaries_branch_id', 'salaries', ['branch_id'])
    op.create_index('ix_salaries_pg_status', 'salaries', ['pg_id', 'status'])
    op.create_index('ix_salaries_period', 'salaries', ['month', 'year'])
    op.create_index(
        'uq_salaries_maintainer_period_active',
        'salaries',
        ['maintainer_id', 'month', 'year'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active = true'),
    )

    op.create_table(
        'salary_payments',
        *_audit_columns(),
        sa.Column('salary_id', sa.Integer(), sa.ForeignKey('salaries.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('transaction_id', sa.String(length=100), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('receipt_image', sa.JSON(), nullable=True),
        sa.Column('paid_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_salary_payments_id', 'salary_payments', ['id'])
    op.create_index('ix_salary_payments_salary_id', 'salary_payments', ['salary_id'])
    print("✓ [3b1f0c9a2d41] Created pg, maintainer and salary tables")


def downgrade() -> None:
    op.drop_table('salary_payments')
    op.drop_index('uq_salaries_maintainer_period_active', table_name='salaries')
    op.drop_table('salaries')
    op.drop_table('maintainer_branches')
    op.drop_table('maintainers')
    op.drop_table('branches')
    op.drop_table('users')
    op.drop_table('pgs')

    bind = op.get_bind()
    for enum in (salary_status, payment_method, user_role, maintainer_status):
        enum.drop(bind, checkfirst=True)
