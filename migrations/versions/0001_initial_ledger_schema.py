"""Initial ledger schema.

Creates revolving accounts with their postings and allocations, and fixed
expenses with their payments, derived expenses and receipt attachments.

Enumerations are stored as VARCHAR with CHECK constraints so that adding a
value is a new migration, never an ALTER TYPE on a live database.

Revision ID: 0001
Revises:
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PAYMENT_STATUSES = ('unpaid', 'partial', 'paid')
OBLIGATION_KINDS = ('credit_charge', 'fixed_expense')
TRANSACTION_TYPES = ('charge', 'payment', 'interest', 'reversal')
FREQUENCIES = ('weekly', 'biweekly', 'monthly', 'quarterly', 'semiannual', 'annual', 'one_time')
PAYMENT_METHODS = (
    'Cap Trabajos Septic', 'Capital Proyectos Septic', 'Chase Bank', 'AMEX',
    'Chase Credit Card', 'Check', 'Bank Transfer', 'Cash', 'Zelle',
    'Debit Card', 'PayPal', 'Other',
)


def checked(values, name):
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True, length=25)


def amount(name, nullable=False, **kwargs):
    return sa.Column(name, sa.Numeric(14, 4), nullable=nullable, **kwargs)


def created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        'credit_account',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        amount('current_balance', server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False),
        created_at(),
    )

    op.create_table(
        'obligation',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('kind', checked(OBLIGATION_KINDS, 'ck_obligation_kind'), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('vendor', sa.Text(), nullable=True),
        amount('total_amount'),
        amount('paid_amount', server_default='0'),
        sa.Column('status', checked(PAYMENT_STATUSES, 'ck_obligation_status'), nullable=False),
        sa.Column('payment_method', checked(PAYMENT_METHODS, 'ck_obligation_payment_method'), nullable=True),
        sa.Column('frequency', checked(FREQUENCIES, 'ck_obligation_frequency'), nullable=True),
        sa.Column(
            'account_id', sa.Integer(),
            sa.ForeignKey('credit_account.id', ondelete='RESTRICT'), nullable=True,
        ),
        sa.Column('charge_date', sa.Date(), nullable=True),
        sa.Column('paid_date', sa.Date(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        created_at(),
    )
    op.create_index('ix_obligation_account_id', 'obligation', ['account_id'])

    op.create_table(
        'ledger_transaction',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'account_id', sa.Integer(),
            sa.ForeignKey('credit_account.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column('transaction_type', checked(TRANSACTION_TYPES, 'ck_ledger_transaction_type'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        amount('amount'),
        amount('balance_after'),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column(
            'payment_method', checked(PAYMENT_METHODS, 'ck_ledger_transaction_payment_method'), nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column(
            'obligation_id', sa.Integer(),
            sa.ForeignKey('obligation.id', ondelete='RESTRICT'), nullable=True,
        ),
        sa.Column('reversed_by_id', sa.Integer(), sa.ForeignKey('ledger_transaction.id'), nullable=True),
        created_at(),
    )
    op.create_index('ix_ledger_transaction_account_id', 'ledger_transaction', ['account_id'])
    # Replay order
    op.create_index('ix_ledger_transaction_account_date', 'ledger_transaction', ['account_id', 'date', 'id'])

    op.create_table(
        'payment_allocation',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'payment_transaction_id', sa.Integer(),
            sa.ForeignKey('ledger_transaction.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column(
            'obligation_id', sa.Integer(),
            sa.ForeignKey('obligation.id', ondelete='RESTRICT'), nullable=False,
        ),
        amount('amount_applied'),
        sa.Column('status_before', checked(PAYMENT_STATUSES, 'ck_allocation_status_before'), nullable=False),
        sa.Column('status_after', checked(PAYMENT_STATUSES, 'ck_allocation_status_after'), nullable=False),
        created_at(),
    )
    op.create_index('ix_payment_allocation_payment_transaction_id', 'payment_allocation', ['payment_transaction_id'])
    op.create_index('ix_payment_allocation_obligation_id', 'payment_allocation', ['obligation_id'])

    op.create_table(
        'derived_expense',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'obligation_id', sa.Integer(),
            sa.ForeignKey('obligation.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column('date', sa.Date(), nullable=False),
        amount('amount'),
        sa.Column('expense_type', sa.Text(), nullable=False, server_default='Fixed Expense'),
        sa.Column(
            'payment_method', checked(PAYMENT_METHODS, 'ck_derived_expense_payment_method'), nullable=True,
        ),
        sa.Column('vendor', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        created_at(),
    )
    op.create_index('ix_derived_expense_obligation_id', 'derived_expense', ['obligation_id'])

    op.create_table(
        'attachment',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'derived_expense_id', sa.Integer(),
            sa.ForeignKey('derived_expense.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('storage_id', sa.Text(), nullable=False),
        sa.Column('mime_type', sa.Text(), nullable=True),
        sa.Column('original_name', sa.Text(), nullable=True),
        created_at(),
    )

    op.create_table(
        'payment_record',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'obligation_id', sa.Integer(),
            sa.ForeignKey('obligation.id', ondelete='RESTRICT'), nullable=False,
        ),
        amount('amount'),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column(
            'payment_method', checked(PAYMENT_METHODS, 'ck_payment_record_payment_method'), nullable=True,
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('period_start', sa.Date(), nullable=True),
        sa.Column('period_end', sa.Date(), nullable=True),
        sa.Column('period_due_date', sa.Date(), nullable=True),
        sa.Column(
            'derived_expense_id', sa.Integer(),
            sa.ForeignKey('derived_expense.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column(
            'attachment_id', sa.Integer(),
            sa.ForeignKey('attachment.id', ondelete='RESTRICT'), nullable=True,
        ),
        created_at(),
        sa.UniqueConstraint('obligation_id', 'period_start', 'period_end', name='uq_payment_record_period'),
    )
    op.create_index('ix_payment_record_obligation_id', 'payment_record', ['obligation_id'])


def downgrade() -> None:
    op.drop_index('ix_payment_record_obligation_id', table_name='payment_record')
    op.drop_table('payment_record')
    op.drop_table('attachment')
    op.drop_index('ix_derived_expense_obligation_id', table_name='derived_expense')
    op.drop_table('derived_expense')
    op.drop_index('ix_payment_allocation_obligation_id', table_name='payment_allocation')
    op.drop_index('ix_payment_allocation_payment_transaction_id', table_name='payment_allocation')
    op.drop_table('payment_allocation')
    op.drop_index('ix_ledger_transaction_account_date', table_name='ledger_transaction')
    op.drop_index('ix_ledger_transaction_account_id', table_name='ledger_transaction')
    op.drop_table('ledger_transaction')
    op.drop_index('ix_obligation_account_id', table_name='obligation')
    op.drop_table('obligation')
    op.drop_table('credit_account')
