"""Bank accounts and their transactions.

Fixed-expense payments made through a bank payment method withdraw from the
matching bank account; each withdrawal points at the derived expense of the
payment so a rollback can find and restore it.

Revision ID: 0002
Revises: 0001
Create Date: 2025-03-15

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


BANK_TRANSACTION_TYPES = ('deposit', 'withdrawal')


def upgrade() -> None:
    op.create_table(
        'bank_account',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('current_balance', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'bank_transaction',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'bank_account_id', sa.Integer(),
            sa.ForeignKey('bank_account.id', ondelete='RESTRICT'), nullable=False,
        ),
        sa.Column(
            'transaction_type',
            sa.Enum(
                *BANK_TRANSACTION_TYPES, name='ck_bank_transaction_type',
                native_enum=False, create_constraint=True, length=25,
            ),
            nullable=False,
        ),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(14, 4), nullable=False),
        sa.Column('balance_after', sa.Numeric(14, 4), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column(
            'derived_expense_id', sa.Integer(),
            sa.ForeignKey('derived_expense.id', ondelete='RESTRICT'), nullable=True,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_bank_transaction_bank_account_id', 'bank_transaction', ['bank_account_id'])
    op.create_index('ix_bank_transaction_derived_expense_id', 'bank_transaction', ['derived_expense_id'])


def downgrade() -> None:
    op.drop_index('ix_bank_transaction_derived_expense_id', table_name='bank_transaction')
    op.drop_index('ix_bank_transaction_bank_account_id', table_name='bank_transaction')
    op.drop_table('bank_transaction')
    op.drop_table('bank_account')
