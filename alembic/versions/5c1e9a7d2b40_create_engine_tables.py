"""create engine tables

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-17 09:12:44.108362

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1e9a7d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

txn_type = sa.Enum('income', 'expense', name='txntype')
frequency = sa.Enum('daily', 'weekly', 'biweekly', 'monthly', 'quarterly', 'yearly', name='frequency')
bill_frequency = sa.Enum('once', 'monthly', 'quarterly', 'yearly', name='billfrequency')
notification_status = sa.Enum('pending', 'sent', name='notificationstatus')


def upgrade() -> None:
    """Upgrade schema: users, transactions, bills, recurring definitions, state and outbox."""
    op.create_table(
        'user',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('currency_code', sa.String(), nullable=False),
        sa.Column('monthly_budget', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'transaction',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('note', sa.String(), nullable=True),
        sa.Column('recurring_id', sa.String(), nullable=True),
        sa.Column('instance_index', sa.Integer(), nullable=True),
    )
    op.create_index('ix_transaction_user_id', 'transaction', ['user_id'])
    op.create_index('ix_transaction_category', 'transaction', ['category'])
    op.create_index('ix_transaction_type', 'transaction', ['type'])
    op.create_index('ix_transaction_date', 'transaction', ['date'])
    op.create_index('ix_transaction_recurring_id', 'transaction', ['recurring_id'])

    op.create_table(
        'bill',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('frequency', bill_frequency, nullable=False),
        sa.Column('category', sa.String(), nullable=False),
    )
    op.create_index('ix_bill_user_id', 'bill', ['user_id'])

    op.create_table(
        'recurring_definition',
        sa.Column('id', sa.String(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('base_transaction', sa.JSON(), nullable=True),
        sa.Column('frequency', frequency, nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('occurrences', sa.Integer(), nullable=True),
        sa.Column('created_instances', sa.Integer(), nullable=False),
        sa.Column('last_created_date', sa.DateTime(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_recurring_definition_user_id', 'recurring_definition', ['user_id'])
    op.create_index('ix_recurring_definition_frequency', 'recurring_definition', ['frequency'])
    op.create_index('ix_recurring_definition_active', 'recurring_definition', ['active'])

    op.create_table(
        'state_entry',
        sa.Column('key', sa.String(), primary_key=True, nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'scheduled_notification',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('deliver_at', sa.DateTime(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', notification_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scheduled_notification_user_id', 'scheduled_notification', ['user_id'])
    op.create_index('ix_scheduled_notification_deliver_at', 'scheduled_notification', ['deliver_at'])
    op.create_index('ix_scheduled_notification_status', 'scheduled_notification', ['status'])


def downgrade() -> None:
    """Downgrade schema: drop every engine table."""
    op.drop_table('scheduled_notification')
    op.drop_table('state_entry')
    op.drop_table('recurring_definition')
    op.drop_table('bill')
    op.drop_table('transaction')
    op.drop_table('user')
    for enum in (notification_status, bill_frequency, frequency, txn_type):
        enum.drop(op.get_bind(), checkfirst=True)
