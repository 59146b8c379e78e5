"""create payment ledger and webhook_events tables

Revision ID: p1a2y3m4e5n6
Revises:
Create Date: 2026-10-19 10:00:00.000000

決済台帳（追記専用）とWebhook冪等性管理テーブル
- payment: Paid / Cancel 行を追記のみで記録
- webhook_events: portone:<payment_id>:<status> をUNIQUEキーとして重複処理を防止
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'p1a2y3m4e5n6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """paymentテーブルとwebhook_eventsテーブルを作成"""

    # 1. paymentstatus enum
    paymentstatus = postgresql.ENUM('Paid', 'Cancel', name='paymentstatus', create_type=False)
    paymentstatus.create(op.get_bind(), checkfirst=True)

    # 2. payment（決済台帳）
    op.create_table(
        'payment',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('transaction_key', sa.String(length=255), nullable=False, comment='PortOneの決済ID'),
        sa.Column('amount', sa.Integer(), nullable=False, comment='金額（取消行は負数）'),
        sa.Column('status', paymentstatus, nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_grace_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('next_schedule_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('next_schedule_id', postgresql.UUID(as_uuid=True), nullable=True, comment='次回決済予約のPortOne決済ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payment_transaction_key', 'payment', ['transaction_key'])
    op.create_index('idx_payment_transaction_key_created_at', 'payment', ['transaction_key', 'created_at'])

    # 3. webhook_events（冪等性管理）
    op.create_table(
        'webhook_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False, comment='重複排除キー (例: portone:pay_123:Paid)'),
        sa.Column('event_type', sa.String(length=100), nullable=False, comment='Webhookの決済ステータス (Paid, Cancelled)'),
        sa.Column('source', sa.String(length=50), nullable=False, server_default='portone', comment='Webhook送信元'),
        sa.Column('payment_entry_id', postgresql.UUID(as_uuid=True), nullable=True, comment='このイベントで追記された台帳行のID'),
        sa.Column('payload', sa.JSON(), nullable=True, comment='Webhookペイロード（デバッグ用）'),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='処理日時'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='success', comment='処理ステータス (success, degraded)'),
        sa.Column('error_message', sa.Text(), nullable=True, comment='副次処理（予約登録・予約取消）の失敗内容'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', name='uq_webhook_events_event_id'),
        sa.ForeignKeyConstraint(['payment_entry_id'], ['payment.id'], ondelete='SET NULL')
    )

    # インデックス作成
    op.create_index('ix_webhook_events_event_id', 'webhook_events', ['event_id'])
    op.create_index('ix_webhook_events_event_type', 'webhook_events', ['event_type'])
    op.create_index('ix_webhook_events_payment_entry_id', 'webhook_events', ['payment_entry_id'])
    op.create_index('ix_webhook_events_processed_at', 'webhook_events', ['processed_at'])
    op.create_index('ix_webhook_events_status', 'webhook_events', ['status'])


def downgrade() -> None:
    """webhook_events・paymentテーブルを削除"""
    op.drop_index('ix_webhook_events_status', table_name='webhook_events')
    op.drop_index('ix_webhook_events_processed_at', table_name='webhook_events')
    op.drop_index('ix_webhook_events_payment_entry_id', table_name='webhook_events')
    op.drop_index('ix_webhook_events_event_type', table_name='webhook_events')
    op.drop_index('ix_webhook_events_event_id', table_name='webhook_events')
    op.drop_table('webhook_events')

    op.drop_index('idx_payment_transaction_key_created_at', table_name='payment')
    op.drop_index('ix_payment_transaction_key', table_name='payment')
    op.drop_table('payment')

    op.execute("DROP TYPE IF EXISTS paymentstatus")
