"""
Paymentモデル: 決済台帳（追記専用）
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Integer, Index, Enum, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, UTCDateTime, utcnow
from app.models.enums import PaymentStatus


class Payment(Base):
    """
    決済台帳の1行

    決済確定（Paid）と取消（Cancel）を追記のみで記録する。
    同じtransaction_keyに複数行が存在し、created_atの新しい順で最新状態を判断する。
    """
    __tablename__ = "payment"

    # 主キー
    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    # PortOneの決済ID（取消行も同じ値を参照するためUNIQUEではない）
    transaction_key: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # 金額（取消行は負数）
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name='paymentstatus', values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )

    # 課金期間
    start_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_grace_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # 次回自動決済
    next_schedule_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    next_schedule_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    # タイムスタンプ（同一transaction_key内の順序付けに使用するためマイクロ秒精度でアプリ側から付与）
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index('idx_payment_transaction_key_created_at', 'transaction_key', 'created_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, transaction_key={self.transaction_key}, "
            f"status={self.status}, amount={self.amount})>"
        )
