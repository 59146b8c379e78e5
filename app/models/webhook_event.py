"""
WebhookEventモデル: PortOne Webhookイベントの冪等性管理
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String, Text, JSON, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, UTCDateTime, utcnow


class WebhookEvent(Base):
    """
    Webhook冪等性管理テーブル

    PortOneから送信されるWebhookの重複処理を防止するために使用。
    PortOneのWebhookにはイベントIDがないため、決済IDとステータスから
    event_id（portone:<payment_id>:<status>）を組み立てて一意キーとする。

    使用方法:
    1. Webhook受信時にevent_idの存在確認
    2. 既に存在する場合は200 OKを返して処理スキップ
    3. 新規イベントの場合は台帳行と同じトランザクションで記録
       （同時に届いた重複はUNIQUE制約違反としてロールバックされる）
    """
    __tablename__ = "webhook_events"

    # 主キー
    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    # イベント情報
    event_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="重複排除キー (例: portone:pay_123:Paid)"
    )
    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Webhookの決済ステータス (Paid, Cancelled)"
    )
    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="portone",
        server_default="portone",
        comment="Webhook送信元"
    )

    # 関連リソース
    payment_entry_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("payment.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="このイベントで追記された台帳行のID"
    )

    # ペイロード（デバッグ用）
    payload: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Webhookペイロード（デバッグ用）"
    )

    # 処理情報
    processed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
        comment="処理日時"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="success",
        server_default="success",
        index=True,
        comment="処理ステータス (success, degraded)"
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="副次処理（予約登録・予約取消）の失敗内容"
    )

    # タイムスタンプ
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False
    )

    # リレーションシップ
    payment_entry: Mapped[Optional["Payment"]] = relationship(
        "Payment",
        foreign_keys=[payment_entry_id],
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent(id={self.id}, event_id={self.event_id}, event_type={self.event_type}, status={self.status})>"
