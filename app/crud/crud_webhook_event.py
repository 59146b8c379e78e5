"""
WebhookEvent CRUD操作
"""
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.crud.base import CRUDBase
from app.models.enums import WebhookEventStatus
from app.models.webhook_event import WebhookEvent
from app.schemas.webhook_event import WebhookEventCreate, WebhookEventUpdate


class CRUDWebhookEvent(CRUDBase[WebhookEvent, WebhookEventCreate, WebhookEventUpdate]):
    """WebhookEvent CRUD操作クラス"""

    async def get_by_event_id(
        self,
        db: AsyncSession,
        event_id: str
    ) -> Optional[WebhookEvent]:
        """
        重複排除キーでWebhookEventを取得

        Args:
            db: データベースセッション
            event_id: 重複排除キー

        Returns:
            WebhookEvent または None
        """
        result = await self.guard(
            db.execute(select(self.model).where(self.model.event_id == event_id)),
            operation="dedup_lookup",
            transaction_key=event_id
        )
        return result.scalars().first()

    async def create_event_record(
        self,
        db: AsyncSession,
        *,
        event_id: str,
        event_type: str,
        source: str = "portone",
        payment_entry_id: Optional[UUID] = None,
        payload: Optional[dict] = None,
        status: str = WebhookEventStatus.success.value,
        error_message: Optional[str] = None,
        auto_commit: bool = True
    ) -> WebhookEvent:
        """
        Webhookイベント処理記録を作成

        Args:
            db: データベースセッション
            event_id: 重複排除キー
            event_type: Webhookの決済ステータス
            source: Webhook送信元（デフォルト: portone）
            payment_entry_id: 追記された台帳行のID
            payload: Webhookペイロード
            status: 処理ステータス（success, degraded）
            error_message: エラーメッセージ
            auto_commit: 自動コミット（デフォルト: True）

        Note:
            - auto_commit=Falseの場合、トランザクション管理は呼び出し側で行う
            - event_idが重複する場合はcommit/flush時にIntegrityErrorとなる

        Raises:
            StoreUnavailable: タイムアウト・接続不可
        """
        webhook_event_data = WebhookEventCreate(
            event_id=event_id,
            event_type=event_type,
            source=source,
            payment_entry_id=payment_entry_id,
            payload=payload,
            status=status,
            error_message=error_message
        )
        return await self.guard(
            self.create(db=db, obj_in=webhook_event_data, auto_commit=auto_commit),
            operation="record_event",
            transaction_key=event_id
        )

    async def mark_degraded(
        self,
        db: AsyncSession,
        *,
        event_id: str,
        error_message: str
    ) -> Optional[WebhookEvent]:
        """
        副次処理の失敗を記録（オフラインでの突き合わせ用）

        台帳は確定済みのため、ここでの失敗は呼び出し側でログのみとする。
        """
        webhook_event = await self.get_by_event_id(db=db, event_id=event_id)
        if not webhook_event:
            return None
        return await self.guard(
            self.update(
                db=db,
                db_obj=webhook_event,
                obj_in=WebhookEventUpdate(
                    status=WebhookEventStatus.degraded.value,
                    error_message=error_message
                )
            ),
            operation="mark_degraded",
            transaction_key=event_id
        )

    async def get_degraded_events(
        self,
        db: AsyncSession,
        *,
        since: Optional[datetime] = None,
        limit: int = 100
    ) -> List[WebhookEvent]:
        """
        副次処理に失敗したWebhookイベントを取得

        Args:
            db: データベースセッション
            since: この日時以降のイベントのみ取得
            limit: 取得件数上限

        Returns:
            WebhookEventリスト（新しい順）
        """
        query = select(self.model).where(self.model.status == WebhookEventStatus.degraded.value)

        if since:
            query = query.where(self.model.processed_at >= since)

        query = query.order_by(self.model.processed_at.desc()).limit(limit)

        result = await self.guard(db.execute(query), operation="get_degraded_events")
        return list(result.scalars().all())


# インスタンス化
webhook_event = CRUDWebhookEvent(WebhookEvent)
