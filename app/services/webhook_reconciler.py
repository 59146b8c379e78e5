"""
PortOne Webhook処理（購読ライフサイクルの状態遷移）

責務:
- Paid: 決済情報の照会 → 課金期間の計算 → 台帳へPaid行を追記 → 次回決済の予約登録
- Cancelled: 有効なPaid行の特定 → 台帳へCancel行を追記 → 次回決済予約の取消
- Webhookの重複配信・同時配信に対する冪等性の保証

台帳への追記（と重複排除レコード）のcommitが唯一のトランザクション境界。
commit前の失敗はWebhook全体を失敗として返し（PortOneの再送に任せる）、
commit後の予約登録・予約取消の失敗はログと処理記録に残して成功として返す。
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    NoActiveSubscription,
    ProviderError,
    ProviderLookupFailed,
    StoreError,
)
from app.crud.crud_payment import CRUDPayment
from app.crud.crud_webhook_event import CRUDWebhookEvent
from app.db.base import utcnow
from app.messages import ja
from app.models.enums import PaymentStatus, WebhookPaymentStatus
from app.models.payment import Payment
from app.schemas.payment import PaymentCreate, PaymentEntry
from app.schemas.portone import PortoneWebhookPayload
from app.services.portone_client import PortOneClient
from app.services.schedule_calculator import ScheduleCalculator

logger = logging.getLogger(__name__)

# 次回決済予約を検索する際の前後の幅
SCHEDULE_LOOKUP_MARGIN = timedelta(days=1)


@dataclass
class WebhookResult:
    """Webhook処理結果"""
    message: str
    payment: Optional[PaymentEntry] = None
    duplicate: bool = False
    degraded: bool = False


class WebhookReconciler:
    """
    PortOne Webhookの状態遷移を処理するサービス

    依存（PortOneクライアント・台帳・重複排除ストア・スケジュール計算・時計）は
    コンストラクタで受け取り、テストではフェイクに差し替える。
    """

    def __init__(
        self,
        *,
        provider: PortOneClient,
        ledger: CRUDPayment,
        events: CRUDWebhookEvent,
        calculator: ScheduleCalculator,
        clock: Callable[[], datetime] = utcnow
    ):
        self.provider = provider
        self.ledger = ledger
        self.events = events
        self.calculator = calculator
        self.clock = clock

    async def handle(self, db: AsyncSession, payload: PortoneWebhookPayload) -> WebhookResult:
        """
        Webhookを1件処理

        Raises:
            ProviderLookupFailed: Paid時の決済情報照会に失敗（何も書き込まない）
            NoActiveSubscription: 取消対象の有効なPaid行がない
            StoreError: 台帳の読み書きに失敗
        """
        event_id = payload.event_id

        if payload.status not in (WebhookPaymentStatus.paid.value, WebhookPaymentStatus.cancelled.value):
            # 前方互換: 未知のステータスは成功として応答し、状態は変更しない
            logger.info(f"[Webhook:{event_id}] Unhandled payment status: {payload.status}")
            return WebhookResult(message=ja.WEBHOOK_STATUS_IGNORED)

        # 冪等性チェック: 既に処理済みのイベントはスキップ
        duplicate = await self._find_processed(db, event_id)
        if duplicate is not None:
            return duplicate

        if payload.status == WebhookPaymentStatus.paid.value:
            return await self._handle_paid(db, payload)
        return await self._handle_cancelled(db, payload)

    async def _find_processed(self, db: AsyncSession, event_id: str) -> Optional[WebhookResult]:
        processed = await self.events.get_by_event_id(db=db, event_id=event_id)
        if processed is None:
            return None
        entry = None
        if processed.payment_entry_id:
            entry = await self.ledger.get(db=db, id=processed.payment_entry_id)

        logger.info(f"[Webhook:{event_id}] Event already processed - skipping")
        return WebhookResult(
            message=ja.WEBHOOK_ALREADY_PROCESSED,
            payment=PaymentEntry.model_validate(entry) if entry else None,
            duplicate=True
        )

    async def _commit_entry(
        self,
        db: AsyncSession,
        payload: PortoneWebhookPayload,
        entry_in: PaymentCreate
    ) -> Optional[PaymentEntry]:
        """
        台帳行と重複排除レコードを1つのトランザクションで確定

        Returns:
            追記した台帳行。同時に届いた重複イベントに先を越された場合はNone
        """
        event_id = payload.event_id
        try:
            entry = await self.ledger.append(db=db, obj_in=entry_in, auto_commit=False)
            await self.events.create_event_record(
                db=db,
                event_id=event_id,
                event_type=payload.status,
                payment_entry_id=entry.id,
                payload=payload.model_dump(),
                auto_commit=False
            )
            await self.ledger.commit(db, transaction_key=entry_in.transaction_key)
        except IntegrityError:
            await db.rollback()
            logger.info(f"[Webhook:{event_id}] Concurrent duplicate detected - skipping")
            return None
        except StoreError as e:
            await db.rollback()
            logger.error(f"[Webhook:{event_id}] Ledger write failed: {e}")
            raise

        logger.info(
            f"[Webhook:{event_id}] Ledger entry recorded: id={entry.id}, "
            f"status={entry.status.value}, amount={entry.amount}"
        )
        return PaymentEntry.model_validate(entry)

    async def _mark_degraded(self, db: AsyncSession, event_id: str, error_message: str) -> None:
        """副次処理の失敗を処理記録に残す（ここでの失敗はログのみ）"""
        try:
            await self.events.mark_degraded(db=db, event_id=event_id, error_message=error_message)
        except StoreError as e:
            await db.rollback()
            logger.error(f"[Webhook:{event_id}] Failed to mark event as degraded: {e}")

    async def _handle_paid(self, db: AsyncSession, payload: PortoneWebhookPayload) -> WebhookResult:
        event_id = payload.event_id
        payment_id = payload.payment_id

        # 1. 決済情報を照会
        try:
            payment_info = await self.provider.get_payment(payment_id)
        except ProviderError as e:
            logger.error(f"[Webhook:{event_id}] Payment lookup failed: {e}")
            raise ProviderLookupFailed(payment_id, e) from e

        # 2. 課金期間を計算（Webhook受信時刻が基準）
        period = self.calculator.calculate(self.clock())

        # 3. 次回決済IDを先に採番して台帳に記録
        next_schedule_id = uuid4()
        entry = await self._commit_entry(db, payload, PaymentCreate(
            transaction_key=payment_id,
            amount=payment_info.amount.total,
            status=PaymentStatus.paid,
            start_at=period.start_at,
            end_at=period.end_at,
            end_grace_at=period.end_grace_at,
            next_schedule_at=period.next_schedule_at,
            next_schedule_id=next_schedule_id,
        ))
        if entry is None:
            return WebhookResult(message=ja.WEBHOOK_ALREADY_PROCESSED, duplicate=True)

        # 4. 次回決済の予約（ビリングキー決済のみ）
        if not payment_info.billing_key:
            logger.info(f"[Webhook:{event_id}] No billing key - skipping next schedule")
            return WebhookResult(message=ja.WEBHOOK_PROCESSED, payment=entry)

        try:
            ack = await self.provider.create_schedule(
                str(next_schedule_id),
                billing_key=payment_info.billing_key,
                order_name=payment_info.order_name,
                customer_id=payment_info.customer.id,
                amount=payment_info.amount.total,
                time_to_pay=period.next_schedule_at
            )
        except (ProviderError, ValueError) as e:
            # 台帳は確定済みのため成功として返す（自動更新のみ無効になる）
            logger.error(
                f"[Webhook:{event_id}] Schedule registration failed: payment_id={payment_id}, "
                f"next_schedule_id={next_schedule_id}, error={e}"
            )
            await self._mark_degraded(db, event_id, f"create_schedule: {e}")
            return WebhookResult(message=ja.WEBHOOK_PROCESSED, payment=entry, degraded=True)

        logger.info(
            f"[Webhook:{event_id}] Next payment scheduled: schedule_id={ack.schedule_id}, "
            f"time_to_pay={period.next_schedule_at.isoformat()}"
        )
        return WebhookResult(message=ja.WEBHOOK_PROCESSED, payment=entry)

    async def _handle_cancelled(self, db: AsyncSession, payload: PortoneWebhookPayload) -> WebhookResult:
        event_id = payload.event_id
        payment_id = payload.payment_id

        # 1. 有効なPaid行を取得（既に取消済みの場合も対象外）
        active = await self.ledger.latest_paid(db=db, transaction_key=payment_id)
        if active is not None:
            latest = await self.ledger.latest_entry(db=db, transaction_key=payment_id)
            if latest is not None and latest.status == PaymentStatus.cancel:
                active = None
        if active is None:
            logger.warning(f"[Webhook:{event_id}] No active subscription for payment_id={payment_id}")
            raise NoActiveSubscription(payment_id)

        # 2. 取消行を追記（スケジュール項目は監査のためPaid行からそのまま複写）
        entry = await self._commit_entry(db, payload, PaymentCreate(
            transaction_key=active.transaction_key,
            amount=-active.amount,
            status=PaymentStatus.cancel,
            start_at=active.start_at,
            end_at=active.end_at,
            end_grace_at=active.end_grace_at,
            next_schedule_at=active.next_schedule_at,
            next_schedule_id=active.next_schedule_id,
        ))
        if entry is None:
            return WebhookResult(message=ja.WEBHOOK_ALREADY_PROCESSED, duplicate=True)

        # 3. 次回決済予約の取消
        if not active.next_schedule_id:
            logger.info(f"[Webhook:{event_id}] No next_schedule_id - skipping schedule revocation")
            return WebhookResult(message=ja.WEBHOOK_CANCEL_PROCESSED, payment=entry)

        try:
            await self._revoke_next_schedule(event_id, payment_id, active)
        except (ProviderError, ValueError) as e:
            # 台帳の取消は確定済みのため成功として返す
            logger.error(
                f"[Webhook:{event_id}] Schedule revocation failed: payment_id={payment_id}, "
                f"next_schedule_id={active.next_schedule_id}, error={e}"
            )
            await self._mark_degraded(db, event_id, f"revoke_schedule: {e}")
            return WebhookResult(message=ja.WEBHOOK_CANCEL_PROCESSED, payment=entry, degraded=True)

        return WebhookResult(message=ja.WEBHOOK_CANCEL_PROCESSED, payment=entry)

    async def _revoke_next_schedule(self, event_id: str, payment_id: str, active: Payment) -> int:
        """
        next_schedule_idに一致する決済予約を検索して削除

        Returns:
            削除した予約の件数（一致する予約がなければ0）
        """
        payment_info = await self.provider.get_payment(payment_id)
        if not payment_info.billing_key:
            logger.info(f"[Webhook:{event_id}] No billing key - skipping schedule revocation")
            return 0

        schedules = await self.provider.list_schedules(
            payment_info.billing_key,
            from_time=active.next_schedule_at - SCHEDULE_LOOKUP_MARGIN,
            until_time=active.next_schedule_at + SCHEDULE_LOOKUP_MARGIN
        )
        target_payment_id = str(active.next_schedule_id)
        matching = next((s for s in schedules if s.payment_id == target_payment_id), None)
        if matching is None:
            logger.info(f"[Webhook:{event_id}] No pending schedule matches next_schedule_id={target_payment_id}")
            return 0

        revoked = await self.provider.delete_schedules([matching.id])
        logger.info(f"[Webhook:{event_id}] Pending schedule revoked: schedule_id={matching.id}")
        return len(revoked)
