"""
WebhookEvent CRUD のテスト（重複排除キーのUNIQUE制約と処理記録）
"""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.core.exceptions import StoreUnavailable
from app.crud.crud_webhook_event import CRUDWebhookEvent
from app.db.base import utcnow
from app.models.enums import WebhookEventStatus
from app.models.webhook_event import WebhookEvent

pytestmark = pytest.mark.asyncio


async def test_create_and_lookup_event(db_session: AsyncSession):
    assert await crud.webhook_event.get_by_event_id(db=db_session, event_id="portone:pay_1:Paid") is None

    record = await crud.webhook_event.create_event_record(
        db=db_session,
        event_id="portone:pay_1:Paid",
        event_type="Paid",
        payload={"payment_id": "pay_1", "status": "Paid"},
    )

    assert record.source == "portone"
    assert record.status == WebhookEventStatus.success.value
    assert record.processed_at is not None
    found = await crud.webhook_event.get_by_event_id(db=db_session, event_id="portone:pay_1:Paid")
    assert found.id == record.id


async def test_duplicate_event_id_violates_unique_constraint(db_session: AsyncSession):
    await crud.webhook_event.create_event_record(
        db=db_session, event_id="portone:pay_1:Paid", event_type="Paid"
    )

    with pytest.raises(IntegrityError):
        await crud.webhook_event.create_event_record(
            db=db_session, event_id="portone:pay_1:Paid", event_type="Paid", auto_commit=False
        )
    await db_session.rollback()

    # 同じ決済IDでもステータスが違えば別イベント
    await crud.webhook_event.create_event_record(
        db=db_session, event_id="portone:pay_1:Cancelled", event_type="Cancelled"
    )


async def test_mark_degraded_and_list(db_session: AsyncSession):
    await crud.webhook_event.create_event_record(
        db=db_session, event_id="portone:pay_1:Paid", event_type="Paid"
    )
    await crud.webhook_event.create_event_record(
        db=db_session, event_id="portone:pay_2:Paid", event_type="Paid"
    )

    updated = await crud.webhook_event.mark_degraded(
        db=db_session, event_id="portone:pay_2:Paid", error_message="create_schedule: timeout"
    )

    assert updated.status == WebhookEventStatus.degraded.value
    degraded = await crud.webhook_event.get_degraded_events(db=db_session)
    assert [e.event_id for e in degraded] == ["portone:pay_2:Paid"]
    assert degraded[0].error_message == "create_schedule: timeout"

    # since より前のイベントは対象外
    future = utcnow() + timedelta(hours=1)
    assert await crud.webhook_event.get_degraded_events(db=db_session, since=future) == []


async def test_mark_degraded_unknown_event_returns_none(db_session: AsyncSession):
    assert await crud.webhook_event.mark_degraded(
        db=db_session, event_id="portone:missing:Paid", error_message="x"
    ) is None


async def test_lookup_timeout_is_store_unavailable():
    async def slow_execute(*args, **kwargs):
        await asyncio.sleep(1)

    db = AsyncMock(spec=AsyncSession)
    db.execute.side_effect = slow_execute
    events = CRUDWebhookEvent(WebhookEvent, timeout=0.01)

    with pytest.raises(StoreUnavailable) as exc_info:
        await events.get_by_event_id(db=db, event_id="portone:pay_1:Paid")

    assert exc_info.value.operation == "dedup_lookup"
    assert exc_info.value.transaction_key == "portone:pay_1:Paid"


async def test_commit_connection_error_is_store_unavailable():
    db = AsyncMock(spec=AsyncSession)
    db.commit.side_effect = OperationalError("COMMIT", {}, Exception("connection lost"))

    with pytest.raises(StoreUnavailable) as exc_info:
        await crud.webhook_event.commit(db, transaction_key="pay_1")

    assert exc_info.value.operation == "commit"


async def test_commit_integrity_error_is_not_wrapped():
    """UNIQUE制約違反は重複判定のためそのまま送出する"""
    db = AsyncMock(spec=AsyncSession)
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        await crud.webhook_event.commit(db, transaction_key="pay_1")
