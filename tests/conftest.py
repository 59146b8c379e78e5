# tests/conftest.py (pytest-asyncio構成)
import os
import random
from datetime import datetime, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock
import logging

# app.core.config の読み込み前にテスト用の設定を入れる
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PORTONE_API_SECRET", "test_portone_secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# ロガーの設定 - テスト実行時のログ出力を抑制
logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.WARNING)  # WARNING以上のみ表示

# SQLAlchemyのエンジンログを無効化
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

from app import crud
from app.main import app
from app.api.deps import (
    get_db,
    get_billing_request_service,
    get_webhook_reconciler,
)
from app.db.base import Base
from app.models import Payment, WebhookEvent  # noqa: F401
from app.schemas.portone import PaymentAcceptance, PaymentInfo, ScheduleAck
from app.services import (
    BillingRequestService,
    PortOneClient,
    ScheduleCalculator,
    WebhookReconciler,
)

# Webhook受信時刻（テストでは固定）
FIXED_NOW = datetime(2024, 1, 15, 3, 0, 0, tzinfo=timezone.utc)


# --- データベース ---

@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    テストごとに独立したDBエンジン

    TEST_DATABASE_URL 未設定時はインメモリSQLite（接続を1本に固定）を使用する。
    """
    database_url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if database_url.startswith("sqlite"):
        test_engine = create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_async_engine(database_url)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """アプリと同じ設定（expire_on_commit=False）のセッション"""
    session_factory = async_sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


# --- PortOne フェイク ---

def make_payment_info(
    payment_id: str = "pay_1",
    *,
    amount: int = 9900,
    billing_key: str = "bk_1",
    order_name: str = "月額プラン",
    customer_id: str = "cust_1",
) -> PaymentInfo:
    data = {
        "id": payment_id,
        "status": "PAID",
        "orderName": order_name,
        "amount": {"total": amount},
        "customer": {"id": customer_id},
        "currency": "KRW",
    }
    if billing_key:
        data["billingKey"] = billing_key
    return PaymentInfo.model_validate(data)


@pytest.fixture
def fake_provider() -> AsyncMock:
    """PortOneClientのフェイク（既定: pay_1 / 9900 / bk_1）"""
    provider = AsyncMock(spec=PortOneClient)
    provider.get_payment.return_value = make_payment_info()
    provider.create_schedule.side_effect = lambda schedule_id, **kwargs: ScheduleAck(id=schedule_id)
    provider.list_schedules.return_value = []
    provider.delete_schedules.side_effect = lambda schedule_ids: list(schedule_ids)
    provider.charge_billing_key.side_effect = (
        lambda payment_id, **kwargs: PaymentAcceptance(payment_id=payment_id, pg_tx_id="pg_1")
    )
    provider.cancel_payment.return_value = None
    return provider


@pytest.fixture
def calculator() -> ScheduleCalculator:
    return ScheduleCalculator(rng=random.Random(42))


@pytest.fixture
def reconciler(fake_provider: AsyncMock, calculator: ScheduleCalculator) -> WebhookReconciler:
    return WebhookReconciler(
        provider=fake_provider,
        ledger=crud.payment,
        events=crud.webhook_event,
        calculator=calculator,
        clock=lambda: FIXED_NOW,
    )


# --- APIクライアント ---

@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    reconciler: WebhookReconciler,
    fake_provider: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_webhook_reconciler] = lambda: reconciler
    app.dependency_overrides[get_billing_request_service] = lambda: BillingRequestService(fake_provider)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        try:
            yield client
        finally:
            app.dependency_overrides.clear()
