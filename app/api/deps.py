import logging
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.core.config import settings
from app.core.exceptions import ConfigurationError
from app.db.session import AsyncSessionLocal
from app.services import (
    BillingRequestService,
    PortOneClient,
    ScheduleCalculator,
    SchedulePolicy,
    WebhookReconciler,
)

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    各APIリクエストに対して、独立したDBセッションを提供する依存性注入関数。
    セッションはリクエスト処理の完了後に自動的にクローズされます。
    """
    async with AsyncSessionLocal() as session:
        yield session


def get_portone_client() -> PortOneClient:
    """
    PortOneクライアントを提供する依存性注入関数。
    シークレットキーが未設定の場合はConfigurationError（500）となる。
    """
    secret = settings.get_portone_secret()
    if not secret:
        logger.error("PORTONE_API_SECRET is not configured")
        raise ConfigurationError("PORTONE_API_SECRET is not configured")
    return PortOneClient(
        secret,
        base_url=settings.PORTONE_API_BASE,
        currency=settings.PORTONE_CURRENCY,
        timeout=settings.PORTONE_TIMEOUT_SECONDS,
        retry_attempts=settings.PORTONE_RETRY_ATTEMPTS,
    )


def get_schedule_calculator() -> ScheduleCalculator:
    """リクエストごとに乱数状態を持つ計算器を生成（並行リクエスト間で共有しない）"""
    return ScheduleCalculator(SchedulePolicy.from_settings(settings))


def get_webhook_reconciler(
    provider: PortOneClient = Depends(get_portone_client),
    calculator: ScheduleCalculator = Depends(get_schedule_calculator),
) -> WebhookReconciler:
    return WebhookReconciler(
        provider=provider,
        ledger=crud.payment,
        events=crud.webhook_event,
        calculator=calculator,
    )


def get_billing_request_service(
    provider: PortOneClient = Depends(get_portone_client),
) -> BillingRequestService:
    return BillingRequestService(provider)
