"""
PortOne Webhook エンドポイント
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import AppError
from app.messages import ja
from app.schemas.portone import PortoneWebhookPayload, WebhookResponse
from app.services import WebhookReconciler

router = APIRouter()
logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=WebhookResponse(success=False, error=error).model_dump(exclude_none=True)
    )


@router.post("/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
async def portone_webhook(
    payload: PortoneWebhookPayload,
    db: Annotated[AsyncSession, Depends(deps.get_db)],
    reconciler: Annotated[WebhookReconciler, Depends(deps.get_webhook_reconciler)]
):
    """
    PortOne Webhook受信API

    処理対象ステータス:
    - Paid: 台帳にPaid行を追記し、次回決済を予約
    - Cancelled: 台帳にCancel行を追記し、次回決済の予約を取消
    - その他: 成功として応答（状態変更なし）

    応答:
    - 200: 処理済み（重複・未知のステータスを含む）
    - 400: payment_id / status の欠落・不正
    - 404: 取消対象の有効な決済がない
    - 5xx: 台帳の確定前に失敗（PortOneの再送対象）
    """
    event_id = payload.event_id
    logger.info(f"[Webhook:{event_id}] PortOne webhook received: payment_id={payload.payment_id}, status={payload.status}")

    try:
        result = await reconciler.handle(db, payload)
    except AppError as e:
        logger.error(f"[Webhook:{event_id}] Webhook処理エラー: {e}")
        return _error_response(e.status_code, e.detail)
    except Exception as e:
        logger.exception(f"[Webhook:{event_id}] Webhook処理で予期しないエラー: {e}")
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ja.EXC_UNKNOWN_ERROR)

    return WebhookResponse(success=True, message=result.message, payment=result.payment)
