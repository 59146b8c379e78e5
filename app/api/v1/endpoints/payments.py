"""
決済リクエスト API エンドポイント
"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app import crud
from app.api import deps
from app.core.exceptions import ProviderError
from app.messages import ja
from app.schemas.billing_request import BillingRequestResponse, CancelRequest, PurchaseIntent
from app.schemas.payment import PaymentEntry, PaymentHistoryResponse
from app.services import BillingRequestService

router = APIRouter()
logger = logging.getLogger(__name__)


def _provider_error_response(e: ProviderError, error: str) -> JSONResponse:
    # PortOneが返したステータスをそのまま返す（通信エラーは503）
    return JSONResponse(
        status_code=e.status_code,
        content=BillingRequestResponse(success=False, error=error).model_dump(exclude_none=True)
    )


@router.post("", response_model=BillingRequestResponse, response_model_exclude_none=True, response_model_by_alias=True)
async def request_payment(
    intent: PurchaseIntent,
    service: Annotated[BillingRequestService, Depends(deps.get_billing_request_service)]
):
    """
    購読申込API（ビリングキーによる初回決済）

    台帳への記録は行わない。決済確定はPaid Webhookで記録される。
    """
    try:
        acceptance = await service.request_charge(intent)
    except ProviderError as e:
        logger.error(f"PortOne charge failed: customer_id={intent.customer.id}, error={e}")
        return _provider_error_response(e, ja.PAYMENT_REQUEST_FAILED)

    return BillingRequestResponse(success=True, payment_id=acceptance.payment_id)


@router.post("/cancel", response_model=BillingRequestResponse, response_model_exclude_none=True)
async def request_payment_cancel(
    request: CancelRequest,
    service: Annotated[BillingRequestService, Depends(deps.get_billing_request_service)]
):
    """
    購読取消API

    PortOneに決済取消を要求する。台帳の取消行はCancelled Webhookで追記される。
    """
    try:
        await service.request_cancel(request.transaction_key, request.reason)
    except ProviderError as e:
        logger.error(f"PortOne cancel failed: payment_id={request.transaction_key}, error={e}")
        return _provider_error_response(e, ja.PAYMENT_CANCEL_REQUEST_FAILED)

    return BillingRequestResponse(success=True)


@router.get("/{transaction_key}/history", response_model=PaymentHistoryResponse)
async def get_payment_history(
    transaction_key: str,
    db: Annotated[AsyncSession, Depends(deps.get_db)]
) -> PaymentHistoryResponse:
    """決済IDごとの台帳履歴（古い順）"""
    entries = await crud.payment.get_history(db=db, transaction_key=transaction_key)
    return PaymentHistoryResponse(
        transaction_key=transaction_key,
        entries=[PaymentEntry.model_validate(entry) for entry in entries]
    )
