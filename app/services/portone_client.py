"""
PortOne V2 APIクライアント

決済照会・ビリングキー決済・決済予約（登録/一覧/削除）・決済取消を呼び出す。
HTTPエラーは以下に分類する:
- 404 → ProviderNotFound
- 401/403 → ProviderUnauthorized
- その他の非2xx → ProviderRejected
- 5xx・通信エラー・タイムアウト → ProviderUnavailable
- 2xxでも本文を解析できない → ProviderInvalidResponse

参照系（決済照会・予約一覧）はProviderUnavailableのときのみリトライする。

参考: https://developers.portone.io/api/rest-v2
"""
import logging
from datetime import datetime
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from app.core.exceptions import (
    ProviderInvalidResponse,
    ProviderNotFound,
    ProviderRejected,
    ProviderUnauthorized,
    ProviderUnavailable,
)
from app.schemas.portone import (
    PaymentAcceptance,
    PaymentInfo,
    PendingSchedule,
    ScheduleAck,
)

logger = logging.getLogger(__name__)


def _isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class PortOneClient:
    """
    PortOne REST APIのラッパー

    Args:
        api_secret: PortOne APIシークレット
        base_url: APIのベースURL
        currency: 決済通貨
        timeout: 1回のAPI呼び出しのタイムアウト（秒）
        retry_attempts: 参照系APIの最大試行回数（初回を含む）
        transport: テスト用のhttpxトランスポート
    """

    def __init__(
        self,
        api_secret: str,
        *,
        base_url: str = "https://api.portone.io",
        currency: str = "KRW",
        timeout: float = 10.0,
        retry_attempts: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.currency = currency
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"PortOne {api_secret}",
        }
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        payment_id: Optional[str] = None,
        json: Optional[dict] = None
    ) -> dict[str, Any]:
        """1回のAPI呼び出し。非2xxと通信エラーをProviderError系に変換"""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self.timeout,
                transport=self._transport
            ) as client:
                # GET/DELETEでもJSONボディを送る必要があるためrequest()を使用
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning(f"PortOne {operation} timeout: payment_id={payment_id}")
            raise ProviderUnavailable(
                f"PortOne {operation} timed out (payment_id={payment_id})",
                operation=operation,
                payment_id=payment_id
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"PortOne {operation} network error: payment_id={payment_id}, error={e}")
            raise ProviderUnavailable(
                f"PortOne {operation} network error (payment_id={payment_id}): {e}",
                operation=operation,
                payment_id=payment_id
            ) from e

        if response.is_success:
            if not response.content:
                return {}
            try:
                body = response.json()
            except ValueError as e:
                logger.error(
                    f"PortOne {operation} returned a non-JSON body: payment_id={payment_id}, "
                    f"status={response.status_code}, body={response.text[:200]}"
                )
                raise ProviderInvalidResponse(
                    operation=operation,
                    payment_id=payment_id,
                    provider_status=response.status_code
                ) from e
            if not isinstance(body, dict):
                logger.error(f"PortOne {operation} returned a non-object body: payment_id={payment_id}")
                raise ProviderInvalidResponse(
                    operation=operation,
                    payment_id=payment_id,
                    provider_status=response.status_code
                )
            return body

        logger.error(
            f"PortOne {operation} failed: payment_id={payment_id}, "
            f"status={response.status_code}, body={response.text}"
        )
        error_kwargs = dict(
            operation=operation,
            payment_id=payment_id,
            provider_status=response.status_code
        )
        if response.status_code == 404:
            raise ProviderNotFound(**error_kwargs)
        if response.status_code in (401, 403):
            raise ProviderUnauthorized(**error_kwargs)
        if response.status_code >= 500:
            # PortOne側の障害は通信エラーと同様に扱う
            raise ProviderUnavailable(**error_kwargs)
        raise ProviderRejected(**error_kwargs)

    async def _request_with_retry(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        """参照系API用: ProviderUnavailableのみリトライ"""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(ProviderUnavailable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        ):
            with attempt:
                return await self._request(method, path, **kwargs)

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, *, operation: str, payment_id: Optional[str] = None):
        """レスポンスをスキーマに変換。形式不正はProviderInvalidResponseにする"""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(
                f"PortOne {operation} response did not match {model.__name__}: "
                f"payment_id={payment_id}, error={e}"
            )
            raise ProviderInvalidResponse(operation=operation, payment_id=payment_id) from e

    async def get_payment(self, payment_id: str) -> PaymentInfo:
        """決済情報を取得"""
        data = await self._request_with_retry(
            "GET",
            f"/payments/{payment_id}",
            operation="get_payment",
            payment_id=payment_id
        )
        return self._parse(PaymentInfo, data, operation="get_payment", payment_id=payment_id)

    async def charge_billing_key(
        self,
        payment_id: str,
        *,
        billing_key: str,
        order_name: str,
        amount: int,
        customer_id: str
    ) -> PaymentAcceptance:
        """
        ビリングキーで即時決済を要求

        台帳への記録は行わない（Paid Webhookの受信時に記録する）。
        """
        data = await self._request(
            "POST",
            f"/payments/{payment_id}/billing-key",
            operation="charge_billing_key",
            payment_id=payment_id,
            json={
                "billingKey": billing_key,
                "orderName": order_name,
                "amount": {"total": amount},
                "customer": {"id": customer_id},
                "currency": self.currency,
            }
        )
        return self._parse(
            PaymentAcceptance,
            {"payment_id": payment_id, **(data.get("payment") or {})},
            operation="charge_billing_key",
            payment_id=payment_id
        )

    async def create_schedule(
        self,
        schedule_id: str,
        *,
        billing_key: str,
        order_name: str,
        customer_id: Optional[str],
        amount: int,
        time_to_pay: datetime
    ) -> ScheduleAck:
        """schedule_idを次回決済IDとして決済予約を登録"""
        data = await self._request(
            "POST",
            f"/payments/{schedule_id}/schedule",
            operation="create_schedule",
            payment_id=schedule_id,
            json={
                "payment": {
                    "billingKey": billing_key,
                    "orderName": order_name,
                    "customer": {"id": customer_id},
                    "amount": {"total": amount},
                    "currency": self.currency,
                },
                "timeToPay": _isoformat(time_to_pay),
            }
        )
        return self._parse(
            ScheduleAck,
            data.get("schedule", {"id": schedule_id}),
            operation="create_schedule",
            payment_id=schedule_id
        )

    async def list_schedules(
        self,
        billing_key: str,
        *,
        from_time: datetime,
        until_time: datetime
    ) -> List[PendingSchedule]:
        """ビリングキーと期間で決済予約を検索"""
        data = await self._request_with_retry(
            "GET",
            "/payment-schedules",
            operation="list_schedules",
            json={
                "filter": {
                    "billingKey": billing_key,
                    "from": _isoformat(from_time),
                    "until": _isoformat(until_time),
                }
            }
        )
        return [
            self._parse(PendingSchedule, item, operation="list_schedules")
            for item in data.get("items") or []
        ]

    async def delete_schedules(self, schedule_ids: List[str]) -> List[str]:
        """決済予約を一括削除。削除されたIDのリストを返す"""
        data = await self._request(
            "DELETE",
            "/payment-schedules",
            operation="delete_schedules",
            json={"scheduleIds": schedule_ids}
        )
        return data.get("revokedScheduleIds", schedule_ids)

    async def cancel_payment(self, payment_id: str, *, reason: str) -> None:
        """決済の取消を要求（結果はCancelled Webhookで通知される）"""
        await self._request(
            "POST",
            f"/payments/{payment_id}/cancel",
            operation="cancel_payment",
            payment_id=payment_id,
            json={"reason": reason}
        )
