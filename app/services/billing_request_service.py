"""
決済リクエストService層

フロントエンドからの購読申込・取消リクエストをPortOneに中継する。
台帳への記録はここでは行わず、PortOneからのWebhook（Paid / Cancelled）受信時に行う。
「PortOneが決済要求を受け付けた」ことと「決済が確定した」ことを分離し、
Webhookの遅延や同期レスポンスの消失による二重計上を避ける。
"""
import logging
from typing import Optional
from uuid import uuid4

from app.messages import ja
from app.schemas.billing_request import PurchaseIntent
from app.schemas.portone import PaymentAcceptance
from app.services.portone_client import PortOneClient

logger = logging.getLogger(__name__)


class BillingRequestService:
    """購読申込・取消のオーケストレーション"""

    def __init__(self, provider: PortOneClient):
        self.provider = provider

    async def request_charge(self, intent: PurchaseIntent) -> PaymentAcceptance:
        """
        ビリングキーで初回決済を要求

        Args:
            intent: 検証済みの購読申込

        Returns:
            PortOneの受付結果（採番した決済IDを含む）

        Raises:
            ProviderError: PortOne呼び出しの失敗
        """
        payment_id = str(uuid4())
        logger.info(
            f"Requesting billing-key charge: payment_id={payment_id}, "
            f"customer_id={intent.customer.id}, amount={intent.amount}"
        )
        acceptance = await self.provider.charge_billing_key(
            payment_id,
            billing_key=intent.billing_key,
            order_name=intent.order_name,
            amount=intent.amount,
            customer_id=intent.customer.id
        )
        logger.info(f"Charge accepted by PortOne: payment_id={payment_id}")
        return acceptance

    async def request_cancel(self, transaction_key: str, reason: Optional[str] = None) -> None:
        """
        決済の取消を要求

        台帳の補償行はCancelled Webhookの受信時に追記される。
        """
        logger.info(f"Requesting payment cancellation: payment_id={transaction_key}")
        await self.provider.cancel_payment(
            transaction_key,
            reason=reason or ja.PAYMENT_CANCEL_DEFAULT_REASON
        )
