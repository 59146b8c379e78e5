"""
PortOneスキーマ: Webhook受信とPortOne APIのレスポンス
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.payment import PaymentEntry


# --- Webhook ---

class PortoneWebhookPayload(BaseModel):
    """PortOneから届くWebhookボディ"""
    payment_id: str = Field(..., min_length=1)
    # 未知のステータスも受け付ける（前方互換のため成功として応答）
    status: str = Field(..., min_length=1)

    @field_validator("payment_id", "status")
    @classmethod
    def strip_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @property
    def event_id(self) -> str:
        """重複排除キー"""
        return f"portone:{self.payment_id}:{self.status}"


class WebhookResponse(BaseModel):
    """Webhook応答"""
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    payment: Optional[PaymentEntry] = None


# --- PortOne API レスポンス ---

class _PortoneModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PaymentAmount(_PortoneModel):
    total: int


class PaymentCustomer(_PortoneModel):
    id: Optional[str] = None


class PaymentInfo(_PortoneModel):
    """GET /payments/{paymentId}"""
    id: str
    status: Optional[str] = None
    order_name: Optional[str] = Field(None, alias="orderName")
    amount: PaymentAmount
    billing_key: Optional[str] = Field(None, alias="billingKey")
    customer: PaymentCustomer = Field(default_factory=PaymentCustomer)
    currency: Optional[str] = None


class PaymentAcceptance(_PortoneModel):
    """POST /payments/{paymentId}/billing-key"""
    payment_id: str
    pg_tx_id: Optional[str] = Field(None, alias="pgTxId")
    paid_at: Optional[datetime] = Field(None, alias="paidAt")


class ScheduleAck(_PortoneModel):
    """POST /payments/{paymentId}/schedule"""
    schedule_id: str = Field(..., alias="id")


class PendingSchedule(_PortoneModel):
    """GET /payment-schedules の1件"""
    id: str
    payment_id: Optional[str] = Field(None, alias="paymentId")
    status: Optional[str] = None
    time_to_pay: Optional[datetime] = Field(None, alias="timeToPay")
