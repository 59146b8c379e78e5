"""
決済リクエストスキーマ（フロントエンドからの購読申込・取消）
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomerRef(BaseModel):
    id: str = Field(..., min_length=1)


class PurchaseIntent(BaseModel):
    """POST /payments"""
    model_config = ConfigDict(populate_by_name=True)

    billing_key: str = Field(..., alias="billingKey", min_length=1)
    order_name: str = Field(..., alias="orderName", min_length=1)
    amount: int = Field(..., gt=0)
    customer: CustomerRef


class CancelRequest(BaseModel):
    """POST /payments/cancel"""
    model_config = ConfigDict(populate_by_name=True)

    transaction_key: str = Field(..., alias="transactionKey", min_length=1)
    reason: Optional[str] = None


class BillingRequestResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    payment_id: Optional[str] = Field(None, serialization_alias="paymentId")
