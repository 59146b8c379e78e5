"""
Paymentスキーマ: 決済台帳の行
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.enums import PaymentStatus


# 共通プロパティ
class PaymentBase(BaseModel):
    """台帳行の基本スキーマ"""
    transaction_key: str
    amount: int
    status: PaymentStatus
    start_at: datetime
    end_at: datetime
    end_grace_at: datetime
    next_schedule_at: datetime
    next_schedule_id: Optional[UUID] = None


# 作成時のスキーマ
class PaymentCreate(PaymentBase):
    """台帳行の追記用スキーマ"""
    pass


# レスポンス用スキーマ
class PaymentEntry(PaymentBase):
    """DBから取得した台帳行"""
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentHistoryResponse(BaseModel):
    """決済IDごとの台帳履歴"""
    transaction_key: str
    entries: list[PaymentEntry]
