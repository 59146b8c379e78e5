"""
WebhookEvent スキーマ
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventBase(BaseModel):
    """WebhookEvent 基底スキーマ"""
    event_id: str = Field(..., description="重複排除キー")
    event_type: str = Field(..., description="Webhookの決済ステータス")
    source: str = Field(default="portone", description="Webhook送信元")
    payment_entry_id: Optional[UUID] = Field(None, description="追記された台帳行のID")
    payload: Optional[dict] = Field(None, description="Webhookペイロード")
    status: str = Field(default="success", description="処理ステータス")
    error_message: Optional[str] = Field(None, description="エラーメッセージ")


class WebhookEventCreate(WebhookEventBase):
    """WebhookEvent 作成用スキーマ"""
    pass


class WebhookEventUpdate(BaseModel):
    """WebhookEvent 更新用スキーマ"""
    status: Optional[str] = None
    error_message: Optional[str] = None


class WebhookEvent(WebhookEventBase):
    """WebhookEvent レスポンス用スキーマ"""
    id: UUID
    processed_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
