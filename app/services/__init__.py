"""
Services層

ビジネスロジックとトランザクション管理を担当する層。

命名規則:
- ファイル名: snake_case (例: webhook_reconciler.py)
- クラス名: PascalCase (例: WebhookReconciler)
- インポート: クラスをインポート（インスタンスではなく）
"""

from .schedule_calculator import ScheduleCalculator, SchedulePolicy
from .portone_client import PortOneClient
from .webhook_reconciler import WebhookReconciler
from .billing_request_service import BillingRequestService

__all__ = [
    "ScheduleCalculator",
    "SchedulePolicy",
    "PortOneClient",
    "WebhookReconciler",
    "BillingRequestService",
]
