import enum

class PaymentStatus(str, enum.Enum):
    """決済台帳の行種別"""
    paid = 'Paid'      # 決済確定
    cancel = 'Cancel'  # 決済取消（補償行）

class WebhookPaymentStatus(str, enum.Enum):
    """PortOne Webhookで通知される決済ステータス"""
    paid = 'Paid'
    cancelled = 'Cancelled'

class WebhookEventStatus(str, enum.Enum):
    """Webhook処理記録のステータス"""
    success = 'success'    # 全処理成功
    degraded = 'degraded'  # 台帳は確定、予約の登録/取消に失敗（要突き合わせ）
