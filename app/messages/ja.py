"""
日本語エラーメッセージ定数

アプリケーション全体で使用される日本語のメッセージを一元管理します。
"""

# ==========================================
# 共通
# ==========================================
EXC_BAD_REQUEST = "不正なリクエストです"
EXC_NOT_FOUND = "見つかりません"
EXC_INTERNAL_ERROR = "サーバー内部エラーが発生しました"
EXC_UNKNOWN_ERROR = "不明なエラーが発生しました"
EXC_VALIDATION_FAILED = "必須項目が不足しているか、形式が正しくありません"

# ==========================================
# 設定関連
# ==========================================
CONFIG_PORTONE_SECRET_NOT_SET = "PortOneのシークレットキーが設定されていません"
CONFIG_INVALID_BILLING_SCHEDULE = "課金スケジュールの設定が正しくありません"

# ==========================================
# PortOne API関連
# ==========================================
PORTONE_UNAVAILABLE = "決済サービスに接続できませんでした"
PORTONE_REJECTED = "決済サービスがリクエストを拒否しました"
PORTONE_NOT_FOUND = "決済情報が見つかりません"
PORTONE_UNAUTHORIZED = "決済サービスの認証に失敗しました"
PORTONE_LOOKUP_FAILED = "決済情報の照会に失敗しました"
PORTONE_INVALID_RESPONSE = "決済サービスの応答を解析できませんでした"

# ==========================================
# 台帳関連
# ==========================================
LEDGER_STORE_FAILED = "決済台帳の保存に失敗しました"
LEDGER_STORE_UNAVAILABLE = "決済台帳に接続できませんでした"
LEDGER_NO_ACTIVE_SUBSCRIPTION = "有効な購読の決済情報が見つかりません"

# ==========================================
# Webhook関連 (portone.py)
# ==========================================
WEBHOOK_PROCESSED = "Webhook処理が完了しました"
WEBHOOK_CANCEL_PROCESSED = "取消処理が完了しました"
WEBHOOK_ALREADY_PROCESSED = "このイベントは既に処理済みです"
WEBHOOK_STATUS_IGNORED = "未対応のステータスのため処理をスキップしました"

# ==========================================
# 決済リクエスト関連 (payments.py)
# ==========================================
PAYMENT_REQUEST_FAILED = "決済リクエストに失敗しました"
PAYMENT_CANCEL_REQUEST_FAILED = "購読の取消リクエストに失敗しました"
PAYMENT_CANCEL_DEFAULT_REASON = "購読取消"
