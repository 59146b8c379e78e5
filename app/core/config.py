import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import SecretStr, model_validator

ENV_FILE = os.getenv("ENV_FILE", ".env")

class Settings(BaseSettings):
    """
    アプリケーションの設定を管理するクラス。
    .envファイルから環境変数を読み込みます。
    """
    # .envファイルを読み込むための設定
    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding='utf-8', extra='ignore'
    )

    # --- データベースURL ---
    # Alembicやアプリケーション本体が使用する本番/開発用DBのURL
    DATABASE_URL: str
    # 台帳への1回のDB操作のタイムアウト（秒）
    STORE_TIMEOUT_SECONDS: float = 10.0

    # --- API設定 ---
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # --- フロントエンド設定 ---
    FRONTEND_URL: Optional[str] = None

    # --- PortOne設定 ---
    # 未設定の場合はリクエスト時にConfigurationErrorとなる
    PORTONE_API_SECRET: Optional[SecretStr] = None
    PORTONE_API_BASE: str = "https://api.portone.io"
    PORTONE_CURRENCY: str = "KRW"
    PORTONE_TIMEOUT_SECONDS: float = 10.0
    # 参照系API（決済照会・予約一覧）のリトライ回数（初回を含む）
    PORTONE_RETRY_ATTEMPTS: int = 3

    # --- 課金スケジュール設定 ---
    # 課金タイムゾーン（UTCからの固定オフセット、DSTなし）
    BILLING_TZ_OFFSET_HOURS: int = 9
    BILLING_PERIOD_DAYS: int = 30
    BILLING_GRACE_OFFSET_DAYS: int = 1
    # 次回自動決済の時間帯（課金タイムゾーンの時刻、終了時刻は含まない）
    BILLING_SCHEDULE_WINDOW_START_HOUR: int = 10
    BILLING_SCHEDULE_WINDOW_END_HOUR: int = 11

    @model_validator(mode="after")
    def check_billing_schedule(self) -> "Settings":
        """課金スケジュール設定の整合性を起動時に検証"""
        from app.services.schedule_calculator import SchedulePolicy

        SchedulePolicy.from_settings(self)
        return self

    def get_portone_secret(self) -> Optional[str]:
        """PORTONE_API_SECRETを平文で取得（未設定ならNone）"""
        if self.PORTONE_API_SECRET is None:
            return None
        secret = self.PORTONE_API_SECRET.get_secret_value()
        return secret or None


# 設定クラスのインスタンスを作成し、他のモジュールからインポートして使用できるようにします。
settings = Settings()
