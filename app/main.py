from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn
import logging
import sys
import html

from app.core.config import settings # settingsをインポート
from app.core.exceptions import AppError
from app.api.v1.api import api_router
from app.messages import ja

# ログ設定（標準出力に出力）
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)
logger.info("Application starting...")

app = FastAPI(title="Subscription Ledger API")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    バリデーションエラーのカスタムハンドラー
    XSS攻撃対策として、エラーレスポンスから危険な文字をサニタイズする
    Webhook・決済APIの共通形式 {success: false, error: ...} で400を返す
    """
    def sanitize_value(value):
        """危険な文字をHTMLエスケープ"""
        if isinstance(value, str):
            return html.escape(value)
        elif isinstance(value, dict):
            return {k: sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [sanitize_value(v) for v in value]
        elif isinstance(value, Exception):
            # Exception オブジェクトは文字列に変換
            return str(value)
        return value

    # エラー詳細をサニタイズ
    errors = []
    for error in exc.errors():
        sanitized_error = {}
        for key, value in error.items():
            if key in ("input", "msg"):
                sanitized_error[key] = sanitize_value(value)
            elif key == "ctx" and isinstance(value, dict):
                # ctx 内の error オブジェクトを文字列化
                sanitized_error[key] = {
                    ctx_key: sanitize_value(ctx_value) for ctx_key, ctx_value in value.items()
                }
            else:
                sanitized_error[key] = value
        errors.append(sanitized_error)

    logger.info(f"Request validation failed: path={request.url.path}, errors={len(errors)}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": ja.EXC_VALIDATION_FAILED, "detail": errors}
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """アプリケーション例外を {success: false, error: ...} 形式に変換"""
    logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail}
    )


# 環境に応じてCORS設定を変更
is_production = settings.ENVIRONMENT == "production"

allowed_origins = [settings.FRONTEND_URL] if settings.FRONTEND_URL else []
if not is_production:
    # 開発環境: localhost を追加
    allowed_origins.append("http://localhost:3000")

# CORSミドルウェアの設定
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)


@app.get("/")
async def read_root():
    return {"message": "Welcome to the Subscription Ledger API!"}


app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
