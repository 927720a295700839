"""
FastAPIアプリケーションのメインエントリーポイント
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .api import router as api_router
from .core.config import settings
from .core.web.dependencies import initialize_memo_logger
from .models.schemas import HealthResponse

# タイムゾーン設定
JST = ZoneInfo("Asia/Tokyo")

# ロギング設定
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """アプリケーションのライフサイクル管理
    起動時に記録ストアを初期化する
    """

    logger.info("アプリケーションを起動中...")
    initialize_memo_logger()
    if not settings.vision_api_key:
        logger.warning("VisionモデルのAPIキーが未設定です（/api/process-memo は500を返します）")

    yield

    logger.info("アプリケーション終了中...")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """セキュリティヘッダーを追加するミドルウェア"""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # 本番環境のみの追加ヘッダー
        if not settings.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """すべてのHTTPエラーを {"error": ...} 形式で返す"""
    if exc.status_code == 405:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{loc}: {first.get('msg', 'invalid value')}" if loc else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=422, content={"error": message})


def create_app() -> FastAPI:
    """FastAPIアプリケーションを作成
    Returns:
        設定済みのFastAPIアプリケーション
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="手書きメモをVisionモデルで文字起こしするAPI",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # CORS設定
    if settings.debug:
        # デバッグ時は全オリジンを許可
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        # 本番は許可リストのみ
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["POST", "GET"],
            allow_headers=["*"],
        )

    # セキュリティヘッダー（全環境で適用）
    app.add_middleware(SecurityHeadersMiddleware)

    # セキュリティ設定
    if not settings.debug:
        app.add_middleware(
            TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts_list
        )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(api_router, prefix="/api")

    @app.get("/", response_model=HealthResponse)
    async def root():
        """ルートエンドポイント（ヘルスチェック）"""
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            timestamp=datetime.now(JST).isoformat(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """詳細なヘルスチェック（APIキー未設定なら degraded）"""
        status = "healthy" if settings.vision_api_key else "degraded"
        return HealthResponse(
            status=status,
            version=settings.app_version,
            timestamp=datetime.now(JST).isoformat(),
        )

    return app


app = create_app()


def run() -> None:
    """uvicornでサーバーを起動"""
    import uvicorn

    uvicorn.run(
        "memo_digitizer.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
    )
