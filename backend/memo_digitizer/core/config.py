"""
設定管理モジュール
アプリケーションの設定を一元管理する
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    アプリケーション設定クラス
    pydantic_settingsを使用することで、環境変数から自動的に設定を読み込み、
    型チェックとバリデーションを行う
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Memo Digitizer API"
    app_version: str = "0.1.0"
    debug: bool = False

    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1

    # ===== Vision モデル設定 =====
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    # "anthropic" または "openai"
    vision_provider: str = "anthropic"
    vision_model: str = "claude-opus-4-1-20250805"
    max_output_tokens: int = 2000
    # 外部APIが応答しない場合に備えた上限（秒）
    request_timeout_seconds: float = 60.0

    # 画像サイズ上限（デコード後のバイト数）
    max_image_bytes: int = 50 * 1024 * 1024  # 50MB
    default_media_type: str = "image/png"
    allowed_media_types: str = "image/png,image/jpeg,image/gif,image/webp"

    # === 料金（USD / 1K tokens） ===
    input_cost_per_1k_tokens: float = 0.003
    output_cost_per_1k_tokens: float = 0.015

    # ==== Redis設定（未設定ならメモリ内ストア） ====
    redis_url: str | None = None
    unclear_patterns_limit: int = 10
    # メモリ内ストアに保持するメモ記録の上限件数
    memo_log_memory_limit: int = 1000

    # 本番環境用セキュリティ設定
    allowed_origins: str | None = None
    allowed_hosts: str = "localhost,127.0.0.1"

    @property
    def input_cost_per_token(self) -> Decimal:
        """入力1トークンあたりの単価(USD)"""
        return Decimal(str(self.input_cost_per_1k_tokens)) / Decimal(1000)

    @property
    def output_cost_per_token(self) -> Decimal:
        """出力1トークンあたりの単価(USD)"""
        return Decimal(str(self.output_cost_per_1k_tokens)) / Decimal(1000)

    @property
    def vision_api_key(self) -> str | None:
        """選択中のプロバイダのAPIキーを取得"""
        if self.vision_provider.lower() == "openai":
            return self.openai_api_key or None
        return self.anthropic_api_key or None

    @property
    def allowed_origins_list(self) -> list[str]:
        items = [o.strip() for o in (self.allowed_origins or "").split(",") if o.strip()]
        if self.debug:
            return items or ["*"]
        if "*" in items:
            raise ValueError("Wildcard '*' is not allowed in production")
        return items

    @property
    def allowed_hosts_list(self) -> list[str]:
        """許可するホストのリストを取得"""
        return [h.strip() for h in self.allowed_hosts.split(",") if h.strip()]

    @property
    def allowed_media_types_list(self) -> list[str]:
        """許可する画像メディアタイプのリストを取得"""
        return [
            m.strip().lower() for m in self.allowed_media_types.split(",") if m.strip()
        ]

    def model_post_init(self, __context):
        """設定値の整合性チェック
        APIキーの未設定はリクエスト時に500として返すため、ここでは検査しない
        """
        if self.vision_provider.lower() not in ("anthropic", "openai"):
            raise ValueError("VISION_PROVIDER must be 'anthropic' or 'openai'")
        if self.max_image_bytes <= 0:
            raise ValueError("MAX_IMAGE_BYTES must be positive")
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        if self.memo_log_memory_limit <= 0:
            raise ValueError("MEMO_LOG_MEMORY_LIMIT must be positive")


settings = Settings()
