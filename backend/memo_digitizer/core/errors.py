"""
メモ処理のエラー定義

各例外は HTTP ステータスとユーザー向けメッセージを保持する。
ルーター側で HTTPException に変換し、{"error": message} として返す。
"""

import re

from .config import settings


AUTH_CODE_PATTERN = re.compile(r"\b401\b")
RATE_LIMIT_CODE_PATTERN = re.compile(r"\b429\b")


def provider_label() -> str:
    """エラーメッセージに表示するプロバイダ名"""
    return "OpenAI" if settings.vision_provider.lower() == "openai" else "Claude"


class MemoProcessingError(Exception):
    """メモ処理エラーの基底クラス"""

    status_code: int = 500
    default_message: str = "Failed to process memo"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message.format(provider=provider_label())
        super().__init__(self.message)


class InvalidOptions(MemoProcessingError):
    """プロンプト設定の型が不正（プログラミングエラー）"""

    default_message = "Invalid prompt options"


class MissingInput(MemoProcessingError):
    status_code = 400
    default_message = "No image provided"


class InvalidImage(MemoProcessingError):
    status_code = 400
    default_message = "Invalid image data"


class MissingCredential(MemoProcessingError):
    default_message = "{provider} API key not configured"


class PayloadTooLarge(MemoProcessingError):
    status_code = 413
    default_message = "Image exceeds the maximum allowed size"


class Unauthorized(MemoProcessingError):
    status_code = 401
    default_message = "Invalid {provider} API key"


class RateLimited(MemoProcessingError):
    status_code = 429
    default_message = "Rate limited. Try again in 60s"


class UpstreamError(MemoProcessingError):
    """分類できない外部APIエラー（元メッセージを保持）"""

    default_message = "Vision model request failed"


class ModelTimeout(MemoProcessingError):
    status_code = 504
    default_message = "Vision model request timed out"


def classify_model_error(exc: BaseException) -> MemoProcessingError:
    """外部モデル呼び出しの例外をエラー分類に変換する

    例外がHTTPステータスを持つ場合はそれだけで判定する（401 / 429 / その他）。
    ステータスが無い場合のみ、例外クラス名とメッセージ中の既知の文字列で判定し、
    いずれにも該当しない場合は元メッセージを保持した UpstreamError とする。
    """
    if isinstance(exc, MemoProcessingError):
        return exc

    message = str(exc)
    lowered = message.lower()
    name = type(exc).__name__
    status = getattr(exc, "status_code", None)

    if isinstance(exc, TimeoutError) or "Timeout" in name:
        return ModelTimeout()

    if isinstance(status, int):
        if status == 401:
            return Unauthorized()
        if status == 429:
            return RateLimited()
        return UpstreamError(message or name)

    if (
        name == "RateLimitError"
        or "rate_limit" in lowered
        or RATE_LIMIT_CODE_PATTERN.search(message)
    ):
        return RateLimited()
    if (
        name == "AuthenticationError"
        or "authentication_error" in lowered
        or AUTH_CODE_PATTERN.search(message)
    ):
        return Unauthorized()
    if "timed out" in lowered:
        return ModelTimeout()
    return UpstreamError(message or name)
