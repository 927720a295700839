"""
依存性注入のためのヘルパー関数
"""

from ..config import settings
from ..services.memo_log_store import MemoLogger, create_memo_log_store
from ..services.transcription_service import TranscriptionService
from ..services.vision_client import VisionModelClient

# グローバルインスタンス（Visionクライアントはプロセス内で使い回す）
_vision_client: VisionModelClient = VisionModelClient()
_transcription_service: TranscriptionService = TranscriptionService(_vision_client)
_memo_logger: MemoLogger | None = None


def initialize_memo_logger() -> MemoLogger:
    """記録ストアを初期化（Redis未設定・接続不可ならメモリ内）"""
    global _memo_logger
    _memo_logger = MemoLogger(create_memo_log_store(settings.redis_url))
    return _memo_logger


def get_transcription_service() -> TranscriptionService:
    """文字起こしサービスを取得
    この関数は依存性注入のために使用されます
    """
    return _transcription_service


def get_memo_logger() -> MemoLogger:
    """記録ストアのラッパを取得"""
    if _memo_logger is None:
        return initialize_memo_logger()
    return _memo_logger
