import asyncio
import base64
import os
from contextlib import asynccontextmanager
from typing import Any

import pytest
from fastapi.testclient import TestClient

# テスト時は先に最低限の環境変数を設定（memo_digitizer.main を import する前に行う）
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("REDIS_URL", "")

from memo_digitizer.core.services.vision_client import ModelReply  # noqa: E402


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PNG_BASE64 = base64.b64encode(PNG_BYTES).decode("ascii")


class FakeVisionClient:
    """外部依存(Anthropic/OpenAI)を使わないテスト用スタブ"""

    def __init__(
        self,
        text: str | list[Any] = "会議メモ\n[UNCLEAR: 右上の数字]\n[TERM: KPI - 重要業績評価指標]",
        input_tokens: int = 1000,
        output_tokens: int = 500,
        api_key: str | None = "test-key",
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.text = text
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.api_key = api_key
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self, system_prompt: str | None, content: list[dict[str, Any]]
    ) -> ModelReply:
        self.calls.append({"system_prompt": system_prompt, "content": content})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ModelReply(
            content=self.text,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            model="fake-vision-model",
        )


class FailingStore:
    """常に失敗する記録ストア"""

    def add_memo(self, record):
        raise ConnectionError("store is down")

    def upsert_term(self, term, context, definition=None):
        raise ConnectionError("store is down")

    def top_unclear_patterns(self, limit):
        raise ConnectionError("store is down")

    def list_vocabulary(self):
        raise ConnectionError("store is down")


@asynccontextmanager
async def dummy_lifespan(app):
    # 起動時初期化を無効化
    yield


@pytest.fixture()
def fake_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest.fixture()
def memo_logger():
    from memo_digitizer.core.services.memo_log_store import (
        InMemoryMemoLogStore,
        MemoLogger,
    )

    return MemoLogger(InMemoryMemoLogStore())


@pytest.fixture()
def app(monkeypatch, fake_client, memo_logger):
    from memo_digitizer.core.config import settings

    # TrustedHostMiddleware を避けるため debug を有効化
    settings.debug = True

    import memo_digitizer.main as main_mod

    monkeypatch.setattr(main_mod, "lifespan", dummy_lifespan)
    from memo_digitizer.main import create_app

    application = create_app()

    # 依存関係をスタブに差し替え
    from memo_digitizer.core.services.transcription_service import (
        TranscriptionService,
    )
    from memo_digitizer.core.web.dependencies import (
        get_memo_logger,
        get_transcription_service,
    )

    application.dependency_overrides[get_transcription_service] = (
        lambda: TranscriptionService(fake_client)
    )
    application.dependency_overrides[get_memo_logger] = lambda: memo_logger

    return application


@pytest.fixture()
def client(app):
    return TestClient(app)
