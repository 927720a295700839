"""
文字起こしサービス
画像とプロンプト設定を受け取り、Visionモデルを1回だけ呼び出して
本文・使用量・概算コストをまとめた結果を返す
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from ...common.utils.annotations import Annotation, parse_annotations
from ...common.utils.cost_estimator import estimate_cost_usd
from ..config import settings
from ..errors import (
    MissingCredential,
    MissingInput,
    PayloadTooLarge,
    classify_model_error,
)
from .prompt_builder import (
    MemoCategory,
    PromptOptions,
    build_character_analysis_prompt,
    build_clarification_prompt,
    build_prompt,
    resolve_category,
)
from .vision_client import ModelReply, image_block, text_block


logger = logging.getLogger(__name__)

TRANSCRIPTION_TASK = (
    "Please carefully read and transcribe this handwritten memo. "
    "Extract all text, understand the relationships between elements, "
    "identify company names and products, and flag anything unclear. "
    "Use the reference materials provided to help disambiguate terms."
)


class VisionClient(Protocol):
    api_key: str | None

    async def complete(
        self, system_prompt: str | None, content: list[dict[str, Any]]
    ) -> ModelReply: ...


@dataclass(frozen=True)
class Usage:
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TranscriptionResult:
    text: str
    usage: Usage
    estimated_cost: Decimal
    category: MemoCategory
    model: str
    annotations: list[Annotation] = field(default_factory=list)
    elapsed_ms: int = 0


@dataclass
class FollowUpResult:
    text: str
    usage: Usage
    estimated_cost: Decimal
    model: str


def first_text_block(content: Any) -> str:
    """応答コンテンツから最初のテキストブロックを取り出す。無ければ空文字"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, str):
                return block
            if isinstance(block, dict) and block.get("type") == "text":
                return str(block.get("text") or "")
    return ""


class TranscriptionService:
    """Visionモデルによる文字起こしの1往復を担うサービス
    状態を持たないため、複数リクエストから並行に呼び出してよい
    """

    def __init__(
        self,
        client: VisionClient,
        max_image_bytes: int | None = None,
        timeout: float | None = None,
    ):
        self.client = client
        self.max_image_bytes = int(max_image_bytes or settings.max_image_bytes)
        self.timeout = float(timeout or settings.request_timeout_seconds)

    def _ensure_credential(self) -> None:
        if not self.client.api_key:
            raise MissingCredential()

    async def _call(
        self, system_prompt: str | None, content: list[dict[str, Any]]
    ) -> ModelReply:
        """タイムアウト付きで1回だけ呼び出す。失敗は分類済みの例外に変換"""
        try:
            return await asyncio.wait_for(
                self.client.complete(system_prompt, content), timeout=self.timeout
            )
        except Exception as e:
            error = classify_model_error(e)
            logger.error(f"Visionモデル呼び出しエラー: {type(e).__name__}: {e}")
            raise error from e

    async def transcribe(
        self,
        image_bytes: bytes | None,
        options: PromptOptions,
        media_type: str | None = None,
    ) -> TranscriptionResult:
        """画像を文字起こしする

        Raises:
            MissingInput: 画像が空の場合
            PayloadTooLarge: 画像がサイズ上限を超える場合
            MissingCredential: APIキーが未設定の場合
            InvalidOptions: プロンプト設定が不正な場合
            Unauthorized, RateLimited, ModelTimeout, UpstreamError: 外部API失敗時
        """
        if not image_bytes:
            raise MissingInput()
        if len(image_bytes) > self.max_image_bytes:
            raise PayloadTooLarge(
                f"Image exceeds the maximum allowed size of {self.max_image_bytes} bytes"
            )
        self._ensure_credential()

        category = resolve_category(options.category)
        system_prompt = build_prompt(options)
        content = [
            image_block(image_bytes, media_type or settings.default_media_type),
            text_block(TRANSCRIPTION_TASK),
        ]

        started = time.monotonic()
        reply = await self._call(system_prompt, content)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text = first_text_block(reply.content)
        cost = estimate_cost_usd(reply.model, reply.input_tokens, reply.output_tokens)
        return TranscriptionResult(
            text=text,
            usage=Usage(cost.input_tokens, cost.output_tokens),
            estimated_cost=cost.total_cost_usd,
            category=category,
            model=reply.model,
            annotations=parse_annotations(text),
            elapsed_ms=elapsed_ms,
        )

    async def _follow_up(self, prompt: str) -> FollowUpResult:
        self._ensure_credential()
        reply = await self._call(None, [text_block(prompt)])
        cost = estimate_cost_usd(reply.model, reply.input_tokens, reply.output_tokens)
        return FollowUpResult(
            text=first_text_block(reply.content),
            usage=Usage(cost.input_tokens, cost.output_tokens),
            estimated_cost=cost.total_cost_usd,
            model=reply.model,
        )

    async def clarify(self, question: str, excerpt: str) -> FollowUpResult:
        """不明箇所について追加質問する（テキストのみ）"""
        return await self._follow_up(build_clarification_prompt(question, excerpt))

    async def analyze_character(
        self, context: str, position: str, surrounding: str
    ) -> FollowUpResult:
        """判読困難な1文字（1語）の候補を尋ねる（テキストのみ）"""
        return await self._follow_up(
            build_character_analysis_prompt(context, position, surrounding)
        )
