"""
Visionモデルクライアント
LangChain のチャットモデルを介して画像付きメッセージを送信し、
応答本文と使用トークン数を取り出す
"""

import base64
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import SecretStr

from ..config import settings


@dataclass
class ModelReply:
    """モデル応答（正規化前）"""

    content: str | list[Any]
    input_tokens: int
    output_tokens: int
    model: str


def image_block(image_bytes: bytes, media_type: str) -> dict[str, Any]:
    """画像をdata URL形式のコンテンツブロックに変換"""
    data = base64.b64encode(image_bytes).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{data}"}}


def text_block(text: str) -> dict[str, Any]:
    return {"type": "text", "text": text}


def _usage_from_message(msg: Any) -> tuple[int, int]:
    """usage_metadata を優先し、無ければプロバイダ固有のメタデータから取得"""
    usage = getattr(msg, "usage_metadata", None) or {}
    if usage:
        return int(usage.get("input_tokens", 0) or 0), int(
            usage.get("output_tokens", 0) or 0
        )
    meta = getattr(msg, "response_metadata", {}) or {}
    raw = meta.get("usage") or {}
    if raw:
        return int(raw.get("input_tokens", 0) or 0), int(raw.get("output_tokens", 0) or 0)
    raw = meta.get("token_usage") or {}
    return int(raw.get("prompt_tokens", 0) or 0), int(raw.get("completion_tokens", 0) or 0)


class VisionModelClient:
    """外部Visionモデルへの長寿命クライアント
    モデル名ごとにチャットモデルをキャッシュし、最初の呼び出し時に生成する
    """

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ):
        self.provider = (provider or settings.vision_provider).lower()
        self.model = model or settings.vision_model
        self._api_key = api_key
        self.max_tokens = int(max_tokens or settings.max_output_tokens)
        self.timeout = float(timeout or settings.request_timeout_seconds)
        self._llm_cache: dict[str, BaseChatModel] = {}

    @property
    def api_key(self) -> str | None:
        return self._api_key or settings.vision_api_key

    def _get_llm(self, model: str | None = None) -> BaseChatModel:
        """モデル名ごとにLLMをキャッシュして取得
        リトライはクライアント側では行わない（呼び出し元に委ねる）
        """
        used_model = model or self.model
        if used_model not in self._llm_cache:
            kwargs: dict[str, Any] = {
                "model": used_model,
                "timeout": self.timeout,
                "max_tokens": self.max_tokens,
                "max_retries": 0,
            }
            # 未設定ならプロバイダ既定の環境変数に任せる
            if self.api_key:
                kwargs["api_key"] = SecretStr(self.api_key)
            if self.provider == "openai":
                from langchain_openai import ChatOpenAI

                llm: BaseChatModel = ChatOpenAI(**kwargs)
            else:
                from langchain_anthropic import ChatAnthropic

                llm = ChatAnthropic(**kwargs)
            self._llm_cache[used_model] = llm
        return self._llm_cache[used_model]

    async def complete(
        self, system_prompt: str | None, content: list[dict[str, Any]]
    ) -> ModelReply:
        """システムプロンプトとユーザーコンテンツを送信し、応答を返す
        例外は加工せずにそのまま送出する
        """
        messages: list[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=content))

        llm = self._get_llm()
        msg = await llm.ainvoke(messages)

        input_tokens, output_tokens = _usage_from_message(msg)
        resp_meta = getattr(msg, "response_metadata", {}) or {}
        actual_model = resp_meta.get("model_name") or resp_meta.get("model") or self.model
        return ModelReply(
            content=getattr(msg, "content", ""),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=actual_model,
        )
