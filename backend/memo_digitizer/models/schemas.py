"""
APIスキーマ定義
FastAPIのリクエスト/レスポンスモデルの定義
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


__all__ = [
    "ProcessMemoRequest",
    "TokensUsed",
    "AnnotationInfo",
    "ProcessMemoResponse",
    "ClarifyRequest",
    "CharacterAnalysisRequest",
    "FollowUpResponse",
    "MemoLogRequest",
    "MemoLogResponse",
    "UnclearPattern",
    "UnclearPatternsResponse",
    "VocabularyRequest",
    "VocabularyStatusResponse",
    "VocabularyTerm",
    "VocabularyListResponse",
    "ErrorResponse",
    "HealthResponse",
]


class ProcessMemoRequest(BaseModel):
    # 画像未指定は 400 "No image provided" を返すため、必須にはしない
    imageBase64: str | None = Field(None, description="Base64エンコードされた画像")
    refDocs: str | None = Field("", description="参考資料（用語集など）")
    memoType: str = Field("general", max_length=50, description="メモ種別")
    language: Literal["ja", "en", "mixed"] = Field("ja", description="メモの言語")
    complexity: Literal["simple", "standard", "complex"] = Field(
        "standard", description="メモの複雑度"
    )
    mediaType: str = Field("image/png", max_length=50, description="画像のメディアタイプ")

    @field_validator("imageBase64")
    @classmethod
    def strip_data_url(cls, v: str | None) -> str | None:
        """data URL 形式で送られた場合は先頭のヘッダを除去"""
        if v is None:
            return None
        v = v.strip()
        if v.startswith("data:") and "," in v:
            v = v.split(",", 1)[1]
        return v

    @field_validator("mediaType")
    @classmethod
    def normalize_media_type(cls, v: str) -> str:
        return v.strip().lower()


class TokensUsed(BaseModel):
    input: int = Field(..., description="入力トークン数")
    output: int = Field(..., description="出力トークン数")
    total: int = Field(..., description="合計トークン数")


class AnnotationInfo(BaseModel):
    kind: Literal["unclear", "term"] = Field(..., description="注記の種類")
    description: str = Field(..., description="マーカー内の記述")
    term: str | None = Field(None, description="用語（TERMのみ）")
    context: str | None = Field(None, description="用語の文脈（TERMのみ）")


class ProcessMemoResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = Field(True)
    extracted_text: str = Field(..., description="抽出された本文")
    tokens_used: TokensUsed = Field(..., description="使用トークン数")
    cost: str = Field(..., description="概算コスト(USD, 小数点以下4桁)")
    model: str = Field(..., description="使用したモデル")
    memo_type: str = Field(..., description="リクエストされたメモ種別")
    category: str = Field(..., description="解決されたメモ種別")
    annotations: list[AnnotationInfo] = Field(default_factory=list)
    processing_time_ms: int = Field(..., description="モデル呼び出しの所要時間")


class ClarifyRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000, description="質問内容")
    memoExcerpt: str = Field(..., min_length=1, description="該当するメモの抜粋")

    @field_validator("question")
    @classmethod
    def sanitize_question(cls, v: str) -> str:
        """質問文のサニタイゼーション: 制御文字を除去"""
        if not v.strip():
            raise ValueError("質問内容を入力してください")
        sanitized = "".join(char for char in v if char.isprintable() or char.isspace())
        return sanitized.strip()


class CharacterAnalysisRequest(BaseModel):
    context: str = Field(..., min_length=1, description="メモ内での文脈")
    position: str = Field(..., min_length=1, max_length=200, description="文字の位置")
    surroundingText: str = Field("", description="周辺の文字・文脈")


class FollowUpResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = Field(True)
    answer: str = Field(..., description="モデルの回答")
    tokens_used: TokensUsed = Field(...)
    cost: str = Field(..., description="概算コスト(USD, 小数点以下4桁)")
    model: str = Field(...)


class MemoLogRequest(BaseModel):
    originalText: str = Field(..., description="モデルが最初に抽出した本文")
    userEditedText: str = Field(..., description="ユーザーが修正した本文")
    difficultyFlags: list[str] | None = Field(None, description="[UNCLEAR: ...] の一覧")
    extractedTerms: list[str] | None = Field(None, description="[TERM: ...] の一覧")
    processingTimeMs: int | None = Field(None, ge=0, description="処理時間(ms)")
    language: str = Field("Japanese", max_length=50)


class MemoLogResponse(BaseModel):
    status: Literal["ok", "skipped"] = Field(...)
    memo_id: str | None = Field(None)


class UnclearPattern(BaseModel):
    pattern: str = Field(...)
    count: int = Field(...)


class UnclearPatternsResponse(BaseModel):
    patterns: list[UnclearPattern] = Field(default_factory=list)


class VocabularyRequest(BaseModel):
    term: str = Field(..., min_length=1, max_length=200, description="用語")
    context: str = Field("", description="最初に見つかった文脈")
    definition: str | None = Field(None, description="ユーザーが付けた定義")

    @field_validator("term")
    @classmethod
    def strip_term(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("用語を入力してください")
        return v.strip()


class VocabularyStatusResponse(BaseModel):
    status: Literal["ok", "skipped"] = Field(...)
    occurrences: int | None = Field(None)


class VocabularyTerm(BaseModel):
    term: str = Field(...)
    definitions: list[str] = Field(default_factory=list)
    occurrences: int = Field(...)


class VocabularyListResponse(BaseModel):
    terms: list[VocabularyTerm] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str = Field(..., description="エラーメッセージ")


class HealthResponse(BaseModel):
    status: str = Field(..., description="サービスステータス")
    version: str = Field(..., description="アプリケーションバージョン")
    timestamp: str = Field(..., description="チェック時刻")
