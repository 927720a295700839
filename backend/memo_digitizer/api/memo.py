"""
メモ処理APIエンドポイント
手書きメモ画像の文字起こしと、不明箇所についての追加質問を提供する
"""

import base64
import binascii
import datetime as dt
import hashlib
import json
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..common.utils.cost_estimator import COST_QUANTUM
from ..core.config import settings
from ..core.errors import InvalidImage, MemoProcessingError, MissingInput
from ..core.services.prompt_builder import PromptOptions
from ..core.services.transcription_service import (
    FollowUpResult,
    TranscriptionService,
)
from ..core.web.dependencies import get_transcription_service
from ..models.schemas import (
    AnnotationInfo,
    CharacterAnalysisRequest,
    ClarifyRequest,
    FollowUpResponse,
    ProcessMemoRequest,
    ProcessMemoResponse,
    TokensUsed,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Memo"])


def _decode_image(image_base64: str | None) -> bytes:
    if not image_base64:
        raise MissingInput()
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage()


def _hash(v: bytes) -> str:
    return hashlib.sha256(v).hexdigest()[:16]


def _follow_up_response(result: FollowUpResult) -> FollowUpResponse:
    return FollowUpResponse(
        answer=result.text,
        tokens_used=TokensUsed(
            input=result.usage.input_tokens,
            output=result.usage.output_tokens,
            total=result.usage.total_tokens,
        ),
        cost=str(result.estimated_cost.quantize(COST_QUANTUM)),
        model=result.model,
    )


@router.post("/process-memo", response_model=ProcessMemoResponse)
async def process_memo(
    request: ProcessMemoRequest,
    service: TranscriptionService = Depends(get_transcription_service),
) -> ProcessMemoResponse:
    """手書きメモ画像を文字起こしする

    Args:
        request: 画像(Base64)・参考資料・メモ種別
        service: 文字起こしサービス

    Returns:
        抽出本文・使用トークン・概算コスト

    Raises:
        HTTPException: 入力不備・認証失敗・レート制限・外部APIエラーの場合
    """
    try:
        image_bytes = _decode_image(request.imageBase64)
        if request.mediaType not in settings.allowed_media_types_list:
            raise HTTPException(
                status_code=400, detail=f"Unsupported media type: {request.mediaType}"
            )

        options = PromptOptions(
            category=request.memoType,
            reference_text=request.refDocs,
            language=request.language,
            complexity=request.complexity,
        )

        logger.info(f"メモ処理開始: type={request.memoType}, bytes={len(image_bytes)}")
        result = await service.transcribe(image_bytes, options, request.mediaType)
        logger.info("メモ処理完了")

        # JSON ログ（本文は記録しない）
        log = {
            "image_hash": _hash(image_bytes),
            "memo_type": request.memoType,
            "category": result.category.value,
            "tokens": result.usage.total_tokens,
            "cost_usd": str(result.estimated_cost),
            "annotations": len(result.annotations),
            "elapsed_ms": result.elapsed_ms,
            "status": "ok",
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        }
        logger.info(json.dumps(log, ensure_ascii=False))

        return ProcessMemoResponse(
            extracted_text=result.text,
            tokens_used=TokensUsed(
                input=result.usage.input_tokens,
                output=result.usage.output_tokens,
                total=result.usage.total_tokens,
            ),
            cost=str(result.estimated_cost.quantize(COST_QUANTUM)),
            model=result.model,
            memo_type=request.memoType,
            category=result.category.value,
            annotations=[AnnotationInfo(**a.to_dict()) for a in result.annotations],
            processing_time_ms=result.elapsed_ms,
        )

    except HTTPException:
        raise
    except MemoProcessingError as e:
        logger.warning(f"メモ処理エラー({e.status_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"メモ処理中の予期しないエラー: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/clarify", response_model=FollowUpResponse)
async def clarify(
    request: ClarifyRequest,
    service: TranscriptionService = Depends(get_transcription_service),
) -> FollowUpResponse:
    """不明箇所について追加で質問する"""
    try:
        result = await service.clarify(request.question, request.memoExcerpt)
        return _follow_up_response(result)
    except MemoProcessingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"追加質問エラー: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/analyze-character", response_model=FollowUpResponse)
async def analyze_character(
    request: CharacterAnalysisRequest,
    service: TranscriptionService = Depends(get_transcription_service),
) -> FollowUpResponse:
    """判読困難な1文字（1語）を分析する"""
    try:
        result = await service.analyze_character(
            request.context, request.position, request.surroundingText
        )
        return _follow_up_response(result)
    except MemoProcessingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"文字分析エラー: {e}")
        raise HTTPException(status_code=500, detail=str(e))
