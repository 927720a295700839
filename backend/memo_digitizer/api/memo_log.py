"""
メモ記録・語彙APIエンドポイント
記録の失敗はユーザー側のフローを止めないため、エラーにせず status で返す
"""

import logging

from fastapi import APIRouter, Depends, Query

from ..common.utils.annotations import difficulty_flags, extracted_terms
from ..core.config import settings
from ..core.services.memo_log_store import MemoLogger, MemoRecord
from ..core.web.dependencies import get_memo_logger
from ..models.schemas import (
    MemoLogRequest,
    MemoLogResponse,
    UnclearPattern,
    UnclearPatternsResponse,
    VocabularyListResponse,
    VocabularyRequest,
    VocabularyStatusResponse,
    VocabularyTerm,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["MemoLog"])


@router.post("/memos", response_model=MemoLogResponse)
async def log_memo(
    request: MemoLogRequest,
    memo_logger: MemoLogger = Depends(get_memo_logger),
) -> MemoLogResponse:
    """編集完了したメモを記録する
    マーカー一覧が省略された場合は元の本文から抽出する
    """
    flags = (
        request.difficultyFlags
        if request.difficultyFlags is not None
        else difficulty_flags(request.originalText)
    )
    terms = (
        request.extractedTerms
        if request.extractedTerms is not None
        else extracted_terms(request.originalText)
    )
    record = MemoRecord(
        original_text=request.originalText,
        user_edited_text=request.userEditedText,
        difficulty_flags=flags,
        extracted_terms=terms,
        language=request.language,
        processing_time_ms=request.processingTimeMs,
    )
    memo_id = memo_logger.log_memo(record)
    return MemoLogResponse(status="ok" if memo_id else "skipped", memo_id=memo_id)


@router.get("/memos/unclear-patterns", response_model=UnclearPatternsResponse)
async def unclear_patterns(
    limit: int | None = Query(None, ge=1, le=100),
    memo_logger: MemoLogger = Depends(get_memo_logger),
) -> UnclearPatternsResponse:
    """頻出する不明箇所パターン（上位N件）"""
    rows = memo_logger.common_unclear_patterns(limit or settings.unclear_patterns_limit)
    return UnclearPatternsResponse(
        patterns=[UnclearPattern(pattern=p, count=c) for p, c in rows]
    )


@router.post("/vocabulary", response_model=VocabularyStatusResponse)
async def upsert_vocabulary(
    request: VocabularyRequest,
    memo_logger: MemoLogger = Depends(get_memo_logger),
) -> VocabularyStatusResponse:
    """語彙を登録（既存なら出現回数を加算し、新しい定義を追加）"""
    entry = memo_logger.log_vocabulary(request.term, request.context, request.definition)
    if entry is None:
        return VocabularyStatusResponse(status="skipped")
    return VocabularyStatusResponse(status="ok", occurrences=entry.occurrences)


@router.get("/vocabulary", response_model=VocabularyListResponse)
async def list_vocabulary(
    memo_logger: MemoLogger = Depends(get_memo_logger),
) -> VocabularyListResponse:
    """学習済み語彙（出現回数の多い順）"""
    entries = memo_logger.learned_vocabulary()
    return VocabularyListResponse(
        terms=[
            VocabularyTerm(
                term=e.term, definitions=e.definitions, occurrences=e.occurrences
            )
            for e in entries
        ]
    )
