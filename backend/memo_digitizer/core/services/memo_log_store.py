"""
メモ・語彙の記録ストア
完成したメモの記録、語彙の登録、不明箇所パターンの集計を行う。
Redis が設定されていればRedisを使い、無ければメモリ内に保持する。
"""

import datetime as dt
import json
import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Any, Protocol

from redis import Redis
from redis.client import Pipeline

from ...common.utils.ids import generate_memo_id
from ..config import settings


logger = logging.getLogger(__name__)

MEMO_LIST_KEY = "memos"
MEMO_KEY = "memo:{memo_id}"
UNCLEAR_ZSET_KEY = "memos:unclear"
VOCAB_KEY = "vocab:{term}"
VOCAB_ZSET_KEY = "vocab:occurrences"


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


@dataclass
class MemoRecord:
    original_text: str
    user_edited_text: str
    difficulty_flags: list[str] = field(default_factory=list)
    extracted_terms: list[str] = field(default_factory=list)
    language: str = "Japanese"
    processing_time_ms: int | None = None
    memo_id: str = field(default_factory=generate_memo_id)
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "memo_id": self.memo_id,
            "original_text": self.original_text,
            "user_edited_text": self.user_edited_text,
            "timestamp": self.timestamp,
            "difficulty_flags": list(self.difficulty_flags),
            "extracted_terms": list(self.extracted_terms),
            "language": self.language,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class VocabularyEntry:
    term: str
    first_found_context: str = ""
    definitions: list[str] = field(default_factory=list)
    occurrences: int = 1
    language: str = "Japanese"
    timestamp: str = field(default_factory=_now_iso)


class MemoLogStore(Protocol):
    def add_memo(self, record: MemoRecord) -> str: ...

    def upsert_term(
        self, term: str, context: str, definition: str | None = None
    ) -> VocabularyEntry: ...

    def top_unclear_patterns(self, limit: int) -> list[tuple[str, int]]: ...

    def list_vocabulary(self) -> list[VocabularyEntry]: ...


def _merge_definition(definitions: list[str], definition: str | None) -> list[str]:
    if definition and definition not in definitions:
        return [*definitions, definition]
    return definitions


class InMemoryMemoLogStore:
    """プロセス内に保持するストア（Redis未設定時・テスト用）
    メモ記録は直近 max_records 件まで保持し、古いものから破棄する。
    不明箇所の集計は破棄後も残る。
    """

    def __init__(self, max_records: int | None = None):
        self.max_records = max_records or settings.memo_log_memory_limit
        self.memos: OrderedDict[str, MemoRecord] = OrderedDict()
        self.unclear_counts: Counter[str] = Counter()
        self.vocabulary: dict[str, VocabularyEntry] = {}

    def add_memo(self, record: MemoRecord) -> str:
        self.memos[record.memo_id] = record
        self.unclear_counts.update(record.difficulty_flags)
        while len(self.memos) > self.max_records:
            self.memos.popitem(last=False)
        return record.memo_id

    def upsert_term(
        self, term: str, context: str, definition: str | None = None
    ) -> VocabularyEntry:
        entry = self.vocabulary.get(term)
        if entry is None:
            entry = VocabularyEntry(
                term=term,
                first_found_context=context,
                definitions=[definition] if definition else [],
            )
            self.vocabulary[term] = entry
        else:
            entry.occurrences += 1
            entry.definitions = _merge_definition(entry.definitions, definition)
        return entry

    def top_unclear_patterns(self, limit: int) -> list[tuple[str, int]]:
        if limit <= 0:
            return []
        return self.unclear_counts.most_common(limit)

    def list_vocabulary(self) -> list[VocabularyEntry]:
        return sorted(self.vocabulary.values(), key=lambda e: e.occurrences, reverse=True)


class RedisMemoLogStore:
    """Redisに保存するストア

    - memo:{id}          メモ本体(JSON)
    - memos              メモIDのリスト（新しい順）
    - memos:unclear      不明箇所パターンの出現回数(ZSET)
    - vocab:{term}       語彙エントリ(HASH)
    - vocab:occurrences  語彙の出現回数(ZSET)
    """

    def __init__(self, client: Redis):
        self.client = client

    def add_memo(self, record: MemoRecord) -> str:
        pipe = self.client.pipeline()
        pipe.set(
            MEMO_KEY.format(memo_id=record.memo_id),
            json.dumps(record.to_dict(), ensure_ascii=False),
        )
        pipe.lpush(MEMO_LIST_KEY, record.memo_id)
        for flag in record.difficulty_flags:
            pipe.zincrby(UNCLEAR_ZSET_KEY, 1, flag)
        pipe.execute()
        return record.memo_id

    def upsert_term(
        self, term: str, context: str, definition: str | None = None
    ) -> VocabularyEntry:
        """語彙を登録・更新する
        WATCH/MULTI で読み出しから書き込みまでを一括で行い、
        同時更新で競合した場合は読み直して再実行する
        """
        key = VOCAB_KEY.format(term=term)

        def _apply(pipe: Pipeline) -> VocabularyEntry:
            entry = self._read_entry(pipe, key)
            if entry is None:
                entry = VocabularyEntry(
                    term=term,
                    first_found_context=context,
                    definitions=[definition] if definition else [],
                )
            else:
                entry.occurrences += 1
                entry.definitions = _merge_definition(entry.definitions, definition)
            pipe.multi()
            pipe.hset(key, mapping=self._entry_to_hash(entry))
            pipe.zadd(VOCAB_ZSET_KEY, {term: entry.occurrences})
            return entry

        return self.client.transaction(_apply, key, value_from_callable=True)

    def _read_entry(self, pipe: Pipeline, key: str) -> VocabularyEntry | None:
        h = pipe.hgetall(key) or {}
        return self._entry_from_hash(h) if h else None

    @staticmethod
    def _entry_to_hash(entry: VocabularyEntry) -> dict[str, Any]:
        return {
            "term": entry.term,
            "first_found_context": entry.first_found_context,
            "definitions": json.dumps(entry.definitions, ensure_ascii=False),
            "occurrences": entry.occurrences,
            "language": entry.language,
            "timestamp": entry.timestamp,
        }

    def top_unclear_patterns(self, limit: int) -> list[tuple[str, int]]:
        if limit <= 0:
            return []
        rows = self.client.zrevrange(UNCLEAR_ZSET_KEY, 0, limit - 1, withscores=True)
        return [(pattern, int(score)) for pattern, score in rows]

    def list_vocabulary(self) -> list[VocabularyEntry]:
        terms = self.client.zrevrange(VOCAB_ZSET_KEY, 0, -1)
        entries: list[VocabularyEntry] = []
        for term in terms:
            h = self.client.hgetall(VOCAB_KEY.format(term=term)) or {}
            if h:
                entries.append(self._entry_from_hash(h))
        return sorted(entries, key=lambda e: e.occurrences, reverse=True)

    @staticmethod
    def _entry_from_hash(h: dict[str, Any]) -> VocabularyEntry:
        try:
            definitions = json.loads(h.get("definitions") or "[]")
        except ValueError:
            definitions = []
        return VocabularyEntry(
            term=h.get("term", ""),
            first_found_context=h.get("first_found_context", ""),
            definitions=list(definitions),
            occurrences=int(h.get("occurrences", 0) or 0),
            language=h.get("language", "Japanese"),
            timestamp=h.get("timestamp", ""),
        )


def connect_redis(url: str | None) -> Redis | None:
    if not url:
        return None
    try:
        client = Redis.from_url(url, decode_responses=True)
        client.ping()
        return client
    except Exception as e:
        logger.warning(f"Redisに接続できないためメモリ内ストアを使用します: {e}")
        return None


def create_memo_log_store(redis_url: str | None) -> MemoLogStore:
    client = connect_redis(redis_url)
    if client is not None:
        return RedisMemoLogStore(client)
    return InMemoryMemoLogStore()


class MemoLogger:
    """ストアへの書き込み・読み出しを失敗しても止めないラッパ
    失敗はWARNINGで記録し、呼び出し元には None / 空の結果を返す
    """

    def __init__(self, store: MemoLogStore):
        self.store = store

    def log_memo(self, record: MemoRecord) -> str | None:
        try:
            memo_id = self.store.add_memo(record)
            logger.info(f"メモを記録しました: {memo_id}")
            return memo_id
        except Exception as e:
            logger.warning(f"メモの記録に失敗しました: {e}")
            return None

    def log_vocabulary(
        self, term: str, context: str, definition: str | None = None
    ) -> VocabularyEntry | None:
        try:
            return self.store.upsert_term(term, context, definition)
        except Exception as e:
            logger.warning(f"語彙の記録に失敗しました: {term}: {e}")
            return None

    def common_unclear_patterns(self, limit: int = 10) -> list[tuple[str, int]]:
        try:
            return self.store.top_unclear_patterns(limit)
        except Exception as e:
            logger.warning(f"不明箇所パターンの取得に失敗しました: {e}")
            return []

    def learned_vocabulary(self) -> list[VocabularyEntry]:
        try:
            return self.store.list_vocabulary()
        except Exception as e:
            logger.warning(f"語彙一覧の取得に失敗しました: {e}")
            return []
