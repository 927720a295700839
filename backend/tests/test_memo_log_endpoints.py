from fastapi.testclient import TestClient

from conftest import FailingStore
from memo_digitizer.core.services.memo_log_store import MemoLogger
from memo_digitizer.core.web.dependencies import get_memo_logger


def test_log_memo_parses_markers_when_omitted(client: TestClient, memo_logger):
    body = {
        "originalText": "売上 [UNCLEAR: 3か8] [TERM: ARR - 年間経常収益]",
        "userEditedText": "売上 8 ARR",
        "processingTimeMs": 1200,
    }
    r = client.post("/api/memos", json=body)
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    record = memo_logger.store.memos[data["memo_id"]]
    assert record.difficulty_flags == ["3か8"]
    assert record.extracted_terms == ["ARR"]
    assert record.user_edited_text == "売上 8 ARR"


def test_log_memo_uses_explicit_flags(client: TestClient, memo_logger):
    body = {
        "originalText": "[UNCLEAR: a]",
        "userEditedText": "a",
        "difficultyFlags": ["手書きが薄い"],
        "extractedTerms": [],
    }
    r = client.post("/api/memos", json=body)
    record = memo_logger.store.memos[r.json()["memo_id"]]
    assert record.difficulty_flags == ["手書きが薄い"]
    assert record.extracted_terms == []


def test_unclear_patterns_top_n(client: TestClient):
    for flags in (["数字"], ["数字", "人名"], ["数字", "人名", "日付"]):
        client.post(
            "/api/memos",
            json={"originalText": "", "userEditedText": "", "difficultyFlags": flags},
        )
    r = client.get("/api/memos/unclear-patterns", params={"limit": 2})
    assert r.status_code == 200
    assert r.json()["patterns"] == [
        {"pattern": "数字", "count": 3},
        {"pattern": "人名", "count": 2},
    ]


def test_vocabulary_upsert_and_list(client: TestClient):
    client.post("/api/vocabulary", json={"term": "KPI", "context": "会議", "definition": "指標"})
    client.post("/api/vocabulary", json={"term": "KPI", "context": "別", "definition": "指標"})
    r = client.post("/api/vocabulary", json={"term": "KPI", "definition": "評価指標"})
    assert r.json() == {"status": "ok", "occurrences": 3}
    client.post("/api/vocabulary", json={"term": "ROI"})

    r = client.get("/api/vocabulary")
    assert r.status_code == 200
    terms = r.json()["terms"]
    assert [t["term"] for t in terms] == ["KPI", "ROI"]
    assert terms[0] == {"term": "KPI", "definitions": ["指標", "評価指標"], "occurrences": 3}
    assert terms[1]["definitions"] == []


def test_vocabulary_requires_term(client: TestClient):
    r = client.post("/api/vocabulary", json={"term": "   "})
    assert r.status_code == 422
    assert "error" in r.json()


def test_store_failures_never_surface(app, client: TestClient):
    app.dependency_overrides[get_memo_logger] = lambda: MemoLogger(FailingStore())

    r = client.post("/api/memos", json={"originalText": "a", "userEditedText": "b"})
    assert r.status_code == 200
    assert r.json() == {"status": "skipped", "memo_id": None}

    r = client.post("/api/vocabulary", json={"term": "KPI"})
    assert r.status_code == 200
    assert r.json()["status"] == "skipped"

    assert client.get("/api/vocabulary").json() == {"terms": []}
    assert client.get("/api/memos/unclear-patterns").json() == {"patterns": []}
