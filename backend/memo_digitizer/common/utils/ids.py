import uuid

MEMO_ID_PREFIX = "memo"


def generate_memo_id() -> str:
    """メモ記録のID（例: memo-3f2a...）"""
    return f"{MEMO_ID_PREFIX}-{uuid.uuid4().hex}"
