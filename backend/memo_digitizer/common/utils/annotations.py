"""
注記マーカーの抽出

モデルが本文中に埋め込む [UNCLEAR: ...] / [TERM: ...] を構造化する。
自由記述の規約なので、形が崩れたマーカーは読み飛ばす。
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Literal

AnnotationKind = Literal["unclear", "term"]

# 角括弧の入れ子は想定しない。改行をまたぐマーカーも対象外
_MARKER_RE = re.compile(r"\[\s*(UNCLEAR|TERM)\s*[:：]\s*([^\[\]\n]*?)\s*\]", re.I)


@dataclass(frozen=True)
class Annotation:
    kind: AnnotationKind
    description: str
    term: str | None = None
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _split_term(description: str) -> tuple[str, str | None]:
    """"用語 - 文脈" を分割する。区切りが無ければ全体を用語とみなす"""
    if " - " in description:
        term, context = description.split(" - ", 1)
        return term.strip(), (context.strip() or None)
    return description, None


def parse_annotations(text: str | None) -> list[Annotation]:
    """本文から注記マーカーを出現順に抽出する"""
    if not text:
        return []
    items: list[Annotation] = []
    for match in _MARKER_RE.finditer(text):
        kind = match.group(1).lower()
        description = match.group(2).strip()
        if not description:
            continue
        if kind == "term":
            term, context = _split_term(description)
            if not term:
                continue
            items.append(
                Annotation(kind="term", description=description, term=term, context=context)
            )
        else:
            items.append(Annotation(kind="unclear", description=description))
    return items


def difficulty_flags(text: str | None) -> list[str]:
    """[UNCLEAR: ...] の説明部分のみを返す"""
    return [a.description for a in parse_annotations(text) if a.kind == "unclear"]


def extracted_terms(text: str | None) -> list[str]:
    """[TERM: ...] の用語部分のみを返す"""
    return [a.term for a in parse_annotations(text) if a.kind == "term" and a.term]
