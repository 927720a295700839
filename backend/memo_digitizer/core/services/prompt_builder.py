"""
プロンプト組み立てモジュール
メモ種別ごとのテンプレート選択、参考資料ブロック、言語・複雑度の補足を
固定順で連結してシステムプロンプトを生成する。I/O は一切行わない。
"""

from dataclasses import dataclass
from enum import Enum

from ..errors import InvalidOptions


class MemoCategory(str, Enum):
    GENERAL = "general"
    MEETING = "meeting"
    TECHNICAL = "technical"
    PLANNING = "planning"


# 別名 -> 正規カテゴリ。ここに無い値は GENERAL にフォールバックする
CATEGORY_ALIASES: dict[str, MemoCategory] = {
    "general": MemoCategory.GENERAL,
    "meeting": MemoCategory.MEETING,
    "business": MemoCategory.MEETING,
    "technical": MemoCategory.TECHNICAL,
    "engineering": MemoCategory.TECHNICAL,
    "design": MemoCategory.TECHNICAL,
    "planning": MemoCategory.PLANNING,
    "project": MemoCategory.PLANNING,
}
DEFAULT_CATEGORY = MemoCategory.GENERAL

LANGUAGES = ("ja", "en", "mixed")
COMPLEXITIES = ("simple", "standard", "complex")


BASE_TEMPLATE = """\
You are an expert reader of handwritten Japanese memos, diagrams and meeting notes. \
You specialise in messy, informal handwriting and in using context to understand it.

CRITICAL RULES:
1. READ EVERYTHING - never skip an unclear part; mark it as [UNCLEAR: description]
2. UNDERSTAND STRUCTURE - arrows, boxes, numbering and hierarchy all carry meaning
3. PRESERVE LAYOUT - keep the spatial organisation wherever possible
4. FLAG AMBIGUITY - marking something as uncertain is better than guessing
5. USE CONTEXT - rely on any reference materials provided to understand terminology

OUTPUT FORMAT:
---
[EXTRACTED TEXT SECTION]
- Clean, readable transcription
- Hierarchy and structure preserved
- Unclear parts marked as [UNCLEAR: ...]
- Specialised terms marked as [TERM: terminology - context]

[SPATIAL ELEMENTS]
- Diagrams, arrows, boxes and flow
- What each arrow connects
- What each box groups together

[CONFIDENCE NOTES]
- Sections where confidence is low
- Places the user should double-check
---"""

MEETING_SECTION = """\
ADDITIONAL CONTEXT: This is a business/meeting memo.
Expected elements may include:
- Date, participants and topic
- Action items (often marked with ▢, ● or arrows)
- Decisions that were made
- Follow-up tasks with owners and deadlines
- Financial figures or metrics

SPECIAL PARSING RULES:
- Group action items together
- Highlight every deadline mentioned
- Make ownership (who is responsible) explicit
- Keep decisions separate from discussion notes"""

TECHNICAL_SECTION = """\
ADDITIONAL CONTEXT: This is a technical/engineering/design memo.
Expected elements may include:
- System architecture diagrams
- Technical specifications
- Code snippets or pseudocode
- Data structures or database schemas
- Network or flow diagrams
- Equations or mathematical notation

SPECIAL PARSING RULES:
- Reproduce technical diagrams as ASCII art where possible
- Keep exact terminology (function names, variable names)
- Mark technical jargon explicitly as [TERM: ...]
- Preserve indentation and structure of any code or pseudocode"""

PLANNING_SECTION = """\
ADDITIONAL CONTEXT: This is a project planning memo.
Expected elements may include:
- Timeline or Gantt chart information
- Resource allocation
- Budget considerations
- Risk assessments
- Milestone definitions
- Dependencies between tasks

SPECIAL PARSING RULES:
- Extract timeline information clearly
- List every risk together with its mitigation
- Group resources by category
- Flag any ambiguous timeline information
- Preserve visual timeline or schedule elements"""

REFERENCE_BEGIN = "---BEGIN REFERENCE MATERIALS---"
REFERENCE_END = "---END REFERENCE MATERIALS---"

REFERENCE_TEMPLATE = """\
REFERENCE MATERIALS:
The user has supplied reference materials describing terminology and context.
Use them to interpret specialised terms and domain-specific vocabulary.

{begin}
{reference}
{end}

Resolve [TERM: ...] items against the reference materials first.
If a reading is still uncertain after consulting them, mark it as [UNCLEAR: ...] for user review."""

LANGUAGE_BLOCK = """\
LANGUAGE NOTES:
- Japanese is written with hiragana, katakana and kanji, sometimes with romaji
- Handwritten kanji can show stroke variations
- 日本語 and English are often mixed in technical contexts
- Treat every script with equal care"""

COMPLEXITY_BLOCK = """\
COMPLEXITY: This memo appears complex.
- Take extra time to understand the relationships
- Preserve every spatial arrangement
- Mark even slightly uncertain items
- Prefer thoroughness over brevity"""

CLARIFICATION_TEMPLATE = """\
You are helping to refine the transcription of a handwritten memo.

User question: {question}

Memo excerpt in question:
{excerpt}

Answer clearly and concisely about the unclear text, and suggest the most likely correct reading."""

CHARACTER_ANALYSIS_TEMPLATE = """\
You are analysing a single handwritten character or word from a Japanese memo.

Context in the memo: "{context}"
Character position: {position}
Surrounding characters/context: {surrounding}

Which character or word is this most likely to be? Consider:
1. Variations in Japanese handwriting style
2. Common characters that look similar
3. The surrounding text
4. What would make sense in this document

Give your best guess together with a confidence level."""


def _extend(section: str) -> str:
    return f"{BASE_TEMPLATE}\n\n{section}"


TEMPLATES: dict[MemoCategory, str] = {
    MemoCategory.GENERAL: BASE_TEMPLATE,
    MemoCategory.MEETING: _extend(MEETING_SECTION),
    MemoCategory.TECHNICAL: _extend(TECHNICAL_SECTION),
    MemoCategory.PLANNING: _extend(PLANNING_SECTION),
}


@dataclass(frozen=True)
class PromptOptions:
    category: str | None = DEFAULT_CATEGORY.value
    reference_text: str | None = ""
    language: str = "ja"
    complexity: str = "standard"


def _require_str(name: str, value: object, nullable: bool = False) -> str:
    if value is None and nullable:
        return ""
    if not isinstance(value, str):
        raise InvalidOptions(f"{name} must be a string, got {type(value).__name__}")
    return value


def resolve_category(value: str | None) -> MemoCategory:
    """メモ種別（別名含む、大文字小文字無視）を正規カテゴリに解決する"""
    raw = _require_str("category", value, nullable=True)
    return CATEGORY_ALIASES.get(raw.strip().lower(), DEFAULT_CATEGORY)


def select_template(value: str | None) -> str:
    return TEMPLATES[resolve_category(value)]


def with_references(prompt: str, reference_text: str) -> str:
    """参考資料ブロックを付与する。参考資料は加工せずそのまま埋め込む"""
    block = REFERENCE_TEMPLATE.format(
        begin=REFERENCE_BEGIN, reference=reference_text, end=REFERENCE_END
    )
    return f"{prompt}\n\n{block}"


def build_prompt(options: PromptOptions) -> str:
    """システムプロンプトを生成する

    連結順: 種別テンプレート -> 参考資料 -> 言語ノート -> 複雑度ノート

    Raises:
        InvalidOptions: 各値が文字列でない場合
    """
    if not isinstance(options, PromptOptions):
        raise InvalidOptions("options must be a PromptOptions instance")

    reference = _require_str("reference_text", options.reference_text, nullable=True)
    language = _require_str("language", options.language).strip().lower()
    complexity = _require_str("complexity", options.complexity).strip().lower()

    prompt = select_template(options.category)
    if reference:
        prompt = with_references(prompt, reference)
    if language in ("ja", "mixed"):
        prompt += f"\n\n{LANGUAGE_BLOCK}"
    if complexity == "complex":
        prompt += f"\n\n{COMPLEXITY_BLOCK}"
    return prompt


def build_clarification_prompt(question: str, excerpt: str) -> str:
    """不明箇所についての追加質問用プロンプト"""
    question = _require_str("question", question)
    excerpt = _require_str("excerpt", excerpt)
    return CLARIFICATION_TEMPLATE.format(question=question, excerpt=excerpt)


def build_character_analysis_prompt(context: str, position: str, surrounding: str) -> str:
    """判読困難な1文字（1語）の分析用プロンプト"""
    context = _require_str("context", context)
    position = _require_str("position", position)
    surrounding = _require_str("surrounding", surrounding)
    return CHARACTER_ANALYSIS_TEMPLATE.format(
        context=context, position=position, surrounding=surrounding
    )
