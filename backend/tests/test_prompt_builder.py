import pytest

from memo_digitizer.core.errors import InvalidOptions
from memo_digitizer.core.services.prompt_builder import (
    BASE_TEMPLATE,
    COMPLEXITY_BLOCK,
    LANGUAGE_BLOCK,
    MEETING_SECTION,
    REFERENCE_BEGIN,
    REFERENCE_END,
    TECHNICAL_SECTION,
    MemoCategory,
    PromptOptions,
    build_character_analysis_prompt,
    build_clarification_prompt,
    build_prompt,
    resolve_category,
)


def test_build_prompt_is_deterministic():
    opts = PromptOptions(category="meeting", reference_text="用語集", complexity="complex")
    assert build_prompt(opts) == build_prompt(opts)


@pytest.mark.parametrize(
    "alias, canonical",
    [
        ("business", "meeting"),
        ("engineering", "technical"),
        ("design", "technical"),
        ("project", "planning"),
        ("MEETING", "meeting"),
        ("  Technical ", "technical"),
    ],
)
def test_aliases_produce_canonical_template(alias, canonical):
    assert build_prompt(PromptOptions(category=alias)) == build_prompt(
        PromptOptions(category=canonical)
    )


@pytest.mark.parametrize("category", ["", None, "unknown", "UnKnOwN", "会議"])
def test_unknown_category_falls_back_to_base(category):
    prompt = build_prompt(PromptOptions(category=category, language="en"))
    assert prompt == BASE_TEMPLATE
    assert resolve_category(category) is MemoCategory.GENERAL


def test_category_templates_extend_base():
    for category in ("meeting", "technical", "planning"):
        prompt = build_prompt(PromptOptions(category=category, language="en"))
        assert prompt.startswith(BASE_TEMPLATE)
        assert prompt != BASE_TEMPLATE


def test_markers_always_present():
    for category in ("general", "meeting", "technical", "planning"):
        prompt = build_prompt(PromptOptions(category=category))
        assert "[UNCLEAR: " in prompt
        assert "[TERM: " in prompt


def test_reference_text_is_embedded_verbatim():
    reference = "KPI: 重要業績評価指標\n  <tag> & {braces} \\n 末尾の空白  "
    prompt = build_prompt(PromptOptions(reference_text=reference))
    begin = prompt.index(REFERENCE_BEGIN) + len(REFERENCE_BEGIN) + 1
    end = prompt.index(REFERENCE_END) - 1
    assert prompt[begin:end] == reference


def test_empty_reference_adds_no_block():
    assert REFERENCE_BEGIN not in build_prompt(PromptOptions(reference_text=""))
    assert REFERENCE_BEGIN not in build_prompt(PromptOptions(reference_text=None))


@pytest.mark.parametrize("language, expected", [("ja", True), ("mixed", True), ("en", False)])
def test_language_block(language, expected):
    prompt = build_prompt(PromptOptions(language=language))
    assert (LANGUAGE_BLOCK in prompt) is expected


def test_complex_output_is_superset_of_standard():
    base = dict(category="technical", reference_text="glossary", language="mixed")
    standard = build_prompt(PromptOptions(complexity="standard", **base))
    complex_ = build_prompt(PromptOptions(complexity="complex", **base))
    assert standard in complex_
    assert COMPLEXITY_BLOCK in complex_
    assert COMPLEXITY_BLOCK not in standard


def test_blocks_are_appended_in_fixed_order():
    prompt = build_prompt(
        PromptOptions(
            category="planning", reference_text="ref", language="ja", complexity="complex"
        )
    )
    assert (
        prompt.index("ADDITIONAL CONTEXT")
        < prompt.index(REFERENCE_BEGIN)
        < prompt.index(LANGUAGE_BLOCK)
        < prompt.index(COMPLEXITY_BLOCK)
    )


def test_technical_prompt_excludes_meeting_rules():
    prompt = build_prompt(PromptOptions(category="technical"))
    assert TECHNICAL_SECTION in prompt
    assert MEETING_SECTION not in prompt


@pytest.mark.parametrize(
    "opts",
    [
        PromptOptions(category=123),
        PromptOptions(reference_text=["a"]),
        PromptOptions(language=None),
        PromptOptions(complexity=3),
    ],
)
def test_non_string_options_raise(opts):
    with pytest.raises(InvalidOptions):
        build_prompt(opts)


def test_non_options_value_raises():
    with pytest.raises(InvalidOptions):
        build_prompt({"category": "general"})


def test_follow_up_prompts():
    prompt = build_clarification_prompt("この数字は?", "売上 [UNCLEAR: 3か8]")
    assert "この数字は?" in prompt
    assert "売上 [UNCLEAR: 3か8]" in prompt

    prompt = build_character_analysis_prompt("会議の議題", "2行目3文字目", "新規{事業}")
    assert "2行目3文字目" in prompt
    assert "新規{事業}" in prompt

    with pytest.raises(InvalidOptions):
        build_clarification_prompt(None, "excerpt")
