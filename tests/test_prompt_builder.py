from config import FORMATTING_RULES_PROMPT, ROLE_FRAMING_PROMPT, STYLE_DOC_MAX_BYTES
from scribe.models import RetrievedChunk
from scribe.services.prompt_builder import (
    EXCERPTS_HEADER,
    LENGTHS,
    TONES,
    build_messages,
    cap_bytes,
    format_excerpts,
    resolve_style,
)


def chunk(title, content, score=0.9):
    return RetrievedChunk(title=title, source_id=f"{title}.md#0", content=content, score=score)


def test_formal_concise_without_corpus():
    messages = build_messages("Write about remote work", tone="formal", length="concise", chunks=[])
    text = "\n".join(m.content for m in messages)
    assert EXCERPTS_HEADER not in text
    assert "Use a formal, polished tone with precise wording, complete sentences, and no slang." in text
    assert LENGTHS["concise"] in messages[1].content


def test_message_order_and_roles():
    messages = build_messages("My prompt", style_document="Short sentences.")
    assert [m.role for m in messages] == ["system", "system", "user"]
    first = messages[0].content
    assert first.startswith(ROLE_FRAMING_PROMPT)
    assert first.index("Voice and style guide:\nShort sentences.") < first.index(FORMATTING_RULES_PROMPT)
    assert messages[1].content.startswith("Style directive:")
    assert messages[2].content == "My prompt"


def test_style_guide_section_is_omitted_when_empty():
    messages = build_messages("x", style_document="")
    assert "Voice and style guide" not in messages[0].content


def test_excerpts_are_appended_after_formatting_rules():
    messages = build_messages("x", chunks=[chunk("Marathon", "I ran."), chunk("Coffee", "I drank.")])
    first = messages[0].content
    assert first.index(FORMATTING_RULES_PROMPT) < first.index(EXCERPTS_HEADER)
    assert "[1] Marathon\nI ran." in first
    assert "[2] Coffee\nI drank." in first


def test_excerpt_preview_is_cut():
    block = format_excerpts([chunk("Long", "x" * 50)], preview_chars=10)
    assert block.endswith("[1] Long\n" + "x" * 10)


def test_unknown_tone_and_length_fall_back_to_defaults():
    assert resolve_style("sarcastic", "epic") == (TONES["balanced"], LENGTHS["standard"])
    assert resolve_style("", "") == (TONES["balanced"], LENGTHS["standard"])


def test_style_names_are_case_insensitive():
    assert resolve_style(" Witty ", "LONGFORM") == (TONES["witty"], LENGTHS["longform"])


def test_cap_bytes_keeps_whole_characters():
    assert cap_bytes("abc", 10) == "abc"
    assert cap_bytes("ééé", 3) == "é"


def test_long_style_document_is_capped():
    messages = build_messages("x", style_document="y" * (STYLE_DOC_MAX_BYTES + 500))
    assert "y" * STYLE_DOC_MAX_BYTES in messages[0].content
    assert "y" * (STYLE_DOC_MAX_BYTES + 1) not in messages[0].content
