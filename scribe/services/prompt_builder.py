"""
PROMPT BUILDER MODULE
=====================

Turns a writing request into the ordered message list sent to the model:

  1. system - role framing + optional style guide (byte-capped) + formatting
              rules + reference excerpts (only when any were retrieved)
  2. system - the resolved style directive (tone phrase, target length)
  3. user   - the user's text, verbatim

Tone and length names resolve through fixed tables; unknown names fall back to
"balanced" / "standard".
"""

from typing import List, Sequence, Tuple

from config import (
    ROLE_FRAMING_PROMPT,
    FORMATTING_RULES_PROMPT,
    STYLE_DOC_MAX_BYTES,
    EXCERPT_PREVIEW_CHARS,
)
from scribe.models import ChatMessage, RetrievedChunk


DEFAULT_TONE = "balanced"
DEFAULT_LENGTH = "standard"

TONES = {
    "balanced": "Use a balanced, approachable tone: confident, clear, and warm without being casual.",
    "formal": "Use a formal, polished tone with precise wording, complete sentences, and no slang.",
    "casual": "Use a relaxed, conversational tone, as if talking to a friend over coffee.",
    "persuasive": "Use a persuasive tone that builds a clear argument and ends with a call to action.",
    "witty": "Use a witty, playful tone with light humor that never undercuts the substance.",
    "empathetic": "Use an empathetic, encouraging tone that acknowledges the reader's challenges.",
    "authoritative": "Use an authoritative, expert tone backed by concrete examples and specifics.",
}

LENGTHS = {
    "concise": "Target length: about 300-500 words.",
    "standard": "Target length: about 700-900 words.",
    "detailed": "Target length: about 1200-1500 words.",
    "longform": "Target length: about 2000-2500 words, with clear sections.",
}

EXCERPTS_HEADER = "Reference excerpts from the author's past posts (match their voice; do not copy them verbatim):"


def resolve_style(tone: str, length: str) -> Tuple[str, str]:
    """(tone phrase, length phrase) for the given names, using defaults for unknown ones."""
    tone_key = (tone or "").strip().lower()
    length_key = (length or "").strip().lower()
    return (
        TONES.get(tone_key, TONES[DEFAULT_TONE]),
        LENGTHS.get(length_key, LENGTHS[DEFAULT_LENGTH]),
    )


def cap_bytes(text: str, max_bytes: int) -> str:
    """Truncate to at most max_bytes of UTF-8 without splitting a character."""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def format_excerpts(chunks: Sequence[RetrievedChunk], preview_chars: int = EXCERPT_PREVIEW_CHARS) -> str:
    lines = [EXCERPTS_HEADER]
    for i, chunk in enumerate(chunks, 1):
        lines.append(f"[{i}] {chunk.title}\n{chunk.content[:preview_chars].strip()}")
    return "\n\n".join(lines)


def build_messages(
    user_text: str,
    tone: str = DEFAULT_TONE,
    length: str = DEFAULT_LENGTH,
    chunks: Sequence[RetrievedChunk] = (),
    style_document: str = "",
) -> List[ChatMessage]:
    parts = [ROLE_FRAMING_PROMPT]
    if style_document:
        parts.append("Voice and style guide:\n" + cap_bytes(style_document, STYLE_DOC_MAX_BYTES))
    parts.append(FORMATTING_RULES_PROMPT)
    if chunks:
        parts.append(format_excerpts(chunks))

    tone_phrase, length_phrase = resolve_style(tone, length)
    directive = f"Style directive:\n- {tone_phrase}\n- {length_phrase}"

    return [
        ChatMessage(role="system", content="\n\n".join(parts)),
        ChatMessage(role="system", content=directive),
        ChatMessage(role="user", content=user_text),
    ]
