"""
TEXT CLEANUP MODULE
===================

Deterministic string cleanup for generated text.

  normalize_text(s)    - runs the rule pipeline below, in order, and repeats the
                         pass until nothing changes. Later rules assume earlier
                         ones ran. normalize_text is idempotent:
                         normalize_text(normalize_text(s)) == normalize_text(s).
  smart_join(pieces)   - glue fragments together, adding a space only where
                         the seam would otherwise fuse two words or follow
                         punctuation without one.

Each rule is its own small function so it can be tested on its own.
"""

import re
import string
from typing import Iterable


# ==============================================================================
# NORMALIZATION RULES (applied in NORMALIZATION_RULES order)
# ==============================================================================

_LINE_ENDINGS = re.compile(r"\r\n?")
_FUSED_SENTENCE = re.compile(r"(?<=[A-Za-z0-9])[ \t]*\.(?=[A-Z])")
# Letters and "(" always get a space; digits only when the punctuation isn't
# itself between digits (keeps 1,000 and 10:30 intact).
_FUSED_PUNCT = re.compile(r"([,;:!?])(?=[A-Za-z(])|(?<![0-9])([,;:!?])(?=[0-9])")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+(?=[.,;:!?])")
_EG_IE = re.compile(r"\b([eEiI])[ \t]*\.[ \t]*([gGeE])[ \t]*\.([ \t]*)(?=(.?))")
_LOOSE_INITIALS = re.compile(r"\b([A-Z])\.[ \t]+([A-Z])\.")
_HORIZONTAL_RUNS = re.compile(r"[ \t]{2,}")
_DOUBLED_PERIOD = re.compile(r"(?<!\.)\.[ \t]*\.(?!\.)(?=(.?))")


def normalize_line_endings(text: str) -> str:
    return _LINE_ENDINGS.sub("\n", text)


def space_after_sentence_period(text: str) -> str:
    """"end.Next" / "end .Next" -> "end. Next" (the next word must start upper-case)."""
    return _FUSED_SENTENCE.sub(". ", text)


def space_after_punctuation(text: str) -> str:
    return _FUSED_PUNCT.sub(lambda m: (m.group(1) or m.group(2)) + " ", text)


def strip_space_before_punctuation(text: str) -> str:
    return _SPACE_BEFORE_PUNCT.sub("", text)


def canonicalize_abbreviations(text: str) -> str:
    """
    "e. g." / "i .e ." -> "e.g." / "i.e." (case of the letters is kept), followed by
    exactly one space when text follows on the same line.
    """

    def _fix(m: "re.Match[str]") -> str:
        first, second = m.group(1), m.group(2)
        if (first.lower(), second.lower()) not in (("e", "g"), ("i", "e")):
            return m.group(0)
        following = m.group(4)
        gap = " " if following and not following.isspace() and (m.group(3) or following.isalnum()) else ""
        return f"{first}.{second}.{gap}"

    return _EG_IE.sub(_fix, text)


def tighten_initials(text: str) -> str:
    """"U. S." -> "U.S." """
    return _LOOSE_INITIALS.sub(r"\1.\2.", text)


def collapse_spacing_artifacts(text: str) -> str:
    text = _HORIZONTAL_RUNS.sub(" ", text)
    # ". ." / ".." (not an ellipsis) becomes one period; keep a space if a word follows.
    return _DOUBLED_PERIOD.sub(lambda m: ". " if m.group(1).isalnum() else ".", text)


NORMALIZATION_RULES = (
    normalize_line_endings,
    space_after_sentence_period,
    space_after_punctuation,
    strip_space_before_punctuation,
    canonicalize_abbreviations,
    tighten_initials,
    collapse_spacing_artifacts,
)


# A pass only ever drops "\r", drops one period of a doubled pair, or moves
# single spaces, so the pipeline settles after a few passes.
MAX_NORMALIZATION_PASSES = 16


def _normalize_pass(text: str) -> str:
    for rule in NORMALIZATION_RULES:
        text = rule(text)
    return text


def normalize_text(text: str) -> str:
    """
    Apply every normalization rule, in order, until a pass changes nothing.

    One pass is not enough on its own: collapsing "A. .S." in the last rule
    leaves "A. S.", which the initials rule earlier in the pass would tighten.
    """
    for _ in range(MAX_NORMALIZATION_PASSES):
        cleaned = _normalize_pass(text)
        if cleaned == text:
            break
        text = cleaned
    return text


# ==============================================================================
# SMART JOIN
# ==============================================================================

_TERMINAL_PUNCT = ".,;:!?"
_CLOSING_BRACKETS = ")]"
_SPACE_THEN_PUNCT = re.compile(r"[ \t]+([.,;:!?])")


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _needs_space(prev: str, nxt: str) -> bool:
    if _is_word_char(prev) and _is_word_char(nxt):
        return True
    if prev in _CLOSING_BRACKETS and _is_word_char(nxt):
        return True
    if prev in _TERMINAL_PUNCT:
        return not (nxt.isspace() or nxt in string.punctuation or nxt in _CLOSING_BRACKETS)
    return False


def smart_join(pieces: Iterable[str]) -> str:
    """
    Concatenate text fragments, inserting exactly one space at a seam only when
    it is needed: word|word, closing bracket|word, or punctuation|anything that
    isn't whitespace, punctuation or a closing bracket. Empty fragments are skipped.
    """
    out = ""
    for piece in pieces:
        if not piece:
            continue
        if out and _needs_space(out[-1], piece[0]):
            out += " "
        out += piece
    return _SPACE_THEN_PUNCT.sub(r"\1", out)
