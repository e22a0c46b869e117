"""
RESPONSE EXTRACTOR MODULE
=========================

Recovers the generated text from whatever JSON the completion endpoint sent
back. The canonical Responses payload carries a top-level `output_text`; when
it doesn't (older shapes, chat-completions style `choices`, streamed event
lists, wrapped proxies) we walk the tree and keep only assistant output.

RULES:
  - Fast path: a top-level `output_text` string (or list of strings) wins and
    everything else in the payload is ignored.
  - Otherwise walk depth-first in document order. A node's `role` is inherited
    by everything below it until another `role` overrides it.
  - A text field (output_text, text, content, value, message) is collected
    only when the inherited role is "assistant" or the node's own `type` says
    output_text / text / refusal. System or user echoes and tool-call arguments
    are never collected.
  - `delta` fields are unwrapped one level: a string is collected as-is, an
    object is walked. A dict-valued `text` is unwrapped the same way.
  - Container fields (output, content, message, messages, choices, arguments,
    items, parts, data) are walked with the role carried forward.
  - Fragments are joined with smart_join, normalized, and trimmed.

extract_text() never raises: malformed input yields "".
"""

import logging
from typing import Any, List, Optional, Set

from scribe.services.text_cleanup import normalize_text, smart_join


logger = logging.getLogger("scribe")

TEXT_FIELDS = ("output_text", "text", "content", "value", "message")
CONTAINER_FIELDS = ("output", "content", "message", "messages", "choices", "arguments", "items", "parts", "data")
UNWRAP_FIELDS = ("delta", "text")
OUTPUT_TYPES = frozenset({"output_text", "text", "refusal"})

# Deeper than any real payload; stops pathological nesting.
MAX_DEPTH = 64


def _finish(fragments: List[str]) -> str:
    return normalize_text(smart_join(fragments)).strip()


def _direct_text(payload: Any) -> Optional[List[str]]:
    if not isinstance(payload, dict):
        return None
    value = payload.get("output_text")
    if isinstance(value, str) and value.strip():
        return [value]
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    return None


class _Walker:
    """Depth-first collector. Tracks visited containers so cyclic input can't loop."""

    def __init__(self):
        self.fragments: List[str] = []
        self._seen: Set[int] = set()

    def walk(self, node: Any, role: Optional[str], depth: int) -> None:
        if depth > MAX_DEPTH:
            return
        if isinstance(node, list):
            if not self._enter(node):
                return
            for item in node:
                self.walk(item, role, depth + 1)
            return
        if isinstance(node, dict):
            if not self._enter(node):
                return
            self._visit_object(node, role, depth)
        # Strings reached directly (e.g. items of a list) carry no field name
        # to judge them by, and numbers/bools/None carry no text.

    def _enter(self, node: Any) -> bool:
        key = id(node)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def _visit_object(self, node: dict, role: Optional[str], depth: int) -> None:
        own_role = node.get("role")
        if isinstance(own_role, str) and own_role:
            role = own_role
        node_type = node.get("type")
        collectible = role == "assistant" or (isinstance(node_type, str) and node_type in OUTPUT_TYPES)

        if collectible:
            for field in TEXT_FIELDS:
                value = node.get(field)
                if isinstance(value, str) and value:
                    self.fragments.append(value)

        for field in UNWRAP_FIELDS:
            value = node.get(field)
            if field == "delta" and isinstance(value, str) and value:
                self.fragments.append(value)
            elif isinstance(value, dict):
                self.walk(value, role, depth + 1)

        for field in CONTAINER_FIELDS:
            child = node.get(field)
            if isinstance(child, (dict, list)):
                self.walk(child, role, depth + 1)


def extract_text(payload: Any) -> str:
    """
    Return the generated text in `payload`, normalized and trimmed, or "" if
    nothing recognisable is there.
    """
    try:
        direct = _direct_text(payload)
        if direct is not None:
            return _finish(direct)
        walker = _Walker()
        walker.walk(payload, None, 0)
        return _finish(walker.fragments)
    except RecursionError:
        logger.warning("Response payload nested too deeply; returning empty text")
        return ""
