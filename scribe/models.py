"""
DATA MODELS MODULE
==================

This file defines the Pydantic models used for API requests, responses, and
the values passed between pipeline stages. FastAPI uses these to validate
incoming JSON and to serialize responses.

MODELS:
  ChatMessage      - One role-tagged message (system, user or assistant).
  ChatRequest      - Body of POST /api/chat and POST /api/chat/stream.
  RetrievedChunk   - One excerpt selected from the corpus, with its score.
  ReferenceInfo    - What the client sees of a retrieved chunk (no content).
  CompletionResult - Text + truncation marker + raw payload of one call.
  ChatResponse     - Reply envelope (text, optional warning, round info).
"""

from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional

from config import MAX_MESSAGE_LENGTH

Role = Literal["system", "user", "assistant"]

# ==============================================================================
# MESSAGES
# ==============================================================================

class ChatMessage(BaseModel):
    """
    A single message in a conversation. Order in the list defines chronology;
    the pipeline never reorders messages.
    """
    role: Role
    content: str


# ==============================================================================
# REQUEST / RESPONSE MODELS
# ==============================================================================

class ChatRequest(BaseModel):
    """
    Request body for POST /api/chat and POST /api/chat/stream.

    - message: The writing prompt. Optional only because a client may instead
      send a conversation in `messages`; then the last user message is used.
      If neither carries user text the endpoint answers 400.
    - tone / length: Style directive names. Unknown names fall back to
      "balanced" / "standard" instead of failing.
    - use_references: Attach retrieved excerpts from the author's posts.
    - top_k: Override the configured number of excerpts.
    """
    message: Optional[str] = Field(None, max_length=MAX_MESSAGE_LENGTH)
    messages: Optional[List[ChatMessage]] = None
    tone: str = "balanced"
    length: str = "standard"
    use_references: bool = True
    top_k: Optional[int] = Field(None, ge=1, le=20)


class RetrievedChunk(BaseModel):
    title: str
    source_id: str
    content: str
    score: float


class ReferenceInfo(BaseModel):
    title: str
    source_id: str
    score: float


class CompletionResult(BaseModel):
    """
    Outcome of one completion call (or of a whole continuation run).

    incomplete_reason is "max_output_tokens" when the endpoint stopped at the
    token budget, another string for other early stops, None when finished.
    """
    text: str
    incomplete_reason: Optional[str] = None
    raw_payload: Any = None


class ChatResponse(BaseModel):
    """
    Response body for POST /api/chat. Upstream failures still come back with
    HTTP 200: `reply` is then empty and `warning` explains what went wrong.
    """
    reply: str
    warning: Optional[str] = None
    incomplete_reason: Optional[str] = None
    rounds: int = 0
    references: List[ReferenceInfo] = Field(default_factory=list)
