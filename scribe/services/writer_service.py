"""
WRITER SERVICE MODULE
=====================

The one place that runs the whole drafting pipeline for a request:

  user text -> retrieve excerpts (optional) -> build prompt
            -> continuation loop { completion call -> extract -> normalize }
            -> reply (or streamed pieces) + warnings

The corpus snapshot is taken once at the start of a request, so a reload that
lands mid-request doesn't change what this request sees. Retrieval failures are
logged and the draft goes ahead without excerpts.

compose() raises ScribeError subclasses when a completion call fails before any
text was produced; the API layer turns them into warnings. A failure in a
later round returns the text so far with the warning attached, matching what
the stream has already sent. stream_compose() is the same pipeline as an async
generator of StreamPiece (text per round, then at most one warning).
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Tuple

from config import TRUNCATION_REASON
from scribe.errors import EMPTY_OUTPUT_WARNING, ScribeError, incomplete_warning, warning_for
from scribe.models import ChatMessage, ChatRequest, ReferenceInfo, RetrievedChunk
from scribe.services.continuation import ContinuationOrchestrator
from scribe.services.prompt_builder import build_messages
from scribe.services.streaming import StreamPiece, text_piece, warning_piece
from scribe.services.vector_store import CorpusSnapshot, CorpusStore, RetrievalRanker
from scribe.utils.sequences import find_last


logger = logging.getLogger("scribe")


def resolve_user_text(request: ChatRequest) -> Optional[str]:
    """The explicit message, else the last non-empty user message of the conversation."""
    if request.message and request.message.strip():
        return request.message
    last_user = find_last(request.messages or [], lambda m: m.role == "user" and bool(m.content.strip()))
    return last_user.content if last_user else None


@dataclass
class DraftResult:
    reply: str
    warning: Optional[str] = None
    incomplete_reason: Optional[str] = None
    rounds: int = 0
    references: List[ReferenceInfo] = field(default_factory=list)


class WriterService:
    def __init__(
        self,
        store: CorpusStore,
        ranker: RetrievalRanker,
        orchestrator: ContinuationOrchestrator,
    ):
        self.store = store
        self.ranker = ranker
        self.orchestrator = orchestrator

    async def _retrieve(self, query: str, request: ChatRequest, snapshot: CorpusSnapshot) -> List[RetrievedChunk]:
        if not request.use_references:
            return []
        try:
            return await self.ranker.retrieve(query, top_k=request.top_k, snapshot=snapshot)
        except ScribeError as e:
            logger.warning("Retrieval failed, drafting without excerpts: %s", e)
            return []

    async def prepare(self, user_text: str, request: ChatRequest) -> Tuple[List[ChatMessage], List[RetrievedChunk]]:
        snapshot = self.store.snapshot()
        chunks = await self._retrieve(user_text, request, snapshot)
        messages = build_messages(
            user_text,
            tone=request.tone,
            length=request.length,
            chunks=chunks,
            style_document=snapshot.style_document,
        )
        return messages, chunks

    @staticmethod
    def _references(chunks: List[RetrievedChunk]) -> List[ReferenceInfo]:
        return [ReferenceInfo(title=c.title, source_id=c.source_id, score=c.score) for c in chunks]

    @staticmethod
    def _final_warning(text: str, reason: Optional[str], rounds: int) -> Optional[str]:
        if not text.strip() and not reason:
            return EMPTY_OUTPUT_WARNING
        return incomplete_warning(reason, rounds, TRUNCATION_REASON)

    async def compose(self, user_text: str, request: ChatRequest) -> DraftResult:
        messages, chunks = await self.prepare(user_text, request)
        state = self.orchestrator.new_state(messages)
        try:
            async for _ in self.orchestrator.iter_rounds(state):
                pass
        except ScribeError as e:
            if not state.accumulated_text:
                raise
            # Later round failed: keep what the earlier rounds produced.
            logger.warning("Round %s failed after %s chars; returning partial draft: %s",
                           state.round_index + 1, len(state.accumulated_text), e)
            return DraftResult(
                reply=state.accumulated_text,
                warning=warning_for(e),
                incomplete_reason=state.last_reason,
                rounds=state.rounds_completed,
                references=self._references(chunks),
            )
        return DraftResult(
            reply=state.accumulated_text,
            warning=self._final_warning(state.accumulated_text, state.last_reason, state.rounds_completed),
            incomplete_reason=state.last_reason,
            rounds=state.rounds_completed,
            references=self._references(chunks),
        )

    async def stream_compose(self, user_text: str, request: ChatRequest) -> AsyncIterator[StreamPiece]:
        messages, _ = await self.prepare(user_text, request)
        state = self.orchestrator.new_state(messages)
        async for outcome in self.orchestrator.iter_rounds(state):
            if outcome.delta:
                yield text_piece(outcome.delta)
        warning = self._final_warning(state.accumulated_text, state.last_reason, state.rounds_completed)
        if warning:
            yield warning_piece(warning)
