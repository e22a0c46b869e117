"""
CONTINUATION MODULE
===================

Drives repeated completion calls while the model keeps getting cut off at the
token budget, and stitches the pieces together.

STATES:
  INIT     - accumulated = "", budget = initial budget, round = 0
  CALLING  - client.call_once(messages, budget)
  CHECK    - append the round's text (newline-separated); stop unless the
             reason is the truncation sentinel and rounds remain
  CONTINUE - add the produced text as an assistant turn plus a "continue
             where you stopped" user turn, grow the budget by the growth
             factor (re-clamped), next round
  DONE     - accumulated text + last reason

Rounds are strictly sequential: each prompt depends on the previous output.
The round cap guarantees termination even if every round is truncated.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Sequence

from config import (
    INITIAL_OUTPUT_TOKENS,
    MAX_OUTPUT_TOKENS_CAP,
    MAX_CONTINUATION_ROUNDS,
    MAX_ROUNDS_CEILING,
    BUDGET_GROWTH_FACTOR,
    TRUNCATION_REASON,
    CONTINUE_PROMPT,
)
from scribe.models import ChatMessage, CompletionResult
from scribe.services.completion_service import CompletionClient, clamp_budget


logger = logging.getLogger("scribe")


@dataclass
class ContinuationState:
    current_budget: int
    messages: List[ChatMessage] = field(default_factory=list)
    accumulated_text: str = ""
    round_index: int = 0
    last_reason: Optional[str] = None
    rounds_completed: int = 0

    def result(self) -> CompletionResult:
        return CompletionResult(text=self.accumulated_text, incomplete_reason=self.last_reason)


@dataclass
class RoundOutcome:
    """What one round added. `delta` is exactly what was appended to the accumulated text."""
    round_index: int
    budget: int
    text: str
    delta: str
    reason: Optional[str]
    final: bool


class ContinuationOrchestrator:
    def __init__(
        self,
        client: CompletionClient,
        max_rounds: int = MAX_CONTINUATION_ROUNDS,
        initial_budget: int = INITIAL_OUTPUT_TOKENS,
        budget_cap: int = MAX_OUTPUT_TOKENS_CAP,
        growth_factor: float = BUDGET_GROWTH_FACTOR,
    ):
        self.client = client
        self.max_rounds = min(MAX_ROUNDS_CEILING, max(1, int(max_rounds)))
        self.initial_budget = initial_budget
        self.budget_cap = budget_cap
        self.growth_factor = growth_factor

    def new_state(self, messages: Sequence[ChatMessage]) -> ContinuationState:
        return ContinuationState(
            current_budget=clamp_budget(self.initial_budget, self.budget_cap),
            messages=list(messages),
        )

    async def iter_rounds(self, state: ContinuationState) -> AsyncIterator[RoundOutcome]:
        """Run the loop on `state`, yielding after each round is classified."""
        while True:
            result = await self.client.call_once(state.messages, state.current_budget)
            text = result.text
            delta = ""
            if text:
                delta = "\n" + text if state.accumulated_text else text
                state.accumulated_text += delta
            state.last_reason = result.incomplete_reason
            state.rounds_completed = state.round_index + 1

            logger.info("Completion round %s/%s: budget=%s, %s chars, reason=%s",
                        state.round_index + 1, self.max_rounds, state.current_budget,
                        len(text), result.incomplete_reason)

            final = (
                result.incomplete_reason != TRUNCATION_REASON
                or state.round_index + 1 >= self.max_rounds
            )
            yield RoundOutcome(
                round_index=state.round_index,
                budget=state.current_budget,
                text=text,
                delta=delta,
                reason=result.incomplete_reason,
                final=final,
            )
            if final:
                return

            if text:
                state.messages.append(ChatMessage(role="assistant", content=text))
            state.messages.append(ChatMessage(role="user", content=CONTINUE_PROMPT))
            state.current_budget = clamp_budget(state.current_budget * self.growth_factor, self.budget_cap)
            state.round_index += 1

    async def run(self, messages: Sequence[ChatMessage]) -> ContinuationState:
        state = self.new_state(messages)
        async for _ in self.iter_rounds(state):
            pass
        return state
