"""
COMPLETION SERVICE MODULE
=========================

One bounded call to the Responses endpoint (POST {base}/responses).

FLOW (CompletionClient.call_once):
  1. Refuse early: no API key -> AuthError; a model id that can't generate
     text (embedding, moderation, audio, image models) -> ModelMismatchError.
  2. Serialize the messages as the structured `input` array and clamp the
     token budget into [MIN_OUTPUT_TOKENS, cap].
  3. Non-2xx: 404 or "model ... not found" -> ModelMismatchError, anything
     else -> UpstreamHTTPError(status, message). Timeouts and connection
     failures -> UpstreamError. Nothing here is retried.
  4. Success: text via the response extractor, plus the truncation marker
     (`incomplete_details.reason` when `status` is "incomplete").
"""

import logging
import re
from typing import Any, Optional, Sequence

import httpx

from config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    MIN_OUTPUT_TOKENS,
    MAX_OUTPUT_TOKENS_CAP,
)
from scribe.errors import ModelMismatchError, UpstreamHTTPError
from scribe.models import ChatMessage, CompletionResult
from scribe.services.openai_http import auth_headers, error_message, transport_error
from scribe.services.response_extractor import extract_text


logger = logging.getLogger("scribe")

_NON_TEXT_MODEL = re.compile(
    r"^(text-embedding|text-moderation|omni-moderation|whisper|tts|dall-e|gpt-image|babbage|davinci-00)",
    re.IGNORECASE,
)
_MODEL_NOT_FOUND = re.compile(r"model.*not.*found|does not exist", re.IGNORECASE)


def clamp_budget(tokens: float, cap: int = MAX_OUTPUT_TOKENS_CAP) -> int:
    """Clamp a token budget into [MIN_OUTPUT_TOKENS, cap]."""
    return max(MIN_OUTPUT_TOKENS, min(int(cap), int(tokens)))


def serialize_messages(messages: Sequence[ChatMessage]) -> list:
    return [{"role": m.role, "content": m.content} for m in messages]


def read_incomplete_reason(payload: Any) -> Optional[str]:
    """`incomplete_details.reason` (or "incomplete" if status says so without a reason)."""
    if not isinstance(payload, dict):
        return None
    details = payload.get("incomplete_details")
    if isinstance(details, dict) and isinstance(details.get("reason"), str) and details["reason"]:
        return details["reason"]
    if payload.get("status") == "incomplete":
        return "incomplete"
    return None


class CompletionClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_MODEL,
        base_url: str = OPENAI_BASE_URL,
        budget_cap: int = MAX_OUTPUT_TOKENS_CAP,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url}/responses"
        self.budget_cap = budget_cap

    async def call_once(self, messages: Sequence[ChatMessage], token_budget: int) -> CompletionResult:
        headers = auth_headers(self.api_key)
        if _NON_TEXT_MODEL.match(self.model):
            raise ModelMismatchError(self.model, f"{self.model} cannot be used with the Responses endpoint")

        body = {
            "model": self.model,
            "input": serialize_messages(messages),
            "max_output_tokens": clamp_budget(token_budget, self.budget_cap),
        }
        try:
            response = await self.http_client.post(self.url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise transport_error(e, "Completion request") from e

        if not response.is_success:
            message = error_message(response)
            logger.error("OpenAI error: %s %s", response.status_code, message)
            if response.status_code == 404 or _MODEL_NOT_FOUND.search(message):
                raise ModelMismatchError(self.model, message)
            raise UpstreamHTTPError(response.status_code, message)

        try:
            payload = response.json()
        except ValueError:
            raise UpstreamHTTPError(response.status_code, "Completion response was not valid JSON")

        return CompletionResult(
            text=extract_text(payload),
            incomplete_reason=read_incomplete_reason(payload),
            raw_payload=payload,
        )
