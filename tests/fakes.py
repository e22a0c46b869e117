"""Stand-in collaborators for the completion and embedding endpoints."""

from typing import Dict, List, Optional, Sequence, Union

from scribe.models import ChatMessage, CompletionResult


class ScriptedCompletionClient:
    """
    Returns the scripted results in order (the last one repeats). An exception
    in the script is raised instead of returned. Every call is recorded.
    """

    def __init__(self, results: list):
        self.results = results
        self.calls: List[tuple] = []

    async def call_once(self, messages: Sequence[ChatMessage], token_budget: int) -> CompletionResult:
        self.calls.append((list(messages), token_budget))
        index = min(len(self.calls) - 1, len(self.results) - 1)
        item = self.results[index]
        if isinstance(item, BaseException):
            raise item
        return item


class FakeEmbedder:
    """Looks vectors up by text; unknown texts get `default`. Records every call."""

    model = "fake-embed"

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default=None, error=None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0]
        self.error = error
        self.calls: List[List[str]] = []

    async def embed(self, texts: Union[str, Sequence[str]]) -> List[List[float]]:
        inputs = [texts] if isinstance(texts, str) else list(texts)
        self.calls.append(inputs)
        if self.error is not None:
            raise self.error
        return [self.vectors.get(t, self.default) for t in inputs]


def result(text: str, reason: Optional[str] = None) -> CompletionResult:
    return CompletionResult(text=text, incomplete_reason=reason)
