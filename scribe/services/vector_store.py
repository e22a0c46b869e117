"""
VECTOR STORE SERVICE MODULE
===========================

This service holds the embedded corpus of the author's past posts and ranks it
against a query. The corpus (data/index.json, written by build_index.py) and
the voice/style document (data/style.md) are loaded once at startup and kept
in memory as one immutable snapshot.

LIFECYCLE:
  - CorpusStore.load(): read index + style document, build a new snapshot,
    then swap it in with a single assignment. Called at startup and by
    POST /api/index/reload. Readers that already hold the old snapshot keep
    using it until their request finishes.
  - CorpusStore.snapshot(): the current snapshot; take it once per request.
  - EmbeddingClient.embed(texts): POST {base}/embeddings, one vector per input.
  - RetrievalRanker.retrieve(query, top_k, max_chars_total): embed the query,
    score every record by cosine similarity, keep the best ones that fit the
    character budget.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import httpx
import numpy as np

from config import (
    INDEX_FILE,
    STYLE_FILE,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_EMBED_MODEL,
    RAG_TOP_K,
    RAG_MAX_CHARS,
    RAG_MIN_REMAINING_CHARS,
    load_style_document,
)
from scribe.errors import UpstreamError
from scribe.models import RetrievedChunk
from scribe.services.openai_http import auth_headers, raise_for_upstream, transport_error
from scribe.utils.retry import with_retry


logger = logging.getLogger("scribe")

# Keeps cosine finite for zero vectors.
COSINE_EPSILON = 1e-8


# ==============================================================================
# CORPUS SNAPSHOT AND STORE
# ==============================================================================

@dataclass(frozen=True)
class CorpusRecord:
    source_id: str
    title: str
    content: str


@dataclass(frozen=True, eq=False)
class CorpusSnapshot:
    """One loaded corpus. Never mutated; a reload builds a new one."""
    version: int = 0
    records: Tuple[CorpusRecord, ...] = ()
    matrix: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=np.float32))
    style_document: str = ""
    embed_model: str = ""

    @property
    def count(self) -> int:
        return len(self.records)


def read_index_file(path: Path) -> Tuple[List[CorpusRecord], np.ndarray, str]:
    """
    Parse an index file into records and an (n, dim) float32 matrix.

    Records without a usable embedding, or whose dimension differs from the
    first good record, are skipped with a warning. A missing file is an empty
    corpus.
    """
    if not path.exists():
        logger.warning("Corpus index %s not found; retrieval disabled until it is built", path)
        return [], np.zeros((0, 0), dtype=np.float32), ""

    data = json.loads(path.read_text(encoding="utf-8"))
    raw_records = data.get("records", []) if isinstance(data, dict) else []
    records: List[CorpusRecord] = []
    vectors: List[List[float]] = []
    dim: Optional[int] = None

    for i, raw in enumerate(raw_records):
        if not isinstance(raw, dict):
            continue
        embedding = raw.get("embedding")
        content = raw.get("content")
        if not isinstance(content, str) or not isinstance(embedding, list) or not embedding:
            logger.warning("Skipping corpus record %s: missing content or embedding", raw.get("id", i))
            continue
        if dim is None:
            dim = len(embedding)
        elif len(embedding) != dim:
            logger.warning("Skipping corpus record %s: embedding has %s dims, expected %s",
                           raw.get("id", i), len(embedding), dim)
            continue
        file_name = str(raw.get("file", ""))
        records.append(CorpusRecord(
            source_id=str(raw.get("id") or f"{file_name}#{i}"),
            title=str(raw.get("title") or file_name or "Untitled"),
            content=content,
        ))
        vectors.append(embedding)

    matrix = np.asarray(vectors, dtype=np.float32) if vectors else np.zeros((0, 0), dtype=np.float32)
    model = str(data.get("model", "")) if isinstance(data, dict) else ""
    return records, matrix, model


class CorpusStore:
    """
    Process-wide holder of the current CorpusSnapshot.

    The snapshot reference is the only shared state; load() replaces it
    wholesale, so a reader sees either the old corpus or the new one.
    """

    def __init__(self, index_file: Path = INDEX_FILE, style_file: Path = STYLE_FILE):
        self.index_file = index_file
        self.style_file = style_file
        self._snapshot = CorpusSnapshot()
        self._reload_lock = threading.Lock()

    def snapshot(self) -> CorpusSnapshot:
        return self._snapshot

    def load(self) -> CorpusSnapshot:
        with self._reload_lock:
            records, matrix, model = read_index_file(self.index_file)
            style = load_style_document(self.style_file)
            new = CorpusSnapshot(
                version=self._snapshot.version + 1,
                records=tuple(records),
                matrix=matrix,
                style_document=style,
                embed_model=model,
            )
            self._snapshot = new
        logger.info("Corpus loaded: version %s, %s record(s), style guide %s",
                    new.version, new.count, "present" if new.style_document else "absent")
        return new


# ==============================================================================
# EMBEDDINGS
# ==============================================================================

class EmbeddingClient:
    """Calls the embeddings endpoint. Transport failures are retried; HTTP errors are not."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_EMBED_MODEL,
        base_url: str = OPENAI_BASE_URL,
        retry_delay: float = 1.0,
    ):
        self.http_client = http_client
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url}/embeddings"
        self.retry_delay = retry_delay

    async def embed(self, texts: Union[str, Sequence[str]]) -> List[List[float]]:
        inputs = [texts] if isinstance(texts, str) else list(texts)
        if not inputs:
            return []
        headers = auth_headers(self.api_key)
        body = {"input": inputs if len(inputs) > 1 else inputs[0], "model": self.model}

        async def _post() -> httpx.Response:
            return await self.http_client.post(self.url, headers=headers, json=body)

        try:
            response = await with_retry(_post, initial_delay=self.retry_delay, retry_on=(httpx.TransportError,))
        except httpx.HTTPError as e:
            raise transport_error(e, "Embeddings request") from e
        raise_for_upstream(response, "Embeddings API")

        try:
            vectors = [item["embedding"] for item in response.json()["data"]]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed embeddings response: {e}") from e
        if len(vectors) != len(inputs):
            raise UpstreamError(f"Embeddings response had {len(vectors)} vector(s) for {len(inputs)} input(s)")
        return vectors


# ==============================================================================
# RETRIEVAL
# ==============================================================================

def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """dot / (|a| * |b| + eps) for every row of matrix against query."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    return (matrix @ query) / (norms + COSINE_EPSILON)


class RetrievalRanker:
    def __init__(
        self,
        store: CorpusStore,
        embedder: EmbeddingClient,
        top_k: int = RAG_TOP_K,
        max_chars_total: int = RAG_MAX_CHARS,
        min_remaining_chars: int = RAG_MIN_REMAINING_CHARS,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = top_k
        self.max_chars_total = max_chars_total
        self.min_remaining_chars = min_remaining_chars

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        max_chars_total: Optional[int] = None,
        snapshot: Optional[CorpusSnapshot] = None,
    ) -> List[RetrievedChunk]:
        """
        Return up to top_k chunks, best first, whose contents add up to at most
        max_chars_total characters. The last chunk is cut to fit the budget;
        selection stops once fewer than min_remaining_chars are left.

        Raises UpstreamError (or a subclass) if the query can't be embedded.
        """
        snapshot = snapshot or self.store.snapshot()
        top_k = self.top_k if top_k is None else top_k
        budget = self.max_chars_total if max_chars_total is None else max_chars_total
        if snapshot.count == 0 or top_k <= 0 or budget <= 0:
            return []

        query_vec = np.asarray((await self.embedder.embed(query))[0], dtype=np.float32)
        if query_vec.shape[0] != snapshot.matrix.shape[1]:
            raise UpstreamError(
                f"Query embedding has {query_vec.shape[0]} dims but the corpus has "
                f"{snapshot.matrix.shape[1]}; rebuild the index with {self.embedder.model}"
            )

        scores = cosine_scores(snapshot.matrix, query_vec)
        # Stable sort keeps corpus order for equal scores.
        order = np.argsort(-scores, kind="stable")

        selected: List[RetrievedChunk] = []
        remaining = budget
        for idx in order:
            if len(selected) >= top_k or remaining < self.min_remaining_chars:
                break
            record = snapshot.records[int(idx)]
            content = record.content[:remaining]
            selected.append(RetrievedChunk(
                title=record.title,
                source_id=record.source_id,
                content=content,
                score=float(scores[idx]),
            ))
            remaining -= len(content)

        logger.info("Retrieved %s chunk(s) from corpus v%s for query (%s chars)",
                    len(selected), snapshot.version, len(query))
        return selected
