import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import config` and `import scribe` work.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fakes import FakeEmbedder, ScriptedCompletionClient  # noqa: E402


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def scripted_client():
    """Factory: scripted_client(result_or_exc, ...) -> ScriptedCompletionClient."""
    return lambda *results: ScriptedCompletionClient(list(results))


@pytest.fixture
def write_index(tmp_path):
    """Write an index.json from (id, title, content, embedding) tuples; returns its path."""
    import json

    def _write(rows, name="index.json"):
        path = tmp_path / name
        path.write_text(json.dumps({
            "model": "fake-embed",
            "count": len(rows),
            "records": [
                {"id": rid, "file": rid.split("#")[0], "title": title, "content": content,
                 "embedding": emb, "chars": len(content)}
                for rid, title, content, emb in rows
            ],
        }), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_service(tmp_path, write_index):
    """
    Factory for a WriterService wired to a scripted completion client and a
    small two-record corpus. Returns (service, client, embedder).
    """
    from scribe.services.continuation import ContinuationOrchestrator
    from scribe.services.vector_store import CorpusStore, RetrievalRanker
    from scribe.services.writer_service import WriterService

    def _make(*results, rows=None, embedder=None, max_rounds=3):
        if rows is None:
            rows = [
                ("marathon.md#0", "Marathon", "Mile twenty hurt more than I expected.", [1.0, 0.0]),
                ("coffee.md#0", "Coffee", "Pour-over is a ritual, not a recipe.", [0.0, 1.0]),
            ]
        index = write_index(rows) if rows else tmp_path / "missing.json"
        store = CorpusStore(index_file=index, style_file=tmp_path / "style.md")
        store.load()
        embedder = embedder or FakeEmbedder()
        client = ScriptedCompletionClient(list(results))
        orchestrator = ContinuationOrchestrator(client, max_rounds=max_rounds,
                                                initial_budget=1000, budget_cap=4096)
        service = WriterService(store, RetrievalRanker(store, embedder), orchestrator)
        return service, client, embedder

    return _make
