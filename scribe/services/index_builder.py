"""
INDEX BUILDER MODULE
====================

Builds data/index.json from the author's posts in data/sources/ (.txt and .md).
Each file is split into overlapping chunks, each file's chunks are embedded in
batches, and the records are written as:

  {"model", "createdAt", "count", "records": [{"id", "file", "title",
   "content", "embedding", "chars"}]}

Run it through build_index.py; restart the server (or POST /api/index/reload)
afterwards so the new corpus is picked up.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from config import CHUNK_SIZE, CHUNK_OVERLAP, EMBED_BATCH_SIZE
from scribe.services.vector_store import EmbeddingClient


logger = logging.getLogger("scribe")

_SOURCE_SUFFIX = re.compile(r"\.(txt|md)$", re.IGNORECASE)


def load_source_documents(sources_dir: Path) -> List[Document]:
    """One Document per non-empty .txt/.md file, sorted by name so ids are stable."""
    documents = []
    for file_path in sorted(sources_dir.iterdir()):
        if not file_path.is_file() or not _SOURCE_SUFFIX.search(file_path.name):
            continue
        text = file_path.read_text(encoding="utf-8").replace("\r", "").strip()
        if text:
            documents.append(Document(
                page_content=text,
                metadata={"file": file_path.name, "title": _SOURCE_SUFFIX.sub("", file_path.name)},
            ))
    return documents


def split_documents(documents: List[Document]) -> List[Document]:
    splitter = RecursiveCharacterTextSplitter(chunk_size=CHUNK_SIZE, chunk_overlap=CHUNK_OVERLAP)
    return splitter.split_documents(documents)


async def build_records(chunks: List[Document], embedder: EmbeddingClient) -> List[Dict]:
    """Embed the chunks in batches and number them per source file (<file>#<n>)."""
    records = []
    per_file: Dict[str, int] = {}
    for start in range(0, len(chunks), EMBED_BATCH_SIZE):
        batch = chunks[start:start + EMBED_BATCH_SIZE]
        embeddings = await embedder.embed([doc.page_content for doc in batch])
        for doc, embedding in zip(batch, embeddings):
            file_name = doc.metadata["file"]
            n = per_file.get(file_name, 0)
            per_file[file_name] = n + 1
            records.append({
                "id": f"{file_name}#{n}",
                "file": file_name,
                "title": doc.metadata["title"],
                "content": doc.page_content,
                "embedding": embedding,
                "chars": len(doc.page_content),
            })
    return records


async def build_index(sources_dir: Path, out_file: Path, embedder: EmbeddingClient) -> int:
    """
    Build and write the index. Returns the number of records written.

    Raises FileNotFoundError when the sources folder is missing and ValueError
    when it holds no usable .txt/.md files.
    """
    if not sources_dir.exists():
        raise FileNotFoundError(f"Source folder not found: {sources_dir}")
    documents = load_source_documents(sources_dir)
    if not documents:
        raise ValueError(f"No .txt or .md files found in {sources_dir}. Add your posts first.")

    logger.info("Building index from %s source file(s)", len(documents))
    chunks = split_documents(documents)
    records = await build_records(chunks, embedder)

    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(json.dumps({
        "model": embedder.model,
        "createdAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "count": len(records),
        "records": records,
    }, indent=2), encoding="utf-8")
    logger.info("Wrote %s chunk(s) to %s", len(records), out_file)
    return len(records)
