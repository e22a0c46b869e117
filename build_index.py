"""
BUILD INDEX SCRIPT
==================

Embeds the posts in data/sources/ and writes data/index.json.

USAGE:
  python build_index.py

  Needs OPENAI_API_KEY (in .env or the shell). Re-run after adding posts, then
  restart the server or POST /api/index/reload.
"""

import asyncio
import logging
import sys

import httpx

from config import OPENAI_API_KEY, OPENAI_TIMEOUT_SECONDS, SOURCES_DIR, INDEX_FILE
from scribe.errors import ScribeError
from scribe.services.index_builder import build_index
from scribe.services.vector_store import EmbeddingClient


async def main() -> int:
    if not OPENAI_API_KEY:
        print("OPENAI_API_KEY missing.")
        print("   - Local: add it to .env at project root OR your shell env.")
        return 1
    async with httpx.AsyncClient(timeout=OPENAI_TIMEOUT_SECONDS) as http_client:
        try:
            await build_index(SOURCES_DIR, INDEX_FILE, EmbeddingClient(http_client))
        except (FileNotFoundError, ValueError, ScribeError) as e:
            print(e)
            return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(message)s")
    sys.exit(asyncio.run(main()))
