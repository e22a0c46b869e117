"""
S.C.R.I.B.E MAIN API
====================

This module defines the FastAPI application and all HTTP endpoints. One person
runs one server (python run.py) as their own blog-drafting backend, with their
own posts in data/sources and their own style guide in data/style.md.

ENDPOINTS:
  GET  /                  - API name and list of endpoints (redirects to /app
                            when a public/ front-end is present).
  GET  /health            - Liveness plus which services are initialized.
  GET  /config            - Model, token limits and corpus version (no secrets).
  POST /api/chat          - Draft a post; returns the whole reply at once.
  POST /api/chat/stream   - Same, as a server-sent event stream.
  POST /api/index/reload  - Reload data/index.json and data/style.md.

ERRORS:
  A request without user text gets 400 "Missing 'message'.". Everything that
  goes wrong after that (missing key, model not available, upstream errors,
  empty output) comes back as a normal reply carrying a `warning`. Streams
  carry one warning frame and still end with [DONE].

STARTUP:
  The lifespan function opens the shared HTTP client, loads the corpus, and
  builds the services. On shutdown it closes the HTTP client.
"""


from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import AsyncIterator
import httpx
import uvicorn
import logging

from config import (
    OPENAI_API_KEY,
    OPENAI_MODEL,
    OPENAI_EMBED_MODEL,
    OPENAI_TIMEOUT_SECONDS,
    MAX_OUTPUT_TOKENS_CAP,
    MAX_CONTINUATION_ROUNDS,
    MAX_MESSAGE_LENGTH,
    PUBLIC_DIR,
    PORT,
)
from scribe.errors import ScribeError, warning_for
from scribe.models import ChatRequest, ChatResponse
from scribe.services.completion_service import CompletionClient
from scribe.services.continuation import ContinuationOrchestrator
from scribe.services.streaming import StreamEmitter, StreamPiece
from scribe.services.vector_store import CorpusStore, EmbeddingClient, RetrievalRanker
from scribe.services.writer_service import WriterService, resolve_user_text


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("scribe")


# -----------------------------------------------------------------------------
# GLOBAL SERVICE REFERENCES
# -----------------------------------------------------------------------------
# Set during startup (lifespan) and used by all route handlers.
http_client: httpx.AsyncClient = None
corpus_store: CorpusStore = None
writer_service: WriterService = None
stream_emitter: StreamEmitter = StreamEmitter()


def print_title():
    """Print the S.C.R.I.B.E banner to the console when the server starts."""
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"
    print(f"\n{BOLD}{CYAN}  S . C . R . I . B . E{RESET}\n  Drafts in your own voice\n")


# -------------------------------------------------------------------------
# LIFESPAN (STARTUP / SHUTDOWN)
# -------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    STARTUP, in order:
      1. Shared httpx.AsyncClient (used by both embedding and completion calls)
      2. CorpusStore: loads data/index.json and data/style.md
      3. RetrievalRanker (needs the store and an EmbeddingClient)
      4. ContinuationOrchestrator around a CompletionClient
      5. WriterService tying them together
    SHUTDOWN: closes the HTTP client.
    """
    global http_client, corpus_store, writer_service

    print_title()
    logger.info("=" * 60)
    logger.info("S.C.R.I.B.E - Starting Up...")
    logger.info("=" * 60)

    http_client = httpx.AsyncClient(timeout=httpx.Timeout(OPENAI_TIMEOUT_SECONDS, connect=10.0))
    try:
        corpus_store = CorpusStore()
        corpus_store.load()

        ranker = RetrievalRanker(corpus_store, EmbeddingClient(http_client))
        orchestrator = ContinuationOrchestrator(CompletionClient(http_client))
        writer_service = WriterService(corpus_store, ranker, orchestrator)

        if not OPENAI_API_KEY:
            logger.warning("OPENAI_API_KEY not set. Every draft will come back with a warning.")
        logger.info("Using model: %s (embeddings: %s)", OPENAI_MODEL, OPENAI_EMBED_MODEL)
        logger.info("Server running at http://localhost:%s", PORT)
        logger.info("=" * 60)

        yield
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        raise
    finally:
        await http_client.aclose()
        logger.info("Shutting down S.C.R.I.B.E. Goodbye!")


# -------------------------------------------------------------------------
# FASTAPI APP AND CORS
# -------------------------------------------------------------------------
app = FastAPI(
    title="S.C.R.I.B.E API",
    description="Blog drafts in the author's own voice",
    lifespan=lifespan
)

# Allow any origin so a frontend on another port or device can call this API without CORS errors.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================================================
# API ENDPOINTS
# =========================================================================

@app.get("/")
async def root():
    """Return the API name and a short description of each endpoint (for discovery)."""
    if PUBLIC_DIR.exists():
        return RedirectResponse(url="/app")
    return {
        "message": "S.C.R.I.B.E API",
        "endpoints": {
            "/api/chat": "Draft a post (whole reply at once)",
            "/api/chat/stream": "Draft a post (server-sent events)",
            "/api/index/reload": "Reload the corpus and style guide",
            "/config": "Model and limits",
            "/health": "System health check"
        }
    }


@app.get("/health")
async def health():
    """Liveness plus whether each service is initialized."""
    return {
        "ok": True,
        "port": PORT,
        "corpus_store": corpus_store is not None,
        "writer_service": writer_service is not None,
    }


@app.get("/config")
async def get_config():
    """Non-secret runtime configuration, for quick debugging."""
    snapshot = corpus_store.snapshot() if corpus_store else None
    return {
        "model": OPENAI_MODEL,
        "embed_model": OPENAI_EMBED_MODEL,
        "max_rounds": MAX_CONTINUATION_ROUNDS,
        "token_cap": MAX_OUTPUT_TOKENS_CAP,
        "api_key_configured": bool(OPENAI_API_KEY),
        "corpus": {
            "version": snapshot.version if snapshot else 0,
            "count": snapshot.count if snapshot else 0,
            "style_guide": bool(snapshot.style_document) if snapshot else False,
        },
    }


def _require_user_text(request: ChatRequest) -> str:
    user_text = resolve_user_text(request)
    if not user_text:
        raise HTTPException(status_code=400, detail="Missing 'message'.")
    # `message` is length-checked by the model; text taken from `messages` is not.
    if len(user_text) > MAX_MESSAGE_LENGTH:
        raise HTTPException(status_code=422, detail=f"Message is too long (max {MAX_MESSAGE_LENGTH} characters).")
    return user_text


@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """
    Draft a post and return it in one piece.

    REQUEST BODY:
    {
        "message": "Write about lessons from my first marathon",
        "tone": "empathetic",
        "length": "standard"
    }

    RESPONSE:
    {
        "reply": "My First Marathon...",
        "warning": null,
        "incomplete_reason": null,
        "rounds": 1,
        "references": [{"title": "...", "source_id": "...", "score": 0.81}]
    }
    """
    if not writer_service:
        raise HTTPException(status_code=503, detail="Writer service not initialized")
    user_text = _require_user_text(request)

    try:
        result = await writer_service.compose(user_text, request)
    except ScribeError as e:
        logger.warning(f"Draft failed: {e}")
        return ChatResponse(reply="", warning=warning_for(e))
    except Exception as e:
        logger.error(f"Error processing chat: {e}", exc_info=True)
        return ChatResponse(reply="", warning=warning_for(e))

    return ChatResponse(
        reply=result.reply,
        warning=result.warning,
        incomplete_reason=result.incomplete_reason,
        rounds=result.rounds,
        references=result.references,
    )


@app.post("/api/chat/stream")
async def chat_stream(request: ChatRequest, http_request: Request):
    """
    Draft a post as a server-sent event stream.

    Each round's text is sent in chunks as `data: {"delta": "..."}` frames as
    soon as the round finishes; a failure becomes one `data: {"warning": "..."}`
    frame; the stream always ends with `data: [DONE]`. Closing the connection
    aborts the in-flight completion call.
    """
    if not writer_service:
        raise HTTPException(status_code=503, detail="Writer service not initialized")
    user_text = _require_user_text(request)

    source: AsyncIterator[StreamPiece] = writer_service.stream_compose(user_text, request)
    return StreamingResponse(
        stream_emitter.emit(source, http_request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.post("/api/index/reload")
async def reload_index():
    """Swap in a freshly loaded corpus and style guide. In-flight drafts keep the old one."""
    if not corpus_store:
        raise HTTPException(status_code=503, detail="Corpus store not initialized")
    try:
        snapshot = corpus_store.load()
    except (OSError, ValueError) as e:
        logger.error(f"Corpus reload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Corpus reload failed: {e}")
    return {"version": snapshot.version, "count": snapshot.count}


# Static front-end, if one is shipped next to the API.
if PUBLIC_DIR.exists():
    app.mount("/app", StaticFiles(directory=str(PUBLIC_DIR), html=True), name="frontend")


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m scribe.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py); used if someone does python -m scribe.main"""
    uvicorn.run(
        "scribe.main:app",
        host="0.0.0.0",
        port=PORT,
        reload=True,
        log_level="info"
    )

if __name__ == "__main__":
    run()
