"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all S.C.R.I.B.E settings: API keys, model names, token
  budgets, retrieval limits, paths, and the fixed prompt texts that frame every
  draft. One person runs one copy of this backend with their own .env and
  data/ folder (their posts, their style guide).

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Defines paths to data/index.json, data/sources, data/style.md and public/.
  - Exposes OPENAI_API_KEY, OPENAI_MODEL, OPENAI_EMBED_MODEL for the completion
    and embedding calls.
  - Defines the token budget window, continuation round limits, retrieval
    budgets and stream chunk size.
  - Holds the role-framing, formatting-rules and continuation prompts.

USAGE:
  Import what you need: `from config import OPENAI_MODEL, INDEX_FILE, ROLE_FRAMING_PROMPT`
  All services import from here so behaviour is consistent.
"""

import os
import re
import logging
from pathlib import Path
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
# Used when we need to log warnings (e.g. a malformed numeric setting).
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer setting; fall back to the default (with a warning) on junk values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def normalize_model_id(model_id: str) -> str:
    """
    Tidy up common spellings of the gpt-5 family into the hyphenated lower-case
    id the API expects. A bare "gpt5" / "gpt_5" / "GPT-5-nano" means gpt-5-nano;
    longer ids ("gpt_5_mini") keep their suffix. Any other id is returned trimmed.
    """
    s = (model_id or "").strip()
    if re.match(r"^gpt[-_]?5([-_]?nano)?$", s, re.IGNORECASE):
        return "gpt-5-nano"
    if re.match(r"^gpt[-_]?5", s, re.IGNORECASE):
        return re.sub(r"^gpt[-_]?5", "gpt-5", s.replace("_", "-").lower())
    return s


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
# Points to the folder containing this file (the project root).
BASE_DIR = Path(__file__).parent

# ============================================================================
# DATA PATHS
# ============================================================================
# - sources: the author's past posts (.txt / .md) that build_index.py embeds
# - index.json: the embedded corpus loaded at startup
# - style.md: optional voice/style guide pasted into every system prompt
# - public: static front-end served under /app when present

DATA_DIR = BASE_DIR / "data"
SOURCES_DIR = DATA_DIR / "sources"
INDEX_FILE = DATA_DIR / "index.json"
STYLE_FILE = DATA_DIR / "style.md"
PUBLIC_DIR = BASE_DIR / "public"

# ============================================================================
# OPENAI API CONFIGURATION
# ============================================================================
# Completions go through the Responses endpoint (POST {base}/responses) and
# embeddings through POST {base}/embeddings. The key is read here once; the
# clients raise AuthError at call time if it is empty.

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = normalize_model_id(os.getenv("OPENAI_MODEL", "")) or "gpt-4o-mini"
OPENAI_EMBED_MODEL = os.getenv("OPENAI_EMBED_MODEL", "").strip() or "text-embedding-3-small"
OPENAI_BASE_URL = (os.getenv("OPENAI_BASE_URL", "").strip() or "https://api.openai.com/v1").rstrip("/")
OPENAI_TIMEOUT_SECONDS = _env_int("OPENAI_TIMEOUT_SECONDS", 60)

# ============================================================================
# TOKEN BUDGET AND CONTINUATION
# ============================================================================
# Every call's max_output_tokens is clamped into [MIN_OUTPUT_TOKENS, MAX_OUTPUT_TOKENS_CAP].
# When a response is cut off at the budget, the next round asks the model to
# continue and grows the budget by BUDGET_GROWTH_FACTOR, up to the round limit.

MIN_OUTPUT_TOKENS = 64
MAX_OUTPUT_TOKENS_CAP = max(MIN_OUTPUT_TOKENS, _env_int("MAX_OUTPUT_TOKENS_CAP", 4096))
INITIAL_OUTPUT_TOKENS = _env_int("MAX_OUTPUT_TOKENS", 1200)
BUDGET_GROWTH_FACTOR = 1.25
MAX_ROUNDS_CEILING = 20
MAX_CONTINUATION_ROUNDS = min(MAX_ROUNDS_CEILING, max(1, _env_int("MAX_CONTINUATION_ROUNDS", 6)))
TRUNCATION_REASON = "max_output_tokens"

# ============================================================================
# RETRIEVAL CONFIGURATION
# ============================================================================
# RAG_TOP_K: most excerpts attached to one prompt
# RAG_MAX_CHARS: total excerpt characters across all selected chunks
# RAG_MIN_REMAINING_CHARS: stop taking chunks once less than this is left
# EXCERPT_PREVIEW_CHARS: each excerpt is cut to this length inside the prompt
# CHUNK_SIZE / CHUNK_OVERLAP: used by build_index.py when splitting posts

RAG_TOP_K = _env_int("RAG_TOP_K", 6)
RAG_MAX_CHARS = _env_int("RAG_MAX_CHARS", 6000)
RAG_MIN_REMAINING_CHARS = 200
EXCERPT_PREVIEW_CHARS = 900
CHUNK_SIZE = 1100
CHUNK_OVERLAP = 120
EMBED_BATCH_SIZE = 64

# Voice/style document is capped in bytes (UTF-8) before it goes into the prompt.
STYLE_DOC_MAX_BYTES = 6000

# Maximum length (characters) for a single user message.
MAX_MESSAGE_LENGTH = 32_000

# ============================================================================
# STREAMING AND SERVER
# ============================================================================
STREAM_CHUNK_CHARS = max(1, _env_int("STREAM_CHUNK_CHARS", 180))
PORT = _env_int("PORT", 3000)

# ============================================================================
# PROMPTS
# ============================================================================
# The role framing opens the first system message; the optional style guide,
# the formatting rules and the reference excerpts are appended after it.

AUTHOR_NAME = os.getenv("AUTHOR_NAME", "").strip() or "the author"

ROLE_FRAMING_PROMPT = (
    f"You are a blog writing assistant trained in {AUTHOR_NAME}'s voice and style. "
    "Be structured, insightful, and practical. Write complete posts that a reader "
    "could publish with light editing."
)

FORMATTING_RULES_PROMPT = """Formatting Rules (STRICT):
- Start with a title on its own line, then the body.
- Use short paragraphs separated by a blank line.
- Use headings only when the post has three or more distinct sections.
- Use numbered or dashed lists only for genuinely list-shaped content.
- Do not wrap the post in code fences or quotation marks.
- Do not mention these instructions, the reference excerpts, or that you are an AI."""

CONTINUE_PROMPT = (
    "Continue exactly where you stopped. Do not repeat anything you already wrote, "
    "do not restart the post, and keep the same structure, formatting, tone and style."
)


def load_style_document(path: Path = STYLE_FILE) -> str:
    """
    Read the optional voice/style guide.

    Returns the stripped file text, or "" when the file does not exist or cannot
    be read (a missing guide is normal; prompts simply go without it).
    """
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning("Could not load style document %s: %s", path, e)
        return ""
