"""Configuration constants, playback model defaults, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. The words-per-minute model, extraction limits,
summarization settings, and storage location are plain data, not
buried in logic, so they can be tuned without touching the code paths
that use them.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level values. Loader functions provide a clear error (or a
clear "not configured" result) when a required setting is missing.

RULES:
- BASE_WORDS_PER_MINUTE drives every duration/position estimate (default 150)
- Extraction rejects results shorter than MIN_CONTENT_CHARS
- PDF uploads larger than MAX_PDF_BYTES are rejected before parsing
- The LLM API key is loaded from .env via python-dotenv, never hardcoded
- An unset SPEAKIT_DATABASE means demo mode (no auth, no library)
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (where the app is started from)
load_dotenv()

# ---------------------------------------------------------------------------
# Playback model
# ---------------------------------------------------------------------------

BASE_WORDS_PER_MINUTE = int(os.getenv("SPEAKIT_BASE_WPM", "150"))
"""Assumed speaking speed at rate 1.0, used to estimate position and duration."""

DEFAULT_RATE = 1.0

SKIP_SECONDS = 10
"""Skip forward/backward jumps roughly this many seconds worth of words."""

SUPPORTED_RATES = (0.5, 0.75, 1.0, 1.25, 1.5, 1.75, 2.0)

# ---------------------------------------------------------------------------
# Content extraction
# ---------------------------------------------------------------------------

MIN_CONTENT_CHARS = 100
MAX_PDF_BYTES = 10 * 1024 * 1024

FETCH_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
FETCH_TIMEOUT_S = float(os.getenv("SPEAKIT_FETCH_TIMEOUT", "30"))

# ---------------------------------------------------------------------------
# Summarization
# ---------------------------------------------------------------------------

LLM_BASE_URL = os.getenv("SPEAKIT_LLM_BASE_URL", "https://api.openai.com/v1")
LLM_MODEL = os.getenv("SPEAKIT_LLM_MODEL", "gpt-4o-mini")
SUMMARY_MAX_WORDS = 8000
SUMMARY_MAX_TOKENS = 300

# ---------------------------------------------------------------------------
# Auth and library storage
# ---------------------------------------------------------------------------

SESSION_TTL_SECONDS = int(os.getenv("SPEAKIT_SESSION_TTL", "86400"))
MIN_PASSWORD_LENGTH = 6


def load_llm_api_key() -> str:
    """Load the language-model API key from the environment.

    WHY: The key is required for every summarization call. Loading it
    from the environment (via .env) keeps it out of source code.

    HOW: Reads SPEAKIT_LLM_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("SPEAKIT_LLM_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Summarization is not configured. "
            "Add SPEAKIT_LLM_API_KEY to the .env file."
        )
    return key


def database_path() -> Optional[str]:
    """Return the configured SQLite path, or None when running in demo mode.

    RULES:
    - Empty, "undefined" and "null" values count as not configured
    """
    value = os.getenv("SPEAKIT_DATABASE", "").strip()
    if not value or value in ("undefined", "null"):
        return None
    return value
