"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Each endpoint pair (request + response) has its own model. Enums
represent closed sets like the saved-content type and session state.
All models include Field descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Enum values match internal constants exactly
- Response models never expose internal details (password hashes, paths)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SavedContentType(str, Enum):
    """Where a saved item came from.

    RULES:
    - Values match speakit.library.store.ContentType exactly
    """

    url = "url"
    pdf = "pdf"


class SessionStateName(str, Enum):
    signed_out = "signed_out"
    guest = "guest"
    authenticated = "authenticated"


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class ExtractUrlRequest(BaseModel):
    url: Optional[str] = Field(
        default=None,
        description="Absolute http(s) URL of the article to extract.",
    )


class ExtractedContentResponse(BaseModel):
    """Readable content extracted from a web page."""

    title: str = Field(description="Article title.")
    content: str = Field(description="Article body text, paragraphs separated by blank lines.")
    author: Optional[str] = Field(default=None, description="Byline, when the page declares one.")
    published_date: Optional[str] = Field(
        default=None,
        description="Publication timestamp as declared by the page.",
    )
    word_count: int = Field(description="Number of whitespace-separated words in content.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "title": "How Bees Communicate",
                "content": "Honeybees use a waggle dance to share the location of food...",
                "author": "Jane Doe",
                "published_date": "2024-05-01T09:00:00Z",
                "word_count": 1240,
            }
        ]
    }}


class PdfContentResponse(BaseModel):
    """Readable content extracted from an uploaded PDF."""

    title: str = Field(description="Title from PDF metadata or the opening text.")
    content: str = Field(description="Document text, paragraphs separated by blank lines.")
    num_pages: int = Field(description="Number of pages in the document.")
    word_count: int = Field(description="Number of whitespace-separated words in content.")


# ---------------------------------------------------------------------------
# Summarization and playback estimates
# ---------------------------------------------------------------------------


class SummarizeRequest(BaseModel):
    content: Optional[str] = Field(default=None, description="Text to summarize.")


class SummaryResponse(BaseModel):
    summary: str = Field(description="3-5 sentence summary of the content.")


class EstimateRequest(BaseModel):
    content: str = Field(description="Text that will be spoken.")
    rate: float = Field(
        default=1.0, gt=0, allow_inf_nan=False, description="Speech rate multiplier (finite, > 0)."
    )


class EstimateResponse(BaseModel):
    """Timing model for highlighting words during browser speech synthesis.

    RULES:
    - estimated_duration = word_count / (base_words_per_minute * rate) * 60
    - ms_per_word is the interval of the index-advance timer
    """

    word_count: int = Field(description="Number of word tokens.")
    rate: float = Field(description="Speech rate multiplier used for the estimate.")
    base_words_per_minute: int = Field(description="Assumed speaking speed at rate 1.0.")
    estimated_duration: float = Field(description="Estimated speaking time in seconds.")
    duration_display: str = Field(description="estimated_duration formatted as m:ss.")
    ms_per_word: float = Field(description="Milliseconds between index advances.")
    skip_words: int = Field(description="Words covered by one skip forward/backward.")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    email: str = Field(description="Account email address.")
    password: str = Field(description="Account password (at least 6 characters).")


class SessionResponse(BaseModel):
    """Current session state.

    RULES:
    - token is only returned by the sign-up, sign-in and guest endpoints
    - user fields are None when state is 'signed_out'
    """

    state: SessionStateName = Field(description="signed_out, guest or authenticated.")
    token: Optional[str] = Field(default=None, description="Bearer token for later requests.")
    user_id: Optional[str] = Field(default=None, description="User identifier.")
    email: Optional[str] = Field(default=None, description="Email of an authenticated user.")
    expires_at: Optional[float] = Field(
        default=None,
        description="Session expiry (Unix epoch seconds).",
    )


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


class SaveContentRequest(BaseModel):
    title: str = Field(min_length=1, description="Item title.")
    content: str = Field(min_length=1, description="Full text to keep.")
    type: SavedContentType = Field(description="'url' or 'pdf'.")
    url: Optional[str] = Field(default=None, description="Source URL for web articles.")
    summary: Optional[str] = Field(default=None, description="Previously generated summary.")


class SavedContentResponse(BaseModel):
    id: str = Field(description="Item identifier.")
    title: str = Field(description="Item title.")
    content: str = Field(description="Full text.")
    type: SavedContentType = Field(description="'url' or 'pdf'.")
    url: Optional[str] = Field(default=None, description="Source URL for web articles.")
    summary: Optional[str] = Field(default=None, description="Saved summary, if any.")
    created_at: float = Field(description="Creation timestamp (Unix epoch seconds).")
    last_accessed_at: float = Field(description="Last opened timestamp (Unix epoch seconds).")


class SavedContentListResponse(BaseModel):
    items: List[SavedContentResponse] = Field(
        description="The user's items, most recently opened first.",
    )


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    library_available: bool = Field(
        description="False when running in demo mode without accounts/library.",
    )
