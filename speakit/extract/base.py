"""Extraction result types, errors, and shared text cleanup.

WHY: URL and PDF extraction produce slightly different metadata but are
consumed the same way (title + content to read aloud), and both must
reject results too short to be worth reading. Keeping the result types
and the "meaningful content" check here keeps the two extractors
consistent.

RULES:
- Text shorter than MIN_CONTENT_CHARS after cleanup raises ExtractionError
- FetchError is for network/HTTP failures, ExtractionError for content problems
- clean_text() collapses runs of spaces and keeps paragraph breaks
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from speakit.config import MIN_CONTENT_CHARS
from speakit.core.document import tokenize


class ExtractionError(Exception):
    """Raised when no meaningful text can be extracted from a source."""


class FetchError(Exception):
    """Raised when a URL cannot be fetched.

    HOW: Wraps the HTTP status code (None for transport failures).
    """

    def __init__(self, url: str, message: str, status_code: Optional[int] = None) -> None:
        self.url = url
        self.status_code = status_code
        self.message = message
        super().__init__("Failed to fetch {}: {}".format(url, message))


@dataclass
class ExtractedContent:
    """Readable content extracted from a web page."""

    title: str
    content: str
    author: Optional[str] = None
    published_date: Optional[str] = None

    @property
    def word_count(self) -> int:
        return len(tokenize(self.content))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["word_count"] = self.word_count
        return data


@dataclass
class PdfContent:
    """Readable content extracted from a PDF document."""

    title: str
    content: str
    num_pages: int

    @property
    def word_count(self) -> int:
        return len(tokenize(self.content))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["word_count"] = self.word_count
        return data


_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\s*\n\s*\n\s*")
_SINGLE_NEWLINE = re.compile(r"\s*\n\s*")


def clean_text(text: str) -> str:
    """Normalize whitespace while keeping paragraph breaks.

    RULES:
    - Runs of spaces/tabs become one space
    - Two or more line breaks (with any whitespace between) become one blank line
    - Single line breaks become spaces (PDF and DOM text wrap mid-sentence)
    """
    text = _HORIZONTAL_WS.sub(" ", text)
    paragraphs = _BLANK_LINES.split(text)
    cleaned = [_SINGLE_NEWLINE.sub(" ", p).strip() for p in paragraphs]
    return "\n\n".join(p for p in cleaned if p)


def ensure_meaningful(content: str, source: str) -> str:
    """Return content unchanged, or raise if it is too short to read."""
    if len(content) < MIN_CONTENT_CHARS:
        raise ExtractionError(
            "Could not extract meaningful content from {}".format(source)
        )
    return content
