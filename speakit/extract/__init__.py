"""Content extraction from web pages and PDF documents.

WHY: Everything the reader plays starts as either a URL or an uploaded
PDF. This package turns both into plain title + content pairs.

RULES:
- All network access goes through extract_from_url (httpx)
- Both extractors enforce the same minimum content length
"""

from speakit.extract.base import (
    ExtractedContent,
    ExtractionError,
    FetchError,
    PdfContent,
    clean_text,
)
from speakit.extract.pdf import extract_from_pdf
from speakit.extract.web import extract_from_html, extract_from_url, validate_url

__all__ = [
    "ExtractedContent",
    "ExtractionError",
    "FetchError",
    "PdfContent",
    "clean_text",
    "extract_from_html",
    "extract_from_pdf",
    "extract_from_url",
    "validate_url",
]
