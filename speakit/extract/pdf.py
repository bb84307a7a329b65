"""PDF text extraction.

WHY: Users upload PDFs (papers, reports, saved articles) to listen to.
The text of every page is needed in reading order, plus a title for the
reader header and library entry.

HOW: pypdf reads the document from memory. Page texts are joined with
blank lines and normalized with clean_text(). The title comes from the
document metadata when present, otherwise from the opening text.

RULES:
- Unreadable or encrypted documents raise ExtractionError
- Text shorter than 100 characters raises ExtractionError (scanned PDFs)
- Title: metadata /Title, else the first paragraph cut to 100 characters
  with "..." appended, else "Untitled Document"
"""

from __future__ import annotations

import io
import logging
from typing import List, Optional

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from speakit.extract.base import ExtractionError, PdfContent, clean_text, ensure_meaningful

logger = logging.getLogger(__name__)

_TITLE_MAX_CHARS = 100


def _title_from_text(content: str) -> str:
    first = content.split("\n", 1)[0].strip()
    if len(first) > _TITLE_MAX_CHARS:
        return first[:_TITLE_MAX_CHARS] + "..."
    return first


def _metadata_title(reader: PdfReader) -> Optional[str]:
    metadata = reader.metadata
    if metadata is None:
        return None
    title = metadata.title
    if title and str(title).strip():
        return str(title).strip()
    return None


def extract_from_pdf(data: bytes) -> PdfContent:
    """Extract readable text, a title, and the page count from PDF bytes.

    Raises:
        ExtractionError: if the PDF cannot be parsed or holds too little text.
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            raise ExtractionError("Encrypted PDFs are not supported")
        pages: List[str] = [page.extract_text() or "" for page in reader.pages]
        title = _metadata_title(reader)
    except (PyPdfError, ValueError, OSError) as exc:
        raise ExtractionError("Failed to read PDF: {}".format(exc)) from exc

    content = clean_text("\n\n".join(pages))
    ensure_meaningful(content, "PDF")

    result = PdfContent(
        title=title or _title_from_text(content) or "Untitled Document",
        content=content,
        num_pages=len(pages),
    )
    logger.info(
        "Extracted %d words from %d-page PDF (%r)",
        result.word_count, result.num_pages, result.title,
    )
    return result
