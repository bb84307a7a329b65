"""Web page fetching and readable-text extraction.

WHY: Users paste article URLs. The page has to be fetched like a normal
browser would, stripped of navigation and boilerplate, and reduced to
the title, byline and body text that will be read aloud.

HOW: httpx fetches the page with a desktop User-Agent. BeautifulSoup
(lxml parser) removes non-content elements, then a short list of
selectors is tried in order to find the main content container. If none
yields enough text, long paragraphs across the page are used instead.

RULES:
- Only absolute http(s) URLs with a host are accepted (ValueError otherwise)
- Non-2xx responses and transport errors raise FetchError; no retries
- Removed before extraction: script, style, nav, header, footer, aside,
  iframe, noscript
- Title: first <h1>, og:title, <title>, else "Untitled Article"
- A content container is accepted once its text exceeds 200 characters
- Fallback paragraphs must be longer than 50 characters
- Final content shorter than 100 characters raises ExtractionError
"""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from speakit.config import FETCH_TIMEOUT_S, FETCH_USER_AGENT
from speakit.extract.base import ExtractedContent, FetchError, clean_text, ensure_meaningful

logger = logging.getLogger(__name__)

_STRIP_TAGS = ["script", "style", "nav", "header", "footer", "aside", "iframe", "noscript"]

_CONTENT_SELECTORS = [
    "article",
    '[role="main"]',
    ".article-content",
    ".post-content",
    ".entry-content",
    "main",
]

_CONTAINER_MIN_CHARS = 200
_PARAGRAPH_MIN_CHARS = 50


def validate_url(url: str) -> str:
    """Return the stripped URL, or raise ValueError if it is not http(s)."""
    url = (url or "").strip()
    if not url:
        raise ValueError("URL is required")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL format")
    return url


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    value = (tag.get("content") or "").strip()
    return value or None


def _extract_title(soup: BeautifulSoup) -> str:
    h1 = soup.find("h1")
    if h1 is not None and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)
    og_title = _meta_content(soup, property="og:title")
    if og_title:
        return og_title
    if soup.title is not None and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)
    return "Untitled Article"


def _extract_author(soup: BeautifulSoup) -> Optional[str]:
    author = _meta_content(soup, name="author") or _meta_content(soup, property="article:author")
    if author:
        return author
    rel_author = soup.select_one('[rel="author"]')
    if rel_author is not None and rel_author.get_text(strip=True):
        return rel_author.get_text(" ", strip=True)
    return None


def _extract_published_date(soup: BeautifulSoup) -> Optional[str]:
    published = _meta_content(soup, property="article:published_time")
    if published:
        return published
    time_tag = soup.select_one("time[datetime]")
    if time_tag is not None and time_tag.get("datetime"):
        return time_tag["datetime"]
    return None


def _extract_body(soup: BeautifulSoup) -> str:
    content = ""
    for selector in _CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        content = clean_text(element.get_text())
        if len(content) > _CONTAINER_MIN_CHARS:
            return content

    # Fallback: every long paragraph on the page
    paragraphs: List[str] = []
    for p in soup.find_all("p"):
        text = clean_text(p.get_text())
        if len(text) > _PARAGRAPH_MIN_CHARS:
            paragraphs.append(text)
    fallback = "\n\n".join(paragraphs)
    return fallback if len(fallback) > len(content) else content


def extract_from_html(html_doc: str, source: str = "page") -> ExtractedContent:
    """Extract title, byline and body text from raw HTML.

    Raises:
        ExtractionError: if the body text is too short to be meaningful.
    """
    soup = BeautifulSoup(html_doc, "lxml")
    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    title = _extract_title(soup)
    author = _extract_author(soup)
    published_date = _extract_published_date(soup)
    content = ensure_meaningful(_extract_body(soup), source)

    return ExtractedContent(
        title=title,
        content=content,
        author=author,
        published_date=published_date,
    )


async def fetch_html(url: str, client: Optional[httpx.AsyncClient] = None) -> str:
    """Fetch a page body, raising FetchError on any failure.

    Args:
        url: Absolute http(s) URL.
        client: Optional shared client; a short-lived one is created otherwise.
    """
    headers = {"User-Agent": FETCH_USER_AGENT}
    try:
        if client is not None:
            response = await client.get(url, headers=headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_S) as own_client:
                response = await own_client.get(url, headers=headers, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise FetchError(url, str(exc) or exc.__class__.__name__) from exc

    if not response.is_success:
        raise FetchError(
            url,
            response.reason_phrase or "HTTP {}".format(response.status_code),
            status_code=response.status_code,
        )
    return response.text


async def extract_from_url(url: str, client: Optional[httpx.AsyncClient] = None) -> ExtractedContent:
    """Fetch a URL and extract its readable content.

    Raises:
        ValueError: if the URL is malformed.
        FetchError: if the page cannot be fetched.
        ExtractionError: if the page holds too little text.
    """
    url = validate_url(url)
    html_doc = await fetch_html(url, client=client)
    extracted = extract_from_html(html_doc, source="URL")
    logger.info(
        "Extracted %d words from %s (%r)", extracted.word_count, url, extracted.title
    )
    return extracted
