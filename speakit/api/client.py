"""Async HTTP client for the hosted language model used for summaries.

WHY: Readers can ask for a short summary before listening. The summary
comes from a hosted chat-completions model; this module hides the HTTP
details (auth, payload shape, error handling, input truncation) behind a
single client class so the API layer and the CLI share one code path.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. SummaryClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool. summarize() truncates the article, builds the
prompt, posts it to /chat/completions and returns the completion text.

RULES:
- Always use the async context manager (async with SummaryClient() as client:)
- Input is truncated to the first SUMMARY_MAX_WORDS words before sending
- The completion is limited to SUMMARY_MAX_TOKENS tokens
- Non-2xx responses raise SummaryAPIError with status code and body
- An empty completion also raises SummaryAPIError
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from speakit.config import (
    LLM_BASE_URL,
    LLM_MODEL,
    SUMMARY_MAX_TOKENS,
    SUMMARY_MAX_WORDS,
    load_llm_api_key,
)

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = (
    "Summarize the following article in 3-5 concise sentences. "
    "Focus on the main points and key takeaways:"
)


class SummaryAPIError(Exception):
    """Raised when the language-model API returns an error response.

    WHY: Callers need a typed exception to distinguish model errors from
    configuration problems (ValueError) or bad input.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Summary API error {status_code}: {message}")


def truncate_words(content: str, max_words: int = SUMMARY_MAX_WORDS) -> str:
    """Keep only the first ``max_words`` whitespace-separated words."""
    words = content.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words])


def build_prompt(content: str, max_words: int = SUMMARY_MAX_WORDS) -> str:
    return "{}\n\n{}".format(SUMMARY_INSTRUCTION, truncate_words(content, max_words))


class SummaryClient:
    """Async client for an OpenAI-compatible chat-completions endpoint.

    RULES:
    - Use as: async with SummaryClient() as client: ...
    - api_key defaults to load_llm_api_key() from .env
    - base_url and model default to LLM_BASE_URL and LLM_MODEL from config
    - transport is only for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or load_llm_api_key()
        self._base_url = (base_url or LLM_BASE_URL).rstrip("/")
        self._model = model or LLM_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SummaryClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(60.0, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "SummaryClient must be used as an async context manager: "
                "async with SummaryClient() as client: ..."
            )
        return self._client

    async def summarize(self, content: str) -> str:
        """Return a 3-5 sentence summary of ``content``.

        Raises:
            ValueError: if content is empty.
            SummaryAPIError: on non-2xx responses or an empty completion.
        """
        if not content or not content.strip():
            raise ValueError("Content is required")
        client = self._ensure_client()

        body = {
            "model": self._model,
            "messages": [{"role": "user", "content": build_prompt(content)}],
            "max_tokens": SUMMARY_MAX_TOKENS,
        }
        try:
            resp = await client.post("/chat/completions", json=body)
        except httpx.HTTPError as exc:
            raise SummaryAPIError(0, str(exc) or exc.__class__.__name__) from exc

        if resp.status_code != 200:
            raise SummaryAPIError(resp.status_code, resp.text)

        try:
            data = resp.json()
            summary = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            raise SummaryAPIError(resp.status_code, "Malformed completion response")

        summary = summary.strip()
        if not summary:
            raise SummaryAPIError(resp.status_code, "Empty summary returned")
        logger.info("Generated %d-character summary with %s", len(summary), self._model)
        return summary
