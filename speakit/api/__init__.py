"""Language-model API client package for hosted summarization.

WHY: Summaries are produced by a hosted chat-completions model. This
package encapsulates all communication with it behind an async client.

RULES:
- All model calls go through SummaryClient (no direct httpx usage elsewhere)
- Authentication is via Bearer token from config
"""

from speakit.api.client import SummaryAPIError, SummaryClient

__all__ = ["SummaryAPIError", "SummaryClient"]
