"""Tavily web search wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from analyst.models.research import SearchResult, Snippet

if TYPE_CHECKING:
    from analyst.cancellation import CancellationToken
    from analyst.config import Settings

logger = structlog.get_logger()

SEARCH_FAILED = "Search failed"


class SearchClient:
    def __init__(self, settings: Settings, http: httpx.AsyncClient) -> None:
        self.settings = settings
        self.http = http

    async def search(self, query: str, token: CancellationToken) -> SearchResult:
        """Run one search. Service failures degrade to an empty result; only cancellation raises."""
        token.raise_if_cancelled()
        logger.info("search_call", query=query[:80])
        try:
            raw = await token.guard(self._call_api(query))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("search_failed", query=query[:80], error=str(e))
            return SearchResult(error=SEARCH_FAILED)

        results = raw.get("results") if isinstance(raw, dict) else None
        if not isinstance(results, list):
            logger.warning("search_failed", query=query[:80], error="no results list")
            return SearchResult(error=SEARCH_FAILED)

        snippets = [self._trim(r) for r in results if isinstance(r, dict)]
        logger.info("search_done", query=query[:80], snippets=len(snippets))
        return SearchResult(snippets=snippets)

    async def _call_api(self, query: str) -> dict:
        """Low-level HTTP POST."""
        response = await self.http.post(
            self.settings.TAVILY_API_URL,
            headers={"Content-Type": "application/json"},
            json={
                "api_key": self.settings.TAVILY_API_KEY,
                "query": query,
                "search_depth": self.settings.SEARCH_DEPTH,
                "max_results": self.settings.SEARCH_MAX_RESULTS,
                "include_answer": True,
            },
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _trim(result: dict) -> Snippet:
        """Keep only the fields later phases embed in prompts."""
        return Snippet(
            title=_as_text(result.get("title")),
            url=_as_text(result.get("url")),
            content=_as_text(result.get("content")),
            published_date=_as_text(result.get("published_date")),
        )


def _as_text(value: object) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
