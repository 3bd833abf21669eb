"""Tavily web search client and result formatting."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import SearchError

LOGGER = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    content: str = ""


class SearchResponse(BaseModel):
    """Decoded Tavily response; unknown fields are ignored."""

    query: str = ""
    answer: str | None = None
    results: list[SearchResult] = Field(default_factory=list)
    response_time: float | None = None


def format_search_results(response: SearchResponse) -> str:
    """Render a response as the markdown blob stored in a search message."""
    parts: list[str] = []
    if response.answer:
        parts.append(f"### Answer Summary\n\n{response.answer}\n\n---\n\n")
    parts.append("### Search Results\n\n")
    for result in response.results:
        parts.append(f"**[{result.title}]({result.url})**\n\n{result.content}\n\n---\n\n")
    return "".join(parts)


class TavilySearchClient:
    """POST queries to the search endpoint; one attempt, errors surfaced."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = TAVILY_SEARCH_URL,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    async def search(
        self, query: str, domains: list[str] | tuple[str, ...] = ()
    ) -> SearchResponse:
        if not self.api_key:
            raise SearchError("No API key configured for tavily.")

        body: dict[str, Any] = {
            "api_key": self.api_key,
            "query": query,
            "include_answer": True,
        }
        if domains:
            body["include_domains"] = list(domains)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.endpoint, json=body)
        except httpx.HTTPError as exc:
            LOGGER.warning(
                "search.transport.failed",
                extra={"event": "search.transport.failed", "error": str(exc)},
            )
            raise SearchError(f"search request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            LOGGER.warning(
                "search.request.failed",
                extra={
                    "event": "search.request.failed",
                    "status_code": response.status_code,
                },
            )
            raise SearchError(
                f"API error: {response.text}", status_code=response.status_code
            )

        try:
            decoded = SearchResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SearchError(f"failed to decode search response: {exc}") from exc

        LOGGER.info(
            "search.completed",
            extra={
                "event": "search.completed",
                "results": len(decoded.results),
                "domains": list(domains),
            },
        )
        return decoded
