"""Rewrite a terse search query into a sharper one with the auxiliary model."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging

from ..exceptions import EnhancerError, ProviderError
from ..prompts import (
    enhance_programming_prompt,
    enhance_search_prompt,
    extract_query_prompt,
)
from ..providers.base import Provider
from ..providers.registry import requires_credential

LOGGER = logging.getLogger(__name__)


class EnhanceType(str, Enum):
    WEB_SEARCH = "web"
    PROGRAMMING = "programming"


@dataclass
class EnhancementResult:
    """The query to use, plus the error when enhancement fell through."""

    query: str
    error: EnhancerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


LocationSource = Callable[[], Awaitable[str]]


class QueryEnhancer:
    """Two-hop enhancer: rewrite, then extract the bare query text.

    Fail-open: every failure returns the original query together with an
    :class:`EnhancerError` and the caller decides whether to continue.
    """

    def __init__(
        self,
        provider: Provider | None,
        model: str,
        location_source: LocationSource,
    ) -> None:
        self._provider = provider
        self._model = model
        self._location_source = location_source

    async def enhance(
        self, query: str, enhance_type: EnhanceType = EnhanceType.WEB_SEARCH
    ) -> EnhancementResult:
        provider = self._provider
        if provider is None or (
            requires_credential(provider.name) and not provider.credential
        ):
            name = provider.name if provider is not None else "auxiliary"
            return self._fail(query, f"{name} API key not found")

        if enhance_type is EnhanceType.WEB_SEARCH:
            prompt = enhance_search_prompt(await self._location_source(), query)
        else:
            prompt = enhance_programming_prompt(query)

        try:
            enhanced = await provider.send_message(prompt, "", self._model)
        except ProviderError as exc:
            return self._fail(query, str(exc))

        if enhance_type is EnhanceType.WEB_SEARCH:
            try:
                enhanced = await provider.send_message(
                    extract_query_prompt(enhanced), "", self._model
                )
            except ProviderError as exc:
                return self._fail(query, f"query cleanup failed: {exc}")

        enhanced = enhanced.strip()
        if not enhanced:
            return self._fail(query, "empty response")

        LOGGER.info(
            "enhancer.completed",
            extra={
                "event": "enhancer.completed",
                "type": enhance_type.value,
                "chars": len(enhanced),
            },
        )
        return EnhancementResult(query=enhanced)

    @staticmethod
    def _fail(query: str, message: str) -> EnhancementResult:
        LOGGER.warning(
            "enhancer.failed",
            extra={"event": "enhancer.failed", "error": message},
        )
        return EnhancementResult(query=query, error=EnhancerError(message))
