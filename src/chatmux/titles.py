"""Conversation title generation through the auxiliary model."""

from __future__ import annotations

import logging

from .exceptions import ProviderError
from .prompts import TITLE_SYSTEM_PROMPT
from .providers.base import Provider
from .providers.registry import requires_credential

LOGGER = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 27


def normalize_title(raw: str, limit: int = MAX_TITLE_LENGTH) -> str:
    """Collapse whitespace and cut to ``limit`` characters at a word boundary.

    A single word longer than ``limit`` is hard-cut.
    """
    text = " ".join(raw.split())
    if len(text) <= limit:
        return text
    window = text[: limit + 1]
    boundary = window.rfind(" ")
    if boundary > 0:
        return window[:boundary].rstrip()
    return text[:limit]


class TitleGenerator:
    """Ask the auxiliary model for a 3-5 word title; ``None`` on any failure."""

    def __init__(self, provider: Provider | None, model: str) -> None:
        self._provider = provider
        self._model = model

    async def generate(self, first_message: str) -> str | None:
        provider = self._provider
        if provider is None or (
            requires_credential(provider.name) and not provider.credential
        ):
            LOGGER.info(
                "title.skipped",
                extra={"event": "title.skipped", "reason": "no auxiliary credential"},
            )
            return None
        try:
            raw = await provider.send_message(
                first_message, TITLE_SYSTEM_PROMPT, self._model
            )
        except ProviderError as exc:
            LOGGER.warning(
                "title.failed",
                extra={"event": "title.failed", "error": str(exc)},
            )
            return None
        title = normalize_title(raw)
        return title or None
