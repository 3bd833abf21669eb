"""Adapter for every endpoint that speaks the OpenAI chat-completions dialect.

OpenAI, Groq and Deepseek differ only in base URL, model filter and a few
extra headers or body parameters, so one class serves all three.
"""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import ProviderError
from .base import HttpProvider

LOGGER = logging.getLogger(__name__)


def _extract_model_ids(payload: Any) -> list[str] | None:
    """Read model IDs from ``{"data": [...]}`` or ``{"models": [...]}``.

    Returns ``None`` when neither shape is present.
    """
    if not isinstance(payload, dict):
        return None
    recognised = False
    for key in ("data", "models"):
        entries = payload.get(key)
        if not isinstance(entries, list):
            continue
        recognised = True
        ids = [
            entry["id"]
            for entry in entries
            if isinstance(entry, dict) and isinstance(entry.get("id"), str)
        ]
        if ids:
            return ids
    return [] if recognised else None


class OpenAICompatibleProvider(HttpProvider):
    """Chat completions over ``POST {base}/chat/completions``."""

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.credential:
            headers["Authorization"] = f"Bearer {self.credential}"
        return headers

    async def send_message(self, message: str, system_prompt: str, model: str) -> str:
        body: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            "temperature": 0.0,
        }
        body.update(self.config.extra_params)

        payload = await self._request(
            "POST", "chat/completions", headers=self._headers(), json_body=body
        )

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not choices:
            raise ProviderError(f"no response from {self.name}", provider=self.name)
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                f"Unexpected {self.name} response shape: {exc}", provider=self.name
            ) from exc
        if not isinstance(content, str):
            raise ProviderError(f"no response from {self.name}", provider=self.name)

        LOGGER.info(
            "provider.reply",
            extra={
                "event": "provider.reply",
                "provider": self.name,
                "model": model,
                "chars": len(content),
            },
        )
        return content

    async def list_models(self) -> list[str]:
        payload = await self._request("GET", "models", headers=self._headers())
        ids = _extract_model_ids(payload)
        if ids is None:
            raise self._unrecognized_models(payload)
        return self._apply_model_filter(ids)
