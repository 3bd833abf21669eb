"""Anthropic messages API adapter."""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import ProviderError
from .base import HttpProvider

LOGGER = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 8192


class AnthropicProvider(HttpProvider):
    """Send the system prompt and message folded into a single user turn."""

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._require_credential(),
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def send_message(self, message: str, system_prompt: str, model: str) -> str:
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": MAX_TOKENS,
            "messages": [
                {"role": "user", "content": f"{system_prompt}\n\n{message}"},
            ],
        }
        body.update(self.config.extra_params)

        payload = await self._request(
            "POST", "messages", headers=self._headers(), json_body=body
        )

        content = payload.get("content") if isinstance(payload, dict) else None
        if not content:
            raise ProviderError(f"no response from {self.name}", provider=self.name)
        first = content[0]
        text = first.get("text") if isinstance(first, dict) else None
        if not isinstance(text, str):
            raise ProviderError(
                f"Unexpected {self.name} response shape.", provider=self.name
            )
        return text

    async def list_models(self) -> list[str]:
        payload = await self._request("GET", "models", headers=self._headers())
        entries = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise self._unrecognized_models(payload)
        ids = [
            entry["id"]
            for entry in entries
            if isinstance(entry, dict)
            and entry.get("type") == "model"
            and isinstance(entry.get("id"), str)
        ]
        return self._apply_model_filter(ids)
