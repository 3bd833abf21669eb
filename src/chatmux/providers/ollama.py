"""Local Ollama daemon adapter using the ollama SDK's native API."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from ollama import AsyncClient, ResponseError

from ..exceptions import ProviderError
from .base import Provider, ProviderConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


def _read(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


class OllamaProvider(Provider):
    """Non-streaming chat against ``/api/chat``; no credential is needed."""

    def __init__(self, config: ProviderConfig, client: Any | None = None) -> None:
        super().__init__(config)
        self._client = client

    @property
    def host(self) -> str:
        return self.config.base_url or DEFAULT_OLLAMA_HOST

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncClient(host=self.host, timeout=self.config.timeout)
        return self._client

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, ResponseError):
            return ProviderError(
                f"{self.name} API error (status {exc.status_code}): {exc.error}",
                provider=self.name,
                status_code=exc.status_code,
                body=exc.error,
            )
        if isinstance(exc, (httpx.ConnectError, httpx.NetworkError, httpx.TimeoutException)):
            return ProviderError(
                f"Unable to connect to Ollama host {self.host}.", provider=self.name
            )
        return ProviderError(f"Request to {self.name} failed: {exc}", provider=self.name)

    async def send_message(self, message: str, system_prompt: str, model: str) -> str:
        request_messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": message},
        ]
        try:
            response = await self._get_client().chat(
                model=model,
                messages=request_messages,
                stream=False,
                options=self.config.extra_params or None,
            )
        except (ResponseError, httpx.HTTPError, ConnectionError) as exc:
            LOGGER.warning(
                "provider.request.failed",
                extra={
                    "event": "provider.request.failed",
                    "provider": self.name,
                    "error_type": type(exc).__name__,
                },
            )
            raise self._map_exception(exc) from exc

        content = _read(_read(response, "message"), "content")
        if not isinstance(content, str):
            raise ProviderError(f"no response from {self.name}", provider=self.name)
        return content

    async def list_models(self) -> list[str]:
        try:
            response = await self._get_client().list()
        except (ResponseError, httpx.HTTPError, ConnectionError) as exc:
            raise self._map_exception(exc) from exc

        models = _read(response, "models")
        names: list[str] = []
        if isinstance(models, list):
            for model in models:
                for key in ("name", "model"):
                    value = _read(model, key)
                    if isinstance(value, str) and value.strip():
                        names.append(value.strip())
                        break
        return self._apply_model_filter(names)
