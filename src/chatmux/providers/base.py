"""Provider capability set and shared HTTP plumbing."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
import logging
from typing import Any

import httpx

from ..exceptions import MissingCredentialError, ProviderError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0

ModelFilter = Callable[[str], bool]


def strip_models_prefix(model: str) -> str:
    """Drop the ``models/`` namespace Gemini puts in front of its model IDs."""
    return model.removeprefix("models/")


@dataclass
class ProviderConfig:
    """Everything needed to construct one adapter."""

    name: str
    credential: str = ""
    base_url: str = ""
    model_filter: ModelFilter | None = None
    headers: dict[str, str] = field(default_factory=dict)
    extra_params: dict[str, Any] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT_SECONDS


class Provider(ABC):
    """A remote (or local) model endpoint that answers one message at a time."""

    def __init__(self, config: ProviderConfig) -> None:
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def credential(self) -> str:
        return self.config.credential

    @abstractmethod
    async def send_message(self, message: str, system_prompt: str, model: str) -> str:
        """Send one linearised prompt and return the reply text."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the model identifiers this provider offers."""

    async def validate_credentials(self) -> None:
        """Raise :class:`ProviderError` when the credential is rejected."""
        await self.list_models()

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""

    def _require_credential(self) -> str:
        if not self.credential:
            raise MissingCredentialError(
                f"No API key configured for {self.name}.", provider=self.name
            )
        return self.credential

    def _unrecognized_models(self, payload: Any) -> ProviderError:
        LOGGER.warning(
            "provider.models.unrecognized",
            extra={
                "event": "provider.models.unrecognized",
                "provider": self.name,
                "payload_type": type(payload).__name__,
            },
        )
        return ProviderError(
            f"Unrecognized model list from {self.name}.", provider=self.name
        )

    def _apply_model_filter(self, models: list[str]) -> list[str]:
        model_filter = self.config.model_filter
        if model_filter is None:
            return models
        return [model for model in models if model_filter(model)]


class HttpProvider(Provider):
    """Adapter base for providers spoken to directly over HTTP with httpx.

    A transport may be injected for tests; the client is created lazily and
    reused for every request the adapter makes.
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one exchange and return the decoded JSON body.

        Non-2xx responses, transport failures and undecodable bodies all
        surface as :class:`ProviderError`; nothing is retried.
        """
        merged_headers = {**headers, **self.config.headers}
        try:
            response = await self._http().request(
                method, self._url(path), headers=merged_headers, json=json_body
            )
        except httpx.HTTPError as exc:
            raise self._map_exception(exc) from exc

        if not response.is_success:
            body = response.text
            LOGGER.warning(
                "provider.request.failed",
                extra={
                    "event": "provider.request.failed",
                    "provider": self.name,
                    "path": path,
                    "status_code": response.status_code,
                },
            )
            raise ProviderError(
                f"{self.name} API error (status {response.status_code}): {body}",
                provider=self.name,
                status_code=response.status_code,
                body=body,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"Unable to decode {self.name} response: {exc}",
                provider=self.name,
                status_code=response.status_code,
                body=response.text,
            ) from exc

    def _map_exception(self, exc: httpx.HTTPError) -> ProviderError:
        if isinstance(exc, httpx.TimeoutException):
            message = f"Request to {self.name} timed out after {self.config.timeout:g}s."
        elif isinstance(exc, (httpx.ConnectError, httpx.NetworkError)):
            message = f"Unable to connect to {self.name} at {self.config.base_url}."
        else:
            message = f"Request to {self.name} failed: {exc}"
        LOGGER.warning(
            "provider.transport.failed",
            extra={
                "event": "provider.transport.failed",
                "provider": self.name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return ProviderError(message, provider=self.name)
