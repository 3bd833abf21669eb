"""Gemini adapter built on the google-genai SDK."""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
import httpx

from ..exceptions import ProviderError
from .base import Provider, ProviderConfig, strip_models_prefix

LOGGER = logging.getLogger(__name__)

FALLBACK_MODELS = ["gemini-pro", "gemini-pro-vision"]
SKIPPED_MODEL = "models/gemini-pro-vision"

SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
)


def guess_image_mime_type(image_path: str) -> str:
    """Guess the MIME type from the file extension, defaulting to JPEG."""
    mime_type, _ = mimetypes.guess_type(Path(image_path).name)
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    return "image/jpeg"


def _generation_config(system_prompt: str) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        system_instruction=system_prompt or None,
        temperature=0.2,
        top_k=40,
        top_p=0.95,
        safety_settings=[
            types.SafetySetting(
                category=category,
                threshold=types.HarmBlockThreshold.BLOCK_NONE,
            )
            for category in SAFETY_CATEGORIES
        ],
    )


def _first_text(response: Any) -> str | None:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    if not parts:
        return None
    text = getattr(parts[0], "text", None)
    return text if isinstance(text, str) else None


class GeminiProvider(Provider):
    """Send one message per chat session through ``client.aio``."""

    def __init__(self, config: ProviderConfig, client: Any | None = None) -> None:
        super().__init__(config)
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(
                api_key=self._require_credential(),
                http_options=types.HttpOptions(timeout=int(self.config.timeout * 1000)),
            )
        return self._client

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, genai_errors.APIError):
            LOGGER.warning(
                "provider.request.failed",
                extra={
                    "event": "provider.request.failed",
                    "provider": self.name,
                    "status_code": exc.code,
                },
            )
            return ProviderError(
                f"{self.name} API error (status {exc.code}): {exc.message}",
                provider=self.name,
                status_code=exc.code,
                body=str(exc.details) if exc.details else None,
            )
        return ProviderError(f"Request to {self.name} failed: {exc}", provider=self.name)

    async def _send(self, contents: Any, system_prompt: str, model: str) -> str:
        client = self._get_client()
        try:
            chat = client.aio.chats.create(
                model=model, config=_generation_config(system_prompt)
            )
            response = await chat.send_message(contents)
        except (genai_errors.APIError, httpx.HTTPError, ValueError, TypeError) as exc:
            raise self._map_exception(exc) from exc

        text = _first_text(response)
        if text is None:
            raise ProviderError(f"no response from {self.name}", provider=self.name)
        return text

    async def send_message(self, message: str, system_prompt: str, model: str) -> str:
        return await self._send(message, system_prompt, model)

    async def send_message_with_image(
        self,
        message: str,
        image_bytes: bytes,
        image_path: str,
        system_prompt: str,
        model: str,
    ) -> str:
        """Send ``message`` together with an inline image part."""
        image_part = types.Part.from_bytes(
            data=image_bytes, mime_type=guess_image_mime_type(image_path)
        )
        return await self._send([image_part, message], system_prompt, model)

    async def _fetch_models(self) -> list[str]:
        client = self._get_client()
        names: list[str] = []
        try:
            pager = await client.aio.models.list()
            async for model in pager:
                name = getattr(model, "name", None) or ""
                if name and name != SKIPPED_MODEL:
                    names.append(name)
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            raise self._map_exception(exc) from exc
        return names

    async def list_models(self) -> list[str]:
        """List bare model IDs, falling back to a fixed pair when listing yields nothing."""
        try:
            names = await self._fetch_models()
        except ProviderError as exc:
            LOGGER.warning(
                "provider.models.fallback",
                extra={
                    "event": "provider.models.fallback",
                    "provider": self.name,
                    "error": str(exc),
                },
            )
            names = []
        names = self._apply_model_filter([strip_models_prefix(name) for name in names])
        return names or list(FALLBACK_MODELS)

    async def validate_credentials(self) -> None:
        await self._fetch_models()
