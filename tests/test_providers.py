"""Tests for provider adapters and the registry."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any
import unittest

import httpx
from ollama import ResponseError

from chatmux.config import ProviderOverride
from chatmux.exceptions import MissingCredentialError, ProviderError
from chatmux.providers import (
    KNOWN_PROVIDERS,
    ProviderPool,
    build_provider,
    requires_credential,
    strip_models_prefix,
)
from chatmux.providers.anthropic import AnthropicProvider
from chatmux.providers.gemini import FALLBACK_MODELS, GeminiProvider, guess_image_mime_type
from chatmux.providers.ollama import OllamaProvider
from chatmux.providers.openai_compatible import OpenAICompatibleProvider


class Recorder:
    """httpx.MockTransport handler that records requests and replays a response."""

    def __init__(self, status: int = 200, payload: Any = None, text: str | None = None) -> None:
        self.status = status
        self.payload = payload
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.payload)

    @property
    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)


def _chat_reply(content: str) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class OpenAICompatibleTests(unittest.IsolatedAsyncioTestCase):
    async def test_groq_send_message_posts_chat_completion(self) -> None:
        recorder = Recorder(payload=_chat_reply("hi there"))
        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(recorder))
        self.assertIsInstance(provider, OpenAICompatibleProvider)

        reply = await provider.send_message("User: hello", "Be nice", "m1")

        self.assertEqual(reply, "hi there")
        request = recorder.requests[0]
        self.assertEqual(str(request.url), "https://api.groq.com/openai/v1/chat/completions")
        self.assertEqual(request.headers["Authorization"], "Bearer gsk")
        self.assertEqual(
            recorder.last_json,
            {
                "model": "m1",
                "messages": [
                    {"role": "system", "content": "Be nice"},
                    {"role": "user", "content": "User: hello"},
                ],
                "temperature": 0.0,
            },
        )
        await provider.aclose()

    async def test_deepseek_adds_accept_header_and_stream_flag(self) -> None:
        recorder = Recorder(payload=_chat_reply("ok"))
        provider = build_provider("deepseek", "ds", transport=httpx.MockTransport(recorder))
        await provider.send_message("q", "s", "deepseek-chat")
        request = recorder.requests[0]
        self.assertEqual(str(request.url), "https://api.deepseek.com/chat/completions")
        self.assertEqual(request.headers["Accept"], "application/json")
        self.assertIs(recorder.last_json["stream"], False)

    async def test_non_2xx_raises_provider_error_with_body(self) -> None:
        recorder = Recorder(status=401, text='{"error":"bad key"}')
        provider = build_provider("openai", "sk", transport=httpx.MockTransport(recorder))
        with self.assertRaises(ProviderError) as ctx:
            await provider.send_message("q", "s", "gpt-4o")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.provider, "openai")
        self.assertIn("bad key", ctx.exception.body or "")

    async def test_empty_choices_raise(self) -> None:
        recorder = Recorder(payload={"choices": []})
        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(recorder))
        with self.assertRaisesRegex(ProviderError, "no response from groq"):
            await provider.send_message("q", "s", "m1")

    async def test_undecodable_body_raises(self) -> None:
        recorder = Recorder(text="<html>oops</html>")
        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(recorder))
        with self.assertRaises(ProviderError):
            await provider.send_message("q", "s", "m1")

    async def test_transport_failure_raises(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(_refuse))
        with self.assertRaisesRegex(ProviderError, "Unable to connect"):
            await provider.send_message("q", "s", "m1")

    async def test_openai_models_keep_gpt_only(self) -> None:
        recorder = Recorder(payload={"data": [{"id": "gpt-4o"}, {"id": "dall-e-3"}, {"id": "whisper-1"}]})
        provider = build_provider("openai", "sk", transport=httpx.MockTransport(recorder))
        self.assertEqual(await provider.list_models(), ["gpt-4o"])
        self.assertEqual(str(recorder.requests[0].url), "https://api.openai.com/v1/models")

    async def test_groq_models_drop_whisper_and_accept_models_shape(self) -> None:
        recorder = Recorder(payload={"models": [{"id": "llama3"}, {"id": "Whisper-Large"}]})
        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(recorder))
        self.assertEqual(await provider.list_models(), ["llama3"])

    async def test_models_empty_list_is_not_an_error(self) -> None:
        recorder = Recorder(payload={"data": []})
        provider = build_provider("groq", "gsk", transport=httpx.MockTransport(recorder))
        self.assertEqual(await provider.list_models(), [])

    async def test_unrecognized_models_payload_raises(self) -> None:
        for payload in ({"object": "list"}, ["gpt-4o"]):
            with self.subTest(payload=payload):
                recorder = Recorder(payload=payload)
                provider = build_provider("openai", "sk", transport=httpx.MockTransport(recorder))
                with self.assertLogs("chatmux.providers.base", level="WARNING") as logs:
                    with self.assertRaises(ProviderError) as ctx:
                        await provider.list_models()
                self.assertEqual(str(ctx.exception), "Unrecognized model list from openai.")
                self.assertIn("provider.models.unrecognized", logs.output[0])

    async def test_unknown_name_uses_openai_endpoint_and_override(self) -> None:
        recorder = Recorder(payload=_chat_reply("ok"))
        provider = build_provider(
            "local-proxy",
            "",
            ProviderOverride(base_url="http://localhost:8080/v1", headers={"X-Team": "a"}),
            transport=httpx.MockTransport(recorder),
        )
        await provider.send_message("q", "s", "m")
        request = recorder.requests[0]
        self.assertEqual(str(request.url), "http://localhost:8080/v1/chat/completions")
        self.assertNotIn("Authorization", request.headers)
        self.assertEqual(request.headers["X-Team"], "a")


class AnthropicTests(unittest.IsolatedAsyncioTestCase):
    async def test_send_message_folds_system_prompt(self) -> None:
        recorder = Recorder(payload={"content": [{"type": "text", "text": "Bonjour"}]})
        provider = build_provider("anthropic", "sk-ant", transport=httpx.MockTransport(recorder))
        self.assertIsInstance(provider, AnthropicProvider)

        reply = await provider.send_message("User: hi", "Speak French", "claude-x")

        self.assertEqual(reply, "Bonjour")
        request = recorder.requests[0]
        self.assertEqual(str(request.url), "https://api.anthropic.com/v1/messages")
        self.assertEqual(request.headers["x-api-key"], "sk-ant")
        self.assertEqual(request.headers["anthropic-version"], "2023-06-01")
        self.assertEqual(
            recorder.last_json,
            {
                "model": "claude-x",
                "max_tokens": 8192,
                "messages": [{"role": "user", "content": "Speak French\n\nUser: hi"}],
            },
        )

    async def test_list_models_keeps_model_entries(self) -> None:
        recorder = Recorder(
            payload={"data": [{"id": "claude-a", "type": "model"}, {"id": "x", "type": "other"}]}
        )
        provider = build_provider("anthropic", "sk-ant", transport=httpx.MockTransport(recorder))
        self.assertEqual(await provider.list_models(), ["claude-a"])

    async def test_list_models_without_data_raises(self) -> None:
        recorder = Recorder(payload={"error": "nope"})
        provider = build_provider("anthropic", "sk-ant", transport=httpx.MockTransport(recorder))
        with self.assertRaises(ProviderError):
            await provider.list_models()

    async def test_missing_key_raises_before_request(self) -> None:
        recorder = Recorder(payload={})
        provider = build_provider("anthropic", "", transport=httpx.MockTransport(recorder))
        with self.assertRaises(MissingCredentialError):
            await provider.send_message("q", "s", "m")
        self.assertEqual(recorder.requests, [])


class FakeGeminiChat:
    def __init__(self, owner: FakeGeminiClient, model: str, config: Any) -> None:
        self.owner = owner
        self.model = model
        self.config = config

    async def send_message(self, contents: Any) -> Any:
        self.owner.sent.append((self.model, self.config, contents))
        if self.owner.error is not None:
            raise self.owner.error
        part = SimpleNamespace(text=self.owner.reply)
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


class FakePager:
    def __init__(self, names: list[str]) -> None:
        self._models = [SimpleNamespace(name=name) for name in names]

    def __aiter__(self) -> Any:
        async def _gen() -> Any:
            for model in self._models:
                yield model

        return _gen()


class FakeGeminiClient:
    """Shape-compatible stand-in for ``genai.Client``'s async surface."""

    def __init__(self, reply: str = "", names: list[str] | None = None,
                 error: Exception | None = None) -> None:
        self.reply = reply
        self.names = names or []
        self.error = error
        self.sent: list[tuple[str, Any, Any]] = []
        self.aio = SimpleNamespace(
            chats=SimpleNamespace(create=self._create),
            models=SimpleNamespace(list=self._list),
        )

    def _create(self, *, model: str, config: Any) -> FakeGeminiChat:
        return FakeGeminiChat(self, model, config)

    async def _list(self) -> FakePager:
        if self.error is not None:
            raise self.error
        return FakePager(self.names)


class GeminiTests(unittest.IsolatedAsyncioTestCase):
    async def test_send_message_uses_generation_settings(self) -> None:
        client = FakeGeminiClient(reply="Hello from Gemini")
        provider = build_provider("gemini", "g-key", client=client)
        self.assertIsInstance(provider, GeminiProvider)

        reply = await provider.send_message("User: hi", "Be brief", "gemini-1.5-flash")

        self.assertEqual(reply, "Hello from Gemini")
        model, config, contents = client.sent[0]
        self.assertEqual(model, "gemini-1.5-flash")
        self.assertEqual(contents, "User: hi")
        self.assertEqual(config.temperature, 0.2)
        self.assertEqual(config.top_k, 40)
        self.assertEqual(config.top_p, 0.95)
        self.assertEqual(len(config.safety_settings), 4)

    async def test_sdk_argument_errors_become_provider_errors(self) -> None:
        client = FakeGeminiClient(error=ValueError("model is required."))
        provider = build_provider("gemini", "g-key", client=client)
        with self.assertRaises(ProviderError) as ctx:
            await provider.send_message("User: hi", "", "")
        self.assertEqual(str(ctx.exception), "Request to gemini failed: model is required.")
        self.assertEqual(ctx.exception.provider, "gemini")

    async def test_image_request_sends_inline_part(self) -> None:
        client = FakeGeminiClient(reply="A cat")
        provider = build_provider("gemini", "g-key", client=client)
        assert isinstance(provider, GeminiProvider)
        await provider.send_message_with_image("What is this?", b"\x89PNG", "cat.png", "", "m")
        contents = client.sent[0][2]
        self.assertEqual(contents[1], "What is this?")
        self.assertEqual(contents[0].inline_data.mime_type, "image/png")

    async def test_list_models_strips_prefix_and_skips_vision(self) -> None:
        client = FakeGeminiClient(names=["models/gemini-1.5-pro", "models/gemini-pro-vision"])
        provider = build_provider("gemini", "g-key", client=client)
        self.assertEqual(await provider.list_models(), ["gemini-1.5-pro"])

    async def test_list_models_falls_back_when_listing_fails(self) -> None:
        client = FakeGeminiClient(error=httpx.ConnectError("offline"))
        provider = build_provider("gemini", "g-key", client=client)
        self.assertEqual(await provider.list_models(), FALLBACK_MODELS)
        with self.assertRaises(ProviderError):
            await provider.validate_credentials()

    def test_mime_type_guess_defaults_to_jpeg(self) -> None:
        self.assertEqual(guess_image_mime_type("a.gif"), "image/gif")
        self.assertEqual(guess_image_mime_type("noext"), "image/jpeg")


class FakeOllamaClient:
    def __init__(self, reply: Any = None, models: Any = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.models = models
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def chat(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.reply

    async def list(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.models


class OllamaTests(unittest.IsolatedAsyncioTestCase):
    async def test_send_message_is_non_streaming(self) -> None:
        client = FakeOllamaClient(reply={"message": {"role": "assistant", "content": "local"}})
        provider = build_provider("ollama", client=client)
        self.assertIsInstance(provider, OllamaProvider)

        self.assertEqual(await provider.send_message("User: hi", "sys", "llama3"), "local")
        call = client.calls[0]
        self.assertEqual(call["model"], "llama3")
        self.assertFalse(call["stream"])
        self.assertEqual(
            call["messages"],
            [{"role": "system", "content": "sys"}, {"role": "user", "content": "User: hi"}],
        )

    async def test_list_models_reads_name_or_model(self) -> None:
        models = SimpleNamespace(models=[SimpleNamespace(model="qwen2.5:7b"), {"name": "llama3:latest"}])
        provider = build_provider("ollama", client=FakeOllamaClient(models=models))
        self.assertEqual(await provider.list_models(), ["qwen2.5:7b", "llama3:latest"])

    async def test_response_error_maps_to_provider_error(self) -> None:
        client = FakeOllamaClient(error=ResponseError("model not found", 404))
        provider = build_provider("ollama", client=client)
        with self.assertRaises(ProviderError) as ctx:
            await provider.send_message("q", "s", "missing")
        self.assertEqual(ctx.exception.status_code, 404)


class RegistryTests(unittest.IsolatedAsyncioTestCase):
    def test_known_providers_and_credentials(self) -> None:
        self.assertIn("groq", KNOWN_PROVIDERS)
        self.assertFalse(requires_credential("ollama"))
        self.assertTrue(requires_credential("Groq"))
        self.assertEqual(strip_models_prefix("models/gemini-pro"), "gemini-pro")
        self.assertEqual(strip_models_prefix("gpt-4o"), "gpt-4o")

    async def test_pool_caches_and_rebuilds_on_credential_change(self) -> None:
        credentials = {"groq": "one"}
        pool = ProviderPool(credentials, transport=httpx.MockTransport(Recorder(payload={})))
        first = pool.get("groq")
        self.assertIs(pool.get("GROQ"), first)
        self.assertIsNot(pool.get("groq", timeout=15), first)
        credentials["groq"] = "two"
        rebuilt = pool.get("groq")
        self.assertIsNot(rebuilt, first)
        self.assertEqual(rebuilt.credential, "two")
        await pool.aclose()


if __name__ == "__main__":
    unittest.main()
