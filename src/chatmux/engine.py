"""Conversation engine: turns, context assembly, titles and persistence.

The engine is owned by the UI's event loop. Turns are serialised by a turn
lock so each reply lands before the next user message is appended, and a
separate persistence lock sequences store writes (title updates included).
Remote calls run as a named background task so they can be cancelled
without tearing down the turn that awaits them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Sequence
from dataclasses import asdict
import logging
from typing import Any, TypeVar

from .collaborators import Collaborators
from .config import ChatmuxConfig
from .events import EventBus
from .events.domain import (
    CONVERSATION_CREATED,
    CONVERSATION_DELETED,
    CONVERSATION_LOADED,
    CONVERSATION_RESET,
    ERROR_OCCURRED,
    INFLIGHT_FINISHED,
    INFLIGHT_STARTED,
    MESSAGE_APPENDED,
    MESSAGE_WITHDRAWN,
    TITLE_UPDATED,
    ErrorOccurred,
    TitleUpdated,
)
from .exceptions import (
    CommandError,
    EnhancerError,
    ProviderError,
    RequestCancelledError,
    SearchError,
    StoreError,
)
from .message_store import ChatMessage, MessageStore, MessageType
from .providers.registry import ProviderPool, requires_credential
from .search.enhancer import EnhanceType, QueryEnhancer
from .search.location import formatted_location_and_time
from .search.prefixes import search_display_text, strip_search_prefix
from .search.tavily import TavilySearchClient, format_search_results
from .state import StateManager, TurnState
from .store import PLACEHOLDER_TITLE, Conversation, ConversationStore, StoredMessage, new_id
from .task_manager import TaskManager
from .titles import TitleGenerator

LOGGER = logging.getLogger(__name__)

INFLIGHT_TASK = "inflight"
SEARCH_PROVIDER = "tavily"
SEARCH_MODEL = "search"

T = TypeVar("T")


class _TurnDiscarded(Exception):
    """The session is shutting down; the turn's result must be dropped."""


class ConversationEngine:
    """Own the active conversation and drive chat and search turns."""

    def __init__(
        self,
        store: ConversationStore,
        providers: ProviderPool,
        *,
        search_client: TavilySearchClient | None = None,
        enhancer: QueryEnhancer | None = None,
        title_generator: TitleGenerator | None = None,
        collaborators: Collaborators | None = None,
        bus: EventBus | None = None,
        provider: str = "",
        model: str = "",
        system_prompt: str = "",
        number_loaded_code_blocks: bool = False,
    ) -> None:
        self.store = store
        self.providers = providers
        self.search_client = search_client
        self.enhancer = enhancer
        self.title_generator = title_generator
        self.collaborators = collaborators or Collaborators()
        self.bus = bus or EventBus()
        self.tasks = TaskManager()
        self.state = StateManager()
        self.messages = MessageStore()

        self.provider = provider.strip().lower()
        self.model = model.strip()
        self.system_prompt = system_prompt
        self.number_loaded_code_blocks = number_loaded_code_blocks

        self.conversation_id: str | None = None
        self.title = PLACEHOLDER_TITLE
        self._conversation_persisted = False
        self._pending_titles: dict[str, str] = {}
        self._turn_lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: ChatmuxConfig,
        store: ConversationStore,
        *,
        collaborators: Collaborators | None = None,
        bus: EventBus | None = None,
        providers: ProviderPool | None = None,
        search_client: TavilySearchClient | None = None,
    ) -> ConversationEngine:
        """Wire an engine and its helpers from the loaded configuration."""
        pool = providers or ProviderPool(
            config.api_keys, config.providers, config.http.timeout_seconds
        )
        auxiliary = config.auxiliary.provider
        title_provider = pool.get(auxiliary)
        enhance_provider = pool.get(
            auxiliary, timeout=config.http.enhancer_timeout_seconds
        )
        location_timeout = config.http.location_timeout_seconds

        async def _location() -> str:
            return await formatted_location_and_time(timeout=location_timeout)

        return cls(
            store,
            pool,
            search_client=search_client
            or TavilySearchClient(
                config.credential_for(SEARCH_PROVIDER),
                timeout=config.http.timeout_seconds,
            ),
            enhancer=QueryEnhancer(
                enhance_provider, config.auxiliary.enhance_model, _location
            ),
            title_generator=TitleGenerator(title_provider, config.auxiliary.title_model),
            collaborators=collaborators,
            bus=bus,
            provider=config.current_provider,
            model=config.current_model,
            system_prompt=config.current_system_prompt,
            number_loaded_code_blocks=config.settings.number_loaded_code_blocks,
        )

    # -- event helpers -------------------------------------------------------

    async def _publish(self, name: str, data: dict[str, Any]) -> None:
        await self.bus.publish(name, data, source="engine")

    async def _publish_error(self, source: str, message: str) -> None:
        await self._publish(ERROR_OCCURRED, asdict(ErrorOccurred(source=source, message=message)))

    async def _append(
        self, message_type: MessageType, content: str, *, search_turn: bool = False
    ) -> ChatMessage:
        message = self.messages.append(message_type, content, search_turn=search_turn)
        await self._publish(MESSAGE_APPENDED, {"message": message})
        return message

    # -- selections ----------------------------------------------------------

    def select_provider(self, name: str) -> None:
        self.provider = name.strip().lower()

    def select_model(self, model: str) -> None:
        self.model = model.strip()

    def select_system_prompt(self, content: str) -> None:
        self.system_prompt = content

    async def list_models(self, provider: str | None = None) -> list[str]:
        return await self.providers.get(provider or self.provider).list_models()

    # -- remote calls --------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self.tasks.is_running(INFLIGHT_TASK)

    async def _run_remote(self, call: Coroutine[Any, Any, T]) -> T:
        """Await ``call`` as the cancellable in-flight task.

        A user cancel surfaces as :class:`RequestCancelledError`; a cancel
        caused by shutdown surfaces as :class:`_TurnDiscarded`.
        """
        await self.state.transition_to(TurnState.IN_FLIGHT)
        await self._publish(INFLIGHT_STARTED, {"conversation_id": self.conversation_id})
        task = self.tasks.spawn(call, name=INFLIGHT_TASK)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            if await self.state.is_shutting_down():
                raise _TurnDiscarded() from None
            raise RequestCancelledError("request cancelled") from None
        finally:
            await self.state.transition_to(TurnState.IDLE)
            await self._publish(INFLIGHT_FINISHED, {"conversation_id": self.conversation_id})

    async def cancel_in_flight(self) -> bool:
        """Cancel the outstanding remote call, if any."""
        if not self.in_flight:
            return False
        await self.state.transition_to(TurnState.CANCELLING)
        cancelled = await self.tasks.cancel(INFLIGHT_TASK)
        LOGGER.info(
            "engine.inflight.cancelled",
            extra={"event": "engine.inflight.cancelled", "cancelled": cancelled},
        )
        return cancelled

    async def _ask_provider(self, prompt: str, provider: str, model: str, system_prompt: str) -> str:
        if not provider:
            return "Error: No provider selected. Choose one in the settings"
        if not model:
            return "Error: No model selected. Choose one in the settings"
        if requires_credential(provider) and not self.providers.credential(provider):
            return f"Error: Please provide an API key for {provider} in the settings"
        adapter = self.providers.get(provider)
        try:
            return await self._run_remote(adapter.send_message(prompt, system_prompt, model))
        except (ProviderError, RequestCancelledError) as exc:
            await self._publish_error("provider", str(exc))
            return f"Error: {exc}"

    # -- conversation bookkeeping --------------------------------------------

    def _start_conversation_if_needed(self, title_source: str) -> None:
        if self.conversation_id is not None:
            return
        self.conversation_id = new_id()
        self._conversation_persisted = False
        self.title = PLACEHOLDER_TITLE
        LOGGER.info(
            "engine.conversation.started",
            extra={"event": "engine.conversation.started", "conversation_id": self.conversation_id},
        )
        if self.title_generator is not None:
            self.tasks.spawn(
                self._generate_title(self.title_generator, self.conversation_id, title_source)
            )

    async def _generate_title(
        self, generator: TitleGenerator, conversation_id: str, text: str
    ) -> None:
        title = await generator.generate(text)
        if not title:
            return
        async with self._persist_lock:
            if conversation_id == self.conversation_id:
                self.title = title
            try:
                stored = await self.store.update_conversation_title(conversation_id, title)
            except StoreError as exc:
                await self._publish_error("store", str(exc))
                return
            if not stored:
                # Row not written yet; the first insert picks the title up.
                self._pending_titles[conversation_id] = title
        await self._publish(
            TITLE_UPDATED, asdict(TitleUpdated(conversation_id=conversation_id, title=title))
        )

    def _to_stored(self, message: ChatMessage, conversation_id: str) -> StoredMessage:
        return StoredMessage(
            id=message.store_id,
            conversation_id=conversation_id,
            role=message.type.value,
            content=message.content,
            created_at=message.timestamp,
        )

    async def _persist_exchange(
        self, request: ChatMessage, reply: ChatMessage, provider: str, model: str
    ) -> None:
        """Write one exchange: insert the conversation on first use, else append."""
        conversation_id = self.conversation_id
        if conversation_id is None:
            return
        rows = [self._to_stored(request, conversation_id), self._to_stored(reply, conversation_id)]
        async with self._persist_lock:
            try:
                if not self._conversation_persisted:
                    conversation = Conversation(
                        id=conversation_id,
                        title=self._pending_titles.pop(conversation_id, self.title),
                        provider=provider,
                        model=model,
                        created_at=request.timestamp,
                        updated_at=reply.timestamp,
                    )
                    await self.store.insert_conversation_with_messages(conversation, rows)
                    self._conversation_persisted = True
                    created = True
                else:
                    await self.store.append_messages(rows)
                    created = False
            except StoreError as exc:
                request.persisted = False
                reply.persisted = False
                LOGGER.error(
                    "engine.persist.failed",
                    extra={
                        "event": "engine.persist.failed",
                        "conversation_id": conversation_id,
                        "error": str(exc),
                    },
                )
                await self._publish_error("store", str(exc))
                return
        if created:
            await self._publish(
                CONVERSATION_CREATED,
                {"conversation_id": conversation_id, "title": self.title},
            )
        LOGGER.info(
            "engine.turn.persisted",
            extra={
                "event": "engine.turn.persisted",
                "conversation_id": conversation_id,
                "created": created,
            },
        )

    # -- turns ---------------------------------------------------------------

    async def submit_chat(self, text: str) -> ChatMessage | None:
        """Run one chat turn and return the assistant message.

        Returns ``None`` only when the session shut down mid-turn.
        """
        text = text.strip()
        if not text:
            raise CommandError("Nothing to send.")
        async with self._turn_lock:
            request = await self._append(MessageType.USER, text)
            self._start_conversation_if_needed(text)
            prompt = self.messages.build_prompt(request)
            provider, model = self.provider, self.model
            try:
                reply_text = await self._ask_provider(prompt, provider, model, self.system_prompt)
            except _TurnDiscarded:
                return None
            reply = await self._append(MessageType.ASSISTANT, reply_text)
            await self._persist_exchange(request, reply, provider, model)
            return reply

    async def submit_search(
        self,
        query: str,
        *,
        enhanced: bool = False,
        domains: Sequence[str] = (),
    ) -> ChatMessage | None:
        """Run one search turn and return the search message.

        A failed enhancement withdraws the user message, writes nothing and
        raises :class:`EnhancerError`.
        """
        query = query.strip()
        if not query:
            raise CommandError("Search query is empty.")
        domains = tuple(domains)
        async with self._turn_lock:
            request = await self._append(
                MessageType.USER,
                search_display_text(query, enhanced=enhanced, domains=domains),
                search_turn=True,
            )
            try:
                search_query = query
                if enhanced:
                    search_query = await self._enhance(query, request)
                self._start_conversation_if_needed(query)
                content = await self._search(search_query, domains)
            except _TurnDiscarded:
                return None
            reply = await self._append(MessageType.SEARCH, content)
            await self._persist_exchange(request, reply, SEARCH_PROVIDER, SEARCH_MODEL)
            return reply

    async def _enhance(self, query: str, request: ChatMessage) -> str:
        if self.enhancer is None:
            error = EnhancerError("query enhancer is not configured")
        else:
            try:
                result = await self._run_remote(self.enhancer.enhance(query, EnhanceType.WEB_SEARCH))
            except RequestCancelledError as exc:
                error = EnhancerError(str(exc))
            else:
                if result.ok:
                    return result.query
                error = result.error or EnhancerError("no enhanced query returned")
        if self.messages.withdraw(request):
            await self._publish(MESSAGE_WITHDRAWN, {"message": request})
        raise error

    async def _search(self, query: str, domains: tuple[str, ...]) -> str:
        if self.search_client is None:
            return "Error performing search: search is not configured"
        try:
            response = await self._run_remote(self.search_client.search(query, domains))
        except (SearchError, RequestCancelledError) as exc:
            await self._publish_error("search", str(exc))
            return f"Error performing search: {exc}"
        return format_search_results(response)

    # -- conversation management ---------------------------------------------

    async def new_conversation(self) -> None:
        await self.cancel_in_flight()
        async with self._turn_lock:
            self.messages.clear()
            self.conversation_id = None
            self._conversation_persisted = False
            self.title = PLACEHOLDER_TITLE
        await self._publish(CONVERSATION_RESET, {"title": self.title})

    async def load_conversation(self, conversation_id: str) -> list[ChatMessage]:
        """Replace the session with a stored conversation.

        The code-block counter keeps its session value.
        """
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise StoreError(f"Conversation {conversation_id} not found.")
        rows = await self.store.get_messages(conversation_id)
        await self.cancel_in_flight()
        async with self._turn_lock:
            self.messages.replace_from_history(
                rows, number_code_blocks=self.number_loaded_code_blocks
            )
            self.conversation_id = conversation.id
            self._conversation_persisted = True
            self.title = conversation.title
            loaded = self.messages.messages
        await self._publish(
            CONVERSATION_LOADED,
            {"conversation_id": conversation.id, "title": conversation.title, "messages": loaded},
        )
        return loaded

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = await self.store.delete_conversation(conversation_id)
        await self._publish(CONVERSATION_DELETED, {"conversation_id": conversation_id})
        if conversation_id == self.conversation_id:
            await self.new_conversation()
        return deleted

    # -- lookups delegated to collaborators ----------------------------------

    def _require_message(self, number: int) -> ChatMessage:
        message = self.messages.get(number)
        if message is None:
            raise CommandError(f"Message #{number} not found")
        return message

    def copy_message(self, number: int) -> str:
        text = strip_search_prefix(self._require_message(number).content)
        if self.collaborators.clipboard is not None:
            self.collaborators.clipboard(text)
        return text

    def copy_block(self, number: int) -> str:
        block = self.messages.find_code_block(number)
        if block is None:
            raise CommandError(f"Code block {number} not found")
        if self.collaborators.clipboard is not None:
            self.collaborators.clipboard(block.content)
        return block.content

    async def open_in_editor(self, number: int) -> str:
        text = self._require_message(number).content
        if self.collaborators.editor is None:
            raise CommandError("No editor available")
        await self.collaborators.editor(text)
        return text

    async def speak(self, number: int) -> str:
        text = self._require_message(number).content
        if self.collaborators.speech is None:
            raise CommandError("Text-to-speech is not available")
        await self.collaborators.speech(text)
        return text

    # -- lifecycle -----------------------------------------------------------

    async def drain(self) -> None:
        """Wait for background work such as title generation to finish."""
        await self.tasks.await_all()

    async def shutdown(self) -> None:
        """Discard in-flight work, stop background tasks and close adapters."""
        await self.state.transition_to(TurnState.SHUTTING_DOWN)
        await self.tasks.cancel_all()
        await self.providers.aclose()
        LOGGER.info("engine.shutdown", extra={"event": "engine.shutdown"})
