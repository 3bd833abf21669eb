"""Main Textual application: a thin shell over the conversation engine."""

from __future__ import annotations

from collections.abc import Coroutine
import logging
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Footer, Header

from .collaborators import Collaborators, SpeechEngine, open_in_editor
from .commands import CommandDispatcher
from .config import ChatmuxConfig, save_config
from .engine import ConversationEngine
from .events import Event, EventBus
from .events.domain import (
    CONVERSATION_LOADED,
    CONVERSATION_RESET,
    ERROR_OCCURRED,
    INFLIGHT_FINISHED,
    INFLIGHT_STARTED,
    MESSAGE_APPENDED,
    MESSAGE_WITHDRAWN,
    STATUS_TEMPORARY,
    TITLE_UPDATED,
)
from .exceptions import ChatmuxError, ConfigValidationError, StoreError
from .providers import KNOWN_PROVIDERS
from .screens import (
    ConversationChoice,
    ConversationPickerScreen,
    InfoScreen,
    SimplePickerScreen,
)
from .store import ConversationStore
from .widgets.conversation import ConversationView
from .widgets.input_box import InputBox
from .widgets.status_bar import StatusBar

LOGGER = logging.getLogger(__name__)

STATUS_CLEAR_SECONDS = 5.0


class ChatmuxApp(App[None]):
    """Multi-provider chat client; all conversation logic lives in the engine."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        layout: vertical;
        width: 100%;
        height: 1fr;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    InputBox {
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #send_button {
        margin-left: 1;
        min-width: 10;
    }

    #status_bar {
        padding: 0 1;
        background: $surface;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+n", "new_conversation", "New"),
        Binding("ctrl+l", "conversation_picker", "Conversations"),
        Binding("ctrl+p", "provider_picker", "Provider"),
        Binding("ctrl+o", "model_picker", "Model"),
        Binding("ctrl+y", "system_prompt_picker", "Prompt"),
        Binding("f1", "help", "Help", show=False),
        Binding("escape", "cancel_request", "Cancel", show=False),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: ChatmuxConfig,
        store: ConversationStore,
        *,
        config_path: Path | None = None,
        engine: ConversationEngine | None = None,
    ) -> None:
        super().__init__()
        self.config = config
        self.store = store
        self.config_path = config_path
        self.title = "chatmux"
        self.speech = SpeechEngine()
        self.engine = engine or ConversationEngine.from_config(
            config,
            store,
            collaborators=Collaborators(
                clipboard=self.copy_to_clipboard,
                editor=self._edit_text,
                speech=self.speech.speak,
            ),
            bus=EventBus(),
        )
        self.dispatcher = CommandDispatcher(self.engine)
        self._status_timer: Any = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="app-root"):
            yield ConversationView(
                id="conversation",
                username=self.config.settings.username,
                markdown=self.config.settings.output_glamour,
            )
            yield InputBox(id="input_box")
            yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        """Wire engine events to widgets, then run the retention sweep."""
        self._w_conversation = self.query_one(ConversationView)
        self._w_status = self.query_one("#status_bar", StatusBar)
        self._subscribe(self.engine.bus)
        self._refresh_selection()
        self._w_status.set_title(self.engine.title)
        for problem in self.config.validate_selection():
            self.notify(problem, severity="warning")
        self.run_worker(self._retention_sweep(), group="startup")

    def _subscribe(self, bus: EventBus) -> None:
        bus.subscribe(MESSAGE_APPENDED, self._on_message_appended)
        bus.subscribe(MESSAGE_WITHDRAWN, self._on_message_withdrawn)
        bus.subscribe(TITLE_UPDATED, self._on_title_updated)
        bus.subscribe(CONVERSATION_RESET, self._on_conversation_reset)
        bus.subscribe(CONVERSATION_LOADED, self._on_conversation_loaded)
        bus.subscribe(INFLIGHT_STARTED, self._on_inflight_started)
        bus.subscribe(INFLIGHT_FINISHED, self._on_inflight_finished)
        bus.subscribe(ERROR_OCCURRED, self._on_error)
        bus.subscribe(STATUS_TEMPORARY, self._on_status)

    async def _retention_sweep(self) -> None:
        days = self.config.settings.conversation_retention_days
        if days <= 0:
            return
        try:
            removed = await self.store.cleanup_older_than(days)
        except StoreError as exc:
            self.notify(str(exc), severity="error")
            return
        if removed:
            self._set_status(f"Removed {removed} conversations older than {days} days")

    # -- engine events -------------------------------------------------------

    async def _on_message_appended(self, event: Event) -> None:
        await self._w_conversation.add_message(event.data["message"])

    async def _on_message_withdrawn(self, event: Event) -> None:
        await self._w_conversation.remove_message(event.data["message"])

    def _on_title_updated(self, event: Event) -> None:
        if event.data.get("conversation_id") == self.engine.conversation_id:
            self._w_status.set_title(str(event.data.get("title", "")))

    async def _on_conversation_reset(self, event: Event) -> None:
        await self._w_conversation.remove_children()
        self._w_status.set_title(str(event.data.get("title", "")))

    async def _on_conversation_loaded(self, event: Event) -> None:
        await self._w_conversation.replace_messages(event.data["messages"])
        self._w_status.set_title(str(event.data.get("title", "")))

    def _on_inflight_started(self, _event: Event) -> None:
        self._w_status.set_in_flight(True)

    def _on_inflight_finished(self, _event: Event) -> None:
        self._w_status.set_in_flight(False)

    def _on_error(self, event: Event) -> None:
        self.notify(str(event.data.get("message", "")), severity="error")

    def _on_status(self, event: Event) -> None:
        self._set_status(str(event.data.get("text", "")))

    def _set_status(self, text: str) -> None:
        self._w_status.set_transient(text)
        if self._status_timer is not None:
            self._status_timer.stop()
        self._status_timer = self.set_timer(
            STATUS_CLEAR_SECONDS, lambda: self._w_status.set_transient("")
        )

    # -- input ---------------------------------------------------------------

    def on_input_box_submitted(self, event: InputBox.Submitted) -> None:
        event.stop()
        self._run(self.dispatcher.dispatch(event.text))

    def _run(self, work: Coroutine[Any, Any, Any]) -> None:
        self.run_worker(self._guarded(work), group="engine")

    async def _guarded(self, work: Coroutine[Any, Any, Any]) -> None:
        try:
            await work
        except ChatmuxError as exc:
            LOGGER.error(
                "app.action.failed",
                extra={"event": "app.action.failed", "error": str(exc)},
            )
            self.notify(str(exc), severity="error")

    async def _edit_text(self, text: str) -> None:
        with self.suspend():
            open_in_editor(text)

    # -- actions -------------------------------------------------------------

    async def action_cancel_request(self) -> None:
        """Cancel the in-flight request, if any."""
        if not await self.engine.cancel_in_flight():
            self._set_status("No request to cancel.")

    def action_new_conversation(self) -> None:
        self._run(self.engine.new_conversation())

    def action_help(self) -> None:
        lines = ["Commands:", ""]
        lines.extend(self.dispatcher.get_commands())
        lines.append("")
        lines.append("Keys:")
        for binding in self.BINDINGS:
            if isinstance(binding, Binding):
                lines.append(f"{binding.key} - {binding.description}")
        self.push_screen(InfoScreen("\n".join(lines)))

    def action_conversation_picker(self) -> None:
        self._run(self._open_conversation_picker())

    async def _open_conversation_picker(self) -> None:
        conversations = await self.store.list_conversations()

        def _chosen(choice: ConversationChoice | None) -> None:
            if choice is None:
                return
            if choice.action == "delete":
                self._run(self._delete_conversation(choice.conversation_id))
            else:
                self._run(self.engine.load_conversation(choice.conversation_id))

        self.push_screen(ConversationPickerScreen(conversations), _chosen)

    async def _delete_conversation(self, conversation_id: str) -> None:
        if await self.engine.delete_conversation(conversation_id):
            self._set_status("Conversation deleted")

    def action_provider_picker(self) -> None:
        def _chosen(provider: str | None) -> None:
            if not provider or provider == self.engine.provider:
                return
            self.engine.select_provider(provider)
            self.engine.select_model("")
            self._persist_selection()
            self.action_model_picker()

        self.push_screen(
            SimplePickerScreen("Provider", list(KNOWN_PROVIDERS), self.engine.provider),
            _chosen,
        )

    def action_model_picker(self) -> None:
        self._run(self._open_model_picker())

    async def _open_model_picker(self) -> None:
        if not self.engine.provider:
            self._set_status("Choose a provider first (ctrl+p)")
            return
        self._set_status(f"Fetching models for {self.engine.provider}...")
        models = await self.engine.list_models()
        if not models:
            self._set_status(f"No models available for {self.engine.provider}")
            return

        def _chosen(model: str | None) -> None:
            if not model:
                return
            self.engine.select_model(model)
            self._persist_selection()

        self.push_screen(
            SimplePickerScreen(f"Model ({self.engine.provider})", models, self.engine.model),
            _chosen,
        )

    def action_system_prompt_picker(self) -> None:
        prompts = {prompt.title: prompt.content for prompt in self.config.system_prompts}
        active = next(
            (title for title, content in prompts.items() if content == self.engine.system_prompt),
            "",
        )

        def _chosen(title: str | None) -> None:
            if not title:
                return
            self.engine.select_system_prompt(prompts[title])
            self._persist_selection()
            self._set_status(f"System prompt: {title}")

        self.push_screen(SimplePickerScreen("System prompt", list(prompts), active), _chosen)

    def _refresh_selection(self) -> None:
        self._w_status.set_selection(provider=self.engine.provider, model=self.engine.model)
        self.sub_title = f"{self.engine.provider or '-'} / {self.engine.model or '-'}"

    def _persist_selection(self) -> None:
        """Mirror the engine's selection into the config file."""
        self.config.current_provider = self.engine.provider
        self.config.current_model = self.engine.model
        self.config.current_system_prompt = self.engine.system_prompt
        self._refresh_selection()
        try:
            save_config(self.config, self.config_path)
        except ConfigValidationError as exc:
            self.notify(str(exc), severity="error")

    async def action_quit(self) -> None:
        self.exit()

    async def on_unmount(self) -> None:
        """Discard in-flight work and stop background tasks during shutdown."""
        await self.speech.stop()
        await self.engine.shutdown()
