"""Reusable modal screens for pickers and info dialogs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Button, OptionList, Static

from .store import Conversation


def _selected_index(event: OptionList.OptionSelected) -> int:
    idx = getattr(event, "option_index", None)
    if idx is None:
        idx = getattr(event, "index", -1)
    try:
        return int(idx if idx is not None else -1)
    except (TypeError, ValueError):
        return -1


class InfoScreen(ModalScreen[None]):
    """Modal that shows a block of text and closes on Escape/OK."""

    CSS = """
    InfoScreen {
        align: center middle;
    }

    #info-dialog {
        width: 80;
        max-width: 120;
        max-height: 28;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #info-body {
        height: auto;
    }

    #info-actions {
        dock: bottom;
        height: 3;
        align: right middle;
    }
    """

    def __init__(self, text: str) -> None:
        super().__init__()
        self._text = text

    def compose(self) -> ComposeResult:
        with Container(id="info-dialog"):
            yield Static(self._text, id="info-body")
            with Container(id="info-actions"):
                yield Button("OK", id="info-ok", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "info-ok":
            event.stop()
            self.dismiss(None)

    def on_key(self, event: Any) -> None:  # noqa: ANN401
        key = str(getattr(event, "key", "")).lower()
        if key in {"escape", "enter"}:
            self.dismiss(None)


class SimplePickerScreen(ModalScreen[str | None]):
    """Modal picker for selecting from a list of strings."""

    CSS = """
    SimplePickerScreen {
        align: center middle;
    }

    #picker-dialog {
        width: 60;
        max-height: 24;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #picker-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #picker-help {
        padding-top: 1;
    }
    """

    BINDINGS = [Binding("escape", "cancel", "Close", show=False)]

    def __init__(self, title: str, options: list[str], active: str = "") -> None:
        super().__init__()
        self._title = title
        self._options = options
        self._active = active

    def compose(self) -> ComposeResult:
        with Container(id="picker-dialog"):
            yield Static(self._title, id="picker-title")
            yield OptionList(*self._options, id="picker-options")
            yield Static("Enter/click to select | Esc to cancel", id="picker-help")

    def on_mount(self) -> None:
        if self._active in self._options:
            self.query_one("#picker-options", OptionList).highlighted = (
                self._options.index(self._active)
            )

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        selected = _selected_index(event)
        if 0 <= selected < len(self._options):
            self.dismiss(self._options[selected])

    def action_cancel(self) -> None:
        self.dismiss(None)


@dataclass(frozen=True)
class ConversationChoice:
    """Result of the conversation picker: which conversation and what to do."""

    conversation_id: str
    action: str  # "load" or "delete"


class ConversationPickerScreen(ModalScreen[ConversationChoice | None]):
    """Picker over stored conversations; Enter loads, ``d`` deletes."""

    CSS = """
    ConversationPickerScreen {
        align: center middle;
    }

    #conv-dialog {
        width: 80;
        max-height: 26;
        padding: 1 2;
        border: round $panel;
        background: $surface;
    }

    #conv-title {
        padding-bottom: 1;
        text-style: bold;
    }

    #conv-help {
        padding-top: 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Close", show=False),
        Binding("d", "delete", "Delete", show=False),
    ]

    def __init__(self, conversations: list[Conversation]) -> None:
        super().__init__()
        self._conversations = conversations

    @staticmethod
    def _label(conversation: Conversation) -> str:
        updated = conversation.updated_at.astimezone().strftime("%Y-%m-%d %H:%M")
        return f"{conversation.title}  ·  {conversation.provider}/{conversation.model}  ·  {updated}"

    def compose(self) -> ComposeResult:
        with Container(id="conv-dialog"):
            yield Static("Conversations", id="conv-title")
            if self._conversations:
                yield OptionList(
                    *(self._label(item) for item in self._conversations),
                    id="conv-options",
                )
            else:
                yield Static("No saved conversations.", id="conv-empty")
            yield Static("Enter/click to load | d to delete | Esc to cancel", id="conv-help")

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        selected = _selected_index(event)
        if 0 <= selected < len(self._conversations):
            self.dismiss(ConversationChoice(self._conversations[selected].id, "load"))

    def action_delete(self) -> None:
        if not self._conversations:
            return
        highlighted = self.query_one("#conv-options", OptionList).highlighted
        if highlighted is not None and 0 <= highlighted < len(self._conversations):
            self.dismiss(ConversationChoice(self._conversations[highlighted].id, "delete"))

    def action_cancel(self) -> None:
        self.dismiss(None)
