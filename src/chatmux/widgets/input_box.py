"""Input row containing the message field and send button."""

from __future__ import annotations

from textual.containers import Horizontal
from textual.message import Message
from textual.widgets import Button, Input


class InputBox(Horizontal):
    """Message field plus a send button; both post :class:`InputBox.Submitted`."""

    DEFAULT_CSS = """
    InputBox {
        height: auto;
    }
    InputBox > #message_input {
        width: 1fr;
    }
    """

    class Submitted(Message):
        """Posted with the raw text when the user sends a line."""

        def __init__(self, text: str) -> None:
            super().__init__()
            self.text = text

    def compose(self):  # type: ignore[override]
        yield Input(
            placeholder="Type a message... (/web, /webe, /cN, /bN, /oN, /sN)",
            id="message_input",
        )
        yield Button("Send", id="send_button", variant="success")

    def _submit(self) -> None:
        field = self.query_one("#message_input", Input)
        text = field.value
        if not text.strip():
            return
        field.value = ""
        self.post_message(self.Submitted(text))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send_button":
            event.stop()
            self._submit()
