"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from typing import Any

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from ..code_blocks import annotate_code_blocks
from ..message_store import ChatMessage, MessageType


class MessageBubble(Vertical):
    """Render one chat message with its ``#N`` id, role and command hints."""

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
        margin-bottom: 1;
    }
    MessageBubble > #header-block {
        padding: 0;
        color: $text-muted;
    }
    MessageBubble > #content-block {
        height: auto;
    }
    MessageBubble.role-search > #content-block {
        border-left: solid $accent;
        padding: 0 1;
    }
    MessageBubble.unsaved > #header-block {
        color: $warning;
    }
    """

    def __init__(
        self,
        message: ChatMessage,
        username: str = "User",
        markdown: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.message = message
        self.username = username
        self.markdown = markdown
        self.add_class(f"role-{message.type.value}")
        if not message.persisted:
            self.add_class("unsaved")

    @property
    def role_prefix(self) -> str:
        """Return a human-friendly role label."""
        if self.message.type is MessageType.USER:
            return self.username
        if self.message.type is MessageType.SEARCH:
            return "Search"
        return "Assistant"

    def _compose_header(self) -> Text:
        number = self.message.id
        header = Text()
        header.append(f"#{number} ", style="bold")
        header.append(self.role_prefix, style="bold")
        header.append(f"  {self.message.timestamp.astimezone():%H:%M}")
        header.append(f"  /c{number} /s{number}", style="dim")
        if not self.message.persisted:
            header.append("  (not saved)", style="italic")
        return header

    def _render_content(self) -> Markdown | Text:
        body = annotate_code_blocks(self.message.content, self.message.code_blocks)
        if self.markdown:
            return Markdown(body)
        return Text(body)

    def compose(self) -> ComposeResult:
        yield Static(self._compose_header(), id="header-block")
        yield Static(self._render_content(), id="content-block")
