"""Status bar widget for provider, model and conversation state."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.widgets import Label, Static


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        groq  |  llama-3.3-70b-versatile  |  Rust lifetimes  |  ⏳ Waiting...  |  📋 Copied: ...
    The last segment holds transient status text set by commands.
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: auto;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar #status_inflight {
        color: $warning;
    }
    StatusBar #status_transient {
        color: $text-muted;
    }
    """

    def compose(self) -> ComposeResult:
        """Compose child labels for each status segment."""
        yield Label("No provider", id="status_provider")
        yield Label("|")
        yield Label("No model", id="status_model")
        yield Label("|")
        yield Label("New Conversation", id="status_title")
        yield Label("", id="status_inflight")
        yield Label("", id="status_transient")

    def on_mount(self) -> None:
        """Cache label references once after the DOM is ready."""
        self._lbl_provider = self.query_one("#status_provider", Label)
        self._lbl_model = self.query_one("#status_model", Label)
        self._lbl_title = self.query_one("#status_title", Label)
        self._lbl_inflight = self.query_one("#status_inflight", Label)
        self._lbl_transient = self.query_one("#status_transient", Label)

    def set_selection(self, *, provider: str, model: str) -> None:
        self._lbl_provider.update(provider or "No provider")
        self._lbl_model.update(model or "No model")

    def set_title(self, title: str) -> None:
        self._lbl_title.update(title)

    def set_in_flight(self, active: bool) -> None:
        self._lbl_inflight.update("| ⏳ Waiting... (esc to cancel)" if active else "")

    def set_transient(self, text: str) -> None:
        self._lbl_transient.update(f"| {text}" if text else "")
