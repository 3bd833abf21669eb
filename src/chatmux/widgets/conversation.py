"""Scrollable conversation view widget."""

from __future__ import annotations

from textual.containers import VerticalScroll

from ..message_store import ChatMessage
from .message import MessageBubble


class ConversationView(VerticalScroll):
    """A scrollable container that hosts message bubbles."""

    def __init__(
        self,
        *,
        username: str = "User",
        markdown: bool = True,
        id: str | None = None,  # noqa: A002
    ) -> None:
        super().__init__(id=id)
        self.username = username
        self.markdown = markdown

    async def add_message(self, message: ChatMessage) -> MessageBubble:
        """Create, mount, and scroll to a new message bubble."""
        bubble = MessageBubble(
            message,
            username=self.username,
            markdown=self.markdown,
            id=f"message-{message.id}",
        )
        await self.mount(bubble)
        self.scroll_end(animate=True)
        return bubble

    async def remove_message(self, message: ChatMessage) -> None:
        for bubble in self.query(MessageBubble):
            if bubble.message is message:
                await bubble.remove()
                return

    async def replace_messages(self, messages: list[ChatMessage]) -> None:
        """Clear the view and render ``messages`` in order."""
        await self.remove_children()
        for message in messages:
            await self.mount(
                MessageBubble(
                    message,
                    username=self.username,
                    markdown=self.markdown,
                    id=f"message-{message.id}",
                )
            )
        self.scroll_end(animate=False)
