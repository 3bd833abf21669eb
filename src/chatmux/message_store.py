"""In-memory message list for the active conversation.

Owns the two session counters: the ``#N`` message id and the global
code-block number. Both are plain attributes of the store, reset only by
:meth:`MessageStore.clear`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .code_blocks import CodeBlock, extract_code_blocks
from .search.prefixes import has_search_prefix
from .store import StoredMessage, new_id, utcnow


class MessageType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SEARCH = "search"


@dataclass
class ChatMessage:
    """A message as the session sees it."""

    id: int
    type: MessageType
    content: str
    timestamp: datetime = field(default_factory=utcnow)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    # Set on user turns that started a web search; those stay out of prompts.
    search_turn: bool = False
    persisted: bool = True
    store_id: str = field(default_factory=new_id)

    @property
    def in_prompt_context(self) -> bool:
        return self.type is not MessageType.SEARCH and not self.search_turn


class MessageStore:
    """Ordered messages plus the counters that number them."""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._next_id = 1
        self._next_block = 1

    @property
    def messages(self) -> list[ChatMessage]:
        """Return a shallow copy of the message list."""
        return list(self._messages)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def next_block_number(self) -> int:
        return self._next_block

    def __len__(self) -> int:
        return len(self._messages)

    def _allocate_block(self) -> int:
        number = self._next_block
        self._next_block += 1
        return number

    def append(
        self,
        message_type: MessageType,
        content: str,
        *,
        search_turn: bool = False,
    ) -> ChatMessage:
        """Append a message with the next session id.

        Assistant replies get their fenced blocks numbered from the global
        counter; other message types carry no numbered blocks.
        """
        blocks: list[CodeBlock] = []
        if message_type is MessageType.ASSISTANT:
            blocks = extract_code_blocks(content, self._allocate_block)
        message = ChatMessage(
            id=self._next_id,
            type=message_type,
            content=content,
            code_blocks=blocks,
            search_turn=search_turn,
        )
        self._next_id += 1
        self._messages.append(message)
        return message

    def withdraw(self, message: ChatMessage) -> bool:
        """Remove ``message`` if it is the newest entry (aborted turns).

        The id it consumed is released so numbering stays gap-free.
        """
        if not self._messages or self._messages[-1] is not message:
            return False
        self._messages.pop()
        self._next_id = message.id
        return True

    def clear(self) -> None:
        """Drop all messages and reset both counters."""
        self._messages = []
        self._next_id = 1
        self._next_block = 1

    def replace_from_history(
        self, stored: Iterable[StoredMessage], *, number_code_blocks: bool = False
    ) -> None:
        """Rebuild the list from persisted rows with fresh ids ``1..n``.

        By default code blocks of historical replies are left unnumbered and
        the block counter is untouched; with ``number_code_blocks`` they
        continue from the current counter.
        """
        allocate = self._allocate_block if number_code_blocks else (lambda: None)
        rebuilt: list[ChatMessage] = []
        for index, row in enumerate(stored, start=1):
            message_type = MessageType(row.role)
            blocks: list[CodeBlock] = []
            if message_type is MessageType.ASSISTANT:
                blocks = extract_code_blocks(row.content, allocate)
            rebuilt.append(
                ChatMessage(
                    id=index,
                    type=message_type,
                    content=row.content,
                    timestamp=row.created_at,
                    code_blocks=blocks,
                    search_turn=(
                        message_type is MessageType.USER
                        and has_search_prefix(row.content)
                    ),
                    store_id=row.id,
                )
            )
        self._messages = rebuilt
        self._next_id = len(rebuilt) + 1

    def get(self, message_id: int) -> ChatMessage | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def find_code_block(self, number: int) -> CodeBlock | None:
        """Find block ``number`` in the most recent assistant message holding it."""
        for message in reversed(self._messages):
            if message.type is not MessageType.ASSISTANT:
                continue
            for block in message.code_blocks:
                if block.number == number:
                    return block
        return None

    def build_prompt(self, current: ChatMessage) -> str:
        """Linearise prior context plus ``current`` into one prompt string.

        Search results and the user turns that requested them are left out.
        """
        lines: list[str] = []
        for message in self._messages:
            if message is current:
                break
            if not message.in_prompt_context:
                continue
            speaker = "User" if message.type is MessageType.USER else "Assistant"
            lines.append(f"{speaker}: {message.content}")
        lines.append(f"User: {current.content}")
        return "\n".join(lines)
