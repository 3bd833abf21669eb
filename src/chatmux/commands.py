"""Slash-command parsing and dispatch.

Input that does not start with ``/`` is a chat turn. Recognised commands:

- ``/cN`` copy message N
- ``/oN`` open message N in the external editor
- ``/sN`` speak message N
- ``/bN`` copy code block N
- ``/web Q [+domain...]`` web search
- ``/webe Q [+domain...]`` web search after query enhancement
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import logging
import re
from typing import TYPE_CHECKING

from .events.domain import STATUS_TEMPORARY
from .exceptions import CommandError, EnhancerError

if TYPE_CHECKING:
    from .engine import ConversationEngine
    from .message_store import ChatMessage

LOGGER = logging.getLogger(__name__)

PREVIEW_LENGTH = 20

_SEARCH_RE = re.compile(r"^/(?P<command>webe|web)(?:\s+(?P<rest>.*))?$", re.DOTALL)
_INDEXED_COMMANDS = {"c": "copy", "o": "edit", "s": "speak", "b": "block"}


@dataclass(frozen=True)
class ParsedCommand:
    """A validated slash command."""

    name: str
    number: int | None = None
    query: str = ""
    domains: tuple[str, ...] = ()


@dataclass
class DispatchResult:
    """What the UI should show after handling one line of input."""

    status: str | None = None
    message: ChatMessage | None = None


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text if len(text) <= length else text[:length] + "..."


def split_domains(argument: str) -> tuple[str, tuple[str, ...]]:
    """Split ``"query +a.com +b.org"`` into the query and its domain list."""
    parts = argument.split("+")
    query = parts[0].strip()
    domains = tuple(part.strip() for part in parts[1:] if part.strip())
    return query, domains


def parse_command(text: str) -> ParsedCommand | None:
    """Parse one input line; ``None`` means it is a plain chat message.

    Raises :class:`CommandError` for malformed or unknown commands.
    """
    stripped = text.strip()
    if not stripped.startswith("/"):
        return None

    search = _SEARCH_RE.match(stripped)
    if search is not None:
        command = search.group("command")
        query, domains = split_domains(search.group("rest") or "")
        if not query:
            raise CommandError(f"Usage: /{command} <query> [+domain]")
        return ParsedCommand(name=command, query=query, domains=domains)

    head = stripped.split(maxsplit=1)[0]
    name = _INDEXED_COMMANDS.get(head[1:2])
    if name is None:
        raise CommandError(f"Unknown command: {head}")
    digits = stripped[2:].strip()
    if not (digits.isascii() and digits.isdigit()):
        raise CommandError(f"Invalid number in {stripped!r}")
    return ParsedCommand(name=name, number=int(digits))


def _number(command: ParsedCommand) -> int:
    if command.number is None:
        raise CommandError(f"/{command.name} needs a number")
    return command.number


CommandHandler = Callable[[ParsedCommand], Awaitable[DispatchResult]]


class CommandDispatcher:
    """Route input lines to the engine and turn failures into status text."""

    def __init__(self, engine: ConversationEngine) -> None:
        self._engine = engine
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        self.register("copy", self._copy_message, "/cN  copy message N")
        self.register("edit", self._open_in_editor, "/oN  open message N in $EDITOR")
        self.register("speak", self._speak, "/sN  read message N aloud")
        self.register("block", self._copy_block, "/bN  copy code block N")
        self.register("web", self._search, "/web Q [+domain]  search the web")
        self.register("webe", self._search, "/webe Q [+domain]  enhance, then search")

    def register(self, name: str, handler: CommandHandler, help_text: str = "") -> None:
        self._handlers[name] = handler
        self._help[name] = help_text or name

    def get_commands(self) -> list[str]:
        """Return one help line per registered command."""
        return list(self._help.values())

    async def dispatch(self, text: str) -> DispatchResult:
        """Handle one line of input; the line is consumed whatever happens."""
        try:
            parsed = parse_command(text)
            if parsed is None:
                result = DispatchResult(message=await self._engine.submit_chat(text))
            else:
                result = await self._handlers[parsed.name](parsed)
        except CommandError as exc:
            result = DispatchResult(status=str(exc))
        except EnhancerError as exc:
            result = DispatchResult(status=f"Failed to enhance query: {exc}")

        if result.status:
            LOGGER.info(
                "command.status",
                extra={"event": "command.status", "status": result.status},
            )
            await self._engine.bus.publish(
                STATUS_TEMPORARY, {"text": result.status}, source="commands"
            )
        return result

    async def _copy_message(self, command: ParsedCommand) -> DispatchResult:
        text = self._engine.copy_message(_number(command))
        return DispatchResult(status=f"📋 Copied: {preview(text)}")

    async def _copy_block(self, command: ParsedCommand) -> DispatchResult:
        number = _number(command)
        text = self._engine.copy_block(number)
        return DispatchResult(
            status=f"📋 Copied code block [/b{number}]: {preview(text)}"
        )

    async def _open_in_editor(self, command: ParsedCommand) -> DispatchResult:
        number = _number(command)
        await self._engine.open_in_editor(number)
        return DispatchResult(status=f"Closed editor for message #{number}")

    async def _speak(self, command: ParsedCommand) -> DispatchResult:
        number = _number(command)
        await self._engine.speak(number)
        return DispatchResult(status=f"🔊 Finished reading message #{number}")

    async def _search(self, command: ParsedCommand) -> DispatchResult:
        message = await self._engine.submit_search(
            command.query,
            enhanced=command.name == "webe",
            domains=command.domains,
        )
        return DispatchResult(message=message)
