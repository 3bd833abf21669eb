"""Fenced code-block extraction and ``/bN`` annotation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import re

# Fences sit on their own line; the opening one may carry a language tag.
_FENCE_RE = re.compile(
    r"^[ \t]*```(?P<lang>[^\n`]*)\n(?P<code>.*?)^[ \t]*```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)


@dataclass(frozen=True)
class CodeBlock:
    """One fenced block; ``number`` is ``None`` for unnumbered history blocks."""

    number: int | None
    language: str
    content: str


def _body(match: re.Match[str]) -> str:
    code = match.group("code")
    return code[:-1] if code.endswith("\n") else code


def extract_code_blocks(
    content: str, allocate: Callable[[], int | None]
) -> list[CodeBlock]:
    """Return the fenced blocks of ``content`` in order.

    ``allocate`` is called once per block and supplies its number.
    """
    return [
        CodeBlock(
            number=allocate(),
            language=match.group("lang").strip(),
            content=_body(match),
        )
        for match in _FENCE_RE.finditer(content)
    ]


def annotate_code_blocks(content: str, blocks: list[CodeBlock]) -> str:
    """Append a ``[/bN]`` marker after each numbered block's closing fence."""
    numbers = iter(block.number for block in blocks)

    def _marker(match: re.Match[str]) -> str:
        number = next(numbers, None)
        if number is None:
            return match.group(0)
        return f"{match.group(0)}\n[/b{number}]"

    return _FENCE_RE.sub(_marker, content)
