"""External collaborators: clipboard, editor and text-to-speech."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
import logging
import os
from pathlib import Path
import shlex
import shutil
import subprocess
import sys
import tempfile

from .exceptions import CommandError

LOGGER = logging.getLogger(__name__)

FALLBACK_EDITORS = ("nvim", "nano", "vim")


def resolve_editor(
    env: Mapping[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
) -> list[str]:
    """Return the editor argv: ``$EDITOR``, ``$VISUAL``, then the first installed fallback."""
    environ = os.environ if env is None else env
    for variable in ("EDITOR", "VISUAL"):
        value = environ.get(variable, "").strip()
        if value:
            return shlex.split(value)
    for candidate in FALLBACK_EDITORS:
        if which(candidate):
            return [candidate]
    return ["vim"]


def open_in_editor(
    text: str,
    editor: list[str] | None = None,
    run: Callable[..., subprocess.CompletedProcess[bytes]] = subprocess.run,
) -> None:
    """Write ``text`` to a temp file and block until the editor exits.

    The caller is responsible for releasing the terminal first.
    """
    argv = editor or resolve_editor()
    with tempfile.NamedTemporaryFile(
        "w", prefix="chatmux-", suffix=".md", delete=False, encoding="utf-8"
    ) as handle:
        handle.write(text)
        temp_path = Path(handle.name)
    try:
        run([*argv, str(temp_path)], check=False)
    except OSError as exc:
        raise CommandError(f"Unable to start editor {argv[0]!r}: {exc}") from exc
    finally:
        temp_path.unlink(missing_ok=True)


def speech_command(text: str, platform: str | None = None) -> list[str]:
    current = platform or sys.platform
    if current == "darwin":
        return ["say", "-r", "220", text]
    if current.startswith("linux"):
        return ["espeak", "-s", "180", text]
    raise CommandError(f"text-to-speech not supported on {current}")


class SpeechEngine:
    """Speak one message at a time; a new request stops the previous one."""

    def __init__(self, platform: str | None = None) -> None:
        self._platform = platform
        self._process: asyncio.subprocess.Process | None = None
        self._lock = asyncio.Lock()

    async def stop(self) -> None:
        async with self._lock:
            process = self._process
            self._process = None
        if process is not None and process.returncode is None:
            process.terminate()
            await process.wait()

    async def speak(self, text: str) -> None:
        argv = speech_command(text, self._platform)
        await self.stop()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise CommandError(f"Unable to start {argv[0]!r}: {exc}") from exc
        async with self._lock:
            self._process = process
        LOGGER.debug("speech.started", extra={"event": "speech.started", "pid": process.pid})
        await process.wait()
        async with self._lock:
            if self._process is process:
                self._process = None


@dataclass
class Collaborators:
    """Callables the engine hands message text to."""

    clipboard: Callable[[str], None] | None = None
    editor: Callable[[str], Awaitable[None]] | None = None
    speech: Callable[[str], Awaitable[None]] | None = None
