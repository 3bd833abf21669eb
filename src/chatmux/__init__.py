"""Top-level package for chatmux."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import ChatmuxApp
    from .commands import CommandDispatcher
    from .config import ChatmuxConfig, ensure_config_dir, load_config
    from .engine import ConversationEngine
    from .exceptions import (
        ChatmuxError,
        CommandError,
        ConfigValidationError,
        EnhancerError,
        ProviderError,
        SearchError,
        StoreError,
    )
    from .message_store import MessageStore
    from .state import StateManager, TurnState
    from .store import ConversationStore

__all__ = [
    "ChatmuxApp",
    "ChatmuxConfig",
    "ChatmuxError",
    "CommandDispatcher",
    "CommandError",
    "ConfigValidationError",
    "ConversationEngine",
    "ConversationStore",
    "EnhancerError",
    "MessageStore",
    "ProviderError",
    "SearchError",
    "StateManager",
    "StoreError",
    "TurnState",
    "ensure_config_dir",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep the UI stack out of non-UI imports."""
    if name in {"ChatmuxConfig", "ensure_config_dir", "load_config"}:
        from .config import ChatmuxConfig, ensure_config_dir, load_config

        return {
            "ChatmuxConfig": ChatmuxConfig,
            "ensure_config_dir": ensure_config_dir,
            "load_config": load_config,
        }[name]
    if name in {
        "ChatmuxError",
        "CommandError",
        "ConfigValidationError",
        "EnhancerError",
        "ProviderError",
        "SearchError",
        "StoreError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"StateManager", "TurnState"}:
        from .state import StateManager, TurnState

        return {"StateManager": StateManager, "TurnState": TurnState}[name]
    if name == "MessageStore":
        from .message_store import MessageStore

        return MessageStore
    if name == "ConversationStore":
        from .store import ConversationStore

        return ConversationStore
    if name == "ConversationEngine":
        from .engine import ConversationEngine

        return ConversationEngine
    if name == "CommandDispatcher":
        from .commands import CommandDispatcher

        return CommandDispatcher
    if name == "ChatmuxApp":
        from .app import ChatmuxApp

        return ChatmuxApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
