"""Domain exception hierarchy for the chatmux client."""

from __future__ import annotations


class ChatmuxError(RuntimeError):
    """Base class for all domain-level chatmux errors."""


class ConfigValidationError(ChatmuxError):
    """Raised when configuration cannot be parsed or validated."""


class StoreError(ChatmuxError):
    """Raised when the conversation store cannot complete an operation."""


class ConversationExistsError(StoreError):
    """Raised when inserting a conversation whose id is already stored."""


class ProviderError(ChatmuxError):
    """Raised when a provider exchange fails.

    ``status_code`` and ``body`` are populated for non-2xx HTTP responses and
    left as ``None`` for transport or decode failures.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.body = body


class MissingCredentialError(ProviderError):
    """Raised when a provider that needs a credential has none configured."""


class SearchError(ChatmuxError):
    """Raised when the web search service fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EnhancerError(ChatmuxError):
    """Raised when the query enhancer cannot rewrite a search query."""


class CommandError(ChatmuxError):
    """Raised for malformed or unresolvable slash commands."""


class RequestCancelledError(ChatmuxError):
    """Raised when the user cancels an in-flight remote call."""
