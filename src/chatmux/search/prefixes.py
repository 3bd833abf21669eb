"""Markers that label a user turn as a web search."""

from __future__ import annotations

SEARCH_PREFIX = "🔍 Searching for: "
ENHANCED_SEARCH_PREFIX = "🔍+ Enhanced search: "
SEARCH_PREFIXES = (SEARCH_PREFIX, ENHANCED_SEARCH_PREFIX)


def has_search_prefix(content: str) -> bool:
    return content.startswith(SEARCH_PREFIXES)


def strip_search_prefix(content: str) -> str:
    """Remove one leading search marker; other text is returned unchanged."""
    for prefix in SEARCH_PREFIXES:
        if content.startswith(prefix):
            return content[len(prefix) :]
    return content


def search_display_text(
    query: str, *, enhanced: bool = False, domains: tuple[str, ...] | list[str] = ()
) -> str:
    """Compose the user-visible text recorded for a search turn."""
    prefix = ENHANCED_SEARCH_PREFIX if enhanced else SEARCH_PREFIX
    text = f"{prefix}{query}"
    if domains:
        text += "\nDomains: " + ", ".join(domains)
    return text
