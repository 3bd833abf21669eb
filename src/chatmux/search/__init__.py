"""Web search, query enhancement and search-turn labelling."""

from .enhancer import EnhanceType, EnhancementResult, QueryEnhancer
from .prefixes import (
    ENHANCED_SEARCH_PREFIX,
    SEARCH_PREFIX,
    has_search_prefix,
    search_display_text,
    strip_search_prefix,
)
from .tavily import SearchResponse, SearchResult, TavilySearchClient, format_search_results

__all__ = [
    "ENHANCED_SEARCH_PREFIX",
    "EnhanceType",
    "EnhancementResult",
    "QueryEnhancer",
    "SEARCH_PREFIX",
    "SearchResponse",
    "SearchResult",
    "TavilySearchClient",
    "format_search_results",
    "has_search_prefix",
    "search_display_text",
    "strip_search_prefix",
]
