"""Utility modules for ThoughtChain MCP."""

from .errors import (
    ConfigException,
    PersistenceException,
    ThoughtChainException,
    ToolExecutionError,
)
from .logging import configure_logging, get_session_id, set_session_id, tool_context
from .text_metrics import (
    clear_word_cache,
    get_cache_stats,
    jaccard_similarity,
    normalize_for_comparison,
    word_entropy,
)

__all__ = [
    # Errors
    "ConfigException",
    "PersistenceException",
    "ThoughtChainException",
    "ToolExecutionError",
    # Logging
    "configure_logging",
    "get_session_id",
    "set_session_id",
    "tool_context",
    # Text metrics
    "clear_word_cache",
    "get_cache_stats",
    "jaccard_similarity",
    "normalize_for_comparison",
    "word_entropy",
]
