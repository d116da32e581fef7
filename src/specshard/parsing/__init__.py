"""Source parsing for spec discovery."""

from specshard.parsing.treesitter import (
    SUPPORTED_LANGUAGES,
    detect_language,
    get_parser,
    has_parse_errors,
    iter_nodes,
    node_text,
    parse_code,
)

__all__ = [
    "SUPPORTED_LANGUAGES",
    "detect_language",
    "get_parser",
    "has_parse_errors",
    "iter_nodes",
    "node_text",
    "parse_code",
]
