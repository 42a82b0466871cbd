"""
Protection module - Placeholder masking

This module provides:
- placeholders: token syntax and the shared counter
- filters: URL and HTML tag filters
- pipeline: ordered filter chains with stats
"""

from glossa.protection.placeholders import (
    PLACEHOLDER_PATTERN,
    PlaceholderCounter,
    contains_placeholder,
    make_placeholder,
)

from glossa.protection.filters import (
    BaseFilter,
    HtmlTagFilter,
    UrlFilter,
    build_filter,
)

from glossa.protection.pipeline import FilterPipeline
