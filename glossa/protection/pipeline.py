"""
Filter Pipeline

Runs an ordered list of placeholder filters that share one counter.
apply() goes through the filters in list order, restore() in reverse order,
so a filter that masked a span containing another filter's token hands that
token back intact before the other filter restores it.
"""

from typing import Dict, List, Optional

from glossa.logger import get_logger
from glossa.protection.filters import BaseFilter, build_filter
from glossa.protection.placeholders import PlaceholderCounter

logger = get_logger(__name__)


class FilterPipeline:
    """
    Ordered placeholder filters built from identifiers.

    Example:
        >>> pipeline = FilterPipeline(["url", "html_a"])
        >>> masked = pipeline.apply('See <a href="https://x.io">x</a>')
        >>> masked
        'See @@1@@'
        >>> pipeline.restore(masked)
        'See <a href="https://x.io">x</a>'
    """

    def __init__(self, identifiers: Optional[List[str]] = None, counter: Optional[PlaceholderCounter] = None):
        self.counter = counter or PlaceholderCounter()
        self.filters: List[BaseFilter] = []
        for identifier in identifiers or []:
            built = build_filter(identifier)
            if built is not None:
                self.filters.append(built)

    def __bool__(self) -> bool:
        return bool(self.filters)

    def apply(self, text: str) -> str:
        for f in self.filters:
            text = f.apply(text, self.counter)
        if self.filters:
            logger.debug(f"Masked {self.counter.current()} span(s) with {len(self.filters)} filter(s)")
        return text

    def restore(self, text: str) -> str:
        for f in reversed(self.filters):
            text = f.restore(text)
        return text

    def stats(self) -> List[Dict[str, object]]:
        """Per-filter counts in apply order, zero counts included."""
        return [f.stats() for f in self.filters]
