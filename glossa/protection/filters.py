"""
Placeholder Filters

Each filter masks one kind of span before translation and puts it back
afterwards:
- UrlFilter: http(s), ftp and mailto URIs
- HtmlTagFilter: whole <tag ...>...</tag> blocks for one tag name

Filters are created from identifiers ("url", "html_<tag>") by build_filter().
"""

import re
from typing import Dict, Optional

from glossa.logger import get_logger
from glossa.protection.placeholders import PLACEHOLDER_PATTERN, PlaceholderCounter

logger = get_logger(__name__)

URL_PATTERN = re.compile(r'\b(?:https?|ftp|mailto)://[^\s"<>()]+', re.IGNORECASE)

TAG_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


class BaseFilter:
    """
    Masks every match of a pattern with a fresh placeholder.

    The instance remembers which token replaced which span, so restore()
    only touches its own tokens and leaves tokens of other filters alone.
    """

    name = "base"

    def __init__(self, pattern: re.Pattern):
        self.pattern = pattern
        self._originals: Dict[str, str] = {}

    def apply(self, text: str, counter: PlaceholderCounter) -> str:
        """Replace non-overlapping matches, left to right, with new tokens."""
        def _mask(match: re.Match) -> str:
            token = counter.next()
            self._originals[token] = match.group(0)
            return token

        return self.pattern.sub(_mask, text)

    def restore(self, text: str) -> str:
        """Put back the spans this filter replaced."""
        if not self._originals:
            return text

        def _unmask(match: re.Match) -> str:
            return self._originals.get(match.group(0), match.group(0))

        return PLACEHOLDER_PATTERN.sub(_unmask, text)

    def stats(self) -> Dict[str, object]:
        return {"filter": self.name, "count": len(self._originals)}


class UrlFilter(BaseFilter):
    """Protects URLs so the vendor cannot translate or reformat them."""

    name = "url"

    def __init__(self):
        super().__init__(URL_PATTERN)


class HtmlTagFilter(BaseFilter):
    """
    Protects complete blocks of one tag, from opening to closing tag.

    Matching is non-greedy, so nested tags of the same name are not
    supported: in <code><code>x</code></code> the first block ends at the
    first </code>.
    """

    def __init__(self, tag: str):
        self.tag = tag.lower()
        self.name = f"html_{self.tag}"
        escaped = re.escape(self.tag)
        # \b keeps html_a from swallowing <abbr> or <aside>
        pattern = re.compile(rf"<{escaped}\b.*?>.*?</{escaped}\s*>", re.IGNORECASE | re.DOTALL)
        super().__init__(pattern)


def build_filter(identifier: str) -> Optional[BaseFilter]:
    """
    Create a filter from its identifier.

    Args:
        identifier: "url" or "html_<tag>"

    Returns:
        A fresh filter instance, or None for identifiers we do not know
    """
    identifier = (identifier or "").strip()
    if identifier == "url":
        return UrlFilter()
    if identifier.startswith("html_"):
        tag = identifier[len("html_"):]
        if TAG_NAME_PATTERN.match(tag):
            return HtmlTagFilter(tag)
    logger.debug(f"Ignoring unknown filter: {identifier!r}")
    return None
