"""
Placeholder Tokens

Opaque tokens substituted for protected spans while text travels to the
vendor. Tokens look like @@0@@, @@1@@, ... and are issued by one counter per
translation run.
"""

import re

PLACEHOLDER_PATTERN = re.compile(r"@@(\d+)@@")


def make_placeholder(index: int) -> str:
    return f"@@{index}@@"


def contains_placeholder(text: str) -> bool:
    """Return True if text already contains something that looks like a token."""
    return PLACEHOLDER_PATTERN.search(text) is not None


class PlaceholderCounter:
    """
    Issues placeholder tokens with strictly increasing indexes from 0.

    One counter is shared by every filter of a pipeline so tokens stay unique
    across filters and across repeated apply() calls.

    Example:
        >>> counter = PlaceholderCounter()
        >>> counter.next()
        '@@0@@'
        >>> counter.next()
        '@@1@@'
        >>> counter.current()
        2
    """

    def __init__(self):
        self._issued = 0

    def next(self) -> str:
        token = make_placeholder(self._issued)
        self._issued += 1
        return token

    def current(self) -> int:
        """Number of tokens issued so far."""
        return self._issued
