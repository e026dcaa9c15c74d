"""
Deny-list content filter applied to search results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

DEFAULT_DENY_LIST: tuple[str, ...] = (
    "fuck",
    "dick",
    "ass",
)


@dataclass(frozen=True)
class ContentFilter:
    """
    Case-sensitive substring matcher.

    A deny-listed word anywhere in the text is a match, including inside
    longer words ("class" matches "ass"). There is no redaction: callers drop
    the whole post.
    """

    deny_list: Sequence[str] = DEFAULT_DENY_LIST

    def is_filtered(self, text: str) -> bool:
        for word in self.deny_list:
            if word in text:
                return True
        return False
