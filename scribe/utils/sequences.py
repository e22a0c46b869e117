"""
SEQUENCE HELPERS
================

find_last(items, predicate): scan from the end and return the first match, or
None. Used to pick "the last user message" out of a conversation without
guessing when there is none.
"""

from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")


def find_last(items: Sequence[T], predicate: Callable[[T], bool]) -> Optional[T]:
    for item in reversed(items):
        if predicate(item):
            return item
    return None
