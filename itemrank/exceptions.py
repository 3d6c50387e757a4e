"""
Exception types raised while producing ranked prediction lists.
"""

from __future__ import annotations

from typing import Optional


class ItemRankError(Exception):
    """Base class for all itemrank errors."""
    pass


class PredictionError(ItemRankError):
    """The scoring model could not produce a score for a (user, item) pair."""

    def __init__(self, user_id: int, item_id: int, reason: Optional[str] = None):
        self.user_id = user_id
        self.item_id = item_id
        self.reason = reason
        msg = f"Cannot predict score for user {user_id}, item {item_id}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class MappingError(ItemRankError, KeyError):
    """An entity mapping was queried with an id it does not know."""

    def __init__(self, internal_id: int, user_id: Optional[int] = None):
        self.internal_id = internal_id
        self.user_id = user_id
        msg = f"No original id known for internal id {internal_id}"
        if user_id is not None:
            msg = f"{msg} (while ranking user {user_id})"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError quotes its argument otherwise
        return self.args[0]


class FeedbackError(ItemRankError):
    """The feedback store has no entry for the requested user."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} is not known to the feedback store")


class DataLoadError(ItemRankError):
    """An input file could not be read or parsed."""
    pass
