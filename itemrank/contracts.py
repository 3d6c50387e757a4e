"""Collaborator contracts consumed by the ranker."""

from __future__ import annotations

from typing import Collection, Hashable, Optional, Protocol, Sequence


class Recommender(Protocol):
    def predict(self, user_id: int, item_id: int) -> Optional[float]:
        """
        Score one (user, item) pair in internal id space.

        Returning NO_PREDICTION (or None) means the model has no opinion on
        the pair; raising means the pair could not be evaluated at all.
        """
        ...


class FeedbackStore(Protocol):
    """Positive-only feedback: which items each user has already seen."""

    @property
    def all_users(self) -> Sequence[int]: ...

    def observed_items(self, user_id: int) -> Collection[int]: ...


class IdMapping(Protocol):
    def to_original(self, internal_id: int) -> Hashable: ...
