"""Typed containers shared across ranking modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, List, Tuple


@dataclass(frozen=True)
class ScoredItem:
    """Internal item id paired with the score the model gave it."""

    item_id: int
    score: float


@dataclass
class RankedList:
    """Ranked output for one user, with external ids already restored."""

    user_id: Hashable
    items: List[Tuple[Hashable, float]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> List[Hashable]:
        return [item_id for item_id, _ in self.items]
