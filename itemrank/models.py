from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
from loguru import logger

from .config import NO_PREDICTION
from .exceptions import DataLoadError, PredictionError
from .feedback import PosOnlyFeedback


class ScoreMatrixRecommender:
    """
    Serves precomputed scores from a dense (n_users, n_items) matrix.

    NaN cells mean the model had nothing to say about the pair and are
    reported as NO_PREDICTION.
    """

    def __init__(self, scores) -> None:
        scores = np.asarray(scores, dtype="float64")
        if scores.ndim != 2:
            raise ValueError(f"Score matrix must be 2D (users, items). Got {scores.shape}.")
        self.scores = scores

    @property
    def n_users(self) -> int:
        return int(self.scores.shape[0])

    @property
    def n_items(self) -> int:
        return int(self.scores.shape[1])

    def predict(self, user_id: int, item_id: int) -> float:
        if not 0 <= user_id < self.n_users:
            raise PredictionError(user_id, item_id, f"user id outside [0, {self.n_users})")
        if not 0 <= item_id < self.n_items:
            raise PredictionError(user_id, item_id, f"item id outside [0, {self.n_items})")
        score = float(self.scores[user_id, item_id])
        if np.isnan(score):
            return NO_PREDICTION
        return score

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ScoreMatrixRecommender":
        path = Path(path)
        if not path.exists():
            raise DataLoadError(f"Score matrix not found: {path}")
        logger.info("Loading score matrix from {}", path)
        try:
            scores = np.load(path, allow_pickle=False)
        except (OSError, ValueError) as e:
            raise DataLoadError(f"Cannot load score matrix from {path}: {e}") from e
        try:
            model = cls(scores)
        except (TypeError, ValueError) as e:
            raise DataLoadError(f"Invalid score matrix in {path}: {e}") from e
        logger.info("Loaded score matrix: {} users x {} items", model.n_users, model.n_items)
        return model


class MostPopular:
    """Scores an item by how many users have observed it; ignores the user."""

    def __init__(self, train: PosOnlyFeedback) -> None:
        counts = {}
        for user_id in train.all_users:
            for item_id in train.observed_items(user_id):
                counts[item_id] = counts.get(item_id, 0) + 1
        self.item_counts = counts

    def predict(self, user_id: int, item_id: int) -> float:
        return float(self.item_counts.get(item_id, 0))
