"""
Top-N item prediction writer.

For every user: score each candidate item with the recommender, drop items
the user already observed and items the model has no prediction for, order
by descending score (ties keep candidate order), cut to num_predictions and
write one line

    <user>\\t[<item>:<score>,<item>:<score>,...]\\n

with original ids restored through the user / item mappings.
"""

from __future__ import annotations

import heapq
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Collection, Iterable, Iterator, List, Optional, Sequence, TextIO, Union

import numpy as np
from loguru import logger

from . import config
from .contracts import FeedbackStore, IdMapping, Recommender
from .exceptions import MappingError, PredictionError
from .mapping import IdentityMapping
from .pipeline_types import RankedList, ScoredItem

_IDENTITY = IdentityMapping()


# ---------------------------------------------------------------------------
# Scoring / ranking
# ---------------------------------------------------------------------------

def has_prediction(score: float) -> bool:
    """False for NO_PREDICTION and anything not above it (-inf, NaN)."""
    return score > config.NO_PREDICTION


def score_candidates(
    recommender: Recommender,
    user_id: int,
    candidate_items: Iterable[int],
) -> List[ScoredItem]:
    """
    Score every candidate in candidate order.

    A None score is the model's way of saying "no prediction" and becomes
    NO_PREDICTION. Any other failure is raised as PredictionError carrying
    the user and item ids.
    """
    scored: List[ScoredItem] = []
    for item_id in candidate_items:
        try:
            score = recommender.predict(user_id, item_id)
        except PredictionError:
            raise
        except Exception as e:
            raise PredictionError(user_id, item_id, str(e)) from e
        if score is None:
            score = config.NO_PREDICTION
        scored.append(ScoredItem(item_id=item_id, score=score))
    return scored


def _rank_key(entry):
    position, scored = entry
    return (-scored.score, position)


def rank_items(
    scored_items: Sequence[ScoredItem],
    ignore_items: Collection[int],
    num_predictions: int = config.UNBOUNDED,
) -> List[ScoredItem]:
    """
    Filter, order and cut scored candidates.

    Ordering is by descending score; equal scores keep their relative order
    from scored_items. A negative num_predictions means no limit. For a
    bounded list only the best num_predictions entries are selected (heap),
    which gives the same prefix as a full stable sort.
    """
    kept = [
        (position, scored)
        for position, scored in enumerate(scored_items)
        if scored.item_id not in ignore_items and has_prediction(scored.score)
    ]

    if num_predictions < 0:
        ranked = sorted(kept, key=_rank_key)
    else:
        ranked = heapq.nsmallest(num_predictions, kept, key=_rank_key)

    return [scored for _, scored in ranked]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_score(score: float) -> str:
    """
    Locale-independent decimal rendering: '.' as decimal point, no grouping,
    no exponent, shortest digits that round-trip ('1' rather than '1.0').
    """
    if not isinstance(score, np.floating):
        score = float(score)
    return np.format_float_positional(score, trim="-")


def format_line(ranked: RankedList) -> str:
    pairs = config.PAIR_SEPARATOR.join(
        f"{item_id}{config.KEY_VALUE_SEPARATOR}{format_score(score)}"
        for item_id, score in ranked.items
    )
    return (
        f"{ranked.user_id}{config.FIELD_SEPARATOR}"
        f"{config.LIST_OPEN}{pairs}{config.LIST_CLOSE}{config.LINE_END}"
    )


# ---------------------------------------------------------------------------
# Single user
# ---------------------------------------------------------------------------

def rank_user(
    recommender: Recommender,
    user_id: int,
    candidate_items: Iterable[int],
    ignore_items: Collection[int],
    num_predictions: int = config.UNBOUNDED,
    user_mapping: Optional[IdMapping] = None,
    item_mapping: Optional[IdMapping] = None,
) -> RankedList:
    """Rank candidates for one user and restore original ids."""
    user_mapping = user_mapping if user_mapping is not None else _IDENTITY
    item_mapping = item_mapping if item_mapping is not None else _IDENTITY

    scored = score_candidates(recommender, user_id, candidate_items)
    top = rank_items(scored, ignore_items, num_predictions)

    try:
        return RankedList(
            user_id=user_mapping.to_original(user_id),
            items=[(item_mapping.to_original(s.item_id), s.score) for s in top],
        )
    except MappingError as e:
        if e.user_id is not None:
            raise
        raise MappingError(e.internal_id, user_id=user_id) from e


def write_user_predictions(
    recommender: Recommender,
    user_id: int,
    candidate_items: Iterable[int],
    ignore_items: Collection[int],
    num_predictions: int,
    writer: TextIO,
    user_mapping: Optional[IdMapping] = None,
    item_mapping: Optional[IdMapping] = None,
) -> None:
    """
    Write the ranked prediction line for one user.

    Args:
        recommender: model used to score (user, item) pairs
        user_id: internal id of the user
        candidate_items: internal item ids to rank; order breaks score ties
        ignore_items: internal item ids never to emit (e.g. already observed)
        num_predictions: maximum number of items, -1 for no limit
        writer: text sink; receives exactly one complete line
        user_mapping: restores original user ids (identity if None)
        item_mapping: restores original item ids (identity if None)

    Raises:
        PredictionError: the recommender failed for some candidate
        MappingError: a mapping has no original id for an emitted id
        OSError: the writer rejected the line

    Nothing is written when any of these is raised.
    """
    ranked = rank_user(
        recommender, user_id, candidate_items, ignore_items,
        num_predictions, user_mapping, item_mapping,
    )
    writer.write(format_line(ranked))
    logger.debug("Wrote {} predictions for user {}", len(ranked), ranked.user_id)


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def _write_lines(users: Sequence[int], lines: Iterator[str], writer: TextIO) -> int:
    written = 0
    try:
        for line in lines:
            writer.write(line)
            written += 1
            if written % config.PROGRESS_EVERY == 0:
                logger.info("Wrote predictions for {}/{} users", written, len(users))
    except Exception as e:
        logger.error(
            "Writing predictions stopped at user {} ({} of {} lines written): {}",
            users[written], written, len(users), e,
        )
        raise
    return written


def write_predictions(
    recommender: Recommender,
    train: FeedbackStore,
    candidate_items: Iterable[int],
    num_predictions: int,
    writer: TextIO,
    users: Optional[Sequence[int]] = None,
    user_mapping: Optional[IdMapping] = None,
    item_mapping: Optional[IdMapping] = None,
    n_jobs: int = 1,
) -> int:
    """
    Write one ranked prediction line per user, in user order.

    Items each user observed in train are never recommended to them. When
    users is None every user in train is ranked. With n_jobs > 1 users are
    ranked on a thread pool, but lines are still written in user order and
    the first failure stops all further output; lines already written stay.

    Returns:
        number of lines written
    """
    users = list(train.all_users) if users is None else list(users)
    candidates = list(candidate_items)

    logger.info(
        "Writing predictions for {} users over {} candidate items (num_predictions={}, n_jobs={})",
        len(users), len(candidates), num_predictions, n_jobs,
    )

    def line_for(user_id: int) -> str:
        ignore_items = train.observed_items(user_id)
        ranked = rank_user(
            recommender, user_id, candidates, ignore_items,
            num_predictions, user_mapping, item_mapping,
        )
        logger.debug("Ranked {} predictions for user {}", len(ranked), ranked.user_id)
        return format_line(ranked)

    if n_jobs <= 1:
        written = _write_lines(users, map(line_for, users), writer)
    else:
        pool = ThreadPoolExecutor(max_workers=n_jobs)
        try:
            written = _write_lines(users, pool.map(line_for, users), writer)
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    logger.info("Finished writing predictions for {} users", written)
    return written


def write_predictions_to_file(
    recommender: Recommender,
    train: FeedbackStore,
    candidate_items: Iterable[int],
    num_predictions: int,
    filename: Union[str, Path],
    users: Optional[Sequence[int]] = None,
    user_mapping: Optional[IdMapping] = None,
    item_mapping: Optional[IdMapping] = None,
    n_jobs: int = 1,
) -> int:
    """Same as write_predictions(), writing to a UTF-8 file that is created or truncated."""
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Writing predictions to {}", path)
    with path.open("w", encoding="utf-8", newline="\n") as writer:
        return write_predictions(
            recommender, train, candidate_items, num_predictions, writer,
            users=users, user_mapping=user_mapping, item_mapping=item_mapping,
            n_jobs=n_jobs,
        )
