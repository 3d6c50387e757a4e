from __future__ import annotations

"""
Positive-only feedback store and the readers that fill it.

Feedback files hold one "user item" pair per line. Columns may be separated
by tabs, spaces or commas; columns after the second (ratings, timestamps) are
ignored. Original ids are translated to dense internal ids through the
supplied mappings, so the same mappings must later be used to restore them.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import pandas as pd  # type: ignore
from loguru import logger

from .config import COMMENT_CHAR, FEEDBACK_SEPARATOR
from .exceptions import DataLoadError, FeedbackError
from .mapping import EntityMapping, IdentityMapping

_SEPARATOR_RE = re.compile(FEEDBACK_SEPARATOR)


class PosOnlyFeedback:
    """User -> set of observed items. Read-only for the ranker."""

    def __init__(self, pairs: Optional[Iterable[Tuple[int, int]]] = None) -> None:
        self._user_items: Dict[int, Set[int]] = {}
        self._items: Set[int] = set()
        self._count = 0
        if pairs is not None:
            for user_id, item_id in pairs:
                self.add(user_id, item_id)

    def __len__(self) -> int:
        return self._count

    def add(self, user_id: int, item_id: int) -> None:
        item_id = int(item_id)
        items = self._user_items.setdefault(int(user_id), set())
        if item_id not in items:
            items.add(item_id)
            self._items.add(item_id)
            self._count += 1

    @property
    def all_users(self) -> List[int]:
        return sorted(self._user_items)

    @property
    def all_items(self) -> List[int]:
        return sorted(self._items)

    def observed_items(self, user_id: int) -> Set[int]:
        try:
            return self._user_items[user_id]
        except KeyError:
            raise FeedbackError(user_id) from None

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        user_col: str = "user_id",
        item_col: str = "item_id",
    ) -> "PosOnlyFeedback":
        missing = [c for c in (user_col, item_col) if c not in df.columns]
        if missing:
            raise KeyError(f"Feedback DataFrame is missing columns: {missing}")
        pairs = df[[user_col, item_col]].itertuples(index=False, name=None)
        return cls((int(u), int(i)) for u, i in pairs)


def _read_columns(path: Path, n_cols: int) -> pd.DataFrame:
    """
    Parse the first n_cols fields of every non-comment line.

    Rows may differ in width; fields past n_cols are dropped per row.
    """
    if not path.exists():
        raise DataLoadError(f"File not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            raw_lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Cannot read {path}: {e}") from e

    rows: List[List[str]] = []
    for lineno, raw in enumerate(raw_lines, start=1):
        line = raw.split(COMMENT_CHAR, 1)[0].strip()
        if not line:
            continue
        fields = _SEPARATOR_RE.split(line, maxsplit=n_cols)[:n_cols]
        if len(fields) < n_cols:
            raise DataLoadError(
                f"Expected at least {n_cols} column(s) in {path} line {lineno}, found {len(fields)}"
            )
        rows.append(fields)

    if not rows:
        logger.warning("Input file {} is empty", path)
    return pd.DataFrame(rows, columns=list(range(n_cols)), dtype=str)


def read_feedback(
    path: Union[str, Path],
    user_mapping: Optional[Union[EntityMapping, IdentityMapping]] = None,
    item_mapping: Optional[Union[EntityMapping, IdentityMapping]] = None,
) -> PosOnlyFeedback:
    """
    Read positive-only feedback from a text file.

    Args:
        path: file with one "user item" pair per line
        user_mapping: translates original user ids to internal ids (identity if None)
        item_mapping: translates original item ids to internal ids (identity if None)

    Returns:
        PosOnlyFeedback in internal id space
    """
    path = Path(path)
    user_mapping = user_mapping if user_mapping is not None else IdentityMapping()
    item_mapping = item_mapping if item_mapping is not None else IdentityMapping()

    df = _read_columns(path, 2)
    feedback = PosOnlyFeedback()
    try:
        for raw_user, raw_item in df.itertuples(index=False, name=None):
            feedback.add(user_mapping.to_internal(raw_user), item_mapping.to_internal(raw_item))
    except ValueError as e:
        raise DataLoadError(f"Invalid id in {path}: {e}") from e

    logger.info(
        "Read {} feedback events ({} users, {} items) from {}",
        len(feedback), len(feedback.all_users), len(feedback.all_items), path,
    )
    return feedback


def read_id_list(
    path: Union[str, Path],
    mapping: Optional[Union[EntityMapping, IdentityMapping]] = None,
) -> List[int]:
    """
    Read one original id per line and return internal ids in file order.
    """
    path = Path(path)
    mapping = mapping if mapping is not None else IdentityMapping()

    df = _read_columns(path, 1)
    try:
        ids = [mapping.to_internal(raw) for raw in df[0].tolist()]
    except ValueError as e:
        raise DataLoadError(f"Invalid id in {path}: {e}") from e

    logger.info("Read {} ids from {}", len(ids), path)
    return ids
