from __future__ import annotations
"""
Mapping utilities between internal dense ids and original (external) ids.

The ranker computes everything on internal integer ids and only translates
back to the caller's ids when a line is written. IdentityMapping is the
default when no mapping is supplied; EntityMapping is the dict-backed mapping
built while reading raw data files.

Failure policy: EntityMapping.to_original raises MappingError for internal
ids it never assigned. It does not fall back to identity.
"""

from pathlib import Path
from typing import Dict, Hashable, List, Union

from loguru import logger
import pandas as pd  # type: ignore

from .exceptions import DataLoadError, MappingError

MAPPING_COLUMNS = ["internal_id", "original_id"]


class IdentityMapping:
    """Maps every id onto itself."""

    def to_original(self, internal_id: int) -> int:
        return internal_id

    def to_internal(self, original_id: Hashable) -> int:
        return int(original_id)


class EntityMapping:
    """
    Bidirectional mapping between original ids and dense internal ids.

    to_internal() assigns the next free internal id (0, 1, 2, ...) to any
    original id it has not seen before; to_original() only answers for ids
    that were assigned.
    """

    def __init__(self) -> None:
        self._original_to_internal: Dict[Hashable, int] = {}
        self._internal_to_original: List[Hashable] = []

    def __len__(self) -> int:
        return len(self._internal_to_original)

    @property
    def original_ids(self) -> List[Hashable]:
        return list(self._internal_to_original)

    @property
    def internal_ids(self) -> List[int]:
        return list(range(len(self._internal_to_original)))

    def to_original(self, internal_id: int) -> Hashable:
        if 0 <= internal_id < len(self._internal_to_original):
            return self._internal_to_original[int(internal_id)]
        raise MappingError(internal_id)

    def to_internal(self, original_id: Hashable) -> int:
        internal_id = self._original_to_internal.get(original_id)
        if internal_id is None:
            internal_id = len(self._internal_to_original)
            self._original_to_internal[original_id] = internal_id
            self._internal_to_original.append(original_id)
        return internal_id

    def to_internal_list(self, original_ids) -> List[int]:
        return [self.to_internal(oid) for oid in original_ids]


def save_mapping(mapping: EntityMapping, path: Union[str, Path]) -> None:
    """
    Write a mapping as two tab-separated columns: internal_id, original_id.
    """
    path = Path(path)
    df = pd.DataFrame(
        {"internal_id": mapping.internal_ids, "original_id": mapping.original_ids},
        columns=MAPPING_COLUMNS,
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", header=False, index=False, encoding="utf-8")
    logger.info("Saved mapping with {} ids to {}", len(mapping), path)


def load_mapping(path: Union[str, Path]) -> EntityMapping:
    """
    Read a mapping written by save_mapping().

    Internal ids must be dense and start at 0; rows are applied in
    internal-id order so the loaded mapping answers exactly as the saved one.
    """
    path = Path(path)
    if not path.exists():
        raise DataLoadError(f"Mapping file not found: {path}")

    try:
        df = pd.read_csv(
            path,
            sep="\t",
            header=None,
            names=MAPPING_COLUMNS,
            dtype={"internal_id": int, "original_id": str},
            keep_default_na=False,
            encoding="utf-8",
        )
    except (ValueError, pd.errors.ParserError) as e:
        raise DataLoadError(f"Cannot parse mapping file {path}: {e}") from e

    df = df.sort_values("internal_id", kind="stable")
    expected = list(range(len(df)))
    if df["internal_id"].tolist() != expected:
        raise DataLoadError(f"Internal ids in {path} are not dense from 0")

    mapping = EntityMapping()
    for original_id in df["original_id"].tolist():
        mapping.to_internal(original_id)

    logger.info("Loaded mapping with {} ids from {}", len(mapping), path)
    return mapping
