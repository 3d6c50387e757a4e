from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE_NAME = "itemrank.log"


# ---------------------------
# Scores
# ---------------------------

# Reserved "no prediction" score: the lowest representable double.
# Items scored with it (or anything not above it: -inf, NaN) are never emitted.
NO_PREDICTION = float(-np.finfo(np.float64).max)


# ---------------------------
# Result size policy
# ---------------------------

UNBOUNDED = -1

DEFAULT_NUM_PREDICTIONS = UNBOUNDED
NUM_PREDICTIONS = int(os.getenv("ITEMRANK_NUM_PREDICTIONS", str(DEFAULT_NUM_PREDICTIONS)))

DEFAULT_N_JOBS = 1
N_JOBS = int(os.getenv("ITEMRANK_N_JOBS", str(DEFAULT_N_JOBS)))

# batch progress is logged every PROGRESS_EVERY users
PROGRESS_EVERY = 1000


# ---------------------------
# Output line format
# ---------------------------

FIELD_SEPARATOR = "\t"
PAIR_SEPARATOR = ","
KEY_VALUE_SEPARATOR = ":"
LIST_OPEN = "["
LIST_CLOSE = "]"
LINE_END = "\n"


# ---------------------------
# Input files
# ---------------------------

# feedback lines: "user item [...]", separated by tabs, spaces or commas
FEEDBACK_SEPARATOR = r"[\t ,]+"
COMMENT_CHAR = "#"


# ---------------------------
# Logging / observability
# ---------------------------

LOG_LEVEL = os.getenv("ITEMRANK_LOG_LEVEL", "INFO")
LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"
LOG_ROTATION = "10 MB"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class RankingOptions(BaseModel):
    """
    Options recognised by the batch ranker.

    num_predictions: maximum ranked items per user; any negative value
                     (UNBOUNDED, -1, by convention) means no limit.
    users: which users to rank, in output order; None means every user
           known to the feedback store.
    n_jobs: worker threads used for per-user ranking; output order is kept.
    """

    num_predictions: int = NUM_PREDICTIONS
    users: Optional[List[int]] = None
    n_jobs: int = Field(default=N_JOBS, ge=1)

    @property
    def is_unbounded(self) -> bool:
        return self.num_predictions < 0
