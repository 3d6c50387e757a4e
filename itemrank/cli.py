from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError

from . import config
from .config import RankingOptions
from .exceptions import ItemRankError
from .feedback import read_feedback, read_id_list
from .mapping import EntityMapping, IdentityMapping, load_mapping
from .models import MostPopular, ScoreMatrixRecommender
from .rank import write_predictions, write_predictions_to_file

RECOMMENDERS = ["most-popular", "score-matrix"]


# ---------- logging ----------

def setup_logging(level: str = config.LOG_LEVEL, log_file: bool = False) -> None:
    """Replace loguru's default sink with a stderr sink (and optionally a file)."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=config.LOG_FORMAT)
    if log_file:
        config.LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            config.LOG_DIR / config.LOG_FILE_NAME,
            level="DEBUG",
            format=config.LOG_FORMAT,
            rotation=config.LOG_ROTATION,
            encoding="utf-8",
        )


# ---------- helpers ----------

def _mappings(args):
    if args.no_id_mapping:
        return IdentityMapping(), IdentityMapping()
    user_mapping = load_mapping(args.user_mapping) if args.user_mapping else EntityMapping()
    item_mapping = load_mapping(args.item_mapping) if args.item_mapping else EntityMapping()
    return user_mapping, item_mapping


def _known_users(users: List[int], train) -> List[int]:
    known = set(train.all_users)
    kept = [u for u in users if u in known]
    if len(kept) < len(users):
        logger.warning(
            "Dropping {} test user(s) without training feedback", len(users) - len(kept)
        )
    return kept


def _build_recommender(args, train):
    if args.recommender == "score-matrix":
        return ScoreMatrixRecommender.load(args.scores_file)
    return MostPopular(train)


# ---------- CLI ----------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="itemrank",
        description="Write top-N item predictions, one line per user.",
    )
    ap.add_argument("--training-file", type=Path, required=True,
                    help="Observed feedback, one 'user item' pair per line")
    ap.add_argument("--recommender", choices=RECOMMENDERS, default="most-popular")
    ap.add_argument("--scores-file", type=Path,
                    help="Dense users x items score matrix (.npy) for --recommender score-matrix")
    ap.add_argument("--prediction-file", type=Path,
                    help="Where to write predictions (default: stdout)")
    ap.add_argument("--num-predictions", type=int, default=config.NUM_PREDICTIONS,
                    help="Items per user, -1 for no limit")
    ap.add_argument("--test-users", type=Path,
                    help="Users to rank, one per line (default: all training users)")
    ap.add_argument("--candidate-items", type=Path,
                    help="Items to rank, one per line (default: all training items)")
    ap.add_argument("--user-mapping", type=Path,
                    help="Saved user id mapping (internal_id<TAB>original_id)")
    ap.add_argument("--item-mapping", type=Path,
                    help="Saved item id mapping (internal_id<TAB>original_id)")
    ap.add_argument("--no-id-mapping", action="store_true",
                    help="Use ids from the input files as internal ids")
    ap.add_argument("--n-jobs", type=int, default=config.N_JOBS)
    ap.add_argument("--log-level", default=config.LOG_LEVEL)
    ap.add_argument("--log-file", action="store_true",
                    help=f"Also log to {config.LOG_DIR / config.LOG_FILE_NAME}")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    if args.recommender == "score-matrix" and args.scores_file is None:
        ap.error("--scores-file is required with --recommender score-matrix")

    try:
        user_mapping, item_mapping = _mappings(args)
        train = read_feedback(args.training_file, user_mapping, item_mapping)

        users = None
        if args.test_users:
            users = _known_users(read_id_list(args.test_users, user_mapping), train)

        if args.candidate_items:
            candidate_items = read_id_list(args.candidate_items, item_mapping)
        else:
            candidate_items = train.all_items

        try:
            options = RankingOptions(
                num_predictions=args.num_predictions, users=users, n_jobs=args.n_jobs
            )
        except ValidationError as e:
            ap.error(str(e))

        recommender = _build_recommender(args, train)

        if args.prediction_file:
            write_predictions_to_file(
                recommender, train, candidate_items, options.num_predictions,
                args.prediction_file, users=options.users,
                user_mapping=user_mapping, item_mapping=item_mapping,
                n_jobs=options.n_jobs,
            )
        else:
            write_predictions(
                recommender, train, candidate_items, options.num_predictions,
                sys.stdout, users=options.users,
                user_mapping=user_mapping, item_mapping=item_mapping,
                n_jobs=options.n_jobs,
            )
            sys.stdout.flush()
    except (ItemRankError, OSError) as e:
        logger.error("itemrank failed: {}", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
