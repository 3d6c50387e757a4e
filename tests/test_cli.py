import sys

import numpy as np
import pytest
from loguru import logger

from itemrank.cli import main
from itemrank.mapping import EntityMapping, save_mapping


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def train_file(tmp_path):
    path = tmp_path / "train.txt"
    path.write_text(
        "alice\tbook\n"
        "alice\tfilm\n"
        "bob\tfilm\n"
        "carol\tsong\n",
        encoding="utf-8",
    )
    return path


def test_most_popular_to_file(tmp_path, train_file):
    out = tmp_path / "pred.txt"
    rc = main([
        "--training-file", str(train_file),
        "--prediction-file", str(out),
        "--num-predictions", "2",
    ])
    assert rc == 0
    assert out.read_text(encoding="utf-8") == (
        "alice\t[song:1]\n"
        "bob\t[book:1,song:1]\n"
        "carol\t[film:2,book:1]\n"
    )


def test_test_users_to_stdout(tmp_path, train_file, capsys):
    users = tmp_path / "users.txt"
    users.write_text("carol\nalice\ndave\n", encoding="utf-8")
    rc = main([
        "--training-file", str(train_file),
        "--test-users", str(users),
        "--n-jobs", "2",
    ])
    assert rc == 0
    assert capsys.readouterr().out == (
        "carol\t[film:2,book:1]\n"
        "alice\t[song:1]\n"
    )


def test_saved_item_mapping_fixes_internal_ids(tmp_path, capsys):
    train = tmp_path / "train.txt"
    train.write_text("u\tb\n", encoding="utf-8")
    items = EntityMapping()
    items.to_internal_list(["a", "b", "c"])
    mapping_path = tmp_path / "items.tsv"
    save_mapping(items, mapping_path)
    candidates = tmp_path / "candidates.txt"
    candidates.write_text("a\nb\nc\n", encoding="utf-8")
    scores = tmp_path / "scores.npy"
    np.save(scores, np.array([[0.1, 0.9, 0.5]]))

    rc = main([
        "--training-file", str(train),
        "--recommender", "score-matrix",
        "--scores-file", str(scores),
        "--item-mapping", str(mapping_path),
        "--candidate-items", str(candidates),
    ])
    assert rc == 0
    assert capsys.readouterr().out == "u\t[c:0.5,a:0.1]\n"


def test_score_matrix_without_mapping(tmp_path, capsys):
    train = tmp_path / "train.txt"
    train.write_text("0 1\n1 0\n", encoding="utf-8")
    candidates = tmp_path / "candidates.txt"
    candidates.write_text("0\n1\n2\n", encoding="utf-8")
    scores = tmp_path / "scores.npy"
    np.save(scores, np.array([[0.5, 0.1, 0.9], [0.2, 0.3, 0.4]]))

    rc = main([
        "--training-file", str(train),
        "--recommender", "score-matrix",
        "--scores-file", str(scores),
        "--candidate-items", str(candidates),
        "--no-id-mapping",
    ])
    assert rc == 0
    assert capsys.readouterr().out == "0\t[2:0.9,0:0.5]\n1\t[2:0.4,1:0.3]\n"


def test_score_matrix_requires_scores_file(train_file):
    with pytest.raises(SystemExit) as excinfo:
        main(["--training-file", str(train_file), "--recommender", "score-matrix"])
    assert excinfo.value.code == 2


def test_any_negative_num_predictions_means_unbounded(train_file, capsys):
    rc = main(["--training-file", str(train_file), "--num-predictions", "-3"])
    assert rc == 0
    assert capsys.readouterr().out == (
        "alice\t[song:1]\n"
        "bob\t[book:1,song:1]\n"
        "carol\t[film:2,book:1]\n"
    )


def test_invalid_n_jobs(train_file):
    with pytest.raises(SystemExit) as excinfo:
        main(["--training-file", str(train_file), "--n-jobs", "0"])
    assert excinfo.value.code == 2


def test_score_matrix_that_is_not_2d(tmp_path, train_file):
    scores = tmp_path / "vec.npy"
    np.save(scores, np.zeros(3))
    rc = main([
        "--training-file", str(train_file),
        "--recommender", "score-matrix",
        "--scores-file", str(scores),
    ])
    assert rc == 1


def test_missing_training_file(tmp_path):
    assert main(["--training-file", str(tmp_path / "missing.txt")]) == 1


def test_prediction_failure_returns_error(tmp_path):
    train = tmp_path / "train.txt"
    train.write_text("0 0\n5 0\n", encoding="utf-8")
    scores = tmp_path / "scores.npy"
    np.save(scores, np.zeros((2, 2)))

    rc = main([
        "--training-file", str(train),
        "--recommender", "score-matrix",
        "--scores-file", str(scores),
        "--no-id-mapping",
        "--prediction-file", str(tmp_path / "pred.txt"),
    ])
    assert rc == 1
    assert (tmp_path / "pred.txt").read_text(encoding="utf-8") == "0\t[]\n"
