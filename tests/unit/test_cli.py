"""
Tests for the weight maintenance commands
"""
import json
import logging

import pytest
from loguru import logger

from revise.cli import main, read_review_log
from revise.fsrs.weights import DEFAULT_WEIGHTS, load_weights


@pytest.fixture(autouse=True)
def reset_logging():
    """main() reconfigures logging; undo it after each command"""
    handlers = logging.root.handlers[:]
    level = logging.root.level
    yield
    logger.remove()
    logging.root.handlers = handlers
    logging.root.setLevel(level)


@pytest.fixture
def log_file(tmp_path, review_log):
    path = tmp_path / "reviews.json"
    path.write_text(json.dumps([e.to_dict() for e in review_log]))
    return path


class TestOptimizeCommand:

    def test_writes_fitted_weights(self, tmp_path, log_file, capsys):
        output = tmp_path / "fitted.json"
        code = main(["optimize", str(log_file), "--max-iterations", "3", "--output", str(output)])

        assert code == 0
        fitted = load_weights(output)
        assert fitted.version == 1
        printed = json.loads(capsys.readouterr().out)
        assert printed["weights"] == fitted.to_dict()

    def test_insufficient_data(self, tmp_path, review_log):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps([e.to_dict() for e in review_log[:12]]))

        assert main(["optimize", str(path)]) == 1

    def test_log_file_round_trip(self, log_file, review_log):
        assert read_review_log(log_file) == review_log


class TestShowWeights:

    def test_defaults(self, capsys):
        assert main(["show-weights"]) == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed == DEFAULT_WEIGHTS.to_dict()
