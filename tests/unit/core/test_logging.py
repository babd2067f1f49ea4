"""
Tests for loguru logging setup
"""
import io
import logging
from datetime import datetime, timezone

import pytest
from loguru import logger

from revise.core.config import Settings
from revise.core.logging import InterceptHandler, setup_logging
from revise.fsrs.card import Grade
from revise.fsrs.scheduler import Scheduler, SchedulerConfig


@pytest.fixture
def sink():
    """Capture loguru output, restoring the root logger afterwards"""
    handlers = logging.root.handlers[:]
    level = logging.root.level
    stream = io.StringIO()
    yield stream
    logger.remove()
    logging.root.handlers = handlers
    logging.root.setLevel(level)


class TestSetupLogging:

    def test_installs_intercept_handler(self, sink):
        setup_logging(Settings(_env_file=None), sink=sink)
        assert any(isinstance(h, InterceptHandler) for h in logging.root.handlers)

    def test_stdlib_records_reach_loguru(self, sink):
        setup_logging(Settings(_env_file=None), sink=sink)
        logging.getLogger("revise.test").warning("weights file unreadable")
        assert "weights file unreadable" in sink.getvalue()
        assert "WARNING" in sink.getvalue()

    def test_level_filters(self, sink):
        setup_logging(Settings(_env_file=None, LOG_LEVEL="WARNING"), sink=sink)
        logging.getLogger("revise.test").info("routine")
        assert "routine" not in sink.getvalue()

    def test_scheduler_debug_logging(self, sink):
        setup_logging(Settings(_env_file=None, LOG_LEVEL="DEBUG"), sink=sink)
        scheduler = Scheduler(config=SchedulerConfig(fuzz_seed=1))
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        scheduler.add_item("a", when)
        scheduler.grade("a", Grade.GOOD, when)

        assert "Graded a GOOD" in sink.getvalue()
