"""
Unit tests for background optimization jobs
"""

import pytest

from revise.core.exceptions import InsufficientDataError, OptimizationCancelledError
from revise.fsrs.background import OptimizationJob
from revise.fsrs.parameter_learning import FSRSOptimizer, OptimizerConfig
from revise.fsrs.scheduler import Scheduler


@pytest.fixture
def optimizer():
    return FSRSOptimizer(OptimizerConfig(max_iterations=5, divergence_tolerance=1.0))


class TestOptimizationJob:

    def test_result_then_adopt(self, optimizer, review_log):
        scheduler = Scheduler()
        scheduler.load_log(review_log)

        job = OptimizationJob(optimizer, scheduler.review_log(), scheduler.weights).start()
        result = job.result(timeout=120)

        assert job.done()
        assert job.progress[0] >= 1
        # Nothing is adopted until the caller does it
        assert scheduler.weights.version == 0

        adopted = scheduler.adopt_weights(result.weights)
        assert adopted.version == 1
        assert scheduler.weights.values == result.weights.values

    def test_cancel_before_first_iteration(self, optimizer, review_log):
        job = OptimizationJob(optimizer, review_log)
        job.cancel()
        job.start()

        with pytest.raises(OptimizationCancelledError):
            job.result(timeout=120)
        assert job.cancelled

    def test_optimizer_errors_propagate(self, optimizer, review_log):
        job = OptimizationJob(optimizer, review_log[:5]).start()
        with pytest.raises(InsufficientDataError):
            job.result(timeout=120)

    def test_result_requires_start(self, optimizer, review_log):
        job = OptimizationJob(optimizer, review_log)
        assert not job.done()
        with pytest.raises(RuntimeError):
            job.result()

    def test_start_twice(self, optimizer, review_log):
        job = OptimizationJob(optimizer, review_log).start()
        with pytest.raises(RuntimeError):
            job.start()
        job.result(timeout=120)
