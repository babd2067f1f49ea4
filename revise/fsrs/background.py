"""
Background weight optimization

Runs FSRSOptimizer.fit on a worker thread so a refit never blocks grading.
The job works on snapshots of the log and weights, can be cancelled between
iterations, and never adopts anything: the caller hands a successful result
to Scheduler.adopt_weights once it is confirmed.
"""
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event, Lock
from typing import Optional, Sequence, Tuple
import logging

from .card import ReviewLogEntry
from .parameter_learning import FSRSOptimizer, OptimizationResult
from .weights import DEFAULT_WEIGHTS, WeightVector

logger = logging.getLogger(__name__)


class OptimizationJob:
    """
    A single cancellable fit.

    Usage:
        job = OptimizationJob(optimizer, scheduler.review_log(), scheduler.weights).start()
        ...
        result = job.result(timeout=60)
        scheduler.adopt_weights(result.weights)
    """

    def __init__(
        self,
        optimizer: FSRSOptimizer,
        log: Sequence[ReviewLogEntry],
        initial_weights: Optional[WeightVector] = None,
    ):
        self.optimizer = optimizer
        self.log: Tuple[ReviewLogEntry, ...] = tuple(log)
        self.initial_weights = initial_weights or DEFAULT_WEIGHTS

        self._cancel = Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._future: Optional[Future] = None
        self._progress_lock = Lock()
        self._progress: Tuple[int, Optional[float]] = (0, None)

    def start(self) -> "OptimizationJob":
        if self._future is not None:
            raise RuntimeError("Optimization job already started")
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="revise-optimizer")
        self._future = self._executor.submit(self._run)
        # Lets the worker thread exit once the fit returns
        self._executor.shutdown(wait=False)
        logger.info(f"Started background optimization on {len(self.log)} reviews")
        return self

    def _run(self) -> OptimizationResult:
        return self.optimizer.fit(
            self.log,
            initial_weights=self.initial_weights,
            cancel_event=self._cancel,
            progress=self._record_progress,
        )

    def _record_progress(self, iteration: int, loss: float) -> None:
        with self._progress_lock:
            self._progress = (iteration, loss)

    @property
    def progress(self) -> Tuple[int, Optional[float]]:
        """(last evaluated iteration, its loss)"""
        with self._progress_lock:
            return self._progress

    def cancel(self) -> None:
        """Request cancellation; the fit stops before its next iteration"""
        self._cancel.set()
        logger.info("Background optimization cancellation requested")

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> OptimizationResult:
        """
        Wait for the fit.

        Re-raises the optimizer's error (InsufficientDataError,
        OptimizationDivergedError, OptimizationCancelledError) unchanged.
        """
        if self._future is None:
            raise RuntimeError("Optimization job not started")
        return self._future.result(timeout=timeout)
