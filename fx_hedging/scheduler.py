"""
RecomputeScheduler — run hedge calculations in the background, newest wins.

Every submit() starts a fresh run on its own thread and bumps a generation
counter. The previous in-flight run has its cancel event set; the engine
checks the event between path batches and stops early. A run that still
completes after being superseded is discarded, so latest() only ever returns
the result for the newest inputs that finished.

Finished runs other than the latest result and the newest submission are
dropped as soon as they end; only their final status is remembered, for the
last `history` generations.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum

from fx_hedging.engine import HedgeEngine
from fx_hedging.errors import ComputationCancelled

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class Run:
    generation: int
    args: tuple
    cancel_event: threading.Event = field(default_factory=threading.Event)
    status: RunStatus = RunStatus.PENDING
    result: object = None
    error: Exception = None
    thread: threading.Thread = None


class RecomputeScheduler:
    """
    Background recompute with stale-result cancellation.

    Usage:
        scheduler = RecomputeScheduler(HedgeEngine(config))
        scheduler.submit(params, legs, overrides)
        scheduler.submit(params, new_legs, overrides)   # cancels the first run
        results = scheduler.wait()
    """

    def __init__(self, engine=None, history=64):
        self.engine = engine or HedgeEngine()
        self.history = history
        self._lock = threading.Lock()
        self._generation = 0
        self._runs = {}        # generation -> Run
        self._latest = None    # newest completed Run
        self._finished = OrderedDict()  # generation -> final RunStatus of dropped runs

    @property
    def generation(self):
        return self._generation

    def submit(self, params, legs, overrides=None):
        """Start a recompute; returns its generation number."""
        with self._lock:
            self._generation += 1
            run = Run(generation=self._generation, args=(params, legs, overrides))
            previous = self._runs.get(self._generation - 1)
            if previous is not None and previous.status in (RunStatus.PENDING, RunStatus.RUNNING):
                previous.cancel_event.set()
                logger.debug(f"Generation {previous.generation} superseded by {run.generation}")
            self._runs[run.generation] = run

        run.thread = threading.Thread(
            target=self._execute, args=(run,),
            name=f"recompute-{run.generation}", daemon=True,
        )
        run.thread.start()
        return run.generation

    def _execute(self, run):
        try:
            self._run(run)
        finally:
            with self._lock:
                self._prune()

    def _run(self, run):
        with self._lock:
            if run.cancel_event.is_set():
                run.status = RunStatus.CANCELLED
                return
            run.status = RunStatus.RUNNING

        try:
            result = self.engine.compute(*run.args, cancel_event=run.cancel_event)
        except ComputationCancelled:
            with self._lock:
                run.status = RunStatus.CANCELLED
            logger.info(f"Generation {run.generation} cancelled")
            return
        except Exception as e:
            with self._lock:
                run.status = RunStatus.FAILED
                run.error = e
            logger.warning(f"Generation {run.generation} failed: {e}")
            return

        with self._lock:
            if run.generation != self._generation:
                run.status = RunStatus.CANCELLED
                logger.info(f"Discarding stale result of generation {run.generation}")
                return
            run.status = RunStatus.SUCCEEDED
            run.result = result
            self._latest = run

    def _prune(self):
        """Drop finished runs that are neither the latest result nor the newest submission."""
        for gen in list(self._runs):
            run = self._runs[gen]
            if run.status in (RunStatus.PENDING, RunStatus.RUNNING):
                continue
            if run is self._latest or gen == self._generation:
                continue
            del self._runs[gen]
            self._finished[gen] = run.status
        while len(self._finished) > self.history:
            self._finished.popitem(last=False)

    def status(self, generation):
        with self._lock:
            run = self._runs.get(generation)
            if run is not None:
                return run.status
            return self._finished.get(generation)

    def latest(self):
        """Result of the newest completed run, or None."""
        with self._lock:
            return self._latest.result if self._latest is not None else None

    def wait(self, timeout=None):
        """
        Block until the newest submitted run finishes.

        Returns its result; re-raises its error if it failed.
        """
        with self._lock:
            run = self._runs.get(self._generation)
        if run is None:
            return None
        run.thread.join(timeout=timeout)
        if run.thread.is_alive():
            logger.warning(f"Generation {run.generation} still running after {timeout}s")
            return self.latest()
        if run.status == RunStatus.FAILED:
            raise run.error
        return self.latest()

    def cancel_all(self, timeout=5.0):
        """Cancel every in-flight run and wait for their threads."""
        with self._lock:
            runs = list(self._runs.values())
        for run in runs:
            run.cancel_event.set()
        for run in runs:
            if run.thread is not None:
                run.thread.join(timeout=timeout)
                if run.thread.is_alive():
                    logger.warning(f"Thread for generation {run.generation} did not stop cleanly")
