"""
Runs one stage's probe over all of its items on a worker pool.

The orchestrator blocks in :meth:`StageExecutor.run_stage` while it polls
the pool. A stage that overruns its budget gets its ``cancel`` event set;
probes stop picking up new items, and the executor still waits for every
submitted chunk to return before handing control back.
"""
import logging
import threading
import time
from concurrent.futures import Executor, wait
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, TypeVar

from tqdm import tqdm

logger = logging.getLogger(__name__)

T = TypeVar('T')

ProgressCallback = Callable[[str, int, int], None]

# Chunks per worker; more chunks keep the pool busy when item costs vary.
CHUNKS_PER_WORKER = 4


@dataclass
class StageResult:
    name: str
    completed: bool
    count_done: int
    total: int
    elapsed_ms: float


class StageExecutor:
    """Dispatches probe functions across an injected :class:`concurrent.futures.Executor`."""

    def __init__(
            self,
            executor: Executor,
            workers: int,
            timeout_ms: int = 30_000,
            poll_interval_ms: int = 100,
            report_interval_ms: int = 5_000,
            show_progress: bool = False,
            progress_callback: Optional[ProgressCallback] = None
    ):
        self.executor = executor
        self.workers = max(1, workers)
        self.timeout_ms = timeout_ms
        self.poll_interval_ms = poll_interval_ms
        self.report_interval_ms = report_interval_ms
        self.show_progress = show_progress
        self.progress_callback = progress_callback
        self.cancel = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()

    def _chunk_bounds(self, total: int) -> List[tuple]:
        chunk_count = min(total, self.workers * CHUNKS_PER_WORKER)
        size, extra = divmod(total, chunk_count)
        bounds = []
        start = 0
        for idx in range(chunk_count):
            stop = start + size + (1 if idx < extra else 0)
            bounds.append((start, stop))
            start = stop
        return bounds

    def _run_chunk(self, probe_fn: Callable[[T], None], items: Sequence[T], start: int, stop: int,
                   done: List[int], slot: int) -> None:
        for idx in range(start, stop):
            if self.cancel.is_set():
                return
            probe_fn(items[idx])
            done[slot] += 1

    def _report(self, name: str, done: int, total: int, bar: tqdm) -> None:
        bar.update(done - bar.n)
        if self.progress_callback is not None:
            self.progress_callback(name, done, total)

    def run_stage(self, name: str, probe_fn: Callable[[T], None], items: Sequence[T],
                  parallel: bool = True) -> StageResult:
        """
        Apply ``probe_fn`` to every item.

        Args:
            name: Stage name used for logging and progress.
            probe_fn: Called once per item; must check :attr:`cancelled`
                itself if it does a lot of work per item.
            items: The stage inputs. Must not be mutated while the stage runs.
            parallel: When False the items are probed on the calling thread,
                still under the stage timeout.

        Returns:
            A :class:`StageResult`; ``completed`` is False if the stage timed out.
        """
        self.cancel.clear()
        total = len(items)
        start_time = time.monotonic()
        timeout_s = self.timeout_ms / 1000.0

        if total == 0:
            logger.debug("%s has nothing to do.", name)
            return StageResult(name, True, 0, 0, 0.0)

        with tqdm(total=total, desc=name, unit="candidate", disable=not self.show_progress, leave=False) as bar:
            if parallel:
                completed, done_count = self._run_parallel(name, probe_fn, items, start_time, timeout_s, bar)
            else:
                completed, done_count = self._run_inline(name, probe_fn, items, start_time, timeout_s, bar)
            self._report(name, done_count, total, bar)

        elapsed_ms = (time.monotonic() - start_time) * 1000.0
        if completed:
            logger.debug("%s completed in %.0fms (%d items).", name, elapsed_ms, total)
        else:
            logger.warning("%s timed out after %.0fms (%d/%d items probed).", name, elapsed_ms, done_count, total)
        self.cancel.clear()
        return StageResult(name, completed, done_count, total, elapsed_ms)

    def _run_inline(self, name, probe_fn, items, start_time, timeout_s, bar):
        done = 0
        next_report = self.report_interval_ms / 1000.0
        for item in items:
            elapsed = time.monotonic() - start_time
            if elapsed > timeout_s:
                logger.debug("Timeout waiting for %s to complete...", name)
                return False, done
            if elapsed > next_report:
                logger.info("Waiting for %s to complete... (%d/%d)", name, done, len(items))
                self._report(name, done, len(items), bar)
                next_report += self.report_interval_ms / 1000.0
            probe_fn(item)
            done += 1
        return True, done

    def _run_parallel(self, name, probe_fn, items, start_time, timeout_s, bar):
        bounds = self._chunk_bounds(len(items))
        done = [0] * len(bounds)
        futures = [
            self.executor.submit(self._run_chunk, probe_fn, items, start, stop, done, slot)
            for slot, (start, stop) in enumerate(bounds)
        ]
        poll_s = self.poll_interval_ms / 1000.0
        next_report = self.report_interval_ms / 1000.0
        completed = True
        while True:
            _, pending = wait(futures, timeout=poll_s)
            if not pending:
                break
            elapsed = time.monotonic() - start_time
            if elapsed > timeout_s:
                logger.debug("Timeout waiting for %s to complete...", name)
                self.cancel.set()
                # chunks still reference ``items``; never return before they drain
                wait(futures)
                completed = False
                break
            self._report(name, sum(done), len(items), bar)
            if elapsed > next_report:
                logger.info("Waiting for %s to complete... (%d/%d)", name, sum(done), len(items))
                next_report += self.report_interval_ms / 1000.0

        for future in futures:
            # re-raise probe errors on the orchestrator thread
            future.result()
        return completed, sum(done)
