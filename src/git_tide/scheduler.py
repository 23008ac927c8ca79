"""Bounded worker pool that runs the updater across many repositories."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor

from .config import Settings
from .models import ErrorKind, RepositoryDescriptor, UpdateOutcome
from .updater import RepositoryUpdater

logger = logging.getLogger(__name__)

_STOP = object()


def clamp_concurrency(requested: int, job_count: int) -> int:
    """Limit the worker count to [1, job_count]."""
    return max(1, min(requested, job_count))


class WorkerPool:
    """Fan repository descriptors out to a fixed number of worker threads.

    A producer thread feeds a bounded job queue; each worker claims one
    descriptor at a time until it receives a stop sentinel. Outcomes are
    yielded in completion order.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        updater: RepositoryUpdater | None = None,
    ):
        self.settings = settings or Settings()
        self.updater = updater or RepositoryUpdater(self.settings)

    def run(
        self,
        descriptors: Sequence[RepositoryDescriptor],
        cancel: threading.Event | None = None,
    ) -> Iterator[UpdateOutcome]:
        """Update every descriptor exactly once, yielding outcomes as they finish."""
        total = len(descriptors)
        if total == 0:
            return

        cancel = cancel or threading.Event()
        workers = clamp_concurrency(self.settings.concurrency, total)
        jobs: queue.Queue = queue.Queue(maxsize=workers)
        results: queue.Queue[UpdateOutcome] = queue.Queue()

        timer = None
        if self.settings.deadline is not None:
            timer = threading.Timer(self.settings.deadline, cancel.set)
            timer.daemon = True
            timer.start()

        logger.debug("updating %d repositories with %d workers", total, workers)

        producer = threading.Thread(
            target=self._produce, args=(descriptors, jobs, workers), daemon=True
        )
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tide") as executor:
                producer.start()
                futures = [
                    executor.submit(self._work, jobs, results, cancel) for _ in range(workers)
                ]
                try:
                    for _ in range(total):
                        yield results.get()
                except BaseException:
                    # Interrupted consumer: let in-flight updates finish, skip the rest.
                    cancel.set()
                    raise
                for future in futures:
                    future.result()
            producer.join()
        finally:
            if timer is not None:
                timer.cancel()

    @staticmethod
    def _produce(
        descriptors: Sequence[RepositoryDescriptor], jobs: queue.Queue, workers: int
    ) -> None:
        for descriptor in descriptors:
            jobs.put(descriptor)
        for _ in range(workers):
            jobs.put(_STOP)

    def _work(
        self,
        jobs: queue.Queue,
        results: queue.Queue[UpdateOutcome],
        cancel: threading.Event,
    ) -> None:
        while True:
            descriptor = jobs.get()
            if descriptor is _STOP:
                return
            if cancel.is_set():
                outcome = UpdateOutcome.error(
                    descriptor.path, ErrorKind.CANCELLED, "cancelled before start"
                )
            else:
                try:
                    outcome = self.updater.update(descriptor, cancel)
                except Exception as exc:
                    logger.exception("%s: worker failure", descriptor.path)
                    outcome = UpdateOutcome.error(descriptor.path, ErrorKind.UNEXPECTED, str(exc))
            results.put(outcome)
