import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Job:
    action: Callable[[], None]
    on_failure: Callable[[], None]
    description: str = "job"


class JobQueue:
    """
    Runs queued jobs one at a time, in the order they were enqueued.

    There is a single lane for the whole process: every backport, for every
    repository, waits for the previous one to finish. When a job's action
    raises, its failure handler is called once and the queue moves on to the
    next job. A failing failure handler is logged and otherwise ignored.
    """

    def __init__(self, name: str = "backport-queue"):
        self.name = name
        self._jobs = queue.Queue()
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    def enqueue(self, action: Callable[[], None], on_failure: Callable[[], None], description: str = "job") -> None:
        self._jobs.put(Job(action, on_failure, description))
        logger.debug(f"Enqueued {description}, {self._jobs.qsize()} job(s) pending")
        self._ensure_worker()

    def join(self) -> None:
        """Block until every job enqueued so far has reached a terminal state."""
        self._jobs.join()

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(target=self._work, name=self.name, daemon=True)
                self._worker.start()

    def _work(self) -> None:
        while True:
            job = self._jobs.get()
            try:
                self._run(job)
            finally:
                self._jobs.task_done()

    def _run(self, job: Job) -> None:
        try:
            job.action()
        except Exception:
            logger.exception(f"{job.description} failed")
            try:
                job.on_failure()
            except Exception:
                logger.exception(f"Failure handler of {job.description} failed as well")


backport_queue = JobQueue()
