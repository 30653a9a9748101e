"""Deployment engine: a bounded job queue drained by a single worker.

``deploy`` records a ``created`` status and queues the job without blocking.
The worker installs queued jobs one at a time, so two installs never touch
the filesystem at once, and records the terminal status of each job.
"""

from __future__ import annotations

import queue
import threading
from typing import Optional

import structlog

from hodor.core.config import ReleaseConfig
from hodor.core.exceptions import (
    EngineStateError,
    EngineStoppedError,
    HodorError,
    NotFoundError,
    PersistenceError,
    QueueFullError,
)
from hodor.deploy.fetch import Transport
from hodor.deploy.installer import Installer
from hodor.deploy.models import EngineState, Job, JobState, JobStatus
from hodor.deploy.store import JobStore


logger = structlog.get_logger()

JOB_QUEUE_SIZE = 50

# Pushed by stop() to wake a worker blocked on an empty queue
_WAKEUP = object()


class FileDeployer:
    """Deploys releases into the folders named by a :class:`ReleaseConfig`."""

    def __init__(
        self,
        store: JobStore,
        config: ReleaseConfig,
        transport: Transport,
        queue_size: int = JOB_QUEUE_SIZE,
    ):
        self.store = store
        self.config = config
        self.installer = Installer(transport)

        self._jobs: queue.Queue = queue.Queue(maxsize=queue_size)
        self._stopping = threading.Event()
        self._state = EngineState.NOT_STARTED
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        with self._lock:
            return self._state

    @property
    def pending_jobs(self) -> int:
        return self._jobs.qsize()

    # Lifecycle

    def start(self) -> None:
        """Process jobs until :meth:`stop` is called. Blocks the caller."""
        self._mark_running()
        self._run()

    def run_in_thread(self, name: str = "hodor-deployer") -> threading.Thread:
        """Start the worker on a daemon thread and return the thread."""
        self._mark_running()
        thread = threading.Thread(target=self._run, name=name, daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Stop the worker once the job in progress, if any, is done.

        Jobs still waiting in the queue are dropped and keep their
        ``created`` status. Calling stop a second time does nothing.
        """
        with self._lock:
            if self._state is EngineState.NOT_STARTED:
                raise EngineStateError("engine has not been started")
            if self._state is EngineState.STOPPED:
                return
            self._state = EngineState.STOPPED
            self._stopping.set()

        logger.info("Stopping engine", pending_jobs=self.pending_jobs)
        try:
            self._jobs.put_nowait(_WAKEUP)
        except queue.Full:
            # the worker is not waiting on an empty queue
            pass

    def _mark_running(self) -> None:
        with self._lock:
            if self._state is not EngineState.NOT_STARTED:
                raise EngineStateError(f"engine cannot start from state {self._state.value!r}")
            self._stopping.clear()
            self._state = EngineState.RUNNING

    def _run(self) -> None:
        logger.info("Engine started")
        self._process_jobs()
        logger.info("Engine stopped")

    # Public operations

    def deploy(self, release_id: str, release_url: str, tag: str = "") -> str:
        """Queue a release deployment and return the id of the new job."""
        logger.info("Deploying release", release_id=release_id, url=release_url, tag=tag)

        with self._lock:
            if self._state is EngineState.STOPPED:
                raise EngineStoppedError("deployer is stopped")

        job = Job(release_id=release_id, release_url=release_url, tag=tag or "")

        try:
            self.store.save_status(job.id, JobState.CREATED.value, "job has been created")
        except PersistenceError as exc:
            raise PersistenceError(f"failed to set job status: {exc}") from exc

        try:
            self._jobs.put_nowait(job)
        except queue.Full:
            logger.warning("Job queue is full", release_id=release_id, job_id=job.id)
            raise QueueFullError("buffer is full, re-try later") from None

        return job.id

    def get_status(self, job_id: str) -> JobStatus:
        return self.store.get_status(job_id)

    def get_latest_tag(self, release_id: str) -> str:
        return self.store.get_latest_tag(release_id)

    # Worker

    def _process_jobs(self) -> None:
        while True:
            job = self._jobs.get()
            if self._stopping.is_set() or job is _WAKEUP:
                return

            try:
                self._handle_job(job)
            except HodorError as exc:
                logger.warning("Job failed", job_id=job.id, release_id=job.release_id, error=str(exc))
                self._save_terminal_status(job, JobState.FAILED, str(exc))
                continue
            except Exception as exc:
                logger.exception("Job crashed", job_id=job.id, release_id=job.release_id)
                self._save_terminal_status(job, JobState.FAILED, str(exc) or exc.__class__.__name__)
                continue

            # tag first, so a poller that sees "ok" also sees the new tag
            if job.tag:
                try:
                    self.store.save_tag(job.release_id, job.tag)
                except PersistenceError:
                    logger.exception("Failed to save tag", job_id=job.id, release_id=job.release_id, tag=job.tag)
            self._save_terminal_status(job, JobState.OK, "job done")

    def _handle_job(self, job: Job) -> None:
        """Download, extract and swap a release into its target folder."""
        logger.info("Starting job", job_id=job.id, release_id=job.release_id)

        target: Optional[str] = self.config.target_for(job.release_id)
        if target is None:
            raise NotFoundError(f"release_id {job.release_id!r} not found from the config")

        self.installer.install(job.release_url, target, job_id=job.id)

        logger.info("Job done", job_id=job.id, release_id=job.release_id, target=target)

    def _save_terminal_status(self, job: Job, state: JobState, message: str) -> None:
        try:
            self.store.save_status(job.id, state.value, message)
        except PersistenceError:
            logger.exception(
                "Failed to save job status",
                job_id=job.id,
                status=state.value,
                job_message=message,
            )
