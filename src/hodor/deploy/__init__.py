"""Deployment engine: job queue, installer and status store."""

from .models import EngineState, Job, JobState, JobStatus, UNKNOWN_TAG
from .fetch import DefaultTransport, HttpxTransport, S3Transport, Transport
from .installer import Installer, extract_release, swap_folder
from .store import JobStore, JSONSerde, MemoryStore, SqliteStore
from .engine import FileDeployer, JOB_QUEUE_SIZE

__all__ = [
    "EngineState",
    "Job",
    "JobState",
    "JobStatus",
    "UNKNOWN_TAG",
    "DefaultTransport",
    "HttpxTransport",
    "S3Transport",
    "Transport",
    "Installer",
    "extract_release",
    "swap_folder",
    "JobStore",
    "JSONSerde",
    "MemoryStore",
    "SqliteStore",
    "FileDeployer",
    "JOB_QUEUE_SIZE",
]
