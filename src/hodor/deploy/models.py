"""Models for release deployment jobs."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel


UNKNOWN_TAG = "unknown"


class JobState(str, Enum):
    CREATED = "created"
    OK = "ok"
    FAILED = "failed"


class EngineState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class JobStatus(BaseModel):
    """Status of a job, as persisted under the job id.

    ``status`` is an open string; the values used by the engine are the ones
    of :class:`JobState`.
    """

    status: str
    message: str = ""


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Job:
    """A request to deploy one release, consumed once by the worker."""

    release_id: str
    release_url: str
    tag: str = ""
    id: str = field(default_factory=new_job_id)
