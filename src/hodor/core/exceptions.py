"""Custom exceptions for Hodor."""

from typing import Optional


class HodorError(Exception):
    """Base exception for all Hodor errors."""

    default_code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code or self.default_code


class ConfigurationError(HodorError):
    """Configuration could not be loaded."""

    default_code = "config"


class NotFoundError(HodorError):
    """Unknown release id, job id or store key."""

    default_code = "not_found"


class QueueFullError(HodorError):
    """The job queue is at capacity."""

    default_code = "queue_full"


class EngineStoppedError(HodorError):
    """The engine no longer accepts jobs."""

    default_code = "stopped"


class EngineStateError(HodorError):
    """Engine lifecycle method called in the wrong state."""

    default_code = "state"


class InstallError(HodorError):
    """Base for errors raised while installing a release."""
    pass


class TransportFetchError(InstallError):
    """The archive could not be fetched."""

    default_code = "fetch"


class ArchiveFormatError(InstallError):
    """The archive is not a gzipped tar with a root folder."""

    default_code = "format"


class FilesystemError(InstallError):
    """A filesystem operation failed during install."""

    default_code = "filesystem"


class PersistenceError(HodorError):
    """Status store read/write or (de)serialization failed."""

    default_code = "persistence"
