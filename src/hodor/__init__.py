"""Hodor - Hookable deployment of releases."""

__version__ = "0.1.0"

from hodor.core.config import ReleaseConfig, Settings
from hodor.deploy.engine import FileDeployer

__all__ = ["Settings", "ReleaseConfig", "FileDeployer", "__version__"]
