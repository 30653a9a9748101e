"""
Pytest configuration and fixtures for Hodor tests.
"""

from pathlib import Path

import pytest

from hodor.core.config import ReleaseConfig
from hodor.deploy.engine import FileDeployer
from hodor.deploy.store import JobStore, MemoryStore

from helpers import FakeTransport


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "deployed" / "svcA"


@pytest.fixture
def release_config(target: Path) -> ReleaseConfig:
    return ReleaseConfig(entries={"svcA": str(target)})


@pytest.fixture
def job_store() -> JobStore:
    return JobStore(MemoryStore())


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def deployer(job_store, release_config, transport):
    """A deployer that is not started; tests start it when they need the worker."""
    d = FileDeployer(job_store, release_config, transport)
    yield d
    if d.state.value == "running":
        d.stop()


@pytest.fixture
def running_deployer(deployer):
    thread = deployer.run_in_thread()
    yield deployer
    deployer.stop()
    thread.join(timeout=10)
