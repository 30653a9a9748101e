"""Shared helpers for Hodor tests."""

import io
import json
import tarfile
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from hodor.deploy.models import JobState


def make_release(
    files: Dict[str, bytes],
    root: str = "release",
    first_entry_is_file: bool = False,
) -> bytes:
    """Build a .tar.gz whose first entry is the ``root`` folder."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        if first_entry_is_file:
            _add_file(tf, "stray.txt", b"not a folder")

        info = tarfile.TarInfo(root + "/")
        info.type = tarfile.DIRTYPE
        info.mode = 0o755
        tf.addfile(info)

        for name, data in files.items():
            _add_file(tf, f"{root}/{name}", data)
    return buf.getvalue()


def _add_file(tf: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = 0o644
    tf.addfile(info, io.BytesIO(data))


class FakeTransport:
    """Writes a fixed body, or raises, instead of downloading."""

    def __init__(self, body: bytes = b"", error: Optional[Exception] = None):
        self.body = body
        self.error = error
        self.calls = []
        self.gate: Optional[threading.Event] = None

    def fetch(self, url: str, dest_path: Path) -> int:
        self.calls.append(url)
        if self.gate is not None:
            self.gate.wait(timeout=10)
        if self.error is not None:
            raise self.error
        dest_path.write_bytes(self.body)
        return len(self.body)


class FailingSerde:
    """Serde whose dumps/loads can be switched to fail."""

    def __init__(self, fail_dumps: bool = False, fail_loads: bool = False):
        self.fail_dumps = fail_dumps
        self.fail_loads = fail_loads

    def dumps(self, value):
        if self.fail_dumps:
            raise ValueError("fake marshal error")
        return json.dumps(value)

    def loads(self, data):
        if self.fail_loads:
            raise ValueError("fake unmarshal error")
        return json.loads(data)


def wait_for_terminal(deployer, job_id: str, timeout: float = 10.0):
    """Poll a job until it leaves the ``created`` state."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        status = deployer.get_status(job_id)
        if status.status != JobState.CREATED.value:
            return status
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} still created after {timeout}s")


def list_tree(path: Path) -> Dict[str, bytes]:
    return {
        str(p.relative_to(path)): p.read_bytes()
        for p in sorted(path.rglob("*"))
        if p.is_file()
    }
