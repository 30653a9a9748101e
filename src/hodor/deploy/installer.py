"""Install a release archive into its target folder.

An install downloads a ``.tar.gz`` into a scratch directory, extracts it
there, then replaces the target folder with the archive's root folder. The
first entry of the archive must be that root folder.
"""

from __future__ import annotations

import os
import shutil
import tarfile
import tempfile
import zlib
from pathlib import Path
from typing import Union

import structlog

from hodor.core.exceptions import ArchiveFormatError, FilesystemError, TransportFetchError
from hodor.deploy.fetch import Transport


logger = structlog.get_logger()

FILE_MODE = 0o755
DIR_MODE = 0o755

_ARCHIVE_NAME = "release.tar.gz"
_EXTRACT_DIR = "extract"

# Errors that mean the archive stream itself is unreadable
_READ_ERRORS = (tarfile.TarError, EOFError, zlib.error, OSError)


def _safe_target(base: Path, name: str) -> Path:
    """Resolve an archive entry name under ``base``, rejecting escapes."""
    member_path = Path(name)
    if member_path.is_absolute() or ".." in member_path.parts:
        raise ArchiveFormatError(f"unsafe path in archive: {name!r}")
    target = (base / member_path).resolve()
    if target != base and base not in target.parents:
        raise ArchiveFormatError(f"unsafe path in archive: {name!r}")
    return target


def _next_member(tf: tarfile.TarFile):
    try:
        return tf.next()
    except _READ_ERRORS as exc:
        raise ArchiveFormatError(f"failed to extract: {exc}") from exc


def _extract_member(tf: tarfile.TarFile, member: tarfile.TarInfo, base: Path) -> None:
    target = _safe_target(base, member.name)

    if member.isdir():
        if not target.is_dir():
            try:
                target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            except OSError as exc:
                raise FilesystemError(f"failed to create dir {target}: {exc}") from exc
        return

    if not member.isfile():
        logger.debug("Skipping unsupported archive entry", name=member.name, type=member.type)
        return

    try:
        target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(target, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, FILE_MODE)
    except OSError as exc:
        raise FilesystemError(f"failed to open file {target}: {exc}") from exc

    with os.fdopen(fd, "wb") as dst:
        # the umask may have masked the mode given to open
        try:
            os.chmod(target, FILE_MODE)
        except OSError as exc:
            raise FilesystemError(f"failed to open file {target}: {exc}") from exc

        try:
            src = tf.extractfile(member)
        except _READ_ERRORS as exc:
            raise ArchiveFormatError(f"failed to extract: {exc}") from exc
        if src is None:
            return
        try:
            shutil.copyfileobj(src, dst)
        except (tarfile.TarError, EOFError, zlib.error) as exc:
            raise ArchiveFormatError(f"failed to extract: {exc}") from exc
        except OSError as exc:
            raise FilesystemError(f"failed to copy file {target}: {exc}") from exc


def extract_release(archive_path: Union[str, Path], dest: Union[str, Path]) -> Path:
    """Extract a ``.tar.gz`` into ``dest`` and return the path of its root folder.

    The first entry must be a directory. An archive rooted at ``./`` has
    ``dest`` itself as its root. Directory entries are created when
    missing, regular files are written with :data:`FILE_MODE` (replacing any
    file already there), and other entry types are ignored.
    """
    base = Path(dest).resolve()

    try:
        tf = tarfile.open(archive_path, mode="r:gz")
    except _READ_ERRORS as exc:
        raise ArchiveFormatError(f"failed to create reader: {exc}") from exc

    with tf:
        first = _next_member(tf)
        if first is None:
            raise ArchiveFormatError("failed to read the first header: archive is empty")
        if not first.isdir():
            raise ArchiveFormatError("archive must be a folder")

        root = _safe_target(base, first.name)
        try:
            root.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"failed to create root dir {root}: {exc}") from exc

        member = _next_member(tf)
        while member is not None:
            _extract_member(tf, member, base)
            member = _next_member(tf)

    return root


def swap_folder(source: Union[str, Path], target: Union[str, Path]) -> None:
    """Replace ``target`` with ``source``.

    The old target is removed first and the new folder renamed into place
    afterwards, so a crash between the two steps leaves no target at all.
    """
    target = Path(target)

    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
    except OSError as exc:
        raise FilesystemError(f"failed to remove folder {target}: {exc}") from exc

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        os.rename(source, target)
    except OSError as exc:
        raise FilesystemError(f"failed to rename folder: {exc}") from exc


class Installer:
    """Downloads, extracts and swaps a release into its target folder."""

    def __init__(self, transport: Transport):
        self.transport = transport

    def install(self, release_url: str, target_dir: Union[str, Path], job_id: str = "") -> None:
        try:
            scratch = Path(tempfile.mkdtemp(prefix="hodor"))
        except OSError as exc:
            raise FilesystemError(f"failed to create tmp dir: {exc}") from exc

        logger.info("Job using temp folder", job_id=job_id, tmp=str(scratch))

        try:
            archive = scratch / _ARCHIVE_NAME
            try:
                self.transport.fetch(release_url, archive)
            except Exception as exc:
                raise TransportFetchError(f"failed to get file: {exc}") from exc

            extract_dir = scratch / _EXTRACT_DIR
            try:
                extract_dir.mkdir()
            except OSError as exc:
                raise FilesystemError(f"failed to create dir {extract_dir}: {exc}") from exc
            root = extract_release(archive, extract_dir)

            swap_folder(root, target_dir)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
