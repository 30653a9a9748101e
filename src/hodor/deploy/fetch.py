"""Fetch utilities for downloading release archives."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Protocol, Tuple

import httpx
import structlog


logger = structlog.get_logger()


class Transport(Protocol):
    """Something that can copy the bytes found at ``url`` into ``dest_path``."""

    def fetch(self, url: str, dest_path: Path) -> int:
        ...


def _write_stream_to_file(stream_iter: Iterable[bytes], dest_path: Path, max_size_bytes: int) -> int:
    """Write streaming bytes to file with max-size enforcement.

    Returns number of bytes written.
    """
    tmp_file = dest_path.with_suffix(".downloading")
    bytes_written = 0
    try:
        with open(tmp_file, "wb") as f:
            for chunk in stream_iter:
                if not chunk:
                    continue
                bytes_written += len(chunk)
                if bytes_written > max_size_bytes:
                    raise ValueError("Release exceeds maximum allowed size")
                f.write(chunk)
    except BaseException:
        tmp_file.unlink(missing_ok=True)
        raise
    os.replace(tmp_file, dest_path)
    return bytes_written


class HttpxTransport:
    """Downloads archives over HTTP(S) with httpx."""

    def __init__(
        self,
        timeout_sec: float = 60.0,
        max_size_bytes: int = 512 * 1024 * 1024,
        client: httpx.Client | None = None,
    ):
        self.timeout_sec = timeout_sec
        self.max_size_bytes = max_size_bytes
        self._client = client

    def fetch(self, url: str, dest_path: Path) -> int:
        logger.info("Downloading release", url=url, dest=str(dest_path))
        if self._client is not None:
            return self._fetch_with(self._client, url, dest_path)
        with httpx.Client(timeout=httpx.Timeout(self.timeout_sec), follow_redirects=True) as client:
            return self._fetch_with(client, url, dest_path)

    def _fetch_with(self, client: httpx.Client, url: str, dest_path: Path) -> int:
        with client.stream("GET", url, follow_redirects=True) as resp:
            resp.raise_for_status()
            bytes_written = _write_stream_to_file(resp.iter_bytes(), dest_path, self.max_size_bytes)
        logger.info("Downloaded release", url=url, bytes=bytes_written)
        return bytes_written


def _parse_s3_url(url: str) -> Tuple[str, str]:
    """Parse s3://bucket/key URL into (bucket, key)."""
    if not url.startswith("s3://"):
        raise ValueError("Not an s3 URL")
    rest = url[len("s3://"):]
    parts = rest.split("/", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError("Invalid s3 URL; expected s3://bucket/key")
    return parts[0], parts[1]


class S3Transport:
    """Downloads archives referenced as ``s3://bucket/key`` with boto3."""

    def __init__(
        self,
        max_size_bytes: int = 512 * 1024 * 1024,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.max_size_bytes = max_size_bytes
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._client = client

    def _s3(self):
        if self._client is None:
            import boto3

            self._client = boto3.client("s3", region_name=self.region_name, endpoint_url=self.endpoint_url)
        return self._client

    def fetch(self, url: str, dest_path: Path) -> int:
        bucket, key = _parse_s3_url(url)
        logger.info("Downloading release from S3", bucket=bucket, key=key, dest=str(dest_path))
        body = self._s3().get_object(Bucket=bucket, Key=key)["Body"]
        try:
            bytes_written = _write_stream_to_file(body.iter_chunks(64 * 1024), dest_path, self.max_size_bytes)
        finally:
            body.close()
        logger.info("Downloaded release from S3", bytes=bytes_written)
        return bytes_written


class DefaultTransport:
    """Picks S3 for ``s3://`` URLs and httpx for everything else."""

    def __init__(self, http: Optional[Transport] = None, s3: Optional[Transport] = None):
        self.http = http or HttpxTransport()
        self.s3 = s3 or S3Transport()

    def fetch(self, url: str, dest_path: Path) -> int:
        if url.startswith("s3://"):
            return self.s3.fetch(url, dest_path)
        return self.http.fetch(url, dest_path)
