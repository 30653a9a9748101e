"""Tests for the release transports."""

from pathlib import Path

import httpx
import pytest

from hodor.deploy.fetch import DefaultTransport, HttpxTransport, S3Transport

from helpers import FakeTransport


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_httpx_download(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/release.tar.gz"
        return httpx.Response(200, content=b"archive-bytes")

    dest = tmp_path / "release.tar.gz"
    written = HttpxTransport(client=mock_client(handler)).fetch("http://ci.test/release.tar.gz", dest)

    assert written == len(b"archive-bytes")
    assert dest.read_bytes() == b"archive-bytes"


def test_httpx_follows_redirects(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/latest":
            return httpx.Response(302, headers={"Location": "http://ci.test/v2.tgz"})
        return httpx.Response(200, content=b"v2")

    dest = tmp_path / "release.tar.gz"
    HttpxTransport(client=mock_client(handler)).fetch("http://ci.test/latest", dest)

    assert dest.read_bytes() == b"v2"


def test_httpx_error_status(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    dest = tmp_path / "release.tar.gz"
    with pytest.raises(httpx.HTTPStatusError):
        HttpxTransport(client=mock_client(handler)).fetch("http://ci.test/missing", dest)
    assert not dest.exists()


def test_httpx_size_limit(tmp_path: Path):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 100)

    dest = tmp_path / "release.tar.gz"
    transport = HttpxTransport(client=mock_client(handler), max_size_bytes=10)
    with pytest.raises(ValueError, match="maximum allowed size"):
        transport.fetch("http://ci.test/big", dest)

    assert list(tmp_path.iterdir()) == []


class FakeBody:
    def __init__(self, data: bytes):
        self.data = data
        self.closed = False

    def iter_chunks(self, chunk_size):
        for i in range(0, len(self.data), chunk_size):
            yield self.data[i:i + chunk_size]

    def close(self):
        self.closed = True


class FakeS3:
    def __init__(self, data: bytes):
        self.body = FakeBody(data)
        self.requests = []

    def get_object(self, Bucket, Key):
        self.requests.append((Bucket, Key))
        return {"Body": self.body}


def test_s3_download(tmp_path: Path):
    s3 = FakeS3(b"s3-bytes")
    dest = tmp_path / "release.tar.gz"

    S3Transport(client=s3).fetch("s3://releases/svcA/v1.tgz", dest)

    assert s3.requests == [("releases", "svcA/v1.tgz")]
    assert dest.read_bytes() == b"s3-bytes"
    assert s3.body.closed


def test_s3_bad_url(tmp_path: Path):
    with pytest.raises(ValueError, match="Invalid s3 URL"):
        S3Transport(client=FakeS3(b"")).fetch("s3://bucket-only", tmp_path / "r")


def test_default_transport_routes_by_scheme(tmp_path: Path):
    http, s3 = FakeTransport(body=b"h"), FakeTransport(body=b"s")
    transport = DefaultTransport(http=http, s3=s3)

    transport.fetch("s3://b/k", tmp_path / "one")
    transport.fetch("https://ci.test/r.tgz", tmp_path / "two")

    assert s3.calls == ["s3://b/k"]
    assert http.calls == ["https://ci.test/r.tgz"]
