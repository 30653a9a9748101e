"""Tests for log redaction."""

from hodor.utils.logging import _redact_sensitive


def test_sensitive_keys_are_redacted():
    event = _redact_sensitive(None, "info", {"event": "x", "Authorization": "Bearer abc", "tag": "v1"})

    assert event["Authorization"] == "[REDACTED]"
    assert event["tag"] == "v1"


def test_url_query_is_redacted():
    url = "https://bucket.s3.amazonaws.com/r.tgz?X-Amz-Signature=deadbeef&X-Amz-Expires=300"

    event = _redact_sensitive(None, "info", {"event": "Downloading release", "url": url})

    assert event["url"] == "https://bucket.s3.amazonaws.com/r.tgz?[REDACTED]"
    assert "deadbeef" not in event["url"]


def test_url_without_query_is_kept():
    event = _redact_sensitive(None, "info", {"release_url": "s3://bucket/releases/r.tgz"})

    assert event["release_url"] == "s3://bucket/releases/r.tgz"
