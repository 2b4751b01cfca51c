"""Tests for webhook request signature verification."""

from __future__ import annotations

import pytest

from fusion_ingestor.exceptions import SignatureVerificationError
from fusion_ingestor.webhooks.signatures import compute_slack_signature, verify_slack_signature

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
BODY = b'{"type":"event_callback","team_id":"T123"}'
NOW = 1_760_000_000


def test_valid_signature_passes() -> None:
    timestamp = str(NOW)
    signature = compute_slack_signature(SECRET, timestamp, BODY)

    assert signature.startswith("v0=")
    verify_slack_signature(SECRET, signature, timestamp, BODY, now=NOW)


def test_signature_at_tolerance_edge_passes() -> None:
    timestamp = str(NOW - 300)
    signature = compute_slack_signature(SECRET, timestamp, BODY)

    verify_slack_signature(SECRET, signature, timestamp, BODY, now=NOW)


def test_stale_signature_is_rejected_even_when_hmac_matches() -> None:
    timestamp = str(NOW - 301)
    signature = compute_slack_signature(SECRET, timestamp, BODY)

    with pytest.raises(SignatureVerificationError, match="tolerance"):
        verify_slack_signature(SECRET, signature, timestamp, BODY, now=NOW)


def test_tampered_body_is_rejected() -> None:
    timestamp = str(NOW)
    signature = compute_slack_signature(SECRET, timestamp, BODY)

    with pytest.raises(SignatureVerificationError, match="mismatch"):
        verify_slack_signature(SECRET, signature, timestamp, BODY + b" ", now=NOW)


@pytest.mark.parametrize(
    ("signature", "timestamp"),
    [(None, str(NOW)), ("v0=abc", None), ("v0=abc", "yesterday")],
)
def test_missing_or_malformed_headers_are_rejected(signature: str | None, timestamp: str | None) -> None:
    with pytest.raises(SignatureVerificationError):
        verify_slack_signature(SECRET, signature, timestamp, BODY, now=NOW)
