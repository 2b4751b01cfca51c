"""HMAC request signing helpers for vendor webhooks."""

from __future__ import annotations

import hashlib
import hmac
import time

from ..exceptions import SignatureVerificationError

SIGNATURE_VERSION = "v0"
DEFAULT_TOLERANCE_SECONDS = 300


def compute_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Return the ``v0=<hex>`` signature Slack sends for ``body``."""

    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode(), basestring, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    signature: str | None,
    timestamp: str | None,
    body: bytes,
    *,
    now: float | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """Raise :class:`SignatureVerificationError` unless the request is fresh and signed.

    A correct HMAC is not enough: requests whose timestamp is more than
    ``tolerance_seconds`` away from ``now`` are rejected to stop replays.
    """
    if not signature or not timestamp:
        raise SignatureVerificationError("Missing signature headers")

    try:
        request_time = int(timestamp)
    except ValueError as exc:
        raise SignatureVerificationError("Malformed signature timestamp") from exc

    current = time.time() if now is None else now
    if abs(current - request_time) > tolerance_seconds:
        raise SignatureVerificationError("Signature timestamp outside tolerance window")

    expected = compute_slack_signature(secret, timestamp, body)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        raise SignatureVerificationError("Signature mismatch")
