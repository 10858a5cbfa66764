"""HMAC-SHA256 verification of GitHub webhook signatures."""

import hashlib
import hmac

from app.config import SIGNATURE_SENTINEL


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Return the ``sha256=<hex>`` signature GitHub sends for ``raw_body``."""
    digest = hmac.new(
        secret.encode("utf-8"),
        msg=raw_body,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"sha256={digest}"


def verify_signature(raw_body: bytes, presented: str | None, secret: str) -> bool:
    """Check a presented ``X-Hub-Signature-256`` value against the raw body.

    Uses a constant-time comparison. A missing signature, a value of the wrong
    length or one containing non-ASCII characters is reported as a mismatch
    rather than raised.
    """
    if not presented:
        return False
    expected = compute_signature(raw_body, secret)
    try:
        return hmac.compare_digest(expected.encode("ascii"), presented.encode("ascii"))
    except UnicodeEncodeError:
        return False


def is_verification_disabled(secret: str) -> bool:
    """True when the configured secret is still the shipped placeholder.

    Callers skip verification in that case, which leaves the webhook open to
    anyone who can reach it.
    """
    return secret == SIGNATURE_SENTINEL
