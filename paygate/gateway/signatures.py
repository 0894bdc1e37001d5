"""Webhook signature verification for `t=<unix>,v1=<hex>` headers."""

import hashlib
import hmac
import time


# Larger values cannot be compared against the wall clock.
_MAX_TIMESTAMP = 2**63


def parse_signature_header(header: str) -> tuple[int, str] | None:
    """Split a signature header into `(timestamp, signature)`, or None if malformed."""

    timestamp: int | None = None
    signature: str | None = None
    for part in (header or "").split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None
            if not 0 <= timestamp < _MAX_TIMESTAMP:
                return None
        elif key == "v1":
            signature = value.strip().lower()
    if timestamp is None or not signature:
        return None
    return timestamp, signature


def compute_signature(secret: str, timestamp: int, payload: bytes | str) -> str:
    """Hex HMAC-SHA256 over `"<timestamp>.<payload>"`."""

    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    signed = str(timestamp).encode("ascii") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def build_signature_header(secret: str, payload: bytes | str, timestamp: int | None = None) -> str:
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={timestamp},v1={compute_signature(secret, timestamp, payload)}"


def verify_webhook_signature(
    secret: str,
    header: str,
    payload: bytes | str,
    tolerance_seconds: int | None = None,
    now: float | None = None,
) -> bool:
    """Return True only for a well-formed header whose HMAC matches.

    Malformed input is reported as unverified, never raised.
    """

    if not secret:
        return False
    parsed = parse_signature_header(header)
    if parsed is None:
        return False
    timestamp, signature = parsed
    if tolerance_seconds is not None:
        current = time.time() if now is None else now
        if abs(current - timestamp) > tolerance_seconds:
            return False
    expected = compute_signature(secret, timestamp, payload)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
