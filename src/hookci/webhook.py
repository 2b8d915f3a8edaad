"""GitHub webhook signature validation and payload decoding."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Dict, Mapping, Optional

from .errors import DispatchError

_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
}


def sign_payload(payload_body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Return the signature header value GitHub would send for `payload_body`."""
    digest = hmac.new(secret.encode("utf-8"), payload_body, _ALGORITHMS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_github_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str
) -> bool:
    """Check a `sha256=` or legacy `sha1=` signature header against the raw body."""
    if not signature_header or "=" not in signature_header:
        return False

    algorithm, _, received = signature_header.partition("=")
    if algorithm not in _ALGORITHMS:
        return False

    expected = sign_payload(payload_body, secret, algorithm)
    return hmac.compare_digest(expected, f"{algorithm}={received}")


def signature_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    # Prefer the SHA-256 header when GitHub sends both
    return headers.get("X-Hub-Signature-256") or headers.get("X-Hub-Signature")


def decode_event(
    headers: Mapping[str, str],
    payload_body: bytes,
    webhook_secret: str
) -> tuple[str, Dict[str, Any]]:
    """Return the event name and JSON object of a delivery, or raise `DispatchError`."""

    event = headers.get("X-GitHub-Event")
    if not event:
        raise DispatchError("No X-GitHub-Event found on request")

    if not verify_github_signature(payload_body, signature_from_headers(headers), webhook_secret):
        raise DispatchError("X-Hub-Signature does not match blob signature")

    try:
        payload = json.loads(payload_body)
    except (ValueError, UnicodeDecodeError) as err:
        raise DispatchError("Failed to parse JSON payload") from err
    if not isinstance(payload, dict):
        raise DispatchError("Webhook payload must be a JSON object")
    return event, payload
