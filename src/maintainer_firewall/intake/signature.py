"""GitHub webhook signature verification."""

import hashlib
import hmac

from ..common import InvalidSignatureError, MisconfiguredError

SIGNATURE_PREFIX = "sha256="


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Verify GitHub webhook signature."""
    if not signature or not secret:
        return False

    if not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(f"{SIGNATURE_PREFIX}{expected}", signature)


def require_valid_signature(payload: bytes, signature: str | None, secret: str | None) -> None:
    """Reject a delivery unless its signature matches the body.

    Raises:
        MisconfiguredError: If no webhook secret is configured.
        InvalidSignatureError: If the signature is absent, malformed or wrong.
    """
    if not secret or not secret.strip():
        raise MisconfiguredError("github webhook secret is not configured")
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        raise InvalidSignatureError("missing or invalid X-Hub-Signature-256")
    if not verify_signature(payload, signature, secret):
        raise InvalidSignatureError("signature verification failed")
