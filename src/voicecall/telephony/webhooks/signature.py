"""
Webhook signature verification.

Vapi signs the exact request body with HMAC-SHA256 keyed by the shared
secret and sends the hex digest in the x-vapi-signature header.
"""

import hashlib
import hmac

SIGNATURE_HEADER = "x-vapi-signature"


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str | None, body: bytes, signature: str | None) -> bool:
    """Check a header-supplied signature against the raw body.

    Returns False when either the secret or the signature is missing.
    """
    if not secret or not signature:
        return False

    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
