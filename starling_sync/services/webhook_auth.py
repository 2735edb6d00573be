"""Webhook signature verification for inbound Starling feed events.

Signatures are ``base64(HMAC-SHA256(secret, raw_body))`` sent in the ``X-Hook-Signature``
header. SHA-512 signatures are not accepted: only one algorithm is supported so that a
misconfigured sender fails loudly instead of being matched against a second digest.

An empty shared secret disables verification entirely. This is an intentional,
configuration-driven bypass for local setups, and a warning is logged when the
authenticator is built without a secret.
"""

import base64
import hashlib
import hmac

from starling_sync.core.errors import AuthenticationFailure
from starling_sync.core.utils import get_logger

SIGNATURE_HEADER = "X-Hook-Signature"
DIGEST = hashlib.sha256

logger = get_logger("starling-sync.auth")


def compute_signature(secret: str, body: bytes) -> str:
    """Return the base64-encoded HMAC-SHA256 of ``body`` keyed with ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), body, DIGEST).digest()
    return base64.b64encode(digest).decode("ascii")


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison that rejects on length mismatch before comparing content."""
    expected_bytes = expected.encode("utf-8")
    provided_bytes = provided.encode("utf-8")
    if len(expected_bytes) != len(provided_bytes):
        return False
    return hmac.compare_digest(expected_bytes, provided_bytes)


class WebhookAuthenticator:
    """Accepts or rejects raw webhook bodies against a shared secret."""

    def __init__(self, secret: str) -> None:
        """Initialize the authenticator; an empty secret disables verification."""
        self.secret = secret
        if not secret:
            logger.warning("No webhook shared secret configured: signature verification is disabled")

    @property
    def enabled(self) -> bool:
        """Whether signatures are checked."""
        return bool(self.secret)

    def verify(self, body: bytes, signature: str | None) -> bool:
        """Return True if the body is authentic (or verification is disabled)."""
        if not self.enabled:
            return True
        if not signature:
            return False
        return signatures_match(compute_signature(self.secret, body), signature)

    def authenticate(self, body: bytes, signature: str | None) -> None:
        """Raise AuthenticationFailure unless the body is authentic."""
        if not self.verify(body, signature):
            msg = "Webhook signature mismatch"
            raise AuthenticationFailure(msg)
