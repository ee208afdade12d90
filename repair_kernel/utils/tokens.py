"""
Approval token utilities.

The approval link's token is the customer's only credential.  It is
generated here, handed out once, and never stored: the database holds only
``HMAC-SHA256(key=secret, msg=token)``.  Comparison is constant-time.
"""

import hashlib
import hmac
import secrets
from urllib.parse import quote
from uuid import UUID

MIN_TOKEN_BYTES = 16


def generate_token(num_bytes: int = MIN_TOKEN_BYTES) -> str:
    """
    Generate a random hex token.

    Args:
        num_bytes: Entropy in bytes; at least 16 (128 bits).

    Returns:
        Hex string of length ``2 * num_bytes``.
    """
    if num_bytes < MIN_TOKEN_BYTES:
        raise ValueError(
            f"Approval tokens need at least {MIN_TOKEN_BYTES} bytes, got {num_bytes}"
        )
    return secrets.token_hex(num_bytes)


def hash_token(token: str, secret: str | bytes) -> str:
    """
    Keyed hash of a token.

    Args:
        token: The raw token.
        secret: Server secret used as the HMAC key.

    Returns:
        64-character hex digest.
    """
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    return hmac.new(key, token.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_token(token: str | None, secret: str | bytes, expected_hash: str | None) -> bool:
    """Constant-time check of ``token`` against a stored hash.

    Issued tokens are hex, so anything non-ASCII (including strings that
    cannot be encoded at all) is rejected before hashing.
    """
    if not token or not expected_hash or not token.isascii():
        return False
    return hmac.compare_digest(hash_token(token, secret), expected_hash)


def build_approval_url(base_url: str, job_id: UUID, token: str) -> str:
    """``{base_url}/approve/{job_id}?t={token}``"""
    return f"{base_url.rstrip('/')}/approve/{job_id}?t={quote(token, safe='')}"
