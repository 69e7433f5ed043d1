"""PKCE (:rfc:`7636`) and anti-CSRF state helpers.

All randomness comes from :mod:`secrets`. The verifier alphabet is the
URL-safe base64 alphabet, a subset of the RFC's unreserved characters.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

STATE_BYTES = 16
VERIFIER_BYTES = 43


def generate_state() -> str:
    """Return a hex-encoded state token built from 16 random bytes."""
    return secrets.token_hex(STATE_BYTES)


def generate_code_verifier() -> str:
    """Return a code verifier: 43 random bytes, URL-safe base64, no padding (58 chars)."""
    return secrets.token_urlsafe(VERIFIER_BYTES)


def derive_code_challenge(code_verifier: str) -> str:
    """Return ``base64url(SHA-256(code_verifier))`` without padding (S256 method)."""
    digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    code_verifier = generate_code_verifier()
    return code_verifier, derive_code_challenge(code_verifier)
