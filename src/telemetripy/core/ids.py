"""Identifier helpers for events, alerts and sessions."""

import hashlib
import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits


def _suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_id(prefix: str, length: int = 6, now: float | None = None) -> str:
    """Build an identifier from a millisecond timestamp and a random suffix.

    Uniqueness is best-effort; nothing relies on it for correctness.

    Args:
        prefix: Leading label (e.g., "event", "error", "alert").
        length: Number of random characters in the suffix.
        now: Unix timestamp in seconds (default: current time).

    Returns:
        Identifier such as ``event_1702300000000_k3j9zq``.
    """
    timestamp = time.time() if now is None else now
    return f"{prefix}_{int(timestamp * 1000)}_{_suffix(length)}"


def session_id(now: float | None = None) -> str:
    """Generate a session identifier."""
    return generate_id("sess", length=9, now=now)


def user_id(now: float | None = None) -> str:
    """Generate an anonymous user identifier."""
    return generate_id("user", length=9, now=now)


def hash_sensitive(value: object) -> str:
    """Return a short, stable, non-reversible token for a sensitive value.

    Used for wallet addresses and similar values that must be correlated
    across events without being transmitted.
    """
    digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
    return f"hash_{digest[:16]}"
