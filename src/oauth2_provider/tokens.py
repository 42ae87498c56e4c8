"""Opaque identifier generation for codes and tokens.

Identifiers are SHA-256 digests over the caller's seed, a nanosecond
timestamp and fresh bytes from the operating system CSPRNG, rendered as
64 lowercase hex characters.
"""

from __future__ import annotations

import hashlib
import secrets
import time

IDENTIFIER_LENGTH = 64


class TokenGenerator:
    """Produces unguessable fixed-length identifiers."""

    def __init__(self, entropy_bytes: int = 32) -> None:
        """Initialize the generator.

        Args:
            entropy_bytes: Random bytes mixed into every identifier.

        Raises:
            ValueError: If fewer than 16 random bytes are requested.
        """
        if entropy_bytes < 16:
            msg = "entropy_bytes must be at least 16"
            raise ValueError(msg)
        self.entropy_bytes = entropy_bytes

    def new_identifier(self, seed: str) -> str:
        """Generate a new opaque identifier.

        Args:
            seed: Domain-separation input, e.g. a client id.

        Returns:
            Hex-encoded SHA-256 digest of seed, time and random bytes.
        """
        digest = hashlib.sha256()
        digest.update(seed.encode("utf-8"))
        digest.update(time.time_ns().to_bytes(8, "big"))
        digest.update(secrets.token_bytes(self.entropy_bytes))
        return digest.hexdigest()


_default_generator = TokenGenerator()


def new_identifier(seed: str) -> str:
    """Generate an identifier with the shared default generator."""
    return _default_generator.new_identifier(seed)
