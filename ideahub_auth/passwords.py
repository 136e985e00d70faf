"""Salted one-way password hashing backed by passlib."""
from __future__ import annotations

import secrets

from passlib.context import CryptContext

DEFAULT_ROUNDS = 29000


class PasswordHasher:
    """Produce self-describing pbkdf2_sha256 hashes and compare against them.

    Hashes look like ``$pbkdf2-sha256$<rounds>$<salt>$<digest>`` so algorithm,
    cost and salt travel with the digest. passlib draws a fresh salt for each
    call and compares digests with a constant-time routine.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            default="pbkdf2_sha256",
            pbkdf2_sha256__rounds=rounds,
        )
        # Compared against when no real hash exists, so a missing account
        # costs the same work as a wrong password.
        self.dummy_hash = self.hash(secrets.token_urlsafe(16))

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def compare(self, plaintext: str, hashed: str | None) -> bool:
        """Return False for mismatches and for malformed or missing hashes."""
        if not hashed:
            return False
        try:
            return bool(self._context.verify(plaintext, hashed))
        except (ValueError, TypeError):
            return False

    def burn(self, plaintext: str) -> None:
        """Spend one comparison's worth of work without a real hash."""
        self.compare(plaintext, self.dummy_hash)
