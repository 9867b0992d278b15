"""
auth/passwords.py -- One-way password hashing with bcrypt.

Security design decisions:
  bcrypt (direct usage, no passlib wrapper) with a tunable cost factor. The
  default of 10 rounds makes offline brute force expensive while keeping a
  login well under a second. Each digest embeds its own random salt, so two
  hashes of the same password differ while both verify.

  verify() relies on bcrypt.checkpw, which compares digests in constant time.
  A malformed stored digest yields False rather than an exception so a corrupt
  row looks exactly like a wrong password to the caller.

  bcrypt refuses secrets longer than 72 bytes. AuthService rejects such
  passwords as a ValidationError before they reach hash().

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Hash and verify passwords at a fixed bcrypt cost factor.

    Usage:
        hasher = PasswordHasher(rounds=10)
        digest = hasher.hash("secret1")
        hasher.verify("secret1", digest)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_digest: str | None = None

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt digest of the plaintext password."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """Return True if the plaintext matches the digest, False on mismatch or malformed digest."""
        if not digest:
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            return False

    def burn(self, plain: str) -> None:
        """Spend one verification's worth of CPU against a throwaway digest.

        Called on login when the email is unknown so the response takes as long
        as a wrong-password check and does not reveal which emails exist.
        """
        if self._dummy_digest is None:
            self._dummy_digest = self.hash("safeconnect_timing_dummy")
        self.verify(plain, self._dummy_digest)
