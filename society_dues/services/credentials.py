"""Credential storage and verification.

Two verifiers share one interface so unit credentials can move from plaintext to
hashed storage without touching the due calculation or sync code:

- PlaintextVerifier keeps passwords as given (how unit records have always stored
  them; a known weakness of the data model).
- Pbkdf2Verifier stores "pbkdf2_sha256$<iterations>$<salt>$<hex digest>".
"""

import hashlib
import hmac
import secrets
from typing import Protocol

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 260_000


class CredentialVerifier(Protocol):
    """Turns a password into its stored form and checks a candidate against it."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, stored: str) -> bool: ...


class PlaintextVerifier:
    """Stores passwords unchanged and compares them in constant time."""

    def hash(self, password: str) -> str:
        return password

    def verify(self, password: str, stored: str) -> bool:
        return hmac.compare_digest(password.encode(), (stored or "").encode())


class Pbkdf2Verifier:
    """Salted PBKDF2-HMAC-SHA256 password hashes."""

    def __init__(self, iterations: int = PBKDF2_ITERATIONS):
        self.iterations = iterations

    def hash(self, password: str) -> str:
        salt = secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode(), salt.encode(), self.iterations
        ).hex()
        return f"{PBKDF2_ALGORITHM}${self.iterations}${salt}${digest}"

    def verify(self, password: str, stored: str) -> bool:
        try:
            algorithm, iterations, salt, digest = (stored or "").split("$")
            rounds = int(iterations)
        except ValueError:
            return False
        if algorithm != PBKDF2_ALGORITHM:
            return False
        candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), rounds).hex()
        return hmac.compare_digest(candidate, digest)


def verifier_for(hashed: bool) -> CredentialVerifier:
    """Pick the unit credential verifier from the UNIT_PASSWORD_HASHING setting."""
    return Pbkdf2Verifier() if hashed else PlaintextVerifier()


__all__ = [
    "CredentialVerifier",
    "PlaintextVerifier",
    "Pbkdf2Verifier",
    "verifier_for",
]
