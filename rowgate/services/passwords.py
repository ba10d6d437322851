from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets

"""Password hashing for user records (PBKDF2-SHA256).

Stored format: ``pbkdf2_sha256$<iterations>$<salt b64url>$<hash b64url>``.
Legacy bcrypt hashes (``$2a$`` / ``$2y$``) are recognized as already hashed so
that re-binding a loaded user row never double hashes the password.
"""

__all__ = [
    "PasswordHasher",
]

ALGORITHM = "pbkdf2_sha256"
_HASHED_PREFIXES = (f"{ALGORITHM}$", "$2a$", "$2y$", "$2b$")


def _b64u_encode(v: bytes) -> str:
    return base64.urlsafe_b64encode(v).decode("ascii").rstrip("=")


def _b64u_decode(v: str) -> bytes:
    return base64.urlsafe_b64decode(v + "=" * (-len(v) % 4))


class PasswordHasher:
    def __init__(self, iterations: int = 310_000) -> None:
        self.iterations = iterations

    def hash(self, password: str) -> str:
        salt = os.urandom(16)
        dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.iterations, dklen=32)
        return f"{ALGORITHM}${self.iterations}${_b64u_encode(salt)}${_b64u_encode(dk)}"

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            algo, iter_s, salt_b64, hash_b64 = str(password_hash or "").split("$", 3)
            if algo != ALGORITHM:
                return False
            iterations = int(iter_s)
            salt = _b64u_decode(salt_b64)
            expected = _b64u_decode(hash_b64)
        except ValueError:
            return False
        actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=len(expected))
        return hmac.compare_digest(actual, expected)

    @staticmethod
    def is_hashed(value: str) -> bool:
        return str(value).startswith(_HASHED_PREFIXES)

    @staticmethod
    def random_password(length: int = 16) -> str:
        return secrets.token_urlsafe(length)[:length]
