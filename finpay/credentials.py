"""
Credential Hashing Module

Salted one-way hashing of account secrets with scrypt. Stored hashes are
self-describing strings so the cost parameters travel with the hash:

    scrypt$<n>$<r>$<p>$<salt hex>$<digest hex>
"""

import hashlib
import hmac
import secrets


SCHEME = "scrypt"


class PasswordHasher:
    """Hashes and verifies secrets; never compares raw strings"""

    def __init__(self, n: int = 16384, r: int = 8, p: int = 1, salt_bytes: int = 16):
        self.n = n
        self.r = r
        self.p = p
        self.salt_bytes = salt_bytes
        # Verified against when the account does not exist, so unknown users
        # cost the same as a wrong secret
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    def _generate_salt(self) -> str:
        return secrets.token_hex(self.salt_bytes)

    @staticmethod
    def _derive(secret: str, salt: str, n: int, r: int, p: int) -> str:
        return hashlib.scrypt(
            secret.encode(),
            salt=salt.encode(),
            n=n, r=r, p=p,
            maxmem=256 * 1024 * 1024
        ).hex()

    def hash(self, secret: str) -> str:
        """Hash a secret with a fresh salt"""
        salt = self._generate_salt()
        digest = self._derive(secret, salt, self.n, self.r, self.p)
        return f"{SCHEME}${self.n}${self.r}${self.p}${salt}${digest}"

    def verify(self, secret: str, encoded: str) -> bool:
        """Constant-time check of a secret against a stored hash"""
        try:
            scheme, n, r, p, salt, digest = encoded.split("$")
            if scheme != SCHEME:
                return False
            candidate = self._derive(secret, salt, int(n), int(r), int(p))
        except ValueError:
            return False
        return hmac.compare_digest(candidate, digest)

    def verify_missing(self, secret: str) -> bool:
        """Burn the same work as verify() for an account that does not exist"""
        self.verify(secret, self._dummy_hash)
        return False
