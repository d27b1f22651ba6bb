"""
Token Issuer Module

Bearer credentials proving who is calling. The ledger only depends on the
TokenIssuer interface; JWTTokenIssuer signs time-limited HS256 tokens with
a secret taken from configuration.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone, timedelta
from typing import Callable, Optional

import jwt

from .errors import InvalidToken


class TokenIssuer(ABC):
    """Mints and validates bearer tokens bound to a username"""
    
    @abstractmethod
    def issue(self, username: str) -> str:
        """Issue a token for username"""
        pass
    
    @abstractmethod
    def verify(self, token: str) -> str:
        """Return the username a token was issued to, or raise InvalidToken"""
        pass


class JWTTokenIssuer(TokenIssuer):
    """Signed, expiring JSON Web Tokens"""
    
    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiry: timedelta = timedelta(hours=24),
        clock: Optional[Callable[[], datetime]] = None
    ):
        if not secret:
            raise ValueError("Token signing secret must be configured")
        self.secret = secret
        self.algorithm = algorithm
        self.expiry = expiry
        self.clock = clock or (lambda: datetime.now(timezone.utc))
    
    def issue(self, username: str) -> str:
        now = self.clock()
        payload = {
            "sub": username,
            "iat": now,
            "exp": now + self.expiry,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)
    
    def verify(self, token: str) -> str:
        if not token:
            raise InvalidToken("Access token required")
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise InvalidToken("Token expired")
        except jwt.InvalidTokenError:
            raise InvalidToken()
        
        username = payload.get("sub")
        if not username:
            raise InvalidToken()
        return username
