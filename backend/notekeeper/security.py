"""
NoteKeeper Backend — Password Hashing & Access Tokens
=======================================================

What:  The two auth capabilities the services consume.
How:   `PasswordHasher` wraps bcrypt; `TokenService` signs and verifies
       HS256 JWTs with python-jose. Both are configured from Settings and
       built once by the app factory.
Who:   UserService (hash, verify, sign) and the `get_current_user`
       dependency (verify).
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

import bcrypt
from jose import JWTError, jwt

from notekeeper.exceptions import AuthenticationError
from notekeeper.schemas.domain import utc_now

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted bcrypt digests."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, digest: str) -> bool:
        """False for a wrong password and for a digest bcrypt cannot parse."""
        try:
            return bcrypt.checkpw(_encode(plain), digest.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password digest is not a valid bcrypt hash")
            return False


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    username: str


class TokenService:
    """
    Signed bearer tokens.

    Claims:
        sub       user id (string)
        username  display name at signing time
        exp       expiry; python-jose rejects expired tokens on decode
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24 * 7):
        self._secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def sign(self, user_id: str, username: str) -> str:
        claims = {
            "sub": str(user_id),
            "username": username,
            "exp": utc_now() + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Raises:
            AuthenticationError: bad signature, expired, or missing claims
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Token rejected: %s", str(e))
            raise AuthenticationError("Invalid or expired token") from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid or expired token")
        return TokenClaims(user_id=str(user_id), username=payload.get("username", ""))
