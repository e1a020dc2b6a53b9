"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT, with distinct access and refresh secrets
- SHA-256 fingerprints so only refresh token hashes are ever stored
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Tuple

import jwt
from argon2 import PasswordHasher as Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError

from utils.exceptions import InvalidToken

Clock = Callable[[], datetime]

ACCESS = "access"
REFRESH = "refresh"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a raw token; this is what the token store keeps.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordHasher:
    """Argon2id hashing with constant-time verification.

    `time_cost` and `memory_cost` are the work factors; the argon2-cffi
    defaults (3 passes, 64 MiB) are well above a bcrypt cost of 10.
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = Argon2Hasher(time_cost=time_cost, memory_cost=memory_cost, parallelism=parallelism)
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str | None) -> bool:
        """ Verify a plaintext password; never raises
        """
        if not password_hash:
            return False
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False

    def dummy_verify(self, password: str) -> bool:
        """Spend the same CPU as a real verify when there is no user to check against.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self._ph.hash(secrets.token_urlsafe(16))
        self.verify(password, self._dummy_hash)
        return False

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            return self._ph.check_needs_rehash(password_hash)
        except InvalidHashError:
            return True


class TokenSigner:
    """
    Issues and validates JWTs.

    Access and refresh tokens are signed with different secrets and carry a
    `type` claim, so neither can stand in for the other. Both issuing and
    expiry checks read the injected clock.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        issuer: str = "campus-market-auth",
        clock: Clock = utcnow,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("JWT access and refresh secrets must be set")
        if access_secret == refresh_secret:
            raise ValueError("JWT access and refresh secrets must differ")
        self._secrets = {ACCESS: access_secret, REFRESH: refresh_secret}
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm
        self.issuer = issuer
        self.clock = clock

    def _encode(self, token_type: str, subject: str, ttl: timedelta, extra: Dict[str, Any] | None = None) -> Tuple[str, datetime]:
        now = self.clock()
        exp = int((now + ttl).timestamp())
        payload = {
            "iss": self.issuer,
            "sub": str(subject),
            "iat": int(now.timestamp()),
            "exp": exp,
            "type": token_type,
            "jti": generate_jti(),
        }
        if extra:
            payload.update(extra)
        token = jwt.encode(payload, self._secrets[token_type], algorithm=self.algorithm)
        return token, datetime.fromtimestamp(exp, tz=timezone.utc)

    def sign_access(self, subject: str, role: str) -> str:
        token, _ = self._encode(ACCESS, subject, self.access_ttl, {"role": role})
        return token

    def sign_refresh(self, subject: str) -> Tuple[str, datetime]:
        """Return the refresh token and the moment it expires."""
        return self._encode(REFRESH, subject, self.refresh_ttl)

    def _decode(self, token: str, expected_type: str) -> Dict[str, Any]:
        if not token or not isinstance(token, str):
            raise InvalidToken("Missing token")
        try:
            # expiry is judged against self.clock below, not the wall clock
            decoded = jwt.decode(
                token,
                self._secrets[expected_type],
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub", "type"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError:
            raise InvalidToken("Invalid token")

        exp = decoded.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise InvalidToken("Invalid token")
        if exp <= int(self.clock().timestamp()):
            raise InvalidToken("Token expired")
        if decoded.get("type") != expected_type:
            raise InvalidToken("Wrong token type")
        return decoded

    def verify_access(self, token: str) -> Dict[str, Any]:
        return self._decode(token, ACCESS)

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self._decode(token, REFRESH)
