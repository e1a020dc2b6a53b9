"""
Session refresh protocol.

A refresh token moves Issued -> Used when `refresh` consumes it, and is
replaced by a new one. Presenting a token that verifies but is no longer in
the store (already used, or the user's sessions were reset) is treated as
theft or a replay race: every session of that user is revoked.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.user import User
from utils.exceptions import InvalidToken, PossibleTokenReuse
from utils.security import hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientInfo:
    user_agent: Optional[str] = None
    ip: Optional[str] = None


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    expires_in: int


class SessionManager:
    def __init__(self, signer, tokens, users):
        self._signer = signer
        self._tokens = tokens
        self._users = users

    def issue(self, user: User, client: Optional[ClientInfo] = None) -> AuthResult:
        """Mint an access/refresh pair and record the refresh token's hash."""
        client = client or ClientInfo()
        access = self._signer.sign_access(user.id, str(user.role))
        refresh, expires_at = self._signer.sign_refresh(user.id)
        self._tokens.record(user.id, hash_token(refresh), expires_at, client.user_agent, client.ip)
        return AuthResult(
            user=user,
            access_token=access,
            refresh_token=refresh,
            refresh_expires_at=expires_at,
            expires_in=int(self._signer.access_ttl.total_seconds()),
        )

    def refresh(self, raw_token: str, client: Optional[ClientInfo] = None) -> AuthResult:
        claims = self._signer.verify_refresh(raw_token)

        user = self._users.find_by_id(claims.get("sub"))
        if user is None or not user.is_active:
            raise InvalidToken("Invalid refresh token")

        if not self._tokens.consume(user.id, hash_token(raw_token)):
            revoked = self._tokens.revoke_all(user.id)
            logger.warning(
                "Refresh token reuse for user %s; revoked %d session(s)", user.id, revoked
            )
            raise PossibleTokenReuse()

        return self.issue(user, client)

    def logout(self, user: User, raw_token: Optional[str]) -> bool:
        """Revoke the presented refresh token if it is valid and belongs to `user`."""
        if not raw_token:
            return False
        try:
            claims = self._signer.verify_refresh(raw_token)
        except InvalidToken:
            return False
        if claims.get("sub") != user.id:
            return False
        return self._tokens.revoke(user.id, hash_token(raw_token))
