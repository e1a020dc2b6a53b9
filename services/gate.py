"""
Authorization gate: turns an `Authorization: Bearer <token>` header into a
live, active user, and checks roles and capabilities for that user.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from models.roles import permissions_for
from models.user import User
from utils.exceptions import Forbidden, InvalidToken, Unauthorized


class AuthorizationGate:
    def __init__(self, signer, users):
        self._signer = signer
        self._users = users

    @staticmethod
    def extract_bearer(header: str | None) -> str:
        if not header:
            raise Unauthorized("Missing Authorization header")
        scheme, _, token = header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            raise Unauthorized("Missing or invalid Authorization header")
        return token

    def authenticate(self, header: str | None) -> Tuple[User, Dict[str, Any]]:
        token = self.extract_bearer(header)
        try:
            claims = self._signer.verify_access(token)
        except InvalidToken as exc:
            raise Unauthorized(exc.message)

        user = self._users.find_by_id(claims.get("sub"))
        if user is None or not user.is_active:
            raise Unauthorized("User not found")
        return user, claims

    @staticmethod
    def check_role(user: User, allowed: Iterable[str]) -> None:
        """Role comes from the stored user, so a demotion takes effect before the token expires."""
        if str(user.role) not in {str(r) for r in allowed}:
            raise Forbidden("Forbidden - insufficient role")

    @staticmethod
    def check_permissions(user: User, required: Iterable[str]) -> None:
        missing = set(required) - permissions_for(user.role)
        if missing:
            raise Forbidden("Forbidden - missing permission")
