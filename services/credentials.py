"""
Credential service: registration, login and password/profile changes.

Every login failure (unknown email, deactivated account, wrong password)
surfaces as the same InvalidCredentials so callers cannot enumerate accounts.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.schemas.user import (
    ChangePasswordSchema,
    LoginSchema,
    ProfileUpdateSchema,
    RegisterSchema,
)
from models.user import User
from services.sessions import AuthResult, ClientInfo
from utils.exceptions import DuplicateEmail, InvalidCredentials

logger = logging.getLogger(__name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
change_password_schema = ChangePasswordSchema()
profile_update_schema = ProfileUpdateSchema()


def _present(**fields) -> dict:
    return {k: v for k, v in fields.items() if v is not None}


class CredentialService:
    def __init__(self, users, hasher, sessions, tokens, clock):
        self._users = users
        self._hasher = hasher
        self._sessions = sessions
        self._tokens = tokens
        self._clock = clock

    def register(
        self,
        name: str,
        email: str,
        password: str,
        phone: str,
        branch: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> AuthResult:
        data = register_schema.load(
            _present(name=name, email=email, password=password, phone=phone, branch=branch)
        )
        if self._users.email_exists(data["email"]):
            raise DuplicateEmail()

        try:
            user = self._users.create(
                name=data["name"],
                email=data["email"],
                password_hash=self._hasher.hash(data["password"]),
                phone=data["phone"],
                branch=data.get("branch"),
            )
        except IntegrityError:
            # lost a race against a concurrent registration of the same email
            raise DuplicateEmail()

        logger.info("Registered user %s", user.id)
        return self._sessions.issue(user, client)

    def login(self, email: str, password: str, client: Optional[ClientInfo] = None) -> AuthResult:
        data = login_schema.load(_present(email=email, password=password))

        user = self._users.find_by_email(data["email"])
        if user is None:
            self._hasher.dummy_verify(data["password"])
            raise InvalidCredentials()
        if not self._hasher.verify(data["password"], user.password_hash) or not user.is_active:
            raise InvalidCredentials()

        self._record_login(user, data["password"])
        logger.info("User %s logged in", user.id)
        return self._sessions.issue(user, client)

    def _record_login(self, user: User, password: str) -> None:
        """Bump login stats and upgrade an outdated hash; a failure here must not fail the login."""
        if self._hasher.needs_rehash(user.password_hash):
            user.password_hash = self._hasher.hash(password)
        user.login_count = (user.login_count or 0) + 1
        user.last_login_at = self._clock()
        try:
            self._users.save(user)
        except SQLAlchemyError:
            self._users.rollback()
            logger.warning("Could not record login stats for user %s", user.id, exc_info=True)

    def change_password(self, user: User, current_password: str, new_password: str) -> int:
        """Replace the password hash and revoke every refresh token; returns how many were revoked."""
        data = change_password_schema.load(
            _present(current_password=current_password, new_password=new_password)
        )
        if not self._hasher.verify(data["current_password"], user.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        user.password_hash = self._hasher.hash(data["new_password"])
        self._users.save(user)
        revoked = self._tokens.revoke_all(user.id)
        logger.info("User %s changed password; revoked %d session(s)", user.id, revoked)
        return revoked

    def update_profile(self, user: User, payload: dict) -> User:
        data = profile_update_schema.load(payload or {})
        for key, value in data.items():
            setattr(user, key, value)
        return self._users.save(user)
