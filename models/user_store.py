"""
User persistence used by the auth services: unique-email lookup, fetch by id,
create and save, all through the shared DBStorage.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func

from models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower() if isinstance(email, str) else email


class UserRepository:
    def __init__(self, storage):
        self._storage = storage

    def find_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup; emails are also stored lower-cased."""
        if not email:
            return None
        session = self._storage.get_session()
        return session.query(User).filter(func.lower(User.email) == normalize_email(email)).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self._storage.get(User, user_id)

    def email_exists(self, email: str) -> bool:
        session = self._storage.get_session()
        q = session.query(User).filter(func.lower(User.email) == normalize_email(email))
        return session.query(q.exists()).scalar()

    def create(self, **fields) -> User:
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        user = User(**fields)
        self._storage.new(user)
        self._storage.save()
        return user

    def save(self, user: User) -> User:
        self._storage.new(user)
        self._storage.save()
        return user

    def rollback(self):
        self._storage.rollback()

    def list(self, page: int, limit: int, active: Optional[bool] = None) -> Tuple[List[User], int]:
        session = self._storage.get_session()
        query = session.query(User)
        if active is not None:
            query = query.filter(User.is_active.is_(active))
        total = query.count()
        rows = query.order_by(User.name.asc()).offset((page - 1) * limit).limit(limit).all()
        return rows, total
