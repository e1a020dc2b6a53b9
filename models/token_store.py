"""
Refresh token store.

Each user owns a bounded list of RefreshToken rows (oldest evicted beyond
`cap`). Only SHA-256 hashes are stored. `consume` is the rotation primitive:
a single conditional DELETE whose row count says whether this caller won the
token. Mutations for one user are also serialized by an in-process lock so the
single-use guarantee holds on backends that do not serialize writers well
(SQLite).
"""
from __future__ import annotations

import threading
import weakref
from datetime import datetime
from typing import Optional

from models.refresh_token import RefreshToken
from utils.security import Clock, utcnow

DEFAULT_CAP = 10


class RefreshTokenStore:
    def __init__(self, storage, cap: int = DEFAULT_CAP, clock: Clock = utcnow):
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self._storage = storage
        self.cap = cap
        self._clock = clock
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    def _query(self, user_id: str):
        session = self._storage.get_session()
        return session.query(RefreshToken).filter(RefreshToken.user_id == user_id)

    def record(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> RefreshToken:
        """Append a record, drop the user's expired ones and evict the oldest beyond the cap."""
        with self._lock_for(user_id):
            now = self._clock()
            record = RefreshToken(
                user_id=user_id,
                token_hash=token_hash,
                issued_at=now,
                expires_at=expires_at,
                user_agent=user_agent[:255] if user_agent else None,
                ip=ip,
            )
            self._storage.new(record)
            self._storage.get_session().flush()

            self._query(user_id).filter(RefreshToken.expires_at <= now).delete(synchronize_session=False)
            # the new record always survives; issued_at can tie within one clock tick
            overflow = [
                row.id
                for row in self._query(user_id)
                .filter(RefreshToken.id != record.id)
                .with_entities(RefreshToken.id)
                .order_by(RefreshToken.issued_at.desc(), RefreshToken.id.desc())
                .offset(self.cap - 1)
                .all()
            ]
            if overflow:
                self._query(user_id).filter(RefreshToken.id.in_(overflow)).delete(synchronize_session=False)
            self._storage.save()
            return record

    def find(self, user_id: str, token_hash: str) -> Optional[RefreshToken]:
        """Live record for this hash, or None (expired records count as absent)."""
        return (
            self._query(user_id)
            .filter(RefreshToken.token_hash == token_hash, RefreshToken.expires_at > self._clock())
            .first()
        )

    def consume(self, user_id: str, token_hash: str) -> bool:
        """Remove the live record if present; True only for the caller that removed it."""
        with self._lock_for(user_id):
            removed = (
                self._query(user_id)
                .filter(RefreshToken.token_hash == token_hash, RefreshToken.expires_at > self._clock())
                .delete(synchronize_session=False)
            )
            self._storage.save()
            return removed == 1

    def revoke(self, user_id: str, token_hash: str) -> bool:
        with self._lock_for(user_id):
            removed = (
                self._query(user_id)
                .filter(RefreshToken.token_hash == token_hash)
                .delete(synchronize_session=False)
            )
            self._storage.save()
            return removed > 0

    def revoke_all(self, user_id: str) -> int:
        with self._lock_for(user_id):
            removed = self._query(user_id).delete(synchronize_session=False)
            self._storage.save()
            return removed

    def purge_expired(self, user_id: str) -> int:
        with self._lock_for(user_id):
            removed = (
                self._query(user_id)
                .filter(RefreshToken.expires_at <= self._clock())
                .delete(synchronize_session=False)
            )
            self._storage.save()
            return removed

    def count(self, user_id: str) -> int:
        return self._query(user_id).count()
