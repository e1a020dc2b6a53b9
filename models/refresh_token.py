"""
RefreshToken model: the server-side shadow of one issued refresh token.
Fields:
- token_hash: SHA-256 of the raw token (the raw token is never stored)
- user_id (String(36)) - FK to users.id
- issued_at, expires_at
- user_agent, ip: client metadata kept for audit
"""
from sqlalchemy import Column, DateTime, ForeignKey, Index, String, UniqueConstraint

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        UniqueConstraint("user_id", "token_hash", name="uq_refresh_tokens_user_hash"),
        Index("ix_refresh_tokens_user_issued", "user_id", "issued_at"),
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    user_agent = Column(String(255), nullable=True)
    ip = Column(String(64), nullable=True)

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} expires_at={self.expires_at}>"
