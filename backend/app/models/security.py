"""Login session persistence model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.core.database import Base


class UserSession(Base):
    """One row per successful login; holds token digests, never raw tokens."""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    access_token_hash = Column(String(64), nullable=False, index=True)
    access_token_expires_at = Column(DateTime(timezone=True), nullable=False)
    refresh_token_hash = Column(String(64), nullable=False, unique=True, index=True)
    refresh_token_expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_refreshed_at = Column(DateTime(timezone=True), nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("idx_user_sessions_user_refresh_exp", "user_id", "refresh_token_expires_at"),
    )

    def __repr__(self):
        return f"<UserSession(id={self.id}, user_id={self.user_id}, revoked={self.is_revoked})>"
