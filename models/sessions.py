from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from models.mixins import CreatedAtMixin

class UserSession(Base, CreatedAtMixin):
    """Login session created after a one-time token is redeemed."""
    __tablename__ = "sessions"

    #pk
    session_id = Column(String(128), primary_key=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    #relationships
    user = relationship("User", back_populates="sessions")

    expires_at = Column(DateTime(timezone=True), nullable=False)
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
        Index("idx_sessions_expires_at", "expires_at"),
        Index("idx_sessions_last_seen_at", "last_seen_at"),
    )
