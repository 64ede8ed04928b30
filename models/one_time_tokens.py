from core.database import Base
from sqlalchemy import Column, Boolean, DateTime, String, Integer, ForeignKey, Index, false
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

class OneTimeToken(Base, CreatedAtMixin):
    """
    Single-use login tokens.

    Only the digest of the raw token is stored and it is the primary key.
    ``used`` and ``used_at`` are written together by one conditional UPDATE
    in TokenService.redeem; ``expires_at`` is never updated after insert.
    """
    __tablename__ = "one_time_tokens"

    #pk
    token_hash = Column(String(64), primary_key=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    #relationships
    user = relationship("User", back_populates="one_time_tokens")

    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used = Column(Boolean, default=False, server_default=false(), nullable=False)

    __table_args__ = (
        Index("idx_one_time_tokens_user_id", "user_id"),
        Index("idx_one_time_tokens_expires_at", "expires_at"),
        Index("idx_one_time_tokens_used", "used"),
    )
