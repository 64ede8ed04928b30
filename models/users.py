from core.database import Base
from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

class User(Base, CreatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    one_time_tokens = relationship("OneTimeToken", back_populates="user", passive_deletes=True)
    sessions = relationship("UserSession", back_populates="user", passive_deletes=True)

    email = Column(String, unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
