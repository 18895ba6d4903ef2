from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from app.database.mysql import Base, PreciseDateTime


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(255), nullable=True)
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen_at = Column(PreciseDateTime, nullable=True)  # 상태 변경 순서 비교 기준
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    created_rooms = relationship("Room", back_populates="creator")
    participations = relationship("Participant", back_populates="user")
    messages = relationship("Message", back_populates="user")

    @property
    def online_status(self) -> str:
        return "online" if self.is_online else "offline"

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, name={self.name})>"
