from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from app.database.mysql import Base, PreciseDateTime


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    # 메시지가 전송될 때마다 갱신되어 최근 활동순 정렬에 사용
    updated_at = Column(PreciseDateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    # Relationships
    creator = relationship("User", back_populates="created_rooms")
    participants = relationship(
        "Participant",
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Participant.id",
    )
    messages = relationship(
        "Message",
        back_populates="room",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Room(id={self.id}, name={self.name}, creator_id={self.creator_id})>"
