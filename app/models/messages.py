from datetime import datetime
from typing import Dict, List
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from app.database.mysql import Base, PreciseDateTime


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message = Column(Text, nullable=False, default="")
    attachment_path = Column(String(255), nullable=True)
    attachment_name = Column(String(255), nullable=True)
    attachment_size = Column(Integer, nullable=True)
    # {emoji: [user_id, ...]} - 전체 맵 단위로 교체 저장
    reactions = Column(JSON, nullable=False, default=dict)
    # 반응 맵 compare-and-swap 용 버전
    reactions_version = Column(Integer, nullable=False, default=0)
    is_edited = Column(Boolean, default=False, nullable=False)
    created_at = Column(PreciseDateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    room = relationship("Room", back_populates="messages")
    user = relationship("User", back_populates="messages")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_path)

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()

    def edit_content(self, new_content: str):
        self.message = new_content
        self.is_edited = True

    def __repr__(self):
        return f"<Message(id={self.id}, user_id={self.user_id}, room_id={self.room_id})>"


def apply_reaction(reactions: Dict[str, List[int]], emoji: str, user_id: int, add: bool) -> Dict[str, List[int]]:
    """반응 맵에 추가/제거를 적용한 새 맵을 반환 (원본은 변경하지 않음)

    추가는 이미 있으면 그대로, 제거는 없으면 그대로 두며
    사용자가 모두 빠진 이모지 키는 삭제합니다.
    """
    updated = {key: list(users) for key, users in (reactions or {}).items()}
    users = updated.get(emoji, [])

    if add:
        if user_id not in users:
            users.append(user_id)
        updated[emoji] = users
    elif emoji in updated:
        users = [uid for uid in users if uid != user_id]
        if users:
            updated[emoji] = users
        else:
            del updated[emoji]

    return updated
