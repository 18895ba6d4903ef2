import enum
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.mysql import Base


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# 참여자를 추가할 수 있는 역할 (모든 참여자)
ROLES_CAN_ADD = {Role.OWNER.value, Role.ADMIN.value, Role.MEMBER.value}
# 참여자를 내보낼 수 있는 역할
ROLES_CAN_REMOVE = {Role.OWNER.value, Role.ADMIN.value}


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_participants_room_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), default=Role.MEMBER.value, nullable=False)  # owner, admin, member
    joined_at = Column(DateTime, default=datetime.utcnow)
    last_read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    room = relationship("Room", back_populates="participants")
    user = relationship("User", back_populates="participations")

    @property
    def is_owner(self) -> bool:
        return self.role == Role.OWNER.value

    def __repr__(self):
        return f"<Participant(user_id={self.user_id}, room_id={self.room_id}, role={self.role})>"
