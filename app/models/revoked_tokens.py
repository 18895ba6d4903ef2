from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.database.mysql import Base


class RevokedToken(Base):
    """로그아웃된 액세스 토큰 (jti 기준 차단 목록)"""
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<RevokedToken(jti={self.jti}, user_id={self.user_id})>"
