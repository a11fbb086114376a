"""
사용자 모델
"""

from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
import uuid

from plottwist.core.database import Base, UUID


class User(Base):
    """사용자 모델"""
    __tablename__ = "users"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(30), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)
    # 프로필 이미지 및 소개
    avatar_url = Column(String(500))
    bio = Column(String(1000))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 관계 설정
    stories = relationship("Story", back_populates="creator")
    participations = relationship("StoryParticipant", back_populates="user")
    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, username={self.username})>"


class UserSettings(Base):
    """사용자 알림/에디터 설정"""
    __tablename__ = "user_settings"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.id"), unique=True, nullable=False, index=True)
    turn_notifications = Column(Boolean, nullable=False, default=True)
    invitation_notifications = Column(Boolean, nullable=False, default=True)
    completion_notifications = Column(Boolean, nullable=False, default=True)
    font_size = Column(Integer, nullable=False, default=16)
    editor_height = Column(Integer, nullable=False, default=200)
    theme = Column(String(20), nullable=False, default="light")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="settings")

    def __repr__(self):
        return f"<UserSettings(user_id={self.user_id}, theme={self.theme})>"
