"""
스토리, 참여자, 세그먼트, 턴 포인터 모델
"""

from sqlalchemy import (
    Column, String, Text, Boolean, Integer, DateTime, ForeignKey, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
import uuid

from plottwist.core.database import Base, UUID


PARTICIPANT_ROLE_AUTHOR = "author"
PARTICIPANT_ROLE_PARTICIPANT = "participant"


class Story(Base):
    """스토리 모델"""
    __tablename__ = "stories"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    creator_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    genre = Column(String(50), nullable=False)
    word_limit = Column(Integer, nullable=False)
    character_limit = Column(Integer, nullable=False, default=0)  # 0이면 글자 수 제한 없음
    max_segments = Column(Integer, nullable=False, default=30)
    is_public = Column(Boolean, nullable=False, default=True, index=True)
    is_complete = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 관계 설정
    creator = relationship("User", back_populates="stories")
    participants = relationship(
        "StoryParticipant",
        back_populates="story",
        order_by="StoryParticipant.join_order",
    )
    segments = relationship("StorySegment", back_populates="story", order_by="StorySegment.turn")
    turn = relationship("StoryTurn", back_populates="story", uselist=False)

    def __repr__(self):
        return f"<Story(id={self.id}, title={self.title}, creator_id={self.creator_id})>"


class StoryParticipant(Base):
    """스토리 참여자 모델"""
    __tablename__ = "story_participants"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=PARTICIPANT_ROLE_PARTICIPANT)
    # 스토리 내 참여 순서 (턴 순환 기준)
    join_order = Column(Integer, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    # 제약 조건 - 사용자는 스토리당 한 번만 참여 가능
    __table_args__ = (
        UniqueConstraint('story_id', 'user_id', name='uq_story_participant_story_user'),
        UniqueConstraint('story_id', 'join_order', name='uq_story_participant_story_order'),
    )

    story = relationship("Story", back_populates="participants")
    user = relationship("User", back_populates="participations")

    def __repr__(self):
        return f"<StoryParticipant(story_id={self.story_id}, user_id={self.user_id}, role={self.role})>"


class StorySegment(Base):
    """스토리 세그먼트 (한 턴의 기여) 모델"""
    __tablename__ = "story_segments"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    turn = Column(Integer, nullable=False)
    word_count = Column(Integer, nullable=False)
    character_count = Column(Integer, nullable=False, default=0)
    is_edited = Column(Boolean, nullable=False, default=False)
    last_edited_at = Column(DateTime(timezone=True))
    edited_by = Column(UUID(), ForeignKey("users.id"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('story_id', 'turn', name='uq_story_segment_story_turn'),
    )

    story = relationship("Story", back_populates="segments")
    user = relationship("User", foreign_keys=[user_id])

    def __repr__(self):
        return f"<StorySegment(story_id={self.story_id}, turn={self.turn}, user_id={self.user_id})>"


class StoryTurn(Base):
    """턴 포인터 - 스토리당 한 행"""
    __tablename__ = "story_turns"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    story_id = Column(UUID(), ForeignKey("stories.id"), unique=True, nullable=False, index=True)
    current_turn = Column(Integer, nullable=False)
    current_user_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    story = relationship("Story", back_populates="turn")
    current_user = relationship("User")

    def __repr__(self):
        return f"<StoryTurn(story_id={self.story_id}, turn={self.current_turn}, user={self.current_user_id})>"
