"""
협업 요청 모델 (초대, 참여 요청, 수정 요청)
"""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, func, text
from sqlalchemy.orm import relationship
import uuid

from plottwist.core.database import Base, UUID


INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_DECLINED = "declined"

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_DENIED = "denied"

EDIT_TYPE_SEGMENT = "segment"
EDIT_TYPE_STORY = "story"


class StoryInvitation(Base):
    """스토리 초대 모델"""
    __tablename__ = "story_invitations"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    inviter_id = Column(UUID(), ForeignKey("users.id"), nullable=False)
    # 미가입 이메일 초대는 invitee_id 없이 invitee_email만 가진다
    invitee_id = Column(UUID(), ForeignKey("users.id"), nullable=True, index=True)
    invitee_email = Column(String(255), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=INVITATION_PENDING, index=True)
    token = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    responded_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # 가입 사용자에게는 스토리당 대기 중 초대가 하나만 (이메일 초대는 invitee_id가 NULL)
    __table_args__ = (
        Index(
            "uq_story_invitation_pending_invitee",
            "story_id",
            "invitee_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    story = relationship("Story")
    inviter = relationship("User", foreign_keys=[inviter_id])
    invitee = relationship("User", foreign_keys=[invitee_id])

    def __repr__(self):
        return f"<StoryInvitation(story_id={self.story_id}, invitee_id={self.invitee_id}, status={self.status})>"


class StoryJoinRequest(Base):
    """스토리 참여 요청 모델"""
    __tablename__ = "story_join_requests"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    requester_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    author_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=REQUEST_PENDING, index=True)
    message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # 스토리당 대기 중 참여 요청은 사용자별 하나
    __table_args__ = (
        Index(
            "uq_story_join_request_pending_requester",
            "story_id",
            "requester_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    story = relationship("Story")
    requester = relationship("User", foreign_keys=[requester_id])

    def __repr__(self):
        return f"<StoryJoinRequest(story_id={self.story_id}, requester_id={self.requester_id}, status={self.status})>"


class StoryEditRequest(Base):
    """세그먼트/스토리 정보 수정 요청 모델"""
    __tablename__ = "story_edit_requests"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4, index=True)
    story_id = Column(UUID(), ForeignKey("stories.id"), nullable=False, index=True)
    segment_id = Column(UUID(), ForeignKey("story_segments.id"), nullable=True)
    requester_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    author_id = Column(UUID(), ForeignKey("users.id"), nullable=False, index=True)
    edit_type = Column(String(20), nullable=False)  # segment | story
    original_content = Column(Text, nullable=False)
    proposed_content = Column(Text, nullable=False)
    proposed_title = Column(String(200))
    proposed_description = Column(Text)
    proposed_genre = Column(String(50))
    reason = Column(Text)
    status = Column(String(20), nullable=False, default=REQUEST_PENDING, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    story = relationship("Story")
    segment = relationship("StorySegment")

    def __repr__(self):
        return f"<StoryEditRequest(story_id={self.story_id}, edit_type={self.edit_type}, status={self.status})>"
