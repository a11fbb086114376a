"""
초대/참여 요청/수정 요청 스키마
"""

from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Optional, List, Literal
from datetime import datetime
import uuid


class InviteRequest(BaseModel):
    """초대 요청: 여러 명(invites) 또는 한 명(usernameOrEmail)"""
    invites: Optional[List[str]] = Field(None, min_length=1, max_length=20)
    username_or_email: Optional[str] = Field(None, alias="usernameOrEmail", min_length=1, max_length=255)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _require_target(self):
        if not self.invites and not self.username_or_email:
            raise ValueError("invites 또는 usernameOrEmail 중 하나는 필요합니다.")
        return self

    def targets(self) -> list[str]:
        if self.invites:
            return [t.strip() for t in self.invites if t and t.strip()]
        return [self.username_or_email.strip()]

    @property
    def is_batch(self) -> bool:
        return bool(self.invites)


class InvitationResponse(BaseModel):
    """초대 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    inviter_id: uuid.UUID
    invitee_id: Optional[uuid.UUID] = None
    invitee_email: Optional[str] = None
    status: str
    expires_at: datetime
    responded_at: Optional[datetime] = None
    created_at: datetime
    story_title: Optional[str] = None
    inviter_username: Optional[str] = None

    @classmethod
    def from_invitation(cls, invitation) -> "InvitationResponse":
        """스토리/초대자 관계가 로드된 초대 행으로 응답 생성"""
        response = cls.model_validate(invitation)
        response.story_title = invitation.story.title if invitation.story is not None else None
        response.inviter_username = invitation.inviter.username if invitation.inviter is not None else None
        return response


class InviteResult(BaseModel):
    """초대 대상별 처리 결과"""
    target: str
    status: Literal["invited", "already_participant", "already_invited", "not_found", "self"]
    invitation: Optional[InvitationResponse] = None


class InviteBatchResponse(BaseModel):
    results: List[InviteResult]


class InviteStatusItem(BaseModel):
    """스토리별 초대 현황"""
    id: uuid.UUID
    invitee_id: Optional[uuid.UUID] = None
    invitee_email: Optional[str] = None
    invitee_username: Optional[str] = None
    status: str
    created_at: datetime


class JoinRequestCreate(BaseModel):
    message: Optional[str] = Field(None, max_length=1000)


class JoinRequestResponse(BaseModel):
    """참여 요청 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    requester_id: uuid.UUID
    author_id: uuid.UUID
    status: str
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    story_title: Optional[str] = None
    requester_username: Optional[str] = None

    @classmethod
    def from_join_request(cls, join_request) -> "JoinRequestResponse":
        response = cls.model_validate(join_request)
        response.story_title = join_request.story.title if join_request.story is not None else None
        response.requester_username = (
            join_request.requester.username if join_request.requester is not None else None
        )
        return response


class EditRequestCreate(BaseModel):
    """수정 요청 생성

    edit_type=segment 이면 segment_id와 proposed_content가 필요하고,
    edit_type=story 이면 proposed_title/description/genre 중 하나 이상이 필요하다.
    """
    edit_type: Literal["segment", "story"]
    segment_id: Optional[uuid.UUID] = None
    proposed_content: Optional[str] = Field(None, min_length=1, max_length=5000)
    proposed_title: Optional[str] = Field(None, min_length=1, max_length=200)
    proposed_description: Optional[str] = Field(None, min_length=1, max_length=5000)
    proposed_genre: Optional[str] = Field(None, min_length=1, max_length=50)
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _check_payload(self):
        if self.edit_type == "segment":
            if self.segment_id is None or not self.proposed_content:
                raise ValueError("세그먼트 수정에는 segment_id와 proposed_content가 필요합니다.")
        elif not (self.proposed_title or self.proposed_description or self.proposed_genre):
            raise ValueError("스토리 수정에는 변경할 항목이 하나 이상 필요합니다.")
        return self


class EditRequestResponse(BaseModel):
    """수정 요청 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    segment_id: Optional[uuid.UUID] = None
    requester_id: uuid.UUID
    author_id: uuid.UUID
    edit_type: str
    original_content: str
    proposed_content: str
    proposed_title: Optional[str] = None
    proposed_description: Optional[str] = None
    proposed_genre: Optional[str] = None
    reason: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
