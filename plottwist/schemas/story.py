"""
스토리 관련 Pydantic 스키마
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
import uuid

from plottwist.schemas.user import UserSummary


class StoryBase(BaseModel):
    """스토리 기본 스키마"""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    genre: str = Field(..., min_length=1, max_length=50)
    word_limit: int = Field(..., ge=50, le=500)
    character_limit: int = Field(0, ge=0, le=2000)
    max_segments: int = Field(30, ge=5, le=100)
    is_public: bool = True


class StoryCreate(StoryBase):
    """스토리 생성 스키마"""


class StoryUpdate(BaseModel):
    """스토리 업데이트 스키마 (작성자 전용)"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    genre: Optional[str] = Field(None, min_length=1, max_length=50)
    word_limit: Optional[int] = Field(None, ge=50, le=500)
    character_limit: Optional[int] = Field(None, ge=0, le=2000)
    max_segments: Optional[int] = Field(None, ge=5, le=100)
    is_public: Optional[bool] = None


class StoryResponse(StoryBase):
    """스토리 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    creator_id: uuid.UUID
    is_complete: bool
    created_at: datetime
    updated_at: datetime


class StoryWithTurn(StoryResponse):
    """대시보드용: 현재 턴 정보 포함"""
    current_turn: Optional[int] = None
    current_user_id: Optional[uuid.UUID] = None


class StoryListResponse(BaseModel):
    """스토리 목록 컨테이너 응답"""
    stories: List[StoryResponse]
    total: int
    skip: int
    limit: int


class SegmentCreate(BaseModel):
    """세그먼트 작성 요청

    word_count/character_count는 클라이언트 표시용이며, 서버가 본문으로 다시 계산한다.
    """
    content: str = Field(..., min_length=1, max_length=5000)
    word_count: Optional[int] = Field(None, ge=1)
    character_count: Optional[int] = Field(None, ge=1)


class SegmentResponse(BaseModel):
    """세그먼트 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    turn: int
    word_count: int
    character_count: int
    is_edited: bool = False
    last_edited_at: Optional[datetime] = None
    edited_by: Optional[uuid.UUID] = None
    created_at: datetime
    user: Optional[UserSummary] = None


class ParticipantResponse(BaseModel):
    """참여자 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    story_id: uuid.UUID
    user_id: uuid.UUID
    role: str
    join_order: int
    joined_at: datetime
    user: Optional[UserSummary] = None


class TurnResponse(BaseModel):
    """턴 포인터 응답"""
    model_config = ConfigDict(from_attributes=True)

    story_id: uuid.UUID
    current_turn: int
    current_user_id: uuid.UUID
    updated_at: Optional[datetime] = None
    is_complete: bool = False
    current_user: Optional[UserSummary] = None
