"""
사용자 관련 Pydantic 스키마
"""

from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, Literal
from datetime import datetime
import uuid


class UserBase(BaseModel):
    """사용자 기본 스키마"""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30)


class UserCreate(UserBase):
    """사용자 생성 스키마"""
    password: str = Field(..., min_length=6, max_length=100)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserLogin(BaseModel):
    """사용자 로그인 스키마"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    """프로필 업데이트 스키마"""
    username: Optional[str] = Field(None, min_length=3, max_length=30)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=1000)


class UserResponse(UserBase):
    """사용자 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    is_verified: bool
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    """다른 응답에 포함되는 공개 사용자 정보"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UserSettingsResponse(BaseModel):
    """사용자 설정 응답"""
    model_config = ConfigDict(from_attributes=True)

    turn_notifications: bool
    invitation_notifications: bool
    completion_notifications: bool
    font_size: int
    editor_height: int
    theme: str


class UserSettingsUpdate(BaseModel):
    """사용자 설정 부분 업데이트"""
    turn_notifications: Optional[bool] = None
    invitation_notifications: Optional[bool] = None
    completion_notifications: Optional[bool] = None
    font_size: Optional[int] = Field(None, ge=10, le=32)
    editor_height: Optional[int] = Field(None, ge=100, le=1000)
    theme: Optional[Literal['light', 'dark', 'system']] = None
