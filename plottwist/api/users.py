"""
사용자 관련 API 라우터
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.user import User
from plottwist.schemas.user import (
    UserResponse,
    UserSummary,
    UserUpdate,
    UserSettingsResponse,
    UserSettingsUpdate,
)
from plottwist.services import user_service

router = APIRouter()


@router.get("/search", response_model=List[UserSummary])
async def search_users(
    q: str = Query(..., min_length=1, max_length=30),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """사용자명 자동완성 (초대 대상 검색)"""
    return await user_service.search_users(db, q, limit=limit, exclude_user_id=current_user.id)


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_active_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    profile_data: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """프로필 수정 (사용자명 중복 시 409)"""
    return await user_service.update_user_profile(db, current_user, profile_data)


@router.get("/settings", response_model=UserSettingsResponse)
async def get_settings(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.get_or_create_settings(db, current_user.id)


@router.put("/settings", response_model=UserSettingsResponse)
async def update_settings(
    settings_data: UserSettingsUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """알림/에디터 설정 수정"""
    return await user_service.update_settings(db, current_user.id, settings_data)
