"""
수정 요청 API 라우터
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.user import User
from plottwist.schemas.collaboration import EditRequestResponse
from plottwist.services import edit_request_service
from plottwist.services.notification_service import NotificationRelay, get_notification_relay

router = APIRouter()


@router.get("", response_model=List[EditRequestResponse])
async def get_my_edit_requests(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내가 올린 수정 요청"""
    return await edit_request_service.list_for_requester(db, current_user)


@router.get("/pending", response_model=List[EditRequestResponse])
async def get_pending_edit_requests(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내 스토리에 들어온 대기 중 수정 요청"""
    return await edit_request_service.list_pending_for_author(db, current_user)


@router.post("/{request_id}/approve", response_model=EditRequestResponse)
async def approve_edit_request(
    request_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    return await edit_request_service.approve_edit_request(db, request_id, current_user, relay)


@router.post("/{request_id}/deny", response_model=EditRequestResponse)
async def deny_edit_request(
    request_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    return await edit_request_service.deny_edit_request(db, request_id, current_user, relay)
