"""
참여 요청 처리 API 라우터 (스토리 작성자용)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.user import User
from plottwist.schemas.collaboration import JoinRequestResponse
from plottwist.services import join_request_service
from plottwist.services.notification_service import NotificationRelay, get_notification_relay

router = APIRouter()


@router.get("/pending", response_model=List[JoinRequestResponse])
async def get_pending_join_requests(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내 스토리에 들어온 대기 중 참여 요청"""
    requests = await join_request_service.list_pending_for_author(db, current_user)
    return [JoinRequestResponse.from_join_request(r) for r in requests]


@router.post("/{request_id}/approve", response_model=JoinRequestResponse)
async def approve_join_request(
    request_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """참여 요청 승인 → 참여자 추가"""
    join_request = await join_request_service.approve_join_request(db, request_id, current_user, relay)
    return JoinRequestResponse.from_join_request(join_request)


@router.post("/{request_id}/deny", response_model=JoinRequestResponse)
async def deny_join_request(
    request_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    join_request = await join_request_service.deny_join_request(db, request_id, current_user, relay)
    return JoinRequestResponse.from_join_request(join_request)
