"""
초대 응답 API 라우터
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.user import User
from plottwist.schemas.collaboration import InvitationResponse
from plottwist.services import invitation_service

router = APIRouter()


@router.get("/pending", response_model=List[InvitationResponse])
async def get_pending_invitations(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내가 받은 대기 중 초대"""
    invitations = await invitation_service.list_pending_for_user(db, current_user)
    return [InvitationResponse.from_invitation(inv) for inv in invitations]


@router.post("/{invitation_id}/accept", response_model=InvitationResponse)
async def accept_invitation(
    invitation_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """초대 수락 (두 번째 수락은 409, 만료 시 410)"""
    invitation = await invitation_service.accept_invitation(db, invitation_id, current_user)
    return InvitationResponse.from_invitation(invitation)


@router.post("/{invitation_id}/decline", response_model=InvitationResponse)
async def decline_invitation(
    invitation_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    invitation = await invitation_service.decline_invitation(db, invitation_id, current_user)
    return InvitationResponse.from_invitation(invitation)
