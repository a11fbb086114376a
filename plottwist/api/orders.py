"""
인쇄 주문 조회 API 라우터
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.user import User
from plottwist.schemas.media import PrintOrderResponse
from plottwist.services import media_service

router = APIRouter()


@router.get("", response_model=List[PrintOrderResponse])
async def get_my_orders(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내 인쇄 주문 목록"""
    return await media_service.list_orders_for_user(db, current_user)
