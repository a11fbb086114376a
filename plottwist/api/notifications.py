"""
실시간 알림 SSE 라우터

EventSource는 헤더를 보낼 수 없으므로 액세스 토큰을 쿼리 파라미터로 받는다.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from plottwist.core.database import get_db
from plottwist.core.security import get_user_from_token
from plottwist.services.notification_service import NotificationRelay, get_notification_relay

router = APIRouter()


@router.get("/stream")
async def notification_stream(
    request: Request,
    token: str = Query(...),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """로그인 사용자의 알림 채널 구독"""
    user = await get_user_from_token(db, token)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="인증 정보가 유효하지 않습니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = user.id

    async def event_generator():
        async for event in relay.subscribe(user_id):
            if await request.is_disconnected():
                break
            yield event

    return EventSourceResponse(event_generator())
