"""
스토리 참여 요청 서비스

상태: pending → approved | denied (둘 다 종료 상태)
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import List, Optional
import logging
import uuid

from plottwist.core.exceptions import ConflictError, ForbiddenError, NotFoundError, StoryCompleteError
from plottwist.models.collaboration import (
    StoryJoinRequest,
    REQUEST_PENDING,
    REQUEST_APPROVED,
    REQUEST_DENIED,
)
from plottwist.models.user import User
from plottwist.services import participant_service, story_service
from plottwist.services.notification_service import (
    NotificationRelay,
    EVENT_JOIN_REQUEST,
    EVENT_JOIN_REQUEST_APPROVED,
    EVENT_JOIN_REQUEST_DENIED,
    story_payload,
)


logger = logging.getLogger(__name__)


async def get_join_request(db: AsyncSession, request_id: uuid.UUID) -> Optional[StoryJoinRequest]:
    result = await db.execute(
        select(StoryJoinRequest)
        .options(selectinload(StoryJoinRequest.story), selectinload(StoryJoinRequest.requester))
        .where(StoryJoinRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _has_pending_request(db: AsyncSession, story_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    existing = await db.execute(
        select(StoryJoinRequest.id).where(
            StoryJoinRequest.story_id == story_id,
            StoryJoinRequest.requester_id == user_id,
            StoryJoinRequest.status == REQUEST_PENDING,
        )
    )
    return existing.first() is not None


async def create_join_request(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    message: Optional[str] = None,
    relay: Optional[NotificationRelay] = None,
) -> StoryJoinRequest:
    """공개 스토리 참여 요청 생성"""
    story = await story_service.get_story_or_404(db, story_id)
    if not story.is_public:
        raise ForbiddenError("비공개 스토리는 초대로만 참여할 수 있습니다.")
    if story.is_complete:
        raise StoryCompleteError()
    if await participant_service.is_participant(db, story_id, user.id):
        raise ConflictError("이미 참여 중인 스토리입니다.")

    if await _has_pending_request(db, story_id, user.id):
        raise ConflictError("이미 대기 중인 참여 요청이 있습니다.")

    join_request = StoryJoinRequest(
        story_id=story_id,
        requester_id=user.id,
        author_id=story.creator_id,
        status=REQUEST_PENDING,
        message=message,
    )
    db.add(join_request)
    try:
        await db.commit()
    except IntegrityError:
        # 동시에 들어온 같은 요청은 부분 유니크 인덱스에서 걸린다
        await db.rollback()
        raise ConflictError("이미 대기 중인 참여 요청이 있습니다.")
    logger.info("참여 요청 생성: story=%s requester=%s", story_id, user.id)

    if relay is not None:
        await relay.publish(
            story.creator_id,
            EVENT_JOIN_REQUEST,
            story_payload(story, join_request_id=join_request.id, requester_username=user.username),
        )
    return await get_join_request(db, join_request.id)


async def _get_pending_for_author(db: AsyncSession, request_id: uuid.UUID, user: User) -> StoryJoinRequest:
    join_request = await get_join_request(db, request_id)
    if join_request is None:
        raise NotFoundError("참여 요청을 찾을 수 없습니다.")
    if join_request.author_id != user.id:
        raise ForbiddenError("스토리 작성자만 참여 요청을 처리할 수 있습니다.")
    if join_request.status != REQUEST_PENDING:
        raise ConflictError("이미 처리된 참여 요청입니다.")
    return join_request


async def approve_join_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> StoryJoinRequest:
    """참여 요청 승인: 참여자 행 생성과 상태 변경을 한 트랜잭션으로 처리"""
    join_request = await _get_pending_for_author(db, request_id, user)
    try:
        await participant_service.ensure_participant(db, join_request.story_id, join_request.requester_id)
        join_request.status = REQUEST_APPROVED
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("다른 참여 처리와 충돌했습니다. 다시 시도해주세요.")
    logger.info("참여 요청 승인: request=%s story=%s requester=%s",
                request_id, join_request.story_id, join_request.requester_id)

    if relay is not None:
        await relay.publish(
            join_request.requester_id,
            EVENT_JOIN_REQUEST_APPROVED,
            story_payload(join_request.story, join_request_id=join_request.id),
        )
    return await get_join_request(db, request_id)


async def deny_join_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> StoryJoinRequest:
    """참여 요청 거절"""
    join_request = await _get_pending_for_author(db, request_id, user)
    join_request.status = REQUEST_DENIED
    await db.commit()
    logger.info("참여 요청 거절: request=%s requester=%s", request_id, join_request.requester_id)

    if relay is not None:
        await relay.publish(
            join_request.requester_id,
            EVENT_JOIN_REQUEST_DENIED,
            story_payload(join_request.story, join_request_id=join_request.id),
        )
    return await get_join_request(db, request_id)


async def list_pending_for_author(db: AsyncSession, user: User) -> List[StoryJoinRequest]:
    """내 스토리에 들어온 대기 중 참여 요청"""
    result = await db.execute(
        select(StoryJoinRequest)
        .options(selectinload(StoryJoinRequest.story), selectinload(StoryJoinRequest.requester))
        .where(StoryJoinRequest.author_id == user.id)
        .where(StoryJoinRequest.status == REQUEST_PENDING)
        .order_by(StoryJoinRequest.created_at.desc())
    )
    return list(result.scalars().all())
