"""
스토리 CRUD 및 대시보드 조회 서비스
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_
from sqlalchemy.orm import selectinload
from typing import List, Optional, Tuple
import logging
import uuid

from plottwist.core.exceptions import NotFoundError, ForbiddenError, StoryCompleteError, ValidationFailedError
from plottwist.models.story import (
    Story,
    StoryParticipant,
    StorySegment,
    StoryTurn,
    PARTICIPANT_ROLE_AUTHOR,
)
from plottwist.models.collaboration import StoryInvitation, StoryJoinRequest, StoryEditRequest
from plottwist.models.media import StoryImage, PrintOrder
from plottwist.models.user import User
from plottwist.schemas.story import StoryCreate, StoryUpdate
from plottwist.services import participant_service
from plottwist.services.notification_service import (
    NotificationRelay,
    EVENT_STORY_COMPLETED,
    EVENT_STORY_DELETED,
    notify_many_if_enabled,
    story_payload,
)


logger = logging.getLogger(__name__)


async def create_story(
    db: AsyncSession,
    creator_id: uuid.UUID,
    story_data: StoryCreate
) -> Story:
    """스토리 생성

    스토리, 작성자 참여자 행, 첫 턴 포인터를 한 트랜잭션으로 만든다.
    """
    story = Story(
        creator_id=creator_id,
        **story_data.model_dump()
    )
    db.add(story)
    await db.flush()

    db.add(StoryParticipant(
        story_id=story.id,
        user_id=creator_id,
        role=PARTICIPANT_ROLE_AUTHOR,
        join_order=1,
    ))
    db.add(StoryTurn(story_id=story.id, current_turn=1, current_user_id=creator_id))
    await db.commit()
    await db.refresh(story)

    logger.info("스토리 생성: story=%s creator=%s", story.id, creator_id)
    return story


async def get_story_by_id(db: AsyncSession, story_id: uuid.UUID) -> Optional[Story]:
    """ID로 스토리 조회"""
    result = await db.execute(
        select(Story)
        .options(selectinload(Story.turn))
        .where(Story.id == story_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_story_or_404(db: AsyncSession, story_id: uuid.UUID) -> Story:
    story = await get_story_by_id(db, story_id)
    if story is None:
        raise NotFoundError("스토리를 찾을 수 없습니다.")
    return story


async def can_view_story(db: AsyncSession, story: Story, user: Optional[User]) -> bool:
    """공개 스토리는 누구나, 비공개 스토리는 참여자만 조회 가능"""
    if story.is_public:
        return True
    if user is None:
        return False
    return await participant_service.is_participant(db, story.id, user.id)


async def get_viewable_story(db: AsyncSession, story_id: uuid.UUID, user: Optional[User]) -> Story:
    story = await get_story_or_404(db, story_id)
    if not await can_view_story(db, story, user):
        raise ForbiddenError("비공개 스토리입니다.")
    return story


def ensure_author(story: Story, user: User) -> None:
    if story.creator_id != user.id:
        raise ForbiddenError("스토리 작성자만 할 수 있습니다.")


async def list_public_stories(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    search: Optional[str] = None,
    genre: Optional[str] = None
) -> Tuple[List[Story], int]:
    """공개 스토리 목록 조회 (목록, 전체 개수)"""
    query = select(Story).where(Story.is_public == True)

    if search:
        query = query.where(
            or_(
                Story.title.ilike(f"%{search}%"),
                Story.description.ilike(f"%{search}%")
            )
        )

    if genre:
        query = query.where(Story.genre == genre)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(Story.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), int(total or 0)


def _participating(user_id: uuid.UUID):
    return (
        select(Story)
        .options(selectinload(Story.turn))
        .join(StoryParticipant, StoryParticipant.story_id == Story.id)
        .where(StoryParticipant.user_id == user_id)
        .execution_options(populate_existing=True)
    )


async def get_stories_for_user(db: AsyncSession, user_id: uuid.UUID) -> List[Story]:
    """내가 참여한 스토리 (최근 수정 순)"""
    result = await db.execute(_participating(user_id).order_by(Story.updated_at.desc()))
    return list(result.scalars().all())


async def get_my_turn_stories(db: AsyncSession, user_id: uuid.UUID) -> List[Story]:
    """지금 내 차례인 진행 중 스토리"""
    result = await db.execute(
        _participating(user_id)
        .join(StoryTurn, StoryTurn.story_id == Story.id)
        .where(StoryTurn.current_user_id == user_id)
        .where(Story.is_complete == False)
        .order_by(StoryTurn.updated_at.desc())
    )
    return list(result.scalars().all())


async def get_waiting_stories(db: AsyncSession, user_id: uuid.UUID) -> List[Story]:
    """다른 참여자 차례를 기다리는 진행 중 스토리"""
    result = await db.execute(
        _participating(user_id)
        .join(StoryTurn, StoryTurn.story_id == Story.id)
        .where(StoryTurn.current_user_id != user_id)
        .where(Story.is_complete == False)
        .order_by(StoryTurn.updated_at.desc())
    )
    return list(result.scalars().all())


async def announce_completion(db: AsyncSession, relay: Optional[NotificationRelay], story: Story) -> None:
    """완결 알림 (completion_notifications 설정을 켠 참여자에게)"""
    if relay is None:
        return
    participant_ids = await participant_service.list_participant_ids(db, story.id)
    await notify_many_if_enabled(
        db, relay, participant_ids, EVENT_STORY_COMPLETED, story_payload(story),
        setting_field="completion_notifications",
    )


async def update_story(
    db: AsyncSession,
    story: Story,
    user: User,
    story_data: StoryUpdate,
    relay: Optional[NotificationRelay] = None,
) -> Story:
    """스토리 정보 수정 (작성자 전용)

    완결은 되돌릴 수 없으므로 완결된 스토리의 max_segments는 바꿀 수 없다.
    max_segments를 작성된 세그먼트 수와 같게 줄이면 그 자리에서 완결된다.
    """
    ensure_author(story, user)
    update_data = story_data.model_dump(exclude_unset=True, exclude_none=True)

    completed = False
    new_max = update_data.get("max_segments")
    if new_max is not None and new_max != story.max_segments:
        if story.is_complete:
            raise StoryCompleteError("완결된 스토리의 최대 세그먼트 수는 변경할 수 없습니다.")
        segment_count = await db.scalar(
            select(func.count(StorySegment.id)).where(StorySegment.story_id == story.id)
        )
        if new_max < (segment_count or 0):
            raise ValidationFailedError("최대 세그먼트 수는 이미 작성된 세그먼트 수보다 작을 수 없습니다.")
        if new_max == segment_count:
            story.is_complete = True
            completed = True

    for field, value in update_data.items():
        setattr(story, field, value)
    await db.commit()
    await db.refresh(story)
    logger.info("스토리 수정: story=%s fields=%s", story.id, sorted(update_data))

    if completed:
        logger.info("최대 세그먼트 수 조정으로 스토리 완결: story=%s", story.id)
        await announce_completion(db, relay, story)
    return story


async def delete_story(
    db: AsyncSession,
    story: Story,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> None:
    """스토리 삭제 (작성자 전용, 하위 데이터 포함)"""
    ensure_author(story, user)
    story_id = story.id
    payload = story_payload(story)
    others = [
        uid for uid in await participant_service.list_participant_ids(db, story_id)
        if uid != user.id
    ]

    # 외래키 의존 순서대로 삭제
    for model in (
        StoryEditRequest,
        StoryJoinRequest,
        StoryInvitation,
        StoryImage,
        PrintOrder,
        StoryTurn,
        StorySegment,
        StoryParticipant,
    ):
        await db.execute(delete(model).where(model.story_id == story_id))
    await db.execute(delete(Story).where(Story.id == story_id))
    await db.commit()
    logger.info("스토리 삭제: story=%s by=%s", story_id, user.id)

    if relay is not None:
        await relay.publish_many(others, EVENT_STORY_DELETED, payload)
