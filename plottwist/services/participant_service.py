"""
스토리 참여자 관리
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import List, Optional, Sequence
import uuid

from plottwist.core.exceptions import NotFoundError
from plottwist.models.story import (
    StoryParticipant,
    StoryTurn,
    PARTICIPANT_ROLE_PARTICIPANT,
)


async def get_participant(db: AsyncSession, story_id: uuid.UUID, user_id: uuid.UUID) -> Optional[StoryParticipant]:
    result = await db.execute(
        select(StoryParticipant).where(
            StoryParticipant.story_id == story_id,
            StoryParticipant.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def is_participant(db: AsyncSession, story_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """참여 여부 확인"""
    return await get_participant(db, story_id, user_id) is not None


async def list_participants(db: AsyncSession, story_id: uuid.UUID) -> List[StoryParticipant]:
    """참여 순서대로 참여자 목록 조회 (사용자 정보 포함)"""
    result = await db.execute(
        select(StoryParticipant)
        .options(selectinload(StoryParticipant.user))
        .where(StoryParticipant.story_id == story_id)
        .order_by(StoryParticipant.join_order.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_participant_ids(db: AsyncSession, story_id: uuid.UUID) -> List[uuid.UUID]:
    result = await db.execute(
        select(StoryParticipant.user_id)
        .where(StoryParticipant.story_id == story_id)
        .order_by(StoryParticipant.join_order.asc())
    )
    return list(result.scalars().all())


async def lock_turn(db: AsyncSession, story_id: uuid.UUID) -> StoryTurn:
    """스토리의 턴 포인터 행을 FOR UPDATE로 잠근다.

    세그먼트 작성과 참여자 추가는 모두 이 행을 먼저 잠가 스토리 단위로 직렬화된다.
    identity map에 남아 있는 이전 값 대신 잠근 시점의 값을 읽는다.
    """
    result = await db.execute(
        select(StoryTurn)
        .where(StoryTurn.story_id == story_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    turn = result.scalar_one_or_none()
    if turn is None:
        raise NotFoundError("턴 정보를 찾을 수 없습니다.")
    return turn


async def next_join_order(db: AsyncSession, story_id: uuid.UUID) -> int:
    max_order = await db.scalar(
        select(func.max(StoryParticipant.join_order)).where(StoryParticipant.story_id == story_id)
    )
    return (max_order or 0) + 1


async def ensure_participant(
    db: AsyncSession,
    story_id: uuid.UUID,
    user_id: uuid.UUID,
    role: str = PARTICIPANT_ROLE_PARTICIPANT,
) -> StoryParticipant:
    """참여자 행을 보장한다 (이미 있으면 기존 행 반환).

    flush/커밋은 호출자가 한다. 요청 상태 변경과 같은 커밋에서 반영되며,
    유니크 제약 충돌도 그 커밋에서 드러난다.
    """
    await lock_turn(db, story_id)
    existing = await get_participant(db, story_id, user_id)
    if existing is not None:
        return existing

    participant = StoryParticipant(
        story_id=story_id,
        user_id=user_id,
        role=role,
        join_order=await next_join_order(db, story_id),
    )
    db.add(participant)
    return participant


def next_in_rotation(user_ids: Sequence[uuid.UUID], current_id: uuid.UUID) -> uuid.UUID:
    """참여 순서 기준 다음 차례 (마지막 다음은 처음)

    현재 사용자가 목록에 없으면 첫 번째 참여자에게 넘긴다.
    """
    if not user_ids:
        return current_id
    try:
        index = list(user_ids).index(current_id)
    except ValueError:
        return user_ids[0]
    return user_ids[(index + 1) % len(user_ids)]
