"""
턴 진행 서비스

세그먼트 작성, 턴 넘기기, 완결 처리를 담당한다.
턴 포인터 행은 FOR UPDATE로 잠그고, (story_id, turn) 유니크 제약이 최종 방어선이다.
"""

from datetime import datetime, timezone
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import List, Optional, Tuple
import logging
import uuid

from plottwist.core.exceptions import (
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
    NotYourTurnError,
    StoryCompleteError,
    ValidationFailedError,
)
from plottwist.models.story import Story, StorySegment, StoryTurn
from plottwist.models.user import User
from plottwist.services import participant_service, story_service
from plottwist.services.notification_service import (
    NotificationRelay,
    EVENT_TURN,
    notify_if_enabled,
    story_payload,
)


logger = logging.getLogger(__name__)


def measure_content(content: str) -> Tuple[int, int]:
    """(단어 수, 글자 수) 계산. 앞뒤 공백은 제외한다."""
    stripped = content.strip()
    return len(stripped.split()), len(stripped)


def check_limits(story: Story, word_count: int, character_count: int) -> None:
    """스토리의 단어/글자 수 제한 검사"""
    if word_count > story.word_limit:
        raise LimitExceededError(
            f"단어 수 제한({story.word_limit})을 초과했습니다: {word_count}"
        )
    if story.character_limit and character_count > story.character_limit:
        raise LimitExceededError(
            f"글자 수 제한({story.character_limit})을 초과했습니다: {character_count}"
        )


async def count_segments(db: AsyncSession, story_id: uuid.UUID) -> int:
    count = await db.scalar(select(func.count(StorySegment.id)).where(StorySegment.story_id == story_id))
    return int(count or 0)


async def get_turn(db: AsyncSession, story_id: uuid.UUID) -> StoryTurn:
    """턴 포인터 조회 (현재 차례 사용자 포함)"""
    result = await db.execute(
        select(StoryTurn)
        .options(selectinload(StoryTurn.current_user))
        .where(StoryTurn.story_id == story_id)
        .execution_options(populate_existing=True)
    )
    turn = result.scalar_one_or_none()
    if turn is None:
        raise NotFoundError("턴 정보를 찾을 수 없습니다.")
    return turn


async def list_segments(db: AsyncSession, story_id: uuid.UUID) -> List[StorySegment]:
    """턴 순서대로 세그먼트 조회 (작성자 정보 포함)"""
    result = await db.execute(
        select(StorySegment)
        .options(selectinload(StorySegment.user))
        .where(StorySegment.story_id == story_id)
        .order_by(StorySegment.turn.asc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_segment(db: AsyncSession, segment_id: uuid.UUID) -> Optional[StorySegment]:
    result = await db.execute(
        select(StorySegment)
        .options(selectinload(StorySegment.user))
        .where(StorySegment.id == segment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _commit_or_conflict(db: AsyncSession, detail: str) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(detail)


async def submit_segment(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    content: str,
    relay: Optional[NotificationRelay] = None,
) -> StorySegment:
    """현재 차례의 참여자가 세그먼트를 작성하고 턴을 넘긴다.

    검사 순서: 스토리 존재(404) → 완결 여부(400) → 참여자(403) → 현재 차례(403)
    → 단어/글자 수 제한(400) → 최대 세그먼트 수(400).
    최대 세그먼트 수에 도달하면 스토리를 완결 처리하고 턴 포인터는 그대로 둔다.
    """
    story = await story_service.get_story_or_404(db, story_id)
    if story.is_complete:
        raise StoryCompleteError()
    if not await participant_service.is_participant(db, story_id, user.id):
        raise ForbiddenError("이 스토리의 참여자가 아닙니다.")

    turn = await participant_service.lock_turn(db, story_id)
    if turn.current_user_id != user.id:
        raise NotYourTurnError()

    word_count, character_count = measure_content(content)
    if word_count == 0:
        raise ValidationFailedError("내용을 입력해주세요.")
    check_limits(story, word_count, character_count)

    segment_count = await count_segments(db, story_id)
    if segment_count >= story.max_segments:
        raise LimitExceededError("최대 세그먼트 수에 도달했습니다.")

    segment = StorySegment(
        story_id=story_id,
        user_id=user.id,
        content=content.strip(),
        turn=turn.current_turn,
        word_count=word_count,
        character_count=character_count,
    )
    db.add(segment)

    completed = segment_count + 1 >= story.max_segments
    if completed:
        story.is_complete = True
    else:
        rotation = await participant_service.list_participant_ids(db, story_id)
        turn.current_turn = turn.current_turn + 1
        turn.current_user_id = participant_service.next_in_rotation(rotation, user.id)
    await _commit_or_conflict(db, "다른 참여자가 먼저 이 턴을 작성했습니다.")
    await db.refresh(segment)
    await db.refresh(turn)

    if completed:
        logger.info("세그먼트 작성 및 스토리 완결: story=%s turn=%s", story_id, segment.turn)
        await story_service.announce_completion(db, relay, story)
    else:
        logger.info(
            "세그먼트 작성: story=%s turn=%s → 다음 차례 user=%s",
            story_id, segment.turn, turn.current_user_id,
        )
        if relay is not None and turn.current_user_id != user.id:
            await notify_if_enabled(
                db, relay, turn.current_user_id, EVENT_TURN,
                story_payload(story, current_turn=turn.current_turn),
                setting_field="turn_notifications",
            )
    return segment


async def skip_turn(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> StoryTurn:
    """작성 없이 다음 참여자에게 차례를 넘긴다 (작성자 또는 현재 차례 사용자)"""
    story = await story_service.get_story_or_404(db, story_id)
    if story.is_complete:
        raise StoryCompleteError()

    turn = await participant_service.lock_turn(db, story_id)
    if user.id not in (story.creator_id, turn.current_user_id):
        raise ForbiddenError("스토리 작성자나 현재 차례인 사용자만 턴을 넘길 수 있습니다.")

    rotation = await participant_service.list_participant_ids(db, story_id)
    if len(rotation) < 2:
        raise ValidationFailedError("턴을 넘길 다른 참여자가 없습니다.")

    previous = turn.current_user_id
    turn.current_user_id = participant_service.next_in_rotation(rotation, previous)
    await db.commit()
    await db.refresh(turn)
    logger.info("턴 넘김: story=%s %s → %s (by %s)", story_id, previous, turn.current_user_id, user.id)

    if relay is not None:
        await notify_if_enabled(
            db, relay, turn.current_user_id, EVENT_TURN,
            story_payload(story, current_turn=turn.current_turn),
            setting_field="turn_notifications",
        )
    return turn


async def complete_story(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> Story:
    """참여자가 스토리를 완결 처리한다. 이미 완결이면 그대로 반환."""
    story = await story_service.get_story_or_404(db, story_id)
    if not await participant_service.is_participant(db, story_id, user.id):
        raise ForbiddenError("이 스토리의 참여자가 아닙니다.")
    if story.is_complete:
        return story

    story.is_complete = True
    await db.commit()
    await db.refresh(story)
    logger.info("스토리 완결: story=%s by=%s", story_id, user.id)

    await story_service.announce_completion(db, relay, story)
    return story


def mark_edited(segment: StorySegment, content: str, editor_id: uuid.UUID) -> None:
    """세그먼트 본문 교체 및 수정 이력 기록"""
    word_count, character_count = measure_content(content)
    segment.content = content.strip()
    segment.word_count = word_count
    segment.character_count = character_count
    segment.is_edited = True
    segment.last_edited_at = datetime.now(timezone.utc)
    segment.edited_by = editor_id
