"""
세그먼트/스토리 정보 수정 요청 서비스

참여자가 수정안을 올리고 스토리 작성자가 승인하면 반영된다.
작성자가 직접 올린 수정안은 바로 반영하고 승인된 요청으로 기록한다.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging
import uuid

from plottwist.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from plottwist.models.collaboration import (
    StoryEditRequest,
    EDIT_TYPE_SEGMENT,
    REQUEST_PENDING,
    REQUEST_APPROVED,
    REQUEST_DENIED,
)
from plottwist.models.story import Story, StorySegment
from plottwist.models.user import User
from plottwist.schemas.collaboration import EditRequestCreate
from plottwist.services import participant_service, story_service, turn_service
from plottwist.services.notification_service import (
    NotificationRelay,
    EVENT_EDIT_REQUEST,
    EVENT_EDIT_REQUEST_RESOLVED,
    story_payload,
)


logger = logging.getLogger(__name__)


async def _get_segment_in_story(db: AsyncSession, story_id: uuid.UUID, segment_id: uuid.UUID) -> StorySegment:
    segment = await db.get(StorySegment, segment_id)
    if segment is None or segment.story_id != story_id:
        raise NotFoundError("세그먼트를 찾을 수 없습니다.")
    return segment


async def _apply(db: AsyncSession, story: Story, edit_request: StoryEditRequest, editor_id: uuid.UUID) -> None:
    """수정안을 반영한다 (커밋은 호출자)"""
    if edit_request.edit_type == EDIT_TYPE_SEGMENT:
        segment = await _get_segment_in_story(db, story.id, edit_request.segment_id)
        word_count, character_count = turn_service.measure_content(edit_request.proposed_content)
        turn_service.check_limits(story, word_count, character_count)
        turn_service.mark_edited(segment, edit_request.proposed_content, editor_id)
        return

    if edit_request.proposed_title:
        story.title = edit_request.proposed_title
    if edit_request.proposed_description:
        story.description = edit_request.proposed_description
    if edit_request.proposed_genre:
        story.genre = edit_request.proposed_genre


async def create_edit_request(
    db: AsyncSession,
    story_id: uuid.UUID,
    user: User,
    data: EditRequestCreate,
    relay: Optional[NotificationRelay] = None,
) -> StoryEditRequest:
    """수정 요청 생성 (작성자 본인이면 즉시 반영)"""
    story = await story_service.get_story_or_404(db, story_id)
    if not await participant_service.is_participant(db, story_id, user.id):
        raise ForbiddenError("참여자만 수정을 요청할 수 있습니다.")

    if data.edit_type == EDIT_TYPE_SEGMENT:
        segment = await _get_segment_in_story(db, story_id, data.segment_id)
        original = segment.content
        proposed = data.proposed_content.strip()
        # 승인 시점이 아니라 요청 시점에도 제한을 검사한다
        turn_service.check_limits(story, *turn_service.measure_content(proposed))
    else:
        original = story.description
        proposed = data.proposed_description or story.description

    edit_request = StoryEditRequest(
        story_id=story_id,
        segment_id=data.segment_id if data.edit_type == EDIT_TYPE_SEGMENT else None,
        requester_id=user.id,
        author_id=story.creator_id,
        edit_type=data.edit_type,
        original_content=original,
        proposed_content=proposed,
        proposed_title=data.proposed_title,
        proposed_description=data.proposed_description,
        proposed_genre=data.proposed_genre,
        reason=data.reason,
        status=REQUEST_PENDING,
    )
    db.add(edit_request)

    self_applied = story.creator_id == user.id
    if self_applied:
        await _apply(db, story, edit_request, user.id)
        edit_request.status = REQUEST_APPROVED

    await db.commit()
    await db.refresh(edit_request)

    if self_applied:
        logger.info("작성자 직접 수정 반영: story=%s type=%s", story_id, data.edit_type)
    else:
        logger.info("수정 요청 생성: story=%s type=%s requester=%s", story_id, data.edit_type, user.id)
        if relay is not None:
            await relay.publish(
                story.creator_id,
                EVENT_EDIT_REQUEST,
                story_payload(story, edit_request_id=edit_request.id,
                              edit_type=data.edit_type, requester_username=user.username),
            )
    return edit_request


async def _get_pending_for_author(db: AsyncSession, request_id: uuid.UUID, user: User) -> StoryEditRequest:
    edit_request = await db.get(StoryEditRequest, request_id)
    if edit_request is None:
        raise NotFoundError("수정 요청을 찾을 수 없습니다.")
    if edit_request.author_id != user.id:
        raise ForbiddenError("스토리 작성자만 수정 요청을 처리할 수 있습니다.")
    if edit_request.status != REQUEST_PENDING:
        raise ConflictError("이미 처리된 수정 요청입니다.")
    return edit_request


async def _resolve(
    db: AsyncSession,
    edit_request: StoryEditRequest,
    story: Story,
    relay: Optional[NotificationRelay],
) -> StoryEditRequest:
    await db.commit()
    await db.refresh(edit_request)
    logger.info("수정 요청 처리: request=%s status=%s", edit_request.id, edit_request.status)
    if relay is not None:
        await relay.publish(
            edit_request.requester_id,
            EVENT_EDIT_REQUEST_RESOLVED,
            story_payload(story, edit_request_id=edit_request.id, status=edit_request.status),
        )
    return edit_request


async def approve_edit_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> StoryEditRequest:
    """수정 요청 승인 및 반영"""
    edit_request = await _get_pending_for_author(db, request_id, user)
    story = await story_service.get_story_or_404(db, edit_request.story_id)
    await _apply(db, story, edit_request, user.id)
    edit_request.status = REQUEST_APPROVED
    return await _resolve(db, edit_request, story, relay)


async def deny_edit_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    user: User,
    relay: Optional[NotificationRelay] = None,
) -> StoryEditRequest:
    """수정 요청 거절"""
    edit_request = await _get_pending_for_author(db, request_id, user)
    story = await story_service.get_story_or_404(db, edit_request.story_id)
    edit_request.status = REQUEST_DENIED
    return await _resolve(db, edit_request, story, relay)


async def list_pending_for_author(db: AsyncSession, user: User) -> List[StoryEditRequest]:
    result = await db.execute(
        select(StoryEditRequest)
        .where(StoryEditRequest.author_id == user.id)
        .where(StoryEditRequest.status == REQUEST_PENDING)
        .order_by(StoryEditRequest.created_at.desc())
    )
    return list(result.scalars().all())


async def list_for_requester(db: AsyncSession, user: User) -> List[StoryEditRequest]:
    """내가 올린 수정 요청 전체"""
    result = await db.execute(
        select(StoryEditRequest)
        .where(StoryEditRequest.requester_id == user.id)
        .order_by(StoryEditRequest.created_at.desc())
    )
    return list(result.scalars().all())
