"""
스토리 초대 서비스

상태: pending → accepted | declined (둘 다 종료 상태)
"""

from datetime import datetime, timedelta, timezone
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from typing import List, Optional, Tuple
import logging
import secrets
import uuid

from plottwist.core.config import settings
from plottwist.core.exceptions import (
    ConflictError,
    ForbiddenError,
    GoneError,
    NotFoundError,
    StoryCompleteError,
)
from plottwist.models.collaboration import (
    StoryInvitation,
    INVITATION_PENDING,
    INVITATION_ACCEPTED,
    INVITATION_DECLINED,
)
from plottwist.models.story import Story
from plottwist.models.user import User
from plottwist.services import mail_service, participant_service, story_service, user_service
from plottwist.services.notification_service import (
    NotificationRelay,
    EVENT_INVITATION,
    notify_if_enabled,
    story_payload,
)


logger = logging.getLogger(__name__)

# 대상별 처리 결과
RESULT_INVITED = "invited"
RESULT_ALREADY_PARTICIPANT = "already_participant"
RESULT_ALREADY_INVITED = "already_invited"
RESULT_NOT_FOUND = "not_found"
RESULT_SELF = "self"


def _as_utc(value: datetime) -> datetime:
    # SQLite는 tz 정보 없이 돌려준다
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(invitation: StoryInvitation, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return _as_utc(invitation.expires_at) <= now


async def get_invitation(db: AsyncSession, invitation_id: uuid.UUID) -> Optional[StoryInvitation]:
    """초대 조회 (스토리/초대자 포함)"""
    result = await db.execute(
        select(StoryInvitation)
        .options(selectinload(StoryInvitation.story), selectinload(StoryInvitation.inviter))
        .where(StoryInvitation.id == invitation_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _has_open_invitation(
    db: AsyncSession,
    story_id: uuid.UUID,
    invitee: Optional[User],
    email: Optional[str],
) -> bool:
    query = select(StoryInvitation).where(
        StoryInvitation.story_id == story_id,
        StoryInvitation.status == INVITATION_PENDING,
    )
    if invitee is not None:
        query = query.where(StoryInvitation.invitee_id == invitee.id)
    else:
        query = query.where(func.lower(StoryInvitation.invitee_email) == email.lower())
    result = await db.execute(query)
    now = datetime.now(timezone.utc)
    has_open = False
    stale = False
    for inv in result.scalars().all():
        if is_expired(inv, now):
            # 만료된 대기 초대는 닫아야 같은 대상에게 새 초대를 넣을 수 있다
            inv.status = INVITATION_DECLINED
            stale = True
        else:
            has_open = True
    if stale:
        await db.flush()
    return has_open


async def _send_invitation_mail(to_email: str, inviter: User, story: Story) -> None:
    try:
        await mail_service.send_invitation_email(
            to_email,
            inviter_name=inviter.username,
            story_title=story.title,
            story_description=story.description,
        )
    except Exception as e:
        logger.warning("초대 메일 발송 실패 (to=%s, story=%s): %s", to_email, story.id, e)


async def create_invitations(
    db: AsyncSession,
    story_id: uuid.UUID,
    inviter: User,
    targets: List[str],
    relay: Optional[NotificationRelay] = None,
) -> List[Tuple[str, str, Optional[StoryInvitation]]]:
    """대상 목록에 초대를 생성하고 (대상, 결과, 초대) 목록을 반환한다.

    '@'가 있으면 이메일, 없으면 사용자명으로 찾는다. 가입하지 않은 이메일이면
    invitee_id 없이 이메일 초대만 만들고, 가입 시 연결된다.
    """
    story = await story_service.get_story_or_404(db, story_id)
    if not await participant_service.is_participant(db, story_id, inviter.id):
        raise ForbiddenError("참여자만 초대할 수 있습니다.")
    if story.is_complete:
        raise StoryCompleteError("완결된 스토리에는 초대할 수 없습니다.")

    outcomes: List[Tuple[str, str, Optional[StoryInvitation]]] = []
    created: List[Tuple[StoryInvitation, Optional[User], str]] = []
    expires_at = datetime.now(timezone.utc) + timedelta(days=settings.INVITATION_EXPIRE_DAYS)
    seen: set[str] = set()
    invited_ids: set[uuid.UUID] = set()

    for target in targets:
        key = target.lower()
        if key in seen:
            continue
        seen.add(key)

        invitee = await user_service.get_user_by_username_or_email(db, target)
        email = target.lower() if "@" in target else None
        if invitee is None and email is None:
            outcomes.append((target, RESULT_NOT_FOUND, None))
            continue
        if invitee is not None and invitee.id == inviter.id:
            outcomes.append((target, RESULT_SELF, None))
            continue
        if invitee is not None and await participant_service.is_participant(db, story_id, invitee.id):
            outcomes.append((target, RESULT_ALREADY_PARTICIPANT, None))
            continue
        if (invitee is not None and invitee.id in invited_ids) or await _has_open_invitation(
            db, story_id, invitee, email
        ):
            outcomes.append((target, RESULT_ALREADY_INVITED, None))
            continue

        invitation = StoryInvitation(
            story_id=story_id,
            inviter_id=inviter.id,
            invitee_id=invitee.id if invitee is not None else None,
            invitee_email=invitee.email if invitee is not None else email,
            status=INVITATION_PENDING,
            token=secrets.token_urlsafe(32),
            expires_at=expires_at,
        )
        db.add(invitation)
        if invitee is not None:
            invited_ids.add(invitee.id)
        created.append((invitation, invitee, target))
        outcomes.append((target, RESULT_INVITED, invitation))

    if created:
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("다른 요청이 같은 대상을 먼저 초대했습니다.")

    loaded = {}
    for invitation, invitee, target in created:
        loaded[invitation.id] = await get_invitation(db, invitation.id)
        logger.info(
            "초대 생성: story=%s inviter=%s invitee=%s",
            story_id, inviter.id, invitee.id if invitee is not None else invitation.invitee_email,
        )
        if invitee is not None and relay is not None:
            await notify_if_enabled(
                db, relay, invitee.id, EVENT_INVITATION,
                story_payload(story, invitation_id=invitation.id, inviter_username=inviter.username),
                setting_field="invitation_notifications",
            )
        await _send_invitation_mail(invitation.invitee_email, inviter, story)

    return [
        (target, status, loaded.get(inv.id) if inv is not None else None)
        for target, status, inv in outcomes
    ]


def _ensure_invitee(invitation: StoryInvitation, user: User) -> None:
    if invitation.invitee_id is not None:
        if invitation.invitee_id != user.id:
            raise ForbiddenError("초대받은 사용자만 응답할 수 있습니다.")
        return
    # 아직 연결되지 않은 이메일 초대
    if not invitation.invitee_email or invitation.invitee_email.lower() != user.email.lower():
        raise ForbiddenError("초대받은 사용자만 응답할 수 있습니다.")
    invitation.invitee_id = user.id


async def _get_for_response(db: AsyncSession, invitation_id: uuid.UUID, user: User) -> StoryInvitation:
    invitation = await get_invitation(db, invitation_id)
    if invitation is None:
        raise NotFoundError("초대를 찾을 수 없습니다.")
    _ensure_invitee(invitation, user)
    if invitation.status != INVITATION_PENDING:
        raise ConflictError("이미 응답한 초대입니다.")
    return invitation


async def accept_invitation(db: AsyncSession, invitation_id: uuid.UUID, user: User) -> StoryInvitation:
    """초대 수락: 참여자 행 생성과 상태 변경을 한 트랜잭션으로 처리"""
    invitation = await _get_for_response(db, invitation_id, user)
    now = datetime.now(timezone.utc)

    if is_expired(invitation, now):
        invitation.status = INVITATION_DECLINED
        invitation.responded_at = now
        await db.commit()
        logger.info("만료된 초대 수락 시도: invitation=%s user=%s", invitation.id, user.id)
        raise GoneError("초대가 만료되었습니다.")

    try:
        await participant_service.ensure_participant(db, invitation.story_id, user.id)
        invitation.status = INVITATION_ACCEPTED
        invitation.responded_at = now
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("이미 처리된 초대입니다.")

    logger.info("초대 수락: invitation=%s story=%s user=%s", invitation.id, invitation.story_id, user.id)
    return await get_invitation(db, invitation.id)


async def decline_invitation(db: AsyncSession, invitation_id: uuid.UUID, user: User) -> StoryInvitation:
    """초대 거절"""
    invitation = await _get_for_response(db, invitation_id, user)
    invitation.status = INVITATION_DECLINED
    invitation.responded_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("초대 거절: invitation=%s user=%s", invitation.id, user.id)
    return await get_invitation(db, invitation.id)


async def list_pending_for_user(db: AsyncSession, user: User) -> List[StoryInvitation]:
    """내가 받은 대기 중 초대 (만료된 것 제외)"""
    result = await db.execute(
        select(StoryInvitation)
        .options(selectinload(StoryInvitation.story), selectinload(StoryInvitation.inviter))
        .where(StoryInvitation.invitee_id == user.id)
        .where(StoryInvitation.status == INVITATION_PENDING)
        .order_by(StoryInvitation.created_at.desc())
    )
    now = datetime.now(timezone.utc)
    return [inv for inv in result.scalars().all() if not is_expired(inv, now)]


async def list_story_invitations(db: AsyncSession, story_id: uuid.UUID, user: User) -> List[StoryInvitation]:
    """스토리의 초대 현황 (참여자 전용)"""
    await story_service.get_story_or_404(db, story_id)
    if not await participant_service.is_participant(db, story_id, user.id):
        raise ForbiddenError("참여자만 초대 현황을 볼 수 있습니다.")
    result = await db.execute(
        select(StoryInvitation)
        .options(selectinload(StoryInvitation.invitee))
        .where(StoryInvitation.story_id == story_id)
        .order_by(StoryInvitation.created_at.desc())
    )
    return list(result.scalars().all())


async def claim_email_invitations(db: AsyncSession, user: User) -> int:
    """가입한 이메일로 온 미연결 초대를 사용자에게 연결"""
    result = await db.execute(
        update(StoryInvitation)
        .where(StoryInvitation.invitee_id.is_(None))
        .where(func.lower(StoryInvitation.invitee_email) == user.email.lower())
        .values(invitee_id=user.id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.info("이메일 초대 연결: user=%s count=%s", user.id, result.rowcount)
    return result.rowcount or 0
