"""
스토리 관련 API 라우터
"""

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Union
import uuid

from plottwist.core.config import settings
from plottwist.core.database import get_db
from plottwist.core.exceptions import ConflictError, NotFoundError
from plottwist.core.security import get_current_active_user, get_current_user_optional
from plottwist.models.user import User
from plottwist.schemas.story import (
    StoryCreate, StoryUpdate, StoryResponse, StoryListResponse,
    SegmentCreate, SegmentResponse, ParticipantResponse, TurnResponse,
)
from plottwist.schemas.collaboration import (
    InviteRequest, InvitationResponse, InviteResult, InviteBatchResponse, InviteStatusItem,
    JoinRequestCreate, JoinRequestResponse, EditRequestCreate, EditRequestResponse,
)
from plottwist.schemas.media import StoryImageResponse, PrintOrderCreate, PrintOrderResponse
from plottwist.services import (
    edit_request_service,
    invitation_service,
    join_request_service,
    media_service,
    participant_service,
    story_service,
    turn_service,
)
from plottwist.services.notification_service import NotificationRelay, get_notification_relay

router = APIRouter()


async def _turn_response(db: AsyncSession, story_id: uuid.UUID) -> TurnResponse:
    story = await story_service.get_story_or_404(db, story_id)
    turn = await turn_service.get_turn(db, story_id)
    response = TurnResponse.model_validate(turn)
    response.is_complete = story.is_complete
    return response


@router.post("/", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
async def create_story(
    story_data: StoryCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """스토리 생성 (생성자가 첫 차례)"""
    return await story_service.create_story(db, current_user.id, story_data)


@router.get("/", response_model=StoryListResponse)
async def get_stories(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    genre: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    """공개 스토리 목록 조회"""
    stories, total = await story_service.list_public_stories(db, skip=skip, limit=limit, search=search, genre=genre)
    return StoryListResponse(
        stories=[StoryResponse.model_validate(s) for s in stories],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{story_id}", response_model=StoryResponse)
async def get_story(
    story_id: uuid.UUID,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db)
):
    """스토리 상세 조회 (비공개는 참여자만)"""
    return await story_service.get_viewable_story(db, story_id, current_user)


@router.put("/{story_id}", response_model=StoryResponse)
async def update_story(
    story_id: uuid.UUID,
    story_data: StoryUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """스토리 정보 수정 (작성자 전용)"""
    story = await story_service.get_story_or_404(db, story_id)
    return await story_service.update_story(db, story, current_user, story_data, relay)


@router.delete("/{story_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_story(
    story_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """스토리 삭제 (작성자 전용)"""
    story = await story_service.get_story_or_404(db, story_id)
    await story_service.delete_story(db, story, current_user, relay)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{story_id}/participants", response_model=List[ParticipantResponse])
async def get_participants(
    story_id: uuid.UUID,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db)
):
    """참여자 목록 (참여 순서)"""
    await story_service.get_viewable_story(db, story_id, current_user)
    return await participant_service.list_participants(db, story_id)


@router.get("/{story_id}/segments", response_model=List[SegmentResponse])
async def get_segments(
    story_id: uuid.UUID,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db)
):
    """세그먼트 목록 (턴 순서)"""
    await story_service.get_viewable_story(db, story_id, current_user)
    return await turn_service.list_segments(db, story_id)


@router.post("/{story_id}/segments", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(
    story_id: uuid.UUID,
    segment_data: SegmentCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """현재 차례의 세그먼트 작성"""
    segment = await turn_service.submit_segment(db, story_id, current_user, segment_data.content, relay)
    return await turn_service.get_segment(db, segment.id)


@router.get("/{story_id}/turn", response_model=TurnResponse)
async def get_turn(
    story_id: uuid.UUID,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db)
):
    """현재 턴 정보"""
    await story_service.get_viewable_story(db, story_id, current_user)
    return await _turn_response(db, story_id)


@router.post("/{story_id}/skip-turn", response_model=TurnResponse)
async def skip_turn(
    story_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """작성 없이 다음 참여자에게 차례 넘기기"""
    await turn_service.skip_turn(db, story_id, current_user, relay)
    return await _turn_response(db, story_id)


@router.post("/{story_id}/complete", response_model=StoryResponse)
async def complete_story(
    story_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """스토리 완결 처리"""
    return await turn_service.complete_story(db, story_id, current_user, relay)


@router.post("/{story_id}/invite", response_model=Union[InvitationResponse, InviteBatchResponse])
async def invite(
    story_id: uuid.UUID,
    invite_data: InviteRequest,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """사용자명/이메일로 초대

    invites 목록이면 대상별 결과를 200으로, usernameOrEmail 하나면
    성공 시 201, 실패 시 해당 오류 상태로 응답한다.
    """
    outcomes = await invitation_service.create_invitations(
        db, story_id, current_user, invite_data.targets(), relay
    )
    results = [
        InviteResult(
            target=target,
            status=result,
            invitation=InvitationResponse.from_invitation(invitation) if invitation is not None else None,
        )
        for target, result, invitation in outcomes
    ]
    if invite_data.is_batch:
        return InviteBatchResponse(results=results)

    single = results[0]
    if single.status == invitation_service.RESULT_NOT_FOUND:
        raise NotFoundError("사용자를 찾을 수 없습니다.")
    if single.status == invitation_service.RESULT_SELF:
        raise ConflictError("자기 자신은 초대할 수 없습니다.")
    if single.status == invitation_service.RESULT_ALREADY_PARTICIPANT:
        raise ConflictError("이미 참여 중인 사용자입니다.")
    if single.status == invitation_service.RESULT_ALREADY_INVITED:
        raise ConflictError("이미 초대한 사용자입니다.")
    response.status_code = status.HTTP_201_CREATED
    return single.invitation


@router.get("/{story_id}/invite-status", response_model=List[InviteStatusItem])
async def get_invite_status(
    story_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """스토리 초대 현황 (참여자 전용)"""
    invitations = await invitation_service.list_story_invitations(db, story_id, current_user)
    return [
        InviteStatusItem(
            id=inv.id,
            invitee_id=inv.invitee_id,
            invitee_email=inv.invitee_email,
            invitee_username=inv.invitee.username if inv.invitee is not None else None,
            status=inv.status,
            created_at=inv.created_at,
        )
        for inv in invitations
    ]


@router.post("/{story_id}/join", response_model=JoinRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_to_join(
    story_id: uuid.UUID,
    join_data: Optional[JoinRequestCreate] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """공개 스토리 참여 요청"""
    join_request = await join_request_service.create_join_request(
        db, story_id, current_user, join_data.message if join_data else None, relay
    )
    return JoinRequestResponse.from_join_request(join_request)


@router.post("/{story_id}/edit-requests", response_model=EditRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_edit_request(
    story_id: uuid.UUID,
    edit_data: EditRequestCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    relay: NotificationRelay = Depends(get_notification_relay),
):
    """세그먼트/스토리 정보 수정 요청 (작성자는 즉시 반영)"""
    return await edit_request_service.create_edit_request(db, story_id, current_user, edit_data, relay)


@router.post("/{story_id}/images", response_model=StoryImageResponse, status_code=status.HTTP_201_CREATED)
async def upload_story_image(
    story_id: uuid.UUID,
    image: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """스토리 이미지 업로드 (참여자 전용)"""
    try:
        # 제한보다 1바이트 더 읽어 초과 여부만 판단
        data = await image.read(settings.MAX_IMAGE_BYTES + 1)
    finally:
        await image.close()
    return await media_service.save_story_image(
        db, story_id, current_user, image.filename, image.content_type, data, caption
    )


@router.get("/{story_id}/images", response_model=List[StoryImageResponse])
async def get_story_images(
    story_id: uuid.UUID,
    current_user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db)
):
    await story_service.get_viewable_story(db, story_id, current_user)
    return await media_service.list_story_images(db, story_id)


@router.post("/{story_id}/print", response_model=PrintOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_print_order(
    story_id: uuid.UUID,
    order_data: PrintOrderCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """인쇄 주문 (참여자 전용, 결제 없음)"""
    return await media_service.create_print_order(db, story_id, current_user, order_data)
