"""
대시보드 API 라우터 (내 스토리 / 내 차례 / 대기 중)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from plottwist.core.database import get_db
from plottwist.core.security import get_current_active_user
from plottwist.models.story import Story
from plottwist.models.user import User
from plottwist.schemas.story import StoryWithTurn
from plottwist.services import story_service

router = APIRouter()


def _with_turn(story: Story) -> StoryWithTurn:
    item = StoryWithTurn.model_validate(story)
    if story.turn is not None:
        item.current_turn = story.turn.current_turn
        item.current_user_id = story.turn.current_user_id
    return item


@router.get("/my-stories", response_model=List[StoryWithTurn])
async def my_stories(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """내가 참여한 모든 스토리"""
    stories = await story_service.get_stories_for_user(db, current_user.id)
    return [_with_turn(s) for s in stories]


@router.get("/my-turn", response_model=List[StoryWithTurn])
async def my_turn(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """지금 내가 써야 하는 스토리"""
    stories = await story_service.get_my_turn_stories(db, current_user.id)
    return [_with_turn(s) for s in stories]


@router.get("/waiting-turn", response_model=List[StoryWithTurn])
async def waiting_turn(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """다른 참여자 차례를 기다리는 스토리"""
    stories = await story_service.get_waiting_stories(db, current_user.id)
    return [_with_turn(s) for s in stories]
