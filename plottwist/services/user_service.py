"""
사용자 관련 서비스
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Union, List
import logging
import uuid

from plottwist.core.exceptions import ConflictError
from plottwist.models.user import User, UserSettings
from plottwist.schemas.user import UserUpdate, UserSettingsUpdate


logger = logging.getLogger(__name__)


def _coerce_uuid(value: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


async def get_user_by_id(db: AsyncSession, user_id: Union[str, uuid.UUID]) -> Optional[User]:
    """ID로 사용자 조회"""
    user_uuid = _coerce_uuid(user_id)
    if user_uuid is None:
        return None
    result = await db.execute(select(User).where(User.id == user_uuid))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """이메일로 사용자 조회 (대소문자 무시)"""
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    """사용자명으로 사용자 조회"""
    result = await db.execute(select(User).where(User.username == username.strip()))
    return result.scalar_one_or_none()


async def get_user_by_username_or_email(db: AsyncSession, value: str) -> Optional[User]:
    """'@'가 있으면 이메일, 없으면 사용자명으로 조회"""
    if "@" in value:
        return await get_user_by_email(db, value)
    return await get_user_by_username(db, value)


async def create_user(
    db: AsyncSession,
    email: str,
    username: str,
    password_hash: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    """사용자 생성 (기본 설정 행 포함)"""
    user = User(
        email=email.strip().lower(),
        username=username.strip(),
        hashed_password=password_hash,
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    await db.flush()
    db.add(UserSettings(user_id=user.id))
    await db.commit()
    await db.refresh(user)
    logger.info("사용자 생성: user=%s username=%s", user.id, user.username)
    return user


async def update_user_verification_status(
    db: AsyncSession,
    user_id: Union[str, uuid.UUID],
    is_verified: bool
) -> Optional[User]:
    """사용자 인증 상태 업데이트"""
    user = await get_user_by_id(db, user_id)
    if user is None:
        return None
    user.is_verified = is_verified
    await db.commit()
    await db.refresh(user)
    return user


async def update_user_password(db: AsyncSession, user: User, password_hash: str) -> None:
    """비밀번호 해시 교체"""
    user.hashed_password = password_hash
    await db.commit()
    await db.refresh(user)


async def update_user_profile(db: AsyncSession, user: User, data: UserUpdate) -> User:
    """사용자 프로필 업데이트"""
    update_data = data.model_dump(exclude_unset=True)
    new_username = update_data.get("username")
    if new_username and new_username != user.username:
        existing = await get_user_by_username(db, new_username)
        if existing is not None:
            raise ConflictError("이미 사용 중인 사용자명입니다.")

    for field, value in update_data.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return user


async def search_users(
    db: AsyncSession,
    query: str,
    limit: int = 10,
    exclude_user_id: Optional[uuid.UUID] = None,
) -> List[User]:
    """사용자명 접두어 검색 (초대 자동완성용)"""
    stmt = (
        select(User)
        .where(User.is_active == True)
        .where(User.username.ilike(f"{query.strip()}%"))
        .order_by(User.username.asc())
        .limit(limit)
    )
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_or_create_settings(db: AsyncSession, user_id: uuid.UUID) -> UserSettings:
    """사용자 설정 조회 (없으면 기본값으로 생성)"""
    result = await db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
    user_settings = result.scalar_one_or_none()
    if user_settings is None:
        user_settings = UserSettings(user_id=user_id)
        db.add(user_settings)
        await db.commit()
        await db.refresh(user_settings)
    return user_settings


async def update_settings(db: AsyncSession, user_id: uuid.UUID, data: UserSettingsUpdate) -> UserSettings:
    """사용자 설정 부분 업데이트"""
    user_settings = await get_or_create_settings(db, user_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user_settings, field, value)
    await db.commit()
    await db.refresh(user_settings)
    return user_settings


async def wants_notification(db: AsyncSession, user_id: uuid.UUID, setting_field: str) -> bool:
    """알림 설정 확인 (설정 행이 없으면 기본값 True)"""
    result = await db.execute(
        select(getattr(UserSettings, setting_field)).where(UserSettings.user_id == user_id)
    )
    value = result.scalar_one_or_none()
    return True if value is None else bool(value)
