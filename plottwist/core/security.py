"""
보안 관련 유틸리티
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from plottwist.core.config import settings
from plottwist.core.database import get_db
from plottwist.models.user import User


# 패스워드 해싱 컨텍스트
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# JWT 토큰 스키마 (토큰 누락 시 401을 직접 반환하기 위해 auto_error=False)
security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """패스워드 검증"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """패스워드 해싱"""
    return pwd_context.hash(password)


def _encode(data: dict, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, token_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """액세스 토큰 생성"""
    delta = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({**data, "type": "access"}, delta)


def create_refresh_token(data: dict) -> str:
    """리프레시 토큰 생성"""
    return _encode({**data, "type": "refresh"}, timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS))


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """토큰 검증"""
    return _decode(token, token_type)


def generate_verification_token(email: str) -> str:
    """이메일 인증 토큰 생성 (24시간 유효)"""
    return _encode({"email": email, "type": "email_verification"}, timedelta(hours=24))


def verify_verification_token(token: str) -> Optional[str]:
    """이메일 인증 토큰 검증"""
    payload = _decode(token, "email_verification")
    return payload.get("email") if payload else None


def generate_password_reset_token(email: str) -> str:
    """패스워드 재설정 토큰 생성 (1시간 유효)"""
    return _encode({"email": email, "type": "password_reset"}, timedelta(hours=1))


def verify_password_reset_token(token: str) -> Optional[str]:
    """패스워드 재설정 토큰 검증"""
    payload = _decode(token, "password_reset")
    return payload.get("email") if payload else None


async def get_user_from_token(db: AsyncSession, token: str) -> Optional[User]:
    """액세스 토큰으로 사용자 조회 (SSE 등 헤더를 쓸 수 없는 경로용)"""
    payload = verify_token(token, "access")
    if payload is None or payload.get("sub") is None:
        return None

    # 순환 참조 방지를 위해 함수 내에서 임포트
    from plottwist.services.user_service import get_user_by_id
    return await get_user_by_id(db, payload["sub"])


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """현재 사용자 가져오기"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="인증 정보가 유효하지 않습니다.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    user = await get_user_from_token(db, credentials.credentials)
    if user is None:
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """활성 사용자 가져오기"""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="비활성화된 사용자입니다."
        )
    return current_user


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """
    현재 사용자를 가져오지만, 필수는 아닙니다.
    토큰이 없거나 유효하지 않으면 None을 반환합니다.
    """
    if credentials is None:
        return None
    return await get_user_from_token(db, credentials.credentials)
