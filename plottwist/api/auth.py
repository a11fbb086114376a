"""
인증 관련 API 라우터
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import timedelta
import logging

from plottwist.core.database import get_db
from plottwist.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    verify_token,
    get_current_user,
    generate_verification_token,
    verify_verification_token,
    generate_password_reset_token,
    verify_password_reset_token
)
from plottwist.core.config import settings
from plottwist.models.user import User
from plottwist.schemas.auth import (
    Token,
    RefreshTokenRequest,
    EmailOnly,
    EmailVerificationRequest,
    PasswordResetConfirm,
    PasswordUpdateRequest,
)
from plottwist.schemas.user import UserCreate, UserLogin, UserResponse
from plottwist.services import invitation_service, mail_service
from plottwist.services.user_service import (
    get_user_by_id,
    get_user_by_email,
    get_user_by_username,
    create_user,
    update_user_password,
    update_user_verification_status
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _issue_tokens(user_id: str) -> dict:
    access_token_expires = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user_id}, expires_delta=access_token_expires
    )
    refresh_token = create_refresh_token(data={"sub": user_id})
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user_id": user_id,
    }


@router.get("/check-email")
async def check_email(email: str, db: AsyncSession = Depends(get_db)):
    """이메일 중복 여부 확인"""
    existing_user = await get_user_by_email(db, email)
    return {"available": existing_user is None}


@router.get("/check-username")
async def check_username(username: str, db: AsyncSession = Depends(get_db)):
    existing_user = await get_user_by_username(db, username)
    return {"available": existing_user is None}


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """사용자 회원가입"""
    # 이메일 중복 확인
    if await get_user_by_email(db, user_data.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="이미 등록된 이메일입니다."
        )

    # 사용자명 중복 확인
    if await get_user_by_username(db, user_data.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="이미 사용 중인 사용자명입니다."
        )

    user = await create_user(
        db=db,
        email=user_data.email,
        username=user_data.username,
        password_hash=get_password_hash(user_data.password),
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )

    # 가입 전에 이메일로 받은 초대를 계정에 연결
    await invitation_service.claim_email_invitations(db, user)

    if settings.EMAIL_VERIFICATION_REQUIRED:
        try:
            token = generate_verification_token(user.email)
            await mail_service.send_verification_email(user.email, token)
        except Exception as e:
            # 메일 발송 실패해도 회원가입은 성공 처리
            logger.warning("이메일 발송 실패: %s", e)
    else:
        # 개발 환경 등에서는 즉시 인증 처리
        user = await update_user_verification_status(db, user.id, True)

    return user


@router.post("/login", response_model=Token)
async def login(
    user_data: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """사용자 로그인"""
    user = await get_user_by_email(db, user_data.email)
    if not user or not verify_password(user_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="이메일 또는 패스워드가 올바르지 않습니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="비활성화된 계정입니다."
        )

    # 이메일 미인증 유저 체크
    if settings.EMAIL_VERIFICATION_REQUIRED and not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="이메일 인증이 필요합니다. 메일함을 확인해주세요."
        )

    return _issue_tokens(str(user.id))


@router.post("/refresh", response_model=Token)
async def refresh_token(
    token_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """토큰 갱신"""
    payload = verify_token(token_data.refresh_token, "refresh")
    user = await get_user_by_id(db, payload["sub"]) if payload and payload.get("sub") else None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="유효하지 않은 리프레시 토큰입니다.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _issue_tokens(str(user.id))


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """현재 사용자 정보 조회"""
    return current_user


@router.post("/verify-email")
async def verify_email(
    verification_data: EmailVerificationRequest,
    db: AsyncSession = Depends(get_db)
):
    """이메일 인증"""
    email = verify_verification_token(verification_data.token)
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="유효하지 않은 인증 토큰입니다."
        )

    user = await get_user_by_email(db, email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="사용자를 찾을 수 없습니다."
        )

    if user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="이미 인증된 계정입니다."
        )

    await update_user_verification_status(db, user.id, True)
    return {"message": "이메일 인증이 완료되었습니다."}


@router.post("/send-verification-email")
async def send_verification_email(
    payload: EmailOnly,
    db: AsyncSession = Depends(get_db)
):
    """인증 이메일 재발송"""
    user = await get_user_by_email(db, payload.email)
    if user and user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="이미 인증된 계정입니다."
        )

    token = generate_verification_token(payload.email)
    await mail_service.send_verification_email(payload.email, token)
    return {"message": "인증 메일을 전송했습니다."}


@router.post("/update-password")
async def update_password(
    payload: PasswordUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """현재 비밀번호 확인 후 새 비밀번호로 변경"""
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="현재 비밀번호가 올바르지 않습니다.")
    await update_user_password(db, current_user, get_password_hash(payload.new_password))
    return {"message": "비밀번호가 변경되었습니다."}


@router.post("/forgot-password")
async def forgot_password(
    payload: EmailOnly,
    db: AsyncSession = Depends(get_db)
):
    """비밀번호 재설정 메일 발송"""
    message = {"message": "비밀번호 재설정 메일을 발송했습니다. 메일함을 확인해주세요."}
    user = await get_user_by_email(db, payload.email)
    if not user:
        # 계정 존재 여부를 노출하지 않는다
        return message

    try:
        token = generate_password_reset_token(user.email)
        await mail_service.send_password_reset_email(user.email, token)
    except Exception as e:
        logger.warning("비밀번호 재설정 메일 발송 실패: %s", e)
    return message


@router.post("/reset-password")
async def reset_password(
    payload: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db)
):
    """비밀번호 재설정 (토큰 검증)"""
    email = verify_password_reset_token(payload.token)
    if not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="유효하지 않거나 만료된 토큰입니다."
        )

    user = await get_user_by_email(db, email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="사용자를 찾을 수 없습니다."
        )

    await update_user_password(db, user, get_password_hash(payload.new_password))
    return {"message": "비밀번호가 재설정되었습니다. 새 비밀번호로 로그인해주세요."}


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user)
):
    """로그아웃 (토큰은 클라이언트에서 폐기)"""
    return {"message": "로그아웃되었습니다."}
