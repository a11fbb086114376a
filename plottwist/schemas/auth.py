"""
인증 관련 Pydantic 스키마
"""

from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    """토큰 응답 스키마"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: str


class RefreshTokenRequest(BaseModel):
    """리프레시 토큰 요청 스키마"""
    refresh_token: str


class EmailOnly(BaseModel):
    """이메일만 받는 요청 스키마"""
    email: EmailStr


class EmailVerificationRequest(BaseModel):
    """이메일 인증 요청 스키마"""
    token: str


class PasswordResetConfirm(BaseModel):
    """패스워드 재설정 확인 스키마"""
    token: str
    new_password: str = Field(..., min_length=6, max_length=100)


class PasswordUpdateRequest(BaseModel):
    """로그인 상태에서 비밀번호 변경"""
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=100)
