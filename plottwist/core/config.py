"""
애플리케이션 설정
"""

from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path
from dotenv import load_dotenv


"""env 로딩 우선순위
1) OS 환경변수
2) 프로젝트 루트의 .env (repo/.env)
"""

_here = Path(__file__).resolve()
_repo_root_env = _here.parents[2] / ".env"  # repo/.env
try:
    if _repo_root_env.exists():
        load_dotenv(dotenv_path=str(_repo_root_env), override=False)
except OSError:
    pass


DEFAULT_JWT_SECRET = "your-super-secret-jwt-key-change-this-in-production"


class Settings(BaseSettings):
    """애플리케이션 설정"""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/plottwist.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # JWT
    JWT_SECRET_KEY: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # 이메일/SMTP
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    EMAIL_FROM_ADDRESS: str = "no-reply@plottwist.local"
    EMAIL_FROM_NAME: str = "PlotTwist"
    FRONTEND_BASE_URL: str = "http://localhost:5173"
    EMAIL_VERIFICATION_REQUIRED: bool = True

    # 협업 규칙
    INVITATION_EXPIRE_DAYS: int = 7

    # 업로드
    UPLOAD_DIRECTORY: str | None = None
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'


settings = Settings()


# 환경별 설정 검증
def validate_settings():
    """설정 검증"""
    if settings.ENVIRONMENT == "production":
        if settings.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
            raise ValueError("프로덕션 환경에서는 JWT_SECRET_KEY를 변경해야 합니다.")
    return True


validate_settings()
