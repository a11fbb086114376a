"""
PlotTwist - 턴제 협업 스토리 작성 플랫폼 FastAPI 메인 애플리케이션
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from plottwist.core.config import settings
from plottwist.core.database import engine, Base, check_db_connection
from plottwist.core.exceptions import PlotTwistError
from plottwist.core.paths import get_upload_dir
import plottwist.models  # noqa: F401  테이블 메타데이터 등록

# API 라우터 임포트
from plottwist.api.auth import router as auth_router
from plottwist.api.stories import router as stories_router
from plottwist.api.dashboard import router as dashboard_router
from plottwist.api.invitations import router as invitations_router
from plottwist.api.join_requests import router as join_requests_router
from plottwist.api.edit_requests import router as edit_requests_router
from plottwist.api.users import router as users_router
from plottwist.api.orders import router as orders_router
from plottwist.api.notifications import router as notifications_router

# 로깅 설정
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _ensure_sqlite_dir(database_url: str) -> None:
    """SQLite 파일 DB의 상위 디렉토리 생성"""
    if not database_url.startswith("sqlite") or ":memory:" in database_url:
        return
    path = database_url.split(":///", 1)[-1]
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 시작/종료 시 실행되는 이벤트"""
    logger.info("PlotTwist API 시작 (environment=%s)", settings.ENVIRONMENT)

    _ensure_sqlite_dir(settings.DATABASE_URL)
    # 데이터베이스 테이블 생성 (개발용)
    if settings.ENVIRONMENT == "development":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("데이터베이스 테이블 생성 완료")

    yield

    await engine.dispose()
    logger.info("PlotTwist API 종료")


# FastAPI 앱 생성
app = FastAPI(
    title="PlotTwist API",
    description="턴제 협업 스토리 작성 서비스",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan
)
UPLOAD_DIR = get_upload_dir()
app.mount("/static", StaticFiles(directory=UPLOAD_DIR), name="static")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PlotTwistError)
async def plottwist_error_handler(request: Request, exc: PlotTwistError):
    """도메인 예외 → HTTP 응답"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# 라우터 등록
app.include_router(auth_router, prefix="/api/auth", tags=["인증"])
app.include_router(stories_router, prefix="/api/stories", tags=["스토리"])
app.include_router(dashboard_router, prefix="/api", tags=["대시보드"])
app.include_router(invitations_router, prefix="/api/invitations", tags=["초대"])
app.include_router(join_requests_router, prefix="/api/join-requests", tags=["참여 요청"])
app.include_router(edit_requests_router, prefix="/api/edit-requests", tags=["수정 요청"])
app.include_router(users_router, prefix="/api/users", tags=["유저"])
app.include_router(orders_router, prefix="/api/orders", tags=["인쇄 주문"])
app.include_router(notifications_router, prefix="/api/notifications", tags=["알림"])


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "PlotTwist API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """헬스 체크 엔드포인트"""
    database_ok = await check_db_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "environment": settings.ENVIRONMENT,
        "database": "connected" if database_ok else "unavailable",
    }
