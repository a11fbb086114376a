"""
데이터베이스 설정 및 연결
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import MetaData, types
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
import redis.asyncio as redis
from typing import AsyncGenerator
import logging
import uuid
import ssl
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from plottwist.core.config import settings


logger = logging.getLogger(__name__)


# SQLite와 PostgreSQL 모두 지원하는 UUID 타입
class UUID(types.TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses
    CHAR(36), storing as stringified hex values.
    """
    impl = types.CHAR(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PostgresUUID(as_uuid=True))
        return dialect.type_descriptor(types.CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None or dialect.name == 'postgresql':
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


def _build_engine_args(database_url: str) -> tuple[str, dict]:
    """DATABASE_URL을 비동기 드라이버용 URL과 connect_args로 변환"""
    if database_url.startswith("sqlite"):
        if "+aiosqlite" not in database_url:
            database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return database_url, {}

    # PostgreSQL의 경우 asyncpg 드라이버 사용
    raw_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # sslmode 파라미터는 asyncpg에서 직접 지원하지 않음 → URL에서 제거하고 SSLContext로 전달
    parts = urlsplit(raw_url)
    query_items = parse_qsl(parts.query, keep_blank_values=True)
    sslmode = next((v for (k, v) in query_items if k.lower() == "sslmode"), None)
    ssl_param = next((v for (k, v) in query_items if k.lower() == "ssl"), None)
    query_filtered = [(k, v) for (k, v) in query_items if k.lower() not in ("sslmode", "ssl")]
    engine_url = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query_filtered), parts.fragment))

    ssl_required = False
    ssl_verify = False
    if ssl_param is not None:
        v = str(ssl_param).strip().lower()
        if v in ("1", "true", "yes", "on", "require"):
            ssl_required = True
    if sslmode is not None:
        v = str(sslmode).strip().lower()
        # libpq sslmode: require/prefer는 암호화만, verify-*는 인증서 검증
        if v in ("require", "prefer"):
            ssl_required = True
            ssl_verify = False
        elif v in ("verify-ca", "verify-full"):
            ssl_required = True
            ssl_verify = True
        elif v in ("disable", "allow"):
            ssl_required = False

    connect_args = {}
    if ssl_required:
        ctx = ssl.create_default_context()
        if not ssl_verify:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = ctx
    return engine_url, connect_args


_engine_url, _connect_args = _build_engine_args(settings.DATABASE_URL)

# SQLAlchemy 비동기 엔진 생성
if _engine_url.startswith("sqlite"):
    engine = create_async_engine(
        _engine_url,
        echo=settings.DEBUG,
    )
else:
    engine = create_async_engine(
        _engine_url,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=_connect_args,
    )

# 세션 팩토리 생성
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Redis 연결 (실제 연결은 첫 명령 시점)
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


# Base 클래스 정의
class Base(DeclarativeBase):
    """SQLAlchemy Base 클래스"""
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s"
        }
    )


# 데이터베이스 세션 의존성
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """데이터베이스 세션 의존성"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


# Redis 클라이언트 의존성
async def get_redis() -> redis.Redis:
    """Redis 클라이언트 의존성"""
    return redis_client


async def check_db_connection() -> bool:
    """데이터베이스 연결 확인"""
    try:
        async with engine.connect() as conn:
            await conn.exec_driver_sql("SELECT 1")
        return True
    except Exception as e:
        logger.warning("데이터베이스 연결 실패: %s", e)
        return False
