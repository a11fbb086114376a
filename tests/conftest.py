"""
공용 테스트 픽스처

인메모리 SQLite(StaticPool)로 get_db를 대체하고, 알림 릴레이는 발행 내역만 기록한다.
"""

import os
import tempfile

# 설정 로딩 전에 테스트 환경 변수 지정
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["EMAIL_VERIFICATION_REQUIRED"] = "false"
os.environ["UPLOAD_DIRECTORY"] = tempfile.mkdtemp(prefix="plottwist-uploads-")
os.environ.pop("SMTP_HOST", None)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from plottwist.core.database import Base, get_db
from plottwist.main import app
from plottwist.services.notification_service import NotificationRelay, get_notification_relay


class RecordingRelay(NotificationRelay):
    """Redis 대신 발행된 이벤트를 메모리에 쌓는 릴레이"""

    def __init__(self):
        super().__init__(client=None)
        self.events = []

    async def publish(self, user_id, event_type, data):
        self.events.append(
            {"user_id": str(user_id), **self.build_payload(event_type, data)}
        )
        return True

    def of_type(self, event_type):
        return [e for e in self.events if e["type"] == event_type]

    def for_user(self, user_id):
        return [e for e in self.events if e["user_id"] == str(user_id)]


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def relay():
    return RecordingRelay()


@pytest_asyncio.fixture
async def client(session_factory, relay):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_relay] = lambda: relay
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """회원가입 후 로그인한 사용자 정보(dict)를 돌려주는 팩토리"""

    async def _make_user(username, email=None, password="secret123"):
        email = email or f"{username}@example.com"
        res = await client.post(
            "/api/auth/register",
            json={"email": email, "username": username, "password": password},
        )
        assert res.status_code == 201, res.text
        login = await client.post("/api/auth/login", json={"email": email, "password": password})
        assert login.status_code == 200, login.text
        token = login.json()["access_token"]
        return {
            "id": res.json()["id"],
            "username": username,
            "email": email,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make_user


@pytest.fixture
def make_story(client):
    async def _make_story(owner, **overrides):
        payload = {
            "title": "The Lighthouse",
            "description": "A keeper finds a door that was not there yesterday.",
            "genre": "mystery",
            "word_limit": 100,
            "max_segments": 10,
            "is_public": True,
        }
        payload.update(overrides)
        res = await client.post("/api/stories/", json=payload, headers=owner["headers"])
        assert res.status_code == 201, res.text
        return res.json()

    return _make_story


@pytest.fixture
def add_participant(client):
    """참여 요청 → 작성자 승인으로 참여자를 추가한다"""

    async def _add(story, author, user):
        res = await client.post(f"/api/stories/{story['id']}/join", json={}, headers=user["headers"])
        assert res.status_code == 201, res.text
        approve = await client.post(
            f"/api/join-requests/{res.json()['id']}/approve", headers=author["headers"]
        )
        assert approve.status_code == 200, approve.text

    return _add


@pytest.fixture
def write(client):
    async def _write(story, user, content="The tide came in quietly."):
        return await client.post(
            f"/api/stories/{story['id']}/segments", json={"content": content}, headers=user["headers"]
        )

    return _write
