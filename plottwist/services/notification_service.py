"""
실시간 알림 릴레이

사용자별 Redis 채널(notify:user:{user_id})에 이벤트를 발행하고,
SSE 엔드포인트가 같은 채널을 구독해 브라우저로 전달한다.
전달은 보장하지 않는다: Redis 장애 시 경고 로그만 남기고 요청은 계속 진행한다.
"""

from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional
import asyncio
import json
import logging
import uuid

from fastapi.encoders import jsonable_encoder
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from plottwist.core.database import redis_client
from plottwist.services import user_service


logger = logging.getLogger(__name__)

# 알림 이벤트 타입
EVENT_INVITATION = "invitation"
EVENT_TURN = "turn"
EVENT_JOIN_REQUEST = "join_request"
EVENT_JOIN_REQUEST_APPROVED = "join_request_approved"
EVENT_JOIN_REQUEST_DENIED = "join_request_denied"
EVENT_EDIT_REQUEST = "edit_request"
EVENT_EDIT_REQUEST_RESOLVED = "edit_request_resolved"
EVENT_STORY_COMPLETED = "story_completed"
EVENT_STORY_DELETED = "story_deleted"


class NotificationRelay:
    """사용자별 알림 발행/구독"""

    def __init__(self, client: redis.Redis):
        self.client = client

    @staticmethod
    def channel_for(user_id: uuid.UUID | str) -> str:
        return f"notify:user:{user_id}"

    @staticmethod
    def build_payload(event_type: str, data: dict) -> dict:
        return {
            "type": event_type,
            "data": jsonable_encoder(data),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def publish(self, user_id: uuid.UUID | str, event_type: str, data: dict) -> bool:
        """이벤트 발행. 실패해도 예외를 던지지 않는다."""
        payload = self.build_payload(event_type, data)
        try:
            await self.client.publish(self.channel_for(user_id), json.dumps(payload, ensure_ascii=False))
            return True
        except Exception as e:
            # Redis 장애 시 알림 생략(가용성 우선)
            logger.warning("알림 발행 실패 (user=%s, type=%s): %s", user_id, event_type, e)
            return False

    async def publish_many(self, user_ids: Iterable[uuid.UUID | str], event_type: str, data: dict) -> None:
        for user_id in user_ids:
            await self.publish(user_id, event_type, data)

    async def subscribe(self, user_id: uuid.UUID | str, poll_timeout: float = 30) -> AsyncIterator[dict]:
        """사용자 채널 구독 → SSE 이벤트 dict를 순서대로 yield"""
        channel = self.channel_for(user_id)
        pubsub = self.client.pubsub()
        await pubsub.subscribe(channel)
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=poll_timeout)
                if message is None:
                    # 연결 유지용 주석 이벤트
                    yield {"comment": "keep-alive"}
                    continue
                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError):
                    logger.warning("잘못된 알림 메시지 무시: %r", message.get("data"))
                    continue
                yield {"event": payload.get("type", "message"), "data": json.dumps(payload, ensure_ascii=False)}
        except asyncio.CancelledError:
            pass
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except Exception as e:
                logger.warning("알림 구독 해제 실패 (user=%s): %s", user_id, e)


notification_relay = NotificationRelay(redis_client)


def get_notification_relay() -> NotificationRelay:
    """알림 릴레이 의존성"""
    return notification_relay


async def notify_if_enabled(
    db: AsyncSession,
    relay: NotificationRelay,
    user_id: uuid.UUID,
    event_type: str,
    data: dict,
    setting_field: Optional[str] = None,
) -> None:
    """사용자 알림 설정을 확인한 뒤 발행"""
    if setting_field and not await user_service.wants_notification(db, user_id, setting_field):
        return
    await relay.publish(user_id, event_type, data)


async def notify_many_if_enabled(
    db: AsyncSession,
    relay: NotificationRelay,
    user_ids: Iterable[uuid.UUID],
    event_type: str,
    data: dict,
    setting_field: Optional[str] = None,
) -> None:
    for user_id in user_ids:
        await notify_if_enabled(db, relay, user_id, event_type, data, setting_field)


def story_payload(story: Any, **extra: Any) -> dict:
    """알림용 스토리 요약"""
    return {"story_id": story.id, "story_title": story.title, **extra}
