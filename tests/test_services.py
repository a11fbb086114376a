"""
Service Helper Tests
====================

Pure helpers: content measurement, rotation, pricing, image validation
and the best-effort notification relay.
"""

import json
import uuid

import pytest

from plottwist.core.exceptions import (
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotYourTurnError,
    PlotTwistError,
    StoryCompleteError,
    ValidationFailedError,
)
from plottwist.services.media_service import calculate_total_price, generate_order_id, validate_image
from plottwist.services.notification_service import NotificationRelay
from plottwist.services.participant_service import next_in_rotation
from plottwist.services.turn_service import measure_content


class TestMeasureContent:

    def test_counts_ignore_surrounding_whitespace(self):
        assert measure_content("  once upon\n a   time  ") == (4, len("once upon\n a   time"))

    def test_empty_content(self):
        assert measure_content("   ") == (0, 0)


class TestRotation:

    def test_round_robin(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        order = [a, b, c]
        assert next_in_rotation(order, a) == b
        assert next_in_rotation(order, b) == c
        assert next_in_rotation(order, c) == a

    def test_single_participant_keeps_turn(self):
        a = uuid.uuid4()
        assert next_in_rotation([a], a) == a

    def test_unknown_holder_goes_to_first(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert next_in_rotation([a, b], uuid.uuid4()) == a


class TestPricing:

    @pytest.mark.parametrize("book_format, quantity, expected", [
        ("paperback", 1, 1499 + 499),
        ("hardcover", 2, 2 * 2499 + 499),
        ("ebook", 3, 3 * 999),
    ])
    def test_total_price(self, book_format, quantity, expected):
        assert calculate_total_price(book_format, quantity) == expected

    def test_order_id_format(self):
        order_id = generate_order_id()
        assert order_id.startswith("PT-")
        assert len(order_id) == 9
        assert order_id[3:].isalnum() and order_id[3:].upper() == order_id[3:]


class TestImageValidation:

    def test_accepts_known_types(self):
        assert validate_image("cover.PNG", "image/png", 10) == ".png"
        assert validate_image("a.jpeg", "image/jpeg", 10) == ".jpeg"

    @pytest.mark.parametrize("filename, content_type, size", [
        ("notes.txt", "text/plain", 10),
        ("fake.png", "image/gif", 10),
        ("empty.gif", "image/gif", 0),
        ("huge.jpg", "image/jpeg", 5 * 1024 * 1024 + 1),
    ])
    def test_rejects(self, filename, content_type, size):
        with pytest.raises(ValidationFailedError):
            validate_image(filename, content_type, size)


class TestExceptions:

    def test_status_mapping(self):
        assert NotYourTurnError().status_code == 403
        assert isinstance(NotYourTurnError(), ForbiddenError)
        assert StoryCompleteError().status_code == 400
        assert LimitExceededError("too long").detail == "too long"
        assert ConflictError().status_code == 409
        assert issubclass(ValidationFailedError, PlotTwistError)


class _FailingRedis:
    async def publish(self, channel, message):
        raise ConnectionError("redis is down")


class _RecordingRedis:
    def __init__(self):
        self.messages = []

    async def publish(self, channel, message):
        self.messages.append((channel, message))
        return 1


class TestNotificationRelay:

    async def test_publish_encodes_payload(self):
        client = _RecordingRedis()
        relay = NotificationRelay(client)
        user_id = uuid.uuid4()
        story_id = uuid.uuid4()

        assert await relay.publish(user_id, "turn", {"story_id": story_id}) is True
        channel, message = client.messages[0]
        assert channel == f"notify:user:{user_id}"
        payload = json.loads(message)
        assert payload["type"] == "turn"
        assert payload["data"] == {"story_id": str(story_id)}
        assert "timestamp" in payload

    async def test_publish_failure_is_swallowed(self):
        relay = NotificationRelay(_FailingRedis())
        assert await relay.publish(uuid.uuid4(), "turn", {}) is False
