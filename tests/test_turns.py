"""
Turn Rotation Tests
===================

Segment submission, turn rotation in join order, segment limits,
skipping turns and completing stories.
"""

import pytest


class TestStoryCreation:

    async def test_creator_holds_first_turn(self, client, make_user, make_story):
        """A new story starts at turn 1 with its creator as the only participant."""
        alice = await make_user("alice")
        story = await make_story(alice)

        turn = await client.get(f"/api/stories/{story['id']}/turn")
        assert turn.status_code == 200
        assert turn.json()["current_turn"] == 1
        assert turn.json()["current_user_id"] == alice["id"]
        assert turn.json()["is_complete"] is False

        participants = (await client.get(f"/api/stories/{story['id']}/participants")).json()
        assert [p["user_id"] for p in participants] == [alice["id"]]
        assert participants[0]["role"] == "author"
        assert participants[0]["join_order"] == 1

    async def test_unauthenticated_create_is_rejected(self, client):
        res = await client.post("/api/stories/", json={
            "title": "x", "description": "y", "genre": "z", "word_limit": 100,
        })
        assert res.status_code == 401
        assert res.headers["www-authenticate"] == "Bearer"

    async def test_private_story_hidden_from_outsiders(self, client, make_user, make_story):
        alice = await make_user("alice")
        mallory = await make_user("mallory")
        story = await make_story(alice, is_public=False)

        assert (await client.get(f"/api/stories/{story['id']}")).status_code == 403
        res = await client.get(f"/api/stories/{story['id']}", headers=mallory["headers"])
        assert res.status_code == 403
        res = await client.get(f"/api/stories/{story['id']}", headers=alice["headers"])
        assert res.status_code == 200

        listing = (await client.get("/api/stories/")).json()
        assert listing["total"] == 0

    async def test_missing_story_is_404(self, client):
        res = await client.get("/api/stories/00000000-0000-0000-0000-000000000000/turn")
        assert res.status_code == 404
        assert "detail" in res.json()


class TestTurnRotation:

    async def test_turn_cycles_in_join_order(self, client, make_user, make_story, add_participant, write):
        """After N participants write, the pointer wraps back to the first."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        story = await make_story(alice, max_segments=20)
        await add_participant(story, alice, bob)
        await add_participant(story, alice, carol)

        expected_order = [alice, bob, carol, alice, bob, carol, alice]
        for turn_number, writer in enumerate(expected_order, start=1):
            turn = (await client.get(f"/api/stories/{story['id']}/turn")).json()
            assert turn["current_turn"] == turn_number
            assert turn["current_user_id"] == writer["id"]
            res = await write(story, writer, f"Segment number {turn_number}.")
            assert res.status_code == 201, res.text
            assert res.json()["turn"] == turn_number
            assert res.json()["user"]["username"] == writer["username"]

        segments = (await client.get(f"/api/stories/{story['id']}/segments")).json()
        assert [s["turn"] for s in segments] == list(range(1, 8))

    async def test_single_participant_keeps_turn(self, client, make_user, make_story, write):
        alice = await make_user("alice")
        story = await make_story(alice)

        assert (await write(story, alice)).status_code == 201
        turn = (await client.get(f"/api/stories/{story['id']}/turn")).json()
        assert turn["current_turn"] == 2
        assert turn["current_user_id"] == alice["id"]

    async def test_next_writer_gets_turn_event(self, make_user, make_story, add_participant, write, relay):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        await add_participant(story, alice, bob)

        await write(story, alice)
        turn_events = relay.of_type("turn")
        assert len(turn_events) == 1
        assert turn_events[0]["user_id"] == bob["id"]
        assert turn_events[0]["data"]["current_turn"] == 2
        assert set(turn_events[0]) >= {"type", "data", "timestamp"}

    async def test_turn_event_respects_settings(self, client, make_user, make_story, add_participant, write, relay):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        await add_participant(story, alice, bob)
        res = await client.put("/api/users/settings", json={"turn_notifications": False}, headers=bob["headers"])
        assert res.status_code == 200

        await write(story, alice)
        assert relay.of_type("turn") == []


class TestSubmissionRejections:

    async def test_non_current_participant_is_rejected(self, client, make_user, make_story, add_participant, write):
        """Writing out of turn is refused and changes nothing."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        await add_participant(story, alice, bob)

        res = await write(story, bob)
        assert res.status_code == 403

        turn = (await client.get(f"/api/stories/{story['id']}/turn")).json()
        assert turn["current_turn"] == 1
        assert turn["current_user_id"] == alice["id"]
        assert (await client.get(f"/api/stories/{story['id']}/segments")).json() == []

        # 두 번 연속 작성도 거부
        assert (await write(story, alice)).status_code == 201
        assert (await write(story, alice)).status_code == 403

    async def test_non_participant_is_rejected(self, make_user, make_story, write):
        alice = await make_user("alice")
        mallory = await make_user("mallory")
        story = await make_story(alice)

        assert (await write(story, mallory)).status_code == 403

    async def test_word_limit(self, make_user, make_story, write):
        alice = await make_user("alice")
        story = await make_story(alice, word_limit=50)

        too_long = " ".join(["word"] * 51)
        res = await write(story, alice, too_long)
        assert res.status_code == 400

        exact = " ".join(["word"] * 50)
        assert (await write(story, alice, exact)).status_code == 201

    async def test_character_limit(self, make_user, make_story, write):
        alice = await make_user("alice")
        story = await make_story(alice, character_limit=20)

        assert (await write(story, alice, "a" * 21)).status_code == 400
        res = await write(story, alice, "   " + "a" * 20 + "   ")
        assert res.status_code == 201
        assert res.json()["character_count"] == 20

    async def test_server_counts_override_client_counts(self, client, make_user, make_story):
        alice = await make_user("alice")
        story = await make_story(alice)

        res = await client.post(
            f"/api/stories/{story['id']}/segments",
            json={"content": "one two three", "word_count": 99, "character_count": 1},
            headers=alice["headers"],
        )
        assert res.status_code == 201
        assert res.json()["word_count"] == 3
        assert res.json()["character_count"] == len("one two three")

    async def test_blank_content_is_rejected(self, make_user, make_story, write):
        alice = await make_user("alice")
        story = await make_story(alice)
        assert (await write(story, alice, "    ")).status_code == 400


class TestMaxSegments:

    async def test_story_completes_at_max_segments(self, client, make_user, make_story, add_participant, write, relay):
        """The last allowed segment completes the story and freezes the pointer."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice, max_segments=5)
        await add_participant(story, alice, bob)

        writers = [alice, bob, alice, bob, alice]
        for writer in writers:
            assert (await write(story, writer)).status_code == 201

        detail = (await client.get(f"/api/stories/{story['id']}")).json()
        assert detail["is_complete"] is True

        turn = (await client.get(f"/api/stories/{story['id']}/turn")).json()
        assert turn["current_turn"] == 5
        assert turn["current_user_id"] == alice["id"]
        assert turn["is_complete"] is True

        # 6번째 작성은 거부
        res = await write(story, bob)
        assert res.status_code == 400
        res = await write(story, alice)
        assert res.status_code == 400
        segments = (await client.get(f"/api/stories/{story['id']}/segments")).json()
        assert len(segments) == 5

        completed = relay.of_type("story_completed")
        assert {e["user_id"] for e in completed} == {alice["id"], bob["id"]}

    async def test_max_segments_cannot_drop_below_count(self, client, make_user, make_story, write, relay):
        alice = await make_user("alice")
        story = await make_story(alice, max_segments=10)
        url = f"/api/stories/{story['id']}"
        for _ in range(6):
            assert (await write(story, alice)).status_code == 201

        res = await client.put(url, json={"max_segments": 5}, headers=alice["headers"])
        assert res.status_code == 400

        res = await client.put(url, json={"max_segments": 6}, headers=alice["headers"])
        assert res.status_code == 200
        assert res.json()["is_complete"] is True
        assert [e["user_id"] for e in relay.of_type("story_completed")] == [alice["id"]]

    async def test_completed_story_keeps_its_cap(self, client, make_user, make_story, write):
        """Completion is one-way: the cap is frozen, other fields stay editable."""
        alice = await make_user("alice")
        story = await make_story(alice, max_segments=5)
        url = f"/api/stories/{story['id']}"
        for _ in range(5):
            assert (await write(story, alice)).status_code == 201

        res = await client.put(url, json={"max_segments": 8}, headers=alice["headers"])
        assert res.status_code == 400
        detail = (await client.get(url)).json()
        assert detail["max_segments"] == 5
        assert detail["is_complete"] is True

        res = await client.put(url, json={"max_segments": 5, "title": "The Lighthouse, Revised"}, headers=alice["headers"])
        assert res.status_code == 200
        assert res.json()["title"] == "The Lighthouse, Revised"
        assert (await write(story, alice)).status_code == 400


class TestSkipAndComplete:

    async def test_author_and_holder_can_skip(self, client, make_user, make_story, add_participant, relay):
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        story = await make_story(alice)
        await add_participant(story, alice, bob)
        await add_participant(story, alice, carol)

        # 현재 차례(작성자 본인)가 넘김
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=alice["headers"])
        assert res.status_code == 200
        assert res.json()["current_user_id"] == bob["id"]
        assert res.json()["current_turn"] == 1

        # 차례도 작성자도 아닌 사용자
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=carol["headers"])
        assert res.status_code == 403

        # 현재 차례인 bob이 넘김
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=bob["headers"])
        assert res.status_code == 200
        assert res.json()["current_user_id"] == carol["id"]

        # 작성자는 자기 차례가 아니어도 넘길 수 있다
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=alice["headers"])
        assert res.status_code == 200
        assert res.json()["current_user_id"] == alice["id"]

        assert [e["user_id"] for e in relay.of_type("turn")] == [bob["id"], carol["id"], alice["id"]]

    async def test_skip_needs_another_participant(self, client, make_user, make_story):
        alice = await make_user("alice")
        story = await make_story(alice)
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=alice["headers"])
        assert res.status_code == 400

    async def test_manual_completion_is_idempotent(self, client, make_user, make_story, add_participant, write):
        alice = await make_user("alice")
        bob = await make_user("bob")
        mallory = await make_user("mallory")
        story = await make_story(alice)
        await add_participant(story, alice, bob)

        res = await client.post(f"/api/stories/{story['id']}/complete", headers=mallory["headers"])
        assert res.status_code == 403

        for _ in range(2):
            res = await client.post(f"/api/stories/{story['id']}/complete", headers=bob["headers"])
            assert res.status_code == 200
            assert res.json()["is_complete"] is True

        assert (await write(story, alice)).status_code == 400
        res = await client.post(f"/api/stories/{story['id']}/skip-turn", headers=alice["headers"])
        assert res.status_code == 400


class TestDashboard:

    async def test_my_turn_and_waiting_lists(self, client, make_user, make_story, add_participant, write):
        alice = await make_user("alice")
        bob = await make_user("bob")
        first = await make_story(alice, title="First")
        second = await make_story(alice, title="Second")
        await add_participant(first, alice, bob)
        await add_participant(second, alice, bob)
        await write(first, alice)

        mine = (await client.get("/api/my-turn", headers=bob["headers"])).json()
        assert [s["id"] for s in mine] == [first["id"]]
        assert mine[0]["current_user_id"] == bob["id"]

        waiting = (await client.get("/api/waiting-turn", headers=bob["headers"])).json()
        assert [s["id"] for s in waiting] == [second["id"]]

        everything = (await client.get("/api/my-stories", headers=bob["headers"])).json()
        assert {s["id"] for s in everything} == {first["id"], second["id"]}


class TestDeleteStory:

    async def test_only_author_deletes_and_others_are_notified(
        self, client, make_user, make_story, add_participant, write, relay
    ):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        await add_participant(story, alice, bob)
        await write(story, alice)

        res = await client.delete(f"/api/stories/{story['id']}", headers=bob["headers"])
        assert res.status_code == 403

        res = await client.delete(f"/api/stories/{story['id']}", headers=alice["headers"])
        assert res.status_code == 204
        assert (await client.get(f"/api/stories/{story['id']}")).status_code == 404
        assert [e["user_id"] for e in relay.of_type("story_deleted")] == [bob["id"]]


@pytest.mark.parametrize("payload", [
    {"title": "t", "description": "d", "genre": "g", "word_limit": 10},
    {"title": "t", "description": "d", "genre": "g", "word_limit": 100, "max_segments": 200},
    {"description": "d", "genre": "g", "word_limit": 100},
])
async def test_invalid_story_payload_is_422(client, make_user, payload):
    alice = await make_user("alice")
    res = await client.post("/api/stories/", json=payload, headers=alice["headers"])
    assert res.status_code == 422
