"""
Invitation Lifecycle Tests
==========================

pending → accepted | declined, email-only invitations and expiry.
"""

from datetime import datetime, timedelta, timezone
import uuid

from sqlalchemy import func, select, update

from plottwist.models.collaboration import StoryInvitation
from plottwist.models.story import StoryParticipant


async def _participant_rows(session_factory, story_id, user_id):
    async with session_factory() as session:
        return await session.scalar(
            select(func.count(StoryParticipant.id)).where(
                StoryParticipant.story_id == uuid.UUID(story_id),
                StoryParticipant.user_id == uuid.UUID(user_id),
            )
        )


class TestCreateInvitation:

    async def test_single_invite_by_username(self, client, make_user, make_story, relay):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)

        res = await client.post(
            f"/api/stories/{story['id']}/invite", json={"usernameOrEmail": "bob"}, headers=alice["headers"]
        )
        assert res.status_code == 201, res.text
        body = res.json()
        assert body["invitee_id"] == bob["id"]
        assert body["status"] == "pending"
        assert body["story_title"] == story["title"]
        assert body["inviter_username"] == "alice"

        events = relay.of_type("invitation")
        assert [e["user_id"] for e in events] == [bob["id"]]

        pending = (await client.get("/api/invitations/pending", headers=bob["headers"])).json()
        assert [inv["id"] for inv in pending] == [body["id"]]

    async def test_single_invite_conflicts(self, client, make_user, make_story):
        alice = await make_user("alice")
        await make_user("bob")
        story = await make_story(alice)
        url = f"/api/stories/{story['id']}/invite"

        assert (await client.post(url, json={"usernameOrEmail": "alice"}, headers=alice["headers"])).status_code == 409
        assert (await client.post(url, json={"usernameOrEmail": "ghost"}, headers=alice["headers"])).status_code == 404
        assert (await client.post(url, json={"usernameOrEmail": "bob"}, headers=alice["headers"])).status_code == 201
        assert (await client.post(url, json={"usernameOrEmail": "bob"}, headers=alice["headers"])).status_code == 409

    async def test_batch_invite_reports_each_target(self, client, make_user, make_story, add_participant):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await make_user("carol")
        story = await make_story(alice)
        await add_participant(story, alice, bob)

        res = await client.post(
            f"/api/stories/{story['id']}/invite",
            json={"invites": ["bob", "carol", "ghost", "alice", "newcomer@example.com"]},
            headers=alice["headers"],
        )
        assert res.status_code == 200
        statuses = {r["target"]: r["status"] for r in res.json()["results"]}
        assert statuses == {
            "bob": "already_participant",
            "carol": "invited",
            "ghost": "not_found",
            "alice": "self",
            "newcomer@example.com": "invited",
        }
        email_only = next(r for r in res.json()["results"] if r["target"] == "newcomer@example.com")
        assert email_only["invitation"]["invitee_id"] is None
        assert email_only["invitation"]["invitee_email"] == "newcomer@example.com"

    async def test_batch_naming_one_user_twice_invites_once(self, client, make_user, make_story):
        alice = await make_user("alice")
        await make_user("carol")
        story = await make_story(alice)

        res = await client.post(
            f"/api/stories/{story['id']}/invite",
            json={"invites": ["carol", "carol@example.com"]},
            headers=alice["headers"],
        )
        assert res.status_code == 200
        statuses = {r["target"]: r["status"] for r in res.json()["results"]}
        assert statuses == {"carol": "invited", "carol@example.com": "already_invited"}

    async def test_only_participants_invite(self, client, make_user, make_story):
        alice = await make_user("alice")
        mallory = await make_user("mallory")
        await make_user("bob")
        story = await make_story(alice)

        res = await client.post(
            f"/api/stories/{story['id']}/invite", json={"usernameOrEmail": "bob"}, headers=mallory["headers"]
        )
        assert res.status_code == 403

    async def test_completed_story_rejects_invites(self, client, make_user, make_story):
        alice = await make_user("alice")
        await make_user("bob")
        story = await make_story(alice)
        await client.post(f"/api/stories/{story['id']}/complete", headers=alice["headers"])

        res = await client.post(
            f"/api/stories/{story['id']}/invite", json={"usernameOrEmail": "bob"}, headers=alice["headers"]
        )
        assert res.status_code == 400

    async def test_empty_request_is_422(self, client, make_user, make_story):
        alice = await make_user("alice")
        story = await make_story(alice)
        res = await client.post(f"/api/stories/{story['id']}/invite", json={}, headers=alice["headers"])
        assert res.status_code == 422


class TestRespondToInvitation:

    async def _invite(self, client, story, inviter, target):
        res = await client.post(
            f"/api/stories/{story['id']}/invite", json={"usernameOrEmail": target}, headers=inviter["headers"]
        )
        assert res.status_code == 201, res.text
        return res.json()

    async def test_accept_twice_is_rejected(self, client, make_user, make_story, session_factory):
        """The second accept is a conflict and never duplicates the participant row."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        invitation = await self._invite(client, story, alice, "bob")

        first = await client.post(f"/api/invitations/{invitation['id']}/accept", headers=bob["headers"])
        assert first.status_code == 200
        assert first.json()["status"] == "accepted"
        assert first.json()["responded_at"] is not None

        second = await client.post(f"/api/invitations/{invitation['id']}/accept", headers=bob["headers"])
        assert second.status_code == 409

        assert await _participant_rows(session_factory, story["id"], bob["id"]) == 1
        participants = (await client.get(f"/api/stories/{story['id']}/participants")).json()
        assert [p["user_id"] for p in participants] == [alice["id"], bob["id"]]
        assert participants[1]["join_order"] == 2

    async def test_only_invitee_may_respond(self, client, make_user, make_story):
        alice = await make_user("alice")
        await make_user("bob")
        mallory = await make_user("mallory")
        story = await make_story(alice)
        invitation = await self._invite(client, story, alice, "bob")

        for action in ("accept", "decline"):
            res = await client.post(f"/api/invitations/{invitation['id']}/{action}", headers=mallory["headers"])
            assert res.status_code == 403

    async def test_decline_is_terminal(self, client, make_user, make_story):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        invitation = await self._invite(client, story, alice, "bob")

        res = await client.post(f"/api/invitations/{invitation['id']}/decline", headers=bob["headers"])
        assert res.status_code == 200
        assert res.json()["status"] == "declined"

        res = await client.post(f"/api/invitations/{invitation['id']}/accept", headers=bob["headers"])
        assert res.status_code == 409
        assert (await client.get("/api/invitations/pending", headers=bob["headers"])).json() == []

    async def test_expired_invitation_is_gone(self, client, make_user, make_story, session_factory):
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        invitation = await self._invite(client, story, alice, "bob")

        async with session_factory() as session:
            await session.execute(
                update(StoryInvitation)
                .where(StoryInvitation.id == uuid.UUID(invitation["id"]))
                .values(expires_at=datetime.now(timezone.utc) - timedelta(days=1))
            )
            await session.commit()

        assert (await client.get("/api/invitations/pending", headers=bob["headers"])).json() == []
        res = await client.post(f"/api/invitations/{invitation['id']}/accept", headers=bob["headers"])
        assert res.status_code == 410

        async with session_factory() as session:
            stored = await session.get(StoryInvitation, uuid.UUID(invitation["id"]))
            assert stored.status == "declined"
        assert await _participant_rows(session_factory, story["id"], bob["id"]) == 0

        # 만료된 초대가 있어도 다시 초대할 수 있다
        again = await self._invite(client, story, alice, "bob")
        assert again["id"] != invitation["id"]

    async def test_reinvite_closes_unanswered_expired_invitation(self, client, make_user, make_story, session_factory):
        """An expired invitation nobody answered is closed so the new one can be pending."""
        alice = await make_user("alice")
        bob = await make_user("bob")
        story = await make_story(alice)
        invitation = await self._invite(client, story, alice, "bob")

        async with session_factory() as session:
            await session.execute(
                update(StoryInvitation)
                .where(StoryInvitation.id == uuid.UUID(invitation["id"]))
                .values(expires_at=datetime.now(timezone.utc) - timedelta(days=1))
            )
            await session.commit()

        again = await self._invite(client, story, alice, "bob")
        assert again["id"] != invitation["id"]

        async with session_factory() as session:
            stale = await session.get(StoryInvitation, uuid.UUID(invitation["id"]))
            assert stale.status == "declined"
        pending = (await client.get("/api/invitations/pending", headers=bob["headers"])).json()
        assert [p["id"] for p in pending] == [again["id"]]

    async def test_unknown_invitation_is_404(self, client, make_user):
        bob = await make_user("bob")
        res = await client.post(f"/api/invitations/{uuid.uuid4()}/accept", headers=bob["headers"])
        assert res.status_code == 404


class TestEmailInvitation:

    async def test_email_invitation_is_claimed_on_registration(self, client, make_user, make_story):
        alice = await make_user("alice")
        story = await make_story(alice)
        res = await client.post(
            f"/api/stories/{story['id']}/invite",
            json={"usernameOrEmail": "Dana@Example.com"},
            headers=alice["headers"],
        )
        assert res.status_code == 201
        assert res.json()["invitee_id"] is None

        dana = await make_user("dana", email="dana@example.com")
        pending = (await client.get("/api/invitations/pending", headers=dana["headers"])).json()
        assert len(pending) == 1
        assert pending[0]["invitee_id"] == dana["id"]

        res = await client.post(f"/api/invitations/{pending[0]['id']}/accept", headers=dana["headers"])
        assert res.status_code == 200

        status = (await client.get(f"/api/stories/{story['id']}/invite-status", headers=alice["headers"])).json()
        assert status[0]["invitee_username"] == "dana"
        assert status[0]["status"] == "accepted"
