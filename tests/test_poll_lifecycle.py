"""
Poll creation, lazy finalization, admin finalize/toggle, listing and deletion.
"""

from datetime import timedelta

from core.timeutils import utcnow
from models import Poll, PollOption, PollVote, PostPoll


class TestCreatePoll:
    def test_admin_creates_poll_with_options(self, client, db, admin_headers, project):
        payload = {
            "question": "  Which class should we add next?  ",
            "options": ["Ranger", "Bard", " Necromancer "],
            "project_id": project.id,
            "end_date": (utcnow() + timedelta(days=3)).isoformat(),
            "show_on_homepage": True,
        }
        response = client.post("/api/polls/", json=payload, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["question"] == "Which class should we add next?"
        assert [o["option_text"] for o in data["options"]] == ["Ranger", "Bard", "Necromancer"]
        assert all(o["votes_count"] == 0 for o in data["options"])
        assert data["is_active"] is True
        assert data["is_finalized"] is False
        assert data["is_closed"] is False
        assert data["total_votes"] == 0
        assert db.query(PollOption).filter(PollOption.poll_id == data["id"]).count() == 3

    def test_non_admin_forbidden(self, client, user_headers):
        response = client.post("/api/polls/", json={"question": "Why?", "options": ["a", "b"]}, headers=user_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "ADMIN_REQUIRED"

    def test_needs_two_options(self, client, db, admin_headers):
        response = client.post("/api/polls/", json={"question": "Lonely?", "options": ["Only"]}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"
        assert db.query(Poll).count() == 0

    def test_option_texts_unique_ignoring_case(self, client, admin_headers):
        response = client.post("/api/polls/", json={"question": "Pick one", "options": ["Yes", "yes"]}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_end_date_in_past_rejected(self, client, admin_headers):
        payload = {"question": "Too late?", "options": ["a", "b"], "end_date": (utcnow() - timedelta(minutes=5)).isoformat()}
        response = client.post("/api/polls/", json=payload, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_unknown_project(self, client, admin_headers):
        response = client.post("/api/polls/", json={"question": "Where?", "options": ["a", "b"], "project_id": 404}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "PROJECT_NOT_FOUND"


class TestLazyFinalization:
    def test_read_finalizes_expired_poll(self, client, db, expired_poll):
        response = client.get(f"/api/polls/{expired_poll.id}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_finalized"] is True
        assert data["is_active"] is False
        assert data["is_closed"] is True
        assert data["finalized_at"] is not None

        db.refresh(expired_poll)
        assert expired_poll.is_finalized is True

    def test_vote_after_read_is_rejected(self, client, expired_poll, user_headers):
        client.get(f"/api/polls/{expired_poll.id}")
        response = client.post(
            f"/api/polls/{expired_poll.id}/vote",
            json={"poll_option_id": expired_poll.options[0].id},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "POLL_CLOSED"

    def test_vote_on_unread_expired_poll_finalizes_it(self, client, db, expired_poll, user_headers):
        response = client.post(
            f"/api/polls/{expired_poll.id}/vote",
            json={"poll_option_id": expired_poll.options[0].id},
            headers=user_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "POLL_CLOSED"
        assert db.query(PollVote).count() == 0
        db.refresh(expired_poll)
        assert expired_poll.is_finalized is True

    def test_list_finalizes_and_filters(self, client, make_poll, expired_poll):
        open_poll = make_poll(question="Still open?", end_date=utcnow() + timedelta(days=1))

        everything = client.get("/api/polls/").json()["data"]
        by_id = {p["id"]: p for p in everything}
        assert by_id[expired_poll.id]["is_finalized"] is True
        assert by_id[open_poll.id]["is_closed"] is False

        active = client.get("/api/polls/", params={"active_only": True}).json()["data"]
        assert [p["id"] for p in active] == [open_poll.id]

    def test_homepage_filter(self, client, make_poll):
        featured = make_poll(question="Featured?", show_on_homepage=True)
        make_poll(question="Hidden?")
        data = client.get("/api/polls/", params={"homepage": True}).json()["data"]
        assert [p["id"] for p in data] == [featured.id]


class TestFinalizeAndToggle:
    def test_finalize_once(self, client, poll, admin_headers):
        first = client.patch(f"/api/polls/{poll.id}/finalize", headers=admin_headers)
        assert first.status_code == 200
        assert first.json()["data"]["is_finalized"] is True
        assert first.json()["data"]["is_active"] is False

        second = client.patch(f"/api/polls/{poll.id}/finalize", headers=admin_headers)
        assert second.status_code == 400
        assert second.json()["error"] == "POLL_ALREADY_FINALIZED"

    def test_finalize_keeps_votes(self, client, db, poll, user_headers, admin_headers):
        client.post(f"/api/polls/{poll.id}/vote", json={"poll_option_id": poll.options[0].id}, headers=user_headers)
        client.patch(f"/api/polls/{poll.id}/finalize", headers=admin_headers)
        assert db.query(PollVote).count() == 1
        assert client.get(f"/api/polls/{poll.id}").json()["data"]["total_votes"] == 1

    def test_deactivate_and_reactivate(self, client, poll, admin_headers):
        off = client.patch(f"/api/polls/{poll.id}/toggle", json={"is_active": False}, headers=admin_headers)
        assert off.status_code == 200
        assert off.json()["data"]["is_active"] is False
        assert off.json()["data"]["is_closed"] is True

        on = client.patch(f"/api/polls/{poll.id}/toggle", json={"is_active": True}, headers=admin_headers)
        assert on.status_code == 200
        assert on.json()["data"]["is_active"] is True

    def test_finalized_poll_cannot_be_reactivated(self, client, poll, admin_headers):
        client.patch(f"/api/polls/{poll.id}/finalize", headers=admin_headers)
        response = client.patch(f"/api/polls/{poll.id}/toggle", json={"is_active": True}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "POLL_ALREADY_FINALIZED"

    def test_expired_poll_cannot_be_reactivated(self, client, expired_poll, admin_headers):
        response = client.patch(f"/api/polls/{expired_poll.id}/toggle", json={"is_active": True}, headers=admin_headers)
        assert response.status_code == 400


class TestDeleteAndAvailable:
    def test_delete_cascades(self, client, db, poll, user_headers, admin_headers):
        client.post(f"/api/polls/{poll.id}/vote", json={"poll_option_id": poll.options[0].id}, headers=user_headers)
        poll_id = poll.id

        response = client.delete(f"/api/polls/{poll_id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert client.get(f"/api/polls/{poll_id}").status_code == 404
        assert db.query(PollOption).filter(PollOption.poll_id == poll_id).count() == 0
        assert db.query(PollVote).filter(PollVote.poll_id == poll_id).count() == 0

    def test_available_excludes_attached(self, client, db, make_poll, post, admin_headers):
        free = make_poll(question="Free?")
        linked = make_poll(question="Linked?")
        owned = make_poll(question="Owned?", post_id=post.id)
        db.add(PostPoll(post_id=post.id, poll_id=linked.id, display_order=0))
        db.commit()

        data = client.get("/api/polls/available", headers=admin_headers).json()["data"]
        ids = {p["id"] for p in data}
        assert free.id in ids
        assert linked.id not in ids
        assert owned.id not in ids
