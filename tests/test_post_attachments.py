"""
Attaching polls and releases to posts.
"""

from models import PostPoll, PostRelease


class TestPollAttachments:
    def test_attach_list_detach(self, client, db, post, make_poll, admin_headers):
        first = make_poll(question="First?")
        second = make_poll(question="Second?")

        r1 = client.post(f"/api/posts/{post.id}/polls/{second.id}", json={"display_order": 2}, headers=admin_headers)
        r2 = client.post(f"/api/posts/{post.id}/polls/{first.id}", json={"display_order": 1}, headers=admin_headers)
        assert r1.status_code == 201
        assert r2.json()["data"] == {"post_id": post.id, "child_id": first.id, "display_order": 1}

        listed = client.get(f"/api/posts/{post.id}/polls").json()["data"]
        assert [(p["id"], p["display_order"]) for p in listed] == [(first.id, 1), (second.id, 2)]
        assert len(listed[0]["options"]) == 3

        response = client.delete(f"/api/posts/{post.id}/polls/{first.id}", headers=admin_headers)
        assert response.status_code == 200
        assert db.query(PostPoll).filter(PostPoll.post_id == post.id).count() == 1

    def test_default_display_order(self, client, post, poll, admin_headers):
        response = client.post(f"/api/posts/{post.id}/polls/{poll.id}", headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["data"]["display_order"] == 0

    def test_duplicate_attach(self, client, db, post, poll, admin_headers):
        client.post(f"/api/posts/{post.id}/polls/{poll.id}", json={"display_order": 0}, headers=admin_headers)
        response = client.post(f"/api/posts/{post.id}/polls/{poll.id}", json={"display_order": 5}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "ATTACHMENT_EXISTS"
        assert db.query(PostPoll).count() == 1

    def test_missing_post_or_poll(self, client, post, poll, admin_headers):
        assert client.post(f"/api/posts/999/polls/{poll.id}", headers=admin_headers).json()["error"] == "POST_NOT_FOUND"
        assert client.post(f"/api/posts/{post.id}/polls/999", headers=admin_headers).json()["error"] == "POLL_NOT_FOUND"

    def test_detach_not_attached(self, client, post, poll, admin_headers):
        response = client.delete(f"/api/posts/{post.id}/polls/{poll.id}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "ATTACHMENT_NOT_FOUND"

    def test_listing_finalizes_expired_poll(self, client, db, post, expired_poll, admin_headers):
        client.post(f"/api/posts/{post.id}/polls/{expired_poll.id}", headers=admin_headers)

        listed = client.get(f"/api/posts/{post.id}/polls").json()["data"]
        assert listed[0]["is_closed"] is True
        assert listed[0]["is_finalized"] is True
        assert listed[0]["is_active"] is False
        db.refresh(expired_poll)
        assert expired_poll.is_finalized is True
        assert expired_poll.finalized_at is not None

    def test_non_admin_cannot_attach(self, client, post, poll, user_headers):
        response = client.post(f"/api/posts/{post.id}/polls/{poll.id}", headers=user_headers)
        assert response.status_code == 403


class TestReleaseAttachments:
    def test_attach_and_list_with_files(self, client, db, post, release, admin_headers):
        response = client.post(f"/api/posts/{post.id}/releases/{release.id}", json={"display_order": 0}, headers=admin_headers)
        assert response.status_code == 201

        listed = client.get(f"/api/posts/{post.id}/releases").json()["data"]
        assert len(listed) == 1
        assert listed[0]["version"] == "1.0.0"
        assert [f["file_name"] for f in listed[0]["files"]] == ["starfall-win.zip", "starfall-linux.tar.gz"]

    def test_duplicate_and_detach(self, client, db, post, release, admin_headers):
        client.post(f"/api/posts/{post.id}/releases/{release.id}", headers=admin_headers)
        duplicate = client.post(f"/api/posts/{post.id}/releases/{release.id}", headers=admin_headers)
        assert duplicate.status_code == 400
        assert duplicate.json()["error"] == "ATTACHMENT_EXISTS"

        assert client.delete(f"/api/posts/{post.id}/releases/{release.id}", headers=admin_headers).status_code == 200
        assert db.query(PostRelease).count() == 0

    def test_missing_release(self, client, post, admin_headers):
        response = client.post(f"/api/posts/{post.id}/releases/42", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "RELEASE_NOT_FOUND"
