from core.config import settings


def test_vote_rate_limit(client, post, user_headers):
    """Comment votes are capped per client address within the window."""
    comment = client.post(
        "/api/comments/", json={"post_id": post.id, "content": "Spam my votes"}, headers=user_headers
    ).json()["data"]
    url = f"/api/comments/{comment['id']}/vote"
    allowed = int(settings.VOTE_RATE_LIMIT.split("/")[0])

    for _ in range(allowed):
        assert client.post(url, json={"vote_type": "upvote"}, headers=user_headers).status_code in (200, 201)

    response = client.post(url, json={"vote_type": "upvote"}, headers=user_headers)
    assert response.status_code == 429
    assert response.json()["success"] is False
    assert response.json()["error"] == "RATE_LIMIT_EXCEEDED"


def test_limits_are_per_route(client, post, poll, user_headers):
    url = f"/api/posts/{post.id}/vote"
    allowed = int(settings.VOTE_RATE_LIMIT.split("/")[0])
    for _ in range(allowed):
        client.post(url, json={"vote_type": "upvote"}, headers=user_headers)
    assert client.post(url, json={"vote_type": "upvote"}, headers=user_headers).status_code == 429

    # Poll voting has its own counter
    response = client.post(f"/api/polls/{poll.id}/vote", json={"poll_option_id": poll.options[0].id}, headers=user_headers)
    assert response.status_code == 201
