"""
Voting on polls: the three-way toggle and the counter invariants.
"""

import pytest

from models import PollOption, PollVote


def _vote(client, poll_id, option_id, headers):
    return client.post(f"/api/polls/{poll_id}/vote", json={"poll_option_id": option_id}, headers=headers)


def _counts(db, poll_id):
    return {o.option_text: o.votes_count for o in db.query(PollOption).filter(PollOption.poll_id == poll_id)}


class TestVoteToggle:
    def test_first_vote_creates(self, client, db, poll, user_headers):
        red = poll.options[0]
        response = _vote(client, poll.id, red.id, user_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["action"] == "created"
        assert body["data"]["poll_option_id"] == red.id
        assert body["data"]["poll"]["total_votes"] == 1
        assert _counts(db, poll.id) == {"Red": 1, "Green": 0, "Blue": 0}

    def test_same_option_again_removes(self, client, db, poll, user_headers):
        red = poll.options[0]
        _vote(client, poll.id, red.id, user_headers)
        response = _vote(client, poll.id, red.id, user_headers)

        assert response.status_code == 200
        assert response.json()["data"]["action"] == "removed"
        assert response.json()["data"]["poll_option_id"] is None
        assert _counts(db, poll.id) == {"Red": 0, "Green": 0, "Blue": 0}
        assert db.query(PollVote).count() == 0

    def test_other_option_moves_vote(self, client, db, poll, user, user_headers):
        red, green = poll.options[0], poll.options[1]
        _vote(client, poll.id, red.id, user_headers)
        response = _vote(client, poll.id, green.id, user_headers)

        assert response.status_code == 200
        assert response.json()["data"]["action"] == "updated"
        assert response.json()["data"]["poll_option_id"] == green.id
        assert _counts(db, poll.id) == {"Red": 0, "Green": 1, "Blue": 0}
        vote = db.query(PollVote).filter(PollVote.user_id == user.id).one()
        assert vote.poll_option_id == green.id

    def test_full_cycle(self, client, db, poll, user_headers):
        """A, A, B, B, B leaves exactly one vote on B."""
        a, b = poll.options[0].id, poll.options[1].id
        actions = [_vote(client, poll.id, opt, user_headers).json()["data"]["action"] for opt in (a, a, b, b, b)]

        assert actions == ["created", "removed", "created", "removed", "created"]
        assert _counts(db, poll.id) == {"Red": 0, "Green": 1, "Blue": 0}


class TestVoteInvariants:
    def test_counters_match_vote_rows(self, client, db, poll, user_headers, other_headers, admin_headers):
        red, green, blue = (o.id for o in poll.options)
        _vote(client, poll.id, red, user_headers)
        _vote(client, poll.id, green, other_headers)
        _vote(client, poll.id, blue, admin_headers)
        _vote(client, poll.id, green, user_headers)
        _vote(client, poll.id, blue, admin_headers)

        for option in db.query(PollOption).filter(PollOption.poll_id == poll.id):
            rows = db.query(PollVote).filter(PollVote.poll_option_id == option.id).count()
            assert option.votes_count == rows
        assert sum(_counts(db, poll.id).values()) == db.query(PollVote).filter(PollVote.poll_id == poll.id).count()

    def test_one_vote_row_per_user(self, client, db, poll, user, user_headers):
        for option in poll.options:
            _vote(client, poll.id, option.id, user_headers)
        assert db.query(PollVote).filter(PollVote.poll_id == poll.id, PollVote.user_id == user.id).count() == 1

    def test_my_vote(self, client, poll, user_headers):
        green = poll.options[1]
        response = client.get(f"/api/polls/{poll.id}/my-vote", headers=user_headers)
        assert response.json()["data"] == {"voted": False, "poll_option_id": None}

        _vote(client, poll.id, green.id, user_headers)
        response = client.get(f"/api/polls/{poll.id}/my-vote", headers=user_headers)
        assert response.json()["data"] == {"voted": True, "poll_option_id": green.id}


class TestVoteRejections:
    def test_finalized_poll(self, client, db, make_poll, user_headers):
        poll = make_poll(is_finalized=True, is_active=False)
        response = _vote(client, poll.id, poll.options[0].id, user_headers)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"] == "POLL_CLOSED"
        assert db.query(PollVote).count() == 0

    def test_inactive_poll(self, client, make_poll, user_headers):
        poll = make_poll(is_active=False)
        response = _vote(client, poll.id, poll.options[0].id, user_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "POLL_INACTIVE"

    def test_option_from_another_poll(self, client, make_poll, user_headers):
        first = make_poll()
        second = make_poll(question="Favourite season?", options=("Spring", "Autumn"))
        response = _vote(client, first.id, second.options[0].id, user_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "POLL_OPTION_NOT_FOUND"

    def test_missing_poll(self, client, user_headers):
        response = _vote(client, 9999, 1, user_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "POLL_NOT_FOUND"

    def test_requires_authentication(self, client, poll):
        response = client.post(f"/api/polls/{poll.id}/vote", json={"poll_option_id": poll.options[0].id})
        assert response.status_code == 401
        assert response.json()["error"] == "NO_TOKEN"

    @pytest.mark.parametrize("payload", [{}, {"poll_option_id": "abc"}])
    def test_bad_payload(self, client, poll, user_headers, payload):
        response = client.post(f"/api/polls/{poll.id}/vote", json=payload, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"


def test_switch_repoints_existing_row(client, db, make_poll, user, user_headers):
    poll = make_poll(question="A or B?", options=("A", "B"))
    a, b = poll.options[0].id, poll.options[1].id

    _vote(client, poll.id, a, user_headers)
    _vote(client, poll.id, a, user_headers)
    assert db.query(PollVote).count() == 0

    _vote(client, poll.id, b, user_headers)
    row_id = db.query(PollVote).one().id
    assert _counts(db, poll.id) == {"A": 0, "B": 1}

    _vote(client, poll.id, a, user_headers)
    vote = db.query(PollVote).filter(PollVote.user_id == user.id).one()
    assert vote.id == row_id
    assert vote.poll_option_id == a
    assert _counts(db, poll.id) == {"A": 1, "B": 0}
