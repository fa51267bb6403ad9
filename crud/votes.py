"""
Up/down vote toggling shared by comments and posts.

Both keep `upvotes`/`downvotes` counters on the target row next to a vote
table holding at most one row per (user, target). The caller owns the
transaction; this module only mutates session state.
"""

from typing import Callable, Optional, Tuple

from schemas import VoteAction, VoteType


def _counter_attr(vote_type: str) -> str:
    return "upvotes" if vote_type == VoteType.upvote.value else "downvotes"


def _bump(target, vote_type: str, delta: int) -> None:
    attr = _counter_attr(vote_type)
    current = getattr(target, attr) or 0
    setattr(target, attr, max(0, current + delta))


def apply_up_down_vote(
    db,
    target,
    existing_vote,
    vote_type: VoteType,
    new_vote: Callable[[], object],
) -> Tuple[VoteAction, Optional[VoteType]]:
    """
    Apply one vote request to `target`.

    Same type as the existing vote removes it, a different type flips it,
    no existing vote creates one via `new_vote()`.
    Returns the action taken and the user's vote type afterwards.
    """
    requested = vote_type.value

    if existing_vote is None:
        db.add(new_vote())
        _bump(target, requested, +1)
        return VoteAction.created, vote_type

    if existing_vote.vote_type == requested:
        db.delete(existing_vote)
        _bump(target, requested, -1)
        return VoteAction.removed, None

    _bump(target, existing_vote.vote_type, -1)
    existing_vote.vote_type = requested
    _bump(target, requested, +1)
    return VoteAction.updated, vote_type
