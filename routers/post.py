from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from crud import post as crud_post
from schemas import (
    ApiResponse,
    AttachedPoll,
    AttachedRelease,
    AttachmentRequest,
    MyPostVote,
    PostAttachmentLink,
    VoteAction,
    VoteRequest,
    VoteTallyResult,
    VoteType,
)
import models
from core.config import settings
from core.limiter_config import limiter
from core.security import get_current_user, require_admin

router = APIRouter()


# --- Polls on a post ---

@router.get("/{post_id}/polls", response_model=ApiResponse[List[AttachedPoll]])
def list_post_polls_endpoint(post_id: int, db: Session = Depends(get_db)):
    return ApiResponse(data=crud_post.list_attached_polls(db, post_id))


@router.post("/{post_id}/polls/{poll_id}", response_model=ApiResponse[PostAttachmentLink], status_code=status.HTTP_201_CREATED)
def attach_poll_endpoint(
    post_id: int,
    poll_id: int,
    attachment: Optional[AttachmentRequest] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    link = crud_post.attach_poll(db, post_id, poll_id, attachment.display_order if attachment else 0)
    return ApiResponse(
        message="Poll attached to post",
        data=PostAttachmentLink(post_id=link.post_id, child_id=link.poll_id, display_order=link.display_order),
    )


@router.delete("/{post_id}/polls/{poll_id}", response_model=ApiResponse[None])
def detach_poll_endpoint(
    post_id: int,
    poll_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    crud_post.detach_poll(db, post_id, poll_id)
    return ApiResponse(message="Poll detached from post")


# --- Releases on a post ---

@router.get("/{post_id}/releases", response_model=ApiResponse[List[AttachedRelease]])
def list_post_releases_endpoint(post_id: int, db: Session = Depends(get_db)):
    return ApiResponse(data=crud_post.list_attached_releases(db, post_id))


@router.post("/{post_id}/releases/{release_id}", response_model=ApiResponse[PostAttachmentLink], status_code=status.HTTP_201_CREATED)
def attach_release_endpoint(
    post_id: int,
    release_id: int,
    attachment: Optional[AttachmentRequest] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    link = crud_post.attach_release(db, post_id, release_id, attachment.display_order if attachment else 0)
    return ApiResponse(
        message="Release attached to post",
        data=PostAttachmentLink(post_id=link.post_id, child_id=link.release_id, display_order=link.display_order),
    )


@router.delete("/{post_id}/releases/{release_id}", response_model=ApiResponse[None])
def detach_release_endpoint(
    post_id: int,
    release_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    crud_post.detach_release(db, post_id, release_id)
    return ApiResponse(message="Release detached from post")


# --- Post votes ---

@router.post("/{post_id}/vote", response_model=ApiResponse[VoteTallyResult])
@limiter.limit(settings.VOTE_RATE_LIMIT)
def vote_on_post_endpoint(
    request: Request,
    response: Response,
    post_id: int,
    vote: VoteRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    action, current_type, post = crud_post.vote_on_post(db, post_id, vote.vote_type, user)
    if action == VoteAction.created:
        response.status_code = status.HTTP_201_CREATED
    return ApiResponse(
        message=f"Vote {action.value}",
        data=VoteTallyResult(action=action, vote_type=current_type, upvotes=post.upvotes, downvotes=post.downvotes),
    )


@router.get("/{post_id}/my-vote", response_model=ApiResponse[MyPostVote])
def get_my_post_vote_endpoint(
    post_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    vote = crud_post.get_user_post_vote(db, post_id, user.id)
    if vote is None:
        return ApiResponse(data=MyPostVote(voted=False))
    return ApiResponse(data=MyPostVote(voted=True, vote_type=VoteType(vote.vote_type)))
