from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from crud.poll import (
    create_poll as crud_create_poll,
    update_poll as crud_update_poll,
    delete_poll as crud_delete_poll,
    get_poll_or_404 as crud_get_poll_or_404,
    list_polls as crud_list_polls,
    list_available_polls as crud_list_available_polls,
    finalize_poll as crud_finalize_poll,
    set_poll_active as crud_set_poll_active,
    get_user_vote as crud_get_user_vote,
    crud_vote_on_poll,
)
from schemas import (
    ApiResponse,
    MyPollVote,
    PollCreate,
    PollPublic,
    PollToggleRequest,
    PollUpdate,
    PollVoteRequest,
    PollVoteResult,
    VoteAction,
)
import models
from core.config import settings
from core.limiter_config import limiter
from core.logging_config import get_logger
from core.security import get_current_user, require_admin

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=ApiResponse[List[PollPublic]])
def list_polls_endpoint(
    project_id: Optional[int] = Query(None),
    post_id: Optional[int] = Query(None),
    active_only: bool = Query(False, description="Only polls that currently accept votes"),
    homepage: bool = Query(False, description="Only polls flagged for the homepage"),
    db: Session = Depends(get_db),
):
    logger.debug("list_polls_request_received", project_id=project_id, post_id=post_id,
                 active_only=active_only, homepage=homepage)
    polls = crud_list_polls(db, project_id=project_id, post_id=post_id,
                            active_only=active_only, homepage_only=homepage)
    return ApiResponse(data=[PollPublic.model_validate(p) for p in polls])


# Must be registered before /{poll_id}
@router.get("/available", response_model=ApiResponse[List[PollPublic]])
def list_available_polls_endpoint(
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    polls = crud_list_available_polls(db, project_id=project_id)
    return ApiResponse(data=[PollPublic.model_validate(p) for p in polls])


@router.get("/{poll_id}", response_model=ApiResponse[PollPublic])
def get_poll_endpoint(poll_id: int, db: Session = Depends(get_db)):
    logger.debug("get_poll_request_received", poll_id=poll_id)
    poll = crud_get_poll_or_404(db, poll_id)
    return ApiResponse(data=PollPublic.model_validate(poll))


@router.post("/", response_model=ApiResponse[PollPublic], status_code=status.HTTP_201_CREATED)
def create_poll_endpoint(
    poll: PollCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    logger.info("create_poll_request_received", question=poll.question, num_options=len(poll.options), admin_id=admin.id)
    created_poll = crud_create_poll(db, poll)
    return ApiResponse(message="Poll created successfully", data=PollPublic.model_validate(created_poll))


@router.post("/{poll_id}/vote", response_model=ApiResponse[PollVoteResult])
@limiter.limit(settings.VOTE_RATE_LIMIT)
def vote_on_poll_endpoint(
    request: Request,
    response: Response,
    poll_id: int,
    vote: PollVoteRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """
    Toggle the caller's vote on a poll.

    201 when a new vote is recorded; 200 when the vote is withdrawn or moved
    to another option.
    """
    logger.info("vote_on_poll_request_received", poll_id=poll_id, option_id=vote.poll_option_id, user_id=user.id)
    action, poll, current_option_id = crud_vote_on_poll(db, poll_id, vote.poll_option_id, user.id)

    if action == VoteAction.created:
        response.status_code = status.HTTP_201_CREATED
        message = "Vote recorded"
    elif action == VoteAction.removed:
        message = "Vote removed"
    else:
        message = "Vote updated"

    return ApiResponse(
        message=message,
        data=PollVoteResult(action=action, poll_option_id=current_option_id, poll=PollPublic.model_validate(poll)),
    )


@router.get("/{poll_id}/my-vote", response_model=ApiResponse[MyPollVote])
def get_my_vote_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    vote = crud_get_user_vote(db, poll_id, user.id)
    if vote is None:
        return ApiResponse(data=MyPollVote(voted=False))
    return ApiResponse(data=MyPollVote(voted=True, poll_option_id=vote.poll_option_id))


@router.patch("/{poll_id}/finalize", response_model=ApiResponse[PollPublic])
def finalize_poll_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    logger.info("finalize_poll_request_received", poll_id=poll_id, admin_id=admin.id)
    poll = crud_finalize_poll(db, poll_id)
    return ApiResponse(message="Poll finalized", data=PollPublic.model_validate(poll))


@router.patch("/{poll_id}/toggle", response_model=ApiResponse[PollPublic])
def toggle_poll_endpoint(
    poll_id: int,
    toggle: PollToggleRequest,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    poll = crud_set_poll_active(db, poll_id, toggle.is_active)
    message = "Poll activated" if poll.is_active else "Poll deactivated"
    return ApiResponse(message=message, data=PollPublic.model_validate(poll))


@router.put("/{poll_id}", response_model=ApiResponse[PollPublic])
def update_poll_endpoint(
    poll_id: int,
    poll_update_data: PollUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    logger.info("update_poll_request_received", poll_id=poll_id,
                update_data_keys=list(poll_update_data.model_dump(exclude_unset=True).keys()))
    updated_poll = crud_update_poll(db=db, poll_id=poll_id, poll_update_data=poll_update_data)
    return ApiResponse(message="Poll updated successfully", data=PollPublic.model_validate(updated_poll))


@router.delete("/{poll_id}", response_model=ApiResponse[None])
def delete_poll_endpoint(
    poll_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    logger.info("delete_poll_request_received", poll_id=poll_id, admin_id=admin.id)
    crud_delete_poll(db, poll_id)
    return ApiResponse(message="Poll deleted successfully")
