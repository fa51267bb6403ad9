from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from crud import comment as crud_comment
from schemas import (
    ApiResponse,
    CommentCreate,
    CommentHistoryEntry,
    CommentThreadEntry,
    CommentPublic,
    CommentUpdate,
    VoteAction,
    VoteRequest,
    VoteTallyResult,
)
import models
from core.config import settings
from core.limiter_config import limiter
from core.logging_config import get_logger
from core.security import get_current_user, require_admin

logger = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=ApiResponse[List[CommentPublic]])
def list_all_comments_endpoint(
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    comments = crud_comment.list_all_comments(db)
    return ApiResponse(data=[CommentPublic.model_validate(c) for c in comments])


@router.get("/post/{post_id}", response_model=ApiResponse[List[CommentThreadEntry]])
def get_post_comments_endpoint(post_id: int, db: Session = Depends(get_db)):
    return ApiResponse(data=crud_comment.get_comment_tree_for_post(db, post_id))


@router.post("/", response_model=ApiResponse[CommentPublic], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.COMMENT_RATE_LIMIT)
def create_comment_endpoint(
    request: Request,
    comment: CommentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    logger.info("create_comment_request_received", post_id=comment.post_id, parent_id=comment.parent_id, user_id=user.id)
    created = crud_comment.create_comment(db, comment, user)
    return ApiResponse(message="Comment created successfully", data=CommentPublic.model_validate(created))


@router.put("/{comment_id}", response_model=ApiResponse[CommentPublic])
def update_comment_endpoint(
    comment_id: int,
    comment_update: CommentUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    updated = crud_comment.update_comment(db, comment_id, comment_update.content, user)
    return ApiResponse(message="Comment updated successfully", data=CommentPublic.model_validate(updated))


@router.delete("/{comment_id}", response_model=ApiResponse[CommentPublic])
def delete_comment_endpoint(
    comment_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    deleted = crud_comment.soft_delete_comment(db, comment_id, user)
    return ApiResponse(message="Comment deleted successfully", data=CommentPublic.model_validate(deleted))


@router.get("/{comment_id}/history", response_model=ApiResponse[List[CommentHistoryEntry]])
def get_comment_history_endpoint(comment_id: int, db: Session = Depends(get_db)):
    history = crud_comment.get_comment_history(db, comment_id)
    return ApiResponse(data=[CommentHistoryEntry.model_validate(h) for h in history])


@router.post("/{comment_id}/vote", response_model=ApiResponse[VoteTallyResult])
@limiter.limit(settings.VOTE_RATE_LIMIT)
def vote_on_comment_endpoint(
    request: Request,
    response: Response,
    comment_id: int,
    vote: VoteRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    action, current_type, comment = crud_comment.vote_on_comment(db, comment_id, vote.vote_type, user)
    if action == VoteAction.created:
        response.status_code = status.HTTP_201_CREATED
    return ApiResponse(
        message=f"Vote {action.value}",
        data=VoteTallyResult(action=action, vote_type=current_type,
                             upvotes=comment.upvotes, downvotes=comment.downvotes),
    )
