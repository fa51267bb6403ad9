from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models import Comment, CommentHistory, CommentVote, Post, User
from schemas import CommentCreate, CommentPublic, CommentThreadEntry, VoteAction, VoteType
from crud.votes import apply_up_down_vote
from core.logging_config import get_logger
from core.security import is_admin
from core.timeutils import as_utc, utcnow
from core import exceptions as exc

logger = get_logger(__name__)

DELETED_COMMENT_CONTENT = "[deleted]"


def get_comment_or_404(db: Session, comment_id: int) -> Comment:
    comment = db.query(Comment).options(joinedload(Comment.user)).filter(Comment.id == comment_id).first()
    if not comment:
        raise exc.CommentNotFoundException(comment_id=comment_id)
    return comment


def _ensure_can_modify(comment: Comment, user: User, action: str) -> None:
    if comment.user_id != user.id and not is_admin(user):
        logger.warning("comment_modify_denied", comment_id=comment.id, user_id=user.id, action=action)
        raise exc.NotAuthorizedError(detail=f"Not authorized to {action} this comment.")


def list_all_comments(db: Session) -> List[Comment]:
    return (
        db.query(Comment)
        .options(joinedload(Comment.user))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )


def build_comment_tree(comments: List[Comment]) -> List[CommentThreadEntry]:
    """
    Group a flat list of comments into reply trees by parent_id and walk them
    depth-first into thread order.

    Roots come newest first, replies oldest first, each reply directly after
    its parent's earlier replies' subtrees. A comment whose parent is missing
    from the list is treated as a root. The walk uses an explicit stack, so
    reply depth is not limited by the interpreter's recursion limit.
    """
    known_ids = {c.id for c in comments}
    children: Dict[int, List[Comment]] = defaultdict(list)
    roots: List[Comment] = []

    for comment in sorted(comments, key=lambda c: (as_utc(c.created_at), c.id)):
        if comment.parent_id is not None and comment.parent_id in known_ids:
            children[comment.parent_id].append(comment)
        else:
            roots.append(comment)

    thread: List[CommentThreadEntry] = []
    # Newest root must pop first; roots are currently oldest first
    stack: List[Tuple[Comment, int]] = [(root, 0) for root in roots]
    while stack:
        comment, depth = stack.pop()
        replies = children.get(comment.id, [])
        thread.append(CommentThreadEntry(
            **CommentPublic.model_validate(comment).model_dump(),
            depth=depth,
            reply_ids=[r.id for r in replies],
        ))
        stack.extend((reply, depth + 1) for reply in reversed(replies))
    return thread


def get_comment_tree_for_post(db: Session, post_id: int) -> List[CommentThreadEntry]:
    if db.get(Post, post_id) is None:
        raise exc.PostNotFoundException(post_id=post_id)
    comments = (
        db.query(Comment)
        .options(joinedload(Comment.user))
        .filter(Comment.post_id == post_id)
        .all()
    )
    logger.debug("comment_tree_loaded", post_id=post_id, count=len(comments))
    return build_comment_tree(comments)


def create_comment(db: Session, data: CommentCreate, user: User) -> Comment:
    if db.get(Post, data.post_id) is None:
        raise exc.PostNotFoundException(post_id=data.post_id)

    if data.parent_id is not None:
        parent = db.get(Comment, data.parent_id)
        if parent is None:
            raise exc.CommentNotFoundException(comment_id=data.parent_id)
        if parent.post_id != data.post_id:
            logger.warning("comment_parent_post_mismatch", parent_id=parent.id,
                           parent_post_id=parent.post_id, post_id=data.post_id)
            raise exc.InvalidParentCommentException()

    comment = Comment(post_id=data.post_id, user_id=user.id, parent_id=data.parent_id, content=data.content)
    db.add(comment)
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("db_create_comment_error", post_id=data.post_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to create comment.", code="DB_CREATE_COMMENT_ERROR")

    logger.info("comment_created", comment_id=comment.id, post_id=data.post_id, parent_id=data.parent_id, user_id=user.id)
    return get_comment_or_404(db, comment.id)


def update_comment(db: Session, comment_id: int, content: str, user: User) -> Comment:
    """Archive the current content into history, then apply the edit."""
    comment = get_comment_or_404(db, comment_id)
    _ensure_can_modify(comment, user, "update")
    if comment.is_deleted:
        raise exc.CommentDeletedException(detail="Deleted comments cannot be edited.")

    db.add(CommentHistory(comment=comment, content=comment.content, edited_at=utcnow()))
    comment.content = content
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("db_update_comment_error", comment_id=comment_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to update comment.", code="DB_UPDATE_COMMENT_ERROR")

    logger.info("comment_updated", comment_id=comment_id, user_id=user.id)
    return get_comment_or_404(db, comment_id)


def soft_delete_comment(db: Session, comment_id: int, user: User) -> Comment:
    """Keep the row and its replies; blank the content."""
    comment = get_comment_or_404(db, comment_id)
    _ensure_can_modify(comment, user, "delete")
    if comment.is_deleted:
        raise exc.CommentDeletedException(detail="Comment is already deleted.")

    comment.is_deleted = True
    comment.content = DELETED_COMMENT_CONTENT
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("db_delete_comment_error", comment_id=comment_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to delete comment.", code="DB_DELETE_COMMENT_ERROR")

    logger.info("comment_soft_deleted", comment_id=comment_id, user_id=user.id)
    return get_comment_or_404(db, comment_id)


def get_comment_history(db: Session, comment_id: int) -> List[CommentHistory]:
    if db.query(Comment.id).filter(Comment.id == comment_id).first() is None:
        raise exc.CommentNotFoundException(comment_id=comment_id)
    return (
        db.query(CommentHistory)
        .filter(CommentHistory.comment_id == comment_id)
        .order_by(CommentHistory.edited_at.desc(), CommentHistory.id.desc())
        .all()
    )


def vote_on_comment(db: Session, comment_id: int, vote_type: VoteType, user: User) -> Tuple[VoteAction, Optional[VoteType], Comment]:
    comment = db.query(Comment).filter(Comment.id == comment_id).with_for_update().first()
    if not comment:
        raise exc.CommentNotFoundException(comment_id=comment_id)
    if comment.is_deleted:
        raise exc.CommentDeletedException(detail="Deleted comments cannot be voted on.")

    existing_vote = (
        db.query(CommentVote)
        .filter(CommentVote.comment_id == comment_id, CommentVote.user_id == user.id)
        .with_for_update()
        .first()
    )
    try:
        action, current_type = apply_up_down_vote(
            db, comment, existing_vote, vote_type,
            lambda: CommentVote(comment=comment, user_id=user.id, vote_type=vote_type.value),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("comment_vote_unique_conflict", comment_id=comment_id, user_id=user.id, error_message=str(e))
        raise exc.VoteConflictException()
    except Exception as e:
        db.rollback()
        logger.error("db_comment_vote_error", comment_id=comment_id, user_id=user.id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to record vote due to a database error.", code="DB_VOTE_ERROR")

    db.refresh(comment)
    logger.info("comment_vote_processed", comment_id=comment_id, user_id=user.id, action=action.value)
    return action, current_type, comment
