from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models import Poll, Post, PostPoll, PostRelease, PostVote, Release, User
from schemas import AttachedPoll, AttachedRelease, PollPublic, ReleasePublic, VoteAction, VoteType
from crud.poll import finalize_if_expired
from crud.votes import apply_up_down_vote
from core.logging_config import get_logger
from core import exceptions as exc

logger = get_logger(__name__)


def get_post_or_404(db: Session, post_id: int) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise exc.PostNotFoundException(post_id=post_id)
    return post


# --- Poll attachments ---

def list_attached_polls(db: Session, post_id: int) -> List[AttachedPoll]:
    """
    Polls attached to a post in display order.

    Expired polls are lazily finalized before they are serialized.
    """
    get_post_or_404(db, post_id)
    links = (
        db.query(PostPoll)
        .options(joinedload(PostPoll.poll).selectinload(Poll.options))
        .filter(PostPoll.post_id == post_id)
        .order_by(PostPoll.display_order.asc(), PostPoll.id.asc())
        .all()
    )
    for link in links:
        finalize_if_expired(db, link.poll)
    return [
        AttachedPoll(**PollPublic.model_validate(link.poll).model_dump(), display_order=link.display_order)
        for link in links
    ]


def attach_poll(db: Session, post_id: int, poll_id: int, display_order: int) -> PostPoll:
    get_post_or_404(db, post_id)
    if db.get(Poll, poll_id) is None:
        raise exc.PollNotFoundException(poll_id=poll_id)

    existing = db.query(PostPoll).filter(PostPoll.post_id == post_id, PostPoll.poll_id == poll_id).first()
    if existing is not None:
        raise exc.AttachmentExistsException("poll", poll_id, post_id)

    link = PostPoll(post_id=post_id, poll_id=poll_id, display_order=display_order)
    db.add(link)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race against an identical attach; the unique constraint decided
        db.rollback()
        logger.warning("attach_poll_unique_conflict", post_id=post_id, poll_id=poll_id, error_message=str(e))
        raise exc.AttachmentExistsException("poll", poll_id, post_id)
    except Exception as e:
        db.rollback()
        logger.error("db_attach_poll_error", post_id=post_id, poll_id=poll_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to attach poll.", code="DB_ATTACH_ERROR")

    logger.info("poll_attached_to_post", post_id=post_id, poll_id=poll_id, display_order=display_order)
    return link


def detach_poll(db: Session, post_id: int, poll_id: int) -> None:
    link = db.query(PostPoll).filter(PostPoll.post_id == post_id, PostPoll.poll_id == poll_id).first()
    if link is None:
        raise exc.AttachmentNotFoundException("poll", poll_id, post_id)
    try:
        db.delete(link)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("db_detach_poll_error", post_id=post_id, poll_id=poll_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to detach poll.", code="DB_DETACH_ERROR")
    logger.info("poll_detached_from_post", post_id=post_id, poll_id=poll_id)


# --- Release attachments ---

def list_attached_releases(db: Session, post_id: int) -> List[AttachedRelease]:
    get_post_or_404(db, post_id)
    links = (
        db.query(PostRelease)
        .options(joinedload(PostRelease.release).selectinload(Release.files))
        .filter(PostRelease.post_id == post_id)
        .order_by(PostRelease.display_order.asc(), PostRelease.id.asc())
        .all()
    )
    return [
        AttachedRelease(**ReleasePublic.model_validate(link.release).model_dump(), display_order=link.display_order)
        for link in links
    ]


def attach_release(db: Session, post_id: int, release_id: int, display_order: int) -> PostRelease:
    get_post_or_404(db, post_id)
    if db.get(Release, release_id) is None:
        raise exc.ReleaseNotFoundException(release_id=release_id)

    existing = db.query(PostRelease).filter(PostRelease.post_id == post_id, PostRelease.release_id == release_id).first()
    if existing is not None:
        raise exc.AttachmentExistsException("release", release_id, post_id)

    link = PostRelease(post_id=post_id, release_id=release_id, display_order=display_order)
    db.add(link)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("attach_release_unique_conflict", post_id=post_id, release_id=release_id, error_message=str(e))
        raise exc.AttachmentExistsException("release", release_id, post_id)
    except Exception as e:
        db.rollback()
        logger.error("db_attach_release_error", post_id=post_id, release_id=release_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to attach release.", code="DB_ATTACH_ERROR")

    logger.info("release_attached_to_post", post_id=post_id, release_id=release_id, display_order=display_order)
    return link


def detach_release(db: Session, post_id: int, release_id: int) -> None:
    link = db.query(PostRelease).filter(PostRelease.post_id == post_id, PostRelease.release_id == release_id).first()
    if link is None:
        raise exc.AttachmentNotFoundException("release", release_id, post_id)
    try:
        db.delete(link)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("db_detach_release_error", post_id=post_id, release_id=release_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to detach release.", code="DB_DETACH_ERROR")
    logger.info("release_detached_from_post", post_id=post_id, release_id=release_id)


# --- Post votes ---

def get_user_post_vote(db: Session, post_id: int, user_id: int) -> Optional[PostVote]:
    get_post_or_404(db, post_id)
    return db.query(PostVote).filter(PostVote.post_id == post_id, PostVote.user_id == user_id).first()


def vote_on_post(db: Session, post_id: int, vote_type: VoteType, user: User) -> Tuple[VoteAction, Optional[VoteType], Post]:
    post = db.query(Post).filter(Post.id == post_id).with_for_update().first()
    if post is None:
        raise exc.PostNotFoundException(post_id=post_id)

    existing_vote = (
        db.query(PostVote)
        .filter(PostVote.post_id == post_id, PostVote.user_id == user.id)
        .with_for_update()
        .first()
    )
    try:
        action, current_type = apply_up_down_vote(
            db, post, existing_vote, vote_type,
            lambda: PostVote(post=post, user_id=user.id, vote_type=vote_type.value),
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("post_vote_unique_conflict", post_id=post_id, user_id=user.id, error_message=str(e))
        raise exc.VoteConflictException()
    except Exception as e:
        db.rollback()
        logger.error("db_post_vote_error", post_id=post_id, user_id=user.id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to record vote due to a database error.", code="DB_VOTE_ERROR")

    db.refresh(post)
    logger.info("post_vote_processed", post_id=post_id, user_id=user.id, action=action.value)
    return action, current_type, post
