from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from typing import Dict, List, Optional, Tuple

from models import Poll, PollOption, PollVote, PostPoll, Post, Project
from schemas import PollCreate, PollUpdate, VoteAction
from core.logging_config import get_logger
from core.timeutils import utcnow
from core import exceptions as exc

logger = get_logger(__name__)


def _mark_finalized(poll: Poll) -> None:
    poll.is_finalized = True
    poll.is_active = False
    poll.finalized_at = utcnow()


def finalize_if_expired(db: Session, poll: Poll) -> bool:
    """
    Lazy finalization: persist the finalized state of a poll whose end_date
    has passed. Returns True if this call performed the transition.

    Two readers may race on the same expired poll; both write the same
    target state, so the second write is a no-op in effect.
    """
    if poll.is_finalized or not poll.is_expired():
        return False

    _mark_finalized(poll)
    try:
        db.commit()
        db.refresh(poll)
    except Exception as e:
        db.rollback()
        logger.error("db_lazy_finalize_error", poll_id=poll.id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to finalize expired poll.", code="DB_FINALIZE_POLL_ERROR")
    logger.info("poll_lazily_finalized", poll_id=poll.id, end_date=str(poll.end_date))
    return True


def get_poll(db: Session, poll_id: int) -> Optional[Poll]:
    """Retrieve a poll by its ID, applying lazy finalization."""
    poll = db.query(Poll).options(selectinload(Poll.options)).filter(Poll.id == poll_id).first()
    if poll is not None:
        finalize_if_expired(db, poll)
    return poll


def get_poll_or_404(db: Session, poll_id: int) -> Poll:
    poll = get_poll(db, poll_id)
    if not poll:
        raise exc.PollNotFoundException(poll_id=poll_id)
    return poll


def list_polls(
    db: Session,
    project_id: Optional[int] = None,
    post_id: Optional[int] = None,
    active_only: bool = False,
    homepage_only: bool = False,
) -> List[Poll]:
    query = db.query(Poll).options(selectinload(Poll.options))
    if project_id is not None:
        query = query.filter(Poll.project_id == project_id)
    if post_id is not None:
        query = query.filter(Poll.post_id == post_id)
    if homepage_only:
        query = query.filter(Poll.show_on_homepage.is_(True))

    polls = query.order_by(Poll.created_at.desc(), Poll.id.desc()).all()
    for poll in polls:
        finalize_if_expired(db, poll)

    if active_only:
        polls = [poll for poll in polls if not poll.is_closed]
    logger.debug("list_polls_result", count=len(polls), project_id=project_id, post_id=post_id)
    return polls


def list_available_polls(db: Session, project_id: Optional[int] = None) -> List[Poll]:
    """Polls not yet placed in any post, either directly or through the junction table."""
    attached = select(PostPoll.poll_id)
    query = (
        db.query(Poll)
        .options(selectinload(Poll.options))
        .filter(Poll.post_id.is_(None), ~Poll.id.in_(attached))
    )
    if project_id is not None:
        query = query.filter(Poll.project_id == project_id)
    polls = query.order_by(Poll.created_at.desc(), Poll.id.desc()).all()
    for poll in polls:
        finalize_if_expired(db, poll)
    return polls


def create_poll(db: Session, poll_data: PollCreate) -> Poll:
    """Create a poll and its options in a single transaction."""
    if poll_data.project_id is not None and db.get(Project, poll_data.project_id) is None:
        raise exc.ProjectNotFoundException(project_id=poll_data.project_id)
    if poll_data.post_id is not None and db.get(Post, poll_data.post_id) is None:
        raise exc.PostNotFoundException(post_id=poll_data.post_id)
    if poll_data.end_date is not None and poll_data.end_date <= utcnow():
        raise exc.InvalidRequestException(detail="end_date must be in the future.")

    db_poll = Poll(
        question=poll_data.question,
        project_id=poll_data.project_id,
        post_id=poll_data.post_id,
        end_date=poll_data.end_date,
        show_on_homepage=poll_data.show_on_homepage,
        is_standalone=poll_data.is_standalone,
        is_active=True,
        is_finalized=False,
    )
    for text in poll_data.options:
        db_poll.options.append(PollOption(option_text=text, votes_count=0))
    db.add(db_poll)

    try:
        db.commit()
        db.refresh(db_poll)
    except Exception as e:
        db.rollback()
        logger.error("db_create_poll_error", error_message=str(e), poll_question=poll_data.question, exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to create poll due to a database error.", code="DB_CREATE_POLL_ERROR")

    logger.info("poll_created_successfully", poll_id=db_poll.id, num_options=len(db_poll.options))
    return db_poll


def update_poll(db: Session, poll_id: int, poll_update_data: PollUpdate) -> Poll:
    """
    Update a poll's question, end date, homepage flag and option set.

    The option list is reconciled against the current options:
    entries carrying an id keep that option (renaming it if the text changed),
    entries without an id reuse an existing option with identical text,
    anything else is created with a zero counter. Existing options left
    unreferenced are deleted together with their votes.
    """
    db_poll = get_poll_or_404(db, poll_id)

    if db_poll.is_finalized:
        logger.warning("update_poll_finalized_denied", poll_id=poll_id)
        raise exc.PollUpdateNotAllowedException(detail="Finalized polls cannot be edited.")

    # Validate before mutating anything on the session
    end_date_set = "end_date" in poll_update_data.model_fields_set
    if end_date_set and poll_update_data.end_date is not None and poll_update_data.end_date <= utcnow():
        raise exc.InvalidRequestException(detail="end_date must be in the future.")
    if poll_update_data.options is not None:
        known_ids = {opt.id for opt in db_poll.options}
        for entry in poll_update_data.options:
            if entry.id is not None and entry.id not in known_ids:
                logger.warning("update_poll_unknown_option_id", poll_id=db_poll.id, option_id=entry.id)
                raise exc.PollOptionNotFoundException(option_id=entry.id)

    if poll_update_data.question is not None and poll_update_data.question != db_poll.question:
        logger.info("poll_update_question", poll_id=poll_id, old_value=db_poll.question, new_value=poll_update_data.question)
        db_poll.question = poll_update_data.question

    if end_date_set:
        db_poll.end_date = poll_update_data.end_date

    if poll_update_data.show_on_homepage is not None:
        db_poll.show_on_homepage = poll_update_data.show_on_homepage

    if poll_update_data.options is not None:
        _reconcile_options(db_poll, poll_update_data)

    try:
        db.commit()
        db.refresh(db_poll)
    except Exception as e:
        db.rollback()
        logger.error("db_update_poll_commit_error", poll_id=poll_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to update poll due to a database error.", code="DB_UPDATE_POLL_ERROR")

    logger.info("poll_updated", poll_id=poll_id, num_options=len(db_poll.options))
    return db_poll


def _reconcile_options(db_poll: Poll, poll_update_data: PollUpdate) -> None:
    existing_by_id: Dict[int, PollOption] = {opt.id: opt for opt in db_poll.options}
    claimed_ids = {entry.id for entry in poll_update_data.options if entry.id is not None}
    # Text lookup only over options nobody claimed by id
    unclaimed_by_text: Dict[str, PollOption] = {
        opt.option_text: opt for opt in db_poll.options if opt.id not in claimed_ids
    }

    kept: List[PollOption] = []
    for entry in poll_update_data.options:
        if entry.id is not None:
            option = existing_by_id[entry.id]
            if option.option_text != entry.option_text:
                logger.info("poll_option_renamed", poll_id=db_poll.id, option_id=option.id,
                            old_value=option.option_text, new_value=entry.option_text)
                option.option_text = entry.option_text
            kept.append(option)
        elif entry.option_text in unclaimed_by_text:
            kept.append(unclaimed_by_text.pop(entry.option_text))
        else:
            new_option = PollOption(option_text=entry.option_text, votes_count=0)
            db_poll.options.append(new_option)
            kept.append(new_option)
            logger.info("poll_option_added", poll_id=db_poll.id, option_text=entry.option_text)

    kept_ids = {id(opt) for opt in kept}
    for option in list(db_poll.options):
        if id(option) not in kept_ids:
            logger.info("poll_option_removed", poll_id=db_poll.id, option_id=option.id,
                        option_text=option.option_text, votes_lost=option.votes_count)
            # delete-orphan cascade removes the option, and its votes follow
            db_poll.options.remove(option)


def delete_poll(db: Session, poll_id: int) -> None:
    db_poll = db.query(Poll).filter(Poll.id == poll_id).first()
    if not db_poll:
        raise exc.PollNotFoundException(poll_id=poll_id)
    try:
        db.delete(db_poll)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("delete_poll_commit_error", poll_id=poll_id, error=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Error deleting poll.", code="POLL_DELETE_ERROR")
    logger.info("poll_deleted", poll_id=poll_id)


def finalize_poll(db: Session, poll_id: int) -> Poll:
    """Admin finalization. Irreversible; no votes are touched."""
    db_poll = db.query(Poll).filter(Poll.id == poll_id).first()
    if not db_poll:
        raise exc.PollNotFoundException(poll_id=poll_id)
    if db_poll.is_finalized:
        raise exc.PollAlreadyFinalizedException()

    _mark_finalized(db_poll)
    try:
        db.commit()
        db.refresh(db_poll)
    except Exception as e:
        db.rollback()
        logger.error("db_finalize_poll_error", poll_id=poll_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to finalize poll.", code="DB_FINALIZE_POLL_ERROR")
    logger.info("poll_finalized", poll_id=poll_id)
    return db_poll


def set_poll_active(db: Session, poll_id: int, is_active: bool) -> Poll:
    db_poll = get_poll_or_404(db, poll_id)
    if is_active and db_poll.is_finalized:
        logger.warning("poll_reactivation_denied", poll_id=poll_id)
        raise exc.PollAlreadyFinalizedException(detail="Finalized polls cannot be reopened.")

    db_poll.is_active = is_active
    try:
        db.commit()
        db.refresh(db_poll)
    except Exception as e:
        db.rollback()
        logger.error("db_toggle_poll_error", poll_id=poll_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to update poll status.", code="DB_TOGGLE_POLL_ERROR")
    logger.info("poll_active_toggled", poll_id=poll_id, is_active=is_active)
    return db_poll


def get_user_vote(db: Session, poll_id: int, user_id: int) -> Optional[PollVote]:
    if db.query(Poll.id).filter(Poll.id == poll_id).first() is None:
        raise exc.PollNotFoundException(poll_id=poll_id)
    return db.query(PollVote).filter(PollVote.poll_id == poll_id, PollVote.user_id == user_id).first()


def crud_vote_on_poll(db: Session, poll_id: int, option_id: int, user_id: int) -> Tuple[VoteAction, Poll, Optional[int]]:
    """
    Cast, switch or withdraw a user's vote.

    - no vote yet: create it, option +1                        -> created
    - vote on the same option: delete it, option -1 (floor 0)  -> removed
    - vote on another option: old -1 (floor 0), new +1, repoint -> updated

    The poll row is locked for the duration of the transaction, so the
    finalized/active checks still hold when the vote commits. The vote row
    and the counters commit or roll back together.

    Returns (action, poll, option id now holding the vote or None).
    """
    poll = db.query(Poll).filter(Poll.id == poll_id).with_for_update().first()
    if not poll:
        logger.warning("vote_attempt_poll_not_found", poll_id=poll_id)
        raise exc.PollNotFoundException(poll_id=poll_id)

    if finalize_if_expired(db, poll):
        raise exc.PollClosedException(detail="This poll has ended and no longer accepts votes.")
    if poll.is_finalized:
        raise exc.PollClosedException()
    if not poll.is_active:
        raise exc.PollInactiveException()

    option = db.get(PollOption, option_id)
    if option is None or option.poll_id != poll.id:
        logger.warning("vote_invalid_option_id", poll_id=poll_id, option_id=option_id)
        raise exc.PollOptionNotFoundException(option_id=option_id)

    existing_vote = (
        db.query(PollVote)
        .filter(PollVote.poll_id == poll.id, PollVote.user_id == user_id)
        .with_for_update()
        .first()
    )

    try:
        if existing_vote is None:
            db.add(PollVote(poll=poll, option=option, user_id=user_id))
            option.votes_count = (option.votes_count or 0) + 1
            action, current_option_id = VoteAction.created, option.id
        elif existing_vote.poll_option_id == option.id:
            db.delete(existing_vote)
            option.votes_count = max(0, (option.votes_count or 0) - 1)
            action, current_option_id = VoteAction.removed, None
        else:
            previous_option = db.get(PollOption, existing_vote.poll_option_id)
            if previous_option is not None:
                previous_option.votes_count = max(0, (previous_option.votes_count or 0) - 1)
            existing_vote.option = option
            option.votes_count = (option.votes_count or 0) + 1
            action, current_option_id = VoteAction.updated, option.id
        db.commit()
    except IntegrityError as e:
        # Another request from the same user inserted first
        db.rollback()
        logger.warning("vote_unique_conflict", poll_id=poll_id, user_id=user_id, error_message=str(e))
        raise exc.VoteConflictException()
    except Exception as e:
        db.rollback()
        logger.error("db_vote_on_poll_error", poll_id=poll_id, user_id=user_id, error_message=str(e), exc_info=True)
        raise exc.NephslairException(status_code=500, detail="Failed to record vote due to a database error.", code="DB_VOTE_ERROR")

    db.refresh(poll)
    logger.info("vote_processed_successfully", poll_id=poll_id, user_id=user_id, action=action.value, option_id=option_id)
    return action, poll, current_option_id
