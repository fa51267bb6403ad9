from pydantic import BaseModel, Field, validator
from typing import Generic, List, Optional, Set, TypeVar, Union
from datetime import datetime
from enum import Enum

from core.timeutils import as_utc

DataT = TypeVar("DataT")

# --- Response envelope ---
class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[DataT] = None

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None


class VoteAction(str, Enum):
    created = "created"
    removed = "removed"
    updated = "updated"

class VoteType(str, Enum):
    upvote = "upvote"
    downvote = "downvote"


def _strip_required(value: str, label: str) -> str:
    if not value.strip():
        raise ValueError(f'{label} cannot be empty or only whitespace.')
    return value.strip()


# --- Users ---
class UserSummary(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True


# --- Poll Option Schemas ---
class PollOptionPublic(BaseModel):
    id: int
    option_text: str
    votes_count: int = Field(0, ge=0)

    class Config:
        from_attributes = True

class PollOptionInput(BaseModel):
    """
    One entry of the option list sent on update.

    With an id the existing option keeps its identity (and votes) even if the
    text changes. Without an id the option is matched to an existing one by
    text, or created fresh.
    """
    id: Optional[int] = None
    option_text: str = Field(..., min_length=1, max_length=255)

    @validator('option_text')
    def option_text_must_not_be_blank(cls, value):
        return _strip_required(value, 'Option text')


def _check_unique_texts(texts: List[str]) -> None:
    seen: Set[str] = set()
    for text in texts:
        normalized = text.lower()
        if normalized in seen:
            raise ValueError('Option texts must be unique within a poll (case-insensitive).')
        seen.add(normalized)


# --- Poll Schemas ---
class PollCreate(BaseModel):
    question: str = Field(..., min_length=3, max_length=500)
    options: List[str] = Field(..., min_length=2, max_length=20, description="2 to 20 option texts.")
    project_id: Optional[int] = None
    post_id: Optional[int] = None
    end_date: Optional[datetime] = Field(None, description="Poll closes automatically after this instant (UTC if no offset).")
    show_on_homepage: bool = False
    is_standalone: bool = True

    @validator('question')
    def question_must_not_be_blank(cls, value):
        return _strip_required(value, 'Question')

    @validator('options')
    def options_must_not_be_blank(cls, value):
        cleaned = [_strip_required(text, 'Option text') for text in value]
        for text in cleaned:
            if len(text) > 255:
                raise ValueError('Option text must be at most 255 characters.')
        _check_unique_texts(cleaned)
        return cleaned

    @validator('end_date')
    def normalize_end_date(cls, value):
        return as_utc(value)


class PollUpdate(BaseModel):
    question: Optional[str] = Field(None, min_length=3, max_length=500)
    options: Optional[List[Union[PollOptionInput, str]]] = Field(None, min_length=2, max_length=20)
    end_date: Optional[datetime] = None
    show_on_homepage: Optional[bool] = None

    @validator('question')
    def question_update_must_not_be_blank(cls, value):
        if value is not None:
            return _strip_required(value, 'Question')
        return value

    @validator('options')
    def normalize_options(cls, value):
        if value is None:
            return value
        normalized = [
            item if isinstance(item, PollOptionInput) else PollOptionInput(option_text=item)
            for item in value
        ]
        _check_unique_texts([item.option_text for item in normalized])
        ids = [item.id for item in normalized if item.id is not None]
        if len(ids) != len(set(ids)):
            raise ValueError('An option id may appear only once.')
        return normalized

    @validator('end_date')
    def normalize_end_date(cls, value):
        return as_utc(value)


class PollToggleRequest(BaseModel):
    is_active: bool


class PollPublic(BaseModel):
    id: int
    question: str
    project_id: Optional[int] = None
    post_id: Optional[int] = None
    show_on_homepage: bool
    is_standalone: bool
    is_active: bool
    end_date: Optional[datetime] = None
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    is_closed: bool
    total_votes: int
    created_at: datetime
    options: List[PollOptionPublic] = []

    class Config:
        from_attributes = True


class PollVoteRequest(BaseModel):
    poll_option_id: int


class PollVoteResult(BaseModel):
    action: VoteAction
    poll_option_id: Optional[int] = Field(None, description="The option now holding the user's vote, null after a toggle-off.")
    poll: PollPublic


class MyPollVote(BaseModel):
    voted: bool
    poll_option_id: Optional[int] = None


# --- Comment Schemas ---
class CommentCreate(BaseModel):
    post_id: int
    parent_id: Optional[int] = None
    content: str = Field(..., min_length=1, max_length=10000)

    @validator('content')
    def content_must_not_be_blank(cls, value):
        return _strip_required(value, 'Content')


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @validator('content')
    def content_update_must_not_be_blank(cls, value):
        return _strip_required(value, 'Content')


class CommentPublic(BaseModel):
    id: int
    post_id: int
    parent_id: Optional[int] = None
    content: str
    is_deleted: bool
    upvotes: int
    downvotes: int
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class CommentThreadEntry(CommentPublic):
    """
    One comment of a post's thread in display order.

    The thread is sent flat: roots newest first, each followed by its replies
    (oldest first, recursively). `depth` is 0 for roots and `reply_ids` lists
    the direct replies, so clients rebuild the tree without nested JSON.
    """
    depth: int = 0
    reply_ids: List[int] = []


class CommentHistoryEntry(BaseModel):
    id: int
    comment_id: int
    content: str
    edited_at: datetime

    class Config:
        from_attributes = True


class VoteRequest(BaseModel):
    vote_type: VoteType


class VoteTallyResult(BaseModel):
    action: VoteAction
    vote_type: Optional[VoteType] = Field(None, description="The user's vote after this request, null after a toggle-off.")
    upvotes: int
    downvotes: int


class MyPostVote(BaseModel):
    voted: bool
    vote_type: Optional[VoteType] = None


# --- Post attachment Schemas ---
class AttachmentRequest(BaseModel):
    display_order: int = Field(0, ge=0)


class AttachedPoll(PollPublic):
    display_order: int


class ReleaseFilePublic(BaseModel):
    id: int
    file_name: str
    file_url: str
    file_size: Optional[int] = None

    class Config:
        from_attributes = True


class ReleasePublic(BaseModel):
    id: int
    project_id: int
    version: str
    release_notes: Optional[str] = None
    release_date: datetime
    is_published: bool
    files: List[ReleaseFilePublic] = []

    class Config:
        from_attributes = True


class AttachedRelease(ReleasePublic):
    display_order: int


class PostAttachmentLink(BaseModel):
    post_id: int
    child_id: int
    display_order: int
