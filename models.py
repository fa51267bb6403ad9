from sqlalchemy import Column, String, Boolean, Integer, ForeignKey, DateTime, UniqueConstraint, Text, Index
from sqlalchemy.orm import relationship
from database import Base
from core.timeutils import utcnow, as_utc


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="user")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="published")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    posts = relationship("Post", back_populates="project")
    polls = relationship("Poll", back_populates="project", cascade="all, delete")
    releases = relationship("Release", back_populates="project", cascade="all, delete")


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    content = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="published", index=True)
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    project = relationship("Project", back_populates="posts")
    author = relationship("User")
    comments = relationship("Comment", back_populates="post", cascade="all, delete")
    votes = relationship("PostVote", back_populates="post", cascade="all, delete")
    poll_links = relationship("PostPoll", back_populates="post", cascade="all, delete")
    release_links = relationship("PostRelease", back_populates="post", cascade="all, delete")


class PostVote(Base):
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    vote_type = Column(String(10), nullable=False) # "upvote" | "downvote"
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    post = relationship("Post", back_populates="votes")

    __table_args__ = (UniqueConstraint('user_id', 'post_id', name='uq_post_vote_user_post'),)


class Poll(Base):
    __tablename__ = "polls"

    id = Column(Integer, primary_key=True, index=True)
    question = Column(String(500), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=True, index=True)
    show_on_homepage = Column(Boolean, nullable=False, default=False, index=True)
    is_standalone = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    end_date = Column(DateTime(timezone=True), nullable=True, index=True) # None = never expires
    is_finalized = Column(Boolean, nullable=False, default=False) # terminal
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    project = relationship("Project", back_populates="polls")
    options = relationship(
        "PollOption", back_populates="poll", cascade="all, delete-orphan", order_by="PollOption.id"
    )
    votes = relationship("PollVote", back_populates="poll", cascade="all, delete")
    post_links = relationship("PostPoll", back_populates="poll", cascade="all, delete")

    def is_expired(self, now=None) -> bool:
        """True once end_date has passed, whether or not finalization was persisted yet."""
        if self.end_date is None:
            return False
        return as_utc(self.end_date) < (now or utcnow())

    def is_closed_at(self, now=None) -> bool:
        return bool(self.is_finalized) or not self.is_active or self.is_expired(now)

    @property
    def is_closed(self) -> bool:
        return self.is_closed_at()

    @property
    def total_votes(self) -> int:
        return sum(option.votes_count or 0 for option in self.options)


class PollOption(Base):
    __tablename__ = "poll_options"

    id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    option_text = Column(String(255), nullable=False)
    # Denormalized; changed only in the same transaction as the PollVote rows it mirrors
    votes_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    poll = relationship("Poll", back_populates="options")
    votes = relationship("PollVote", back_populates="option", cascade="all, delete")


class PollVote(Base):
    __tablename__ = "poll_votes"

    id = Column(Integer, primary_key=True, index=True)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    poll_option_id = Column(Integer, ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    poll = relationship("Poll", back_populates="votes")
    option = relationship("PollOption", back_populates="votes")

    # One vote per user per poll
    __table_args__ = (UniqueConstraint('poll_id', 'user_id', name='uq_poll_vote_poll_user'),)


class Release(Base):
    __tablename__ = "releases"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String(50), nullable=False)
    release_notes = Column(Text, nullable=True)
    release_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    project = relationship("Project", back_populates="releases")
    files = relationship(
        "ReleaseFile", back_populates="release", cascade="all, delete-orphan", order_by="ReleaseFile.id"
    )
    post_links = relationship("PostRelease", back_populates="release", cascade="all, delete")


class ReleaseFile(Base):
    __tablename__ = "release_files"

    id = Column(Integer, primary_key=True, index=True)
    release_id = Column(Integer, ForeignKey("releases.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    release = relationship("Release", back_populates="files")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    post = relationship("Post", back_populates="comments")
    user = relationship("User")
    parent = relationship("Comment", remote_side=[id])
    history = relationship(
        "CommentHistory", back_populates="comment", cascade="all, delete-orphan",
        order_by="CommentHistory.edited_at.desc()"
    )
    votes = relationship("CommentVote", back_populates="comment", cascade="all, delete")


class CommentHistory(Base):
    """Append-only snapshot of a comment's content taken right before an edit."""
    __tablename__ = "comment_history"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    edited_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    comment = relationship("Comment", back_populates="history")


class CommentVote(Base):
    __tablename__ = "comment_votes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True)
    vote_type = Column(String(10), nullable=False) # "upvote" | "downvote"
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    comment = relationship("Comment", back_populates="votes")

    __table_args__ = (UniqueConstraint('user_id', 'comment_id', name='unique_user_comment_vote'),)


class PostPoll(Base):
    __tablename__ = "post_polls"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    poll_id = Column(Integer, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    post = relationship("Post", back_populates="poll_links")
    poll = relationship("Poll", back_populates="post_links")

    __table_args__ = (UniqueConstraint('post_id', 'poll_id', name='unique_post_poll'),)


class PostRelease(Base):
    __tablename__ = "post_releases"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    release_id = Column(Integer, ForeignKey("releases.id", ondelete="CASCADE"), nullable=False, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    post = relationship("Post", back_populates="release_links")
    release = relationship("Release", back_populates="post_links")

    __table_args__ = (UniqueConstraint('post_id', 'release_id', name='unique_post_release'),)


Index("ix_comments_post_parent", Comment.post_id, Comment.parent_id)
