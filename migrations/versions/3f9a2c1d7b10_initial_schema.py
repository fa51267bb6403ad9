"""initial_schema

Revision ID: 3f9a2c1d7b10
Revises:
Create Date: 2026-10-17 10:12:44.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a2c1d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False, unique=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        _timestamp('created_at'),
    )
    op.create_index('ix_projects_id', 'projects', ['id'])

    op.create_table(
        'posts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('author_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False, unique=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('upvotes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downvotes', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('published_at', nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index('ix_posts_id', 'posts', ['id'])
    op.create_index('ix_posts_project_id', 'posts', ['project_id'])
    op.create_index('ix_posts_author_id', 'posts', ['author_id'])
    op.create_index('ix_posts_status', 'posts', ['status'])

    op.create_table(
        'votes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vote_type', sa.String(length=10), nullable=False),
        _timestamp('created_at'),
        sa.UniqueConstraint('user_id', 'post_id', name='uq_post_vote_user_post'),
    )
    op.create_index('ix_votes_id', 'votes', ['id'])
    op.create_index('ix_votes_user_id', 'votes', ['user_id'])
    op.create_index('ix_votes_post_id', 'votes', ['post_id'])

    op.create_table(
        'polls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question', sa.String(length=500), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=True),
        sa.Column('show_on_homepage', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_standalone', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('end_date', nullable=True),
        sa.Column('is_finalized', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp('finalized_at', nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('ix_polls_id', 'polls', ['id'])
    op.create_index('ix_polls_project_id', 'polls', ['project_id'])
    op.create_index('ix_polls_post_id', 'polls', ['post_id'])
    op.create_index('ix_polls_show_on_homepage', 'polls', ['show_on_homepage'])
    op.create_index('ix_polls_is_active', 'polls', ['is_active'])
    op.create_index('ix_polls_end_date', 'polls', ['end_date'])

    op.create_table(
        'poll_options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('poll_id', sa.Integer(), sa.ForeignKey('polls.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_text', sa.String(length=255), nullable=False),
        sa.Column('votes_count', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
    )
    op.create_index('ix_poll_options_id', 'poll_options', ['id'])
    op.create_index('ix_poll_options_poll_id', 'poll_options', ['poll_id'])

    op.create_table(
        'poll_votes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('poll_id', sa.Integer(), sa.ForeignKey('polls.id', ondelete='CASCADE'), nullable=False),
        sa.Column('poll_option_id', sa.Integer(), sa.ForeignKey('poll_options.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        _timestamp('created_at'),
        sa.UniqueConstraint('poll_id', 'user_id', name='uq_poll_vote_poll_user'),
    )
    op.create_index('ix_poll_votes_id', 'poll_votes', ['id'])
    op.create_index('ix_poll_votes_poll_option_id', 'poll_votes', ['poll_option_id'])
    op.create_index('ix_poll_votes_user_id', 'poll_votes', ['user_id'])

    op.create_table(
        'releases',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.String(length=50), nullable=False),
        sa.Column('release_notes', sa.Text(), nullable=True),
        _timestamp('release_date'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index('ix_releases_id', 'releases', ['id'])
    op.create_index('ix_releases_project_id', 'releases', ['project_id'])

    op.create_table(
        'release_files',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('release_id', sa.Integer(), sa.ForeignKey('releases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_url', sa.String(length=500), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        _timestamp('created_at'),
    )
    op.create_index('ix_release_files_id', 'release_files', ['id'])
    op.create_index('ix_release_files_release_id', 'release_files', ['release_id'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('upvotes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('downvotes', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
    )
    op.create_index('ix_comments_id', 'comments', ['id'])
    op.create_index('ix_comments_post_id', 'comments', ['post_id'])
    op.create_index('ix_comments_user_id', 'comments', ['user_id'])
    op.create_index('ix_comments_parent_id', 'comments', ['parent_id'])
    op.create_index('ix_comments_post_parent', 'comments', ['post_id', 'parent_id'])

    op.create_table(
        'comment_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('comment_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        _timestamp('edited_at'),
    )
    op.create_index('ix_comment_history_id', 'comment_history', ['id'])
    op.create_index('ix_comment_history_comment_id', 'comment_history', ['comment_id'])

    op.create_table(
        'comment_votes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('comment_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vote_type', sa.String(length=10), nullable=False),
        _timestamp('created_at'),
        sa.UniqueConstraint('user_id', 'comment_id', name='unique_user_comment_vote'),
    )
    op.create_index('ix_comment_votes_id', 'comment_votes', ['id'])
    op.create_index('ix_comment_votes_user_id', 'comment_votes', ['user_id'])
    op.create_index('ix_comment_votes_comment_id', 'comment_votes', ['comment_id'])

    op.create_table(
        'post_polls',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('poll_id', sa.Integer(), sa.ForeignKey('polls.id', ondelete='CASCADE'), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        sa.UniqueConstraint('post_id', 'poll_id', name='unique_post_poll'),
    )
    op.create_index('ix_post_polls_id', 'post_polls', ['id'])
    op.create_index('ix_post_polls_poll_id', 'post_polls', ['poll_id'])

    op.create_table(
        'post_releases',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('post_id', sa.Integer(), sa.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('release_id', sa.Integer(), sa.ForeignKey('releases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        sa.UniqueConstraint('post_id', 'release_id', name='unique_post_release'),
    )
    op.create_index('ix_post_releases_id', 'post_releases', ['id'])
    op.create_index('ix_post_releases_release_id', 'post_releases', ['release_id'])


def downgrade() -> None:
    # Children before parents
    for table in (
        'post_releases', 'post_polls', 'comment_votes', 'comment_history', 'comments',
        'release_files', 'releases', 'poll_votes', 'poll_options', 'polls', 'votes',
        'posts', 'projects', 'users',
    ):
        op.drop_table(table)
