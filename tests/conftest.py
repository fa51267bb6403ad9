"""
Shared fixtures.

The app runs against an in-memory SQLite database. Every test gets fresh
tables and a single session that both the test and the request handlers use.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("REDIS_URL", None)

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from core.limiter_config import limiter
from core.security import create_access_token
from core.timeutils import utcnow
from database import Base, SessionLocal, engine, get_db
from main import app
from models import Poll, PollOption, Post, Project, Release, ReleaseFile, User


@pytest.fixture(autouse=True)
def db():
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    session = SessionLocal()

    def _override_get_db():
        yield session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        app.dependency_overrides.clear()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


def _make_user(db, username, role="user"):
    user = User(username=username, email=f"{username}@example.com", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user, **kwargs):
    return {"Authorization": f"Bearer {create_access_token(user.id, **kwargs)}"}


@pytest.fixture
def user(db):
    return _make_user(db, "reader")


@pytest.fixture
def other_user(db):
    return _make_user(db, "lurker")


@pytest.fixture
def admin(db):
    return _make_user(db, "nephslair", role="admin")


@pytest.fixture
def user_headers(user):
    return bearer(user)


@pytest.fixture
def other_headers(other_user):
    return bearer(other_user)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def project(db):
    project = Project(name="Starfall", slug="starfall", description="A game about falling stars.")
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@pytest.fixture
def post(db, admin, project):
    post = Post(
        project_id=project.id,
        author_id=admin.id,
        title="Devlog #1",
        slug="devlog-1",
        content="First devlog.",
        published_at=utcnow(),
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


@pytest.fixture
def make_poll(db):
    """Insert a poll directly, bypassing API validation (e.g. for past end dates)."""
    def _make(options=("Red", "Green", "Blue"), question="Favourite colour?", **fields):
        poll = Poll(question=question, **fields)
        for text in options:
            poll.options.append(PollOption(option_text=text, votes_count=0))
        db.add(poll)
        db.commit()
        db.refresh(poll)
        return poll
    return _make


@pytest.fixture
def poll(make_poll):
    return make_poll()


@pytest.fixture
def expired_poll(make_poll):
    return make_poll(question="Was it fun?", options=("Yes", "No"), end_date=utcnow() - timedelta(hours=1))


@pytest.fixture
def release(db, project):
    release = Release(project_id=project.id, version="1.0.0", release_notes="Launch build.")
    release.files.append(ReleaseFile(file_name="starfall-win.zip", file_url="/downloads/starfall-win.zip", file_size=1024))
    release.files.append(ReleaseFile(file_name="starfall-linux.tar.gz", file_url="/downloads/starfall-linux.tar.gz"))
    db.add(release)
    db.commit()
    db.refresh(release)
    return release


@pytest.fixture
def failing_commit(db, monkeypatch):
    """
    Make the shared session's commits fail after flushing, so the pending
    changes really reach the database and have to be rolled back.
    """
    def _arm(error):
        def _commit():
            db.flush()
            raise error
        monkeypatch.setattr(db, "commit", _commit)
    return _arm
