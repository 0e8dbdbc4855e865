import os
import tempfile
from datetime import datetime, timedelta, timezone

# Point the app at a throwaway SQLite file before anything imports database.py
_TEST_DB_DIR = tempfile.mkdtemp(prefix="pds-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-0123456789")

import pytest

import models
from database import Base, SessionLocal, engine
from documents import DocumentRepository
from link_service import LinkService
from link_store import ShareLinkStore
from purge import CachePurger, PurgeBackend

SITE_URL = "https://drafts.example.test"


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingBackend(PurgeBackend):
    name = "recording"

    def __init__(self, fail=False):
        self.purged = []
        self.flushed = 0
        self.fail = fail

    def purge(self, url, timeout):
        if self.fail:
            raise RuntimeError("cache backend down")
        self.purged.append(url)
        return True

    def flush(self, timeout):
        self.flushed += 1
        return True


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def purge_backend():
    return RecordingBackend()


@pytest.fixture
def purger(purge_backend):
    return CachePurger([purge_backend], timeout=0.5)


@pytest.fixture
def owner(db):
    user = models.User(username="author", email="author@example.test", password_hash="x")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_document(db, owner, clock):
    def _make(status="draft", post_type="post", title="Draft title", content="Draft body", parent_id=None):
        document = models.Document(
            owner_id=owner.id,
            title=title,
            content=content,
            post_type=post_type,
            status=status,
            parent_id=parent_id,
            modified_at=clock(),
        )
        db.add(document)
        db.commit()
        return document
    return _make


@pytest.fixture
def service(db, purger, clock):
    return LinkService(
        ShareLinkStore(db),
        DocumentRepository(db),
        purger=purger,
        clock=clock,
        site_url=SITE_URL,
    )
