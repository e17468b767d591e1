import itertools
import os
from datetime import datetime, timedelta

# In-memory SQLite and console-only logging unless the caller says otherwise.
# Must happen before db/main are imported.
os.environ.setdefault("TEST_SQLITE", "1")
os.environ.setdefault("LOG_FILE", "")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session as _Session  # noqa: E402

import db as dbmod  # noqa: E402
from db import engine  # noqa: E402
from gallerydesk.core.clock import utcnow  # noqa: E402
from gallerydesk.models import Account, AccountSession, Base, Gallery  # noqa: E402
from main import app  # noqa: E402

if os.getenv("TEST_SQLITE") == "1":
    Base.metadata.create_all(bind=engine)

_seq = itertools.count(1)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    """Session bound to an outer transaction that is rolled back at teardown.

    ``commit()`` inside the code under test only releases a SAVEPOINT, so
    services can commit and roll back freely while each test stays isolated.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = _Session(bind=connection, join_transaction_mode="create_savepoint")

    # expose to db.get_db
    dbmod._TEST_SESSION = session
    try:
        yield session
    finally:
        dbmod._TEST_SESSION = None
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture
def make_account(db_session):
    def _make(username=None, plan="free", email=None):
        n = next(_seq)
        username = username or f"owner{n}"
        account = Account(
            Username=username,
            Email=email or f"{username}.{n}@example.test",
            PlanKey=plan,
            IsActive=True,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def make_gallery(db_session):
    """Insert a gallery row directly, bypassing quota checks."""

    def _make(account, title=None, event_date=None, archived=False, deleted_at=None, **cols):
        n = next(_seq)
        g = Gallery(
            UserID=account.UserID,
            Title=title or f"Gallery {n}",
            Slug=f"{account.Username}/fixture/{n}",
            EventDate=event_date or datetime(2025, 1, 1) + timedelta(days=n),
            IsArchived=archived,
            IsDeleted=deleted_at is not None,
            DeletedAt=deleted_at,
            **cols,
        )
        db_session.add(g)
        db_session.commit()
        return g

    return _make


@pytest.fixture
def login(db_session, client):
    def _login(account):
        sess = AccountSession(
            UserID=account.UserID,
            ExpiresAt=utcnow() + timedelta(days=1),
            IsActive=True,
        )
        db_session.add(sess)
        db_session.commit()
        client.cookies.set("session_id", sess.SessionID)
        return sess

    return _login
