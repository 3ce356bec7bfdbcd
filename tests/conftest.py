import os
import re
import sys

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Settings are read at import time, so the test environment goes in first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from schoolbridge.application.use_cases.sessions import open_session
from schoolbridge.domain.entities import Provider
from schoolbridge.infrastructure.db import SessionLocal, engine
from schoolbridge.infrastructure.mailer import EmailDeliveryError, get_email_sender
from schoolbridge.infrastructure.models import Base, SchoolORM, UserORM
from schoolbridge.infrastructure.security import PasswordHasher
from schoolbridge.interfaces.http.authz import get_token_service
from schoolbridge.main import app

PASSWORD = "Secret123"
TOKEN_IN_LINK = re.compile(r"token=([0-9a-f]{64})")


class FakeEmailSender:
    """Collects outgoing mail; addresses in ``fail_for`` raise like a dead SMTP server."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, to, subject, text, html=None):
        if to in self.fail_for:
            raise EmailDeliveryError("SMTP connection refused")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})

    def token_for(self, email):
        for message in reversed(self.sent):
            if message["to"] == email:
                return TOKEN_IN_LINK.search(message["text"]).group(1)
        raise AssertionError(f"no mail sent to {email}")


@pytest.fixture
def tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def outbox():
    sender = FakeEmailSender()
    app.dependency_overrides[get_email_sender] = lambda: sender
    yield sender
    app.dependency_overrides.pop(get_email_sender, None)


@pytest.fixture
def client(tables, outbox):
    # not used as a context manager: no lifespan, so no scheduler thread
    yield TestClient(app)


@pytest.fixture
def school(db):
    row = SchoolORM(name="Springfield Elementary", grade_system="letter", timezone="UTC")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def make_user(db):
    """Factory: insert an active email/password user and return it."""
    hasher = PasswordHasher()

    def _make(email, role, school_id=None, password=PASSWORD, is_active=True, **extra):
        user = UserORM(
            email=email,
            password_hash=hasher.hash(password) if password else None,
            full_name=extra.pop("full_name", email.split("@")[0].title()),
            role=role,
            provider=Provider.EMAIL.value,
            is_verified=True,
            is_active=is_active,
            school_id=school_id,
            **extra,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def headers_for(db):
    """Factory: open a real session for ``user`` and return its bearer header."""
    tokens = get_token_service()

    def _headers(user):
        pair = open_session(db, tokens, user)
        db.commit()
        return {"Authorization": f"Bearer {pair.access_token}"}

    return _headers


@pytest.fixture
def superadmin(make_user):
    return make_user("root@schoolbridge.edu", "SuperAdmin")


@pytest.fixture
def admin(make_user, school):
    return make_user("principal@school.edu", "Admin", school_id=school.id)


@pytest.fixture
def teacher(make_user, school):
    return make_user("teacher@school.edu", "Teacher", school_id=school.id)


@pytest.fixture
def student(make_user, school):
    return make_user("student@school.edu", "Student", school_id=school.id, student_id="S-001")
