# tests/conftest.py
"""
Pytest configuration and fixtures.
"""

import os
import uuid
from datetime import datetime, timedelta

import pytest

# Set test environment before any package import touches the database module
os.environ.setdefault("TESTING", "1")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

# Fixed "now" shared by store-backed tests
NOW = datetime(2026, 6, 1, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db_session():
    """Fresh in-memory SQLite database per test."""
    from companion_lifecycle import models  # noqa: F401
    from companion_lifecycle.database import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(db_session):
    from companion_lifecycle.store.sqlalchemy_store import SqlAlchemyRecordStore

    return SqlAlchemyRecordStore(db_session)


@pytest.fixture
def make_conversation(db_session):
    """Insert a conversation. Defaults to an unflagged record eligible for archiving."""
    from companion_lifecycle.models import Conversation

    def _make(
        subject_id=None,
        transcript="we talked about the garden",
        sentiment="neu",
        legal_basis="legitimate_interest",
        retention_category="family_monitoring",
        flagged_for_safeguarding=False,
        created_at=None,
        archive_after=None,
        delete_after=None,
        is_archived=False,
        anonymized_at=None,
    ):
        conversation = Conversation(
            id=uuid.uuid4(),
            subject_id=subject_id or uuid.uuid4(),
            transcript=transcript,
            sentiment=sentiment,
            legal_basis=legal_basis,
            retention_category=retention_category,
            flagged_for_safeguarding=flagged_for_safeguarding,
            created_at=created_at or NOW - timedelta(days=400),
            archive_after=archive_after or NOW - timedelta(days=1),
            delete_after=delete_after,
            is_archived=is_archived,
            anonymized_at=anonymized_at,
        )
        db_session.add(conversation)
        db_session.commit()
        return conversation

    return _make


@pytest.fixture
def make_archive(db_session):
    """Insert an archive copy directly."""
    from companion_lifecycle.models import ArchivedConversation

    def _make(
        subject_id=None,
        original_id=None,
        delete_after=None,
        flagged_for_safeguarding=False,
        legal_basis="legitimate_interest",
        retention_category="family_monitoring",
        transcript="we talked about the garden",
        last_notified_at=None,
    ):
        archive = ArchivedConversation(
            id=uuid.uuid4(),
            original_id=original_id or uuid.uuid4(),
            subject_id=subject_id or uuid.uuid4(),
            transcript=transcript,
            sentiment="neu",
            legal_basis=legal_basis,
            retention_category=retention_category,
            flagged_for_safeguarding=flagged_for_safeguarding,
            contains_health_data=False,
            original_created_at=NOW - timedelta(days=800),
            archived_at=NOW - timedelta(days=400),
            delete_after=delete_after,
            last_notified_at=last_notified_at,
        )
        db_session.add(archive)
        db_session.commit()
        return archive

    return _make


@pytest.fixture
def make_person(db_session):
    """Insert a person, optionally linked as a contact of a subject."""
    from companion_lifecycle.models import Person, SubjectContact

    def _make(name="Test Person", phone_number=None, contact_of=None, person_id=None):
        person = Person(id=person_id or uuid.uuid4(), name=name, phone_number=phone_number)
        db_session.add(person)
        db_session.flush()
        if contact_of is not None:
            db_session.add(SubjectContact(subject_id=contact_of, contact_id=person.id))
        db_session.commit()
        return person

    return _make


@pytest.fixture
def make_erasure_request(db_session):
    from companion_lifecycle.models import ErasureRequest

    def _make(subject_id, status="pending"):
        request = ErasureRequest(id=uuid.uuid4(), subject_id=subject_id, status=status)
        db_session.add(request)
        db_session.commit()
        return request

    return _make
