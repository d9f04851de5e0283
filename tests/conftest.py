# tests/conftest.py
import os

# Set up test environment variables BEFORE any other imports
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("CIVIL_TIMEZONE", "Asia/Singapore")

from datetime import datetime, timedelta, timezone

import pytest

from app.database import create_db_engine, create_session_factory, init_db
from app.domains.holiday.service import HolidayService
from app.domains.subtask.service import SubtaskService
from app.domains.tag.service import TagService
from app.domains.template.service import TemplateService
from app.domains.todo.service import TodoService
from app.domains.transfer.service import TransferService
from models import Base
from tests.factories import SubtaskFactory, TagFactory, TodoFactory

OWNER_ID = 1
OTHER_OWNER_ID = 2


@pytest.fixture
def engine():
    """A fresh in-memory database per test."""
    engine = create_db_engine("sqlite://", echo=False)
    init_db(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def test_db(engine):
    """Create a test database session."""
    TestSessionLocal = create_session_factory(engine)
    session = TestSessionLocal()
    for factory_class in (TodoFactory, TagFactory, SubtaskFactory):
        factory_class._meta.sqlalchemy_session = session
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def other_owner_id():
    return OTHER_OWNER_ID


@pytest.fixture
def todo_service(test_db):
    return TodoService(test_db)


@pytest.fixture
def tag_service(test_db):
    return TagService(test_db)


@pytest.fixture
def subtask_service(test_db):
    return SubtaskService(test_db)


@pytest.fixture
def template_service(test_db):
    return TemplateService(test_db)


@pytest.fixture
def transfer_service(test_db):
    return TransferService(test_db)


@pytest.fixture
def holiday_service(test_db):
    return HolidayService(test_db)


@pytest.fixture
def tomorrow():
    """An instant comfortably in the future."""
    return (datetime.now(timezone.utc) + timedelta(days=1)).replace(microsecond=0)


@pytest.fixture
def test_todo(test_db, owner_id, tomorrow):
    """Create a test todo."""
    return TodoFactory.create(user_id=owner_id, priority="high", due_date=tomorrow)


@pytest.fixture
def test_tag(test_db, owner_id):
    """Create a test tag."""
    return TagFactory.create(user_id=owner_id, name="Work", color="#FF5733")


@pytest.fixture
def test_todo_with_subtasks(test_db, test_todo):
    """Create a todo with three subtasks at positions 1..3."""
    for position in (1, 2, 3):
        SubtaskFactory.create(todo_id=test_todo.id, title=f"Step {position}", position=position)
    return test_todo
