"""
Service integration tests.

These tests drive several services against one session the way an embedding
application would: a todo is built up with tags and subtasks, exported, and
imported for another owner; a database file on disk is used to check that
cascades hold at the engine level too.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, text

from app.database import atomic, create_db_engine, create_session_factory, init_db
from app.domains.subtask.service import SubtaskService
from app.domains.tag.service import TagService
from app.domains.todo.service import TodoService
from app.domains.transfer.service import TransferService
from app.schemas.subtask import SubtaskCreate, SubtaskProgress
from app.schemas.tag import TagCreate
from app.schemas.template import TemplateCreate, TemplateSubtaskDefinition
from app.schemas.todo import TodoCreate
from models import Subtask, Todo, todo_tags


class TestServiceIntegration:
    """Integration tests for service interactions."""

    def test_report_workflow(self, todo_service, tag_service, subtask_service, owner_id):
        tomorrow_9am = (datetime.now(timezone.utc) + timedelta(days=1)).replace(
            hour=1, minute=0, second=0, microsecond=0
        )
        if tomorrow_9am <= datetime.now(timezone.utc) + timedelta(minutes=1):
            tomorrow_9am += timedelta(days=1)

        todo = todo_service.create_todo(
            TodoCreate(title="Ship report", priority="high", due_date=tomorrow_9am), owner_id
        )
        work = tag_service.create_tag(TagCreate(name="Work", color="#3366ff"), owner_id)
        tag_service.attach_tag(todo.id, work.id, owner_id)

        draft, _ = subtask_service.create_subtask(todo.id, owner_id, SubtaskCreate(title="Draft", position=1))
        review, _ = subtask_service.create_subtask(todo.id, owner_id, SubtaskCreate(title="Review", position=2))

        progress = subtask_service.delete_subtask(draft.id, owner_id)

        assert progress == SubtaskProgress(completed=0, total=1, percent=0)
        subtasks, _ = subtask_service.list_subtasks(todo.id, owner_id)
        assert [(s.id, s.position) for s in subtasks] == [(review.id, 1)]

        response = todo_service.build_response(todo_service.get_todo_or_404(todo.id, owner_id))
        assert [t.name for t in response.tags] == ["Work"]
        assert response.tags[0].color == "#3366FF"
        assert response.progress.total == 1

    def test_export_then_import_preserves_graph(
        self, todo_service, tag_service, subtask_service, template_service, transfer_service,
        owner_id, other_owner_id,
    ):
        home = tag_service.create_tag(TagCreate(name="Home", color="#00AA00"), owner_id)
        template = template_service.create_template(
            TemplateCreate(
                name="Chores",
                todo_title="Weekend chores",
                priority="low",
                recurrence_pattern="weekly",
                due_offset_days=2,
                tag_ids=[home.id],
                subtasks=[
                    TemplateSubtaskDefinition(title="Laundry", position=1),
                    TemplateSubtaskDefinition(title="Vacuum", position=2),
                ],
            ),
            owner_id,
        )
        template_service.use_template(template.id, owner_id)
        todo_service.create_todo(TodoCreate(title="Call mum", priority="high"), owner_id)

        def shape(user_id):
            todos = todo_service.get_todos_list(user_id)
            return sorted(
                (
                    t.title,
                    t.priority,
                    tuple(s.title for s in t.subtasks),
                    tuple(sorted(tag.name for tag in t.tags)),
                )
                for t in todos
            )

        transfer_service.import_json(other_owner_id, transfer_service.export_json(owner_id))

        assert shape(other_owner_id) == shape(owner_id)
        assert [t.name for t in tag_service.list_tags(other_owner_id)] == ["Home"]


class TestEngineLevelCascades:
    @pytest.fixture
    def file_session(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'todos.db'}", echo=False)
        init_db(engine)
        session = create_session_factory(engine)()
        yield session
        session.close()
        engine.dispose()

    def test_foreign_keys_enabled(self, file_session):
        assert file_session.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_raw_delete_cascades(self, file_session, owner_id):
        todos = TodoService(file_session)
        tags = TagService(file_session)
        subtasks = SubtaskService(file_session)

        todo = todos.create_todo(TodoCreate(title="Raw"), owner_id)
        tag = tags.create_tag(TagCreate(name="Raw", color="#123456"), owner_id)
        tags.attach_tag(todo.id, tag.id, owner_id)
        subtasks.create_subtask(todo.id, owner_id, SubtaskCreate(title="Child"))
        todo_id = todo.id

        with atomic(file_session):
            file_session.execute(text("DELETE FROM todos WHERE id = :id"), {"id": todo_id})

        assert file_session.execute(select(func.count(Subtask.id))).scalar() == 0
        assert file_session.execute(select(func.count()).select_from(todo_tags)).scalar() == 0

    def test_atomic_rolls_back_everything(self, file_session, owner_id):
        todos = TodoService(file_session)

        with pytest.raises(RuntimeError):
            with atomic(file_session):
                todos.create_todo(TodoCreate(title="First"), owner_id)
                todos.create_todo(TodoCreate(title="Second"), owner_id)
                raise RuntimeError("abort")

        assert file_session.execute(select(func.count(Todo.id))).scalar() == 0
