"""Unit tests for TransferService export/import."""

import csv
import io
import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.config import settings
from app.exceptions.base import ValidationError
from app.exceptions.transfer import UnsupportedVersionError
from app.schemas.snapshot import Snapshot
from models import Subtask, Tag, Todo, todo_tags
from tests.factories import SubtaskFactory, TagFactory, TodoFactory


def count(session, model) -> int:
    return session.execute(select(func.count(model.id))).scalar()


def link_count(session) -> int:
    return session.execute(select(func.count()).select_from(todo_tags)).scalar()


@pytest.fixture
def populated(test_db, owner_id):
    """Two todos, three subtasks, two tags and two links for ``owner_id``."""
    work = TagFactory.create(user_id=owner_id, name="Work", color="#112233")
    urgent = TagFactory.create(user_id=owner_id, name="Urgent", color="#FF0000")
    report = TodoFactory.create(
        user_id=owner_id,
        title="Ship report",
        priority="high",
        due_date=datetime(2030, 1, 10, 1, 0, tzinfo=timezone.utc),
        is_recurring=True,
        recurrence_pattern="monthly",
        reminder_minutes=60,
    )
    groceries = TodoFactory.create(
        user_id=owner_id,
        title="Groceries",
        priority="low",
        due_date=None,
        is_completed=True,
        completed_at=datetime(2025, 1, 2, 3, 4, tzinfo=timezone.utc),
    )
    SubtaskFactory.create(todo_id=report.id, title="Draft", position=1)
    SubtaskFactory.create(todo_id=report.id, title="Review", position=2, is_completed=True)
    SubtaskFactory.create(todo_id=groceries.id, title="Milk", position=1)
    report.tags.extend([work, urgent])
    test_db.commit()
    return {"report": report, "groceries": groceries, "work": work, "urgent": urgent}


def raw_snapshot(**overrides):
    data = {
        "version": "1.0",
        "generatedAt": "2025-01-01T00:00:00Z",
        "todos": [],
        "subtasks": [],
        "tags": [],
        "todoTags": [],
    }
    data.update(overrides)
    return data


class TestExport:
    def test_export_snapshot_contents(self, transfer_service, owner_id, populated):
        snapshot = transfer_service.export_snapshot(owner_id)

        assert snapshot.version == settings.export_version
        assert {t.title for t in snapshot.todos} == {"Ship report", "Groceries"}
        assert len(snapshot.subtasks) == 3
        assert {t.name for t in snapshot.tags} == {"Work", "Urgent"}
        assert {(link.todo_id, link.tag_id) for link in snapshot.todo_tags} == {
            (populated["report"].id, populated["work"].id),
            (populated["report"].id, populated["urgent"].id),
        }

    def test_export_json_uses_camel_case(self, transfer_service, owner_id, populated):
        data = json.loads(transfer_service.export_json(owner_id))

        assert set(data) == {"version", "generatedAt", "todos", "subtasks", "tags", "todoTags"}
        todo = next(t for t in data["todos"] if t["title"] == "Ship report")
        assert todo["recurrencePattern"] == "monthly"
        assert todo["reminderMinutes"] == 60
        assert todo["isRecurring"] is True
        assert "lastNotificationSent" in todo
        assert set(data["subtasks"][0]) >= {"id", "todoId", "title", "position", "isCompleted"}
        assert set(data["todoTags"][0]) == {"todoId", "tagId"}

    def test_export_excludes_other_owners(self, transfer_service, other_owner_id, populated):
        snapshot = transfer_service.export_snapshot(other_owner_id)

        assert snapshot.todos == snapshot.subtasks == snapshot.tags == snapshot.todo_tags == []

    def test_export_csv(self, transfer_service, owner_id, populated):
        rows = list(csv.DictReader(io.StringIO(transfer_service.export_csv(owner_id))))

        report = next(r for r in rows if r["title"] == "Ship report")
        assert report["tag_names"] == "Urgent;Work"
        assert report["subtask_titles"] == "Draft;Review"
        assert report["due_date"] == "2030-01-10T09:00:00+08:00"
        groceries = next(r for r in rows if r["title"] == "Groceries")
        assert groceries["due_date"] == ""
        assert groceries["is_completed"] == "True"


class TestImport:
    def test_round_trip_into_other_owner(self, test_db, transfer_service, todo_service, owner_id, other_owner_id, populated):
        snapshot = transfer_service.export_snapshot(owner_id)

        result = transfer_service.import_snapshot(other_owner_id, snapshot)

        assert (result.todos_created, result.subtasks_created, result.tags_created) == (2, 3, 2)
        imported = {t.title: t for t in todo_service.get_todos_list(other_owner_id)}
        assert set(imported) == {"Ship report", "Groceries"}
        report = imported["Ship report"]
        assert report.id != populated["report"].id
        assert report.priority == "high"
        assert report.recurrence_pattern == "monthly"
        assert sorted(t.name for t in report.tags) == ["Urgent", "Work"]
        assert [(s.position, s.title, s.is_completed) for s in report.subtasks] == [
            (1, "Draft", False),
            (2, "Review", True),
        ]
        groceries = imported["Groceries"]
        assert groceries.is_completed is True
        assert groceries.completed_at == datetime(2025, 1, 2, 3, 4, tzinfo=timezone.utc)

    def test_double_import_reuses_tags(self, test_db, transfer_service, owner_id, other_owner_id, populated):
        payload = json.loads(transfer_service.export_json(owner_id))

        first = transfer_service.import_snapshot(other_owner_id, payload)
        second = transfer_service.import_snapshot(other_owner_id, payload)

        assert first.tags_created == 2
        assert second.tags_created == 0
        assert second.todos_created == 2
        assert set(first.created_todo_ids).isdisjoint(second.created_todo_ids)
        owner_tags = test_db.execute(select(func.count(Tag.id)).where(Tag.user_id == other_owner_id)).scalar()
        assert owner_tags == 2
        assert count(test_db, Todo) == 2 + 4

    def test_import_into_same_owner_matches_tags_by_name(self, test_db, transfer_service, owner_id):
        TagFactory.create(user_id=owner_id, name="work")
        payload = raw_snapshot(
            tags=[{"id": 50, "name": "WORK", "color": "#000000"}],
            todos=[{"id": 1, "title": "Imported"}],
            todoTags=[{"todoId": 1, "tagId": 50}],
        )

        result = transfer_service.import_snapshot(owner_id, payload)

        assert result.created_tag_ids == []
        assert count(test_db, Tag) == 1
        assert link_count(test_db) == 1

    def test_unsupported_version_mutates_nothing(self, test_db, transfer_service, owner_id):
        payload = raw_snapshot(version="0.9", todos=[{"id": 1, "title": "Never"}])

        with pytest.raises(UnsupportedVersionError) as exc_info:
            transfer_service.import_snapshot(owner_id, payload)

        assert exc_info.value.details == {"version": "0.9", "supported": "1.0"}
        assert count(test_db, Todo) == 0

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"todos": []},
            raw_snapshot(version=""),
            {"version": "1.0", "todos": [], "subtasks": [], "tags": []},
            raw_snapshot(todos="nope"),
            {"version": "1.0", "todos": [], "subtasks": [], "tags": [], "todoTags": []},
            raw_snapshot(generatedAt=""),
            raw_snapshot(generatedAt="yesterday"),
            raw_snapshot(generatedAt=20250101),
        ],
    )
    def test_structural_errors(self, transfer_service, owner_id, payload):
        with pytest.raises(ValidationError):
            transfer_service.import_snapshot(owner_id, payload)

    def test_malformed_entries_are_skipped(self, test_db, transfer_service, owner_id, caplog):
        payload = raw_snapshot(
            tags=[
                {"id": 1, "name": "Fine", "color": "not-a-colour"},
                {"id": "x", "name": "Bad id"},
                {"id": 2, "name": ""},
            ],
            todos=[
                {"id": 10, "title": "Keep me", "priority": "urgent", "isRecurring": True,
                 "recurrencePattern": "weekly", "reminderMinutes": 15, "dueDate": None},
                {"id": 11},
                {"id": None, "title": "No id"},
                "garbage",
            ],
            subtasks=[
                {"id": 100, "todoId": 10, "title": "B", "position": 5},
                {"id": 101, "todoId": 10, "title": "A", "position": 2},
                {"id": 102, "todoId": 999, "title": "Orphan", "position": 1},
                {"id": 103, "todoId": 10, "title": ""},
            ],
            todoTags=[
                {"todoId": 10, "tagId": 1},
                {"todoId": 10, "tagId": 1},
                {"todoId": 10, "tagId": 2},
                {"todoId": 11, "tagId": 1},
            ],
        )

        with caplog.at_level("WARNING"):
            result = transfer_service.import_snapshot(owner_id, payload)

        assert (result.todos_created, result.subtasks_created, result.tags_created) == (1, 2, 1)
        todo = test_db.get(Todo, result.created_todo_ids[0])
        assert todo.title == "Keep me"
        assert todo.priority == "medium"
        assert todo.is_recurring is False
        assert todo.recurrence_pattern is None
        assert todo.reminder_minutes is None
        assert [(s.position, s.title) for s in todo.subtasks] == [(1, "A"), (2, "B")]
        tag = test_db.get(Tag, result.created_tag_ids[0])
        assert tag.color == settings.default_tag_color
        assert link_count(test_db) == 1
        assert "Skipping" in caplog.text

    def test_completed_todo_without_instant_gets_one(self, test_db, transfer_service, owner_id):
        before = datetime.now(timezone.utc)
        payload = raw_snapshot(
            todos=[
                {"id": 1, "title": "Done", "isCompleted": True},
                {"id": 2, "title": "Done earlier", "isCompleted": True, "completedAt": "2025-01-02T03:04:00Z"},
                {"id": 3, "title": "Open", "completedAt": "2025-01-02T03:04:00Z"},
            ]
        )

        result = transfer_service.import_snapshot(owner_id, payload)

        done, earlier, still_open = (test_db.get(Todo, i) for i in result.created_todo_ids)
        assert done.is_completed is True
        assert done.completed_at is not None
        assert done.completed_at >= before
        assert earlier.completed_at == datetime(2025, 1, 2, 3, 4, tzinfo=timezone.utc)
        assert still_open.is_completed is False
        assert still_open.completed_at is None

    def test_import_json(self, test_db, transfer_service, owner_id):
        raw = json.dumps(raw_snapshot(todos=[{"id": 1, "title": "From file", "dueDate": "2031-05-05T10:00:00.000Z"}]))

        result = transfer_service.import_json(owner_id, raw)

        todo = test_db.get(Todo, result.created_todo_ids[0])
        assert todo.due_date == datetime(2031, 5, 5, 10, 0, tzinfo=timezone.utc)

    def test_import_json_rejects_bad_input(self, transfer_service, owner_id, monkeypatch):
        with pytest.raises(ValidationError):
            transfer_service.import_json(owner_id, "{not json")

        monkeypatch.setattr(settings, "max_import_bytes", 10)
        with pytest.raises(ValidationError) as exc_info:
            transfer_service.import_json(owner_id, json.dumps(raw_snapshot()))
        assert exc_info.value.message == "Import file is too large"

    def test_failure_rolls_back_whole_import(self, test_db, transfer_service, owner_id, monkeypatch):
        payload = raw_snapshot(
            tags=[{"id": 1, "name": "Fresh", "color": "#010203"}],
            todos=[{"id": 1, "title": "One"}],
            subtasks=[{"id": 1, "todoId": 1, "title": "Sub", "position": 1}],
        )

        def boom(todo_id):
            raise RuntimeError("interrupted")

        monkeypatch.setattr(transfer_service.subtasks, "renumber", boom)

        with pytest.raises(RuntimeError):
            transfer_service.import_snapshot(owner_id, payload)

        assert count(test_db, Todo) == count(test_db, Tag) == count(test_db, Subtask) == 0

    def test_snapshot_model_is_accepted(self, transfer_service, owner_id):
        snapshot = Snapshot(version="1.0", generated_at=datetime.now(timezone.utc) - timedelta(days=1))

        result = transfer_service.import_snapshot(owner_id, snapshot)

        assert result.todos_created == 0
