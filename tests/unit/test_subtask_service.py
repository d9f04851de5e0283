"""Unit tests for SubtaskService and the dense position sequence."""

import random

import pytest

from app.exceptions.base import ValidationError
from app.exceptions.todo import SubtaskNotFoundError, TodoNotFoundError
from app.schemas.subtask import SubtaskCreate, SubtaskProgress


def positions(subtask_service, todo_id, owner_id):
    subtasks, _ = subtask_service.list_subtasks(todo_id, owner_id)
    return [(s.position, s.title) for s in subtasks]


class TestCreateSubtask:
    def test_append_when_position_omitted(self, subtask_service, owner_id, test_todo_with_subtasks):
        subtask, progress = subtask_service.create_subtask(
            test_todo_with_subtasks.id, owner_id, SubtaskCreate(title="Last")
        )

        assert subtask.position == 4
        assert progress == SubtaskProgress(completed=0, total=4, percent=0)

    def test_insert_shifts_later_subtasks(self, subtask_service, owner_id, test_todo_with_subtasks):
        subtask_service.create_subtask(
            test_todo_with_subtasks.id, owner_id, SubtaskCreate(title="Inserted", position=2)
        )

        assert positions(subtask_service, test_todo_with_subtasks.id, owner_id) == [
            (1, "Step 1"),
            (2, "Inserted"),
            (3, "Step 2"),
            (4, "Step 3"),
        ]

    @pytest.mark.parametrize("requested,expected", [(0, 1), (1, 1), (99, 4)])
    def test_position_is_clamped(self, subtask_service, owner_id, test_todo_with_subtasks, requested, expected):
        subtask, _ = subtask_service.create_subtask(
            test_todo_with_subtasks.id, owner_id, SubtaskCreate(title="Clamped", position=requested)
        )

        assert subtask.position == expected

    def test_negative_position_rejected(self, subtask_service, owner_id, test_todo):
        with pytest.raises(ValidationError):
            subtask_service.create_subtask(test_todo.id, owner_id, SubtaskCreate(title="x", position=-1))

    @pytest.mark.parametrize("title", ["", "   ", "t" * 201])
    def test_title_validation(self, subtask_service, owner_id, test_todo, title):
        with pytest.raises(ValidationError):
            subtask_service.create_subtask(test_todo.id, owner_id, SubtaskCreate(title=title))

    def test_unowned_todo(self, subtask_service, other_owner_id, test_todo):
        with pytest.raises(TodoNotFoundError):
            subtask_service.create_subtask(test_todo.id, other_owner_id, SubtaskCreate(title="x"))


class TestDeleteSubtask:
    def test_delete_renumbers(self, subtask_service, owner_id, test_todo_with_subtasks):
        subtasks, _ = subtask_service.list_subtasks(test_todo_with_subtasks.id, owner_id)

        progress = subtask_service.delete_subtask(subtasks[0].id, owner_id)

        assert progress.total == 2
        assert positions(subtask_service, test_todo_with_subtasks.id, owner_id) == [
            (1, "Step 2"),
            (2, "Step 3"),
        ]

    def test_delete_unowned(self, subtask_service, other_owner_id, test_todo_with_subtasks):
        subtask_id = test_todo_with_subtasks.subtasks[0].id

        with pytest.raises(SubtaskNotFoundError):
            subtask_service.delete_subtask(subtask_id, other_owner_id)

    def test_positions_stay_dense_after_random_operations(self, subtask_service, owner_id, test_todo):
        rng = random.Random(7)
        for step in range(40):
            subtasks, _ = subtask_service.list_subtasks(test_todo.id, owner_id)
            if subtasks and rng.random() < 0.4:
                subtask_service.delete_subtask(rng.choice(subtasks).id, owner_id)
            else:
                position = rng.choice([None, 0, 1, len(subtasks) + 5, rng.randint(1, len(subtasks) + 1)])
                subtask_service.create_subtask(
                    test_todo.id, owner_id, SubtaskCreate(title=f"s{step}", position=position)
                )

            current = [p for p, _ in positions(subtask_service, test_todo.id, owner_id)]
            assert current == list(range(1, len(current) + 1))


class TestProgress:
    def test_empty_todo_has_zero_percent(self, subtask_service, test_todo):
        assert subtask_service.get_progress(test_todo.id) == SubtaskProgress(completed=0, total=0, percent=0)

    def test_toggle_and_rounding(self, subtask_service, owner_id, test_todo_with_subtasks):
        subtasks, _ = subtask_service.list_subtasks(test_todo_with_subtasks.id, owner_id)

        _, progress = subtask_service.toggle_subtask(subtasks[0].id, owner_id)
        assert progress.percent == 33

        _, progress = subtask_service.toggle_subtask(subtasks[1].id, owner_id, completed=True)
        assert progress.percent == 67

        subtask, progress = subtask_service.toggle_subtask(subtasks[1].id, owner_id)
        assert subtask.is_completed is False
        assert progress.completed == 1

    def test_half_rounds_up(self):
        assert SubtaskProgress.from_counts(1, 2).percent == 50
        assert SubtaskProgress.from_counts(1, 8).percent == 13

    def test_update_title(self, subtask_service, owner_id, test_todo_with_subtasks):
        subtasks, _ = subtask_service.list_subtasks(test_todo_with_subtasks.id, owner_id)

        subtask, _ = subtask_service.update_title(subtasks[2].id, owner_id, "  Final check ")

        assert subtask.title == "Final check"
        with pytest.raises(ValidationError):
            subtask_service.update_title(subtasks[2].id, owner_id, " ")
