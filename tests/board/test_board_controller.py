"""Tests for BoardController drag-and-drop reconciliation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from aether.board.controller import (
    MOVE_FAILED_MESSAGE,
    NOT_SAVED_MESSAGE,
    PERMISSION_DENIED_MESSAGE,
    BoardController,
    DragOutcome,
    can_move,
)
from aether.board.models import BucketMap, Task, TaskStatus
from aether.client.api import ServerError
from aether.events import Event, EventManager, EventType
from aether.notices import NoticeBoard, NoticeLevel


def _ids(board: BoardController, status: TaskStatus) -> list[str]:
    return [t.id for t in board.bucket_map.tasks(status)]


@pytest.fixture
def store(bucket_map):
    """A task store that serves the board fixture and accepts every update."""
    store = AsyncMock()
    store.fetch_bucket_map = AsyncMock(return_value=bucket_map)
    store.update_task_status = AsyncMock(
        side_effect=lambda task_id, status: Task(id=task_id, status=status)
    )
    return store


@pytest.fixture
def make_board(store, member):
    async def _create(user=None, **kwargs):
        board = BoardController(
            "org-1",
            store,
            user or member,
            NoticeBoard(),
            error_clear_delay=kwargs.pop("error_clear_delay", 0.05),
            integrity_warning_delay=kwargs.pop("integrity_warning_delay", 0.05),
            **kwargs,
        )
        await board.load()
        return board

    return _create


def _server_view(make_kanban, make_task, moved_id: str, moved_status: str) -> BucketMap:
    """Board fixture as the server would return it after a move."""
    placement = {
        "t1": ("pending", "u1"),
        "t2": ("todo", "v1"),
        "t3": ("in_progress", "u1"),
        "t4": ("done", None),
        "t5": ("pending", "v1"),
    }
    placement[moved_id] = (moved_status, placement[moved_id][1])
    tasks = [make_task(tid, status, assignee_id=a) for tid, (status, a) in placement.items()]
    return BucketMap.from_api(make_kanban(*tasks))


class TestCanMove:
    def test_assignee_can_move(self, member, bucket_map):
        assert can_move(member, bucket_map.find("t1")[2]) is True

    def test_member_cannot_move_others_task(self, member, bucket_map):
        assert can_move(member, bucket_map.find("t2")[2]) is False

    def test_member_cannot_move_unassigned_task(self, member, bucket_map):
        assert can_move(member, bucket_map.find("t4")[2]) is False

    def test_manager_can_move_anything(self, manager, bucket_map):
        assert can_move(manager, bucket_map.find("t2")[2]) is True
        assert can_move(manager, bucket_map.find("t4")[2]) is True


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_fetches_snapshot(self, make_board, store, bucket_map):
        board = await make_board()

        store.fetch_bucket_map.assert_awaited_once_with("org-1")
        assert board.bucket_map is bucket_map
        assert board.loading is False
        assert board.error is None

    @pytest.mark.asyncio
    async def test_load_failure_sets_error(self, store, member):
        store.fetch_bucket_map.side_effect = ServerError("Cannot connect to server")
        board = BoardController("org-1", store, member, NoticeBoard())

        assert await board.load() is None
        assert board.error == "Cannot connect to server"
        assert board.loading is False
        assert board.bucket_map is None

    @pytest.mark.asyncio
    async def test_silent_refetch_failure_keeps_state(self, make_board, store, bucket_map):
        board = await make_board()
        store.fetch_bucket_map.side_effect = ServerError("boom")

        assert await board.refetch(silent=True) is None
        assert board.error is None
        assert board.bucket_map is bucket_map


class TestResolveTarget:
    @pytest.mark.asyncio
    async def test_column_id(self, make_board):
        board = await make_board()
        assert board.resolve_target("done") == TaskStatus.DONE

    @pytest.mark.asyncio
    async def test_task_id_resolves_to_its_bucket(self, make_board):
        board = await make_board()
        assert board.resolve_target("t3") == TaskStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_unknown_target(self, make_board):
        board = await make_board()
        assert board.resolve_target("nowhere") is None
        assert board.resolve_target(None) is None

    @pytest.mark.asyncio
    async def test_hidden_column_is_not_a_target(self, make_board):
        board = await make_board(columns=[TaskStatus.TODO, TaskStatus.DONE])
        assert board.resolve_target("pending") is None
        assert board.resolve_target("t3") is None


class TestDragEnd:
    @pytest.mark.asyncio
    async def test_member_moves_own_task(self, make_board, store, make_kanban, make_task):
        board = await make_board()
        server = _server_view(make_kanban, make_task, "t1", "in_progress")
        store.fetch_bucket_map.return_value = server

        outcome = await board.drag_end("t1", "in_progress")

        assert outcome == DragOutcome.MOVED
        store.update_task_status.assert_awaited_once_with("t1", TaskStatus.IN_PROGRESS)
        assert store.fetch_bucket_map.await_count == 2
        assert board.bucket_map is server
        assert "t1" in _ids(board, TaskStatus.IN_PROGRESS)
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_drop_on_task_moves_into_its_bucket(self, make_board, store, make_kanban, make_task):
        board = await make_board()
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "in_progress")

        outcome = await board.drag_end("t1", "t3")

        assert outcome == DragOutcome.MOVED
        store.update_task_status.assert_awaited_once_with("t1", TaskStatus.IN_PROGRESS)

    @pytest.mark.asyncio
    async def test_member_denied_on_others_task(self, make_board, store, bucket_map):
        board = await make_board()

        outcome = await board.drag_end("t2", "done")

        assert outcome == DragOutcome.DENIED
        store.update_task_status.assert_not_awaited()
        assert board.bucket_map is bucket_map
        assert board.notices.message == PERMISSION_DENIED_MESSAGE

    @pytest.mark.asyncio
    async def test_denied_notice_clears_itself(self, make_board):
        board = await make_board(error_clear_delay=0.02)

        await board.drag_end("t2", "done")
        assert board.notices.message == PERMISSION_DENIED_MESSAGE

        await asyncio.sleep(0.05)
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_manager_moves_any_task(self, make_board, store, manager, make_kanban, make_task):
        board = await make_board(user=manager)
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t2", "done")

        assert await board.drag_end("t2", "done") == DragOutcome.MOVED

    @pytest.mark.asyncio
    async def test_same_bucket_is_noop(self, make_board, store, bucket_map):
        board = await make_board()

        assert await board.drag_end("t1", "pending") == DragOutcome.NOOP
        assert await board.drag_end("t1", "t5") == DragOutcome.NOOP

        store.update_task_status.assert_not_awaited()
        assert board.bucket_map is bucket_map
        assert store.fetch_bucket_map.await_count == 1

    @pytest.mark.asyncio
    async def test_drop_outside_is_noop(self, make_board, store):
        board = await make_board()

        assert await board.drag_end("t1", None) == DragOutcome.NOOP
        assert await board.drag_end("t1", "nowhere") == DragOutcome.NOOP
        store.update_task_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_task_is_noop(self, make_board, store):
        board = await make_board()

        assert await board.drag_end("ghost", "done") == DragOutcome.NOOP
        store.update_task_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_loaded_is_noop(self, store, member):
        board = BoardController("org-1", store, member, NoticeBoard())

        assert await board.drag_end("t1", "done") == DragOutcome.NOOP
        store.update_task_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_failure_rolls_back(self, make_board, store, bucket_map):
        before = bucket_map.model_copy(deep=True)
        board = await make_board(error_clear_delay=0.02)
        store.update_task_status.side_effect = ServerError("PATCH /tasks/t1 returned 500: boom")

        outcome = await board.drag_end("t1", "done")

        assert outcome == DragOutcome.ROLLED_BACK
        assert board.bucket_map == before
        assert _ids(board, TaskStatus.PENDING) == ["t1", "t5"]
        assert board.bucket_map.count(TaskStatus.DONE) == 1
        assert board.notices.message == MOVE_FAILED_MESSAGE
        assert store.fetch_bucket_map.await_count == 1

        await asyncio.sleep(0.05)
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_manager_failed_move_reverts(self, make_board, store, manager, bucket_map):
        before = bucket_map.model_copy(deep=True)
        board = await make_board(user=manager, error_clear_delay=0.02)
        store.update_task_status.side_effect = ServerError("Request timed out: PATCH /tasks/t2")

        outcome = await board.drag_end("t2", "in_progress")

        assert outcome == DragOutcome.ROLLED_BACK
        assert board.bucket_map == before
        assert board.notices.message == MOVE_FAILED_MESSAGE

        await asyncio.sleep(0.05)
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_optimistic_state_visible_while_update_pending(self, make_board, store, make_kanban, make_task):
        board = await make_board()
        release = asyncio.Event()
        seen: list[list[str]] = []

        async def slow_update(task_id, status):
            seen.append(_ids(board, TaskStatus.DONE))
            await release.wait()
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = slow_update
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "done")

        pending = asyncio.create_task(board.drag_end("t1", "done"))
        await asyncio.sleep(0)
        assert seen == [["t4", "t1"]]
        assert board.bucket_map.count(TaskStatus.DONE) == 2

        release.set()
        assert await pending == DragOutcome.MOVED

    @pytest.mark.asyncio
    async def test_missing_after_refetch_warns(self, make_board, store, make_kanban, make_task):
        board = await make_board(integrity_warning_delay=0.02)
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "pending")

        outcome = await board.drag_end("t1", "done")

        assert outcome == DragOutcome.UNCONFIRMED
        assert board.notices.message == NOT_SAVED_MESSAGE
        assert board.notices.current.level == NoticeLevel.WARNING
        # No rollback: the optimistic state stays on screen
        assert "t1" in _ids(board, TaskStatus.DONE)

        await asyncio.sleep(0.05)
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_refetch_failure_after_update_warns(self, make_board, store, bucket_map):
        board = await make_board()
        store.fetch_bucket_map.side_effect = [ServerError("timeout")]

        outcome = await board.drag_end("t1", "done")

        assert outcome == DragOutcome.UNCONFIRMED
        assert board.notices.message == NOT_SAVED_MESSAGE
        assert "t1" in _ids(board, TaskStatus.DONE)

    @pytest.mark.asyncio
    async def test_second_drag_of_same_task_is_busy(self, make_board, store, make_kanban, make_task):
        board = await make_board()
        release = asyncio.Event()

        async def slow_update(task_id, status):
            await release.wait()
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = slow_update
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "done")

        first = asyncio.create_task(board.drag_end("t1", "done"))
        await asyncio.sleep(0)

        assert await board.drag_end("t1", "todo") == DragOutcome.BUSY

        release.set()
        assert await first == DragOutcome.MOVED
        assert store.update_task_status.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_move_keeps_concurrent_move(self, make_board, store, manager):
        board = await make_board(user=manager)
        release = asyncio.Event()

        async def update(task_id, status):
            if task_id == "t1":
                await release.wait()
                raise ServerError("boom")
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = update
        store.fetch_bucket_map.side_effect = ServerError("offline")

        first = asyncio.create_task(board.drag_end("t1", "done"))
        await asyncio.sleep(0)
        assert await board.drag_end("t2", "in_progress") == DragOutcome.UNCONFIRMED

        release.set()
        assert await first == DragOutcome.ROLLED_BACK

        assert _ids(board, TaskStatus.PENDING) == ["t1", "t5"]
        assert _ids(board, TaskStatus.IN_PROGRESS) == ["t3", "t2"]
        assert _ids(board, TaskStatus.DONE) == ["t4"]

    @pytest.mark.asyncio
    async def test_reconcile_keeps_other_pending_move(self, make_board, store, manager, make_kanban, make_task):
        board = await make_board(user=manager)
        release = asyncio.Event()

        async def update(task_id, status):
            if task_id == "t5":
                await release.wait()
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = update
        # The server has not applied t5's move yet when t1 reconciles
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "in_progress")

        slow = asyncio.create_task(board.drag_end("t5", "done"))
        await asyncio.sleep(0)

        assert await board.drag_end("t1", "in_progress") == DragOutcome.MOVED
        assert board.state.bucket_of("t1") == TaskStatus.IN_PROGRESS
        assert board.state.bucket_of("t5") == TaskStatus.DONE
        assert board.bucket_map.count(TaskStatus.DONE) == 2
        assert board.bucket_map.count(TaskStatus.PENDING) == 0

        moved_both = BucketMap.from_api(
            make_kanban(
                make_task("t1", "in_progress", assignee_id="u1"),
                make_task("t5", "done", assignee_id="v1"),
            )
        )
        store.fetch_bucket_map.return_value = moved_both
        release.set()

        assert await slow == DragOutcome.MOVED
        assert board.bucket_map is moved_both

    @pytest.mark.asyncio
    async def test_failed_move_reverts_after_other_reconcile(self, make_board, store, manager, make_kanban, make_task):
        board = await make_board(user=manager)
        release = asyncio.Event()

        async def update(task_id, status):
            if task_id == "t5":
                await release.wait()
                raise ServerError("boom")
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = update
        store.fetch_bucket_map.return_value = _server_view(make_kanban, make_task, "t1", "in_progress")

        slow = asyncio.create_task(board.drag_end("t5", "done"))
        await asyncio.sleep(0)
        await board.drag_end("t1", "in_progress")
        release.set()

        assert await slow == DragOutcome.ROLLED_BACK
        assert board.state.bucket_of("t5") == TaskStatus.PENDING
        assert board.state.bucket_of("t1") == TaskStatus.IN_PROGRESS
        assert board.bucket_map.count(TaskStatus.DONE) == 1

    @pytest.mark.asyncio
    async def test_drag_start_clears_notice(self, make_board):
        board = await make_board()
        await board.drag_end("t2", "done")
        assert board.notices.current is not None

        task = board.drag_start("t1")

        assert task.id == "t1"
        assert board.active_task is task
        assert board.notices.current is None

    @pytest.mark.asyncio
    async def test_closed_board_ignores_late_failure(self, make_board, store, bucket_map):
        board = await make_board()
        release = asyncio.Event()

        async def slow_fail(task_id, status):
            await release.wait()
            raise ServerError("boom")

        store.update_task_status.side_effect = slow_fail
        pending = asyncio.create_task(board.drag_end("t1", "done"))
        await asyncio.sleep(0)

        board.close()
        release.set()
        await pending

        assert board.notices.current is None
        assert await board.drag_end("t1", "todo") == DragOutcome.NOOP


class TestEvents:
    @pytest.mark.asyncio
    async def test_task_event_triggers_silent_refetch(self, make_board, store, make_kanban, make_task):
        events = EventManager()
        board = await make_board(events=events)
        fresh = BucketMap.from_api(make_kanban(make_task("t9", "todo", assignee_id="u1")))
        store.fetch_bucket_map.return_value = fresh

        await events.publish(Event(EventType.TASK_CREATED, {"task_id": "t9"}))

        assert board.bucket_map is fresh
        assert board.loading is False

    @pytest.mark.asyncio
    async def test_event_refetch_keeps_pending_move(self, make_board, store, bucket_map):
        events = EventManager()
        board = await make_board(events=events)
        release = asyncio.Event()

        async def slow_update(task_id, status):
            await release.wait()
            return Task(id=task_id, status=status)

        store.update_task_status.side_effect = slow_update
        pending = asyncio.create_task(board.drag_end("t1", "done"))
        await asyncio.sleep(0)

        # Server still shows t1 in pending
        await events.publish(Event(EventType.TASK_UPDATED, {"task_id": "t2"}))

        assert board.state.bucket_of("t1") == TaskStatus.DONE
        assert board.bucket_map.count(TaskStatus.PENDING) == 1

        release.set()
        assert await pending == DragOutcome.UNCONFIRMED

    @pytest.mark.asyncio
    async def test_comment_event_is_ignored(self, make_board, store):
        events = EventManager()
        await make_board(events=events)

        await events.publish(Event(EventType.COMMENT_ADDED, {"task_id": "t1"}))

        assert store.fetch_bucket_map.await_count == 1

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, make_board, store):
        events = EventManager()
        board = await make_board(events=events)

        board.close()
        await events.publish(Event(EventType.TASK_UPDATED, {"task_id": "t1"}))

        assert store.fetch_bucket_map.await_count == 1
        assert events.listener_count(EventType.TASK_UPDATED) == 0
