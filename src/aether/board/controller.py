"""Kanban board controller - drag-and-drop reconciliation.

Turns drag gestures into status moves:
  1. Resolve the dragged task and the drop target bucket.
  2. Check permission locally (elevated role or assignee).
  3. Apply the move optimistically, then send the status update.
  4. Reconcile with a fresh snapshot, or roll back on failure.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Protocol

from ..events import TASK_CHANGE_EVENTS, Event, EventManager
from ..notices import NoticeBoard, NoticeLevel
from .models import BucketMap, Task, TaskStatus, User
from .state import BoardState, MoveTransaction

logger = logging.getLogger(__name__)

PERMISSION_DENIED_MESSAGE = "You can only move tasks assigned to you."
MOVE_FAILED_MESSAGE = "Failed to move task. Please try again."
NOT_SAVED_MESSAGE = "Task may not have been saved correctly. Click refresh to reload."


class TaskStore(Protocol):
    async def fetch_bucket_map(self, organization_id: str) -> BucketMap: ...

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task: ...


class DragOutcome(StrEnum):
    NOOP = "noop"
    DENIED = "denied"
    BUSY = "busy"
    MOVED = "moved"
    UNCONFIRMED = "unconfirmed"
    ROLLED_BACK = "rolled_back"


def can_move(user: User, task: Task) -> bool:
    """Elevated roles move anything; everyone else only their own tasks."""
    return user.is_elevated or (task.assignee_id is not None and task.assignee_id == user.id)


class BoardController:
    """Owns one organization's bucket map for the lifetime of a board view."""

    def __init__(
        self,
        organization_id: str,
        store: TaskStore,
        user: User,
        notices: NoticeBoard,
        *,
        events: EventManager | None = None,
        columns: Iterable[TaskStatus] | None = None,
        error_clear_delay: float = 3.0,
        integrity_warning_delay: float = 5.0,
    ):
        self.organization_id = organization_id
        self.store = store
        self.user = user
        self.notices = notices
        self.columns = tuple(columns) if columns is not None else tuple(TaskStatus)
        self.error_clear_delay = error_clear_delay
        self.integrity_warning_delay = integrity_warning_delay

        self.state = BoardState()
        self.active_task: Task | None = None
        self.loading = False
        self.error: str | None = None
        self._pending: dict[str, MoveTransaction] = {}
        self._closed = False
        self._unsubscribe: Callable[[], None] | None = None
        if events is not None:
            self._unsubscribe = events.subscribe(TASK_CHANGE_EVENTS, self._on_task_change)

    @property
    def bucket_map(self) -> BucketMap | None:
        return self.state.bucket_map

    # --- Loading ---

    async def load(self) -> BucketMap | None:
        return await self.refetch(silent=False)

    async def refetch(self, silent: bool = False) -> BucketMap | None:
        """Replace local state with a fresh snapshot.

        A silent refetch leaves ``loading`` alone and only logs failures.
        """
        if not silent:
            self.loading = True
            self.error = None
        try:
            bucket_map = await self.store.fetch_bucket_map(self.organization_id)
        except Exception as e:
            logger.error("Error fetching kanban data for %s: %s", self.organization_id, e)
            if not silent and not self._closed:
                self.error = str(e) or "Failed to fetch kanban data"
            return None
        finally:
            if not silent:
                self.loading = False

        if self._closed:
            return None
        self.state.replace(bucket_map)
        self._reapply_pending()
        return bucket_map

    def _reapply_pending(self, exclude: str | None = None) -> None:
        # Moves still awaiting their status update survive a refreshed map
        for task_id, transaction in list(self._pending.items()):
            if task_id != exclude and transaction.reapply():
                logger.debug("Re-applied pending move of %s to %s", task_id, transaction.target)

    async def _on_task_change(self, event: Event) -> None:
        if not self._closed:
            await self.refetch(silent=True)

    # --- Drag and drop ---

    def drag_start(self, active_id: str) -> Task | None:
        """Resolve the dragged task and clear any visible notice."""
        self.active_task = self.state.find_task(active_id)
        self.notices.clear()
        return self.active_task

    def resolve_target(self, over_id: str | None) -> TaskStatus | None:
        """Map a drop target to a bucket: a column id, or the bucket of a task."""
        if not over_id:
            return None
        for column in self.columns:
            if over_id == column.value:
                return column
        bucket = self.state.bucket_of(over_id)
        if bucket is not None and bucket in self.columns:
            return bucket
        return None

    async def drag_end(self, active_id: str, over_id: str | None) -> DragOutcome:
        """Finish a drag. Every call ends in exactly one outcome."""
        self.active_task = None

        if self._closed or not self.state.loaded:
            return DragOutcome.NOOP

        target = self.resolve_target(over_id)
        if target is None:
            return DragOutcome.NOOP

        task = self.state.find_task(active_id)
        source = self.state.bucket_of(active_id)
        if task is None or source is None or source == target:
            return DragOutcome.NOOP

        if not can_move(self.user, task):
            self.notices.show(PERMISSION_DENIED_MESSAGE, self.error_clear_delay)
            return DragOutcome.DENIED

        if active_id in self._pending:
            logger.info("Ignoring drag of %s: previous move still in flight", active_id)
            return DragOutcome.BUSY

        return await self._move(task, target)

    async def _move(self, task: Task, target: TaskStatus) -> DragOutcome:
        transaction = self.state.begin_move(task.id, target)
        self._pending[task.id] = transaction
        try:
            try:
                await self.store.update_task_status(task.id, target)
            except Exception as e:
                logger.error("Failed to update task %s: %s", task.id, e)
                if self._closed:
                    return DragOutcome.ROLLED_BACK
                transaction.revert()
                self.notices.show(MOVE_FAILED_MESSAGE, self.error_clear_delay)
                return DragOutcome.ROLLED_BACK

            try:
                server_map = await self.store.fetch_bucket_map(self.organization_id)
            except Exception as e:
                logger.error("Refetch after moving %s failed: %s", task.id, e)
                server_map = None

            if self._closed:
                return DragOutcome.MOVED

            if server_map is None or not transaction.commit(server_map):
                # Keep the optimistic state: the write may well have succeeded
                logger.error(
                    "Task %s (%s) missing from %s after move",
                    task.id,
                    task.title,
                    target,
                )
                self.notices.show(
                    NOT_SAVED_MESSAGE,
                    self.integrity_warning_delay,
                    level=NoticeLevel.WARNING,
                )
                return DragOutcome.UNCONFIRMED

            self._reapply_pending(exclude=task.id)
            return DragOutcome.MOVED
        finally:
            self._pending.pop(task.id, None)

    # --- Lifecycle ---

    def close(self) -> None:
        """Stop reacting to events and discard results of in-flight calls."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
