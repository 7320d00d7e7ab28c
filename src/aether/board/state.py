"""Board state cache - the client's copy of the kanban bucket map.

Moves are applied as transactions: snapshot, apply, then commit with
server truth or revert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .models import BucketMap, Task, TaskStatus

logger = logging.getLogger(__name__)


class BoardState:
    """Holds the current bucket map and a mutation counter."""

    def __init__(self, bucket_map: BucketMap | None = None) -> None:
        self._map = bucket_map
        self.version = 0

    @property
    def bucket_map(self) -> BucketMap | None:
        return self._map

    @property
    def loaded(self) -> bool:
        return self._map is not None

    def replace(self, bucket_map: BucketMap) -> None:
        self._map = bucket_map
        self.version += 1

    def find_task(self, task_id: str) -> Task | None:
        if self._map is None:
            return None
        found = self._map.find(task_id)
        return found[2] if found else None

    def bucket_of(self, task_id: str) -> TaskStatus | None:
        if self._map is None:
            return None
        return self._map.bucket_of(task_id)

    def begin_move(self, task_id: str, target: TaskStatus) -> MoveTransaction:
        """Optimistically move a task to ``target`` and return the open transaction.

        Raises:
            KeyError: If the task is not on the board.
        """
        if self._map is None or (found := self._map.find(task_id)) is None:
            raise KeyError(task_id)

        source, index, task = found
        snapshot = self._map.model_copy(deep=True)
        moved = task.model_copy(update={"status": target})

        buckets = dict(self._map.buckets)
        buckets[source] = [t for t in buckets[source] if t.id != task_id]
        buckets[target] = [*buckets.get(target, []), moved]

        totals = dict(self._map.totals)
        totals[source.value] = totals.get(source.value, 0) - 1
        totals[target.value] = totals.get(target.value, 0) + 1

        self.replace(BucketMap(buckets=buckets, totals=totals))
        return MoveTransaction(
            state=self,
            task=task,
            source=source,
            target=target,
            index=index,
            snapshot=snapshot,
            applied_version=self.version,
        )


@dataclass
class MoveTransaction:
    """An applied optimistic move awaiting server confirmation."""

    state: BoardState
    task: Task
    source: TaskStatus
    target: TaskStatus
    index: int
    snapshot: BucketMap
    applied_version: int

    def commit(self, server_map: BucketMap) -> bool:
        """Adopt server truth if it shows the task in the target bucket.

        Returns False, leaving the optimistic state in place, when the
        refetched map does not contain the task where it was moved.
        """
        if not any(t.id == self.task.id for t in server_map.tasks(self.target)):
            return False
        self.state.replace(server_map)
        return True

    def reapply(self) -> bool:
        """Put the task back in ``target`` after a refreshed map dropped the move.

        Leaves ``applied_version`` alone, so a later revert only undoes this
        task instead of restoring the stale snapshot. Returns True when the
        board changed.
        """
        current = self.state.bucket_map
        found = current.find(self.task.id) if current is not None else None
        if found is None or found[0] == self.target:
            return False

        bucket, _, task = found
        buckets = dict(current.buckets)
        buckets[bucket] = [t for t in buckets[bucket] if t.id != task.id]
        buckets[self.target] = [
            *buckets.get(self.target, []),
            task.model_copy(update={"status": self.target}),
        ]

        totals = dict(current.totals)
        totals[bucket.value] = totals.get(bucket.value, 0) - 1
        totals[self.target.value] = totals.get(self.target.value, 0) + 1

        self.state.replace(BucketMap(buckets=buckets, totals=totals))
        return True

    def revert(self) -> None:
        """Undo the move.

        Restores the snapshot exactly when nothing else touched the board
        since the move; otherwise only this task is moved back.
        """
        if self.state.version == self.applied_version:
            self.state.replace(self.snapshot)
            return

        current = self.state.bucket_map
        if current is None or current.bucket_of(self.task.id) != self.target:
            # A refetch already replaced the optimistic copy with server truth
            logger.info("Skipping revert of %s: board was refreshed", self.task.id)
            return

        buckets = dict(current.buckets)
        buckets[self.target] = [t for t in buckets[self.target] if t.id != self.task.id]
        source_tasks = list(buckets.get(self.source, []))
        source_tasks.insert(min(self.index, len(source_tasks)), self.task)
        buckets[self.source] = source_tasks

        totals = dict(current.totals)
        totals[self.target.value] = totals.get(self.target.value, 0) - 1
        totals[self.source.value] = totals.get(self.source.value, 0) + 1

        self.state.replace(BucketMap(buckets=buckets, totals=totals))
