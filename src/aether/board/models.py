"""Board Pydantic models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskStatus(StrEnum):
    PENDING_VALIDATION = "pending_validation"
    TODO = "todo"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


# Roles allowed to move any task on the board
ELEVATED_ROLES = frozenset({"manager", "admin", "global_manager"})


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    username: str = ""
    email: str = ""
    role: str = "member"
    avatar_color: str | None = None

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


class Repo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""


class LinkedCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sha: str
    message: str = ""
    author_login: str | None = None
    committed_at: str | None = None


class TaskCommit(BaseModel):
    model_config = ConfigDict(extra="ignore")

    commit_sha: str
    linked_at: str | None = None
    commits: LinkedCommit | None = None


class Task(BaseModel):
    """A task record as served by the task store.

    The server nests the assignee under its relation name; it is exposed
    here as ``assignee``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    readable_id: str | int | None = None
    title: str = ""
    description: str | None = None
    status: TaskStatus
    assignee_id: str | None = None
    assignee: User | None = Field(default=None, alias="users_tasks_assignee_idTousers")
    start_date: str | None = None
    due_date: str | None = None
    repo_id: str | None = None
    repo: Repo | None = Field(default=None, alias="repos")
    validated_by: str | None = None
    created_at: str | None = None
    comments: str | None = None
    is_archived: bool = False
    task_commits: list[TaskCommit] = Field(default_factory=list)

    @property
    def latest_commit_sha(self) -> str | None:
        if not self.task_commits:
            return None
        return self.task_commits[-1].commit_sha


class CommentAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    username: str = ""
    email: str = ""
    avatar_color: str | None = None


class TaskComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    task_id: str
    user_id: str
    content: str
    created_at: str | None = None
    users: CommentAuthor | None = None


class BucketMap(BaseModel):
    """Tasks grouped by status, with per-bucket counts and a grand total.

    A derived view of the task store. ``totals`` is kept as served and
    adjusted by optimistic moves, so it can differ from the list lengths
    when the server paginates or filters.
    """

    buckets: dict[TaskStatus, list[Task]] = Field(default_factory=dict)
    totals: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> BucketMap:
        """Build a bucket map from the kanban endpoint payload.

        Missing buckets become empty lists, missing counts fall back to the
        bucket length, and archived tasks are dropped.
        """
        buckets: dict[TaskStatus, list[Task]] = {}
        for status in TaskStatus:
            tasks = [Task.model_validate(t) for t in payload.get(status.value) or []]
            buckets[status] = [t for t in tasks if not t.is_archived]

        served = payload.get("totals") or {}
        totals = {
            status.value: int(served.get(status.value, len(buckets[status])))
            for status in TaskStatus
        }
        totals["all"] = int(served.get("all", sum(len(b) for b in buckets.values())))
        return cls(buckets=buckets, totals=totals)

    def tasks(self, status: TaskStatus) -> list[Task]:
        return self.buckets.get(status, [])

    def count(self, status: TaskStatus) -> int:
        return self.totals.get(status.value, 0)

    def find(self, task_id: str) -> tuple[TaskStatus, int, Task] | None:
        """Locate a task by id across all buckets."""
        for status, tasks in self.buckets.items():
            for index, task in enumerate(tasks):
                if task.id == task_id:
                    return status, index, task
        return None

    def bucket_of(self, task_id: str) -> TaskStatus | None:
        found = self.find(task_id)
        return found[0] if found else None
