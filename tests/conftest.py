"""Shared factories for board and artifact tests."""

from __future__ import annotations

from typing import Any

import pytest

from aether.board.models import BucketMap, TaskStatus, User


def task_payload(
    task_id: str,
    status: str,
    assignee_id: str | None = None,
    title: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    return {
        "id": task_id,
        "readable_id": task_id.upper(),
        "title": title or f"Task {task_id}",
        "status": status,
        "assignee_id": assignee_id,
        **extra,
    }


def kanban_payload(*tasks: dict[str, Any]) -> dict[str, Any]:
    """Build a kanban endpoint response the way the server groups tasks."""
    payload: dict[str, Any] = {status.value: [] for status in TaskStatus}
    for task in tasks:
        payload[task["status"]].append(task)
    payload["totals"] = {status.value: len(payload[status.value]) for status in TaskStatus}
    payload["totals"]["all"] = len(tasks)
    return payload


@pytest.fixture
def member():
    return User(id="u1", username="ursula", role="member")


@pytest.fixture
def other_member():
    return User(id="v1", username="victor", role="member")


@pytest.fixture
def manager():
    return User(id="m1", username="maria", role="manager")


@pytest.fixture
def board_payload():
    return kanban_payload(
        task_payload("t1", "pending", assignee_id="u1"),
        task_payload("t2", "todo", assignee_id="v1"),
        task_payload("t3", "in_progress", assignee_id="u1"),
        task_payload("t4", "done", assignee_id=None),
        task_payload("t5", "pending", assignee_id="v1"),
    )


@pytest.fixture
def bucket_map(board_payload):
    return BucketMap.from_api(board_payload)


@pytest.fixture
def make_task():
    return task_payload


@pytest.fixture
def make_kanban():
    return kanban_payload
