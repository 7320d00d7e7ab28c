"""Task notification event models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_ARCHIVED = "task_archived"
    COMMENT_ADDED = "comment_added"
    COMMENT_DELETED = "comment_deleted"
    COMMIT_LINKED = "commit_linked"


# Events after which any view showing the task set should refresh
TASK_CHANGE_EVENTS = frozenset(
    {
        EventType.TASK_CREATED,
        EventType.TASK_UPDATED,
        EventType.TASK_ARCHIVED,
        EventType.COMMIT_LINKED,
    }
)


@dataclass
class Event:
    event_type: EventType
    data: dict[str, Any] = field(default_factory=dict)
