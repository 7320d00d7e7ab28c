"""Kanban board state and drag-and-drop reconciliation."""

from .controller import BoardController, DragOutcome, can_move
from .models import BucketMap, Task, TaskStatus, User
from .state import BoardState, MoveTransaction

__all__ = [
    "BoardController",
    "DragOutcome",
    "can_move",
    "BucketMap",
    "Task",
    "TaskStatus",
    "User",
    "BoardState",
    "MoveTransaction",
]
