"""Task change notifications."""

from .manager import EventManager
from .models import TASK_CHANGE_EVENTS, Event, EventType

__all__ = ["EventManager", "Event", "EventType", "TASK_CHANGE_EVENTS"]
