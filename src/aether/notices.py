"""Transient user-visible notices.

A notice replaces the previous one and clears itself after its delay.
Clearing is scheduled on the running event loop, so ``show`` must be
called from a coroutine or callback.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from enum import StrEnum


class NoticeLevel(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Notice:
    message: str
    level: NoticeLevel = NoticeLevel.ERROR
    seq: int = field(default=0, compare=False)


class NoticeBoard:
    """Holds at most one visible notice."""

    def __init__(self) -> None:
        self._current: Notice | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._seq = itertools.count(1)

    @property
    def current(self) -> Notice | None:
        return self._current

    @property
    def message(self) -> str | None:
        return self._current.message if self._current else None

    def show(
        self,
        message: str,
        delay: float,
        level: NoticeLevel = NoticeLevel.ERROR,
    ) -> Notice:
        """Display a notice and schedule its removal after ``delay`` seconds."""
        self._cancel_timer()
        notice = Notice(message, level, next(self._seq))
        self._current = notice
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._expire, notice.seq)
        return notice

    def clear(self) -> None:
        self._cancel_timer()
        self._current = None

    def _expire(self, seq: int) -> None:
        # A newer notice owns its own timer
        if self._current is not None and self._current.seq == seq:
            self._current = None
            self._timer = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
