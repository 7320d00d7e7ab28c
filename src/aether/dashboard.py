"""Dashboard session - wires config, API client, events and views.

One session per signed-in user. It owns the task event bus, so every
board and card created through it sees the same notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .ai.card import AICard, ConfirmCallback
from .ai.models import ArtifactKind
from .board.controller import BoardController
from .board.models import Task, TaskComment, TaskStatus, User
from .client.api import ApiClient
from .client.config import ClientConfig
from .events import Event, EventManager, EventType
from .notices import NoticeBoard

logger = logging.getLogger(__name__)


class Dashboard:
    """Entry point for a dashboard client."""

    def __init__(
        self,
        config: ClientConfig,
        user: User,
        client: ApiClient | None = None,
    ):
        self.config = config
        self.user = user
        self.client = client or ApiClient(
            config.api_url,
            token=config.token,
            timeout=config.request_timeout,
            generation_timeout=config.generation_timeout,
        )
        self.events = EventManager()
        self.notices = NoticeBoard()
        self._boards: list[BoardController] = []
        self._cards: list[AICard] = []

    # --- Views ---

    async def open_board(
        self,
        organization_id: str,
        columns: Iterable[TaskStatus] | None = None,
    ) -> BoardController:
        """Build a fresh board for an organization and load it."""
        board = BoardController(
            organization_id,
            self.client,
            self.user,
            self.notices,
            events=self.events,
            columns=columns,
            error_clear_delay=self.config.error_clear_delay,
            integrity_warning_delay=self.config.integrity_warning_delay,
        )
        self._boards.append(board)
        await board.load()
        return board

    def close_board(self, board: BoardController) -> None:
        board.close()
        if board in self._boards:
            self._boards.remove(board)

    def ai_card(self, kind: ArtifactKind, confirm: ConfirmCallback | None = None) -> AICard:
        card = AICard(
            kind,
            self.client,
            confirm=confirm,
            language=self.config.ai_language,
            depth=self.config.analysis_depth,
            message_interval=self.config.loading_message_interval,
            export_dir=self.config.export_dir,
        )
        self._cards.append(card)
        return card

    def close_card(self, card: AICard) -> None:
        card.close()
        if card in self._cards:
            self._cards.remove(card)

    # --- Task operations (broadcast to open views) ---

    async def create_task(
        self,
        organization_id: str,
        title: str,
        assignee_id: str,
        description: str = "",
        due_date: str | None = None,
        repo_id: str | None = None,
    ) -> Task:
        task = await self.client.create_task(
            organization_id,
            title,
            assignee_id,
            description=description,
            due_date=due_date,
            repo_id=repo_id,
        )
        await self.events.publish(Event(EventType.TASK_CREATED, {"task_id": task.id}))
        return task

    async def update_task(self, task_id: str, changes: dict) -> Task:
        task = await self.client.update_task(task_id, changes)
        await self.events.publish(Event(EventType.TASK_UPDATED, {"task_id": task.id}))
        return task

    async def archive_task(self, task_id: str) -> Task:
        task = await self.client.archive_task(task_id)
        await self.events.publish(Event(EventType.TASK_ARCHIVED, {"task_id": task.id}))
        return task

    async def archive_all_done(self, organization_id: str) -> int:
        archived = await self.client.archive_all_done(organization_id)
        if archived:
            await self.events.publish(
                Event(EventType.TASK_ARCHIVED, {"organization_id": organization_id, "count": archived})
            )
        return archived

    async def add_comment(self, task_id: str, content: str) -> TaskComment:
        comment = await self.client.add_comment(task_id, content)
        await self.events.publish(
            Event(EventType.COMMENT_ADDED, {"task_id": task_id, "comment_id": comment.id})
        )
        return comment

    async def delete_comment(self, task_id: str, comment_id: str) -> None:
        await self.client.delete_comment(comment_id)
        await self.events.publish(
            Event(EventType.COMMENT_DELETED, {"task_id": task_id, "comment_id": comment_id})
        )

    async def link_commit(self, task_id: str, commit_sha: str) -> Task:
        task = await self.client.link_commit(task_id, commit_sha)
        await self.events.publish(
            Event(EventType.COMMIT_LINKED, {"task_id": task_id, "commit_sha": commit_sha})
        )
        return task

    # --- Lifecycle ---

    async def close(self) -> None:
        for card in self._cards:
            card.close()
        for board in self._boards:
            board.close()
        self._cards.clear()
        self._boards.clear()
        await self.client.close()
