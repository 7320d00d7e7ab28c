"""AI artifact card - one state machine for every artifact kind.

States:
  idle       nothing to show; the user may generate
  loading    generation in flight; progress messages rotate
  completed  artifact available (from cache or fresh)
  error      generation failed; the user may retry

On every key change the card resets to idle and looks up the cache. The
lookup never generates and never surfaces an error.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from ..export.pdf import ExportMetadata, export_artifact
from .models import LOADING_MESSAGES, Artifact, ArtifactKey, ArtifactKind, CardState

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    async def fetch_artifact(
        self, kind: ArtifactKind, key: ArtifactKey, *, cache_only: bool = True
    ) -> Artifact: ...

    async def generate_artifact(
        self,
        kind: ArtifactKind,
        key: ArtifactKey,
        *,
        force_regenerate: bool = False,
        language: str | None = None,
        depth: str | None = None,
    ) -> Artifact: ...


@dataclass(frozen=True)
class ConfirmRequest:
    """What the user is asked before a destructive regeneration."""

    kind: ArtifactKind
    key: ArtifactKey
    title: str
    message: str
    confirm_label: str


ConfirmCallback = Callable[[ConfirmRequest], Awaitable[bool] | bool]

_CREDITS_WARNING = (
    "The current analysis will be permanently overwritten. "
    "This action consumes AI credits and cannot be undone."
)

REGENERATE_PROMPTS: dict[ArtifactKind, tuple[str, str, str]] = {
    ArtifactKind.COMMIT_EXPLANATION: (
        "Regenerate AI Response?",
        f"Are you sure you want to regenerate this explanation? {_CREDITS_WARNING}",
        "Regenerate",
    ),
    ArtifactKind.CODE_ANALYSIS: (
        "Re-scan Code Analysis?",
        "Are you sure you want to re-scan this code? The current security analysis "
        "will be permanently overwritten. This action consumes AI credits and cannot be undone.",
        "Re-scan",
    ),
    ArtifactKind.TASK_REPORT: (
        "Regenerate Task Report?",
        f"Are you sure you want to regenerate this report? {_CREDITS_WARNING}",
        "Regenerate",
    ),
}


class AICard:
    """State machine behind one AI result card."""

    def __init__(
        self,
        kind: ArtifactKind,
        store: ArtifactStore,
        *,
        confirm: ConfirmCallback | None = None,
        language: str | None = None,
        depth: str | None = None,
        message_interval: float = 1.5,
        export_dir: Path | None = None,
    ):
        self.kind = kind
        self.store = store
        self.language = language
        self.depth = depth
        self.message_interval = message_interval
        self.export_dir = export_dir
        self._confirm = confirm

        self.key = ArtifactKey()
        self.state = CardState.IDLE
        self.artifact: Artifact | None = None
        self.error: str | None = None
        self.loading_message_index = 0

        self._epoch = 0
        self._closed = False
        self._lookup: asyncio.Task[None] | None = None
        self._request: asyncio.Future[Artifact] | None = None
        self._ticker: asyncio.Task[None] | None = None

    # --- View properties ---

    @property
    def disabled(self) -> bool:
        """Task reports cannot exist without a selected commit."""
        return self.kind == ArtifactKind.TASK_REPORT and not self.key.commit_sha

    @property
    def loading_message(self) -> str | None:
        if self.state != CardState.LOADING:
            return None
        messages = LOADING_MESSAGES[self.kind]
        return messages[self.loading_message_index % len(messages)]

    @property
    def cached(self) -> bool:
        return bool(self.artifact and self.artifact.cached)

    @property
    def generated_at(self) -> datetime | None:
        return self.artifact.timestamp if self.artifact else None

    # --- Key changes ---

    def set_key(self, task_id: str | None, commit_sha: str | None) -> asyncio.Task[None] | None:
        """Switch to a new task/commit pair.

        Clears the displayed artifact before returning, then schedules the
        cache lookup. Returns the lookup task, or None when the key is
        incomplete and no network call is made.
        """
        self._epoch += 1
        self._cancel_pending()
        self.key = ArtifactKey(task_id=task_id, commit_sha=commit_sha)
        self.state = CardState.IDLE
        self.artifact = None
        self.error = None
        self.loading_message_index = 0

        if self._closed or not self.key.is_complete(self.kind):
            return None

        self._lookup = asyncio.create_task(
            self._lookup_cache(self._epoch),
            name=f"lookup-{self.kind}-{self.key.short_sha}",
        )
        return self._lookup

    async def mount(self, task_id: str | None, commit_sha: str | None) -> CardState:
        """Set the key and wait for the cache lookup to settle."""
        lookup = self.set_key(task_id, commit_sha)
        if lookup is not None:
            await asyncio.wait({lookup})
        return self.state

    async def _lookup_cache(self, epoch: int) -> None:
        try:
            artifact = await self.store.fetch_artifact(self.kind, self.key, cache_only=True)
        except Exception as e:
            # Any failure, 404 included, just means nothing is cached
            logger.debug("No cached %s for %s: %s", self.kind, self.key, e)
            return

        if epoch != self._epoch or self.state != CardState.IDLE:
            return
        self.artifact = artifact
        self.state = CardState.COMPLETED

    # --- Generation ---

    async def generate(self, force_regenerate: bool = False) -> CardState:
        """Generate the artifact for the current key.

        Allowed from idle and error. A completed card only regenerates
        through ``regenerate()``.
        """
        if self._closed or not self.key.is_complete(self.kind):
            return self.state
        if self.state == CardState.LOADING:
            return self.state
        if self.state == CardState.COMPLETED and not force_regenerate:
            return self.state

        epoch = self._epoch
        self.state = CardState.LOADING
        self.error = None
        self.loading_message_index = 0
        self._start_ticker()

        request = asyncio.ensure_future(
            self.store.generate_artifact(
                self.kind,
                self.key,
                force_regenerate=force_regenerate,
                language=self.language,
                depth=self.depth,
            )
        )
        self._request = request
        try:
            artifact = await request
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not request.cancelled() or (current is not None and current.cancelling()):
                raise
            # Superseded by a key change or close()
            return self.state
        except Exception as e:
            if epoch != self._epoch:
                return self.state
            logger.error("Failed to generate %s for %s: %s", self.kind, self.key, e)
            self.error = str(e) or "Unknown error"
            self.state = CardState.ERROR
            return self.state
        finally:
            if self._request is request:
                self._request = None
                self._stop_ticker()

        if epoch != self._epoch:
            return self.state
        self.artifact = artifact
        self.state = CardState.COMPLETED
        return self.state

    async def retry(self) -> CardState:
        """Fresh generation attempt after an error; never a cache read."""
        if self.state != CardState.ERROR:
            return self.state
        return await self.generate()

    async def regenerate(self) -> bool:
        """Overwrite a completed artifact after explicit confirmation.

        Returns False, leaving the card untouched, when the user declines
        or the card changed while the question was open.
        """
        if self.state != CardState.COMPLETED:
            return False

        epoch = self._epoch
        if not await self._ask_confirmation():
            return False
        if epoch != self._epoch or self.state != CardState.COMPLETED:
            return False

        self.artifact = None
        await self.generate(force_regenerate=True)
        return True

    async def _ask_confirmation(self) -> bool:
        if self._confirm is None:
            return False
        title, message, label = REGENERATE_PROMPTS[self.kind]
        answer = self._confirm(ConfirmRequest(self.kind, self.key, title, message, label))
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    # --- Export ---

    def export_pdf(
        self,
        directory: Path | None = None,
        metadata: ExportMetadata | None = None,
    ) -> Path:
        """Write the completed artifact as a PDF, by default into ``export_dir``."""
        if self.state != CardState.COMPLETED or self.artifact is None:
            raise RuntimeError(f"No completed {self.kind} to export")
        target = directory or self.export_dir
        if target is None:
            raise ValueError("No export directory given or configured")
        return export_artifact(self.artifact, metadata, target)

    # --- Progress messages ---

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._ticker = asyncio.create_task(self._tick(), name=f"ticker-{self.kind}")

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick(self) -> None:
        messages = LOADING_MESSAGES[self.kind]
        while True:
            await asyncio.sleep(self.message_interval)
            self.loading_message_index = (self.loading_message_index + 1) % len(messages)

    # --- Lifecycle ---

    def _cancel_pending(self) -> None:
        if self._lookup is not None:
            self._lookup.cancel()
            self._lookup = None
        if self._request is not None:
            self._request.cancel()
            self._request = None
        self._stop_ticker()

    def close(self) -> None:
        """Unmount: cancel in-flight work and ignore anything that still arrives."""
        self._closed = True
        self._epoch += 1
        self._cancel_pending()
