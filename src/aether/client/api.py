"""HTTP client for the Aether REST API.

Wraps every dashboard-to-server call: kanban snapshot, task mutations,
comments, commit linking, archiving, and the AI artifact endpoints.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..ai.models import ARTIFACT_TYPES, Artifact, ArtifactKey, ArtifactKind
from ..board.models import BucketMap, LinkedCommit, Task, TaskComment, TaskStatus

logger = logging.getLogger(__name__)


class ServerError(Exception):
    """Raised when a server API call fails."""

    def __init__(self, message: str, status_code: int = 0, detail: str = ""):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ApiClient:
    """HTTP client for the Aether API.

    All methods are async and raise ServerError on failure.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        generation_timeout: float = 120.0,
    ):
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._generation_timeout = httpx.Timeout(generation_timeout)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
        )

    def set_token(self, token: str) -> None:
        """Update the authorization token after login."""
        self._client.headers["Authorization"] = f"Bearer {token}"

    # --- Board ---

    async def fetch_bucket_map(self, organization_id: str) -> BucketMap:
        """Fetch the full kanban snapshot for an organization.

        GET /tasks/organization/{organization_id}/kanban
        """
        payload = await self._request("GET", f"/tasks/organization/{organization_id}/kanban")
        return BucketMap.from_api(payload)

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task:
        """Set a task's status. Safe to retry: the same status is a no-op server-side.

        PATCH /tasks/{task_id}
        """
        return await self.update_task(task_id, {"status": str(status)})

    # --- Tasks ---

    async def get_task(self, task_id: str) -> Task:
        """GET /tasks/{task_id}"""
        return Task.model_validate(await self._request("GET", f"/tasks/{task_id}"))

    async def get_my_tasks(self) -> list[Task]:
        """Tasks assigned to the current user, regardless of role.

        GET /tasks/my-tasks
        """
        payload = await self._request("GET", "/tasks/my-tasks")
        return [Task.model_validate(t) for t in payload]

    async def create_task(
        self,
        organization_id: str,
        title: str,
        assignee_id: str,
        description: str = "",
        due_date: str | None = None,
        repo_id: str | None = None,
    ) -> Task:
        """Create a task.

        POST /tasks

        The server decides the initial status from the creator's role
        (members' tasks start in pending_validation).
        """
        body: dict[str, Any] = {
            "title": title,
            "description": description,
            "assignee_id": assignee_id,
            "organization_id": organization_id,
        }
        if due_date is not None:
            body["due_date"] = due_date
        if repo_id is not None:
            body["repo_id"] = repo_id

        return Task.model_validate(await self._request("POST", "/tasks", json=body))

    async def update_task(self, task_id: str, data: dict[str, Any]) -> Task:
        """PATCH /tasks/{task_id}"""
        return Task.model_validate(await self._request("PATCH", f"/tasks/{task_id}", json=data))

    async def archive_task(self, task_id: str) -> Task:
        """Soft-delete a task.

        PATCH /tasks/{task_id}/archive
        """
        return Task.model_validate(await self._request("PATCH", f"/tasks/{task_id}/archive"))

    async def archive_all_done(self, organization_id: str) -> int:
        """Archive every done task of an organization.

        POST /tasks/organization/{organization_id}/archive-done

        Returns:
            Number of archived tasks.
        """
        payload = await self._request(
            "POST", f"/tasks/organization/{organization_id}/archive-done"
        )
        return int(payload.get("archived", 0))

    # --- Comments ---

    async def get_comments(self, task_id: str) -> list[TaskComment]:
        """GET /tasks/{task_id}/comments"""
        payload = await self._request("GET", f"/tasks/{task_id}/comments")
        return [TaskComment.model_validate(c) for c in payload]

    async def add_comment(self, task_id: str, content: str) -> TaskComment:
        """POST /tasks/{task_id}/comments"""
        payload = await self._request(
            "POST", f"/tasks/{task_id}/comments", json={"content": content}
        )
        return TaskComment.model_validate(payload)

    async def delete_comment(self, comment_id: str) -> None:
        """DELETE /tasks/comments/{comment_id}"""
        await self._request("DELETE", f"/tasks/comments/{comment_id}")

    # --- Commits ---

    async def get_commits_by_repo(self, repo_id: str) -> list[LinkedCommit]:
        """GET /commits/repo/{repo_id}"""
        payload = await self._request("GET", f"/commits/repo/{repo_id}")
        return [LinkedCommit.model_validate(c) for c in payload]

    async def link_commit(self, task_id: str, commit_sha: str) -> Task:
        """POST /tasks/{task_id}/commits"""
        payload = await self._request(
            "POST", f"/tasks/{task_id}/commits", json={"commit_sha": commit_sha}
        )
        return Task.model_validate(payload)

    # --- AI artifacts ---

    async def fetch_artifact(
        self,
        kind: ArtifactKind,
        key: ArtifactKey,
        *,
        cache_only: bool = True,
    ) -> Artifact:
        """Read an artifact without generating it.

        With ``cache_only`` the server answers 404 when nothing is cached,
        so this never triggers a generation.
        """
        params: dict[str, Any] = {}
        if cache_only:
            params["onlyCached"] = "true"
        return await self._artifact_request(kind, key, params, timeout=None)

    async def generate_artifact(
        self,
        kind: ArtifactKind,
        key: ArtifactKey,
        *,
        force_regenerate: bool = False,
        language: str | None = None,
        depth: str | None = None,
    ) -> Artifact:
        """Return the cached artifact or generate a new one.

        ``force_regenerate`` discards any cached artifact server-side and
        overwrites it. ``language`` and ``depth`` are ignored for task
        reports.
        """
        params: dict[str, Any] = {}
        if force_regenerate:
            params["forceRegenerate"] = "true"
        if kind != ArtifactKind.TASK_REPORT:
            if language:
                params["language"] = language
            if depth:
                params["depth"] = depth
        return await self._artifact_request(kind, key, params, timeout=self._generation_timeout)

    async def _artifact_request(
        self,
        kind: ArtifactKind,
        key: ArtifactKey,
        params: dict[str, Any],
        timeout: httpx.Timeout | None,
    ) -> Artifact:
        if not key.is_complete(kind):
            raise ServerError(f"Incomplete key for {kind}: {key}")

        if kind == ArtifactKind.COMMIT_EXPLANATION:
            url = f"/ai/tasks/{key.task_id}/commits/{key.commit_sha}/explain"
        elif kind == ArtifactKind.CODE_ANALYSIS:
            url = f"/ai/commits/{key.commit_sha}/analyze"
        else:
            url = f"/ai/tasks/{key.task_id}/report"
            params = {"commitSha": key.commit_sha, **params}

        payload = await self._request("GET", url, params=params, timeout=timeout)
        artifact = ARTIFACT_TYPES[kind].model_validate(payload)
        return artifact.model_copy(update={"commit_sha": key.commit_sha or ""})

    # --- Lifecycle ---

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # --- Internal ---

    async def _request(
        self,
        method: str,
        url: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> Any:
        """Make an authenticated request to the server.

        Raises:
            ServerError: On HTTP errors or connection failures.
        """
        extra: dict[str, Any] = {}
        if timeout is not None:
            extra["timeout"] = timeout

        try:
            response = await self._client.request(
                method,
                url,
                json=json,
                params=params,
                **extra,
            )

            if response.status_code >= 400:
                detail = ""
                try:
                    body = response.json()
                    detail = body.get("message") or body.get("detail") or str(body)
                except Exception:
                    detail = response.text[:200]

                raise ServerError(
                    f"{method} {url} returned {response.status_code}: {detail}",
                    status_code=response.status_code,
                    detail=str(detail),
                )

            if not response.content:
                return {}

            return response.json()

        except httpx.ConnectError as e:
            raise ServerError(
                f"Cannot connect to server: {e}",
                detail=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise ServerError(
                f"Request timed out: {method} {url}",
                detail=str(e),
            ) from e
        except ServerError:
            raise
        except Exception as e:
            raise ServerError(
                f"Unexpected error: {e}",
                detail=str(e),
            ) from e
