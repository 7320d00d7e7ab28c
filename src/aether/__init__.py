"""Aether: headless client core for the Aether task board.

Aether keeps the state a dashboard view binds to and talks to the Aether
REST API:
- Kanban board with optimistic drag-and-drop, server reconciliation and rollback
- AI artifact cards (commit explanation, code analysis, task report)
- PDF export of generated artifacts

Usage:
    from aether import Dashboard, ClientConfig

    dashboard = Dashboard(ClientConfig.load(), user)
    board = await dashboard.open_board(org_id)
    await board.drag_end(task_id, "in_progress")
"""

try:
    from importlib.metadata import version as _get_version

    __version__ = _get_version("aether-client")
except Exception:
    __version__ = "0.0.0-dev"


def __getattr__(name: str):
    """Lazy import for main classes."""
    if name == "Dashboard":
        from .dashboard import Dashboard

        return Dashboard
    if name == "ClientConfig":
        from .client.config import ClientConfig

        return ClientConfig
    if name == "ApiClient":
        from .client.api import ApiClient

        return ApiClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "Dashboard",
    "ClientConfig",
    "ApiClient",
]
