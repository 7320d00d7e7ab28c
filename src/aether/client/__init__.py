"""REST client and configuration."""

from .api import ApiClient, ServerError
from .config import ClientConfig

__all__ = ["ApiClient", "ServerError", "ClientConfig"]
