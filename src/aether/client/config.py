"""Client configuration.

Loads from ~/.aether/client.yaml with environment variable overrides.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class ClientConfig:
    """Configuration for the dashboard client."""

    api_url: str = "http://localhost:3000"
    token: str = ""  # Bearer token, loaded from env only (never saved)
    request_timeout: float = 30.0  # seconds, every REST call
    generation_timeout: float = 120.0  # seconds, AI generation calls
    error_clear_delay: float = 3.0  # seconds a transient error stays visible
    integrity_warning_delay: float = 5.0
    loading_message_interval: float = 1.5  # seconds between progress messages
    ai_language: str = "en"
    analysis_depth: str = "standard"
    export_dir: Path = field(
        default_factory=lambda: Path.home() / "Downloads",
    )

    CONFIG_FILE: Path = field(
        default_factory=lambda: Path.home() / ".aether" / "client.yaml",
        repr=False,
    )

    @classmethod
    def load(cls, config_path: Path | None = None) -> ClientConfig:
        """Load client config from file and environment variables.

        Priority (highest wins):
          1. Environment variables (AETHER_API_URL, AETHER_TOKEN, etc.)
          2. Config file (~/.aether/client.yaml or custom path)
          3. Defaults

        Args:
            config_path: Optional path to a YAML config file.

        Returns:
            Populated ClientConfig instance.
        """
        config = cls()
        file_path = config_path or config.CONFIG_FILE

        if file_path.exists():
            try:
                with open(file_path) as f:
                    data = yaml.safe_load(f) or {}

                config.api_url = data.get("api_url", config.api_url)
                config.request_timeout = float(
                    data.get("request_timeout", config.request_timeout)
                )
                config.generation_timeout = float(
                    data.get("generation_timeout", config.generation_timeout)
                )
                config.error_clear_delay = float(
                    data.get("error_clear_delay", config.error_clear_delay)
                )
                config.integrity_warning_delay = float(
                    data.get("integrity_warning_delay", config.integrity_warning_delay)
                )
                config.loading_message_interval = float(
                    data.get("loading_message_interval", config.loading_message_interval)
                )
                config.ai_language = data.get("ai_language", config.ai_language)
                config.analysis_depth = data.get("analysis_depth", config.analysis_depth)
                if "export_dir" in data:
                    config.export_dir = Path(data["export_dir"]).expanduser()
            except (yaml.YAMLError, OSError, ValueError, AttributeError):
                pass

        config.api_url = os.environ.get("AETHER_API_URL", config.api_url)
        config.token = os.environ.get("AETHER_TOKEN", config.token)
        config.ai_language = os.environ.get("AETHER_AI_LANGUAGE", config.ai_language)
        config.analysis_depth = os.environ.get("AETHER_ANALYSIS_DEPTH", config.analysis_depth)

        if env_timeout := os.environ.get("AETHER_REQUEST_TIMEOUT"):
            config.request_timeout = float(env_timeout)
        if env_generation := os.environ.get("AETHER_GENERATION_TIMEOUT"):
            config.generation_timeout = float(env_generation)
        if env_export := os.environ.get("AETHER_EXPORT_DIR"):
            config.export_dir = Path(env_export).expanduser()

        return config

    def save(self, config_path: Path | None = None) -> None:
        """Save current config to file. The token is never written.

        Args:
            config_path: Optional path override.
        """
        file_path = config_path or self.CONFIG_FILE
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "api_url": self.api_url,
            "request_timeout": self.request_timeout,
            "generation_timeout": self.generation_timeout,
            "error_clear_delay": self.error_clear_delay,
            "integrity_warning_delay": self.integrity_warning_delay,
            "loading_message_interval": self.loading_message_interval,
            "ai_language": self.ai_language,
            "analysis_depth": self.analysis_depth,
            "export_dir": str(self.export_dir),
        }

        with open(file_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
