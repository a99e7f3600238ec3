"""Configuration loading and management."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from sandpit.constants import (
    DEFAULT_E2B_TEMPLATE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MAX_TOOL_ROUNDS,
    DEFAULT_MODEL,
    DEFAULT_MODEL_RETRIES,
    DEFAULT_PREVIEW_PORT,
    DEFAULT_SANDBOX_PROVIDER,
    DEFAULT_SANDBOX_TIMEOUT,
    DEFAULT_TOOL_WORKERS,
)

SANDBOX_PROVIDERS = ("local", "e2b")


@dataclass
class Config:
    """Sandpit configuration.

    Loads from .env and optionally .sandpit/config.json
    """

    # API Keys
    anthropic_api_key: Optional[str] = None
    e2b_api_key: Optional[str] = None

    # Model settings
    default_model: str = DEFAULT_MODEL

    # Orchestration settings
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS
    model_retries: int = DEFAULT_MODEL_RETRIES
    tool_workers: int = DEFAULT_TOOL_WORKERS

    # Sandbox settings
    sandbox_provider: str = DEFAULT_SANDBOX_PROVIDER
    sandbox_timeout: int = DEFAULT_SANDBOX_TIMEOUT
    e2b_template: str = DEFAULT_E2B_TEMPLATE
    preview_port: int = DEFAULT_PREVIEW_PORT

    # Storage and logging
    store_path: Optional[str] = None
    log_level: str = "INFO"

    # Project-specific settings (from .sandpit/config.json)
    setup_commands: list[str] = field(default_factory=list)
    extra_packages: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "Config":
        """Load configuration from environment and project-specific config.

        Args:
            project_root: Directory holding .sandpit/config.json

        Returns:
            Config instance
        """
        load_dotenv()

        config = cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            e2b_api_key=os.getenv("E2B_API_KEY"),
            default_model=os.getenv("SANDPIT_DEFAULT_MODEL", DEFAULT_MODEL),
            max_iterations=int(os.getenv("SANDPIT_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS)),
            max_tool_rounds=int(os.getenv("SANDPIT_MAX_TOOL_ROUNDS", DEFAULT_MAX_TOOL_ROUNDS)),
            model_retries=int(os.getenv("SANDPIT_MODEL_RETRIES", DEFAULT_MODEL_RETRIES)),
            tool_workers=int(os.getenv("SANDPIT_TOOL_WORKERS", DEFAULT_TOOL_WORKERS)),
            sandbox_provider=os.getenv("SANDPIT_SANDBOX", DEFAULT_SANDBOX_PROVIDER).lower(),
            sandbox_timeout=int(os.getenv("SANDPIT_SANDBOX_TIMEOUT", DEFAULT_SANDBOX_TIMEOUT)),
            e2b_template=os.getenv("SANDPIT_E2B_TEMPLATE", DEFAULT_E2B_TEMPLATE),
            preview_port=int(os.getenv("SANDPIT_PREVIEW_PORT", DEFAULT_PREVIEW_PORT)),
            store_path=os.getenv("SANDPIT_STORE_PATH"),
            log_level=os.getenv("SANDPIT_LOG_LEVEL", "INFO").upper(),
        )

        if project_root:
            project_config_path = project_root / ".sandpit" / "config.json"
            if project_config_path.exists():
                try:
                    with open(project_config_path) as f:
                        project_config = json.load(f)
                    config.setup_commands = list(project_config.get("setup_commands", []))
                    config.extra_packages = dict(project_config.get("extra_packages", {}))
                except (json.JSONDecodeError, IOError):
                    pass  # Ignore invalid config

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.anthropic_api_key:
            errors.append("No API key found. Set ANTHROPIC_API_KEY")

        if self.sandbox_provider not in SANDBOX_PROVIDERS:
            errors.append(
                f"Unknown sandbox provider: {self.sandbox_provider} "
                f"(expected one of {', '.join(SANDBOX_PROVIDERS)})"
            )

        if self.sandbox_provider == "e2b" and not self.e2b_api_key:
            errors.append("E2B sandbox selected but E2B_API_KEY is not set")

        if self.max_iterations <= 0:
            errors.append("max_iterations must be positive")

        if self.max_tool_rounds <= 0:
            errors.append("max_tool_rounds must be positive")

        if self.sandbox_timeout <= 0:
            errors.append("sandbox_timeout must be positive")

        if self.tool_workers <= 0:
            errors.append("tool_workers must be positive")

        return errors

    def to_dict(self) -> dict:
        """Convert config to dictionary (for logging/display)."""
        return {
            "default_model": self.default_model,
            "max_iterations": self.max_iterations,
            "max_tool_rounds": self.max_tool_rounds,
            "model_retries": self.model_retries,
            "tool_workers": self.tool_workers,
            "sandbox_provider": self.sandbox_provider,
            "sandbox_timeout": self.sandbox_timeout,
            "preview_port": self.preview_port,
            "store_path": self.store_path,
            "setup_commands": self.setup_commands,
            "extra_packages": self.extra_packages,
            "has_anthropic_key": bool(self.anthropic_api_key),
            "has_e2b_key": bool(self.e2b_api_key),
        }
