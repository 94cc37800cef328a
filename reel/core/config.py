"""
Reel Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (REEL_* and the bare deployment names)
3. Project config (./reel.toml)
4. User config (~/.reel/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    TELEGRAM_BOT_TOKEN  → telegram.token
    JELLYFIN_SERVER_URL → jellyfin.server_url
    JELLYFIN_API_KEY    → jellyfin.api_key
    WEBHOOK_SECRET      → webhook.secret
    PORT                → webhook.port
    DATABASE_PATH       → database.path
    TESTER_CHAT_IDS     → testing.tester_ids (comma separated)
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from reel.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TelegramConfig(BaseModel):
    """Telegram bot credentials."""

    token: str = ""
    api_base: str = "https://api.telegram.org"
    timeout: float = 15.0

    @property
    def configured(self) -> bool:
        return bool(self.token)


class JellyfinConfig(BaseModel):
    """Jellyfin server connection."""

    server_url: str = ""
    api_key: str = ""
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.server_url and self.api_key)


class WebhookConfig(BaseModel):
    """Inbound webhook endpoint."""

    secret: str = ""
    host: str = "0.0.0.0"
    port: int = 8080


class DatabaseConfig(BaseModel):
    """SQLite location."""

    path: str = "./bot.db"


class LoggingConfig(BaseModel):
    """Log levels and destinations."""

    level: str = "INFO"
    log_dir: str = "./logs"
    events_log: bool = True


class TestingConfig(BaseModel):
    """
    Tester allowlist and staging switches.

    notify_only_testers sends EVERY notification to testers only.
    enable_beta_features routes synthetic ("test-" prefixed) content to
    testers only, and gates tester membership itself.
    """

    __test__ = False  # keep pytest from collecting this class

    tester_ids: list[int] = Field(default_factory=list)
    enable_beta_features: bool = False
    notify_only_testers: bool = False

    def is_tester(self, recipient_id: int) -> bool:
        if not self.enable_beta_features:
            return False
        return recipient_id in self.tester_ids


class BroadcastConfig(BaseModel):
    """Delivery pacing and retry policy."""

    send_delay: float = 0.035  # seconds between sends, keeps us under 30 msg/s
    max_retries: int = 3
    backoff_unit: float = 1.0  # attempt n waits n * backoff_unit seconds
    queue_size: int = 100
    default_language: str = "en"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class ReelConfig(BaseModel):
    """Root configuration for Reel."""

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    jellyfin: JellyfinConfig = Field(default_factory=JellyfinConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    testing: TestingConfig = Field(default_factory=TestingConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> ReelConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        # Layer 1: User config (~/.reel/config.toml)
        user_config_path = user_path or Path.home() / ".reel" / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        # Layer 2: Project config (./reel.toml)
        project_config_path = project_path or Path.cwd() / "reel.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        # Layer 3: Environment variables
        _deep_merge(merged, _load_from_env())

        # Layer 4: Explicit overrides
        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return ReelConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def validate_runtime(self) -> None:
        """Raise ConfigError if anything the server needs to run is missing."""
        missing = []
        if not self.telegram.token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.jellyfin.server_url:
            missing.append("JELLYFIN_SERVER_URL")
        if not self.jellyfin.api_key:
            missing.append("JELLYFIN_API_KEY")
        if missing:
            raise ConfigError(
                f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing},
            )

    def get_database_path(self) -> Path:
        return Path(self.database.path).expanduser()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_ENV_MAPPING: dict[str, tuple[str, str]] = {
    "TELEGRAM_BOT_TOKEN": ("telegram", "token"),
    "JELLYFIN_SERVER_URL": ("jellyfin", "server_url"),
    "JELLYFIN_API_KEY": ("jellyfin", "api_key"),
    "WEBHOOK_SECRET": ("webhook", "secret"),
    "PORT": ("webhook", "port"),
    "DATABASE_PATH": ("database", "path"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_DIR": ("logging", "log_dir"),
    "TESTER_CHAT_IDS": ("testing", "tester_ids"),
    "ENABLE_BETA_FEATURES": ("testing", "enable_beta_features"),
    "NOTIFY_ONLY_TESTERS": ("testing", "notify_only_testers"),
    "REEL_WEBHOOK_HOST": ("webhook", "host"),
    "REEL_SEND_DELAY": ("broadcast", "send_delay"),
    "REEL_MAX_RETRIES": ("broadcast", "max_retries"),
    "REEL_DEFAULT_LANGUAGE": ("broadcast", "default_language"),
}

# Values that must stay strings even when they look numeric or boolean
_STRING_KEYS = {
    ("telegram", "token"),
    ("jellyfin", "api_key"),
    ("webhook", "secret"),
    ("database", "path"),
    ("broadcast", "default_language"),
}


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from environment variables."""
    result: dict[str, Any] = {}

    for env_var, (section, key) in _ENV_MAPPING.items():
        value = os.environ.get(env_var)
        if value is None or value == "":
            continue
        if section not in result:
            result[section] = {}
        if (section, key) == ("testing", "tester_ids"):
            result[section][key] = _parse_id_list(value)
        elif (section, key) in _STRING_KEYS:
            result[section][key] = value
        else:
            result[section][key] = _convert_value(value)

    return result


def _parse_id_list(value: str) -> list[int]:
    """Parse "123, 456,abc" into [123, 456]. Unparseable parts are skipped."""
    ids: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            continue
    return ids


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            for var_name in pattern.findall(value):
                value = value.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
            data[key] = value
