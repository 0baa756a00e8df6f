"""Utility functions for bookr: config, paths, logging and dates."""

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from storage import JsonFileStorage

APP_NAME = "bookr"
DATA_APP_NAME = "bookr-cli"
CONFIG_FILE = "config.json"
LEDGER_FILE = "worklogs.json"

# Config file keys; each falls back to the environment variable of the same name
CONFIG_KEYS = {
    "base_url": "JIRA_BASE_URL",
    "email": "JIRA_EMAIL",
    "api_token": "JIRA_API_TOKEN",
    "tempo_api_token": "TEMPO_API_TOKEN",
}


@dataclass
class Config:
    """Credentials for Jira and Tempo."""

    base_url: str
    email: str
    api_token: str
    tempo_api_token: str | None = None

    @property
    def has_tempo(self) -> bool:
        return bool(self.tempo_api_token)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def user_config_dir(environ: dict | None = None) -> Path:
    env = os.environ if environ is None else environ
    if env.get("BOOKR_CONFIG_DIR"):
        return Path(env["BOOKR_CONFIG_DIR"]).expanduser()
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Preferences" / APP_NAME
    if sys.platform == "win32" and env.get("APPDATA"):
        return Path(env["APPDATA"]) / APP_NAME / "Config"
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME


def user_data_dir(environ: dict | None = None) -> Path:
    env = os.environ if environ is None else environ
    if env.get("BOOKR_DATA_DIR"):
        return Path(env["BOOKR_DATA_DIR"]).expanduser()
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / DATA_APP_NAME
    if sys.platform == "win32" and env.get("LOCALAPPDATA"):
        return Path(env["LOCALAPPDATA"]) / DATA_APP_NAME / "Data"
    base = env.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / DATA_APP_NAME


def config_path(environ: dict | None = None) -> Path:
    return user_config_dir(environ) / CONFIG_FILE


def ledger_path(environ: dict | None = None) -> Path:
    return user_data_dir(environ) / LEDGER_FILE


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


def load_config(storage=None, environ: dict | None = None) -> Config | None:
    """Load credentials from the config file, falling back to env vars per key.

    Returns None when the Jira credentials are incomplete.
    """
    env = os.environ if environ is None else environ
    storage = storage or JsonFileStorage(config_path(environ))
    file_values = storage.read(strict=True) or {}

    values: dict[str, str | None] = {}
    for attr, key in CONFIG_KEYS.items():
        val = file_values.get(key) or env.get(key)
        values[attr] = val.strip() if isinstance(val, str) else None

    if not (values["base_url"] and values["email"] and values["api_token"]):
        return None
    return Config(
        base_url=values["base_url"].rstrip("/"),
        email=values["email"],
        api_token=values["api_token"],
        tempo_api_token=values["tempo_api_token"] or None,
    )


def validate_config(config: Config | None) -> list[str]:
    """Validate config and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    if config is None:
        return [f"Missing {key}" for key in ("JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN")]

    errors = []
    if not config.base_url.startswith("http"):
        errors.append(f"JIRA_BASE_URL must start with http(s):// (got '{config.base_url}')")
    if "@" not in config.email:
        errors.append(f"JIRA_EMAIL does not look like an email address (got '{config.email}')")
    return errors


def load_config_safe(require_tempo: bool = False, storage=None) -> Config | None:
    """Load config with user-friendly error messages.

    Returns:
        Config if valid, None if errors occurred.
    """
    try:
        config = load_config(storage)
    except json.JSONDecodeError as e:
        _err("config.json is not valid JSON!")
        _err(f"    Line {e.lineno}, column {e.colno}: {e.msg}")
        return None

    errors = validate_config(config)
    if errors:
        _err("Jira configuration is incomplete:")
        for err in errors:
            _err(f"    - {err}")
        _err("")
        _err("    Run `bookr init` or set JIRA_BASE_URL, JIRA_EMAIL, JIRA_API_TOKEN.")
        _err(f"    Config file: {config_path()}")
        return None

    if require_tempo and not config.has_tempo:
        _err("Missing TEMPO_API_TOKEN.")
        _err("    Run `bookr init` and add a Tempo token (https://id.tempo.io/manage/api-tokens).")
        return None

    return config


def save_config(values: dict[str, str], path: Path | None = None) -> Path:
    """Write config values (JIRA_* / TEMPO_* keys) readable only by the user."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(values, f, indent=2)
    return path


def _err(message: str) -> None:
    prefix = "[!] ERROR: " if message and not message.startswith(" ") else ""
    print(f"{prefix}{message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(level: str | None = None) -> None:
    if logging.getLogger().handlers:
        return

    level_name = (level or os.getenv("BOOKR_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=level_name,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def today_local() -> date:
    return datetime.now().astimezone().date()


def days_back(n: int, today: date | None = None) -> tuple[date, date]:
    """Inclusive window covering today and the n previous days."""
    end = today or today_local()
    return end - timedelta(days=n), end


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_api_datetime(value: str) -> datetime | None:
    """Parse Jira/agile timestamps like 2025-10-15T12:34:56.000+0000."""
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.astimezone()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def _text_from_adf(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return " ".join(part for part in (_text_from_adf(child) for child in node) if part)
    if not isinstance(node, dict):
        return str(node)

    parts: list[str] = []
    text = node.get("text")
    if isinstance(text, str):
        parts.append(text)
    content = node.get("content")
    if isinstance(content, list):
        for child in content:
            child_text = _text_from_adf(child)
            if child_text:
                parts.append(child_text)
    return " ".join(part.strip() for part in parts if part and part.strip())


def extract_comment_text(comment: Any) -> str:
    """Flatten a worklog comment (plain string or Atlassian document) to text."""
    return " ".join(_text_from_adf(comment).split())


def to_adf(text: str) -> dict:
    """Wrap plain text as a single-paragraph Atlassian document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": text}]}],
    }
